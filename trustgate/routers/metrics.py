"""Prometheus collectors, the /metrics endpoint and the request timing middleware.

  trustgate_action_validations_total{outcome}              accepted | suspicious | rejected
  trustgate_penalties_total{type}                          penalties attached to validations
  trustgate_explore_bucket_failures_total{bucket}          buckets served empty
  trustgate_credibility_recomputations_total               scores persisted by the badge worker
  trustgate_api_request_duration_seconds{route,method,status}
  trustgate_requests_in_flight
  trustgate_db_connection_pool_active / _idle              sampled from the asyncpg pool at scrape time
"""

import time

import asyncpg
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

router = APIRouter(tags=["metrics"])

action_validations = Counter(
    "trustgate_action_validations_total",
    "Game action validations by outcome.",
    ["outcome"],
)
penalties_issued = Counter(
    "trustgate_penalties_total",
    "Penalties issued by the anti-gaming validator, by type.",
    ["type"],
)
explore_bucket_failures = Counter(
    "trustgate_explore_bucket_failures_total",
    "Explore buckets that failed and were served empty.",
    ["bucket"],
)
credibility_recomputations = Counter(
    "trustgate_credibility_recomputations_total",
    "Creator credibility scores recomputed and persisted by the badge worker.",
)
request_duration = Histogram(
    "trustgate_api_request_duration_seconds",
    "HTTP request latency by route template.",
    ["route", "method", "status"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)
requests_in_flight = Gauge(
    "trustgate_requests_in_flight",
    "HTTP requests currently being served.",
)
db_pool_active = Gauge(
    "trustgate_db_connection_pool_active",
    "Database connections checked out of the pool.",
)
db_pool_idle = Gauge(
    "trustgate_db_connection_pool_idle",
    "Idle database connections in the pool.",
)


def track_pool(pool: asyncpg.Pool) -> None:
    """Sample pool usage whenever the registry is collected."""
    db_pool_active.set_function(lambda: pool.get_size() - pool.get_idle_size())
    db_pool_idle.set_function(pool.get_idle_size)


@router.get("/metrics")
async def metrics_endpoint():
    return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def _route_label(request: Request) -> str:
    # Route templates keep label cardinality bounded; unmatched paths share one label.
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start = time.perf_counter()
        status = "500"
        with requests_in_flight.track_inprogress():
            try:
                response = await call_next(request)
                status = str(response.status_code)
            finally:
                request_duration.labels(
                    route=_route_label(request),
                    method=request.method,
                    status=status,
                ).observe(time.perf_counter() - start)
        return response
