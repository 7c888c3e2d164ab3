"""Liveness and readiness probes."""

import asyncio
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])

PROBE_TIMEOUT_SECONDS = 2.0

_started = time.monotonic()


@router.get("/health/live")
async def live():
    return {"status": "ok"}


async def _probe(check) -> dict:
    start = time.perf_counter()
    try:
        await asyncio.wait_for(check(), PROBE_TIMEOUT_SECONDS)
    except Exception as e:
        outcome = {"status": "down", "error": str(e) or type(e).__name__}
    else:
        outcome = {"status": "up"}
    outcome["latency_ms"] = int((time.perf_counter() - start) * 1000)
    return outcome


@router.get("/health/ready")
async def ready(request: Request):
    """Ready means Postgres answers; Redis is reported but may be disabled."""
    pool = getattr(request.app.state, "db_pool", None)
    rdb = getattr(request.app.state, "redis", None)

    database, redis = await asyncio.gather(
        _probe(lambda: pool.fetchval("SELECT 1")) if pool is not None else _disabled("no pool"),
        _probe(rdb.ping) if rdb is not None else _disabled(),
    )

    healthy = database["status"] == "up" and redis["status"] in ("up", "disabled")
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "checks": {"database": database, "redis": redis},
            "uptime_seconds": int(time.monotonic() - _started),
        },
    )


async def _disabled(reason: str | None = None) -> dict:
    if reason:
        return {"status": "down", "error": reason}
    return {"status": "disabled"}
