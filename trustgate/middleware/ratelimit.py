"""Per-route HTTP rate limiting.

Windows are aligned to the epoch (a 60s window resets on the minute) and
counted through an ActionCounter, so the limits are shared across workers
when the app runs with Redis.
"""

import re
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from trustgate.services.action_counter import ActionCounter, InMemoryActionCounter


@dataclass
class Decision:
    allowed: bool
    limit: int
    remaining: int
    reset: int
    retry_after: int


class RateLimiter:
    def __init__(
        self,
        name: str,
        max_requests: int,
        window_seconds: int,
        key_fn: Callable[[Request], str],
        counter: ActionCounter,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_fn = key_fn
        self._counter = counter
        self._clock = clock

    async def check(self, request: Request) -> Decision:
        now = self._clock()
        window = int(now // self.window_seconds)
        reset = (window + 1) * self.window_seconds

        count = await self._counter.hit(
            f"http:{self.name}:{self.key_fn(request)}:{window}", self.window_seconds
        )
        return Decision(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(self.max_requests - count, 0),
            reset=reset,
            retry_after=max(1, int(reset - now)),
        )


def key_by_ip(request: Request) -> str:
    return f"ip:{request.client.host if request.client else 'unknown'}"


def key_by_user_id(request: Request) -> str:
    """Clients that identify themselves are limited per user, others per address."""
    uid = request.headers.get("X-User-ID", "").strip()
    return f"user:{uid}" if uid else key_by_ip(request)


# (name, max requests, window seconds, key)
LIMITS = {
    "explore": (120, 60, key_by_ip),
    "action": (60, 60, key_by_user_id),
    "scoring": (60, 60, key_by_ip),
    "admin": (10, 60, key_by_ip),
}

ROUTES = [
    ("GET", "/api/explore", "explore"),
    ("POST", "/api/actions/validate", "action"),
    ("GET", "/api/actions/behavior/{user_id}", "admin"),
    ("DELETE", "/api/actions/behavior/{user_id}", "admin"),
    ("POST", "/api/credibility/score", "scoring"),
    ("POST", "/api/leaderboard/verify", "scoring"),
    ("POST", "/api/challenges/balance", "scoring"),
    ("GET", "/api/moderation/report", "admin"),
]


def _route_regex(pattern: str) -> re.Pattern:
    return re.compile("^" + re.sub(r"\{[^/]+\}", "[^/]+", pattern.rstrip("/")) + "/?$")


def configure_rate_limiters(
    counter: ActionCounter | None = None,
    clock: Callable[[], float] = time.time,
) -> list[tuple[str, re.Pattern, RateLimiter]]:
    """Build the route table. Routes naming the same limit share its budget."""
    counter = counter or InMemoryActionCounter(clock=clock)
    limiters = {
        name: RateLimiter(name, max_requests, window, key_fn, counter, clock)
        for name, (max_requests, window, key_fn) in LIMITS.items()
    }
    return [(method, _route_regex(path), limiters[name]) for method, path, name in ROUTES]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Applies the route table and sets X-RateLimit-* headers on limited routes.

    Without an explicit table one is built on the first request, counting
    through app.state.action_counter (Redis or in-memory, chosen at startup).
    """

    def __init__(
        self,
        app: ASGIApp,
        limiters: list[tuple[str, re.Pattern, RateLimiter]] | None = None,
    ):
        super().__init__(app)
        self._routes = limiters

    def _limiter_for(self, request: Request) -> RateLimiter | None:
        if self._routes is None:
            self._routes = configure_rate_limiters(
                counter=getattr(request.app.state, "action_counter", None)
            )
        method, path = request.method, request.url.path
        return next(
            (limiter for m, regex, limiter in self._routes if m == method and regex.match(path)),
            None,
        )

    async def dispatch(self, request: Request, call_next):
        limiter = self._limiter_for(request)
        if limiter is None:
            return await call_next(request)

        decision = await limiter.check(request)
        if decision.allowed:
            response = await call_next(request)
        else:
            response = JSONResponse(
                status_code=429,
                content={
                    "error": {
                        "code": "RATE_LIMITED",
                        "message": f"Too many requests. Try again in {decision.retry_after} seconds.",
                        "retryAfter": decision.retry_after,
                    }
                },
            )

        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        response.headers["X-RateLimit-Reset"] = str(decision.reset)
        return response
