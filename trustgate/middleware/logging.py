"""structlog setup and per-request access logging.

Every log line is one JSON object on stdout. Service modules keep using
stdlib ``logging.getLogger(__name__)``; their records are rendered by the
same processor chain so the output stays uniform.

Access log lines never carry raw identifiers: client IPs and the
X-User-ID header are reduced to short SHA-256 prefixes, and user ids in
paths become ``:userId``.
"""

import hashlib
import logging
import re
import sys
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_TIMESTAMPER = structlog.processors.TimeStamper(fmt="iso", utc=True)


def configure_logging(log_level: str = "info", service: str = "trustgate") -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _TIMESTAMPER,
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*pre_chain, structlog.stdlib.add_logger_name],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logging.basicConfig(handlers=[handler], level=level, force=True)

    structlog.contextvars.bind_contextvars(service=service)


def fingerprint(value: str) -> str:
    """12 hex chars of SHA-256; enough to correlate lines, not to recover the value."""
    return hashlib.sha256(value.encode()).hexdigest()[:12]


_PATH_REDACTIONS = [
    (re.compile(r"^/api/actions/behavior/[^/]+"), "/api/actions/behavior/:userId"),
]


def redact_path(path: str) -> str:
    for pattern, replacement in _PATH_REDACTIONS:
        path = pattern.sub(replacement, path)
    return path


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """One access log line per request, tagged with a request id.

    The request id is bound into structlog's context for the duration of
    the request and echoed back in X-Request-ID. Bodies, query strings and
    other headers are not logged.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(request_id=request_id)
        logger = structlog.get_logger()
        start = time.perf_counter()

        fields = {
            "method": request.method,
            "path": redact_path(request.url.path),
            "ip_hash": fingerprint(request.client.host if request.client else "unknown"),
        }
        user_id = request.headers.get("X-User-ID")
        if user_id:
            fields["user_hash"] = fingerprint(user_id)

        try:
            try:
                response = await call_next(request)
            except Exception:
                logger.exception("request failed", **fields)
                raise

            fields["status"] = response.status_code
            fields["duration_ms"] = round((time.perf_counter() - start) * 1000)
            if response.status_code >= 500:
                logger.error("request", **fields)
            elif response.status_code >= 400:
                logger.warning("request", **fields)
            else:
                logger.info("request", **fields)

            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
