"""HTTP middleware for alphaback: request IDs, access logging, Prometheus metrics.

All three classes are registered in alphaback/main.py.

Usage:
    from alphaback.common.middleware import request_id_var
    rid = request_id_var.get("")  # current request ID, "" outside a request
"""

from __future__ import annotations

import re
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from alphaback.common.logging import get_logger
from alphaback.common.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

logger = get_logger("SYSTEM")

# Health-check and scrape traffic is neither logged nor counted
_QUIET_PATHS = frozenset({"/health", "/metrics", "/metrics/"})

_VALID_REQUEST_ID = re.compile(r"[A-Za-z0-9._-]{1,64}")

UNMATCHED_PATH = "unmatched"


def _inbound_request_id(request: Request) -> str:
    """Caller-supplied ``X-Request-ID`` if well formed, else a fresh hex UUID."""
    supplied = request.headers.get("x-request-id", "")
    if _VALID_REQUEST_ID.fullmatch(supplied):
        return supplied
    return uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID, expose it via ``request_id_var`` and echo it back.

    Malformed inbound IDs (empty, too long, odd characters) are replaced
    rather than propagated into logs.
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        rid = _inbound_request_id(request)
        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = rid
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One access-log line per request; level follows the response status."""

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        if request.url.path in _QUIET_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 1)

        status = response.status_code
        if status >= 500:
            log = logger.error
        elif status >= 400:
            log = logger.warning
        else:
            log = logger.info
        log(
            f"{request.method} {request.url.path} {status}",
            extra={
                "data": {
                    "method": request.method,
                    "path": request.url.path,
                    "query": str(request.url.query),
                    "status": status,
                    "duration_ms": elapsed_ms,
                    "request_id": request_id_var.get(""),
                }
            },
        )
        return response


def _record_request(method: str, path: str, status_code: int, started: float) -> None:
    HTTP_REQUESTS_TOTAL.labels(
        method=method,
        path_template=path,
        status_code=str(status_code),
    ).inc()
    HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path_template=path).observe(
        time.perf_counter() - started
    )


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Count and time every request by method, path and status.

    The API has a handful of fixed routes, so the raw path is the label;
    anything that 404s is folded into ``"unmatched"`` to bound cardinality.
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # noqa: ANN001
        path = request.url.path
        if path in _QUIET_PATHS:
            return await call_next(request)

        method = request.method
        in_progress = HTTP_REQUESTS_IN_PROGRESS.labels(method=method)
        in_progress.inc()
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            _record_request(method, path, 500, started)
            raise
        finally:
            in_progress.dec()

        label = UNMATCHED_PATH if response.status_code == 404 else path
        _record_request(method, label, response.status_code, started)
        return response
