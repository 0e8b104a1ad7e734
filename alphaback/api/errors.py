"""Exception → HTTP response mapping.

Every alphaback exception becomes ``{"error": <class name>, "message": ...}``
with a status picked from STATUS_BY_EXCEPTION; anything else is a 500
with a generic message. The request ID is attached when one is set.
"""

from __future__ import annotations

import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from alphaback.backtesting.exceptions import (
    InputDataError,
    PluginExecutionError,
    PluginResolutionError,
)
from alphaback.common.exceptions import AlphabackBaseException, MarketDataError
from alphaback.common.logging import get_logger
from alphaback.common.middleware import request_id_var

logger = get_logger("API")

# Most specific first; the first matching class decides the status code.
STATUS_BY_EXCEPTION: list[tuple[type[AlphabackBaseException], int]] = [
    (PluginResolutionError, 404),
    (InputDataError, 422),
    (PluginExecutionError, 422),
    (MarketDataError, 502),
]
DEFAULT_ERROR_STATUS = 400


def status_for(exc: AlphabackBaseException) -> int:
    for exc_type, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status_code
    return DEFAULT_ERROR_STATUS


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    body = {"error": error, "message": message}
    rid = request_id_var.get("")
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


async def handle_alphaback_exception(
    request: Request, exc: AlphabackBaseException
) -> JSONResponse:
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__}: {exc}",
        extra={
            "data": {"path": request.url.path, "status": status_code, "context": exc.context}
        },
    )
    return error_response(status_code, type(exc).__name__, str(exc))


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__}: {exc}",
        extra={"data": {"path": request.url.path, "traceback": traceback.format_exc()}},
    )
    return error_response(500, "InternalServerError", "An unexpected error occurred")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AlphabackBaseException, handle_alphaback_exception)
    app.add_exception_handler(Exception, handle_unexpected_exception)
