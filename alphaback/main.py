"""FastAPI application factory for alphaback.

Run with: uvicorn alphaback.main:app --reload
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import make_asgi_app as make_metrics_app

from alphaback.api.errors import register_exception_handlers
from alphaback.api.simulate import router as simulate_router
from alphaback.common.config import get_settings
from alphaback.common.logging import configure_log_level, get_logger
from alphaback.common.metrics import set_app_info
from alphaback.common.middleware import (
    PrometheusMiddleware,
    RequestIdMiddleware,
    RequestLoggingMiddleware,
)

VERSION = "0.1.0"

logger = get_logger("SYSTEM")


def create_app() -> FastAPI:
    """Build the API: middleware, error mapping, routes, and /metrics."""
    settings = get_settings()
    configure_log_level(settings.log_level)

    app = FastAPI(
        title="alphaback",
        version=VERSION,
        description="Backtests pluggable trading strategies against historical daily prices",
    )

    # Last added = outermost = runs first on request
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check() -> dict:
        """Liveness check."""
        return {"status": "ok", "version": VERSION}

    app.include_router(simulate_router)
    app.mount("/metrics", make_metrics_app())

    set_app_info(VERSION, settings.environment)
    logger.info(
        "alphaback app created",
        extra={
            "data": {
                "environment": settings.environment,
                "plugin_dir": settings.plugin_dir,
                "registry": bool(settings.plugin_registry_url),
            }
        },
    )
    return app


app = create_app()
