"""Prometheus metrics definitions for alphaback.

All metric objects are centralized here as module-level singletons.
Import what you need from anywhere in the codebase:

    from alphaback.common.metrics import SIMULATION_RUNS_TOTAL

The /metrics endpoint is mounted in alphaback/main.py via
prometheus_client.make_asgi_app().
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info

# ─── App Info ───

APP_INFO = Info("app", "Application metadata")

# ─── HTTP Metrics ───

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path_template", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labelnames=["method", "path_template"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently in progress",
    labelnames=["method"],
)

# ─── Business Metrics: Simulation ───

SIMULATION_RUNS_TOTAL = Counter(
    "simulation_runs_total",
    "Total simulation runs by terminal state",
    labelnames=["status"],
)

SIMULATION_DURATION_SECONDS = Histogram(
    "simulation_duration_seconds",
    "Wall-clock duration of a simulation run",
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0),
)

STRATEGY_DECIDE_DURATION_SECONDS = Histogram(
    "strategy_decide_duration_seconds",
    "Duration of a single strategy decide() call",
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)

SIMULATION_DECISIONS_TOTAL = Counter(
    "simulation_decisions_total",
    "Orders requested by strategies",
    labelnames=["direction", "applied"],
)


def set_app_info(version: str, environment: str) -> None:
    """Populate the app info metric with version and environment."""
    APP_INFO.info({"version": version, "environment": environment})
