"""Tests for POST /simulate and GET /hello."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from alphaback.api.deps import get_price_provider
from alphaback.common.exceptions import MarketDataError
from alphaback.main import app


class _FailingProvider:
    def __init__(self) -> None:
        self.calls = 0

    def fetch_series(self, symbol: str, time_step: str) -> dict:
        self.calls += 1
        raise MarketDataError(f"Price provider returned HTTP 503 for {symbol}")


# ─── Happy Path ───


class TestSimulateSuccess:
    @pytest.mark.asyncio
    async def test_round_trip_trade(self, client: AsyncClient):
        resp = await client.post(
            "/simulate",
            json={"stocks": ["AAPL"], "modelId": "trader", "startingCapital": 2000},
        )
        assert resp.status_code == 200

        body = resp.json()
        assert body["status"] == "OK"
        assert body["startingCapital"] == 2000
        # buy 100 @ 10, sell 100 @ 15
        assert body["endingCapital"] == pytest.approx(2500.0)
        assert body["gainPercentage"] == pytest.approx(25.0)
        assert body["decisions"] == [
            {"date": "2025-03-03", "instrument": "AAPL", "quantity": 100.0, "isBuy": True},
            {"date": "2025-03-05", "instrument": "AAPL", "quantity": 100.0, "isBuy": False},
        ]

    @pytest.mark.asyncio
    async def test_wire_shape_has_no_internal_fields(self, client: AsyncClient):
        resp = await client.post("/simulate", json={"stocks": ["AAPL"], "modelId": "hold"})
        assert set(resp.json()) == {
            "status",
            "startingCapital",
            "endingCapital",
            "gainPercentage",
            "decisions",
        }

    @pytest.mark.asyncio
    async def test_default_capital_from_settings(self, client: AsyncClient):
        resp = await client.post(
            "/simulate", json={"stocks": ["AAPL", "MSFT"], "modelId": "hold"}
        )
        body = resp.json()
        assert body["startingCapital"] == 100_000
        assert body["endingCapital"] == 100_000
        assert body["gainPercentage"] == 0
        assert body["decisions"] == []

    @pytest.mark.asyncio
    async def test_builtin_buy_and_hold(self, client: AsyncClient):
        resp = await client.post(
            "/simulate",
            json={"stocks": ["AAPL"], "modelId": "buy-and-hold", "startingCapital": 1000},
        )
        body = resp.json()
        # 10 units @ 10, valued at last close 15
        assert body["endingCapital"] == pytest.approx(1050.0)
        assert len(body["decisions"]) == 1

    @pytest.mark.asyncio
    async def test_request_id_header_echoed(self, client: AsyncClient):
        resp = await client.post(
            "/simulate",
            json={"stocks": ["AAPL"], "modelId": "hold"},
            headers={"X-Request-ID": "sim-42"},
        )
        assert resp.headers["X-Request-ID"] == "sim-42"


# ─── Error Mapping ───


class TestSimulateErrors:
    @pytest.mark.asyncio
    async def test_unknown_strategy_is_404(self, client: AsyncClient):
        resp = await client.post("/simulate", json={"stocks": ["AAPL"], "modelId": "nope"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "PluginResolutionError"

    @pytest.mark.asyncio
    async def test_strategy_resolved_before_fetch(self, client: AsyncClient):
        provider = _FailingProvider()
        app.dependency_overrides[get_price_provider] = lambda: provider

        resp = await client.post("/simulate", json={"stocks": ["AAPL"], "modelId": "nope"})

        assert resp.status_code == 404
        assert provider.calls == 0

    @pytest.mark.asyncio
    async def test_provider_failure_is_502(self, client: AsyncClient):
        app.dependency_overrides[get_price_provider] = _FailingProvider

        resp = await client.post("/simulate", json={"stocks": ["AAPL"], "modelId": "hold"})

        assert resp.status_code == 502
        body = resp.json()
        assert body["error"] == "MarketDataError"
        assert "HTTP 503" in body["message"]

    @pytest.mark.asyncio
    async def test_unknown_stock_is_422(self, client: AsyncClient):
        resp = await client.post("/simulate", json={"stocks": ["TSLA"], "modelId": "hold"})
        assert resp.status_code == 422
        assert resp.json()["error"] == "InputDataError"

    @pytest.mark.asyncio
    async def test_strategy_exception_is_422(self, client: AsyncClient):
        resp = await client.post("/simulate", json={"stocks": ["AAPL"], "modelId": "exploding"})
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"] == "PluginExecutionError"
        assert "ZeroDivisionError" in body["message"]

    @pytest.mark.asyncio
    async def test_malformed_order_is_422(self, client: AsyncClient):
        resp = await client.post("/simulate", json={"stocks": ["AAPL"], "modelId": "malformed"})
        assert resp.status_code == 422
        assert resp.json()["error"] == "PluginExecutionError"

    @pytest.mark.asyncio
    async def test_failing_generator_strategy_is_422(self, client: AsyncClient):
        resp = await client.post(
            "/simulate", json={"stocks": ["AAPL"], "modelId": "lazy_failing"}
        )
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"] == "PluginExecutionError"
        assert "RuntimeError" in body["message"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"stocks": [], "modelId": "hold"},
            {"stocks": ["  "], "modelId": "hold"},
            {"stocks": ["AAPL"]},
            {"stocks": ["AAPL"], "modelId": "hold", "startingCapital": 0},
        ],
    )
    async def test_invalid_request_body(self, client: AsyncClient, payload: dict):
        resp = await client.post("/simulate", json=payload)
        assert resp.status_code == 422


# ─── Hello / Health / Metrics ───


class TestAuxiliaryEndpoints:
    @pytest.mark.asyncio
    async def test_hello_default(self, bare_client: AsyncClient):
        resp = await bare_client.get("/hello")
        assert resp.status_code == 200
        assert resp.json() == "Hello World!"

    @pytest.mark.asyncio
    async def test_hello_name(self, bare_client: AsyncClient):
        resp = await bare_client.get("/hello", params={"name": "Ada"})
        assert resp.json() == "Hello Ada!"

    @pytest.mark.asyncio
    async def test_health(self, bare_client: AsyncClient):
        resp = await bare_client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert "version" in resp.json()

    @pytest.mark.asyncio
    async def test_metrics_exposes_simulation_counters(self, client: AsyncClient):
        await client.post("/simulate", json={"stocks": ["AAPL"], "modelId": "hold"})
        resp = await client.get("/metrics/")
        assert resp.status_code == 200
        assert "simulation_runs_total" in resp.text
