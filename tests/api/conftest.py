"""API test fixtures: httpx.AsyncClient against the full app with overridden dependencies.

Price data comes from a StaticPriceDataProvider and strategies from a
LocalPluginLoader rooted in a per-test temporary directory, so no request
leaves the process.
"""

from __future__ import annotations

from textwrap import dedent

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from alphaback.api.deps import get_plugin_loader, get_price_provider
from alphaback.main import app
from alphaback.market_data.client import StaticPriceDataProvider
from alphaback.strategies.loader import LocalPluginLoader
from tests.factories import make_series

# ─── Plugin Sources ───

TRADER_SOURCE = dedent(
    """
    class Strategy:
        def decide(self, state):
            if state.day == "2025-03-03":
                return [{"instrument": "AAPL", "quantity": 100, "direction": "buy"}]
            if state.day == "2025-03-05":
                return [{"instrument": "AAPL", "quantity": 100, "direction": "sell"}]
            return []
    """
)

EXPLODING_SOURCE = dedent(
    """
    class Strategy:
        def decide(self, state):
            raise ZeroDivisionError("division by zero")
    """
)

MALFORMED_SOURCE = dedent(
    """
    class Strategy:
        def decide(self, state):
            return [{"instrument": "AAPL", "quantity": -5, "direction": "buy"}]
    """
)

LAZY_FAILING_SOURCE = dedent(
    """
    class Strategy:
        def decide(self, state):
            yield {"instrument": "AAPL", "quantity": 1, "direction": "buy"}
            raise RuntimeError("generator failed")
    """
)


@pytest.fixture
def plugin_dir(tmp_path):
    """Plugin directory holding the trader, exploding, malformed and lazy-failing strategies."""
    (tmp_path / "trader.py").write_text(TRADER_SOURCE)
    (tmp_path / "exploding.py").write_text(EXPLODING_SOURCE)
    (tmp_path / "malformed.py").write_text(MALFORMED_SOURCE)
    (tmp_path / "lazy_failing.py").write_text(LAZY_FAILING_SOURCE)
    return tmp_path


@pytest.fixture
def price_series() -> dict:
    """AAPL goes 10 → 12 → 15; MSFT has no close on the second day."""
    return {
        "AAPL": make_series([10, 12, 15]),
        "MSFT": make_series([100, None, 110]),
    }


@pytest_asyncio.fixture
async def client(plugin_dir, price_series) -> AsyncClient:
    """Provide an httpx.AsyncClient with provider and loader overridden."""
    app.dependency_overrides[get_price_provider] = lambda: StaticPriceDataProvider(price_series)
    app.dependency_overrides[get_plugin_loader] = lambda: LocalPluginLoader(plugin_dir)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def bare_client() -> AsyncClient:
    """Client with no dependency overrides."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
