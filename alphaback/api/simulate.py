"""Simulation API endpoints.

POST /simulate: resolves the strategy, fetches price history for the
requested stocks, replays it, and returns the SimulationResult.
GET /hello: trivial echo.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from alphaback.api.deps import get_plugin_loader, get_price_provider
from alphaback.backtesting.engine import run_simulation
from alphaback.backtesting.schemas import SimulationRequest, SimulationResult
from alphaback.common.config import Settings, get_settings
from alphaback.common.logging import get_logger
from alphaback.market_data.client import PriceDataProvider, fetch_many
from alphaback.strategies.loader import PluginLoader

router = APIRouter()
logger = get_logger("API")


@router.post("/simulate", response_model=SimulationResult)
def simulate(
    request: SimulationRequest,
    provider: PriceDataProvider = Depends(get_price_provider),
    loader: PluginLoader = Depends(get_plugin_loader),
    settings: Settings = Depends(get_settings),
) -> SimulationResult:
    """Run one simulation.

    The strategy is resolved before any price data is fetched, so an
    unknown strategy fails without touching the provider. Declared as a
    plain ``def`` so FastAPI runs the blocking replay in its threadpool.

    Args:
        request: Stocks, strategy identifier, and data granularity.
        provider: Price data provider.
        loader: Strategy plugin loader.
        settings: Application settings (defaults for capital and timeout).

    Returns:
        SimulationResult serialized with wire field names.
    """
    plugin = loader.load(request.model_id)

    time_step = request.time_step or settings.default_time_step
    series = fetch_many(provider, request.stocks, time_step)

    result = run_simulation(
        plugin,
        series,
        starting_capital=request.starting_capital or settings.starting_capital,
        decision_timeout=settings.decision_timeout_seconds,
    )

    logger.info(
        "Simulation request completed",
        extra={
            "data": {
                "model_id": request.model_id,
                "stocks": request.stocks,
                "time_step": time_step,
                "decisions": len(result.decisions),
                "gain_pct": round(result.gain_percentage, 4),
            }
        },
    )
    return result


@router.get("/hello")
def hello(name: str = "World") -> str:
    return f"Hello {name}!"
