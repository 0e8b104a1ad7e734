"""Simulation engine: synchronous day-by-day replay.

For each trading day in ascending order the engine builds a read-only
state (the day's prices plus a copy of the holdings), asks the strategy
for orders, books them through the ledger, and logs every requested
order whether or not it was applied.

The engine is entirely synchronous: all price data is pre-loaded in
memory and no I/O occurs during the replay. Any strategy failure aborts
the whole run; no partial result is ever returned.

Usage:
    from alphaback.backtesting.engine import run_simulation

    result = run_simulation(plugin, series, starting_capital=100_000.0)
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from enum import StrEnum

from alphaback.backtesting.aligner import AlignedSeries, align_series
from alphaback.backtesting.exceptions import BacktestError
from alphaback.backtesting.ledger import PortfolioLedger
from alphaback.backtesting.plugin import StrategyInvoker, verify_plugin
from alphaback.backtesting.results import build_result
from alphaback.backtesting.schemas import (
    DecisionRecord,
    Instrument,
    SimulationResult,
    StrategyState,
)
from alphaback.common.logging import get_logger
from alphaback.common.metrics import (
    SIMULATION_DECISIONS_TOTAL,
    SIMULATION_DURATION_SECONDS,
    SIMULATION_RUNS_TOTAL,
)

logger = get_logger("ENGINE")

DEFAULT_STARTING_CAPITAL = 100_000.0
DEFAULT_DECISION_TIMEOUT = 5.0


class EngineState(StrEnum):
    INIT = "init"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class SimulationEngine:
    """Runs one strategy over one price history, exactly once.

    Args:
        plugin: The resolved strategy instance (verified on construction).
        starting_capital: Cash the ledger starts with; must be > 0.
        decision_timeout: Per-call budget for ``decide`` in seconds;
            None or <= 0 disables it.

    Raises:
        PluginResolutionError: If ``plugin`` does not satisfy the contract.
        BacktestError: If ``starting_capital`` is not positive.
    """

    def __init__(
        self,
        plugin: object,
        starting_capital: float = DEFAULT_STARTING_CAPITAL,
        decision_timeout: float | None = DEFAULT_DECISION_TIMEOUT,
    ) -> None:
        self.state = EngineState.INIT
        try:
            if starting_capital <= 0:
                raise BacktestError(
                    "Starting capital must be positive",
                    context={"starting_capital": starting_capital},
                )
            self._invoker = StrategyInvoker(verify_plugin(plugin), timeout=decision_timeout)
        except BacktestError:
            self.state = EngineState.FAILED
            SIMULATION_RUNS_TOTAL.labels(status=EngineState.FAILED.value).inc()
            raise

        self.starting_capital = float(starting_capital)
        self._ledger = PortfolioLedger(self.starting_capital)
        self._plugin_name = type(plugin).__name__

    def run(self, series: Mapping[Instrument, Mapping] | AlignedSeries) -> SimulationResult:
        """Replay every trading day and return the final report.

        Args:
            series: Raw per-instrument price series, or an already aligned
                calendar.

        Returns:
            SimulationResult with status "OK".

        Raises:
            InputDataError: If the price feed is structurally malformed.
            PluginExecutionError: If the strategy raises, overruns its time
                budget, or returns malformed orders.
            BacktestError: If the engine has already run.
        """
        if self.state is not EngineState.INIT:
            raise BacktestError(
                "Simulation engine can only run once",
                context={"state": self.state.value},
            )

        start_time = time.monotonic()
        self.state = EngineState.RUNNING
        try:
            aligned = series if isinstance(series, AlignedSeries) else align_series(series)
            logger.info(
                "Simulation started",
                extra={
                    "data": {
                        "strategy": self._plugin_name,
                        "instruments": sorted(aligned.last_known_prices),
                        "days": len(aligned.days),
                        "starting_capital": self.starting_capital,
                    }
                },
            )
            decisions, days_processed = self._replay(aligned)
        except Exception:
            self.state = EngineState.FAILED
            SIMULATION_RUNS_TOTAL.labels(status=EngineState.FAILED.value).inc()
            raise

        result = build_result(
            self.starting_capital,
            self._ledger,
            aligned.last_known_prices,
            decisions,
            days_processed=days_processed,
        )
        self.state = EngineState.DONE

        duration = time.monotonic() - start_time
        SIMULATION_RUNS_TOTAL.labels(status=EngineState.DONE.value).inc()
        SIMULATION_DURATION_SECONDS.observe(duration)
        logger.info(
            "Simulation finished",
            extra={
                "data": {
                    "strategy": self._plugin_name,
                    "days_processed": days_processed,
                    "decisions": len(decisions),
                    "ending_capital": result.ending_capital,
                    "gain_pct": round(result.gain_percentage, 4),
                    "duration_seconds": round(duration, 4),
                }
            },
        )
        return result

    def _replay(self, aligned: AlignedSeries) -> tuple[list[DecisionRecord], int]:
        decisions: list[DecisionRecord] = []
        days_processed = 0

        for day in aligned.days:
            prices = aligned.snapshot_of(day)
            if not prices:
                continue

            state = StrategyState(day=day, prices=prices, holdings=self._ledger.holdings)
            orders = self._invoker.decide(state)
            days_processed += 1

            lookup = aligned.price_lookup(day)
            for order in orders:
                applied = self._ledger.apply_order(order, lookup)
                decisions.append(DecisionRecord.from_order(day, order))
                SIMULATION_DECISIONS_TOTAL.labels(
                    direction=order.direction.value,
                    applied=str(applied).lower(),
                ).inc()

        return decisions, days_processed


def run_simulation(
    plugin: object,
    series: Mapping[Instrument, Mapping] | AlignedSeries,
    starting_capital: float = DEFAULT_STARTING_CAPITAL,
    decision_timeout: float | None = DEFAULT_DECISION_TIMEOUT,
) -> SimulationResult:
    """Run a full simulation with a fresh engine.

    See ``SimulationEngine`` for arguments and raised errors.
    """
    engine = SimulationEngine(
        plugin,
        starting_capital=starting_capital,
        decision_timeout=decision_timeout,
    )
    return engine.run(series)
