"""Portfolio ledger: the single authority over cash and holdings.

Trading model: long-only and cash-constrained.
- Buys are all-or-nothing: applied in full if cash covers
  ``quantity * price``, otherwise not at all.
- Sells are clamped to the quantity held, so shorting is impossible.
- A holding that reaches zero is removed, never stored as zero.

Usage:
    from alphaback.backtesting.ledger import PortfolioLedger

    ledger = PortfolioLedger(starting_cash=100_000.0)
    applied = ledger.apply_order(order, aligned.price_lookup(day))
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from alphaback.backtesting.aligner import AlignedSeries
from alphaback.backtesting.exceptions import BacktestError
from alphaback.backtesting.schemas import DecisionRecord, Instrument, Order
from alphaback.common.logging import get_logger

logger = get_logger("LEDGER")

PriceLookup = Callable[[Instrument], float | None]


class PortfolioLedger:
    """Cash and holdings for exactly one simulation run.

    ``apply_order`` is the only mutator. Readers get copies.
    """

    def __init__(self, starting_cash: float) -> None:
        if starting_cash < 0:
            raise BacktestError(
                "Starting cash must be non-negative",
                context={"starting_cash": starting_cash},
            )
        self._cash: float = float(starting_cash)
        self._holdings: dict[Instrument, float] = {}

    @property
    def cash(self) -> float:
        return self._cash

    @property
    def holdings(self) -> dict[Instrument, float]:
        """A copy of the current holdings."""
        return dict(self._holdings)

    def apply_order(self, order: Order, price_lookup: PriceLookup) -> bool:
        """Book ``order`` at the price ``price_lookup`` resolves for it.

        Args:
            order: The validated order.
            price_lookup: Instrument → execution price, or None when the
                instrument has no price on record (unfillable).

        Returns:
            True if cash or holdings changed, False otherwise.
        """
        price = price_lookup(order.instrument)
        if price is None:
            logger.debug(
                "Order unfillable, no price on record",
                extra={"data": {"instrument": order.instrument, "direction": order.direction}},
            )
            return False

        if order.is_buy:
            return self._buy(order.instrument, order.quantity, price)
        return self._sell(order.instrument, order.quantity, price)

    # ─── Internal helpers ───

    def _buy(self, instrument: Instrument, quantity: float, price: float) -> bool:
        if quantity <= 0:
            return False

        cost = quantity * price
        if self._cash < cost:
            logger.debug(
                "Buy rejected, insufficient cash",
                extra={
                    "data": {
                        "instrument": instrument,
                        "quantity": quantity,
                        "price": price,
                        "cost": cost,
                        "cash": self._cash,
                    }
                },
            )
            return False

        self._cash -= cost
        self._holdings[instrument] = self._holdings.get(instrument, 0.0) + quantity
        return True

    def _sell(self, instrument: Instrument, quantity: float, price: float) -> bool:
        held = self._holdings.get(instrument, 0.0)
        sell_qty = min(held, quantity)
        if sell_qty <= 0:
            return False

        self._cash += sell_qty * price
        remaining = held - sell_qty
        if remaining <= 0:
            del self._holdings[instrument]
        else:
            self._holdings[instrument] = remaining
        return True


def replay_decisions(
    starting_capital: float,
    decisions: Iterable[DecisionRecord],
    aligned: AlignedSeries,
) -> PortfolioLedger:
    """Rebuild a ledger by re-applying a decision log in order.

    With the same price data this reproduces the logged run's final
    cash and holdings exactly.
    """
    ledger = PortfolioLedger(starting_capital)
    for record in decisions:
        ledger.apply_order(record.to_order(), aligned.price_lookup(record.date))
    return ledger
