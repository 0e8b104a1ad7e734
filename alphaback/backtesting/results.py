"""Result aggregation: turns a finished ledger into a SimulationResult."""

from __future__ import annotations

from alphaback.backtesting.ledger import PortfolioLedger
from alphaback.backtesting.schemas import DecisionRecord, Instrument, SimulationResult


def compute_ending_capital(
    cash: float,
    holdings: dict[Instrument, float],
    last_known_prices: dict[Instrument, float],
) -> float:
    """Cash plus each holding valued at that instrument's last-known price.

    A holding can only exist if it was bought at a known price, so every
    held instrument has a last-known price; a missing one values at 0.
    """
    return cash + sum(qty * last_known_prices.get(inst, 0.0) for inst, qty in holdings.items())


def compute_gain_percentage(starting_capital: float, ending_capital: float) -> float:
    """Percentage gain over the starting capital (e.g. 4.2 for +4.2%)."""
    if starting_capital <= 0:
        return 0.0
    return (ending_capital - starting_capital) / starting_capital * 100.0


def build_result(
    starting_capital: float,
    ledger: PortfolioLedger,
    last_known_prices: dict[Instrument, float],
    decisions: list[DecisionRecord],
    days_processed: int = 0,
) -> SimulationResult:
    """Assemble the final report of a successful run."""
    holdings = ledger.holdings
    ending_capital = compute_ending_capital(ledger.cash, holdings, last_known_prices)

    return SimulationResult(
        status="OK",
        starting_capital=starting_capital,
        ending_capital=ending_capital,
        gain_percentage=compute_gain_percentage(starting_capital, ending_capital),
        decisions=list(decisions),
        final_cash=ledger.cash,
        final_holdings=holdings,
        days_processed=days_processed,
    )
