"""Built-in example strategies.

HoldStrategy and BuyAndHoldStrategy take no required arguments and are
resolvable by name through the plugin loaders (see BUILTIN_STRATEGIES).
ThresholdStrategy needs its thresholds, so it is not registered; it and
the others serve as templates for plugin authors. A plugin file only
needs a class with a ``decide(state)`` method; importing from alphaback
is optional.
"""

from __future__ import annotations

from alphaback.backtesting.schemas import Order, StrategyState


class HoldStrategy:
    """Never trades."""

    def decide(self, state: StrategyState) -> list[Order]:
        return []


class BuyAndHoldStrategy:
    """Buys a fixed quantity of each instrument the first day it is priced."""

    def __init__(self, quantity: float = 10.0) -> None:
        self.quantity = quantity
        self._bought: set[str] = set()

    def decide(self, state: StrategyState) -> list[Order]:
        orders = []
        for instrument in sorted(state.prices):
            if instrument in self._bought:
                continue
            self._bought.add(instrument)
            orders.append(Order.buy(instrument, self.quantity))
        return orders


class ThresholdStrategy:
    """Buys when a price drops to ``buy_below``, sells everything at ``sell_above``.

    Args:
        buy_below: Price at or under which to buy ``quantity`` units.
        sell_above: Price at or over which to sell the whole holding.
        quantity: Units per buy.
    """

    def __init__(self, buy_below: float, sell_above: float, quantity: float = 1.0) -> None:
        self.buy_below = buy_below
        self.sell_above = sell_above
        self.quantity = quantity

    def decide(self, state: StrategyState) -> list[Order]:
        orders = []
        for instrument, price in sorted(state.prices.items()):
            held = state.holdings.get(instrument, 0.0)
            if held > 0 and price >= self.sell_above:
                orders.append(Order.sell(instrument, held))
            elif price <= self.buy_below:
                orders.append(Order.buy(instrument, self.quantity))
        return orders


BUILTIN_STRATEGIES: dict[str, type] = {
    "hold": HoldStrategy,
    "buy-and-hold": BuyAndHoldStrategy,
}
