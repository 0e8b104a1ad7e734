"""Pydantic schemas for simulation inputs, orders, and results.

Monetary values and quantities are floats. Wire field names follow the
result contract (``startingCapital``, ``isBuy``, ...) via aliases, while
Python code uses snake_case attribute names.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# A trading-day identifier, ISO formatted so lexical order is chronological.
TradingDay = str
Instrument = str
PriceSeries = dict[TradingDay, object]


class Direction(StrEnum):
    BUY = "buy"
    SELL = "sell"


# ─── Orders ───


class Order(BaseModel):
    """A single order requested by a strategy.

    Validated at the plugin boundary; anything a strategy returns is
    coerced into this shape or rejected.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    instrument: Instrument = Field(min_length=1)
    quantity: float = Field(ge=0.0, allow_inf_nan=False)
    direction: Direction

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def is_buy(self) -> bool:
        return self.direction is Direction.BUY

    @classmethod
    def buy(cls, instrument: Instrument, quantity: float) -> Order:
        return cls(instrument=instrument, quantity=quantity, direction=Direction.BUY)

    @classmethod
    def sell(cls, instrument: Instrument, quantity: float) -> Order:
        return cls(instrument=instrument, quantity=quantity, direction=Direction.SELL)


# ─── Strategy Input ───


class StrategyState(BaseModel):
    """The read-only view handed to a strategy for one trading day.

    Both mappings are fresh copies; mutating them never reaches the ledger.
    """

    model_config = ConfigDict(frozen=True)

    day: TradingDay
    prices: dict[Instrument, float]
    holdings: dict[Instrument, float]


# ─── Decision Log ───


class DecisionRecord(BaseModel):
    """One requested order, logged whether or not it was applied."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: TradingDay
    instrument: Instrument
    quantity: float
    is_buy: bool = Field(alias="isBuy")

    @property
    def direction(self) -> Direction:
        return Direction.BUY if self.is_buy else Direction.SELL

    @classmethod
    def from_order(cls, day: TradingDay, order: Order) -> DecisionRecord:
        return cls(
            date=day,
            instrument=order.instrument,
            quantity=order.quantity,
            is_buy=order.is_buy,
        )

    def to_order(self) -> Order:
        return Order(instrument=self.instrument, quantity=self.quantity, direction=self.direction)


# ─── Result ───


class SimulationResult(BaseModel):
    """Final report of a completed run.

    Only successful runs produce one, so ``status`` is always ``"OK"``;
    failures surface as exceptions instead.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: Literal["OK"] = "OK"
    starting_capital: float = Field(alias="startingCapital")
    ending_capital: float = Field(alias="endingCapital")
    gain_percentage: float = Field(alias="gainPercentage")
    decisions: list[DecisionRecord] = []

    # Terminal ledger state and run bookkeeping; not part of the wire shape.
    final_cash: float = Field(default=0.0, exclude=True)
    final_holdings: dict[Instrument, float] = Field(default_factory=dict, exclude=True)
    days_processed: int = Field(default=0, exclude=True)


# ─── Request ───


class SimulationRequest(BaseModel):
    """Body of ``POST /simulate``."""

    model_config = ConfigDict(populate_by_name=True)

    stocks: list[Instrument] = Field(min_length=1)
    model_id: str = Field(alias="modelId", min_length=1)
    time_step: str | None = Field(default=None, alias="timeStep")
    starting_capital: float | None = Field(default=None, alias="startingCapital", gt=0.0)

    @field_validator("stocks")
    @classmethod
    def validate_stocks(cls, v: list[Instrument]) -> list[Instrument]:
        """Strip blanks and drop duplicates while keeping request order."""
        cleaned = list(dict.fromkeys(s.strip() for s in v if s.strip()))
        if not cleaned:
            msg = "At least one stock symbol must be given"
            raise ValueError(msg)
        return cleaned
