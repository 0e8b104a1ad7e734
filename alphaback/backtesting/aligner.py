"""Time series aligner: per-instrument closes to per-day snapshots.

Merges independent price histories into one chronological calendar.
Instruments without a usable close on a given day are simply absent
from that day's snapshot; a gap is never an error.

Usage:
    from alphaback.backtesting.aligner import align_series

    aligned = align_series({"AAPL": {"2025-03-03": "172.5", ...}})
    for day in aligned.days:
        prices = aligned.snapshot_of(day)
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from alphaback.backtesting.exceptions import InputDataError
from alphaback.backtesting.schemas import Instrument, TradingDay
from alphaback.common.logging import get_logger

logger = get_logger("ENGINE")


@dataclass(frozen=True)
class AlignedSeries:
    """Chronological calendar of per-day snapshots.

    Attributes:
        days: Ascending union of every date seen in any series.
        snapshots: Day → {instrument → close}. Days with no usable price
            map to an empty dict.
        last_known_prices: Instrument → close on the last date of that
            instrument's own series that carried a usable price.
    """

    days: tuple[TradingDay, ...]
    snapshots: dict[TradingDay, dict[Instrument, float]] = field(repr=False)
    last_known_prices: dict[Instrument, float]

    def snapshot_of(self, day: TradingDay) -> dict[Instrument, float]:
        """Return a fresh copy of the snapshot for ``day``."""
        return dict(self.snapshots.get(day, {}))

    def price_lookup(self, day: TradingDay):
        """Build the execution-price lookup used by the ledger on ``day``.

        Current-day close first, then the instrument's last-known price,
        else None (unfillable).
        """
        snapshot = self.snapshots.get(day, {})

        def lookup(instrument: Instrument) -> float | None:
            price = snapshot.get(instrument)
            if price is None:
                price = self.last_known_prices.get(instrument)
            return price

        return lookup


def align_series(per_instrument_series: Mapping[Instrument, Mapping]) -> AlignedSeries:
    """Align per-instrument price series into chronological day snapshots.

    Args:
        per_instrument_series: Instrument → {trading day → close}. Days may
            be ISO strings or ``datetime.date`` values; closes may be
            numbers or numeric strings.

    Returns:
        AlignedSeries with ordered days, snapshots, and last-known prices.

    Raises:
        InputDataError: If the feed itself is not a mapping of mappings.
    """
    if not isinstance(per_instrument_series, Mapping):
        raise InputDataError(
            "Price feed must map instruments to price series",
            context={"type": type(per_instrument_series).__name__},
        )

    snapshots: dict[TradingDay, dict[Instrument, float]] = {}
    last_known: dict[Instrument, float] = {}
    skipped = 0

    for instrument, series in per_instrument_series.items():
        if not isinstance(instrument, str) or not instrument:
            raise InputDataError(
                "Instrument identifiers must be non-empty strings",
                context={"instrument": repr(instrument)},
            )
        if not isinstance(series, Mapping):
            raise InputDataError(
                f"Price series for {instrument} is not a date → price mapping",
                context={"instrument": instrument, "type": type(series).__name__},
            )

        last_day: TradingDay | None = None
        for raw_day, raw_close in series.items():
            day = _normalize_day(raw_day, instrument)
            snapshots.setdefault(day, {})

            close = parse_close(raw_close)
            if close is None:
                skipped += 1
                continue

            snapshots[day][instrument] = close
            if last_day is None or day > last_day:
                last_day = day
                last_known[instrument] = close

    days = tuple(sorted(snapshots))

    if skipped:
        logger.debug(
            "Dropped unparseable closes",
            extra={"data": {"skipped": skipped, "days": len(days)}},
        )

    return AlignedSeries(days=days, snapshots=snapshots, last_known_prices=last_known)


def parse_close(value: object) -> float | None:
    """Parse a close price, returning None for anything unusable.

    Rejects booleans, non-numeric strings, NaN/inf, and negatives.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    if not isinstance(value, (str, int, float, Decimal)):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


def _normalize_day(raw_day: object, instrument: Instrument) -> TradingDay:
    """Render a day key as an ISO string so lexical order is chronological."""
    if isinstance(raw_day, date):
        return raw_day.isoformat()
    if isinstance(raw_day, str) and raw_day.strip():
        return raw_day.strip()
    raise InputDataError(
        f"Unsortable trading-day key in series for {instrument}",
        context={"instrument": instrument, "day": repr(raw_day)},
    )
