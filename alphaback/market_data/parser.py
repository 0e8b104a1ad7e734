"""Parser for the provider's daily time-series payload.

The provider returns Alpha Vantage shaped documents, optionally wrapped
under a ``"data"`` key:

    {
        "Meta Data": {"2. Symbol": "AAPL", ...},
        "Time Series (Daily)": {
            "2025-03-03": {"1. open": "...", "4. close": "172.50", ...},
            ...
        }
    }

Structural problems raise InputDataError. A day without a readable close
is kept with a None close; the aligner treats it as a gap.
"""

from __future__ import annotations

import json

from alphaback.backtesting.exceptions import InputDataError
from alphaback.backtesting.schemas import Instrument, PriceSeries

DEFAULT_SERIES_KEY = "Time Series (Daily)"
CLOSE_FIELDS = ("4. close", "close")
UNKNOWN_SYMBOL = "UNKNOWN"


def parse_time_series_payload(
    payload: object,
    requested_symbol: Instrument | None = None,
) -> tuple[Instrument, PriceSeries]:
    """Extract the symbol and its date → close series from a payload.

    Args:
        payload: Decoded JSON object, or the raw JSON text.
        requested_symbol: Symbol asked for; used when the payload carries
            no ``Meta Data`` symbol.

    Returns:
        (symbol, {date: close or None}).

    Raises:
        InputDataError: If the payload is not a JSON object, reports a
            provider error, or contains no time-series object.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise InputDataError(
                "Price payload is not valid JSON",
                context={"symbol": requested_symbol},
            ) from exc

    if not isinstance(payload, dict):
        raise InputDataError(
            "Price payload must be a JSON object",
            context={"symbol": requested_symbol, "type": type(payload).__name__},
        )

    data = payload.get("data", payload)
    if not isinstance(data, dict):
        raise InputDataError(
            "Price payload 'data' field must be a JSON object",
            context={"symbol": requested_symbol},
        )

    for error_key in ("Error Message", "Information", "Note"):
        if error_key in data and not _find_series_key(data):
            raise InputDataError(
                f"Price provider reported an error: {data[error_key]}",
                context={"symbol": requested_symbol},
            )

    series_key = _find_series_key(data) or DEFAULT_SERIES_KEY
    raw_series = data.get(series_key)
    if not isinstance(raw_series, dict):
        raise InputDataError(
            "Price payload has no time-series object",
            context={"symbol": requested_symbol, "keys": sorted(data)},
        )

    symbol = _meta_symbol(data) or requested_symbol or UNKNOWN_SYMBOL
    series: PriceSeries = {day: _extract_close(node) for day, node in raw_series.items()}
    return symbol, series


def _find_series_key(data: dict) -> str | None:
    """Return the first key naming a time series, case-insensitively."""
    for key in data:
        if isinstance(key, str) and "time series" in key.lower():
            return key
    return None


def _meta_symbol(data: dict) -> str | None:
    meta = data.get("Meta Data")
    if isinstance(meta, dict):
        symbol = meta.get("2. Symbol")
        if isinstance(symbol, str) and symbol.strip():
            return symbol.strip()
    return None


def _extract_close(node: object) -> object:
    """Pull the raw close out of one day's node; None if absent."""
    if not isinstance(node, dict):
        return None
    for field in CLOSE_FIELDS:
        if field in node:
            return node[field]
    return None
