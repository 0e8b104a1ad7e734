"""Price data providers.

``HttpPriceDataProvider`` fetches one symbol's history per request from
the configured provider endpoint. There are no retries: a failed fetch
aborts the simulation request that needed it.

The httpx client is an explicit constructor dependency, so concurrent
simulations can share a pooled client or use independent ones.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol

import httpx

from alphaback.backtesting.exceptions import InputDataError
from alphaback.backtesting.schemas import Instrument, PriceSeries
from alphaback.common.exceptions import MarketDataError
from alphaback.common.logging import get_logger
from alphaback.market_data.parser import parse_time_series_payload

logger = get_logger("MARKET")


class PriceDataProvider(Protocol):
    """Anything that can supply a date → close series for a symbol."""

    def fetch_series(self, symbol: Instrument, time_step: str) -> PriceSeries: ...


def fetch_many(
    provider: PriceDataProvider,
    symbols: Iterable[Instrument],
    time_step: str,
) -> dict[Instrument, PriceSeries]:
    """Fetch every requested symbol, keyed by the symbol as requested."""
    return {symbol: provider.fetch_series(symbol, time_step) for symbol in symbols}


class HttpPriceDataProvider:
    """Fetches daily series over HTTP.

    Args:
        base_url: Provider endpoint; queried with ``function``, ``symbol``
            and (if set) ``apikey`` parameters.
        api_key: Optional provider API key.
        timeout: Request timeout in seconds (used only when this provider
            creates its own client).
        client: Optional pre-configured ``httpx.Client``; the caller keeps
            ownership of a client it passes in.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def fetch_series(self, symbol: Instrument, time_step: str) -> PriceSeries:
        """Fetch and parse one symbol's price history.

        Raises:
            MarketDataError: On network failure or a non-2xx response.
            InputDataError: If the response body is not a usable series.
        """
        params = {"function": time_step, "symbol": symbol}
        if self._api_key:
            params["apikey"] = self._api_key

        try:
            response = self._client.get(self._base_url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            logger.error(
                "Price provider HTTP error",
                extra={"data": {"symbol": symbol, "status_code": status_code}},
            )
            raise MarketDataError(
                f"Price provider returned HTTP {status_code} for {symbol}",
                context={"symbol": symbol, "status_code": status_code},
            ) from exc
        except httpx.RequestError as exc:
            logger.error(
                "Price provider network error",
                extra={"data": {"symbol": symbol, "error": str(exc)}},
            )
            raise MarketDataError(
                f"Price provider unreachable for {symbol}: {exc}",
                context={"symbol": symbol},
            ) from exc

        reported_symbol, series = parse_time_series_payload(response.text, symbol)
        if reported_symbol != symbol:
            logger.warning(
                "Provider symbol differs from requested symbol",
                extra={"data": {"requested": symbol, "reported": reported_symbol}},
            )

        logger.info(
            "Price series fetched",
            extra={"data": {"symbol": symbol, "time_step": time_step, "days": len(series)}},
        )
        return series

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpPriceDataProvider:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class StaticPriceDataProvider:
    """Serves pre-loaded series from memory (tests and offline runs)."""

    def __init__(self, series_by_symbol: Mapping[Instrument, PriceSeries]) -> None:
        self._series = dict(series_by_symbol)

    def fetch_series(self, symbol: Instrument, time_step: str) -> PriceSeries:
        try:
            return dict(self._series[symbol])
        except KeyError:
            raise InputDataError(
                f"No price series available for {symbol}",
                context={"symbol": symbol, "time_step": time_step},
            ) from None
