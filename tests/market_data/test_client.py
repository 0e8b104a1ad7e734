"""Tests for price data providers, using httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

from alphaback.backtesting.exceptions import InputDataError
from alphaback.common.exceptions import MarketDataError
from alphaback.market_data.client import (
    HttpPriceDataProvider,
    StaticPriceDataProvider,
    fetch_many,
)
from tests.factories import make_payload

BASE_URL = "http://prices.test/query"


def _provider(handler, api_key: str | None = None) -> HttpPriceDataProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpPriceDataProvider(BASE_URL, api_key=api_key, client=client)


class TestHttpPriceDataProvider:
    """Tests for HttpPriceDataProvider.fetch_series()."""

    def test_fetches_and_parses_series(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=make_payload("AAPL", {"2025-03-03": "10.5"}))

        series = _provider(handler, api_key="k-123").fetch_series("AAPL", "TIME_SERIES_DAILY")

        assert series == {"2025-03-03": "10.5"}
        params = requests[0].url.params
        assert params["function"] == "TIME_SERIES_DAILY"
        assert params["symbol"] == "AAPL"
        assert params["apikey"] == "k-123"

    def test_api_key_omitted_when_not_configured(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json=make_payload("AAPL", {}))

        _provider(handler).fetch_series("AAPL", "TIME_SERIES_DAILY")
        assert "apikey" not in seen

    def test_http_error_raises_market_data_error(self):
        provider = _provider(lambda request: httpx.Response(503))
        with pytest.raises(MarketDataError, match="HTTP 503") as exc_info:
            provider.fetch_series("AAPL", "TIME_SERIES_DAILY")
        assert exc_info.value.context["status_code"] == 503

    def test_network_error_raises_market_data_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(MarketDataError, match="unreachable"):
            _provider(handler).fetch_series("AAPL", "TIME_SERIES_DAILY")

    def test_no_retry_on_failure(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        with pytest.raises(MarketDataError):
            _provider(handler).fetch_series("AAPL", "TIME_SERIES_DAILY")
        assert len(calls) == 1

    def test_malformed_body_raises_input_data_error(self):
        provider = _provider(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(InputDataError):
            provider.fetch_series("AAPL", "TIME_SERIES_DAILY")

    def test_fetch_many_keys_by_requested_symbol(self):
        def handler(request: httpx.Request) -> httpx.Response:
            symbol = request.url.params["symbol"]
            return httpx.Response(200, json=make_payload(symbol, {"2025-03-03": "1"}))

        result = fetch_many(_provider(handler), ["AAPL", "GOOGL"], "TIME_SERIES_DAILY")
        assert set(result) == {"AAPL", "GOOGL"}

    def test_context_manager_closes_own_client(self):
        with HttpPriceDataProvider(BASE_URL) as provider:
            client = provider._client
        assert client.is_closed

    def test_injected_client_is_left_open(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        HttpPriceDataProvider(BASE_URL, client=client).close()
        assert not client.is_closed


class TestStaticPriceDataProvider:
    def test_serves_copies(self):
        provider = StaticPriceDataProvider({"X": {"2025-03-03": 1.0}})
        series = provider.fetch_series("X", "TIME_SERIES_DAILY")
        series["2025-03-04"] = 2.0
        assert provider.fetch_series("X", "TIME_SERIES_DAILY") == {"2025-03-03": 1.0}

    def test_unknown_symbol_raises_input_data_error(self):
        with pytest.raises(InputDataError, match="No price series"):
            StaticPriceDataProvider({}).fetch_series("X", "TIME_SERIES_DAILY")
