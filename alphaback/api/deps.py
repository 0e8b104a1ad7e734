"""FastAPI dependencies for the simulation endpoint.

Builds the price provider and strategy loader from settings for each
request. Tests swap them out via ``app.dependency_overrides``.
"""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import Depends

from alphaback.common.config import Settings, get_settings
from alphaback.common.exceptions import MarketDataError
from alphaback.market_data.client import HttpPriceDataProvider, PriceDataProvider
from alphaback.strategies.loader import LocalPluginLoader, PluginLoader, RegistryPluginLoader


def get_price_provider(
    settings: Settings = Depends(get_settings),
) -> Iterator[PriceDataProvider]:
    """Provide an HTTP price provider for the request lifecycle.

    Raises:
        MarketDataError: If no provider URL is configured.
    """
    if not settings.market_data_url:
        raise MarketDataError("No market data provider configured (MARKET_DATA_URL)")

    provider = HttpPriceDataProvider(
        settings.market_data_url,
        api_key=settings.market_data_api_key,
        timeout=settings.market_data_timeout_seconds,
    )
    try:
        yield provider
    finally:
        provider.close()


def get_plugin_loader(
    settings: Settings = Depends(get_settings),
) -> Iterator[PluginLoader]:
    """Provide a registry-backed loader if configured, else a local one."""
    if not settings.plugin_registry_url:
        yield LocalPluginLoader(settings.plugin_dir)
        return

    loader = RegistryPluginLoader(settings.plugin_registry_url, settings.plugin_dir)
    try:
        yield loader
    finally:
        loader.close()
