"""Root test configuration: shared fixtures for all test modules.

IMPORTANT: Environment variables are set BEFORE any alphaback imports
so that config.py loads deterministic Settings without a .env file.
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("STARTING_CAPITAL", "100000")
os.environ.setdefault("DECISION_TIMEOUT_SECONDS", "2.0")
os.environ.setdefault("MARKET_DATA_URL", "http://prices.test/query")

# Now safe to import alphaback modules
import pytest

from alphaback.common.config import Settings, get_settings

# ─── Clear cached settings so test env vars are used ───
get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Settings as loaded from the test environment."""
    return get_settings()
