"""Strategy plugins: resolution of strategy identifiers to instances.

Strategies live as plain Python files in the plugin directory, or are
fetched into it from the plugin registry. The backtesting engine verifies
whatever the loader returns against the strategy contract.
"""

from __future__ import annotations
