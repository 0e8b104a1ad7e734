"""Market data module: historical daily closes from the price provider.

Parses the provider's time-series payload into plain date → close series
that the backtesting aligner consumes.
"""

from __future__ import annotations
