"""Backtesting module: chronological replay of a strategy plugin.

Aligns per-instrument daily closes, feeds one snapshot per trading day to
an externally supplied strategy, and books the returned orders against a
cash-constrained, long-only ledger.
"""

from __future__ import annotations
