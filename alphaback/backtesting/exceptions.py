"""Backtesting-specific exceptions."""

from __future__ import annotations

from alphaback.common.exceptions import AlphabackBaseException


class BacktestError(AlphabackBaseException):
    """General backtesting error (bad config, engine misuse, etc.)."""


class InputDataError(BacktestError):
    """The price feed is malformed at the structural level.

    A single missing or unparseable close is not an error; the aligner
    drops that instrument from that day's snapshot instead.
    """


class PluginResolutionError(BacktestError):
    """A strategy identifier did not resolve to a conforming plugin."""


class PluginExecutionError(BacktestError):
    """The strategy raised, timed out, or returned malformed orders."""
