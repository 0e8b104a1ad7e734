"""Custom exceptions for alphaback.

All modules should raise these exceptions instead of generic ones.
The FastAPI exception handlers in main.py catch AlphabackBaseException
subclasses and return structured JSON error responses.
"""

from __future__ import annotations


class AlphabackBaseException(Exception):
    """Base exception for all alphaback errors.

    Args:
        message: Human-readable error description.
        context: Optional dict of structured data for logging/debugging.
    """

    def __init__(self, message: str, context: dict | None = None) -> None:
        super().__init__(message)
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            # Filter out anything that looks like a secret
            safe_context = {
                k: "[REDACTED]" if _is_secret_key(k) else v for k, v in self.context.items()
            }
            return f"{super().__str__()} | context={safe_context}"
        return super().__str__()


class MarketDataError(AlphabackBaseException):
    """Failed to fetch price data from the market data provider."""


def _is_secret_key(key: str) -> bool:
    """Check if a dict key name suggests it contains secret data."""
    secret_words = {"key", "secret", "password", "token", "private", "credential"}
    key_lower = key.lower()
    return any(word in key_lower for word in secret_words)
