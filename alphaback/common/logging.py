"""Structured logging setup for alphaback.

Each line carries a UTC timestamp, level, request ID (inside HTTP
requests), module tag, message, and an optional JSON payload. Values of
secret-looking keys are redacted before anything is written.

All tagged loggers are children of the ``alphaback`` logger, which owns
the single stdout handler and the level set by ``configure_log_level``.

Usage:
    from alphaback.common.logging import get_logger
    logger = get_logger("ENGINE")
    logger.info("Run finished", extra={"data": {"gain_pct": 4.2}})
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime

ROOT_LOGGER_NAME = "alphaback"

MODULE_TAGS = frozenset(
    {
        "ENGINE",
        "LEDGER",
        "STRATEGY",
        "MARKET",
        "API",
        "SYSTEM",
        "TEST",
    }
)

_SECRET_KEY_PATTERN = re.compile(
    r'"([^"]*(?:key|secret|password|token|private|credential)[^"]*)":\s*"([^"]*)"',
    re.IGNORECASE,
)


def _redact_secrets(text: str) -> str:
    """Replace values of secret-looking keys with [REDACTED] in a JSON string."""
    return _SECRET_KEY_PATTERN.sub(r'"\1": "[REDACTED]"', text)


def _current_request_id() -> str:
    # Imported lazily: middleware imports this module.
    from alphaback.common.middleware import request_id_var

    return request_id_var.get("")


class StructuredFormatter(logging.Formatter):
    """Renders records as pipe-separated lines.

    Output format:
        2025-03-03T14:02:11.512Z | INFO | rid=1f2e3d4c | ENGINE | Simulation finished | {...}
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        parts = [
            created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{created.microsecond // 1000:03d}Z",
            record.levelname,
        ]

        rid = _current_request_id()
        if rid:
            parts.append(f"rid={rid[:8]}")

        parts.append(getattr(record, "module_tag", "SYSTEM"))
        parts.append(_redact_secrets(record.getMessage()))

        data = getattr(record, "data", None)
        if data is not None:
            parts.append(self._render_data(data))

        line = " | ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line

    @staticmethod
    def _render_data(data: object) -> str:
        try:
            return _redact_secrets(json.dumps(data, default=str, sort_keys=True))
        except (TypeError, ValueError):
            return _redact_secrets(str(data))


class _StdoutHandler(logging.StreamHandler):
    """StreamHandler bound to whatever ``sys.stdout`` is at emit time."""

    @property
    def stream(self):
        return sys.stdout

    @stream.setter
    def stream(self, value) -> None:
        pass


class ModuleTagLogger(logging.LoggerAdapter):
    """Logger adapter that stamps every record with its module tag.

    Usage:
        logger = get_logger("LEDGER")
        logger.debug("Buy rejected", extra={"data": {"instrument": "AAPL"}})
    """

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = dict(kwargs.get("extra") or {})
        extra["module_tag"] = self.extra["module_tag"]
        kwargs["extra"] = extra
        return msg, kwargs


_loggers: dict[str, ModuleTagLogger] = {}


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = _StdoutHandler()
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)
        root.setLevel(logging.DEBUG)
        root.propagate = False
    return root


def get_logger(module_tag: str) -> ModuleTagLogger:
    """Get the structured logger for a module tag.

    Args:
        module_tag: One of MODULE_TAGS (ENGINE, LEDGER, STRATEGY, ...).

    Returns:
        A cached adapter over ``alphaback.<tag>``.

    Raises:
        ValueError: If ``module_tag`` is not a known tag.
    """
    adapter = _loggers.get(module_tag)
    if adapter is not None:
        return adapter

    if module_tag not in MODULE_TAGS:
        msg = f"Unknown log module tag {module_tag!r}"
        raise ValueError(msg)

    _root_logger()
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{module_tag.lower()}")
    adapter = ModuleTagLogger(logger, {"module_tag": module_tag})
    _loggers[module_tag] = adapter
    return adapter


def configure_log_level(level: str) -> None:
    """Set the level for every alphaback logger from a name such as "INFO".

    Unknown names fall back to INFO. Called once at app startup with
    ``Settings.log_level``.
    """
    numeric = logging.getLevelName(level.strip().upper())
    _root_logger().setLevel(numeric if isinstance(numeric, int) else logging.INFO)
