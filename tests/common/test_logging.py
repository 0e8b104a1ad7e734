"""Tests for structured logging setup."""

from __future__ import annotations

import logging

import pytest

from alphaback.common.logging import (
    ROOT_LOGGER_NAME,
    _redact_secrets,
    configure_log_level,
    get_logger,
)


class TestGetLogger:
    """Test logger creation and configuration."""

    def test_same_tag_returns_same_logger(self):
        assert get_logger("ENGINE") is get_logger("ENGINE")

    def test_different_tags_return_different_loggers(self):
        assert get_logger("ENGINE") is not get_logger("LEDGER")

    def test_logger_is_child_of_alphaback(self):
        assert get_logger("MARKET").logger.name == f"{ROOT_LOGGER_NAME}.market"

    def test_unknown_tag_rejected(self):
        with pytest.raises(ValueError, match="Unknown log module tag"):
            get_logger("WEATHER")

    def test_log_output_contains_tag_level_and_message(self, capfd):
        get_logger("TEST").warning("Capital running low")
        out = capfd.readouterr().out
        assert "| WARNING |" in out
        assert "| TEST |" in out
        assert "Capital running low" in out

    def test_structured_data_in_output(self, capfd):
        get_logger("ENGINE").info(
            "Run finished", extra={"data": {"instrument": "AAPL", "days": 22}}
        )
        out = capfd.readouterr().out
        assert '{"days": 22, "instrument": "AAPL"}' in out

    def test_exception_traceback_appended(self, capfd):
        logger = get_logger("STRATEGY")
        try:
            raise ZeroDivisionError("division by zero")
        except ZeroDivisionError:
            logger.exception("decide failed")
        out = capfd.readouterr().out
        assert "decide failed" in out
        assert "Traceback" in out
        assert "ZeroDivisionError" in out


class TestConfigureLogLevel:
    def test_applies_to_every_tagged_logger(self):
        existing = get_logger("API")
        try:
            configure_log_level("warning")
            assert not existing.isEnabledFor(logging.INFO)
            assert existing.isEnabledFor(logging.WARNING)
        finally:
            configure_log_level("INFO")
        assert existing.isEnabledFor(logging.INFO)

    def test_unknown_level_falls_back_to_info(self):
        configure_log_level("chatty")
        assert logging.getLogger(ROOT_LOGGER_NAME).level == logging.INFO


class TestSecretRedaction:
    """Test that secrets are redacted from log output."""

    def test_redact_api_key(self):
        redacted = _redact_secrets('{"api_key": "super-secret-123"}')
        assert "super-secret-123" not in redacted
        assert "[REDACTED]" in redacted

    def test_redact_token(self):
        assert "eyJhbG" not in _redact_secrets('{"auth_token": "eyJhbGciOiJIUzI1NiJ9"}')

    def test_non_secret_fields_preserved(self):
        redacted = _redact_secrets('{"instrument": "AAPL", "quantity": "10"}')
        assert "AAPL" in redacted
        assert "10" in redacted

    def test_secret_redaction_in_log_output(self, capfd):
        get_logger("MARKET").info(
            "Provider configured",
            extra={"data": {"apikey": "real-secret-key-value", "symbol": "AAPL"}},
        )
        out = capfd.readouterr().out
        assert "real-secret-key-value" not in out
        assert "AAPL" in out
