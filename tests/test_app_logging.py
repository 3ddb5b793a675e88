"""Tests for logging setup and secret sanitization."""

import logging

import logfire
import pytest
from rich.logging import RichHandler

from decision_analyzer.app_logging import ROOT_LOGGER_NAME, get_logger, sanitize_token, setup_logging


class TestSanitizeToken:
    """Tests for sanitize_token."""

    @pytest.mark.parametrize("token,expected", [
        (None, "<empty>"),
        ("", "<empty>"),
        ("short", "***"),
        ("12345678", "***"),
        ("gsk_abcdefghijklmnop", "gsk_...mnop"),
    ])
    def test_sanitize(self, token, expected):
        assert sanitize_token(token) == expected

    def test_custom_show_chars(self):
        assert sanitize_token("abcdefghijkl", show_chars=2) == "ab...kl"


class TestLoggers:
    """Tests for get_logger and setup_logging."""

    def test_component_loggers_are_children_of_root(self):
        logger = get_logger("orchestrator")
        assert logger.name == f"{ROOT_LOGGER_NAME}.orchestrator"
        assert get_logger("orchestrator") is logger

    def test_setup_installs_rich_handler(self):
        setup_logging(level="debug")
        root = logging.getLogger(ROOT_LOGGER_NAME)

        assert root.level == logging.DEBUG
        assert root.propagate is False
        assert any(isinstance(h, RichHandler) for h in root.handlers)

    def test_repeated_setup_replaces_handlers(self):
        setup_logging(level="INFO")
        setup_logging(level="WARNING")
        root = logging.getLogger(ROOT_LOGGER_NAME)

        assert len(root.handlers) == 1
        assert root.handlers[0].level == logging.WARNING

    def test_logfire_handler_added_on_request(self):
        try:
            setup_logging(include_logfire=True)
            root = logging.getLogger(ROOT_LOGGER_NAME)
            assert any(isinstance(h, logfire.LogfireLoggingHandler) for h in root.handlers)
        finally:
            setup_logging()

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            setup_logging(level="chatty")
