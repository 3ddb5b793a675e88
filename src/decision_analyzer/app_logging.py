"""
Logging utilities for the decision analyzer.

Everything logs under the ``decision_analyzer`` logger. The CLI attaches a
Rich console handler (and, on request, a Logfire handler) at startup; library
use stays silent until the embedding application configures logging.
"""

import logging
from typing import Optional

import logfire
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme


ROOT_LOGGER_NAME = 'decision_analyzer'

# Log output goes to stderr
_console = Console(
    theme=Theme({
        "logging.level.debug": "dim cyan",
        "logging.level.warning": "yellow",
        "logging.level.error": "bold red",
    }),
    stderr=True,
)


def setup_logging(level: str = 'WARNING', include_logfire: bool = False) -> None:
    """
    Configure the package logger for command-line use.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ...), case-insensitive
        include_logfire: Also forward records to Logfire

    Raises:
        ValueError: If the level name is unknown
    """
    level_value = logging.getLevelName(level.upper())
    if not isinstance(level_value, int):
        raise ValueError(f"Unknown log level: {level}")

    handlers: list[logging.Handler] = [
        RichHandler(console=_console, show_path=False, rich_tracebacks=True, markup=False)
    ]
    if include_logfire:
        handlers.append(logfire.LogfireLoggingHandler(fallback=logging.NullHandler()))

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level_value)
    logger.handlers.clear()
    for handler in handlers:
        handler.setLevel(level_value)
        logger.addHandler(handler)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Logger for a component, e.g. ``get_logger('orchestrator')``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME)


def sanitize_token(token: Optional[str], show_chars: int = 4) -> str:
    """
    Mask an API key for logging, keeping only its first and last characters.

    Returns:
        "<empty>" for a missing key, "***" for a short one, else "abcd...wxyz"
    """
    if not token:
        return "<empty>"
    if len(token) <= show_chars * 2:
        return "***"
    return f"{token[:show_chars]}...{token[-show_chars:]}"


logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())
