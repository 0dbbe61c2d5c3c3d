"""Tests for logging configuration."""

import logging

from editor_sync.app_logging import configure_logging


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger("editor_sync")
    logger.handlers.clear()

    configure_logging()
    first_count = len(logger.handlers)

    configure_logging()
    second_count = len(logger.handlers)

    assert first_count == 1
    assert second_count == 1
    assert logger.propagate is False


def test_configure_logging_adjusts_level() -> None:
    logger = logging.getLogger("editor_sync")
    logger.handlers.clear()

    configure_logging("debug")
    configure_logging("warning")

    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
    assert logging.getLogger("httpx").level == logging.WARNING
