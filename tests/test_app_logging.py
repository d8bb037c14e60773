"""Tests for logging configuration."""

import logging

from macro_tracker.app_logging import configure_logging


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger("macro_tracker")
    logger.handlers.clear()

    configure_logging()
    first_count = len(logger.handlers)

    configure_logging()
    second_count = len(logger.handlers)

    assert first_count == 1
    assert second_count == 1


def test_configure_logging_applies_level_on_repeat_calls() -> None:
    logger = logging.getLogger("macro_tracker")
    logger.handlers.clear()

    configure_logging(logging.DEBUG)
    assert logger.level == logging.DEBUG

    configure_logging(logging.WARNING)
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1

    configure_logging()
    assert logger.level == logging.INFO
