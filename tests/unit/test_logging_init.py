from __future__ import annotations

import logging
import sys

from settlement_recon.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    setup_logging,
)


def test_setup_logging_installs_one_labeled_handler():
    logger = setup_logging()
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent_and_can_enable_debug():
    first = setup_logging()
    second = setup_logging(debug=True)
    assert first is second
    assert len(second.handlers) == 1
    assert second.level == logging.DEBUG
    assert second.handlers[0].level == logging.DEBUG
    # a later non-debug call does not raise the level again
    assert setup_logging().level == logging.DEBUG


def test_labeled_prefixes(capsys):
    logger = setup_logging()
    logger.info("info message")
    logger.warning("warn message")
    logger.error("error message")
    log_summary("files=1")
    logger.debug("hidden")

    lines = capsys.readouterr().out.splitlines()
    assert lines == ["INFO info message", "WARN warn message", "ERROR error message", "SUMMARY files=1"]


def test_module_loggers_propagate_into_the_app_handler(capsys):
    setup_logging()
    logging.getLogger(f"{LOGGER_NAME}.services.orchestrator").warning("child %d", 3)
    assert capsys.readouterr().out == "WARN child 3\n"


def test_exception_text_only_at_debug():
    formatter = LabeledFormatter()
    try:
        raise ValueError("boom")
    except ValueError:
        exc_info = sys.exc_info()
    debug = logging.LogRecord("x", logging.DEBUG, __file__, 1, "trace", None, exc_info)
    error = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, exc_info)
    assert formatter.format(debug).startswith("DEBUG trace\nTraceback")
    assert formatter.format(error) == "ERROR failed"


def test_get_logger_sets_up_lazily():
    assert get_logger().name == LOGGER_NAME
    assert logging.getLevelName(SUMMARY_LEVEL) == "SUMMARY"
