"""Tests for the colour-aware logger wrapper and formatters."""

import logging

from shared.logging.logging_setup import ColoredFormatter, ColorLogger, CustomFormatter


def _record(level: int, msg: str, *args, **attrs) -> logging.LogRecord:
    record = logging.LogRecord("docchat", level, __file__, 1, msg, args, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


def test_color_keyword_travels_as_record_attribute(caplog):
    logger = ColorLogger(logging.getLogger("docchat-color"))
    with caplog.at_level(logging.INFO, logger="docchat-color"):
        logger.info("compiled %d chunks", 3, color="green")
        logger.warning("plain")

    assert caplog.records[0].getMessage() == "compiled 3 chunks"
    assert caplog.records[0].color == "green"
    assert not hasattr(caplog.records[1], "color")


def test_wrapper_forwards_logger_attributes():
    inner = logging.getLogger("docchat-forward")
    assert ColorLogger(inner).name == "docchat-forward"


def test_level_prefixes():
    formatter = CustomFormatter("UTC", fmt="%(message)s")
    assert formatter.format(_record(logging.ERROR, "broken %s", "pdf")) == "⛔ broken pdf"
    assert formatter.format(_record(logging.WARNING, "careful")) == "⚠️ careful"
    assert formatter.format(_record(logging.INFO, "fine")) == "fine"


def test_mismatched_arguments_do_not_raise():
    formatter = CustomFormatter("UTC", fmt="%(message)s")
    assert formatter.format(_record(logging.INFO, "%d chunks", "many")) == "%d chunks"


def test_console_colours():
    formatter = ColoredFormatter("UTC", fmt="%(message)s")
    assert formatter.format(_record(logging.INFO, "done", color="green")) == "\033[32mdone\033[0m"
    assert formatter.format(_record(logging.INFO, "done", color="unknown")) == "done"
    assert formatter.format(_record(logging.INFO, "done")) == "done"
