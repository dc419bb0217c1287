import io
import logging

from ledgerlens.logging_setup import configure_logging, get_logger


def test_configure_logging_writes_to_stream(reset_logging):
    stream = io.StringIO()
    configure_logging("INFO", stream=stream)
    get_logger("ledgerlens.test").info("extract:done transactions=%d", 3)
    get_logger("ledgerlens.test").debug("hidden")
    output = stream.getvalue()
    assert "ledgerlens.test INFO extract:done transactions=3" in output
    assert "hidden" not in output


def test_configure_logging_only_once(reset_logging):
    first, second = io.StringIO(), io.StringIO()
    configure_logging("DEBUG", stream=first)
    configure_logging("ERROR", stream=second)
    assert reset_logging.level == logging.DEBUG
    get_logger("ledgerlens.test").warning("once")
    assert "once" in first.getvalue()
    assert second.getvalue() == ""


def test_level_from_environment(reset_logging, monkeypatch):
    monkeypatch.setenv("LEDGERLENS_LOG_LEVEL", "error")
    configure_logging(stream=io.StringIO())
    assert reset_logging.level == logging.ERROR


def test_unknown_level_defaults_to_warning(reset_logging):
    configure_logging("LOUD", stream=io.StringIO())
    assert reset_logging.level == logging.WARNING


def test_numeric_level(reset_logging):
    configure_logging("10", stream=io.StringIO())
    assert reset_logging.level == logging.DEBUG
