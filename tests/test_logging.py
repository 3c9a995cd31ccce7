import logging

from tradelog.config.logging import DATE_FORMAT, resolve_level, setup_logging


def test_repeated_setup_keeps_one_handler_and_updates_level():
    first = setup_logging("tradelog.test.repeat", level="WARNING")
    second = setup_logging("tradelog.test.repeat", level="debug")

    assert first is second
    assert len(second.handlers) == 1
    assert second.level == logging.DEBUG
    assert second.handlers[0].level == logging.DEBUG


def test_timestamps_are_utc_with_z_suffix():
    logger = setup_logging("tradelog.test.format", level="INFO")
    formatter = logger.handlers[0].formatter
    record = logging.LogRecord("tradelog.test.format", logging.INFO, __file__, 1, "hello", None, None)
    record.created = 1700000000

    line = formatter.format(record)

    assert DATE_FORMAT.endswith("Z")
    assert line.startswith("2023-11-14T22:13:20Z - tradelog.test.format - INFO - hello")


def test_resolve_level():
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(logging.ERROR) == logging.ERROR
    assert resolve_level("nonsense") == logging.INFO
