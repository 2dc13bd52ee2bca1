"""Unit tests for core/utils/logging.py"""

import json
import logging
import sys

import pytest

from gardenexport.core.utils.logging import ROOT_LOGGER, JsonLogFormatter, configure_logging


@pytest.fixture(autouse=True)
def restore_logger():
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level = list(logger.handlers), logger.level
    yield
    for h in list(logger.handlers):
        if h not in handlers:
            logger.removeHandler(h)
            h.close()
    logger.setLevel(level)


def test_json_formatter_includes_extras():
    record = logging.LogRecord("gardenexport.test", logging.ERROR, __file__, 1, "failed %s", ("n1",), None)
    record.content_id = "n1"
    payload = json.loads(JsonLogFormatter().format(record))
    assert payload["level"] == "ERROR"
    assert payload["logger"] == "gardenexport.test"
    assert payload["message"] == "failed n1"
    assert payload["extra"] == {"content_id": "n1"}


def test_json_formatter_includes_exception():
    try:
        raise ValueError("bad tree")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "oops", None, sys.exc_info())
    payload = json.loads(JsonLogFormatter().format(record))
    assert "ValueError: bad tree" in payload["exception"]


def test_configure_logging_is_idempotent(tmp_path):
    """Repeated calls replace the package handlers instead of stacking them."""
    log_file = tmp_path / "logs" / "export.jsonl"
    configure_logging("DEBUG", str(log_file))
    logger = configure_logging("DEBUG", str(log_file))
    ours = [h for h in logger.handlers if getattr(h, "_gardenexport", False)]
    assert len(ours) == 2
    assert logger.level == logging.DEBUG

    logging.getLogger("gardenexport.core.export").info("exported", extra={"content_id": "n1"})
    for h in ours:
        h.flush()
    line = json.loads(log_file.read_text().splitlines()[-1])
    assert line["message"] == "exported"
    assert line["extra"]["content_id"] == "n1"


def test_configure_logging_unknown_level_defaults_to_info():
    assert configure_logging("chatty").level == logging.INFO
