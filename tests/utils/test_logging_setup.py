import logging
import logging.handlers
import time

import pytest

from utils.logging_setup import build_formatter, configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_configure_logging_adds_rotating_file_handler(tmp_path, restore_root_logger):
    configure_logging(level="DEBUG", log_dir=tmp_path, enable_console=False)

    rotating = [
        h for h in restore_root_logger.handlers
        if isinstance(h, logging.handlers.RotatingFileHandler)
    ]
    assert len(rotating) == 1
    assert rotating[0].maxBytes == 10 * 1024 * 1024
    assert rotating[0].backupCount == 5
    assert (tmp_path / "forecast.log").exists()
    assert restore_root_logger.level == logging.DEBUG


def test_reconfiguring_does_not_duplicate_file_handlers(tmp_path, restore_root_logger):
    configure_logging(log_dir=tmp_path, enable_console=False)
    configure_logging(log_dir=tmp_path, enable_console=False)

    rotating = [
        h for h in restore_root_logger.handlers
        if isinstance(h, logging.handlers.RotatingFileHandler)
    ]
    assert len(rotating) == 1


def test_formatter_uses_utc():
    formatter = build_formatter()
    assert formatter.converter is time.gmtime

    record = logging.LogRecord("ssa_ts.model", logging.INFO, __file__, 1, "fit done", None, None)
    assert "[ssa_ts.model] INFO - fit done" in formatter.format(record)
