"""
Tests for logging setup.
"""

import logging

import pytest

from ops.logging import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def test_creates_log_file(tmp_path, restore_root_logger):
    log_path = tmp_path / "logs" / "holodetect.log"

    setup_logging(str(log_path), "info", console=False)
    logging.info("pipeline started")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger().level == logging.INFO
    assert "pipeline started" in log_path.read_text()
    assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_console_only(restore_root_logger):
    setup_logging("", "DEBUG", console=False)

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.StreamHandler)


def test_invalid_level():
    with pytest.raises(ValueError, match="log_level"):
        setup_logging("", "verbose")
