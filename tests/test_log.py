"""Tests for logging setup."""

import logging

from rich.logging import RichHandler

from labsync.log import setup_logging


def test_setup_logging_installs_handlers(tmp_path):
    log_file = tmp_path / "labsync.log"
    logger = setup_logging("debug", str(log_file))

    assert logger.level == logging.DEBUG
    assert not logger.propagate
    assert any(isinstance(h, RichHandler) for h in logger.handlers)

    logging.getLogger("labsync.sync_service").info("sync pass finished")
    for handler in logger.handlers:
        handler.flush()
    assert "labsync.sync_service - INFO - sync pass finished" in log_file.read_text()


def test_setup_logging_is_repeatable():
    setup_logging("INFO")
    logger = setup_logging("WARNING")
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
