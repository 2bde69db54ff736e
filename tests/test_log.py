"""Tests for logging setup."""

from __future__ import annotations

import logging

from worldsync.log import LOG_FILE, setup_logging


def test_writes_to_log_file(tmp_path):
    log_file = setup_logging(tmp_path, level="DEBUG", console=False)
    logging.getLogger("worldsync.test").debug("hello world")
    for handler in logging.getLogger("worldsync").handlers:
        handler.flush()

    assert log_file == tmp_path / LOG_FILE
    assert "[worldsync.test] DEBUG: hello world" in log_file.read_text()


def test_clear_truncates(tmp_path):
    (tmp_path / LOG_FILE).write_text("old run\n")
    setup_logging(tmp_path, clear=True, console=False)
    assert "old run" not in (tmp_path / LOG_FILE).read_text()


def test_append_by_default(tmp_path):
    (tmp_path / LOG_FILE).write_text("old run\n")
    setup_logging(tmp_path, console=False)
    assert "old run" in (tmp_path / LOG_FILE).read_text()


def test_replaces_handlers(tmp_path):
    setup_logging(tmp_path, console=True)
    setup_logging(tmp_path, console=True)
    assert len(logging.getLogger("worldsync").handlers) == 2
