"""Logging setup: a log file in the sync home plus rich console output."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOG_FILE = "worldsync.log"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def setup_logging(home: Path, level: str = "INFO", clear: bool = False, console: bool = True) -> Path:
    """Configure the ``worldsync`` logger.

    Args:
        home: Sync home directory holding the log file.
        level: Log level name.
        clear: Truncate the log file instead of appending.
        console: Also log to stderr through rich.

    Returns:
        Path to the log file.
    """
    log_file = home / LOG_FILE
    logger = logging.getLogger("worldsync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_file, mode="w" if clear else "a", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)

    if console:
        logger.addHandler(
            RichHandler(console=Console(stderr=True), show_path=False, markup=False)
        )

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return log_file
