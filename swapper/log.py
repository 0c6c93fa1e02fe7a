"""Logging setup for Swapper."""

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
RETENTION_DAYS = 14

LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def configure_logging(
    level: str = "info", to_file: bool = False, log_dir: Optional[Path] = None
) -> logging.Logger:
    """Configure the ``swapper`` logger tree.

    Console output goes through rich. With ``to_file`` set, everything is
    also written to ``swapper.log`` and errors to ``error.log``, both
    rotated at midnight and kept for two weeks.

    Returns:
        The configured root ``swapper`` logger.
    """
    root = logging.getLogger("swapper")
    root.setLevel(LEVELS.get(level.lower(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.addHandler(RichHandler(rich_tracebacks=True, show_path=False))

    if to_file and log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        formatter = logging.Formatter(FILE_FORMAT)

        main_file = TimedRotatingFileHandler(
            log_dir / "swapper.log", when="midnight", backupCount=RETENTION_DAYS
        )
        main_file.setFormatter(formatter)
        root.addHandler(main_file)

        error_file = TimedRotatingFileHandler(
            log_dir / "error.log", when="midnight", backupCount=RETENTION_DAYS
        )
        error_file.setLevel(logging.ERROR)
        error_file.setFormatter(formatter)
        root.addHandler(error_file)

    root.propagate = False
    return root
