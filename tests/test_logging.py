"""Tests for logging setup.

**Feature: swapper**
"""

import logging
import tempfile
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from rich.logging import RichHandler

from swapper.log import configure_logging


class TestConfigureLogging:
    """Console and rotating file handlers."""

    def test_console_only(self):
        root = configure_logging("debug")

        assert root.level == logging.DEBUG
        assert [type(h) for h in root.handlers] == [RichHandler]

    def test_files_and_error_log(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = configure_logging("warn", to_file=True, log_dir=Path(tmpdir) / "logs")
            try:
                files = [h for h in root.handlers if isinstance(h, TimedRotatingFileHandler)]
                assert root.level == logging.WARNING
                assert sorted(Path(h.baseFilename).name for h in files) == ["error.log", "swapper.log"]
                error_handler = next(h for h in files if h.baseFilename.endswith("error.log"))
                assert error_handler.level == logging.ERROR

                logging.getLogger("swapper.swap").error("[SWAP] boom")
                for handler in files:
                    handler.flush()
                assert "[SWAP] boom" in (Path(tmpdir) / "logs" / "error.log").read_text()
            finally:
                configure_logging("info")

    def test_reconfigure_replaces_handlers(self):
        configure_logging("info")
        root = configure_logging("info")

        assert len(root.handlers) == 1
