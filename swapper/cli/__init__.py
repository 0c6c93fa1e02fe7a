"""CLI commands for Swapper.

This package provides the command-line interface for Swapper: config
setup, the scheduled runner, one-off cycles, status and ledger exports.
"""

from swapper.cli.main import cli, main

__all__ = ["cli", "main"]
