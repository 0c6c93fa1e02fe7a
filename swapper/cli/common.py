"""Shared helpers for Swapper CLI commands."""

import click
from rich.console import Console
from rich.panel import Panel

from swapper.config import SwapperConfig, load_config
from swapper.errors import ConfigError
from swapper.log import configure_logging

console = Console()


def error_panel(message: str, title: str = "Error") -> None:
    console.print(Panel(
        f"[red]✗[/red] {message}",
        title=f"[bold red]{title}[/bold red]",
        border_style="red",
    ))


def get_config(ctx: click.Context) -> SwapperConfig:
    """Load configuration and set up logging, exiting with a panel on failure."""
    obj = ctx.obj or {}
    try:
        config = load_config(obj.get("config_path"))
    except ConfigError as e:
        error_panel(
            f"{e}\n\n[dim]Run [cyan]swapper init[/cyan] to create a template config.[/dim]",
            title="Configuration Error",
        )
        raise SystemExit(1)

    level = obj.get("log_level") or config.logging.level
    configure_logging(level, config.logging.to_file, config.logging.log_dir)
    return config
