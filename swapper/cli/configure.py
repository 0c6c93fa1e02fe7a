"""Configuration commands for Swapper CLI."""

import click
from rich.panel import Panel

from swapper.cli.common import console
from swapper.config import CONFIG_PATH, create_template_config


@click.command()
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing config file.")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Write a template configuration file.

    The template starts in dry-run mode. Fill in the wallet addresses and,
    for live swaps, the signer import path before turning dry run off.
    """
    path = (ctx.obj or {}).get("config_path") or CONFIG_PATH

    if path.exists() and not force:
        console.print(Panel(
            f"[yellow]Configuration already exists at:[/yellow]\n"
            f"[cyan]{path}[/cyan]\n\n"
            "[dim]Use --force to overwrite it.[/dim]",
            title="[bold]Configuration Exists[/bold]",
            border_style="yellow",
        ))
        raise SystemExit(1)

    path = create_template_config(path)
    console.print(Panel(
        f"[green]✓[/green] Configuration file created at:\n"
        f"[cyan]{path}[/cyan]\n\n"
        "[dim]Secrets can also come from SKIP_API_KEY, COINGECKO_API_KEY,\n"
        "DISCORD_WEBHOOK_URL, TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID.[/dim]",
        title="[bold green]Configuration Created[/bold green]",
        border_style="green",
    ))
