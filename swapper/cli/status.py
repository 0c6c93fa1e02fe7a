"""Status command for Swapper CLI."""

import asyncio

import click
from rich.panel import Panel
from rich.table import Table

from swapper.cli.common import console, error_panel, get_config
from swapper.errors import SwapperError
from swapper.runtime import build_runtime


async def _collect(runtime) -> dict:
    try:
        return await runtime.orchestrator.status()
    finally:
        await runtime.close()


@click.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show balances, ledger statistics and configuration."""
    config = get_config(ctx)

    try:
        runtime = build_runtime(config)
        info = asyncio.run(_collect(runtime))
    except SwapperError as e:
        error_panel(str(e), title="Status Error")
        raise SystemExit(1)

    balances = Table(show_header=True, header_style="bold cyan", title="Balances")
    balances.add_column("Asset", style="bold")
    balances.add_column("Address")
    balances.add_column("Balance", justify="right")
    addresses = list(info["addresses"].values())
    for (asset, amount), address in zip(info["balances"].items(), addresses):
        balances.add_row(asset, address or "[dim]-[/dim]", amount if amount is not None else "[dim]n/a[/dim]")
    console.print(balances)

    stats = info["statistics"]
    console.print(Panel(
        f"Total Transactions: {stats['total_transactions']}\n"
        f"Successful: [green]{stats['successful_transactions']}[/green]\n"
        f"Failed: [red]{stats['failed_transactions']}[/red]\n"
        f"Total Volume (USD): ${stats['total_volume_usd']:.2f}\n"
        f"Average Rate: {stats['average_rate']:.6f}",
        title="[bold]Statistics[/bold]",
        border_style="cyan",
    ))

    settings = Table(show_header=False, title="Configuration")
    settings.add_column("Setting", style="dim")
    settings.add_column("Value")
    for key, value in info["config"].items():
        settings.add_row(key.replace("_", " ").title(), str(value))
    settings.add_row("Schedule", config.swap.schedule)
    console.print(settings)
