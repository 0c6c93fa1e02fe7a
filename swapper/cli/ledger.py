"""Ledger commands for Swapper CLI.

Browse recorded swaps and export them for accounting.
"""

from pathlib import Path
from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from swapper.cli.common import console, get_config
from swapper.db.ledger import SwapLedger, dump_record
from swapper.models import SwapStatus


def _get_ledger(ctx: click.Context) -> SwapLedger:
    config = get_config(ctx)
    return SwapLedger(config.storage.db_path, export_dir=config.storage.export_dir)


@click.command()
@click.option("--limit", "-n", default=20, show_default=True, help="Number of recent records.")
@click.option("--failed", is_flag=True, default=False, help="Only failed attempts.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print records as JSON.")
@click.pass_context
def history(ctx: click.Context, limit: int, failed: bool, as_json: bool) -> None:
    """Show recorded swaps, most recent last.

    \b
    Examples:
      swapper history
      swapper history --failed
      swapper history -n 5 --json
    """
    ledger = _get_ledger(ctx)
    records = ledger.all()
    if failed:
        records = [r for r in records if r.status is SwapStatus.FAILED]
    records = records[-limit:] if limit > 0 else records

    if not records:
        console.print(Panel(
            "[dim]No swaps recorded yet[/dim]",
            title="[bold]Swap History[/bold]",
            border_style="dim",
        ))
        return

    if as_json:
        for record in records:
            console.print_json(dump_record(record))
        return

    table = Table(title="Swap History", show_header=True, header_style="bold cyan")
    table.add_column("Date", style="bold")
    table.add_column("Sent", justify="right")
    table.add_column("Received", justify="right")
    table.add_column("Cost Basis", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Status")
    table.add_column("Tx / Error", max_width=40)

    for record in records:
        ok = record.status is SwapStatus.COMPLETED
        color = "green" if ok else "red"
        table.add_row(
            record.started_at.strftime("%Y-%m-%d %H:%M"),
            f"{record.source_amount_display} {record.source_asset}",
            f"{record.dest_amount_display} {record.dest_asset}",
            f"${record.cost_basis_usd:.2f}",
            f"{record.effective_rate:.6f}",
            f"[{color}]{record.status.value}[/{color}]" + (" [yellow](dry)[/yellow]" if record.dry_run else ""),
            record.primary_tx_ref if ok else (record.error_detail or ""),
        )

    console.print(table)


@click.command()
@click.option(
    "--output", "-o",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Destination CSV file.",
)
@click.option("--all", "include_failed", is_flag=True, default=False,
              help="Export every record, failed attempts included.")
@click.pass_context
def export(ctx: click.Context, output: Optional[Path], include_failed: bool) -> None:
    """Export completed swaps as accounting CSV rows."""
    ledger = _get_ledger(ctx)

    if include_failed:
        path = ledger.export_history(output)
    else:
        path = ledger.export_accounting_rows(output)

    stats = ledger.stats()
    console.print(Panel(
        f"[green]✓[/green] Exported to [cyan]{path}[/cyan]\n\n"
        f"Total Transactions: {stats['total_transactions']}\n"
        f"Successful: {stats['successful_transactions']}\n"
        f"Total Volume (USD): ${stats['total_volume_usd']:.2f}\n"
        f"Average Rate: {stats['average_rate']:.6f}",
        title="[bold green]Export Complete[/bold green]",
        border_style="green",
    ))
