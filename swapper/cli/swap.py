"""Swap commands for Swapper CLI.

Runs one cycle on demand or the cron-driven scheduler.
"""

import asyncio

import click
from rich.panel import Panel

from swapper.cli.common import console, error_panel, get_config
from swapper.errors import SwapperError
from swapper.orchestrator import CycleOutcome, CycleResult
from swapper.runtime import build_runtime
from swapper.scheduler import SwapScheduler

OUTCOME_STYLES = {
    CycleOutcome.COMPLETED: ("green", "Swap Completed"),
    CycleOutcome.FAILED: ("red", "Swap Failed"),
    CycleOutcome.LEDGER_ERROR: ("red", "Ledger Error"),
    CycleOutcome.ABORTED: ("red", "Cycle Aborted"),
    CycleOutcome.BUSY: ("yellow", "Busy"),
}


def render_result(result: CycleResult) -> None:
    """Print a cycle result panel."""
    color, title = OUTCOME_STYLES.get(result.outcome, ("yellow", "Swap Skipped"))
    lines = [result.message or result.outcome.value]

    record = result.record
    if record is not None:
        lines.append("")
        lines.append(f"[dim]ID:[/dim] {record.id}")
        lines.append(
            f"[dim]Sent:[/dim] {record.source_amount_display} {record.source_asset}"
            f"  [dim]Received:[/dim] {record.dest_amount_display} {record.dest_asset}"
        )
        lines.append(f"[dim]Cost basis:[/dim] ${record.cost_basis_usd:.2f}")
        if record.primary_tx_ref:
            lines.append(f"[dim]Tx:[/dim] {record.primary_tx_ref}")
        for leg in record.chain_legs:
            lines.append(f"  [dim]{leg.hop}[/dim] {leg.tx_ref} ({leg.state.value})")
        if record.dry_run:
            lines.append("[yellow]Dry run: nothing was broadcast[/yellow]")

    console.print(Panel(
        "\n".join(lines),
        title=f"[bold {color}]{title}[/bold {color}]",
        border_style=color,
    ))


async def _run_once(runtime) -> CycleResult:
    try:
        await runtime.orchestrator.initialize()
        result = await runtime.orchestrator.run_cycle()
        runtime.orchestrator.export_transactions()
        return result
    finally:
        await runtime.close()


async def _run_scheduled(runtime, schedule: str, run_initial: bool) -> None:
    scheduler = SwapScheduler(runtime.orchestrator, schedule, notifier=runtime.notifier)
    try:
        await scheduler.run(run_initial=run_initial)
    finally:
        await runtime.close()


@click.command()
@click.option("--dry-run", is_flag=True, default=False, help="Simulate execution.")
@click.pass_context
def once(ctx: click.Context, dry_run: bool) -> None:
    """Run a single swap cycle and export the ledger.

    \b
    Examples:
      swapper once
      swapper once --dry-run
    """
    config = get_config(ctx)

    try:
        runtime = build_runtime(config, dry_run=True if dry_run else None)
        result = asyncio.run(_run_once(runtime))
    except SwapperError as e:
        error_panel(str(e), title="Swap Error")
        raise SystemExit(1)

    render_result(result)
    if result.outcome in (CycleOutcome.ABORTED, CycleOutcome.FAILED, CycleOutcome.LEDGER_ERROR):
        raise SystemExit(1)


@click.command()
@click.option("--dry-run", is_flag=True, default=False, help="Simulate execution.")
@click.option("--schedule", default=None, help="Cron expression overriding the config.")
@click.option("--skip-initial", is_flag=True, default=False, help="Wait for the first scheduled time.")
@click.pass_context
def run(ctx: click.Context, dry_run: bool, schedule: str | None, skip_initial: bool) -> None:
    """Run swap cycles on a cron schedule until interrupted.

    A final accounting export is written on SIGINT or SIGTERM.
    """
    config = get_config(ctx)
    schedule = schedule or config.swap.schedule

    console.print(Panel(
        f"Schedule: [cyan]{schedule}[/cyan]\n"
        f"Pair: {config.pair.source_symbol.upper()} ({config.pair.source_chain}) -> "
        f"{config.pair.dest_symbol.upper()} ({config.pair.dest_chain})\n"
        f"Dry run: {'yes' if dry_run or config.swap.dry_run else 'no'}",
        title="[bold]Swapper Starting[/bold]",
        border_style="cyan",
    ))

    try:
        runtime = build_runtime(config, dry_run=True if dry_run else None)
        asyncio.run(_run_scheduled(runtime, schedule, not skip_initial))
    except SwapperError as e:
        error_panel(str(e), title="Swapper Error")
        raise SystemExit(1)
