"""Tests for the cron scheduler.

**Feature: swapper**
"""

import asyncio
import sqlite3
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from fakes import RecordingChannel, make_orchestrator
from swapper.db.ledger import SwapLedger
from swapper.errors import ConfigError
from swapper.notify import Notifier
from swapper.orchestrator import CycleOutcome
from swapper.scheduler import SwapScheduler

START = datetime(2024, 1, 1, 0, 30, tzinfo=timezone.utc)


class StatsFailingLedger(SwapLedger):
    def stats(self) -> dict:
        raise sqlite3.OperationalError("database is locked")


class MutableClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


async def _run_until(scheduler: SwapScheduler, count: int, **kwargs) -> None:
    task = asyncio.ensure_future(scheduler.run(handle_signals=False, **kwargs))
    while len(scheduler.results) < count and not task.done():
        await asyncio.sleep(0.001)
    scheduler.stop()
    await task


class TestSchedule:
    """Cron parsing."""

    def test_next_run(self, temp_dir: Path):
        scheduler = SwapScheduler(make_orchestrator(temp_dir), clock=MutableClock(START))

        assert scheduler.next_run() == datetime(2024, 1, 1, 6, 0, tzinfo=timezone.utc)
        assert scheduler.next_run(datetime(2024, 1, 1, 18, 0, tzinfo=timezone.utc)) == datetime(
            2024, 1, 2, 0, 0, tzinfo=timezone.utc
        )

    def test_invalid_schedule(self, temp_dir: Path):
        with pytest.raises(ConfigError):
            SwapScheduler(make_orchestrator(temp_dir), schedule="every six hours")


class TestSchedulerRun:
    """
    **Feature: swapper, Property 18: Scheduled Triggers**

    The scheduler runs an initial cycle, fires on each due cron time,
    and on shutdown waits for in-flight cycles and writes a final export.
    Overlapping triggers come back BUSY without creating records.
    """

    def test_initial_cycle_and_final_export(self, temp_dir: Path):
        orch = make_orchestrator(temp_dir)
        scheduler = SwapScheduler(orch, clock=MutableClock(START))

        asyncio.run(_run_until(scheduler, 1))

        assert scheduler.results[0].outcome is CycleOutcome.COMPLETED
        exports = list(temp_dir.glob("swap_accounting_*.csv"))
        assert len(exports) == 1
        assert len(exports[0].read_text().strip().splitlines()) == 2

    def test_due_triggers_fire_and_overlaps_are_busy(self, temp_dir: Path):
        channel = RecordingChannel()
        orch = make_orchestrator(temp_dir, channels=[])
        clock = MutableClock(START)
        scheduler = SwapScheduler(orch, "*/5 * * * *", notifier=Notifier([channel]), clock=clock)
        clock.now = START + timedelta(days=1)

        asyncio.run(_run_until(scheduler, 4, run_initial=False))

        outcomes = [r.outcome for r in scheduler.results]
        assert len(outcomes) >= 4
        assert set(outcomes) <= {CycleOutcome.COMPLETED, CycleOutcome.BUSY}
        assert CycleOutcome.COMPLETED in outcomes
        assert len(orch.ledger.all()) == outcomes.count(CycleOutcome.COMPLETED)
        assert [level for level, _, _ in channel.sent] == ["success"]
        assert "Daily Summary" in channel.sent[0][1]

    def test_stop_before_any_trigger(self, temp_dir: Path):
        orch = make_orchestrator(temp_dir)
        scheduler = SwapScheduler(orch, clock=MutableClock(START))

        async def scenario():
            scheduler.stop()
            await scheduler.run(run_initial=False, handle_signals=False)

        asyncio.run(scenario())

        assert scheduler.results == []
        assert orch.ledger.all() == []
        assert list(temp_dir.glob("swap_accounting_*.csv"))

    def test_summary_failure_keeps_scheduler_running(self, temp_dir: Path):
        channel = RecordingChannel()
        orch = make_orchestrator(temp_dir, ledger=StatsFailingLedger(temp_dir / "ledger.db"), channels=[])
        clock = MutableClock(START)
        scheduler = SwapScheduler(orch, "*/5 * * * *", notifier=Notifier([channel]), clock=clock)
        clock.now = START + timedelta(days=1)

        asyncio.run(_run_until(scheduler, 2, run_initial=False))

        assert len(scheduler.results) >= 2
        assert CycleOutcome.COMPLETED in [r.outcome for r in scheduler.results]
        assert channel.sent == []
        assert list(temp_dir.glob("swap_accounting_*.csv"))
