"""Cron-driven runner for the swap orchestrator."""

import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import Callable, Optional

from croniter import CroniterBadCronError, croniter

from swapper.errors import ConfigError
from swapper.notify import Notifier
from swapper.orchestrator import CycleResult, SwapOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULE = "0 */6 * * *"
DAILY_SUMMARY_SCHEDULE = "0 0 * * *"


def parse_schedule(expression: str, start: datetime) -> croniter:
    """Build a cron iterator, raising ConfigError for bad expressions."""
    try:
        return croniter(expression, start)
    except (CroniterBadCronError, ValueError, KeyError) as e:
        raise ConfigError(f"Invalid cron schedule {expression!r}: {e}") from e


class SwapScheduler:
    """Triggers orchestrator cycles on a cron schedule.

    Each trigger runs as its own task, so a trigger that fires while a
    cycle is still in flight reaches the orchestrator and comes back BUSY.
    Shutdown waits for in-flight cycles and then writes a final export.
    """

    def __init__(
        self,
        orchestrator: SwapOrchestrator,
        schedule: str = DEFAULT_SCHEDULE,
        notifier: Optional[Notifier] = None,
        summary_schedule: Optional[str] = DAILY_SUMMARY_SCHEDULE,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._orchestrator = orchestrator
        self._schedule = schedule
        self._notifier = notifier
        self._summary_schedule = summary_schedule if notifier else None
        self._clock = clock
        self._stop = asyncio.Event()
        self._inflight: set[asyncio.Task] = set()
        self.results: list[CycleResult] = []

        now = clock()
        self._cycles = parse_schedule(schedule, now)
        self._summaries = parse_schedule(summary_schedule, now) if self._summary_schedule else None

    @property
    def schedule(self) -> str:
        return self._schedule

    def next_run(self, after: Optional[datetime] = None) -> datetime:
        """Next cycle time strictly after ``after`` (defaults to now)."""
        return croniter(self._schedule, after or self._clock()).get_next(datetime)

    def stop(self) -> None:
        self._stop.set()

    def _install_signal_handlers(self) -> list[int]:
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):
                continue
            installed.append(sig)
        return installed

    def _on_signal(self, sig: int) -> None:
        logger.info("%s received, shutting down gracefully...", signal.Signals(sig).name)
        self.stop()

    def _trigger(self) -> asyncio.Task:
        task = asyncio.ensure_future(self._run_cycle())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _run_cycle(self) -> None:
        logger.info("Scheduled swap execution started")
        result = await self._orchestrator.run_cycle()
        self.results.append(result)
        logger.info("Cycle finished: %s %s", result.outcome.value, result.message)

    async def _send_summary(self) -> None:
        try:
            stats = self._orchestrator.ledger.stats()
            await self._notifier.send_daily_summary(stats)
        except Exception as e:
            logger.error("Failed to send daily summary: %s", e)

    async def run(self, run_initial: bool = True, handle_signals: bool = True) -> None:
        """Run until stopped.

        Args:
            run_initial: Trigger one cycle immediately at start.
            handle_signals: Stop on SIGINT and SIGTERM.
        """
        installed = self._install_signal_handlers() if handle_signals else []
        try:
            await self._orchestrator.initialize()

            if run_initial:
                logger.info("Executing initial swap check...")
                self._trigger()

            logger.info("Scheduler started with cron pattern: %s", self._schedule)
            next_cycle = self._cycles.get_next(datetime)
            next_summary = self._summaries.get_next(datetime) if self._summaries else None

            while not self._stop.is_set():
                due = min(t for t in (next_cycle, next_summary) if t is not None)
                delay = max(0.0, (due - self._clock()).total_seconds())
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass

                now = self._clock()
                if next_cycle <= now:
                    self._trigger()
                    next_cycle = self._cycles.get_next(datetime)
                if next_summary is not None and next_summary <= now:
                    await self._send_summary()
                    next_summary = self._summaries.get_next(datetime)
        finally:
            loop = asyncio.get_running_loop()
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self._shutdown()

    async def _shutdown(self) -> None:
        if self._inflight:
            logger.info("Waiting for %d in-flight cycle(s)", len(self._inflight))
            await asyncio.gather(*self._inflight, return_exceptions=True)

        path = self._orchestrator.export_transactions()
        logger.info("Final transactions exported to: %s", path)
