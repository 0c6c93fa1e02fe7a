"""Swap orchestrator: one decision and execution cycle at a time.

A cycle moves through Sizing, Quoting, RateCheck and Executing. Policy
skips (no balance, below minimum, rate too low) and sizing-phase aborts
never touch the ledger. Every cycle that reaches Quoting appends exactly
one completed or failed record.
"""

import asyncio
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, Field

from swapper.db.ledger import SwapLedger
from swapper.errors import ConfigError, ErrorKind
from swapper.models import (
    PENDING_TX_REF,
    ChainLeg,
    LegState,
    SwapPair,
    SwapRecord,
    SwapStatus,
    TradePolicy,
    to_display,
)
from swapper.models.swap import utcnow
from swapper.notify import Notifier
from swapper.pricing import PriceOracle
from swapper.routing.base import (
    BalanceReader,
    ExecutionDriver,
    ExecutionResult,
    RouteProvider,
    RouteQuote,
    SignerResolver,
)

logger = logging.getLogger(__name__)
swap_log = logging.getLogger("swapper.swap")


class CycleState(str, Enum):
    IDLE = "idle"
    SIZING = "sizing"
    QUOTING = "quoting"
    RATE_CHECK = "rate_check"
    EXECUTING = "executing"
    SETTLED = "settled"


class CycleOutcome(str, Enum):
    BUSY = "busy"
    SKIPPED_NO_BALANCE = "skipped_no_balance"
    SKIPPED_BELOW_MINIMUM = "skipped_below_minimum"
    SKIPPED_RATE_TOO_LOW = "skipped_rate_too_low"
    ABORTED = "aborted"
    FAILED = "failed"
    COMPLETED = "completed"
    LEDGER_ERROR = "ledger_error"


class CycleResult(BaseModel):
    """What one trigger of the orchestrator produced."""

    outcome: CycleOutcome = Field(..., description="Terminal outcome of the cycle")
    record: Optional[SwapRecord] = Field(default=None, description="Record, if a trade was attempted")
    error_kind: Optional[ErrorKind] = Field(default=None)
    message: str = Field(default="")
    persisted: bool = Field(default=False, description="Whether the record reached the ledger")

    model_config = {"frozen": True}

    @property
    def trade_attempted(self) -> bool:
        return self.record is not None


@dataclass(frozen=True)
class SizingDecision:
    amount: int
    min_native: float
    max_native: float
    skip: Optional[ErrorKind] = None


def size_trade(balance: int, policy: TradePolicy, price: float, decimals: int = 0) -> SizingDecision:
    """Work out how many base units to swap.

    The reserve, when set, is taken from the raw balance and replaces the
    percentage-reduced amount rather than compounding with it.

    Args:
        balance: Spendable balance in base units.
        policy: Trade policy.
        price: USD price of one whole source token.
        decimals: Source asset exponent.
    """
    if balance <= 0:
        return SizingDecision(0, 0.0, 0.0, ErrorKind.NO_BALANCE)

    scale = Decimal(10) ** decimals
    unit_price = Decimal(str(price))
    min_native = Decimal(str(policy.min_usd)) / unit_price * scale
    max_native = Decimal(str(policy.max_usd)) / unit_price * scale

    amount = balance
    if policy.swap_percentage < 100:
        amount = math.floor(balance * policy.swap_percentage / 100)
    if policy.keep_reserve > 0:
        amount = max(0, balance - policy.keep_reserve)

    amount = max(0, min(amount, int(max_native)))

    skip = ErrorKind.BELOW_MINIMUM_TRADE_SIZE if amount == 0 or amount < min_native else None
    return SizingDecision(amount, float(min_native), float(max_native), skip)


def effective_rate(dest_amount: int, source_amount: int, pair: SwapPair) -> float:
    """Whole destination tokens received per whole source token."""
    if source_amount <= 0:
        return 0.0
    dest = dest_amount / 10 ** pair.dest_decimals
    source = source_amount / 10 ** pair.source_decimals
    return dest / source


class ExecutionContext:
    """Legs observed while one route executes.

    Legs are keyed by (hop, tx_ref): a later event for a known leg
    advances it in place. Once closed, further events are dropped.
    """

    def __init__(self, record_id: str):
        self.record_id = record_id
        self.closed = False
        self._legs: list[ChainLeg] = []
        self._index: dict[tuple[str, str], int] = {}

    @property
    def legs(self) -> list[ChainLeg]:
        return list(self._legs)

    def on_broadcast(self, leg: ChainLeg) -> None:
        self._observe(leg)

    def on_completed(self, leg: ChainLeg) -> None:
        self._observe(leg)

    def _observe(self, leg: ChainLeg) -> None:
        if self.closed:
            logger.debug(
                "Discarding late %s event for %s on closed swap %s",
                leg.state.value,
                leg.tx_ref,
                self.record_id,
            )
            return

        position = self._index.get(leg.key)
        if position is None:
            self._index[leg.key] = len(self._legs)
            self._legs.append(leg)
        else:
            current = self._legs[position]
            self._legs[position] = current.advance(leg.state, leg.settled_amount, leg.observed_at)
        logger.info("Transaction %s on %s: %s", leg.tx_ref, leg.hop, leg.state.value)

    def settled_amount(self) -> Optional[int]:
        """Settled amount from the latest completed leg that reported one."""
        for leg in reversed(self._legs):
            if leg.state is LegState.COMPLETED and leg.settled_amount is not None:
                return leg.settled_amount
        return None

    def close(self) -> list[ChainLeg]:
        self.closed = True
        return list(self._legs)


class SwapOrchestrator:
    """Runs swap cycles against the configured collaborators.

    Only one cycle runs at a time per orchestrator; a trigger that arrives
    while a cycle is in flight returns a BUSY result and does nothing.
    """

    def __init__(
        self,
        pair: SwapPair,
        policy: TradePolicy,
        account_ref: str,
        balance_reader: BalanceReader,
        price_oracle: PriceOracle,
        route_provider: RouteProvider,
        execution_driver: ExecutionDriver,
        ledger: SwapLedger,
        notifier: Optional[Notifier] = None,
        signer_resolver: Optional[SignerResolver] = None,
        dry_run: bool = False,
        dest_account_ref: Optional[str] = None,
        dest_balance_reader: Optional[BalanceReader] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        clock: Callable[[], datetime] = utcnow,
    ):
        self._pair = pair
        self._policy = policy
        self._account_ref = account_ref
        self._balances = balance_reader
        self._prices = price_oracle
        self._routes = route_provider
        self._driver = execution_driver
        self._ledger = ledger
        self._notifier = notifier or Notifier()
        self._signer_resolver = signer_resolver
        self._dry_run = dry_run
        self._dest_account_ref = dest_account_ref
        self._dest_balances = dest_balance_reader
        self._id_factory = id_factory
        self._clock = clock

        self._busy = False
        self._state = CycleState.IDLE
        self._orphans: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._busy

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def pair(self) -> SwapPair:
        return self._pair

    @property
    def policy(self) -> TradePolicy:
        return self._policy

    @property
    def ledger(self) -> SwapLedger:
        return self._ledger

    async def initialize(self) -> None:
        """Check that the route provider supports the configured pair.

        Raises:
            ConfigError: If the pair cannot be routed.
        """
        logger.info("Initializing swap orchestrator...")
        pair = self._pair
        valid = await self._routes.validate_pair(
            pair.source_denom, pair.source_chain, pair.dest_denom, pair.dest_chain
        )
        if not valid:
            raise ConfigError("Invalid swap pair configuration")
        logger.info("Swap orchestrator initialized")

    # ==================== Cycle ====================

    async def run_cycle(self) -> CycleResult:
        """Run one cycle, or return BUSY if one is already in flight."""
        if self._busy:
            logger.warning("Swap already in progress, skipping...")
            return CycleResult(outcome=CycleOutcome.BUSY, message="Swap already in progress")

        self._busy = True
        try:
            return await self._cycle()
        finally:
            self._state = CycleState.IDLE
            self._busy = False

    async def _cycle(self) -> CycleResult:
        pair = self._pair
        policy = self._policy
        record_id = self._id_factory()
        started_at = self._clock()
        swap_log.info("[SWAP] Starting swap execution %s", record_id)

        # Sizing
        self._state = CycleState.SIZING
        try:
            balance = await self._balances.get_balance(self._account_ref, pair.source_denom)
        except Exception as e:
            return await self._abort(
                ErrorKind.BALANCE_UNAVAILABLE, f"Failed to read {pair.source_symbol} balance: {e}"
            )

        if balance is None or balance.amount == 0:
            return await self._skip(
                CycleOutcome.SKIPPED_NO_BALANCE,
                ErrorKind.NO_BALANCE,
                f"No {pair.source_symbol} balance available for swap",
            )

        try:
            prices = await self._prices.get_prices([pair.source_symbol, pair.dest_symbol])
        except Exception as e:
            logger.error("Price lookup failed: %s", e)
            prices = {}
        source_price = prices.get(pair.source_symbol)
        if source_price is None:
            return await self._abort(
                ErrorKind.PRICE_UNAVAILABLE,
                f"Unable to fetch {pair.source_symbol} price, cannot determine swap amounts",
            )
        dest_price = prices.get(pair.dest_symbol)
        if dest_price is None:
            logger.warning("No %s price available, assuming 1.0", pair.dest_symbol)
        dest_price_usd = dest_price.price if dest_price else 1.0

        sizing = size_trade(balance.amount, policy, source_price.price, pair.source_decimals)
        amount = sizing.amount
        if sizing.skip is ErrorKind.BELOW_MINIMUM_TRADE_SIZE:
            amount_usd = amount / 10 ** pair.source_decimals * source_price.price
            return await self._skip(
                CycleOutcome.SKIPPED_BELOW_MINIMUM,
                ErrorKind.BELOW_MINIMUM_TRADE_SIZE,
                f"Swap amount ${amount_usd:.2f} below minimum ${policy.min_usd:.2f}, skipping swap",
            )

        cost_basis = amount / 10 ** pair.source_decimals * source_price.price
        base = SwapRecord(
            id=record_id,
            started_at=started_at,
            source_asset=pair.source_symbol.upper(),
            dest_asset=pair.dest_symbol.upper(),
            source_chain=pair.source_chain,
            dest_chain=pair.dest_chain,
            source_amount=amount,
            source_decimals=pair.source_decimals,
            dest_decimals=pair.dest_decimals,
            source_price_usd=source_price.price,
            dest_price_usd=dest_price_usd,
            cost_basis_usd=cost_basis,
            status=SwapStatus.PENDING,
            dry_run=self._dry_run,
        )
        swap_log.info(
            "[SWAP] Getting swap route for %s %s (cost basis $%.2f)",
            to_display(amount, pair.source_decimals),
            base.source_asset,
            cost_basis,
        )

        # Quoting
        self._state = CycleState.QUOTING
        detail = "No route found for swap"
        try:
            quote = await self._routes.quote_route(
                pair.source_denom,
                pair.source_chain,
                pair.dest_denom,
                pair.dest_chain,
                amount,
                policy.max_slippage_bps,
            )
        except Exception as e:
            logger.error("Failed to get route: %s", e)
            quote = None
            detail = f"{detail}: {e}"

        if quote is None:
            return await self._fail(base, ErrorKind.NO_ROUTE_FOUND, detail, [])

        # RateCheck
        self._state = CycleState.RATE_CHECK
        quoted_rate = effective_rate(quote.quoted_dest_amount, amount, pair)
        logger.info(
            "Swap analysis: %s %s -> ~%s %s at %.6f",
            to_display(amount, pair.source_decimals),
            base.source_asset,
            to_display(quote.quoted_dest_amount, pair.dest_decimals),
            base.dest_asset,
            quoted_rate,
        )
        if quoted_rate < policy.min_effective_rate:
            return await self._skip(
                CycleOutcome.SKIPPED_RATE_TOO_LOW,
                ErrorKind.RATE_TOO_LOW,
                f"Swap cancelled: Rate too low ({quoted_rate:.6f} < {policy.min_effective_rate})",
            )

        # Executing
        self._state = CycleState.EXECUTING
        swap_log.info("[SWAP] Executing swap %s (dry run: %s)", record_id, self._dry_run)
        context = ExecutionContext(record_id)
        try:
            result = await self._execute_with_deadline(quote, context)
        except Exception as e:
            detail = str(e) or type(e).__name__
            return await self._fail(base, ErrorKind.EXECUTION_ERROR, detail, context.close())
        if result is None:
            detail = f"Execution did not finish within {policy.execution_timeout:g}s"
            return await self._fail(base, ErrorKind.EXECUTION_TIMEOUT, detail, context.close())
        legs = context.close()

        # Settled
        self._state = CycleState.SETTLED
        dest_amount = context.settled_amount()
        if dest_amount is None:
            dest_amount = result.settled_dest_amount
        if dest_amount is None:
            dest_amount = quote.quoted_dest_amount

        if legs:
            primary = legs[0].tx_ref
        else:
            primary = result.primary_reference or PENDING_TX_REF

        record = _finish(
            base,
            status=SwapStatus.COMPLETED,
            dest_amount=dest_amount,
            effective_rate=effective_rate(dest_amount, amount, pair),
            fee_usd=result.fee_usd or quote.estimated_fee_usd,
            primary_tx_ref=primary,
            chain_legs=legs,
        )
        message = (
            f"Swap completed: {record.source_amount_display} {record.source_asset} -> "
            f"{record.dest_amount_display} {record.dest_asset} "
            f"(Cost basis: ${record.cost_basis_usd:.2f})"
        )
        return await self._commit(record, CycleOutcome.COMPLETED, "success", message)

    async def _execute_with_deadline(
        self, quote: RouteQuote, context: ExecutionContext
    ) -> Optional[ExecutionResult]:
        """Run the driver against the execution deadline.

        Returns None when the deadline passes. The driver is not cancelled;
        it keeps running in the background and its outcome is only logged.
        Errors raised by the driver itself propagate unchanged.
        """
        task = asyncio.ensure_future(
            self._driver.execute(
                quote, self._signer_resolver, context.on_broadcast, context.on_completed
            )
        )
        done, _ = await asyncio.wait({task}, timeout=self._policy.execution_timeout)
        if task in done:
            return task.result()

        self._orphans.add(task)
        task.add_done_callback(self._orphan_callback(context.record_id))
        return None

    def _orphan_callback(self, record_id: str) -> Callable[[asyncio.Task], None]:
        def callback(task: asyncio.Task) -> None:
            self._orphans.discard(task)
            if task.cancelled():
                logger.debug("Execution for timed-out swap %s was cancelled", record_id)
                return
            error = task.exception()
            if error is not None:
                logger.warning("Execution for timed-out swap %s failed after deadline: %s", record_id, error)
            else:
                logger.warning(
                    "Execution for timed-out swap %s finished after deadline (settled %s); "
                    "ledger record left as failed",
                    record_id,
                    task.result().settled_dest_amount,
                )

        return callback

    # ==================== Outcomes ====================

    async def _skip(self, outcome: CycleOutcome, kind: ErrorKind, message: str) -> CycleResult:
        logger.warning(message)
        await self._notify("warning", message)
        return CycleResult(outcome=outcome, error_kind=kind, message=message)

    async def _abort(self, kind: ErrorKind, message: str) -> CycleResult:
        logger.error(message)
        await self._notify("error", message)
        return CycleResult(outcome=CycleOutcome.ABORTED, error_kind=kind, message=message)

    async def _fail(
        self, base: SwapRecord, kind: ErrorKind, detail: str, legs: list[ChainLeg]
    ) -> CycleResult:
        record = _finish(
            base,
            status=SwapStatus.FAILED,
            error_kind=kind,
            error_detail=detail,
            dest_amount=0,
            effective_rate=0.0,
            primary_tx_ref=legs[0].tx_ref if legs else "",
            chain_legs=legs,
        )
        logger.error("Swap failed (%s): %s", kind.value, detail)
        return await self._commit(record, CycleOutcome.FAILED, "error", f"Swap failed: {detail}")

    async def _commit(
        self, record: SwapRecord, outcome: CycleOutcome, level: str, message: str
    ) -> CycleResult:
        try:
            self._ledger.append(record)
        except Exception as e:
            error = f"Swap {record.id} could not be recorded: {e}"
            logger.error(error)
            await self._notify("error", error, record)
            return CycleResult(
                outcome=CycleOutcome.LEDGER_ERROR,
                record=record,
                error_kind=ErrorKind.LEDGER_WRITE_FAILED,
                message=error,
            )

        swap_log.info("[SWAP] %s", message)
        await self._notify(level, message, record)
        return CycleResult(
            outcome=outcome,
            record=record,
            error_kind=record.error_kind,
            message=message,
            persisted=True,
        )

    async def _notify(self, level: str, message: str, record: Optional[SwapRecord] = None) -> None:
        try:
            await self._notifier.notify(level, message, record)
        except Exception as e:
            logger.error("Notification failed: %s", e)

    # ==================== Status ====================

    async def _read_balance(self, reader: Optional[BalanceReader], account: Optional[str], denom: str, decimals: int):
        if reader is None or not account:
            return None
        try:
            balance = await reader.get_balance(account, denom)
        except Exception as e:
            logger.error("Failed to get %s balance: %s", denom, e)
            return None
        return to_display(balance.amount if balance else 0, decimals)

    async def status(self) -> dict:
        """Snapshot of balances, ledger statistics and configuration."""
        pair = self._pair
        source_balance, dest_balance = await asyncio.gather(
            self._read_balance(self._balances, self._account_ref, pair.source_denom, pair.source_decimals),
            self._read_balance(self._dest_balances, self._dest_account_ref, pair.dest_denom, pair.dest_decimals),
        )
        return {
            "is_running": self._busy,
            "state": self._state.value,
            "addresses": {
                pair.source_chain: self._account_ref,
                pair.dest_chain: self._dest_account_ref or "",
            },
            "balances": {
                pair.source_symbol.upper(): source_balance,
                pair.dest_symbol.upper(): dest_balance,
            },
            "statistics": self._ledger.stats(),
            "config": {
                "min_swap_amount_usd": self._policy.min_usd,
                "max_swap_amount_usd": self._policy.max_usd,
                "swap_percentage": self._policy.swap_percentage,
                "keep_reserve": to_display(self._policy.keep_reserve, pair.source_decimals),
                "max_slippage_percent": self._policy.max_slippage_bps / 100,
                "min_effective_rate": self._policy.min_effective_rate,
                "timeout_minutes": self._policy.execution_timeout / 60,
                "dry_run": self._dry_run,
                "route": f"{pair.source_denom}@{pair.source_chain} -> {pair.dest_denom}@{pair.dest_chain}",
            },
        }

    def export_transactions(self, path=None):
        """Write the accounting export and return its path."""
        return self._ledger.export_accounting_rows(path)


def _finish(base: SwapRecord, **changes) -> SwapRecord:
    """Validated copy of ``base`` with ``changes`` applied."""
    return SwapRecord.model_validate({**base.model_dump(), **changes})
