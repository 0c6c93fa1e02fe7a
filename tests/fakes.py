"""In-memory collaborators and record builders shared by the tests."""

import asyncio
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from swapper.db.ledger import SwapLedger
from swapper.errors import ErrorKind, LedgerWriteError, PriceSourceError
from swapper.models import ChainLeg, LegState, PriceData, SwapPair, SwapRecord, SwapStatus, TradePolicy
from swapper.models.swap import utcnow
from swapper.notify import NotificationChannel, Notifier
from swapper.orchestrator import SwapOrchestrator
from swapper.pricing import PriceOracle, PriceSource
from swapper.routing import (
    Balance,
    BalanceReader,
    ExecutionDriver,
    ExecutionResult,
    RouteProvider,
    RouteQuote,
)

PAIR = SwapPair(
    source_denom="ukyve",
    source_chain="kyve-1",
    source_symbol="kyve",
    source_decimals=0,
    dest_denom="uusdc",
    dest_chain="noble-1",
    dest_symbol="usdc",
    dest_decimals=6,
)


def make_policy(**overrides) -> TradePolicy:
    values = {
        "min_usd": 10.0,
        "max_usd": 1000.0,
        "min_effective_rate": 0.0001,
        "execution_timeout": 5.0,
    }
    values.update(overrides)
    return TradePolicy(**values)


class FakeBalanceReader(BalanceReader):
    def __init__(self, amount: Optional[int] = 0, error: Optional[Exception] = None):
        self.amount = amount
        self.error = error
        self.calls = 0

    async def get_balance(self, account_ref: str, denom: str) -> Optional[Balance]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.amount is None:
            return None
        return Balance(amount=self.amount, denom=denom)


class FakePriceSource(PriceSource):
    name = "fake"

    def __init__(self, prices: Optional[dict] = None, error: Optional[Exception] = None, delay: float = 0.0):
        self.prices = dict(prices or {})
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def fetch(self, symbol: str) -> PriceData:
        self.calls.append(symbol)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if symbol not in self.prices:
            raise PriceSourceError(f"no price for {symbol}")
        return PriceData(symbol=symbol, price=self.prices[symbol], as_of=utcnow(), source=self.name)


class RateRouteProvider(RouteProvider):
    """Quotes at a fixed whole-token rate."""

    def __init__(self, rate: float = 0.01, pair: SwapPair = PAIR, error: Optional[Exception] = None,
                 no_route: bool = False, valid: bool = True):
        self.rate = rate
        self.pair = pair
        self.error = error
        self.no_route = no_route
        self.valid = valid
        self.amounts: list[int] = []

    async def quote_route(self, source_denom, source_chain, dest_denom, dest_chain, amount, max_slippage_bps):
        self.amounts.append(amount)
        if self.error is not None:
            raise self.error
        if self.no_route:
            return None
        whole = amount / 10 ** self.pair.source_decimals
        quoted = int(round(whole * self.rate * 10 ** self.pair.dest_decimals))
        return RouteQuote(
            source_amount=amount,
            quoted_dest_amount=quoted,
            required_signing_chains=[source_chain, dest_chain],
            estimated_fee_usd=0.25,
            payload={"opaque": object()},
        )

    async def validate_pair(self, source_denom, source_chain, dest_denom, dest_chain) -> bool:
        return self.valid


class ScriptedDriver(ExecutionDriver):
    """Emits scripted leg events, optionally waiting on ``hold`` midway.

    ``before`` events are emitted immediately; ``after`` events once
    ``hold`` is set (or immediately when there is no hold).
    """

    def __init__(
        self,
        before: Optional[list] = None,
        after: Optional[list] = None,
        result: Optional[ExecutionResult] = None,
        error: Optional[Exception] = None,
        hold: Optional[asyncio.Event] = None,
    ):
        self.before = before or []
        self.after = after or []
        self.result = result or ExecutionResult()
        self.error = error
        self.hold = hold
        self.routes: list[RouteQuote] = []
        self.finished = False

    async def execute(self, route, signer_resolver, on_broadcast, on_completed) -> ExecutionResult:
        self.routes.append(route)
        for leg in self.before:
            _emit(leg, on_broadcast, on_completed)
        if self.hold is not None:
            await self.hold.wait()
        for leg in self.after:
            _emit(leg, on_broadcast, on_completed)
        self.finished = True
        if self.error is not None:
            raise self.error
        return self.result


def _emit(leg: ChainLeg, on_broadcast, on_completed) -> None:
    if leg.state is LegState.BROADCAST:
        on_broadcast(leg)
    else:
        on_completed(leg)


class RecordingChannel(NotificationChannel):
    name = "recording"

    def __init__(self):
        super().__init__()
        self.sent: list[tuple] = []

    async def send(self, level, message, record=None) -> None:
        self.sent.append((level, message, record))


class BrokenChannel(NotificationChannel):
    name = "broken"

    async def send(self, level, message, record=None) -> None:
        raise RuntimeError("webhook unreachable")


class FailingLedger(SwapLedger):
    def append(self, record) -> None:
        raise LedgerWriteError("disk full")


def make_orchestrator(
    tmpdir: Path,
    balance: Optional[int] = 1_000_000,
    prices: Optional[dict] = None,
    rate: float = 0.01,
    driver: Optional[ExecutionDriver] = None,
    routes: Optional[RouteProvider] = None,
    ledger: Optional[SwapLedger] = None,
    channels: Optional[list] = None,
    balance_reader: Optional[BalanceReader] = None,
    oracle: Optional[PriceOracle] = None,
    **policy_overrides,
) -> SwapOrchestrator:
    source = FakePriceSource({"kyve": 0.01} if prices is None else prices)
    return SwapOrchestrator(
        pair=PAIR,
        policy=make_policy(**policy_overrides),
        account_ref="kyve1test",
        balance_reader=balance_reader or FakeBalanceReader(balance),
        price_oracle=oracle or PriceOracle(source),
        route_provider=routes or RateRouteProvider(rate),
        execution_driver=driver or ScriptedDriver(),
        ledger=ledger or SwapLedger(Path(tmpdir) / "ledger.db"),
        notifier=Notifier(channels if channels is not None else [RecordingChannel()]),
    )


def make_record(
    status: SwapStatus = SwapStatus.COMPLETED,
    cost_basis: float = 100.0,
    rate: float = 0.01,
    source_amount: int = 10_000_000_000,
    dest_amount: int = 100_000_000,
    **overrides,
) -> SwapRecord:
    values = {
        "id": str(uuid.uuid4()),
        "started_at": datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
        "source_asset": "KYVE",
        "dest_asset": "USDC",
        "source_chain": "kyve-1",
        "dest_chain": "noble-1",
        "source_amount": source_amount,
        "dest_amount": dest_amount,
        "source_price_usd": 0.01,
        "dest_price_usd": 1.0,
        "cost_basis_usd": cost_basis,
        "effective_rate": rate,
        "primary_tx_ref": "ABC123",
        "status": status,
        "chain_legs": [
            ChainLeg(hop="kyve-1", tx_ref="ABC123", state=LegState.COMPLETED),
            ChainLeg(hop="noble-1", tx_ref="DEF456", state=LegState.COMPLETED),
        ],
    }
    if status is SwapStatus.FAILED:
        values.update(
            error_kind=ErrorKind.EXECUTION_ERROR,
            error_detail="tx failed",
            dest_amount=0,
            effective_rate=0.0,
        )
    values.update(overrides)
    return SwapRecord(**values)
