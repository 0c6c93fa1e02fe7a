"""Paper venue for simulated swaps."""

import asyncio
import logging
import random
import uuid
from typing import Optional

from swapper.models import ChainLeg, LegState
from swapper.routing.base import (
    Balance,
    BalanceReader,
    ExecutionDriver,
    ExecutionResult,
    LegCallback,
    RouteProvider,
    RouteQuote,
    SignerResolver,
)

logger = logging.getLogger(__name__)


class PaperVenue(BalanceReader, RouteProvider, ExecutionDriver):
    """Simulated balance, routing and execution.

    Quotes at a fixed rate, executes each hop as a broadcast followed by a
    completion, and applies random slippage to the settled amount. Used
    for dry runs and for exercising the orchestrator without a chain.
    """

    # Default slippage percentage applied on settlement
    DEFAULT_SLIPPAGE_PERCENT = 0.1  # 0.1%

    def __init__(
        self,
        balance: int = 0,
        rate: float = 1.0,
        source_decimals: int = 6,
        dest_decimals: int = 6,
        slippage_percent: float = DEFAULT_SLIPPAGE_PERCENT,
        hops: Optional[list[str]] = None,
        leg_delay: float = 0.0,
    ):
        """Initialize the paper venue.

        Args:
            balance: Virtual source balance in base units.
            rate: Destination tokens paid per source token.
            source_decimals: Source asset exponent.
            dest_decimals: Destination asset exponent.
            slippage_percent: Maximum slippage applied on settlement.
            hops: Chains a quoted route passes through.
            leg_delay: Seconds between a leg's broadcast and completion.
        """
        self._balance = balance
        self._rate = rate
        self._source_decimals = source_decimals
        self._dest_decimals = dest_decimals
        self._slippage_percent = slippage_percent
        self._hops = hops
        self._leg_delay = leg_delay

    @property
    def current_balance(self) -> int:
        return self._balance

    def _apply_slippage(self, amount: int) -> int:
        """Reduce ``amount`` by a random slippage up to the configured maximum."""
        slippage_factor = random.uniform(0, self._slippage_percent) / 100
        return int(amount * (1 - slippage_factor))

    async def get_balance(self, account_ref: str, denom: str) -> Optional[Balance]:
        return Balance(amount=self._balance, denom=denom)

    async def quote_route(
        self,
        source_denom: str,
        source_chain: str,
        dest_denom: str,
        dest_chain: str,
        amount: int,
        max_slippage_bps: int,
    ) -> Optional[RouteQuote]:
        """Quote ``amount`` at the configured rate.

        Returns None for non-positive amounts.
        """
        if amount <= 0:
            return None

        whole_in = amount / 10 ** self._source_decimals
        quoted = int(whole_in * self._rate * 10 ** self._dest_decimals)
        hops = self._hops or [source_chain, dest_chain]

        return RouteQuote(
            source_amount=amount,
            quoted_dest_amount=quoted,
            required_signing_chains=list(hops),
            payload={"paper": True, "hops": list(hops), "max_slippage_bps": max_slippage_bps},
        )

    async def execute(
        self,
        route: RouteQuote,
        signer_resolver: Optional[SignerResolver],
        on_broadcast: LegCallback,
        on_completed: LegCallback,
    ) -> ExecutionResult:
        """Simulate execution hop by hop.

        The final hop's completion carries the settled amount.
        """
        hops = route.required_signing_chains or ["paper-1"]
        settled = self._apply_slippage(route.quoted_dest_amount)
        primary: Optional[str] = None

        for index, hop in enumerate(hops):
            tx_ref = f"PAPER_{uuid.uuid4().hex[:12].upper()}"
            primary = primary or tx_ref

            on_broadcast(ChainLeg(hop=hop, tx_ref=tx_ref, state=LegState.BROADCAST))
            if self._leg_delay:
                await asyncio.sleep(self._leg_delay)

            is_last = index == len(hops) - 1
            on_completed(
                ChainLeg(
                    hop=hop,
                    tx_ref=tx_ref,
                    state=LegState.COMPLETED,
                    settled_amount=settled if is_last else None,
                )
            )

        self._balance = max(0, self._balance - route.source_amount)
        logger.info(
            "Paper swap settled %s -> %s over %d hop(s)",
            route.source_amount,
            settled,
            len(hops),
        )

        return ExecutionResult(settled_dest_amount=settled, primary_reference=primary)

    def reset(self, balance: int) -> None:
        """Reset the virtual balance."""
        self._balance = balance
