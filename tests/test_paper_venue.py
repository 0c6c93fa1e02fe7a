"""Tests for the paper venue.

**Feature: swapper**
"""

import asyncio
import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from fakes import FakePriceSource, make_policy
from swapper.db.ledger import SwapLedger
from swapper.models import LegState, SwapPair
from swapper.notify import Notifier
from swapper.orchestrator import CycleOutcome, SwapOrchestrator
from swapper.pricing import PriceOracle
from swapper.routing import PaperVenue


# ============================================================================
# Property 16: Simulated Execution
# ============================================================================

class TestPaperVenue:
    """
    **Feature: swapper, Property 16: Simulated Execution**

    *For any* quoted amount, the paper venue settles at or below the quote
    by at most the configured slippage, reports every hop, and spends the
    source amount from its virtual balance.
    """

    @given(
        amount=st.integers(min_value=1, max_value=10**12),
        rate=st.floats(min_value=0.0001, max_value=100),
        slippage=st.floats(min_value=0, max_value=5),
    )
    @settings(max_examples=50)
    def test_settles_within_slippage(self, amount: int, rate: float, slippage: float):
        venue = PaperVenue(balance=amount, rate=rate, slippage_percent=slippage)
        events = []

        async def run():
            quote = await venue.quote_route("ukyve", "kyve-1", "uusdc", "noble-1", amount, 100)
            result = await venue.execute(quote, None, events.append, events.append)
            return quote, result

        quote, result = asyncio.run(run())

        assert result.settled_dest_amount <= quote.quoted_dest_amount
        assert result.settled_dest_amount >= int(quote.quoted_dest_amount * (1 - slippage / 100)) - 1
        assert venue.current_balance == 0
        assert result.primary_reference == events[0].tx_ref
        assert events[-1].settled_amount == result.settled_dest_amount

    def test_quote_rejects_non_positive(self):
        venue = PaperVenue(balance=10)

        assert asyncio.run(venue.quote_route("a", "c1", "b", "c2", 0, 100)) is None

    def test_legs_per_hop(self):
        venue = PaperVenue(balance=10**6, rate=0.5, hops=["kyve-1", "osmosis-1", "noble-1"])
        events = []

        async def run():
            quote = await venue.quote_route("ukyve", "kyve-1", "uusdc", "noble-1", 10**6, 100)
            await venue.execute(quote, None, events.append, events.append)

        asyncio.run(run())

        assert [e.state for e in events] == [LegState.BROADCAST, LegState.COMPLETED] * 3
        assert [e.hop for e in events[::2]] == ["kyve-1", "osmosis-1", "noble-1"]
        assert all(e.tx_ref.startswith("PAPER_") for e in events)

    def test_reset(self):
        venue = PaperVenue(balance=5)
        venue.reset(50)

        balance = asyncio.run(venue.get_balance("paper", "ukyve"))

        assert balance.amount == 50
        assert balance.denom == "ukyve"


class TestDryRunCycle:
    """A full orchestrator cycle against the paper venue."""

    def test_dry_run_records_flag_and_spends_virtual_balance(self):
        pair = SwapPair(
            source_denom="ukyve", source_chain="kyve-1", source_symbol="kyve",
            dest_denom="uusdc", dest_chain="noble-1", dest_symbol="usdc",
        )
        venue = PaperVenue(balance=50_000 * 10**6, rate=0.02, slippage_percent=0)

        with tempfile.TemporaryDirectory() as tmpdir:
            orch = SwapOrchestrator(
                pair=pair,
                policy=make_policy(),
                account_ref="paper",
                balance_reader=venue,
                price_oracle=PriceOracle(FakePriceSource({"kyve": 0.02})),
                route_provider=venue,
                execution_driver=venue,
                ledger=SwapLedger(Path(tmpdir) / "ledger.db"),
                notifier=Notifier(),
                dry_run=True,
            )

            result = asyncio.run(orch.run_cycle())

            assert result.outcome is CycleOutcome.COMPLETED
            record = result.record
            assert record.dry_run is True
            assert record.source_amount == 50_000 * 10**6
            assert record.dest_amount == 1000 * 10**6
            assert record.primary_tx_ref.startswith("PAPER_")
            assert venue.current_balance == 0
