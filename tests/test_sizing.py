"""Property-based tests for trade sizing.

**Feature: swapper**
"""

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from swapper.errors import ErrorKind
from swapper.models import TradePolicy
from swapper.orchestrator import size_trade


def _policy(**overrides) -> TradePolicy:
    values = {"min_usd": 10.0, "max_usd": 1000.0, "min_effective_rate": 0.0001}
    values.update(overrides)
    return TradePolicy(**values)


# ============================================================================
# Property 7: Sizing Window
# ============================================================================

class TestSizingWindow:
    """
    **Feature: swapper, Property 7: Sizing Window**

    *For any* balance and price, a trade that is not skipped lies between
    the USD minimum and maximum converted at the live price, and never
    exceeds the balance.
    """

    def test_documented_scenario(self):
        """Balance 1,000,000 at $0.01 with $10-$1000 bounds gives 100,000."""
        decision = size_trade(1_000_000, _policy(), 0.01, decimals=0)

        assert decision.skip is None
        assert decision.amount == 100_000
        assert decision.min_native == pytest.approx(1000)
        assert decision.max_native == pytest.approx(100_000)

    @given(
        balance=st.integers(min_value=1, max_value=10**15),
        price=st.floats(min_value=1e-4, max_value=1e4),
        decimals=st.integers(min_value=0, max_value=18),
    )
    @settings(max_examples=200)
    def test_amount_within_window(self, balance: int, price: float, decimals: int):
        decision = size_trade(balance, _policy(), price, decimals)

        assert 0 <= decision.amount <= balance
        assert decision.amount <= decision.max_native
        if decision.skip is None:
            assert decision.amount >= decision.min_native
        else:
            assert decision.skip is ErrorKind.BELOW_MINIMUM_TRADE_SIZE
            assert decision.amount <= decision.min_native

    def test_zero_balance_is_no_balance(self):
        decision = size_trade(0, _policy(), 1.0)

        assert decision.skip is ErrorKind.NO_BALANCE
        assert decision.amount == 0

    def test_small_balance_below_minimum(self):
        decision = size_trade(500, _policy(), 0.01, decimals=0)

        assert decision.skip is ErrorKind.BELOW_MINIMUM_TRADE_SIZE
        assert decision.amount == 500


# ============================================================================
# Property 8: Percentage And Reserve
# ============================================================================

class TestPercentageAndReserve:
    """
    **Feature: swapper, Property 8: Percentage And Reserve**

    The percentage reduces the balance; a reserve, when set, is taken from
    the raw balance and replaces the percentage result.
    """

    @given(
        balance=st.integers(min_value=1, max_value=10**9),
        percentage=st.floats(min_value=0, max_value=99.99),
    )
    @settings(max_examples=100)
    def test_percentage_applied_to_balance(self, balance: int, percentage: float):
        policy = _policy(min_usd=0.0, max_usd=10**12, swap_percentage=percentage)

        decision = size_trade(balance, policy, 1.0, decimals=0)

        assert decision.amount == int(balance * percentage / 100)

    def test_reserve_overrides_percentage(self):
        """50% of 1000 with a reserve of 100 swaps 900, not 400 or 500."""
        policy = _policy(min_usd=0.0, max_usd=10**6, swap_percentage=50, keep_reserve=100)

        decision = size_trade(1000, policy, 1.0, decimals=0)

        assert decision.amount == 900

    @given(
        balance=st.integers(min_value=1, max_value=10**9),
        reserve=st.integers(min_value=1, max_value=10**9),
    )
    @settings(max_examples=100)
    def test_reserve_is_kept(self, balance: int, reserve: int):
        policy = _policy(min_usd=0.0, max_usd=10**12, keep_reserve=reserve)

        decision = size_trade(balance, policy, 1.0, decimals=0)

        assert decision.amount == max(0, balance - reserve)
        assert balance - decision.amount >= min(reserve, balance)

    def test_reserve_larger_than_balance_clamps_to_zero(self):
        policy = _policy(keep_reserve=10_000)

        decision = size_trade(5_000, policy, 1.0, decimals=0)

        assert decision.amount == 0
        assert decision.skip is ErrorKind.BELOW_MINIMUM_TRADE_SIZE

    @given(
        balance=st.integers(min_value=1, max_value=10**9),
        excess=st.integers(min_value=0, max_value=10**9),
    )
    @settings(max_examples=100)
    def test_zero_amount_skips_without_minimum(self, balance: int, excess: int):
        """*For any* reserve at or above the balance, a zero minimum still skips."""
        policy = _policy(min_usd=0.0, keep_reserve=balance + excess)

        decision = size_trade(balance, policy, 1.0, decimals=0)

        assert decision.amount == 0
        assert decision.skip is ErrorKind.BELOW_MINIMUM_TRADE_SIZE

    def test_zero_percentage_skips(self):
        policy = _policy(min_usd=0.0, swap_percentage=0.0)

        decision = size_trade(1_000, policy, 1.0, decimals=0)

        assert decision.amount == 0
        assert decision.skip is ErrorKind.BELOW_MINIMUM_TRADE_SIZE

    @given(balance=st.integers(min_value=10**6, max_value=10**12), price=st.floats(min_value=0.001, max_value=10))
    @settings(max_examples=50)
    def test_max_cap_applies_after_reserve(self, balance: int, price: float):
        policy = _policy(keep_reserve=1)
        decision = size_trade(balance, policy, price, decimals=6)
        assume(decision.skip is None)

        assert decision.amount * price / 10**6 <= policy.max_usd + 1e-6
