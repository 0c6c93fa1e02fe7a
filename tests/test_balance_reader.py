"""Tests for the Cosmos LCD balance reader.

**Feature: swapper**
"""

import asyncio
from unittest.mock import AsyncMock

from swapper.routing import LcdBalanceReader


class TestLcdBalanceReader:
    """Bank balance lookups by denom."""

    def test_reads_amount(self):
        reader = LcdBalanceReader("https://lcd.test/")
        reader._get_json = AsyncMock(return_value={"balance": {"denom": "ukyve", "amount": "123456"}})

        balance = asyncio.run(reader.get_balance("kyve1abc", "ukyve"))

        assert balance.amount == 123_456
        assert balance.denom == "ukyve"
        path = reader._get_json.call_args.args[0]
        assert path == "/cosmos/bank/v1beta1/balances/kyve1abc/by_denom"
        assert reader._get_json.call_args.kwargs["params"] == {"denom": "ukyve"}

    def test_missing_amount_is_none(self):
        reader = LcdBalanceReader("https://lcd.test")
        reader._get_json = AsyncMock(return_value={"balance": None})

        assert asyncio.run(reader.get_balance("kyve1abc", "ukyve")) is None
