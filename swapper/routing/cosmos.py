"""Cosmos LCD balance reader."""

import logging
from typing import Optional

import aiohttp

from swapper.routing.base import Balance, BalanceReader

logger = logging.getLogger(__name__)


class LcdBalanceReader(BalanceReader):
    """Reads bank balances from a Cosmos SDK LCD (REST) endpoint."""

    def __init__(self, lcd_url: str, request_timeout: float = 15.0):
        self._lcd_url = lcd_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _get_json(self, path: str, params: Optional[dict] = None) -> dict:
        session = await self._get_session()
        async with session.get(f"{self._lcd_url}{path}", params=params) as response:
            response.raise_for_status()
            return await response.json(content_type=None)

    async def get_balance(self, account_ref: str, denom: str) -> Optional[Balance]:
        """Get the balance of ``denom`` held by address ``account_ref``.

        Raises:
            aiohttp.ClientError: If the LCD endpoint cannot be reached.
        """
        data = await self._get_json(
            f"/cosmos/bank/v1beta1/balances/{account_ref}/by_denom",
            params={"denom": denom},
        )
        balance = data.get("balance") or {}
        amount = balance.get("amount")
        if amount is None:
            logger.debug("No %s balance reported for %s", denom, account_ref)
            return None

        return Balance(amount=int(amount), denom=balance.get("denom", denom))

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
