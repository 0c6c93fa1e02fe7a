"""USD price sources."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import aiohttp
from pydantic import ValidationError

from swapper.errors import PriceSourceError, RateLimitedError
from swapper.models import PriceData

logger = logging.getLogger(__name__)

COINGECKO_IDS = {
    "kyve": "kyve-network",
    "usdc": "usd-coin",
    "usdt": "tether",
    "atom": "cosmos",
    "osmo": "osmosis",
}

COINPAPRIKA_IDS = {
    "kyve": "kyve-kyve-network",
    "usdc": "usdc-usd-coin",
    "usdt": "usdt-tether",
    "atom": "atom-cosmos",
    "osmo": "osmo-osmosis",
}


class PriceSource(ABC):
    """A single upstream price feed."""

    name: str = "source"

    @abstractmethod
    async def fetch(self, symbol: str) -> PriceData:
        """Fetch the current USD price of ``symbol``.

        Raises:
            RateLimitedError: If the feed is rate limiting us.
            PriceSourceError: If no usable price was returned.
        """


class HttpPriceSource(PriceSource):
    """Shared aiohttp plumbing for JSON price APIs."""

    def __init__(self, request_timeout: float = 10.0):
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def fetch(self, symbol: str) -> PriceData:
        try:
            return await self._fetch(symbol)
        except PriceSourceError:
            raise
        except (AttributeError, TypeError, ValueError, ValidationError) as e:
            raise PriceSourceError(f"{self.name} returned a malformed price for {symbol}: {e}") from e

    @abstractmethod
    async def _fetch(self, symbol: str) -> PriceData:
        """Request and parse one price; parsing errors are wrapped by ``fetch``."""

    async def _get_json(self, url: str, params: Optional[dict] = None, headers: Optional[dict] = None):
        session = await self._get_session()
        try:
            async with session.get(url, params=params, headers=headers) as response:
                if response.status == 429:
                    raise RateLimitedError(f"{self.name} rate limit hit")
                if response.status >= 400:
                    raise PriceSourceError(f"{self.name} returned HTTP {response.status}")
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PriceSourceError(f"{self.name} request failed: {e}") from e

    def _price(self, symbol: str, value) -> PriceData:
        if not value:
            raise PriceSourceError(f"{self.name} returned no price for {symbol}")
        return PriceData(
            symbol=symbol,
            price=float(value),
            as_of=datetime.now(timezone.utc),
            source=self.name,
        )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


class CoinGeckoSource(HttpPriceSource):
    """Primary source: CoinGecko simple price endpoint."""

    name = "coingecko"
    URL = "https://api.coingecko.com/api/v3/simple/price"

    def __init__(self, api_key: Optional[str] = None, ids: Optional[dict[str, str]] = None, **kwargs):
        super().__init__(**kwargs)
        self._api_key = api_key
        self._ids = {**COINGECKO_IDS, **(ids or {})}

    async def _fetch(self, symbol: str) -> PriceData:
        coin_id = self._ids.get(symbol.lower())
        if not coin_id:
            raise PriceSourceError(f"No CoinGecko ID mapping for {symbol}")

        headers = {"x-cg-demo-api-key": self._api_key} if self._api_key else None
        data = await self._get_json(self.URL, params={"ids": coin_id, "vs_currencies": "usd"}, headers=headers)
        logger.debug("CoinGecko response for %s: %s", symbol, data)
        return self._price(symbol, (data.get(coin_id) or {}).get("usd"))


class CoinPaprikaSource(HttpPriceSource):
    """Fallback source: CoinPaprika tickers endpoint."""

    name = "coinpaprika"
    URL = "https://api.coinpaprika.com/v1/tickers/{coin_id}"

    def __init__(self, ids: Optional[dict[str, str]] = None, **kwargs):
        super().__init__(**kwargs)
        self._ids = {**COINPAPRIKA_IDS, **(ids or {})}

    async def _fetch(self, symbol: str) -> PriceData:
        key = symbol.lower()
        coin_id = self._ids.get(key, f"{key}-{key}")
        data = await self._get_json(self.URL.format(coin_id=coin_id))
        usd = ((data.get("quotes") or {}).get("USD") or {}).get("price")
        return self._price(symbol, usd)
