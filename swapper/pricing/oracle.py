"""Cached USD price oracle with a single fallback source."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from swapper.errors import PriceSourceError, RateLimitedError
from swapper.models import PriceData
from swapper.pricing.sources import PriceSource

logger = logging.getLogger(__name__)

DEFAULT_PEGGED = frozenset({"usdc", "usdt"})


class _CacheEntry:
    __slots__ = ("price", "as_of", "stored_at")

    def __init__(self, price: float, as_of: datetime, stored_at: float):
        self.price = price
        self.as_of = as_of
        self.stored_at = stored_at


class PriceOracle:
    """Resolves symbols to USD prices.

    Lookup order: pegged stablecoins (fixed 1.0, no request), the cache,
    the primary source, then exactly one attempt at the fallback source.
    Returns None when every step fails, so callers fail closed.

    Cache entries expire ``cache_ttl`` seconds after they were stored and
    are evicted when read. Lookups for the same symbol are serialised so
    concurrent callers inside the cache window share a single fetch.
    """

    def __init__(
        self,
        primary: PriceSource,
        fallback: Optional[PriceSource] = None,
        cache_ttl: float = 300.0,
        pegged: Iterable[str] = DEFAULT_PEGGED,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._primary = primary
        self._fallback = fallback
        self._cache_ttl = cache_ttl
        self._pegged = {s.lower() for s in pegged}
        self._clock = clock
        self._cache: dict[str, _CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _cached(self, key: str, symbol: str) -> Optional[PriceData]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at > self._cache_ttl:
            del self._cache[key]
            return None
        return PriceData(symbol=symbol, price=entry.price, as_of=entry.as_of, source="cache")

    async def get_price(self, symbol: str) -> Optional[PriceData]:
        """Get the current USD price of ``symbol``, or None if unavailable."""
        key = symbol.lower()
        if key in self._pegged:
            return PriceData(
                symbol=symbol, price=1.0, as_of=datetime.now(timezone.utc), source="fixed"
            )

        async with self._lock_for(key):
            cached = self._cached(key, symbol)
            if cached is not None:
                return cached

            price = await self._fetch(symbol)
            if price is not None:
                self._cache[key] = _CacheEntry(price.price, price.as_of, self._clock())
            return price

    async def _fetch(self, symbol: str) -> Optional[PriceData]:
        try:
            return await self._primary.fetch(symbol)
        except RateLimitedError:
            logger.warning("%s rate limit hit, using fallback price source", self._primary.name)
        except PriceSourceError as e:
            logger.error("Primary price source failed for %s: %s", symbol, e)

        if self._fallback is None:
            return None

        try:
            return await self._fallback.fetch(symbol)
        except PriceSourceError as e:
            logger.error("Failed to fetch backup price for %s: %s", symbol, e)
            return None

    async def get_prices(self, symbols: Iterable[str]) -> dict[str, PriceData]:
        """Fetch several prices concurrently; unavailable symbols are left out."""
        symbols = list(symbols)
        results = await asyncio.gather(*(self.get_price(s) for s in symbols))
        return {s: p for s, p in zip(symbols, results) if p is not None}

    async def calculate_cost_basis(self, amount: int, symbol: str, decimals: int = 6) -> float:
        """USD value of ``amount`` base units of ``symbol``; 0.0 if unpriced."""
        price = await self.get_price(symbol)
        if price is None:
            logger.warning("Could not get price for %s, using 0", symbol)
            return 0.0
        return amount / 10 ** decimals * price.price

    def clear(self) -> None:
        self._cache.clear()

    async def close(self) -> None:
        for source in (self._primary, self._fallback):
            close = getattr(source, "close", None)
            if close is not None:
                await close()
