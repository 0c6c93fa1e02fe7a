"""USD price lookup for Swapper."""

from swapper.pricing.oracle import PriceOracle
from swapper.pricing.sources import CoinGeckoSource, CoinPaprikaSource, PriceSource

__all__ = ["CoinGeckoSource", "CoinPaprikaSource", "PriceOracle", "PriceSource"]
