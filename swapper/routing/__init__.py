"""Routing, balance and execution collaborators for Swapper."""

from swapper.routing.base import (
    Balance,
    BalanceReader,
    ChainSigner,
    ExecutionDriver,
    ExecutionResult,
    LegCallback,
    RouteProvider,
    RouteQuote,
    SignerResolver,
)
from swapper.routing.cosmos import LcdBalanceReader
from swapper.routing.paper import PaperVenue
from swapper.routing.skip import SkipClient

__all__ = [
    "Balance",
    "BalanceReader",
    "ChainSigner",
    "ExecutionDriver",
    "ExecutionResult",
    "LcdBalanceReader",
    "LegCallback",
    "PaperVenue",
    "RouteProvider",
    "RouteQuote",
    "SignerResolver",
    "SkipClient",
]
