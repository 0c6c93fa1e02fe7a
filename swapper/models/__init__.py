"""Data models for Swapper."""

from swapper.models.policy import SwapPair, TradePolicy
from swapper.models.price import PriceData
from swapper.models.swap import (
    PENDING_TX_REF,
    ChainLeg,
    LegState,
    SwapRecord,
    SwapStatus,
    to_display,
)

__all__ = [
    "PENDING_TX_REF",
    "ChainLeg",
    "LegState",
    "PriceData",
    "SwapPair",
    "SwapRecord",
    "SwapStatus",
    "TradePolicy",
    "to_display",
]
