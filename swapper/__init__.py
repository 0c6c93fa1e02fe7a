"""Swapper - scheduled cross-chain swaps into a stablecoin."""

__version__ = "0.1.0"
