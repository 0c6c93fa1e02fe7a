"""Exceptions and error kinds for Swapper."""

from enum import Enum


class ErrorKind(str, Enum):
    """Why a cycle did not complete.

    The first three are policy skips and never produce a ledger record.
    NO_ROUTE_FOUND, EXECUTION_TIMEOUT and EXECUTION_ERROR are attempt
    failures and always produce a failed record.
    """

    NO_BALANCE = "NoBalance"
    BELOW_MINIMUM_TRADE_SIZE = "BelowMinimumTradeSize"
    RATE_TOO_LOW = "RateTooLow"
    NO_ROUTE_FOUND = "NoRouteFound"
    EXECUTION_TIMEOUT = "ExecutionTimeout"
    EXECUTION_ERROR = "ExecutionError"
    PRICE_UNAVAILABLE = "PriceUnavailable"
    BALANCE_UNAVAILABLE = "BalanceUnavailable"
    LEDGER_WRITE_FAILED = "LedgerWriteFailed"


class SwapperError(Exception):
    """Base class for all Swapper errors."""


class ConfigError(SwapperError):
    """Configuration is missing or invalid."""


class PriceSourceError(SwapperError):
    """A price source failed to return a usable price."""


class RateLimitedError(PriceSourceError):
    """A price source rejected the request with HTTP 429."""


class RoutingError(SwapperError):
    """The routing service returned an error response."""


class NoRouteFoundError(RoutingError):
    """No route exists for the requested swap."""


class ExecutionError(SwapperError):
    """The execution driver reported a failed swap."""


class LedgerWriteError(SwapperError):
    """A record could not be durably written to the ledger."""


class DuplicateRecordError(LedgerWriteError):
    """A record with the same identifier is already in the ledger."""
