"""TradePolicy and SwapPair data models."""

from pydantic import BaseModel, Field, model_validator


class TradePolicy(BaseModel):
    """Trade-size limits and price protection for one run.

    USD bounds are converted to native amounts at trade time using the
    live source-asset price. ``keep_reserve`` is in base units.
    """

    min_usd: float = Field(..., ge=0, description="Minimum trade size in USD")
    max_usd: float = Field(..., ge=0, description="Maximum trade size in USD")
    swap_percentage: float = Field(
        default=100.0, ge=0, le=100, description="Share of balance eligible for swapping"
    )
    keep_reserve: int = Field(
        default=0, ge=0, description="Base units always left in the wallet"
    )
    max_slippage_bps: int = Field(
        default=200, ge=0, le=10_000, description="Slippage tolerance in basis points"
    )
    min_effective_rate: float = Field(
        ..., gt=0, description="Minimum dest-per-source rate accepted from a quote"
    )
    execution_timeout: float = Field(
        default=1800.0, gt=0, description="Execution deadline in seconds"
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_usd_bounds(self) -> "TradePolicy":
        if self.min_usd > self.max_usd:
            raise ValueError(
                f"min_usd ({self.min_usd}) must not exceed max_usd ({self.max_usd})"
            )
        return self


class SwapPair(BaseModel):
    """The source and destination assets of the swap."""

    source_denom: str = Field(..., min_length=1, description="Source asset denom, e.g. ukyve")
    source_chain: str = Field(..., min_length=1, description="Source chain id")
    source_symbol: str = Field(..., min_length=1, description="Source ticker used for pricing")
    source_decimals: int = Field(default=6, ge=0, description="Source asset exponent")
    dest_denom: str = Field(..., min_length=1, description="Destination asset denom")
    dest_chain: str = Field(..., min_length=1, description="Destination chain id")
    dest_symbol: str = Field(..., min_length=1, description="Destination ticker")
    dest_decimals: int = Field(default=6, ge=0, description="Destination asset exponent")

    model_config = {"frozen": True}
