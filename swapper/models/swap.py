"""ChainLeg and SwapRecord data models."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from swapper.errors import ErrorKind

# Primary reference used when a swap was submitted but no hash was observed.
PENDING_TX_REF = "PENDING"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_display(amount: int, decimals: int) -> str:
    """Format a base-unit amount as a whole-token decimal string."""
    value = Decimal(amount).scaleb(-decimals)
    return f"{value:.{decimals}f}"


class LegState(str, Enum):
    BROADCAST = "broadcast"
    COMPLETED = "completed"
    FAILED = "failed"


class SwapStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ChainLeg(BaseModel):
    """One observed on-chain step of a multi-hop swap."""

    hop: str = Field(..., min_length=1, description="Chain id of the hop")
    tx_ref: str = Field(..., min_length=1, description="Transaction hash")
    state: LegState = Field(..., description="Lifecycle state of the leg")
    observed_at: datetime = Field(default_factory=utcnow, description="When the event arrived")
    settled_amount: Optional[int] = Field(
        default=None, ge=0, description="Settled dest amount reported for this leg"
    )

    model_config = {"frozen": True}

    @property
    def key(self) -> tuple[str, str]:
        return (self.hop, self.tx_ref)

    @property
    def is_final(self) -> bool:
        return self.state is not LegState.BROADCAST

    def advance(
        self,
        state: LegState,
        settled_amount: Optional[int] = None,
        observed_at: Optional[datetime] = None,
    ) -> "ChainLeg":
        """Move the leg forward to ``state``.

        Only broadcast legs move; a final leg is returned unchanged.
        """
        if self.is_final or state is LegState.BROADCAST:
            return self
        return self.model_copy(
            update={
                "state": state,
                "observed_at": observed_at or utcnow(),
                "settled_amount": (
                    settled_amount if settled_amount is not None else self.settled_amount
                ),
            }
        )


class SwapRecord(BaseModel):
    """The ledger entry for one attempted swap."""

    id: str = Field(..., min_length=1, description="Cycle identifier")
    started_at: datetime = Field(..., description="When the cycle started")
    source_asset: str = Field(..., description="Source asset ticker")
    dest_asset: str = Field(..., description="Destination asset ticker")
    source_chain: str = Field(default="", description="Source chain id")
    dest_chain: str = Field(default="", description="Destination chain id")
    source_amount: int = Field(..., ge=0, description="Base units sent")
    dest_amount: int = Field(default=0, ge=0, description="Base units received")
    source_decimals: int = Field(default=6, ge=0)
    dest_decimals: int = Field(default=6, ge=0)
    source_price_usd: float = Field(default=0.0, ge=0)
    dest_price_usd: float = Field(default=0.0, ge=0)
    cost_basis_usd: float = Field(default=0.0, ge=0, description="Source amount in USD at trade time")
    fee_usd: float = Field(default=0.0, ge=0)
    effective_rate: float = Field(default=0.0, ge=0, description="Dest tokens per source token")
    primary_tx_ref: str = Field(default="", description="First observed transaction hash")
    status: SwapStatus = Field(default=SwapStatus.PENDING)
    error_kind: Optional[ErrorKind] = Field(default=None)
    error_detail: Optional[str] = Field(default=None)
    chain_legs: list[ChainLeg] = Field(default_factory=list)
    dry_run: bool = Field(default=False, description="Simulated swap flag")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _error_only_when_failed(self) -> "SwapRecord":
        failed = self.status is SwapStatus.FAILED
        if failed and not self.error_detail:
            raise ValueError("failed records must carry error_detail")
        if not failed and (self.error_detail is not None or self.error_kind is not None):
            raise ValueError("only failed records may carry an error")
        return self

    @property
    def source_amount_display(self) -> str:
        return to_display(self.source_amount, self.source_decimals)

    @property
    def dest_amount_display(self) -> str:
        return to_display(self.dest_amount, self.dest_decimals)

    @property
    def chain_refs(self) -> str:
        """All leg references as ``hop:hash`` joined by ``;``."""
        return ";".join(f"{leg.hop}:{leg.tx_ref}" for leg in self.chain_legs)
