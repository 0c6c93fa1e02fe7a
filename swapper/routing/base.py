"""Collaborator interfaces consumed by the swap orchestrator."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Protocol

from pydantic import BaseModel, Field

from swapper.models import ChainLeg


class Balance(BaseModel):
    """Spendable balance of one denom."""

    amount: int = Field(..., ge=0, description="Balance in base units")
    denom: str = Field(..., min_length=1, description="Asset denom")

    model_config = {"frozen": True}


class RouteQuote(BaseModel):
    """A quoted route.

    ``payload`` is whatever the route provider needs to execute the route
    later; the orchestrator hands it back untouched.
    """

    source_amount: int = Field(..., ge=0, description="Base units quoted in")
    quoted_dest_amount: int = Field(..., ge=0, description="Estimated base units out")
    required_signing_chains: list[str] = Field(
        default_factory=list, description="Chains needing a signer, one per hop"
    )
    estimated_fee_usd: float = Field(default=0.0, ge=0, description="Estimated fees in USD")
    payload: Any = Field(default=None, description="Provider-specific route data")

    model_config = {"frozen": True, "arbitrary_types_allowed": True}


class ExecutionResult(BaseModel):
    """Final outcome reported by an execution driver."""

    settled_dest_amount: Optional[int] = Field(
        default=None, ge=0, description="Base units delivered, if known"
    )
    primary_reference: Optional[str] = Field(
        default=None, description="Driver's main transaction reference"
    )
    fee_usd: float = Field(default=0.0, ge=0, description="Fees paid in USD")

    model_config = {"frozen": True}


class ChainSigner(Protocol):
    """Signs and broadcasts a routing message on one chain."""

    async def sign_and_broadcast(self, chain_id: str, message: dict) -> str:
        """Broadcast ``message`` and return the transaction hash."""
        ...

    async def address(self, chain_id: str) -> str:
        """Return the signer's address on ``chain_id``."""
        ...


SignerResolver = Callable[[str], Awaitable[ChainSigner]]
LegCallback = Callable[[ChainLeg], None]


class BalanceReader(ABC):
    """Reports spendable balances."""

    @abstractmethod
    async def get_balance(self, account_ref: str, denom: str) -> Optional[Balance]:
        """Get the balance of ``denom`` held by ``account_ref``.

        Returns:
            Balance, or None if the account holds none of the denom.
        """


class RouteProvider(ABC):
    """Quotes cross-chain routes."""

    @abstractmethod
    async def quote_route(
        self,
        source_denom: str,
        source_chain: str,
        dest_denom: str,
        dest_chain: str,
        amount: int,
        max_slippage_bps: int,
    ) -> Optional[RouteQuote]:
        """Quote a route for ``amount`` base units of the source asset.

        Returns:
            RouteQuote, or None if no route exists.
        """

    async def validate_pair(
        self,
        source_denom: str,
        source_chain: str,
        dest_denom: str,
        dest_chain: str,
    ) -> bool:
        """Check that both assets are routable. Providers without a
        catalogue accept every pair."""
        return True


class ExecutionDriver(ABC):
    """Executes a previously quoted route."""

    @abstractmethod
    async def execute(
        self,
        route: RouteQuote,
        signer_resolver: Optional[SignerResolver],
        on_broadcast: LegCallback,
        on_completed: LegCallback,
    ) -> ExecutionResult:
        """Execute ``route``.

        ``on_broadcast`` is called when a leg's transaction is seen on
        chain, ``on_completed`` when it is final. Either may be called
        after this coroutine has been abandoned by the caller.

        Raises:
            ExecutionError: If the route fails to execute.
        """
