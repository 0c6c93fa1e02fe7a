"""Skip Go routing client.

Quotes routes, executes them through a caller-supplied signer and tracks
each transaction until the routing service reports it final. Signing and
broadcasting are delegated to the signer returned by the signer resolver.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from swapper.errors import ExecutionError, NoRouteFoundError, RoutingError
from swapper.models import ChainLeg, LegState
from swapper.routing.base import (
    ExecutionDriver,
    ExecutionResult,
    LegCallback,
    RouteProvider,
    RouteQuote,
    SignerResolver,
)

logger = logging.getLogger(__name__)

SKIP_API_URL = "https://api.skip.build"

SUCCESS_STATE = "STATE_COMPLETED_SUCCESS"
FINAL_STATES = {SUCCESS_STATE, "STATE_COMPLETED_ERROR", "STATE_ABANDONED"}


class SkipClient(RouteProvider, ExecutionDriver):
    """Route provider and execution driver backed by the Skip Go API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = SKIP_API_URL,
        poll_interval: float = 5.0,
        request_timeout: float = 30.0,
    ):
        """Initialize the client.

        Args:
            api_key: Optional API key; the free tier is used without one.
            base_url: API root.
            poll_interval: Seconds between transaction status polls.
            request_timeout: Per-request timeout in seconds.
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._poll_interval = poll_interval
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session: Optional[aiohttp.ClientSession] = None

        if api_key:
            logger.info("Skip client initialized with API key")
        else:
            logger.info("Skip client initialized without API key (free tier)")

    # ==================== HTTP ====================

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"authorization": self._api_key} if self._api_key else None
            self._session = aiohttp.ClientSession(timeout=self._timeout, headers=headers)
        return self._session

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> dict:
        """Send a request and return the decoded JSON body.

        Raises:
            NoRouteFoundError: If the API reports that no route exists.
            RoutingError: For any other error response, a network failure
                or a body that is not a JSON object.
        """
        session = await self._get_session()
        url = f"{self._base_url}{path}"
        try:
            async with session.request(method, url, params=params, json=json) as response:
                body = await response.json(content_type=None)
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            detail = str(e) or type(e).__name__
            raise RoutingError(f"Skip API request to {path} failed: {detail}") from e

        if status >= 400:
            message = body.get("message", "") if isinstance(body, dict) else str(body)
            if "no route" in message.lower():
                raise NoRouteFoundError(message)
            raise RoutingError(f"Skip API {status} on {path}: {message}")
        if not isinstance(body, dict):
            raise RoutingError(f"Skip API returned an unexpected body on {path}")
        return body

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    # ==================== Routing ====================

    async def quote_route(
        self,
        source_denom: str,
        source_chain: str,
        dest_denom: str,
        dest_chain: str,
        amount: int,
        max_slippage_bps: int,
    ) -> Optional[RouteQuote]:
        logger.info("Getting swap route for %s %s -> %s", amount, source_denom, dest_denom)

        data = await self._request(
            "POST",
            "/v2/fungible/route",
            json={
                "amount_in": str(amount),
                "source_asset_denom": source_denom,
                "source_asset_chain_id": source_chain,
                "dest_asset_denom": dest_denom,
                "dest_asset_chain_id": dest_chain,
                "smart_relay": True,
                "allow_multi_tx": True,
            },
        )
        return parse_route(data, max_slippage_bps)

    async def validate_pair(
        self,
        source_denom: str,
        source_chain: str,
        dest_denom: str,
        dest_chain: str,
    ) -> bool:
        """Check that both chains and both assets are supported."""
        chains = await self._request("GET", "/v2/info/chains")
        known = {chain.get("chain_id") for chain in chains.get("chains", [])}

        for chain_id in (source_chain, dest_chain):
            if chain_id not in known:
                logger.error("Chain %s not supported by Skip", chain_id)
                return False

        for chain_id, denom in ((source_chain, source_denom), (dest_chain, dest_denom)):
            assets = await self._request(
                "GET",
                "/v2/fungible/assets",
                params={
                    "chain_ids": chain_id,
                    "include_evm_assets": "false",
                    "include_cw20_assets": "false",
                },
            )
            chain_assets = assets.get("chain_to_assets_map", {}).get(chain_id, {})
            if not any(a.get("denom") == denom for a in chain_assets.get("assets", [])):
                logger.error("Asset %s not found on %s", denom, chain_id)
                return False

        logger.info("Swap pair validated: %s on %s -> %s on %s",
                    source_denom, source_chain, dest_denom, dest_chain)
        return True

    # ==================== Execution ====================

    async def execute(
        self,
        route: RouteQuote,
        signer_resolver: Optional[SignerResolver],
        on_broadcast: LegCallback,
        on_completed: LegCallback,
    ) -> ExecutionResult:
        if signer_resolver is None:
            raise ExecutionError("live execution requires a signer resolver")

        data = route.payload["route"]
        addresses = []
        for chain_id in route.required_signing_chains:
            signer = await signer_resolver(chain_id)
            addresses.append(await signer.address(chain_id))

        msgs = await self._request(
            "POST",
            "/v2/fungible/msgs",
            json={
                "source_asset_denom": data["source_asset_denom"],
                "source_asset_chain_id": data["source_asset_chain_id"],
                "dest_asset_denom": data["dest_asset_denom"],
                "dest_asset_chain_id": data["dest_asset_chain_id"],
                "amount_in": data["amount_in"],
                "amount_out": data["amount_out"],
                "address_list": addresses,
                "operations": data["operations"],
                "slippage_tolerance_percent": route.payload["slippage_tolerance_percent"],
            },
        )
        txs = msgs.get("txs") or []
        if not txs:
            raise ExecutionError("routing service returned no transactions to sign")

        primary: Optional[str] = None
        settled: Optional[int] = None

        for tx in txs:
            chain_id = tx_chain_id(tx)
            signer = await signer_resolver(chain_id)
            tx_hash = await signer.sign_and_broadcast(chain_id, tx)
            primary = primary or tx_hash
            on_broadcast(ChainLeg(hop=chain_id, tx_ref=tx_hash, state=LegState.BROADCAST))

            await self._request("POST", "/v2/tx/track", json={"tx_hash": tx_hash, "chain_id": chain_id})
            status = await self._wait_for_completion(tx_hash, chain_id, on_broadcast, on_completed)

            released = released_amount(status)
            settled = released if released is not None else settled
            succeeded = status.get("state") == SUCCESS_STATE
            on_completed(
                ChainLeg(
                    hop=chain_id,
                    tx_ref=tx_hash,
                    state=LegState.COMPLETED if succeeded else LegState.FAILED,
                    settled_amount=released,
                )
            )
            if not succeeded:
                error = status.get("error") or {}
                raise ExecutionError(
                    f"transaction {tx_hash} on {chain_id} ended in {status.get('state')}: "
                    f"{error.get('message', 'no detail')}"
                )

        return ExecutionResult(settled_dest_amount=settled, primary_reference=primary)

    async def _wait_for_completion(
        self,
        tx_hash: str,
        chain_id: str,
        on_broadcast: LegCallback,
        on_completed: LegCallback,
    ) -> dict:
        """Poll transaction status until final, reporting transfer hops as they appear."""
        reported: dict[tuple[str, str], LegState] = {}
        while True:
            status = await self._request(
                "GET", "/v2/tx/status", params={"tx_hash": tx_hash, "chain_id": chain_id}
            )
            for leg in transfer_legs(status):
                if reported.get(leg.key) is leg.state:
                    continue
                reported[leg.key] = leg.state
                if leg.state is LegState.BROADCAST:
                    on_broadcast(leg)
                else:
                    on_completed(leg)

            if status.get("state") in FINAL_STATES:
                return status
            await asyncio.sleep(self._poll_interval)


def parse_route(data: dict, max_slippage_bps: int) -> Optional[RouteQuote]:
    """Build a RouteQuote from a route response, or None if it has no operations."""
    if not data or not data.get("operations"):
        return None

    fee_usd = sum(float(fee.get("usd_amount") or 0) for fee in data.get("estimated_fees", []))
    return RouteQuote(
        source_amount=int(data["amount_in"]),
        quoted_dest_amount=int(data["amount_out"]),
        required_signing_chains=list(data.get("required_chain_addresses", [])),
        estimated_fee_usd=fee_usd,
        payload={
            "route": data,
            "slippage_tolerance_percent": f"{max_slippage_bps / 100:g}",
        },
    )


def tx_chain_id(tx: dict) -> str:
    """Chain id of a transaction returned by the msgs endpoint."""
    for kind in ("cosmos_tx", "evm_tx", "svm_tx"):
        if kind in tx:
            return tx[kind]["chain_id"]
    raise ExecutionError(f"unsupported transaction type: {sorted(tx)}")


def transfer_legs(status: dict) -> list[ChainLeg]:
    """Legs for each transfer hop whose receiving transaction is visible."""
    legs = []
    for transfer in status.get("transfers", []):
        for hop in transfer.get("transfer_sequence", []):
            info: dict[str, Any] = next(iter(hop.values()), {}) if hop else {}
            packet = info.get("packet_txs", {})
            receive = packet.get("receive_tx")
            if not receive:
                continue
            state = info.get("state", "")
            done = state.endswith("SUCCESS") or state.endswith("RECEIVED")
            legs.append(
                ChainLeg(
                    hop=receive["chain_id"],
                    tx_ref=receive["tx_hash"],
                    state=LegState.COMPLETED if done else LegState.BROADCAST,
                )
            )
    return legs


def released_amount(status: dict) -> Optional[int]:
    """Amount released to the user at the destination, if reported."""
    for transfer in status.get("transfers", []):
        release = transfer.get("transfer_asset_release") or {}
        if release.get("released") and release.get("amount") is not None:
            return int(release["amount"])
    return None
