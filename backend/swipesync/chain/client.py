"""
Read-only contract client.

Wraps view calls against the legacy ETH/SWIPE contract and the USDC
dual-pool contract and normalizes both layouts into OnChainPrediction and
OnChainPosition. Calls are retried with tenacity; anything still failing
surfaces as ContractReadError so callers can skip that unit of work.

An id the contract does not know is a normal result (registered=False),
never an error.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from loguru import logger
from tenacity import Retrying, retry_if_not_exception_type, stop_after_attempt, wait_exponential
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from swipesync.chain.contracts import ABIS, ContractVersion
from swipesync.chain.routing import ContractRoute
from swipesync.config import settings
from swipesync.db.models import Asset, AssetPosition, to_units
from swipesync.utils.errors import ContractReadError

RPC_ERRORS = (Web3Exception, requests.RequestException, ValueError, TimeoutError, ConnectionError)


@dataclass
class OnChainPrediction:
    """Normalized contract view of one prediction."""

    version: ContractVersion
    onchain_id: int
    registered: bool
    creator: Optional[str] = None
    deadline: int = 0
    yes_pool: int = 0
    no_pool: int = 0
    resolved: bool = False
    cancelled: bool = False
    outcome: Optional[bool] = None
    # Always 0 from the legacy contract, which has no participant counter
    participant_count: int = 0
    # Legacy contract only
    swipe_yes_pool: int = 0
    swipe_no_pool: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def pool_asset(self) -> Asset:
        return Asset.USDC if self.version == ContractVersion.USDC else Asset.ETH

    def to_dict(self) -> Dict[str, Any]:
        asset = self.pool_asset
        data = {
            "version": self.version.value,
            "onchainId": self.onchain_id,
            "registered": self.registered,
            "creator": self.creator,
            "deadline": self.deadline,
            "yesPool": self.yes_pool,
            "noPool": self.no_pool,
            "yesPoolUnits": str(to_units(self.yes_pool, asset)),
            "noPoolUnits": str(to_units(self.no_pool, asset)),
            "resolved": self.resolved,
            "cancelled": self.cancelled,
            "outcome": self.outcome,
            "participantCount": self.participant_count,
        }
        if self.version == ContractVersion.LEGACY:
            data["swipeYesPool"] = self.swipe_yes_pool
            data["swipeNoPool"] = self.swipe_no_pool
        return data


@dataclass
class OnChainPosition:
    """One asset's stake as reported by a contract."""

    asset: Asset
    yes_amount: int = 0
    no_amount: int = 0
    claimed: bool = False
    yes_entry_price: Optional[int] = None
    no_entry_price: Optional[int] = None

    def is_empty(self) -> bool:
        return self.yes_amount == 0 and self.no_amount == 0

    def to_asset_position(self) -> AssetPosition:
        """
        Patch for the cached sub-record. exitedEarly is not reported by
        either contract, so it is left out and the cached value survives.
        """
        patch = AssetPosition(
            yes_amount=self.yes_amount,
            no_amount=self.no_amount,
            claimed=self.claimed,
            token_type=self.asset.value,
        )
        if self.yes_entry_price is not None:
            patch.yes_entry_price = self.yes_entry_price
            patch.no_entry_price = self.no_entry_price
        return patch

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset.value,
            "yesAmount": self.yes_amount,
            "noAmount": self.no_amount,
            "yesUnits": str(to_units(self.yes_amount, self.asset)),
            "noUnits": str(to_units(self.no_amount, self.asset)),
            "claimed": self.claimed,
            "yesEntryPrice": self.yes_entry_price,
            "noEntryPrice": self.no_entry_price,
        }


class ContractReadClient:
    """
    View calls against the prediction-market contracts on Base.

    Any object exposing get_prediction/get_positions/get_participants with
    the same signatures can stand in for this client.
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        timeout: Optional[int] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        w3: Optional[Web3] = None,
    ):
        self.w3 = w3 or Web3(
            Web3.HTTPProvider(
                rpc_url or settings.base_rpc_url,
                request_kwargs={"timeout": timeout or settings.rpc_timeout_seconds},
            )
        )
        attempts = max_attempts or settings.rpc_max_attempts
        backoff = settings.rpc_backoff_seconds if backoff_seconds is None else backoff_seconds
        self._retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=backoff, min=0, max=10),
            # A revert is deterministic; retrying cannot help
            retry=retry_if_not_exception_type(ContractLogicError),
            reraise=True,
        )
        self._contracts: Dict[tuple, Any] = {}

    def _contract(self, route: ContractRoute):
        cache_key = (route.version, route.address.lower())
        if cache_key not in self._contracts:
            self._contracts[cache_key] = self.w3.eth.contract(
                address=Web3.to_checksum_address(route.address),
                abi=ABIS[route.version],
            )
        return self._contracts[cache_key]

    def _call(self, route: ContractRoute, function_name: str, *args):
        fn = getattr(self._contract(route).functions, function_name)(*args)
        try:
            return self._retrying(fn.call)
        except RPC_ERRORS as e:
            logger.warning(f"{route.version.value}.{function_name}{args} failed: {e}")
            raise ContractReadError(
                f"Contract read {function_name} failed for prediction {route.prediction_id}",
                details={
                    "predictionId": route.prediction_id,
                    "version": route.version.value,
                    "function": function_name,
                    "error": str(e),
                },
            ) from e

    # ------------------------------------------------------------------
    # Predictions
    # ------------------------------------------------------------------

    def get_prediction(self, route: ContractRoute) -> OnChainPrediction:
        if route.version == ContractVersion.USDC:
            return self._usdc_prediction(route)
        return self._legacy_prediction(route)

    def _usdc_prediction(self, route: ContractRoute) -> OnChainPrediction:
        (registered, creator, deadline, yes_pool, no_pool,
         resolved, cancelled, outcome, participant_count) = self._call(route, "getPrediction", route.onchain_id)

        if not registered:
            return OnChainPrediction(route.version, route.onchain_id, registered=False)

        return OnChainPrediction(
            version=route.version,
            onchain_id=route.onchain_id,
            registered=True,
            creator=creator.lower() if creator else None,
            deadline=int(deadline),
            yes_pool=int(yes_pool),
            no_pool=int(no_pool),
            resolved=bool(resolved),
            cancelled=bool(cancelled),
            outcome=bool(outcome),
            participant_count=int(participant_count),
        )

    def _legacy_prediction(self, route: ContractRoute) -> OnChainPrediction:
        fields = self._call(route, "predictions", route.onchain_id)
        (question, description, category, image_url,
         yes_total, no_total, swipe_yes_total, swipe_no_total,
         deadline, resolution_deadline, resolved, outcome, cancelled,
         created_at, creator, verified, approved, needs_approval,
         creation_token, creation_token_amount) = fields

        # Unset struct slots read back as zeros
        if int(deadline) == 0:
            return OnChainPrediction(route.version, route.onchain_id, registered=False)

        return OnChainPrediction(
            version=route.version,
            onchain_id=route.onchain_id,
            registered=True,
            creator=creator.lower() if creator else None,
            deadline=int(deadline),
            yes_pool=int(yes_total),
            no_pool=int(no_total),
            swipe_yes_pool=int(swipe_yes_total),
            swipe_no_pool=int(swipe_no_total),
            resolved=bool(resolved),
            cancelled=bool(cancelled),
            outcome=bool(outcome),
            metadata={
                "question": question,
                "description": description,
                "category": category,
                "imageUrl": image_url,
                "resolutionDeadline": int(resolution_deadline),
                "createdAt": int(created_at),
                "verified": bool(verified),
                "approved": bool(approved),
                "needsApproval": bool(needs_approval),
                "creationToken": creation_token,
                "creationTokenAmount": int(creation_token_amount),
            },
        )

    # ------------------------------------------------------------------
    # Participants & positions
    # ------------------------------------------------------------------

    def get_participants(self, route: ContractRoute) -> List[str]:
        """Participant addresses, lower-cased, in contract order."""
        return [address.lower() for address in self._call(route, "getParticipants", route.onchain_id)]

    def get_positions(self, route: ContractRoute, user: str) -> Dict[Asset, OnChainPosition]:
        """Per-asset positions of `user`; assets with no stake are still returned."""
        user = Web3.to_checksum_address(user)

        if route.version == ContractVersion.USDC:
            yes_amount, no_amount, yes_entry, no_entry, claimed = self._call(
                route, "getPosition", route.onchain_id, user
            )
            return {
                Asset.USDC: OnChainPosition(
                    Asset.USDC,
                    yes_amount=int(yes_amount),
                    no_amount=int(no_amount),
                    claimed=bool(claimed),
                    yes_entry_price=int(yes_entry),
                    no_entry_price=int(no_entry),
                )
            }

        positions = {}
        for asset, function_name in ((Asset.ETH, "userStakes"), (Asset.SWIPE, "userSwipeStakes")):
            yes_amount, no_amount, claimed = self._call(route, function_name, route.onchain_id, user)
            positions[asset] = OnChainPosition(
                asset, yes_amount=int(yes_amount), no_amount=int(no_amount), claimed=bool(claimed)
            )
        return positions
