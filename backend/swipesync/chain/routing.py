"""
Prediction id -> contract routing.

Each cached prediction id maps to exactly one (contract version, address,
on-chain numeric id). Explicit entries registered in the `contract-routes`
hash win; otherwise the configured prefix rules are tried in order, and
the rest of the id after the prefix must be the numeric on-chain id.

    pred_v2_225 -> usdc,   onchain 225   (rule "pred_v2_=usdc")
    17          -> legacy, onchain 17    (rule "=legacy")
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from swipesync.chain.contracts import ContractVersion
from swipesync.db import keys
from swipesync.db.store import KeyValueStore, decode_value
from swipesync.utils.errors import RoutingError
from swipesync.utils.validation import require_prediction_id


@dataclass(frozen=True)
class ContractRoute:
    prediction_id: str
    version: ContractVersion
    address: str
    onchain_id: int


def _parse_version(value: str) -> ContractVersion:
    try:
        return ContractVersion(value)
    except ValueError:
        raise RoutingError(f"Unknown contract version: {value}", details={"version": value})


class RouteTable:
    """Explicit registry backed by the store, with prefix rules as fallback."""

    def __init__(
        self,
        store: KeyValueStore,
        rules: Sequence[Tuple[str, str]],
        addresses: Dict[ContractVersion, str],
    ):
        self.store = store
        self.rules = [(prefix, _parse_version(version)) for prefix, version in rules]
        self.addresses = addresses

    def _route(self, prediction_id: str, version: ContractVersion, onchain_id: int) -> ContractRoute:
        address = self.addresses.get(version)
        if not address:
            raise RoutingError(
                f"No contract address configured for {version.value}",
                details={"predictionId": prediction_id, "version": version.value},
            )
        return ContractRoute(prediction_id, version, address, onchain_id)

    def match_rules(self, prediction_id: str) -> Optional[Tuple[ContractVersion, int]]:
        for prefix, version in self.rules:
            if not prediction_id.startswith(prefix):
                continue
            rest = prediction_id[len(prefix):]
            if rest.isdigit():
                return version, int(rest)
        return None

    def resolve(self, prediction_id: str) -> ContractRoute:
        """
        Resolve the contract route for a cached prediction id.

        Raises:
            RoutingError: no explicit entry and no rule matches
        """
        require_prediction_id(prediction_id)

        entry = decode_value(self.store.hget(keys.CONTRACT_ROUTES, prediction_id))
        if isinstance(entry, dict):
            return self._route(
                prediction_id,
                _parse_version(entry.get("version", "")),
                int(entry.get("onchainId", 0)),
            )

        matched = self.match_rules(prediction_id)
        if matched is None:
            raise RoutingError(
                f"No contract route for prediction {prediction_id}",
                details={"predictionId": prediction_id},
            )
        return self._route(prediction_id, *matched)

    def register(
        self,
        prediction_id: str,
        version: ContractVersion,
        onchain_id: Optional[int] = None,
    ) -> ContractRoute:
        """Persist an explicit route, usually at on-chain registration time."""
        require_prediction_id(prediction_id)
        version = _parse_version(version)

        if onchain_id is None:
            matched = self.match_rules(prediction_id)
            if matched is None:
                raise RoutingError(
                    f"On-chain id required for prediction {prediction_id}",
                    details={"predictionId": prediction_id},
                )
            onchain_id = matched[1]

        route = self._route(prediction_id, version, onchain_id)
        self.store.hset(
            keys.CONTRACT_ROUTES,
            {prediction_id: {"version": version.value, "onchainId": onchain_id}},
        )
        for other in ContractVersion:
            if other != version:
                self.store.srem(keys.registered_ids(other.value), prediction_id)
        self.store.sadd(keys.registered_ids(version.value), prediction_id)
        logger.info(f"Registered route {prediction_id} -> {version.value}#{onchain_id}")
        return route

    def known_ids(self, version: Optional[ContractVersion] = None) -> List[str]:
        """Explicitly registered prediction ids, optionally for one version."""
        versions = [version] if version else list(ContractVersion)
        found = set()
        for v in versions:
            found.update(self.store.smembers(keys.registered_ids(v.value)))
        return sorted(found)
