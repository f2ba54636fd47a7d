"""
Reconciliation of cached predictions and positions against on-chain state.

For one prediction id the engine resolves its contract route, reads the
contract, merges pool totals and resolution flags into the cached record and
upserts the positions of (a bounded slice of) its participants. The legacy
contract writes the native fields and ETH/SWIPE positions; the USDC contract
writes only the usdc* fields and USDC positions. Neither ever overwrites the
other's resolution state.

Every operation returns a structured dict. Failures local to one id, one
participant or one position are logged and reported in that dict; they never
abort the enclosing batch.
"""

from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from swipesync.chain.client import OnChainPrediction
from swipesync.chain.contracts import VERSION_ASSETS, ContractVersion
from swipesync.chain.routing import ContractRoute, RouteTable
from swipesync.config import settings
from swipesync.db import keys
from swipesync.db.models import Asset, PredictionRecord, to_units
from swipesync.db.repositories import PositionRepository, PredictionRepository
from swipesync.db.store import KeyValueStore
from swipesync.utils.errors import (
    ContractReadError,
    RecordNotFoundError,
    RoutingError,
    StoreError,
    SwipeSyncError,
)
from swipesync.utils.locks import KeyedLocks


def _units(amount: int, asset: Asset) -> float:
    return float(to_units(amount, asset))


class ReconciliationEngine:
    """Pulls authoritative contract state into the cache."""

    def __init__(
        self,
        store: KeyValueStore,
        client,
        routes: RouteTable,
        participant_cap: Optional[int] = None,
        locks: Optional[KeyedLocks] = None,
    ):
        self.store = store
        self.client = client
        self.routes = routes
        self.locks = locks or KeyedLocks()
        self.predictions = PredictionRepository(store, self.locks)
        self.positions = PositionRepository(store, self.locks)
        self.participant_cap = participant_cap or settings.sync_participant_cap

    # ------------------------------------------------------------------
    # Single prediction
    # ------------------------------------------------------------------

    def sync_one(self, prediction_id: str) -> Dict[str, Any]:
        """
        Sync one prediction from its contract.

        Result statuses:
            not_registered   contract has no such id; nothing written
            missing_locally  contract knows the id but the cache does not
            synced           record merged, participant slice processed
            partial          record merged, participant list unreadable
            error            routing or contract read failed
        """
        result: Dict[str, Any] = {"predictionId": prediction_id, "success": False, "registered": False}

        try:
            route = self.routes.resolve(prediction_id)
            result["version"] = route.version.value
            onchain = self.client.get_prediction(route)
        except (RoutingError, ContractReadError) as e:
            logger.warning(f"Sync {prediction_id} failed before merge: {e.message}")
            result.update(status="error", error=e.message)
            return result

        if not onchain.registered:
            logger.info(f"Prediction {prediction_id} not registered on {route.version.value} contract")
            result.update(success=True, status="not_registered")
            return result

        result["registered"] = True
        if self.predictions.get(prediction_id) is None:
            logger.error(f"Prediction {prediction_id} is on-chain but missing from cache")
            result.update(status="missing_locally", error=f"Prediction {prediction_id} not found in cache")
            return result

        legacy = route.version == ContractVersion.LEGACY
        participants = None
        participants_error = None
        if legacy or onchain.participant_count > 0:
            try:
                participants = self.client.get_participants(route)
            except ContractReadError as e:
                participants_error = e.message
        if legacy and participants is not None:
            onchain.participant_count = len(participants)

        try:
            record = self.predictions.update(
                prediction_id, lambda r: self._merge(r, onchain, participants)
            )
        except RecordNotFoundError:
            result.update(status="missing_locally", error=f"Prediction {prediction_id} not found in cache")
            return result
        except StoreError as e:
            logger.error(f"Failed to persist sync of {prediction_id}: {e.message}")
            result.update(status="error", error=e.message)
            return result

        if legacy:
            self.predictions.refresh_index(record)

        asset = onchain.pool_asset
        result.update(
            success=True,
            status="synced",
            yesPool=_units(onchain.yes_pool, asset),
            noPool=_units(onchain.no_pool, asset),
            participantCount=onchain.participant_count,
        )

        if participants_error is not None:
            logger.warning(f"Participant list for {prediction_id} unreadable: {participants_error}")
            result.update(success=False, status="partial", error=participants_error)
        elif participants:
            result.update(self._sync_positions(route, participants))

        return result

    def _merge(
        self,
        record: PredictionRecord,
        onchain: OnChainPrediction,
        participants: Optional[List[str]],
    ) -> None:
        if onchain.version == ContractVersion.USDC:
            record.usdc_pool_enabled = True
            record.usdc_yes_total_amount = onchain.yes_pool
            record.usdc_no_total_amount = onchain.no_pool
            record.usdc_resolved = onchain.resolved
            record.usdc_cancelled = onchain.cancelled
            record.usdc_outcome = onchain.outcome
            record.usdc_participant_count = onchain.participant_count
            if participants is not None:
                record.usdc_participants = participants
            return

        record.yes_total_amount = onchain.yes_pool
        record.no_total_amount = onchain.no_pool
        record.swipe_yes_total_amount = onchain.swipe_yes_pool
        record.swipe_no_total_amount = onchain.swipe_no_pool
        record.resolved = onchain.resolved
        record.cancelled = onchain.cancelled
        if onchain.resolved:
            record.outcome = onchain.outcome
        if participants is not None:
            record.participants = participants

    def _sync_positions(self, route: ContractRoute, participants: List[str]) -> Dict[str, Any]:
        """Upsert one capped slice of participants, resuming from the stored cursor."""
        cursor_key = keys.sync_cursor(route.prediction_id)
        start = int(self.store.get_raw(cursor_key) or 0)
        if start >= len(participants):
            start = 0

        batch = participants[start:start + self.participant_cap]
        next_cursor = start + len(batch)
        if next_cursor >= len(participants):
            next_cursor = 0

        written = 0
        failed: List[str] = []
        for user in batch:
            try:
                positions = self.client.get_positions(route, user)
            except ContractReadError as e:
                logger.warning(f"Position read for {user} on {route.prediction_id} skipped: {e.message}")
                failed.append(user)
                continue

            for asset, position in positions.items():
                if position.is_empty():
                    continue
                try:
                    self.positions.upsert(
                        user,
                        route.prediction_id,
                        asset,
                        position.to_asset_position(),
                        contract_version=route.version.value,
                    )
                    written += 1
                except StoreError as e:
                    logger.warning(f"Position write for {user} on {route.prediction_id} failed: {e.message}")
                    failed.append(user)

        if next_cursor:
            self.store.set(cursor_key, next_cursor)
        else:
            self.store.delete(cursor_key)

        if failed:
            logger.warning(f"{len(failed)} position(s) on {route.prediction_id} not synced")

        return {
            "participantsSynced": len(batch),
            "positionsWritten": written,
            "positionsFailed": len(failed),
            "failedUsers": failed,
            "nextCursor": next_cursor,
        }

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def sync_many(self, prediction_ids: Iterable[str]) -> Dict[str, Any]:
        """Sync ids one after another; one id's failure never stops the rest."""
        results: Dict[str, Dict[str, Any]] = {}
        for prediction_id in prediction_ids:
            try:
                results[prediction_id] = self.sync_one(prediction_id)
            except Exception as e:
                logger.exception(f"Sync {prediction_id} raised: {e}")
                results[prediction_id] = {
                    "predictionId": prediction_id,
                    "success": False,
                    "registered": False,
                    "status": "error",
                    "error": str(e),
                }

        synced = sum(1 for r in results.values() if r["success"] and r["registered"])
        failed = sum(1 for r in results.values() if not r["success"])
        logger.info(f"Batch sync: {synced} synced, {failed} failed, {len(results)} total")
        return {"synced": synced, "failed": failed, "total": len(results), "results": results}

    def known_ids(self) -> List[str]:
        """Registered ids plus the configured USDC bootstrap ids."""
        ids = list(self.routes.known_ids())
        for onchain_id in settings.usdc_seed_prediction_ids:
            prediction_id = f"pred_v2_{onchain_id}"
            if prediction_id not in ids:
                ids.append(prediction_id)
        return ids

    def sync_all_known(self) -> Dict[str, Any]:
        return self.sync_many(self.known_ids())

    # ------------------------------------------------------------------
    # Drift detection
    # ------------------------------------------------------------------

    def compare(self, prediction_id: str, user: Optional[str] = None) -> Dict[str, Any]:
        """
        Compare contract and cached state without writing anything.

        needsSync is true when pool totals or resolution flags of the
        contract's own pool disagree with the cache. crossContractDivergence
        reports native flags disagreeing with usdc* flags; that is surfaced
        only, since each contract is authoritative for its own pool.
        """
        result: Dict[str, Any] = {"predictionId": prediction_id, "needsSync": False}

        try:
            route = self.routes.resolve(prediction_id)
            result["version"] = route.version.value
            onchain = self.client.get_prediction(route)
        except (RoutingError, ContractReadError) as e:
            result["error"] = e.message
            return result

        record = self.predictions.get(prediction_id)
        result["registered"] = onchain.registered
        result["cached"] = record is not None
        result["contract"] = onchain.to_dict()
        if not onchain.registered:
            return result
        if record is None:
            result["missingLocally"] = True
            return result

        asset = onchain.pool_asset
        cached_yes, cached_no = record.pool_totals(asset)
        cached_resolved, cached_cancelled, cached_outcome = record.resolution_for(asset)

        matches = {
            "resolvedMatch": onchain.resolved == cached_resolved,
            "cancelledMatch": onchain.cancelled == cached_cancelled,
            "outcomeMatch": not onchain.resolved or onchain.outcome == cached_outcome,
            "yesPoolMatch": onchain.yes_pool == cached_yes,
            "noPoolMatch": onchain.no_pool == cached_no,
        }
        if route.version == ContractVersion.USDC:
            matches["poolEnabledMatch"] = record.usdc_pool_enabled
        else:
            swipe_yes, swipe_no = record.pool_totals(Asset.SWIPE)
            matches["swipePoolMatch"] = (onchain.swipe_yes_pool, onchain.swipe_no_pool) == (swipe_yes, swipe_no)

        result.update(matches)
        result["needsSync"] = not all(matches.values())
        result["cache"] = {
            "yesPool": cached_yes,
            "noPool": cached_no,
            "yesPoolUnits": str(to_units(cached_yes, asset)),
            "noPoolUnits": str(to_units(cached_no, asset)),
            "resolved": cached_resolved,
            "cancelled": cached_cancelled,
            "outcome": cached_outcome,
        }
        result["crossContractDivergence"] = self._cross_contract_divergence(record)

        if user:
            result.update(self._compare_position(route, user))
        return result

    @staticmethod
    def _cross_contract_divergence(record: PredictionRecord) -> bool:
        if not record.usdc_pool_enabled:
            return False
        if record.resolved != record.usdc_resolved or record.cancelled != record.usdc_cancelled:
            return True
        return record.resolved and record.outcome != record.usdc_outcome

    def _compare_position(self, route: ContractRoute, user: str) -> Dict[str, Any]:
        cached = self.positions.get(user, route.prediction_id)
        data: Dict[str, Any] = {
            "user": user.lower(),
            "cachedPosition": cached.to_document() if cached else None,
        }
        try:
            onchain_positions = self.client.get_positions(route, user)
        except ContractReadError as e:
            data["positionError"] = e.message
            return data

        data["contractPosition"] = {asset.value: p.to_dict() for asset, p in onchain_positions.items()}
        mismatched = []
        for asset, onchain in onchain_positions.items():
            local = cached.asset(asset) if cached else None
            local_amounts = (local.yes_amount, local.no_amount, local.claimed) if local else (0, 0, False)
            if (onchain.yes_amount, onchain.no_amount, onchain.claimed) != local_amounts:
                mismatched.append(asset.value)
        data["positionMatch"] = not mismatched
        data["positionMismatches"] = mismatched
        return data

    def sync_drifted(self, prediction_ids: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """Compare every id and sync only those that drifted."""
        ids = list(prediction_ids) if prediction_ids is not None else self.known_ids()
        drifted: List[str] = []
        errors: Dict[str, str] = {}

        for prediction_id in ids:
            try:
                comparison = self.compare(prediction_id)
            except SwipeSyncError as e:
                errors[prediction_id] = e.message
                continue
            if "error" in comparison:
                errors[prediction_id] = comparison["error"]
            elif comparison["needsSync"]:
                drifted.append(prediction_id)

        synced = self.sync_many(drifted) if drifted else {"synced": 0, "failed": 0, "total": 0, "results": {}}
        logger.info(f"Drift check: {len(ids)} checked, {len(drifted)} drifted, {len(errors)} unreadable")
        return {"checked": len(ids), "drifted": drifted, "errors": errors, "sync": synced}

    # ------------------------------------------------------------------
    # Pool audit
    # ------------------------------------------------------------------

    def audit_pools(self, prediction_id: str) -> Dict[str, Any]:
        """
        Compare record pool totals with the sum of cached positions, per asset.

        Raises:
            RecordNotFoundError: no cached record
        """
        record = self.predictions.require(prediction_id)
        positions = self.positions.list_for_prediction(prediction_id)

        try:
            version = self.routes.resolve(prediction_id).version
            assets = VERSION_ASSETS[version]
        except RoutingError:
            assets = tuple(Asset)

        report: Dict[str, Any] = {}
        for asset in assets:
            record_yes, record_no = record.pool_totals(asset)
            held = [p.asset(asset) for p in positions if p.asset(asset) is not None]
            positions_yes = sum(p.yes_amount for p in held)
            positions_no = sum(p.no_amount for p in held)
            report[asset.value] = {
                "recordYes": record_yes,
                "recordNo": record_no,
                "positionsYes": positions_yes,
                "positionsNo": positions_no,
                "recordTotalUnits": str(to_units(record_yes + record_no, asset)),
                "positionsTotalUnits": str(to_units(positions_yes + positions_no, asset)),
                "positionCount": len(held),
                "match": (record_yes, record_no) == (positions_yes, positions_no),
            }

        return {
            "predictionId": prediction_id,
            "assets": report,
            "consistent": all(entry["match"] for entry in report.values()),
        }
