"""
Repository pattern for cached data access.

Provides clean interfaces over the key-value store, hiding key naming and
document decoding. Each repository handles a single aggregate (Prediction,
UserPosition, PriceHistory). Read-modify-write sequences on one key are
serialized through a shared KeyedLocks instance.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from loguru import logger

from swipesync.db import keys
from swipesync.db.models import (
    Asset,
    AssetPosition,
    PredictionRecord,
    PriceHistory,
    UserPosition,
)
from swipesync.db.store import KeyValueStore
from swipesync.utils.datetime import unix_seconds
from swipesync.utils.errors import DuplicateRecordError, RecordNotFoundError, StoreError
from swipesync.utils.locks import KeyedLocks


def _as_document(raw: Any, key: str) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise StoreError(f"Malformed document at {key}", details={"key": key})
    return raw


class PredictionRepository:
    """Repository for PredictionRecord operations."""

    def __init__(self, store: KeyValueStore, locks: Optional[KeyedLocks] = None):
        self.store = store
        self.locks = locks or KeyedLocks()

    def get(self, prediction_id: str) -> Optional[PredictionRecord]:
        """Get prediction by id, or None when the cache has no record."""
        key = keys.prediction(prediction_id)
        doc = _as_document(self.store.get(key), key)
        if doc is None:
            return None
        doc.setdefault("id", prediction_id)
        return PredictionRecord.model_validate(doc)

    def require(self, prediction_id: str) -> PredictionRecord:
        record = self.get(prediction_id)
        if record is None:
            raise RecordNotFoundError(
                f"Prediction {prediction_id} not found",
                details={"predictionId": prediction_id},
            )
        return record

    def save(self, record: PredictionRecord) -> PredictionRecord:
        """Full overwrite of the cached document (last writer wins)."""
        self.store.set(keys.prediction(record.id), record.to_document())
        return record

    def update(self, prediction_id: str, mutate: Callable[[PredictionRecord], None]) -> PredictionRecord:
        """
        Load, mutate and save one record while holding its key lock.

        Raises:
            RecordNotFoundError: no cached record for `prediction_id`
        """
        with self.locks.hold(keys.prediction(prediction_id)):
            record = self.require(prediction_id)
            mutate(record)
            return self.save(record)

    def create(self, record: PredictionRecord) -> PredictionRecord:
        """Create a new prediction and add it to the listing indexes."""
        key = keys.prediction(record.id)
        if not self.store.set_if_absent(key, record.to_document()):
            raise DuplicateRecordError(f"Prediction {record.id} already exists")

        self.store.sadd(keys.PREDICTIONS, record.id)
        if record.category:
            self.store.sadd(keys.predictions_by_category(record.category), record.id)
        self.refresh_index(record)
        logger.info(f"Created prediction {record.id}")
        return record

    def refresh_index(self, record: PredictionRecord, now: Optional[int] = None) -> None:
        """Move a record between the active and resolved sets to match its flags."""
        if record.is_active(now):
            self.store.sadd(keys.PREDICTIONS_ACTIVE, record.id)
            return
        self.store.srem(keys.PREDICTIONS_ACTIVE, record.id)
        if record.resolved or record.cancelled:
            self.store.sadd(keys.PREDICTIONS_RESOLVED, record.id)

    def mark_resolved(self, prediction_id: str, outcome: bool) -> PredictionRecord:
        def apply(record: PredictionRecord) -> None:
            record.resolved = True
            record.outcome = outcome

        record = self.update(prediction_id, apply)
        self.refresh_index(record)
        logger.info(f"Prediction {prediction_id} resolved (outcome={'YES' if outcome else 'NO'})")
        return record

    def mark_cancelled(self, prediction_id: str) -> PredictionRecord:
        def apply(record: PredictionRecord) -> None:
            record.cancelled = True

        record = self.update(prediction_id, apply)
        self.refresh_index(record)
        logger.info(f"Prediction {prediction_id} cancelled")
        return record

    def list_active(self, now: Optional[int] = None) -> List[PredictionRecord]:
        """
        Active predictions.

        The active set is only a candidate list; every member is re-checked
        against PredictionRecord.is_active before being returned.
        """
        now = unix_seconds() if now is None else now
        records = []
        for prediction_id in sorted(self.store.smembers(keys.PREDICTIONS_ACTIVE)):
            record = self.get(prediction_id)
            if record is not None and record.is_active(now):
                records.append(record)
        return records

    def prune_active(self, now: Optional[int] = None) -> List[str]:
        """Remove ids from the active set that are missing or no longer active."""
        now = unix_seconds() if now is None else now
        pruned = []
        for prediction_id in sorted(self.store.smembers(keys.PREDICTIONS_ACTIVE)):
            record = self.get(prediction_id)
            if record is None or not record.is_active(now):
                self.store.srem(keys.PREDICTIONS_ACTIVE, prediction_id)
                pruned.append(prediction_id)

        if pruned:
            logger.info(f"Pruned {len(pruned)} stale ids from the active set")
        return pruned

    def list_all(self, cursor: int = 0, count: Optional[int] = None) -> Tuple[List[PredictionRecord], int]:
        """
        One page of every cached prediction, via SCAN.

        Returns:
            (records, next_cursor); a next_cursor of 0 means the scan is done.
            Pages can be empty while the cursor is still non-zero.
        """
        next_cursor, found = self.store.scan_page(keys.PREDICTION_PATTERN, cursor, count)
        records = []
        for key in sorted(found):
            prediction_id = key.split(":", 1)[1]
            try:
                record = self.get(prediction_id)
            except StoreError as e:
                logger.warning(f"Skipping unreadable prediction {key}: {e.message}")
                continue
            if record is not None:
                records.append(record)
        return records, next_cursor


class PositionRepository:
    """Repository for UserPosition operations."""

    def __init__(self, store: KeyValueStore, locks: Optional[KeyedLocks] = None):
        self.store = store
        self.locks = locks or KeyedLocks()

    def get(self, user: str, prediction_id: str) -> Optional[UserPosition]:
        """Get a position, or None when the user has no stake."""
        key = keys.user_stake(user, prediction_id)
        doc = _as_document(self.store.get(key), key)
        if doc is None:
            return None
        if "user" not in doc and "userId" not in doc:
            doc["user"] = user.lower()
        doc.setdefault("predictionId", prediction_id)
        return UserPosition.model_validate(doc)

    def upsert(
        self,
        user: str,
        prediction_id: str,
        asset: Asset,
        patch: Union[AssetPosition, Dict[str, Any]],
        contract_version: Optional[str] = None,
    ) -> UserPosition:
        """
        Merge one asset's sub-record into a position.

        Only the fields present in `patch` are written; other assets and
        unrelated fields are left untouched.
        """
        if isinstance(patch, AssetPosition):
            patch = patch.model_dump(exclude_unset=True)

        key = keys.user_stake(user, prediction_id)
        with self.locks.hold(key):
            position = self.get(user, prediction_id)
            if position is None:
                position = UserPosition(
                    user=user.lower(),
                    prediction_id=prediction_id,
                    staked_at=unix_seconds(),
                )
            if contract_version:
                position.contract_version = contract_version

            current = position.asset(asset)
            if current is None:
                current = AssetPosition(token_type=asset.value)
            for name, value in patch.items():
                setattr(current, name, value)
            position.set_asset(asset, current)

            self.store.set(key, position.to_document())
        return position

    def list_for_prediction(self, prediction_id: str) -> List[UserPosition]:
        """Every cached position on one prediction (bounded key scan)."""
        positions = []
        for key in self.store.scan_keys(keys.user_stakes_for_prediction(prediction_id)):
            user = key.split(":")[1]
            position = self.get(user, prediction_id)
            if position is not None:
                positions.append(position)
        return positions


class PriceHistoryRepository:
    """Repository for PriceHistory series."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get(self, prediction_id: str) -> PriceHistory:
        """The stored series, or an empty one."""
        raw = self.store.get(keys.price_history(prediction_id))
        if raw is None:
            return PriceHistory(prediction_id=prediction_id)
        if isinstance(raw, list):
            # Bare arrays were written before the series carried metadata
            return PriceHistory(prediction_id=prediction_id, history=raw)
        if not isinstance(raw, dict):
            raise StoreError(f"Malformed price history for {prediction_id}")
        raw.setdefault("predictionId", prediction_id)
        return PriceHistory.model_validate(raw)

    def save(self, history: PriceHistory) -> PriceHistory:
        self.store.set(keys.price_history(history.prediction_id), history.to_document())
        return history
