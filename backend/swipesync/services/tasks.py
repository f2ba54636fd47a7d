"""
Task and achievement confirmations.

A confirmation key (`achievements:<addr>:<type>` or
`daily-tasks:<addr>:<type>:<day>`) holding `completed:<txHash>` is the
authoritative record. The `<type>:completions` counter and the
`achievements:<type>:users` set are derived and can drift from it; the admin
operations here report and repair that drift.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from swipesync.config import settings
from swipesync.db import keys
from swipesync.db.store import KeyValueStore
from swipesync.utils.datetime import isoformat, seconds_until_utc_midnight, utc_day
from swipesync.utils.errors import ValidationError
from swipesync.utils.validation import (
    is_address,
    require_address,
    require_task_type,
    require_tx_hash,
)

PROOF_PREFIX = "completed:"


class TaskService:
    """Confirmation writes plus counter/set repair for achievements."""

    def __init__(self, store: KeyValueStore, achievement_types: Optional[Sequence[str]] = None):
        self.store = store
        self.achievement_types = list(achievement_types or settings.achievement_types)

    def is_achievement(self, task_type: str) -> bool:
        return task_type in self.achievement_types

    def require_achievement(self, task_type: str) -> str:
        require_task_type(task_type)
        if not self.is_achievement(task_type):
            raise ValidationError(
                f"Invalid achievement type. Must be one of: {', '.join(self.achievement_types)}",
                details={"taskType": task_type},
            )
        return task_type

    def _counter(self, task_type: str) -> int:
        value = self.store.hget(keys.DAILY_TASK_STATS, keys.task_completions_field(task_type))
        try:
            return int(value or 0)
        except ValueError:
            return 0

    def confirmation_keys(self, task_type: str) -> List[str]:
        """
        Every achievement confirmation key for `task_type` (timestamp keys
        excluded). Not capped by scan_max_keys: recount writes this count
        into the counter.
        """
        found = set()
        for key in self.store.iter_keys(keys.achievement_pattern(task_type)):
            parts = key.split(":")
            if len(parts) == 3 and is_address(parts[1]):
                found.add(key)
        return sorted(found)

    def timestamp_keys(self, task_type: str) -> List[str]:
        return sorted(set(self.store.iter_keys(keys.achievement_timestamp_pattern(task_type))))

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def confirm_task(
        self,
        address: str,
        task_type: str,
        tx_hash: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Record a completed task once.

        The confirmation key is written with SET NX; only the call that
        creates it bumps the counter and the users sets. Repeat calls return
        alreadyConfirmed=True and write nothing.

        Raises:
            ValidationError: malformed address, task type or tx hash
        """
        address = require_address(address)
        require_task_type(task_type)
        require_tx_hash(tx_hash)

        permanent = self.is_achievement(task_type)
        if permanent:
            key = keys.achievement(address, task_type)
            ttl = None
        else:
            key = keys.daily_task(address, task_type, utc_day(now))
            ttl = seconds_until_utc_midnight(now)

        if not self.store.set_if_absent(key, f"{PROOF_PREFIX}{tx_hash}", ttl=ttl):
            logger.info(f"Task {task_type} already confirmed for {address} (tx: {tx_hash})")
            return {
                "success": True,
                "alreadyConfirmed": True,
                "taskType": task_type,
                "address": address,
            }

        if permanent:
            self.store.set(keys.achievement_timestamp(address, task_type), isoformat(now))
        self.store.hincrby(keys.DAILY_TASK_STATS, keys.task_completions_field(task_type), 1)
        if permanent:
            self.store.sadd(keys.achievement_users(task_type), address)
        self.store.sadd(keys.DAILY_TASK_UNIQUE_USERS, address)

        logger.info(f"Task confirmed: {task_type} for {address} (tx: {tx_hash})")
        return {
            "success": True,
            "alreadyConfirmed": False,
            "taskType": task_type,
            "address": address,
            "txHash": tx_hash,
            "permanent": permanent,
        }

    # ------------------------------------------------------------------
    # Admin: inspection and repair
    # ------------------------------------------------------------------

    def recount_achievement(self, task_type: str) -> Dict[str, Any]:
        """
        Reset the completions counter to the number of confirmation keys.

        Key count wins: set members can be orphaned and the counter can
        double-increment on retries. All three pre-repair numbers are
        returned along with which ones disagreed.
        """
        self.require_achievement(task_type)

        key_count = len(self.confirmation_keys(task_type))
        set_count = self.store.scard(keys.achievement_users(task_type))
        counter = self._counter(task_type)

        mismatches = []
        if counter != key_count:
            mismatches.append("counter")
        if set_count != key_count:
            mismatches.append("usersSet")

        if counter != key_count:
            self.store.hset(keys.DAILY_TASK_STATS, {keys.task_completions_field(task_type): key_count})
            logger.warning(f"Recount {task_type}: counter {counter} -> {key_count} (set has {set_count})")
        else:
            logger.info(f"Recount {task_type}: counter already matches {key_count} keys")

        return {
            "success": True,
            "taskType": task_type,
            "before": {
                "confirmationKeys": key_count,
                "usersInSet": set_count,
                "completions": counter,
            },
            "after": {"completions": key_count},
            "mismatches": mismatches,
            "consistent": not mismatches,
        }

    def reset_stats(self, task_type: str, reset_users_set: bool = False) -> Dict[str, Any]:
        """Zero the counter (and optionally drop the users set); confirmation keys stay."""
        self.require_achievement(task_type)

        before = self._counter(task_type)
        actual_users = len(self.confirmation_keys(task_type))

        self.store.hset(keys.DAILY_TASK_STATS, {keys.task_completions_field(task_type): 0})

        users_set_reset = False
        if reset_users_set:
            users_set_reset = self.store.delete(keys.achievement_users(task_type)) > 0

        after = self._counter(task_type)
        logger.info(f"Reset {task_type}:completions from {before} to {after}")
        return {
            "success": True,
            "taskType": task_type,
            "stats": {"before": before, "after": after, "actualUsers": actual_users},
            "usersSetReset": users_set_reset,
        }

    def clean_achievement(self, task_type: str) -> Dict[str, Any]:
        """Delete every trace of an achievement: keys, timestamps, users set and counter."""
        self.require_achievement(task_type)

        confirmation_keys = self.confirmation_keys(task_type)
        timestamp_keys = self.timestamp_keys(task_type)
        users_key = keys.achievement_users(task_type)
        users_in_set = self.store.scard(users_key)
        completions_before = self._counter(task_type)

        self.store.delete(*confirmation_keys)
        self.store.delete(*timestamp_keys)
        users_set_deleted = self.store.delete(users_key) > 0
        self.store.hset(keys.DAILY_TASK_STATS, {keys.task_completions_field(task_type): 0})

        logger.warning(
            f"Cleaned {task_type}: {len(confirmation_keys)} keys, {len(timestamp_keys)} timestamps, "
            f"{users_in_set} set members, counter was {completions_before}"
        )
        return {
            "success": True,
            "taskType": task_type,
            "deleted": {
                "achievementKeys": len(confirmation_keys),
                "timestampKeys": len(timestamp_keys),
                "usersSet": users_set_deleted,
                "usersInSet": users_in_set,
            },
            "before": {
                "completions": completions_before,
                "achievementKeys": len(confirmation_keys),
                "timestampKeys": len(timestamp_keys),
                "usersInSet": users_in_set,
            },
            "after": {
                "completions": self._counter(task_type),
                "remainingKeys": len(self.confirmation_keys(task_type)),
                "remainingTimestamps": len(self.timestamp_keys(task_type)),
                "remainingUsers": self.store.scard(users_key),
            },
        }

    def list_achievements(self, task_type: str) -> Dict[str, Any]:
        """Holders of an achievement with proof tx and claim time, plus drift stats."""
        self.require_achievement(task_type)

        holders: Dict[str, Dict[str, Any]] = {}
        for key in self.confirmation_keys(task_type):
            address = key.split(":")[1].lower()
            holders[address] = self._holder(address, task_type)

        users_from_set = self.store.smembers(keys.achievement_users(task_type))
        orphaned = sorted(a for a in users_from_set if a.lower() not in holders)
        for address in orphaned:
            holders[address.lower()] = self._holder(address, task_type)

        users = sorted(holders.values(), key=lambda u: u["address"])
        users.sort(key=lambda u: u["claimedAt"] or "", reverse=True)

        completions = self._counter(task_type)
        unique_users = len(users)
        return {
            "success": True,
            "taskType": task_type,
            "stats": {
                "completions": completions,
                "uniqueUsers": unique_users,
                "usersFromSet": len(users_from_set),
                "statsMatch": completions == unique_users,
                "setMatch": len(users_from_set) == unique_users,
            },
            "orphanedSetMembers": orphaned,
            "users": users,
        }

    def _holder(self, address: str, task_type: str) -> Dict[str, Any]:
        value = self.store.get(keys.achievement(address, task_type))
        if isinstance(value, str) and value.startswith(PROOF_PREFIX):
            tx_hash = value[len(PROOF_PREFIX):]
        else:
            tx_hash = "unknown"
        claimed_at = self.store.get(keys.achievement_timestamp(address, task_type))
        return {
            "address": address,
            "txHash": tx_hash,
            "claimedAt": claimed_at if isinstance(claimed_at, str) else None,
        }
