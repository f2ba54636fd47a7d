"""
Daily-claim stats and leaderboard.

`daily-tasks:stats` fields:
    totalClaims, totalUsers, jackpotsHit   integer counters (HINCRBY)
    totalDistributedMicros                 exact running total, 1e-6 units (HINCRBY)
    totalDistributed                       decimal string mirror of the above
    totalStreakMicros                      sum of claim streaks, 1e-6 units (HINCRBY)
    avgStreak                              totalStreakMicros / totalClaims mirror

Every counter moves with an atomic increment; the two mirrors
(totalDistributed, avgStreak) are plain writes and may lag by one claim.
Reads derive both from the running sums.
"""

import hmac
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from loguru import logger

from swipesync.config import settings
from swipesync.db import keys
from swipesync.db.store import KeyValueStore
from swipesync.utils.errors import AuthorizationError, MissingSecretError, ValidationError
from swipesync.utils.validation import require_address

MICROS = Decimal(10) ** 6
AVG_PRECISION = Decimal("0.000000000001")
LEADERBOARD_SIZE = 10


def _to_decimal(value: Any, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field}", details={"field": field, "value": value})
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"Invalid {field}", details={"field": field, "value": value})
    return amount


def _format(value: Decimal) -> str:
    return format(value.normalize(), "f")


def _average(total_micros: int, count: int) -> Decimal:
    if count <= 0:
        return Decimal(0)
    return (Decimal(total_micros) / MICROS / count).quantize(AVG_PRECISION)


class StatsAggregator:
    def __init__(self, store: KeyValueStore, secret: Optional[str] = None):
        self.store = store
        self.secret = settings.internal_api_secret if secret is None else secret

    def verify_secret(self, provided: Optional[str]) -> None:
        if not self.secret:
            raise MissingSecretError("INTERNAL_API_SECRET is not configured")
        if not provided or not hmac.compare_digest(str(provided), self.secret):
            raise AuthorizationError("Unauthorized")

    def record_claim(
        self,
        address: str,
        amount: Any,
        streak: Any,
        is_jackpot: bool = False,
        secret: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Fold one claim into the aggregates.

        The counters and running sums move together in one MULTI/EXEC, so
        avgStreak is the exact mean of every streak recorded, however claims
        interleave.

        Raises:
            AuthorizationError: secret mismatch (nothing written)
            ValidationError: malformed address, amount or streak
        """
        self.verify_secret(secret)
        address = require_address(address)
        amount = _to_decimal(amount, "amount")
        streak = _to_decimal(streak, "streak")

        micros = int((amount * MICROS).to_integral_value())
        streak_micros = int((streak * MICROS).to_integral_value())
        self._seed_streak_total()

        increments = {"totalClaims": 1, "totalDistributedMicros": micros, "totalStreakMicros": streak_micros}
        if is_jackpot:
            increments["jackpotsHit"] = 1
        totals = self.store.hincrby_many(keys.DAILY_TASK_STATS, increments)
        total_claims = totals["totalClaims"]

        avg_streak = _average(totals["totalStreakMicros"], total_claims)
        self.store.hset(
            keys.DAILY_TASK_STATS,
            {
                "totalDistributed": _format(Decimal(totals["totalDistributedMicros"]) / MICROS),
                "avgStreak": _format(avg_streak),
            },
        )

        self.store.zincrby(keys.DAILY_TASK_LEADERBOARD, float(amount), address)

        if self.store.sadd(keys.DAILY_TASK_CLAIM_USERS, address):
            self.store.hincrby(keys.DAILY_TASK_STATS, "totalUsers", 1)

        logger.info(f"Claim recorded for {address}: {amount} (streak {streak}, jackpot={bool(is_jackpot)})")
        return {"success": True, "totalClaims": total_claims, "avgStreak": float(avg_streak)}

    def _seed_streak_total(self) -> None:
        """Stats written before totalStreakMicros existed carry only avgStreak; derive the sum once."""
        raw = self.store.hgetall(keys.DAILY_TASK_STATS)
        if "totalStreakMicros" in raw or "avgStreak" not in raw:
            return
        claims = int(raw.get("totalClaims", 0))
        seeded = (Decimal(raw["avgStreak"]) * claims * MICROS).to_integral_value()
        self.store.hsetnx(keys.DAILY_TASK_STATS, "totalStreakMicros", int(seeded))

    def get_stats(self) -> Dict[str, Any]:
        raw = self.store.hgetall(keys.DAILY_TASK_STATS)

        if "totalDistributedMicros" in raw:
            total_distributed = _format(Decimal(raw["totalDistributedMicros"]) / MICROS)
        else:
            total_distributed = raw.get("totalDistributed", "0")

        if "totalStreakMicros" in raw:
            avg_streak = float(_average(int(raw["totalStreakMicros"]), int(raw.get("totalClaims", 0))))
        else:
            avg_streak = float(raw.get("avgStreak", 0))

        leaderboard = [
            {"address": member, "totalClaimed": score}
            for member, score in self.store.zrevrange_with_scores(
                keys.DAILY_TASK_LEADERBOARD, 0, LEADERBOARD_SIZE - 1
            )
        ]
        return {
            "success": True,
            "stats": {
                "totalUsers": int(raw.get("totalUsers", 0)),
                "totalClaims": int(raw.get("totalClaims", 0)),
                "totalDistributed": total_distributed,
                "avgStreak": avg_streak,
                "jackpotsHit": int(raw.get("jackpotsHit", 0)),
            },
            "leaderboard": leaderboard,
        }
