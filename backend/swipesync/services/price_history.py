"""
Per-prediction price history.

Each stake appends a pool-ratio snapshot. The series is stored as one
document and trimmed to the newest `limit` points (FIFO). Appends are
read-modify-write: two concurrent appends to the same prediction can lose
one point. The series is display-only, so that is accepted.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple, Union

from loguru import logger

from swipesync.config import settings
from swipesync.db.models import PriceHistory, PriceHistoryPoint
from swipesync.db.repositories import PriceHistoryRepository
from swipesync.db.store import KeyValueStore
from swipesync.utils.datetime import unix_millis
from swipesync.utils.errors import ValidationError
from swipesync.utils.validation import require_prediction_id

Number = Union[int, float]


def compute_prices(yes_pool: Number, no_pool: Number) -> Tuple[int, int]:
    """
    (yesPrice, noPrice) in whole percent, always summing to 100.

    Examples:
        >>> compute_prices(30, 70)
        (30, 70)
        >>> compute_prices(1, 2)
        (33, 67)
        >>> compute_prices(0, 0)
        (50, 50)
    """
    total = Decimal(str(yes_pool)) + Decimal(str(no_pool))
    if total <= 0:
        return 50, 50
    yes_price = int((Decimal(str(yes_pool)) * 100 / total).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return yes_price, 100 - yes_price


class PriceHistoryLedger:
    def __init__(self, store: KeyValueStore, limit: Optional[int] = None):
        self.repository = PriceHistoryRepository(store)
        self.limit = limit or settings.price_history_limit

    def get(self, prediction_id: str) -> PriceHistory:
        return self.repository.get(require_prediction_id(prediction_id))

    def append(
        self,
        prediction_id: str,
        yes_pool: Number,
        no_pool: Number,
        bet_amount: Optional[Number] = None,
        bet_side: Optional[str] = None,
        bettor: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[PriceHistoryPoint, int]:
        """
        Append one snapshot.

        Returns:
            (point, total points kept)
        Raises:
            ValidationError: negative pool or unknown bet side
        """
        require_prediction_id(prediction_id)
        if yes_pool < 0 or no_pool < 0:
            raise ValidationError("Pools must be non-negative", details={"yesPool": yes_pool, "noPool": no_pool})
        if bet_side is not None and bet_side.upper() not in ("YES", "NO"):
            raise ValidationError("betSide must be YES or NO", details={"betSide": bet_side})

        yes_price, no_price = compute_prices(yes_pool, no_pool)
        timestamp = unix_millis(now)
        point = PriceHistoryPoint(
            timestamp=timestamp,
            yes_price=yes_price,
            no_price=no_price,
            yes_pool=yes_pool,
            no_pool=no_pool,
            total_pool=yes_pool + no_pool,
            bet_amount=bet_amount,
            bet_side=bet_side.upper() if bet_side else None,
            bettor=bettor.lower() if bettor else None,
        )

        series = self.repository.get(prediction_id)
        history = series.history + [point]
        if len(history) > self.limit:
            history = history[-self.limit:]

        self.repository.save(PriceHistory(prediction_id=prediction_id, history=history, last_updated=timestamp))
        logger.debug(f"Price point for {prediction_id}: {yes_price}/{no_price} ({len(history)} kept)")
        return point, len(history)
