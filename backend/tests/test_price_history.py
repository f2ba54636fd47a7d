"""
Price history ledger tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from swipesync.db import keys
from swipesync.services.price_history import PriceHistoryLedger, compute_prices
from swipesync.utils.errors import ValidationError

from tests.fakes import ALICE


@pytest.fixture
def ledger(store):
    return PriceHistoryLedger(store, limit=1000)


class TestComputePrices:

    @pytest.mark.parametrize("yes,no", [
        (1, 1), (1, 2), (2, 1), (1, 999), (0.3, 0.7), (5, 0), (0, 5), (123456789, 987654321), (0.125, 0.125),
    ])
    def test_prices_sum_to_100(self, yes, no):
        yes_price, no_price = compute_prices(yes, no)
        assert yes_price + no_price == 100
        assert 0 <= yes_price <= 100

    def test_empty_pools_are_even(self):
        assert compute_prices(0, 0) == (50, 50)

    def test_half_rounds_up(self):
        # 1/8 = 12.5%
        assert compute_prices(1, 7) == (13, 87)


class TestAppend:

    def test_point_fields(self, ledger):
        now = datetime(2025, 5, 1, tzinfo=timezone.utc)
        point, total = ledger.append("pred_v2_5", 30, 70, bet_amount=10, bet_side="yes", bettor=ALICE.upper(), now=now)

        assert total == 1
        assert (point.yes_price, point.no_price) == (30, 70)
        assert point.total_pool == 100
        assert point.bet_side == "YES"
        assert point.timestamp == int(now.timestamp() * 1000)

        series = ledger.get("pred_v2_5")
        assert series.last_updated == point.timestamp
        assert series.history[0].bettor == ALICE.upper().lower()

    def test_history_bounded_fifo(self, store):
        ledger = PriceHistoryLedger(store, limit=1000)
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        for i in range(1050):
            ledger.append("17", i, 1, now=start + timedelta(seconds=i))

        history = ledger.get("17").history
        assert len(history) == 1000
        assert history[0].yes_pool == 50
        assert history[-1].yes_pool == 1049
        assert [p.yes_pool for p in history] == list(range(50, 1050))

    def test_negative_pool_rejected(self, ledger, store):
        with pytest.raises(ValidationError):
            ledger.append("17", -1, 5)
        assert not store.exists(keys.price_history("17"))

    def test_bad_bet_side_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.append("17", 1, 1, bet_side="MAYBE")

    def test_stored_document_shape(self, ledger, store):
        ledger.append("17", 1, 3)
        doc = store.get(keys.price_history("17"))

        assert set(doc) == {"predictionId", "history", "lastUpdated"}
        assert set(doc["history"][0]) == {"timestamp", "yesPrice", "noPrice", "yesPool", "noPool", "totalPool"}
