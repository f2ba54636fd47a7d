"""
Claim stats and leaderboard tests.
"""

import threading
from decimal import Decimal

import pytest

from swipesync.db import keys
from swipesync.services.stats import StatsAggregator
from swipesync.utils.errors import AuthorizationError, MissingSecretError, ValidationError

from tests.fakes import ALICE, BOB, CAROL

SECRET = "s3cret"


@pytest.fixture
def stats(store):
    return StatsAggregator(store, secret=SECRET)


class TestRecordClaim:

    def test_avg_streak_is_mean(self, stats, store):
        streaks = [3, 7, 1, 10, 4, 4, 2]
        for streak in streaks:
            stats.record_claim(ALICE, 1, streak, secret=SECRET)

        expected = Decimal(sum(streaks)) / len(streaks)
        stored = Decimal(store.hget(keys.DAILY_TASK_STATS, "avgStreak"))
        assert abs(stored - expected) < Decimal("1e-9")
        assert stats.get_stats()["stats"]["avgStreak"] == pytest.approx(float(expected))

    def test_concurrent_claims_keep_exact_mean(self, stats, store, monkeypatch):
        both_counted = threading.Barrier(2, timeout=5)
        original_hset = store.hset

        def hset_after_both(key, mapping):
            # Both claims have incremented before either writes its mirrors
            both_counted.wait()
            original_hset(key, mapping)

        monkeypatch.setattr(store, "hset", hset_after_both)

        workers = [
            threading.Thread(target=stats.record_claim, args=(address, 1, streak), kwargs={"secret": SECRET})
            for address, streak in ((ALICE, 10), (BOB, 20))
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        snapshot = stats.get_stats()["stats"]
        assert snapshot["totalClaims"] == 2
        assert snapshot["avgStreak"] == 15.0

    def test_avg_streak_carried_over_from_mean_only_stats(self, stats, store):
        store.hset(keys.DAILY_TASK_STATS, {"totalClaims": 2, "avgStreak": "3"})

        result = stats.record_claim(ALICE, 1, 9, secret=SECRET)

        assert result["totalClaims"] == 3
        assert result["avgStreak"] == 5.0

    def test_counters(self, stats):
        stats.record_claim(ALICE, "0.5", 1, is_jackpot=True, secret=SECRET)
        stats.record_claim(ALICE, "1.25", 2, secret=SECRET)
        result = stats.record_claim(BOB, 3, 3, secret=SECRET)

        assert result["totalClaims"] == 3
        snapshot = stats.get_stats()["stats"]
        assert snapshot["totalClaims"] == 3
        assert snapshot["totalUsers"] == 2
        assert snapshot["jackpotsHit"] == 1
        assert snapshot["totalDistributed"] == "4.75"

    def test_total_distributed_has_no_float_drift(self, stats):
        for _ in range(10):
            stats.record_claim(ALICE, "0.1", 1, secret=SECRET)
        assert stats.get_stats()["stats"]["totalDistributed"] == "1"

    def test_leaderboard_ranked(self, stats):
        stats.record_claim(ALICE, 5, 1, secret=SECRET)
        stats.record_claim(BOB, 9, 1, secret=SECRET)
        stats.record_claim(CAROL, 1, 1, secret=SECRET)
        stats.record_claim(ALICE, 5, 1, secret=SECRET)

        leaderboard = stats.get_stats()["leaderboard"]
        assert [entry["address"] for entry in leaderboard] == [ALICE, BOB, CAROL]
        assert leaderboard[0]["totalClaimed"] == 10

    def test_leaderboard_top_ten(self, stats):
        for n in range(12):
            stats.record_claim("0x" + format(n + 1, "040x"), n + 1, 1, secret=SECRET)
        assert len(stats.get_stats()["leaderboard"]) == 10


class TestAuthorization:

    def test_wrong_secret_writes_nothing(self, stats, redis_client):
        with pytest.raises(AuthorizationError):
            stats.record_claim(ALICE, 1, 1, secret="nope")
        assert redis_client.keys("*") == []

    def test_missing_secret_configuration(self, store):
        with pytest.raises(MissingSecretError):
            StatsAggregator(store, secret="").record_claim(ALICE, 1, 1, secret="anything")

    @pytest.mark.parametrize("amount", ["-1", "abc", "NaN"])
    def test_bad_amount_rejected(self, stats, amount):
        with pytest.raises(ValidationError):
            stats.record_claim(ALICE, amount, 1, secret=SECRET)


def test_empty_stats(stats):
    result = stats.get_stats()
    assert result["stats"] == {
        "totalUsers": 0,
        "totalClaims": 0,
        "totalDistributed": "0",
        "avgStreak": 0.0,
        "jackpotsHit": 0,
    }
    assert result["leaderboard"] == []
