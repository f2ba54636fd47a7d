"""
Key-value store adapter tests.

Covers the single decoding boundary, TTL writes, bounded scans and the
translation of Redis errors into StoreError.
"""

import json
from unittest.mock import MagicMock

import pytest
import redis

from swipesync.db.store import KeyValueStore, decode_value, encode_value
from swipesync.utils.errors import StoreError


class TestDecodeValue:
    """Values may come back parsed, JSON-encoded or double-encoded."""

    def test_passthrough_for_plain_strings(self):
        assert decode_value("completed:0xabc") == "completed:0xabc"
        assert decode_value("42") == "42"

    def test_parses_json_object(self):
        assert decode_value('{"id": "17", "resolved": false}') == {"id": "17", "resolved": False}

    def test_parses_double_encoded_object(self):
        double = json.dumps(json.dumps({"id": "17"}))
        assert decode_value(double) == {"id": "17"}

    def test_already_parsed_values_are_untouched(self):
        doc = {"id": "17"}
        assert decode_value(doc) is doc
        assert decode_value(None) is None

    def test_bytes_are_decoded(self):
        assert decode_value(b'[1, 2]') == [1, 2]

    def test_invalid_json_returned_raw(self):
        assert decode_value("{not json") == "{not json"

    def test_encode_keeps_scalars(self):
        assert encode_value("x") == "x"
        assert encode_value(5) == 5
        assert encode_value({"a": 1}) == '{"a":1}'
        assert encode_value(True) == "true"


class TestKeyValueStore:

    def test_set_and_get_document(self, store):
        store.set("prediction:1", {"id": "1", "yesTotalAmount": 10})
        assert store.get("prediction:1") == {"id": "1", "yesTotalAmount": 10}

    def test_set_if_absent_only_first_wins(self, store):
        assert store.set_if_absent("k", "first") is True
        assert store.set_if_absent("k", "second") is False
        assert store.get("k") == "first"

    def test_ttl_applied(self, store):
        store.set("daily", "completed:0x1", ttl=120)
        assert 0 < store.ttl("daily") <= 120

    def test_scan_keys_is_complete_and_sorted(self, store):
        for i in range(120):
            store.set(f"achievements:0x{i:040x}:BETA_TESTER", "completed:0x1")
        store.set("achievements:BETA_TESTER:users", "x")

        found = store.scan_keys("achievements:*:BETA_TESTER")
        assert len(found) == 120
        assert found == sorted(found)

    def test_scan_keys_respects_limit(self, store):
        for i in range(30):
            store.set(f"user_stakes:0x{i:040x}:17", "{}")
        assert len(store.scan_keys("user_stakes:*:17", limit=10)) == 10

    def test_iter_keys_ignores_limit(self, redis_client):
        capped = KeyValueStore(redis_client, scan_batch_size=2, scan_max_keys=3)
        for i in range(7):
            capped.set(f"user_stakes:0x{i:040x}:17", "{}")

        assert len(capped.scan_keys("user_stakes:*:17")) == 3
        assert len(set(capped.iter_keys("user_stakes:*:17"))) == 7

    def test_hash_and_counters(self, store):
        assert store.hincrby("daily-tasks:stats", "totalClaims", 1) == 1
        assert store.hincrby("daily-tasks:stats", "totalClaims", 2) == 3
        store.hset("daily-tasks:stats", {"avgStreak": "2.5"})
        assert store.hgetall("daily-tasks:stats") == {"totalClaims": "3", "avgStreak": "2.5"}

    def test_sets_report_new_members(self, store):
        assert store.sadd("s", "a") == 1
        assert store.sadd("s", "a") == 0
        assert store.scard("s") == 1
        assert store.smembers("s") == {"a"}

    def test_sorted_set_descending(self, store):
        store.zincrby("lb", 5, "alice")
        store.zincrby("lb", 9, "bob")
        store.zincrby("lb", 1, "alice")
        assert store.zrevrange_with_scores("lb", 0, 9) == [("bob", 9.0), ("alice", 6.0)]

    def test_redis_errors_become_store_errors(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("connection refused")
        failing = KeyValueStore(client)

        with pytest.raises(StoreError) as exc_info:
            failing.get("prediction:1")
        assert exc_info.value.details["operation"] == "get"

    def test_delete_without_keys_is_noop(self, store):
        assert store.delete() == 0
