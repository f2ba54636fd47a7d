"""
Typed key-value store adapter.

Thin wrappers over Redis get/set/hash/set/sorted-set commands. Structured
values are stored JSON-encoded; every read goes through `decode_value`, the
single place where "already parsed object vs. raw JSON string vs. plain
string" is resolved. There is no local caching: each call is a round trip.
Redis errors surface as StoreError; callers decide whether absence means
"empty" or "not found".
"""

import json
from functools import wraps
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

import redis

from swipesync.utils.errors import StoreError


def decode_value(raw: Any) -> Any:
    """
    Normalize a value read from the store.

    Strings that look like JSON objects/arrays are parsed, and a JSON string
    that itself wraps an encoded object is parsed once more. Anything else
    (counters, "completed:<tx>" proofs) is returned unchanged.
    """
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    if not isinstance(raw, str):
        return raw

    text = raw.strip()
    if text[:1] in ("{", "[") or (text[:1] == '"' and text[-1:] == '"'):
        try:
            parsed = json.loads(text)
        except ValueError:
            return raw
        if isinstance(parsed, str):
            return decode_value(parsed)
        return parsed
    return raw


def encode_value(value: Any) -> Any:
    """Encode a value for storage; plain strings and numbers are stored as-is."""
    if isinstance(value, (dict, list, tuple, bool)) or value is None:
        return json.dumps(value, separators=(",", ":"))
    return value


def _store_call(func):
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except redis.RedisError as e:
            raise StoreError(
                f"Store operation {func.__name__} failed: {e}",
                details={"operation": func.__name__},
            ) from e
    return wrapper


class KeyValueStore:
    """Redis-backed store used by every repository and service."""

    def __init__(self, client: redis.Redis, scan_batch_size: int = 200, scan_max_keys: int = 5000):
        self.client = client
        self.scan_batch_size = scan_batch_size
        self.scan_max_keys = scan_max_keys

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    @_store_call
    def get(self, key: str) -> Any:
        return decode_value(self.client.get(key))

    @_store_call
    def get_raw(self, key: str) -> Optional[str]:
        return self.client.get(key)

    @_store_call
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self.client.set(key, encode_value(value), ex=ttl)

    @_store_call
    def set_if_absent(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Atomic SET NX. Returns True when this call created the key."""
        return bool(self.client.set(key, encode_value(value), ex=ttl, nx=True))

    @_store_call
    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(self.client.delete(*keys))

    @_store_call
    def exists(self, key: str) -> bool:
        return bool(self.client.exists(key))

    @_store_call
    def ttl(self, key: str) -> int:
        return int(self.client.ttl(key))

    # ------------------------------------------------------------------
    # Key scans (bounded; never KEYS)
    # ------------------------------------------------------------------

    @_store_call
    def scan_page(self, pattern: str, cursor: int = 0, count: Optional[int] = None) -> Tuple[int, List[str]]:
        """One SCAN step. A returned cursor of 0 means iteration is complete."""
        next_cursor, keys = self.client.scan(
            cursor=cursor, match=pattern, count=count or self.scan_batch_size
        )
        return int(next_cursor), list(keys)

    def iter_keys(self, pattern: str) -> Iterator[str]:
        """
        Every key matching `pattern`, with no cap, one SCAN page at a time.
        SCAN can return a key more than once; callers that count de-duplicate.
        """
        cursor = 0
        while True:
            cursor, keys = self.scan_page(pattern, cursor)
            yield from keys
            if cursor == 0:
                break

    def scan_keys(self, pattern: str, limit: Optional[int] = None) -> List[str]:
        """
        Collect keys matching `pattern`, stopping at `limit` (default
        scan_max_keys). Results are de-duplicated and sorted.
        """
        limit = limit or self.scan_max_keys
        found: Set[str] = set()
        cursor = 0
        while True:
            cursor, keys = self.scan_page(pattern, cursor)
            found.update(keys)
            if cursor == 0 or len(found) >= limit:
                break
        return sorted(found)[:limit]

    # ------------------------------------------------------------------
    # Hashes
    # ------------------------------------------------------------------

    @_store_call
    def hget(self, key: str, field: str) -> Optional[str]:
        return self.client.hget(key, field)

    @_store_call
    def hgetall(self, key: str) -> Dict[str, str]:
        return dict(self.client.hgetall(key) or {})

    @_store_call
    def hset(self, key: str, mapping: Dict[str, Any]) -> None:
        self.client.hset(key, mapping={k: encode_value(v) for k, v in mapping.items()})

    @_store_call
    def hsetnx(self, key: str, field: str, value: Any) -> bool:
        return bool(self.client.hsetnx(key, field, encode_value(value)))

    @_store_call
    def hincrby_many(self, key: str, increments: Dict[str, int]) -> Dict[str, int]:
        """Several HINCRBYs on one hash in one MULTI/EXEC; returns the new values by field."""
        pipe = self.client.pipeline(transaction=True)
        for field, amount in increments.items():
            pipe.hincrby(key, field, amount)
        results = pipe.execute()
        return {field: int(value) for field, value in zip(increments, results)}

    @_store_call
    def hdel(self, key: str, *fields: str) -> int:
        return int(self.client.hdel(key, *fields))

    @_store_call
    def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        return int(self.client.hincrby(key, field, amount))

    @_store_call
    def hincrbyfloat(self, key: str, field: str, amount: float) -> float:
        return float(self.client.hincrbyfloat(key, field, amount))

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    @_store_call
    def sadd(self, key: str, *members: str) -> int:
        """Returns the number of members that were newly added."""
        return int(self.client.sadd(key, *members))

    @_store_call
    def srem(self, key: str, *members: str) -> int:
        return int(self.client.srem(key, *members))

    @_store_call
    def smembers(self, key: str) -> Set[str]:
        return set(self.client.smembers(key) or set())

    @_store_call
    def scard(self, key: str) -> int:
        return int(self.client.scard(key))

    @_store_call
    def sismember(self, key: str, member: str) -> bool:
        return bool(self.client.sismember(key, member))

    # ------------------------------------------------------------------
    # Sorted sets
    # ------------------------------------------------------------------

    @_store_call
    def zincrby(self, key: str, amount: float, member: str) -> float:
        return float(self.client.zincrby(key, amount, member))

    @_store_call
    def zrevrange_with_scores(self, key: str, start: int, stop: int) -> List[Tuple[str, float]]:
        return [(member, float(score)) for member, score in self.client.zrevrange(key, start, stop, withscores=True)]
