"""
Redis connection management.

Provides a lazily created, process-wide Redis client with connection
pooling and timeouts, plus a health check used at API startup and by the
drift-check job.
"""

import threading
from typing import Optional, Dict, Any

import redis
from loguru import logger

from swipesync.config import settings
from swipesync.utils.errors import StoreError


_client: Optional[redis.Redis] = None
_client_lock = threading.Lock()


def create_client(url: Optional[str] = None) -> redis.Redis:
    """Create a Redis client that returns str instead of bytes."""
    return redis.Redis.from_url(
        url or settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
        health_check_interval=30,
        retry_on_timeout=True,
    )


def get_client() -> redis.Redis:
    """Get the shared Redis client, creating it on first use."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = create_client()
                logger.info("Redis client created")
    return _client


def set_client(client: Optional[redis.Redis]) -> None:
    """Replace the shared client (tests, or after a URL change)."""
    global _client
    with _client_lock:
        _client = client


def check_store_health(client: Optional[redis.Redis] = None) -> Dict[str, Any]:
    """
    Ping the store.

    Returns:
        {"healthy": bool, "error": str | None}
    """
    try:
        (client or get_client()).ping()
        return {"healthy": True, "error": None}
    except redis.RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        return {"healthy": False, "error": str(e)}


def require_healthy_store(client: Optional[redis.Redis] = None) -> None:
    health = check_store_health(client)
    if not health["healthy"]:
        raise StoreError("Key-value store unavailable", details=health)
