"""Redis-backed counter store.

Redis ``INCRBY``/``INCRBYFLOAT`` are atomic, so the daily cost counter and the
rate-limit windows stay correct under concurrent requests from many instances.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)


class RedisCounterStore:
    """CounterStore backed by a Redis server.

    Args:
        client: A ``redis.Redis`` client (``decode_responses=True`` expected)
    """

    def __init__(self, client: Any) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str, timeout: float = 5.0) -> "RedisCounterStore":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        logger.debug("Created Redis counter store client")
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        value = self.client.get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        if ttl_seconds is not None:
            self.client.set(key, value, px=int(ttl_seconds * 1000))
        else:
            self.client.set(key, value)

    def incr(self, key: str, amount: int = 1) -> int:
        return int(self.client.incrby(key, amount))

    def incr_float(self, key: str, amount: float) -> float:
        return float(self.client.incrbyfloat(key, amount))

    def expire(self, key: str, ttl_seconds: float) -> None:
        self.client.pexpire(key, int(ttl_seconds * 1000))

    def ttl(self, key: str) -> Optional[float]:
        remaining_ms = self.client.pttl(key)
        # -2: key does not exist, -1: key has no expiry
        if remaining_ms is None or remaining_ms < 0:
            return None
        return remaining_ms / 1000.0
