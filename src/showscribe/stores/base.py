"""CounterStore protocol definition."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class CounterStore(Protocol):
    """Protocol for counter stores.

    Increments must be atomic at the store level: concurrent callers incrementing
    the same key must never lose an update. Expiry is relative to the call.
    """

    def get(self, key: str) -> Optional[str]:
        """Return the raw value stored at ``key`` or None if absent/expired."""
        ...

    def set(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        """Store ``value`` at ``key``, optionally expiring after ``ttl_seconds``."""
        ...

    def incr(self, key: str, amount: int = 1) -> int:
        """Atomically add an integer amount and return the new value."""
        ...

    def incr_float(self, key: str, amount: float) -> float:
        """Atomically add a float amount and return the new value."""
        ...

    def expire(self, key: str, ttl_seconds: float) -> None:
        """Set the key to expire ``ttl_seconds`` from now."""
        ...

    def ttl(self, key: str) -> Optional[float]:
        """Seconds until ``key`` expires; None if absent or without expiry."""
        ...
