"""Process-local counter store.

Counters held here are not shared between processes or instances; in a
multi-instance deployment every instance enforces its own limits. Use the Redis
store when limits must hold across instances.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Optional, Tuple

_Entry = Tuple[str, Optional[float]]  # (value, expires_at)


class InMemoryCounterStore:
    """Thread-safe dictionary-backed CounterStore with lazy expiry.

    Args:
        clock: Monotonic time source in seconds (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def _live_entry(self, key: str) -> Optional[_Entry]:
        # Caller must hold the lock
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live_entry(key)
            return entry[0] if entry else None

    def set(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        with self._lock:
            expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
            self._data[key] = (str(value), expires_at)

    def incr(self, key: str, amount: int = 1) -> int:
        with self._lock:
            entry = self._live_entry(key)
            current = int(entry[0]) if entry else 0
            new_value = current + amount
            self._data[key] = (str(new_value), entry[1] if entry else None)
            return new_value

    def incr_float(self, key: str, amount: float) -> float:
        with self._lock:
            entry = self._live_entry(key)
            current = float(entry[0]) if entry else 0.0
            new_value = current + amount
            self._data[key] = (repr(new_value), entry[1] if entry else None)
            return new_value

    def expire(self, key: str, ttl_seconds: float) -> None:
        with self._lock:
            entry = self._live_entry(key)
            if entry is not None:
                self._data[key] = (entry[0], self._clock() + ttl_seconds)

    def ttl(self, key: str) -> Optional[float]:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None or entry[1] is None:
                return None
            return max(0.0, entry[1] - self._clock())
