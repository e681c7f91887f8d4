"""Key-value counter stores shared by the cost guard and the rate limiter.

This package contains:
- The CounterStore protocol (base.py)
- A process-local implementation for tests and single-instance use (memory.py)
- A Redis-backed implementation for shared, restart-surviving counters (redis_store.py)
"""

from .base import CounterStore
from .factory import create_counter_store
from .memory import InMemoryCounterStore

__all__ = ["CounterStore", "InMemoryCounterStore", "create_counter_store"]
