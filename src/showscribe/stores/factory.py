"""Factory for creating counter stores."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .base import CounterStore
from .memory import InMemoryCounterStore

if TYPE_CHECKING:
    from showscribe.config import Config

logger = logging.getLogger(__name__)


def create_counter_store(cfg: "Config") -> CounterStore:
    """Create the counter store selected by configuration.

    Returns a RedisCounterStore when ``redis_url`` is configured, otherwise a
    process-local InMemoryCounterStore (limits are then per instance only).
    """
    if cfg.redis_url:
        from .redis_store import RedisCounterStore

        logger.info("Using Redis counter store")
        return RedisCounterStore.from_url(cfg.redis_url, timeout=float(cfg.timeout))

    logger.warning(
        "No redis_url configured: cost and rate-limit counters are process-local "
        "and not shared across instances"
    )
    return InMemoryCounterStore()
