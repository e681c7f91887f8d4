"""Daily provider spend cap.

Spend is accumulated in a counter keyed by UTC calendar date (``cost:YYYY-MM-DD``)
in the injected CounterStore. Every chat call reads the counter before dispatch
and every successful call increments it afterwards.

The read-before-call / increment-after-call sequence is not transactional: two
concurrent calls can both pass the check before either records its spend, so the
cap may be overshot by the cost of the calls in flight. The cap is a soft limit.
Increments themselves are atomic at the store level, so recorded spend is never
undercounted.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from . import config_constants
from .exceptions import CostExceededError
from .stores.base import CounterStore

logger = logging.getLogger(__name__)

COST_KEY_PREFIX = "cost:"
SECONDS_PER_DAY = 86400


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def cost_key_for(moment: datetime) -> str:
    """Counter key for the UTC calendar day containing ``moment``."""
    return f"{COST_KEY_PREFIX}{moment.astimezone(timezone.utc).strftime('%Y-%m-%d')}"


def seconds_until_utc_midnight(moment: datetime) -> int:
    """Whole seconds until the daily counter rolls over (at least 1)."""
    moment = moment.astimezone(timezone.utc)
    next_midnight = (moment + timedelta(days=1)).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return max(1, int((next_midnight - moment).total_seconds()))


class DailyCostCounter:
    """Date-keyed spend accumulator enforcing the daily cap.

    Args:
        store: Counter store holding the per-day totals
        daily_cap: Ceiling on spend per UTC day (USD)
        retention_days: Days a counter is kept before it expires
        now: Clock returning an aware datetime (injectable for tests)
    """

    def __init__(
        self,
        store: CounterStore,
        daily_cap: float = config_constants.DEFAULT_DAILY_COST_CAP_USD,
        retention_days: int = config_constants.DEFAULT_COST_RETENTION_DAYS,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.daily_cap = daily_cap
        self.retention_days = retention_days
        self._now = now

    def current_key(self) -> str:
        return cost_key_for(self._now())

    def current_spend(self) -> Optional[float]:
        """Spend recorded today, or None when the store cannot be read."""
        try:
            raw = self.store.get(self.current_key())
        except Exception as exc:
            logger.warning("Failed to read daily cost counter: %s", exc)
            return None
        if raw is None:
            return 0.0
        try:
            return float(raw)
        except (TypeError, ValueError):
            logger.warning("Daily cost counter holds a non-numeric value: %r", raw)
            return None

    def check(self, estimated_cost: float) -> None:
        """Fail fast if ``estimated_cost`` would push today's spend over the cap.

        When the counter cannot be read the check is skipped (logged at WARNING).

        Raises:
            CostExceededError: If current spend plus the estimate exceeds the cap
        """
        spend = self.current_spend()
        if spend is None:
            logger.warning("Skipping daily cost check: counter unavailable")
            return
        if spend + estimated_cost > self.daily_cap:
            logger.warning(
                "Daily cost cap reached: current=$%.4f estimated=$%.4f cap=$%.2f",
                spend,
                estimated_cost,
                self.daily_cap,
            )
            raise CostExceededError(
                current_spend=spend,
                estimated_cost=estimated_cost,
                daily_cap=self.daily_cap,
                retry_after=seconds_until_utc_midnight(self._now()),
            )

    def record(self, cost: float) -> None:
        """Add ``cost`` to today's counter. Failures are logged, never raised."""
        if cost <= 0:
            return
        key = self.current_key()
        try:
            total = self.store.incr_float(key, cost)
            self.store.expire(key, self.retention_days * SECONDS_PER_DAY)
        except Exception as exc:
            logger.error("Failed to record $%.6f in daily cost counter: %s", cost, exc)
            return
        logger.debug("Recorded $%.6f, daily total now $%.4f", cost, total)
