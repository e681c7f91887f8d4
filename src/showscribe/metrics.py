"""Aggregation of per-call provider metrics and SLA observation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .utils.provider_metrics import CallMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallTotals:
    """Summed view over a set of provider calls.

    Tokens and cost are summed; latency is reported both as the maximum (the
    relevant figure for concurrent calls) and as the plain sum.
    """

    call_count: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0
    max_latency_ms: float = 0.0
    sum_latency_ms: float = 0.0


def summarize_calls(calls: Iterable[CallMetrics]) -> CallTotals:
    call_count = 0
    prompt_tokens = completion_tokens = total_tokens = 0
    cost_usd = max_latency_ms = sum_latency_ms = 0.0
    for call in calls:
        call_count += 1
        prompt_tokens += call.prompt_tokens
        completion_tokens += call.completion_tokens
        total_tokens += call.total_tokens
        cost_usd += call.cost_usd
        max_latency_ms = max(max_latency_ms, call.latency_ms)
        sum_latency_ms += call.latency_ms
    return CallTotals(
        call_count=call_count,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        cost_usd=cost_usd,
        max_latency_ms=max_latency_ms,
        sum_latency_ms=sum_latency_ms,
    )


def observe_sla(operation: str, latency_ms: float, threshold_seconds: float) -> bool:
    """Log a WARNING event when ``latency_ms`` exceeds the SLA threshold.

    Returns:
        True if the SLA was breached. A breach never fails the request.
    """
    if latency_ms <= threshold_seconds * 1000:
        return False
    logger.warning(
        "sla_breach operation=%s latency_ms=%.0f threshold_ms=%.0f",
        operation,
        latency_ms,
        threshold_seconds * 1000,
        extra={
            "event": "sla_breach",
            "operation": operation,
            "latency_ms": latency_ms,
            "threshold_ms": threshold_seconds * 1000,
        },
    )
    return True
