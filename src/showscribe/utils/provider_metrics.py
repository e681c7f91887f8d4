"""Per-call provider metrics and the observability event that reports them."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallMetrics:
    """Metrics from a single provider call (chat completion or transcription).

    Produced once per call and owned by the caller that issued it.
    Transcription calls report zero tokens.
    """

    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0
    latency_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def emit_call_event(
    metrics: CallMetrics,
    operation: str,
    *,
    extra: Optional[Dict[str, Any]] = None,
    error: Optional[BaseException] = None,
) -> None:
    """Emit the ``provider_call`` observability event for one provider call.

    This log record is the single metrics channel; fields are attached via
    ``extra`` so the JSON formatter renders them as top-level keys. A failed
    call is reported at ERROR with ``status="error"`` and the exception.

    Args:
        metrics: Metrics of the call (zero tokens and cost when it failed)
        operation: "chat" or "transcription"
        extra: Additional fields to attach to the event
        error: Exception raised by the provider, if the call failed
    """
    fields: Dict[str, Any] = {
        "event": "provider_call",
        "operation": operation,
        "status": "ok" if error is None else "error",
    }
    fields.update(metrics.to_dict())
    if extra:
        fields.update(extra)
    if error is not None:
        fields["error_type"] = type(error).__name__
        logger.error(
            "provider_call failed operation=%s model=%s latency_ms=%.0f: %s",
            operation,
            metrics.model,
            metrics.latency_ms,
            error,
            exc_info=(type(error), error, error.__traceback__),
            extra=fields,
        )
        return
    logger.info(
        "provider_call operation=%s model=%s prompt_tokens=%d completion_tokens=%d "
        "cost_usd=%.6f latency_ms=%.0f",
        operation,
        metrics.model,
        metrics.prompt_tokens,
        metrics.completion_tokens,
        metrics.cost_usd,
        metrics.latency_ms,
        extra=fields,
    )
