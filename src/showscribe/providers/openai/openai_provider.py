"""OpenAI provider for show-notes generation and transcription.

This module provides a single OpenAIProvider class exposing the two provider
capabilities the orchestration core needs:
- Chat completion (GPT API), guarded by the daily cost cap
- Transcription (Whisper API), billed at a flat per-call estimate

Every call produces a CallMetrics record and emits the ``provider_call``
observability event. Provider SDK errors propagate unwrapped; calls are never
retried automatically because a retried call is billed again.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, BinaryIO, Dict, List, Optional, Tuple, Union

from openai import OpenAI

from ... import config
from ...cost_tracking import DailyCostCounter
from ...exceptions import ProviderConfigError
from ...utils.provider_metrics import CallMetrics, emit_call_event
from ..pricing import calculate_chat_cost, estimate_chat_tokens, get_pricing

logger = logging.getLogger(__name__)

_SDK_LOGGERS = (
    "openai",
    "openai._base_client",
    "httpx",
    "httpcore",
)

AudioInput = Union[str, "os.PathLike[str]", BinaryIO]


def _report_failure(
    operation: str, model: str, start_time: float, estimated_cost: float, exc: Exception
) -> None:
    """Emit the provider_call event for a call the SDK rejected; nothing is recorded as spend."""
    metrics = CallMetrics(model=model, latency_ms=(time.perf_counter() - start_time) * 1000)
    emit_call_event(
        metrics, operation, extra={"estimated_cost_usd": estimated_cost}, error=exc
    )


class OpenAIProvider:
    """OpenAI provider implementing chat completion and transcription.

    Both capabilities share one OpenAI client. The client is thread-safe, so one
    provider instance serves the concurrent show-notes calls of every request.
    """

    def __init__(self, cfg: config.Config, cost_counter: DailyCostCounter):
        """Initialize the OpenAI provider.

        Args:
            cfg: Configuration with OpenAI credentials and model settings
            cost_counter: Daily spend counter checked before and updated after calls

        Raises:
            ProviderConfigError: If the OpenAI API key is not provided
        """
        if not cfg.openai_api_key:
            raise ProviderConfigError(
                "OpenAI API key required for OpenAI provider.",
                config_key="openai_api_key",
                suggestion="Set OPENAI_API_KEY environment variable or openai_api_key in config.",
            )

        self.cfg = cfg
        self.cost_counter = cost_counter

        # Keep the SDK's request/response dumps out of our debug output
        root_level = logging.getLogger().level or logging.INFO
        if root_level <= logging.DEBUG:
            for logger_name in _SDK_LOGGERS:
                logging.getLogger(logger_name).setLevel(logging.WARNING)

        # Support custom base_url for testing with mock servers
        client_kwargs: Dict[str, Any] = {"api_key": cfg.openai_api_key, "max_retries": 0}
        if cfg.openai_api_base:
            client_kwargs["base_url"] = cfg.openai_api_base
        self.client = OpenAI(**client_kwargs)

        self.chat_model = cfg.openai_chat_model
        self.transcription_model = cfg.openai_transcription_model
        self.temperature = cfg.openai_temperature
        self.max_tokens = cfg.openai_max_tokens

    def chat_complete(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Tuple[str, CallMetrics]:
        """Run one chat completion under the daily cost cap.

        The cost of the call is estimated from the serialized message length and
        checked against the cap before anything is sent. Actual cost is computed
        from the usage the API reports and recorded after the call.

        Args:
            messages: Chat messages (``role``/``content`` dicts)
            model: Model name (default: ``cfg.openai_chat_model``)
            temperature: Sampling temperature (default: ``cfg.openai_temperature``)
            max_tokens: Completion token limit (default: ``cfg.openai_max_tokens``)

        Returns:
            Tuple of (response text, call metrics)

        Raises:
            CostExceededError: If the estimated cost would exceed the daily cap.
                The API is not called in that case.
        """
        model = model or self.chat_model
        temperature = self.temperature if temperature is None else temperature
        max_tokens = max_tokens or self.max_tokens
        pricing = get_pricing(model)

        estimated_prompt, estimated_completion = estimate_chat_tokens(messages)
        estimated_cost = calculate_chat_cost(pricing, estimated_prompt, estimated_completion)
        self.cost_counter.check(estimated_cost)

        logger.debug(
            "Chat completion via OpenAI API: model=%s estimated_cost=$%.6f",
            model,
            estimated_cost,
        )
        start_time = time.perf_counter()
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as exc:
            _report_failure("chat", model, start_time, estimated_cost, exc)
            raise
        latency_ms = (time.perf_counter() - start_time) * 1000

        text = response.choices[0].message.content if response.choices else None
        usage = getattr(response, "usage", None)
        prompt_tokens = int(getattr(usage, "prompt_tokens", 0) or 0) if usage else 0
        completion_tokens = int(getattr(usage, "completion_tokens", 0) or 0) if usage else 0
        total_tokens = int(getattr(usage, "total_tokens", 0) or 0) if usage else 0
        if not total_tokens:
            total_tokens = prompt_tokens + completion_tokens

        cost = calculate_chat_cost(pricing, prompt_tokens, completion_tokens)
        self.cost_counter.record(cost)

        metrics = CallMetrics(
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            cost_usd=cost,
            latency_ms=latency_ms,
        )
        emit_call_event(metrics, "chat")
        return (text or "").strip(), metrics

    def transcribe(
        self, audio: AudioInput, model: Optional[str] = None
    ) -> Tuple[str, CallMetrics]:
        """Transcribe audio with the Whisper API.

        Audio duration is unknown before the call, so there is no cap check; the
        flat per-call cost is recorded afterwards.

        Args:
            audio: Path to an audio file or an open binary stream
            model: Transcription model (default: ``cfg.openai_transcription_model``)

        Returns:
            Tuple of (transcript text, call metrics)

        Raises:
            FileNotFoundError: If ``audio`` is a path that does not exist
        """
        model = model or self.transcription_model
        pricing = get_pricing(model)

        if isinstance(audio, (str, os.PathLike)) and not os.path.exists(audio):
            raise FileNotFoundError(f"Audio file not found: {audio}")

        start_time = time.perf_counter()
        try:
            if isinstance(audio, (str, os.PathLike)):
                logger.debug("Transcribing audio file via OpenAI API: %s", audio)
                with open(audio, "rb") as audio_file:
                    transcript = self.client.audio.transcriptions.create(
                        model=model,
                        file=audio_file,
                        response_format="text",
                    )
            else:
                transcript = self.client.audio.transcriptions.create(
                    model=model,
                    file=audio,
                    response_format="text",
                )
        except Exception as exc:
            _report_failure("transcription", model, start_time, pricing.flat_cost_per_call, exc)
            raise
        latency_ms = (time.perf_counter() - start_time) * 1000

        # transcript is a string when response_format="text"
        text = transcript if isinstance(transcript, str) else str(getattr(transcript, "text", ""))

        cost = pricing.flat_cost_per_call
        self.cost_counter.record(cost)

        metrics = CallMetrics(model=model, cost_usd=cost, latency_ms=latency_ms)
        emit_call_event(metrics, "transcription", extra={"characters": len(text)})
        logger.debug("OpenAI transcription completed: %d characters", len(text))
        return text.strip(), metrics
