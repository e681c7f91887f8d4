"""Show-notes orchestration: one transcript in, five concurrent generations out.

The five sections (title, summary, highlights, guest bio, social captions) are
generated by independent chat calls joined as a fan-out/fan-in. The first hard
failure ends the join; results of the other calls are discarded. Calls already
sent to the provider still run to completion because their cost is committed
once dispatched.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Any, Dict, List, Optional, Protocol, Tuple

from . import config_constants
from .exceptions import CostExceededError, EmptyTranscriptError, GenerationFailedError
from .metrics import observe_sla, summarize_calls
from .prompts import store as prompt_store
from .schemas.show_notes import (
    GenerationMetadata,
    GenerationResult,
    parse_highlights,
    parse_social_captions,
)
from .utils.provider_metrics import CallMetrics

logger = logging.getLogger(__name__)

PROMPT_NAMESPACE = "show_notes"
SYSTEM_PROMPT_NAME = f"{PROMPT_NAMESPACE}/system"
SECTIONS = config_constants.SHOW_NOTES_SECTIONS


class ChatProvider(Protocol):
    """The provider capability the orchestrator depends on."""

    def chat_complete(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Tuple[str, CallMetrics]: ...


def build_messages(system_prompt: str, section_prompt: str, transcript: str) -> List[Dict[str, Any]]:
    """Chat messages for one section: system prompt, then prompt + transcript."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": f"{section_prompt}\n\nTranscript:\n{transcript}"},
    ]


class ShowNotesOrchestrator:
    """Generates complete show-notes for a transcript.

    Args:
        provider: Chat-completion provider (cost cap enforced by the provider)
        sla_latency_seconds: Wall-clock latency above which a WARNING is logged
    """

    def __init__(
        self,
        provider: ChatProvider,
        sla_latency_seconds: float = config_constants.DEFAULT_SLA_LATENCY_SECONDS,
    ) -> None:
        self.provider = provider
        self.sla_latency_seconds = sla_latency_seconds

    def load_prompts(self) -> Tuple[str, Dict[str, str]]:
        """Load the system prompt and the five section prompts.

        Raises:
            PromptNotFoundError: If a template is missing
        """
        system_prompt = prompt_store.render_prompt(SYSTEM_PROMPT_NAME)
        section_prompts = {
            section: prompt_store.render_prompt(f"{PROMPT_NAMESPACE}/{section}")
            for section in SECTIONS
        }
        return system_prompt, section_prompts

    def generate(self, transcript: Optional[str]) -> GenerationResult:
        """Generate show-notes for ``transcript``.

        Raises:
            EmptyTranscriptError: If the transcript is missing or blank. No
                provider call is made.
            CostExceededError: If any section call was refused by the daily cost cap
            GenerationFailedError: If any section call failed for another reason
        """
        if not transcript or not transcript.strip():
            raise EmptyTranscriptError()

        start_time = time.perf_counter()
        system_prompt, section_prompts = self.load_prompts()
        responses = self._run_sections(system_prompt, section_prompts, transcript)
        total_latency_ms = (time.perf_counter() - start_time) * 1000

        highlights = parse_highlights(responses["highlights"][0])
        captions = parse_social_captions(responses["social_captions"][0])
        fallback_sections = [
            name
            for name, outcome in (("highlights", highlights), ("social_captions", captions))
            if outcome.is_fallback
        ]
        if fallback_sections:
            logger.info("Using degraded fallback for sections: %s", ", ".join(fallback_sections))

        totals = summarize_calls(metrics for _, metrics in responses.values())
        observe_sla("generate", total_latency_ms, self.sla_latency_seconds)
        logger.info(
            "Generated show-notes in %.0fms (%d tokens, $%.4f, slowest call %.0fms)",
            total_latency_ms,
            totals.total_tokens,
            totals.cost_usd,
            totals.max_latency_ms,
        )

        return GenerationResult(
            title=responses["title"][0].strip(),
            summary=responses["summary"][0].strip(),
            highlights=highlights.value,
            guest_bio=responses["guest_bio"][0].strip(),
            social_captions=captions.value,
            metadata=GenerationMetadata(
                total_latency_ms=total_latency_ms,
                total_tokens=totals.total_tokens,
                cost_usd=totals.cost_usd,
                max_call_latency_ms=totals.max_latency_ms,
                fallback_sections=fallback_sections,
            ),
        )

    def _run_sections(
        self, system_prompt: str, section_prompts: Dict[str, str], transcript: str
    ) -> Dict[str, Tuple[str, CallMetrics]]:
        executor = ThreadPoolExecutor(
            max_workers=len(section_prompts), thread_name_prefix="show-notes"
        )
        try:
            future_to_section: Dict[Future, str] = {
                executor.submit(
                    self.provider.chat_complete, build_messages(system_prompt, prompt, transcript)
                ): section
                for section, prompt in section_prompts.items()
            }
            done, _ = wait(future_to_section, return_when=FIRST_EXCEPTION)
            failed = [future for future in done if future.exception() is not None]
            if failed:
                raise self._select_failure(failed, future_to_section)
            return {
                future_to_section[future]: future.result() for future in future_to_section
            }
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _select_failure(failed: List[Future], future_to_section: Dict[Future, str]) -> Exception:
        """Pick the exception to surface; a cost-cap refusal takes precedence."""
        for future in failed:
            exc = future.exception()
            if isinstance(exc, CostExceededError):
                return exc

        future = failed[0]
        exc = future.exception()
        section = future_to_section[future]
        logger.error(
            "Show-notes section '%s' failed: %s",
            section,
            exc,
            exc_info=(type(exc), exc, exc.__traceback__) if exc else None,
        )
        error = GenerationFailedError(section, str(exc))
        error.__cause__ = exc
        return error
