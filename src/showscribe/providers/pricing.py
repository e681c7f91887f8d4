"""Provider price table and cost arithmetic.

Source: https://openai.com/pricing
Note: Prices subject to change. Always verify current rates at https://openai.com/pricing

Only models the service is configured to use are tracked here. An unknown model
is rejected when ``Config`` is constructed, so cost arithmetic never meets a model
without a price.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

from .. import config_constants

TOKENS_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class ModelPricing:
    """Rates for a single model.

    Chat models are billed per token; transcription models are approximated with a
    flat per-call cost because audio duration is unknown before the call.
    """

    input_cost_per_1m_tokens: float = 0.0
    output_cost_per_1m_tokens: float = 0.0
    flat_cost_per_call: float = 0.0

    @property
    def is_chat(self) -> bool:
        return self.input_cost_per_1m_tokens > 0 or self.output_cost_per_1m_tokens > 0


PRICE_TABLE: Dict[str, ModelPricing] = {
    "gpt-4o": ModelPricing(input_cost_per_1m_tokens=2.50, output_cost_per_1m_tokens=10.00),
    "gpt-4o-mini": ModelPricing(input_cost_per_1m_tokens=0.15, output_cost_per_1m_tokens=0.60),
    "whisper-1": ModelPricing(flat_cost_per_call=0.006),
}


def get_pricing(model: str, table: Mapping[str, ModelPricing] = PRICE_TABLE) -> ModelPricing:
    """Return pricing for ``model``.

    Raises:
        KeyError: If the model has no entry in the price table
    """
    try:
        return table[model]
    except KeyError:
        raise KeyError(
            f"No pricing for model '{model}'. Known models: {sorted(table)}"
        ) from None


def calculate_chat_cost(pricing: ModelPricing, prompt_tokens: float, completion_tokens: float) -> float:
    """Cost in USD for a chat call with the given token counts."""
    return (
        prompt_tokens * pricing.input_cost_per_1m_tokens
        + completion_tokens * pricing.output_cost_per_1m_tokens
    ) / TOKENS_PER_MILLION


def estimate_chat_tokens(messages: List[Dict[str, Any]]) -> Tuple[int, int]:
    """Estimate (prompt, completion) tokens for a chat request before it is sent.

    Uses the serialized message length divided by four for the prompt and 30% of
    that for the expected completion.
    """
    serialized = json.dumps(messages, ensure_ascii=False)
    prompt_tokens = math.ceil(len(serialized) / config_constants.CHARS_PER_TOKEN_ESTIMATE)
    completion_tokens = math.ceil(
        prompt_tokens * config_constants.COMPLETION_TOKEN_RATIO_ESTIMATE
    )
    return prompt_tokens, completion_tokens
