"""Show-notes result schema and section parsing.

Highlights and social captions are requested from the model as JSON but models
do not always comply. Parsing never fails: it returns a tagged ``ParseOutcome``
that is either ``structured`` (the JSON was usable) or ``fallback`` (a degraded
but non-empty value derived from the raw text), so callers and tests can tell
which branch was taken.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config_constants import SOCIAL_PLATFORMS

logger = logging.getLogger(__name__)

T = TypeVar("T")

_BULLET_MARKERS = ("-", "•")
_OPENING_FENCE = re.compile(r"^\s*```[a-zA-Z]*\s*\n?")
_CLOSING_FENCE = re.compile(r"\n?\s*```\s*$")


@dataclass(frozen=True)
class ParseOutcome(Generic[T]):
    """Tagged result of parsing one model response."""

    status: Literal["structured", "fallback"]
    value: T
    raw_text: str

    @property
    def is_fallback(self) -> bool:
        return self.status == "fallback"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SocialCaptions(_CamelModel):
    twitter: str
    linkedin: str
    instagram: str


class GenerationMetadata(_CamelModel):
    """Aggregated metrics of one show-notes generation.

    ``total_latency_ms`` is the wall-clock time of the whole fan-out;
    ``max_call_latency_ms`` is the slowest of the individual calls.
    """

    total_latency_ms: float = Field(ge=0, alias="totalLatencyMs")
    total_tokens: int = Field(ge=0, alias="totalTokens")
    cost_usd: float = Field(ge=0, alias="costUSD")
    max_call_latency_ms: float = Field(default=0.0, ge=0, alias="maxCallLatencyMs")
    fallback_sections: List[str] = Field(default_factory=list, alias="fallbackSections")


class GenerationResult(_CamelModel):
    """Complete show-notes for one transcript."""

    title: str
    summary: str
    highlights: List[str]
    guest_bio: str = Field(alias="guestBio")
    social_captions: SocialCaptions = Field(alias="socialCaptions")
    metadata: GenerationMetadata

    @field_validator("highlights")
    @classmethod
    def _require_highlights(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("highlights must contain at least one entry")
        return value

    def to_response(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys of the HTTP contract."""
        return self.model_dump(by_alias=True)


def strip_code_fences(text: str) -> str:
    """Remove a leading ```/```json fence and a trailing ``` fence, if present."""
    stripped = _OPENING_FENCE.sub("", text.strip(), count=1)
    stripped = _CLOSING_FENCE.sub("", stripped, count=1)
    return stripped.strip()


def _load_json(text: str) -> Any:
    try:
        return json.loads(strip_code_fences(text))
    except (json.JSONDecodeError, TypeError):
        return None


def parse_highlights(raw: str) -> ParseOutcome[List[str]]:
    """Parse the highlights response.

    Expected shape is a JSON array of strings. Otherwise lines starting with a
    bullet marker (``-`` or ``•``) are used with the marker stripped; without
    bullets, every non-empty line; as a last resort the whole text.
    """
    raw = raw or ""
    data = _load_json(raw)
    if isinstance(data, list):
        items = [str(item).strip() for item in data if isinstance(item, (str, int, float))]
        items = [item for item in items if item]
        if items:
            return ParseOutcome("structured", items, raw)

    lines = [line.strip() for line in raw.splitlines() if line.strip()]
    bullets = [
        line[1:].strip()
        for line in lines
        if line.startswith(_BULLET_MARKERS) and line[1:].strip()
    ]
    if bullets:
        value = bullets
    elif lines:
        value = lines
    else:
        value = [raw.strip()]
    logger.debug("Highlights response was not a JSON array; using %d text lines", len(value))
    return ParseOutcome("fallback", value, raw)


def parse_social_captions(raw: str) -> ParseOutcome[SocialCaptions]:
    """Parse the social-captions response.

    Expected shape is a JSON object with a string per platform. Code fences are
    stripped first. When the object is unusable every platform gets the raw text.
    """
    raw = raw or ""
    data = _load_json(raw)
    if isinstance(data, dict) and all(
        isinstance(data.get(platform), str) and data[platform].strip()
        for platform in SOCIAL_PLATFORMS
    ):
        captions = SocialCaptions(**{platform: data[platform] for platform in SOCIAL_PLATFORMS})
        return ParseOutcome("structured", captions, raw)

    logger.debug("Social captions response was not a usable JSON object; using raw text")
    captions = SocialCaptions(**{platform: raw for platform in SOCIAL_PLATFORMS})
    return ParseOutcome("fallback", captions, raw)
