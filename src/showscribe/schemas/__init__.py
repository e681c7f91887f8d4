"""Schemas package for showscribe.

Result models and parsers for the structured sections of generated show-notes.
"""

from .show_notes import (
    GenerationMetadata,
    GenerationResult,
    ParseOutcome,
    SocialCaptions,
    parse_highlights,
    parse_social_captions,
    strip_code_fences,
)

__all__ = [
    "GenerationMetadata",
    "GenerationResult",
    "ParseOutcome",
    "SocialCaptions",
    "parse_highlights",
    "parse_social_captions",
    "strip_code_fences",
]
