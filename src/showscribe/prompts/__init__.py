"""Prompt templates for show-notes generation."""

from .store import (
    PromptNotFoundError,
    clear_cache,
    get_prompt_dir,
    render_prompt,
    set_prompt_dir,
)

__all__ = [
    "PromptNotFoundError",
    "clear_cache",
    "get_prompt_dir",
    "render_prompt",
    "set_prompt_dir",
]
