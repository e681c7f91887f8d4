"""File-based prompt templates.

Features:
- Jinja2 templates stored as ``<name>.j2`` files
- Loading by logical name (e.g. "show_notes/title")
- In-memory caching to avoid repeated disk I/O
- SHA256 hashes so a log line can identify the exact prompt text used
"""

from __future__ import annotations

import os
from functools import lru_cache
from hashlib import sha256
from pathlib import Path
from typing import Any

from jinja2 import Template

# Root directory of the packaged templates.
# Can be overridden via set_prompt_dir() or the PROMPT_DIR environment variable.
_PROMPT_DIR = Path(__file__).resolve().parent


class PromptNotFoundError(FileNotFoundError):
    """Raised when a requested prompt template is not found on disk."""


def set_prompt_dir(path: str | Path) -> None:
    """Set the root directory for prompt templates.

    Args:
        path: Path to prompt directory
    """
    global _PROMPT_DIR
    _PROMPT_DIR = Path(path).resolve()
    # Clear cache when directory changes
    clear_cache()


def get_prompt_dir() -> Path:
    """Return the directory templates are currently loaded from."""
    env_prompt_dir = os.getenv("PROMPT_DIR")
    if env_prompt_dir:
        return Path(env_prompt_dir).resolve()
    return _PROMPT_DIR


def _template_path(name: str) -> Path:
    # Allow both "show_notes/title" and "show_notes/title.j2"
    rel_path = Path(name if name.endswith(".j2") else name + ".j2")
    return get_prompt_dir() / rel_path


@lru_cache(maxsize=None)
def _load_source(name: str) -> str:
    path = _template_path(name)
    if not path.is_file():
        raise PromptNotFoundError(
            f"Prompt template not found: {path}\n"
            f"  Searched in: {get_prompt_dir()}\n"
            f"  Requested name: {name}"
        )
    return path.read_text(encoding="utf-8")


@lru_cache(maxsize=None)
def _load_template(name: str) -> Template:
    return Template(_load_source(name))


def get_prompt_source(name: str) -> str:
    """Return the raw template text for ``name`` without rendering.

    Raises:
        PromptNotFoundError: If template file doesn't exist
    """
    return _load_source(name)


def render_prompt(name: str, **params: Any) -> str:
    """Render a prompt template with optional parameters.

    Args:
        name: Logical name, e.g. "show_notes/highlights"
        **params: Template parameters passed to Jinja2 .render()

    Returns:
        Rendered prompt string (stripped of leading/trailing whitespace).

    Raises:
        PromptNotFoundError: If template file doesn't exist
    """
    return _load_template(name).render(**params).strip()


def prompt_hash(name: str) -> str:
    """SHA256 hex digest of the raw template source."""
    return sha256(get_prompt_source(name).encode("utf-8")).hexdigest()


def clear_cache() -> None:
    """Drop cached templates (e.g. after editing template files)."""
    _load_source.cache_clear()
    _load_template.cache_clear()
