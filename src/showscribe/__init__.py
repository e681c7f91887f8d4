"""ShowScribe - podcast show-notes generation service.

This package turns a transcript or an audio recording into structured show-notes
(title, summary, highlights, guest bio, social captions) while governing provider
cost and throughput:
- Five section generations fanned out concurrently per transcript
- A daily provider spend cap checked before every billable call
- Oversized audio compressed, or deferred to an async job queue
- Per-client request rate limiting at the HTTP edge

Programmatic API Example:
    >>> from showscribe import Config, service
    >>> svc = service.create_service(Config(openai_api_key="sk-..."))
    >>> notes = svc.generate(transcript)
    >>> print(notes.social_captions.twitter)

CLI Usage:
    $ showscribe generate transcript.txt
    $ showscribe transcribe episode.mp3
    $ showscribe serve --port 8000
"""

from __future__ import annotations

__version__ = "1.0.0"

# API version follows semantic versioning and is tied to module version
__api_version__ = __version__

from .config import Config, load_config_file  # noqa: E402

__all__ = [
    "Config",
    "load_config_file",
    "__version__",
    "__api_version__",
]
# Note: 'api', 'cli' and 'service' are available via __getattr__ for lazy loading

# Cache for lazy-loaded modules to prevent circular imports
_import_cache: dict[str, object] = {}

_LAZY_MODULES = ("api", "cli", "service")


def __getattr__(name: str):
    if name in _import_cache:
        return _import_cache[name]

    if name in _LAZY_MODULES:
        import importlib

        module = importlib.import_module(f"{__name__}.{name}")
        _import_cache[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
