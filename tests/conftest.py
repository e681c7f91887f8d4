"""Shared test helpers for showscribe.

Helpers are plain functions/classes so test modules can import them directly
(``from conftest import create_test_config``) in addition to pytest's conftest
resolution.
"""

from __future__ import annotations

import os
import sys
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

# Make sure tests import the package from src/ when it is not installed
SRC_DIR = Path(__file__).resolve().parent.parent / "src"
if SRC_DIR.is_dir() and str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# Environment variables read by Config must not leak from the developer's shell
_CONFIG_ENV_VARS = (
    "OPENAI_API_KEY",
    "OPENAI_API_BASE",
    "DAILY_COST_CAP",
    "REDIS_URL",
    "QUEUE_DISPATCH_URL",
    "QUEUE_DISPATCH_TOKEN",
    "WORKER_CALLBACK_URL",
    "SHOWSCRIBE_LOG_LEVEL",
    "PROMPT_DIR",
)
for _name in _CONFIG_ENV_VARS:
    os.environ.pop(_name, None)

from showscribe import config  # noqa: E402
from showscribe.config_constants import SHOW_NOTES_SECTIONS  # noqa: E402
from showscribe.prompts.store import render_prompt  # noqa: E402
from showscribe.utils.provider_metrics import CallMetrics  # noqa: E402

TEST_API_KEY = "sk-test123"
TEST_TRANSCRIPT = (
    "Host: Welcome back to the show. Today I'm talking with Dr. Ada Park about "
    "urban beekeeping.\nAda: Thanks for having me. Bees are thriving on rooftops."
)
TEST_BLOB_URL = "https://blob.example.com/uploads/episode.mp3"
MB = 1024 * 1024

DEFAULT_SECTION_RESPONSES: Dict[str, str] = {
    "title": "Rooftop Bees: Urban Beekeeping with Dr. Ada Park",
    "summary": "Dr. Ada Park explains why bees thrive on city rooftops.",
    "highlights": '["Bees thrive on rooftops", "Cities have diverse flowers"]',
    "guest_bio": "Dr. Ada Park is an entomologist who studies urban pollinators.",
    "social_captions": (
        '{"twitter": "Bees love rooftops #bees", '
        '"linkedin": "What urban beekeeping teaches us.", '
        '"instagram": "Rooftop honey! #urbanbees #honey #city"}'
    ),
}


def create_test_config(**overrides: Any) -> config.Config:
    """Create test Config object with defaults.

    Args:
        **overrides: Fields to override from defaults

    Returns:
        config.Config object with test defaults
    """
    defaults: Dict[str, Any] = {
        "openai_api_key": TEST_API_KEY,
        "user_agent": "test-agent",
        "timeout": 5,
        "log_level": "INFO",
    }
    defaults.update(overrides)
    return config.Config(**defaults)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def section_for_messages(messages: List[Dict[str, Any]]) -> str:
    """Identify which show-notes section a chat request belongs to."""
    user_content = messages[-1]["content"]
    for section in SHOW_NOTES_SECTIONS:
        if user_content.startswith(render_prompt(f"show_notes/{section}")):
            return section
    raise AssertionError(f"Unrecognized prompt: {user_content[:80]!r}")


class StubProvider:
    """In-memory stand-in for the OpenAI provider.

    Chat responses are looked up by section; ``failures`` maps a section to the
    exception its call raises. Every call is recorded.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, str]] = None,
        failures: Optional[Dict[str, BaseException]] = None,
        delays: Optional[Dict[str, float]] = None,
        transcript: str = TEST_TRANSCRIPT,
        transcription_error: Optional[BaseException] = None,
        on_transcribe: Optional[Callable[[Any], None]] = None,
    ) -> None:
        self.responses = dict(DEFAULT_SECTION_RESPONSES)
        self.responses.update(responses or {})
        self.failures = failures or {}
        self.delays = delays or {}
        self.transcript = transcript
        self.transcription_error = transcription_error
        self.on_transcribe = on_transcribe
        self.chat_calls: List[str] = []
        self.transcribe_calls: List[Any] = []
        self._lock = threading.Lock()

    def chat_complete(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Tuple[str, CallMetrics]:
        section = section_for_messages(messages)
        with self._lock:
            self.chat_calls.append(section)
        if section in self.delays:
            time.sleep(self.delays[section])
        if section in self.failures:
            raise self.failures[section]
        return self.responses[section], CallMetrics(
            model=model or "gpt-4o",
            prompt_tokens=100,
            completion_tokens=20,
            total_tokens=120,
            cost_usd=0.001,
            latency_ms=10.0,
        )

    def transcribe(self, audio: Any, model: Optional[str] = None) -> Tuple[str, CallMetrics]:
        with self._lock:
            self.transcribe_calls.append(audio)
        if self.on_transcribe is not None:
            self.on_transcribe(audio)
        if self.transcription_error is not None:
            raise self.transcription_error
        return self.transcript, CallMetrics(
            model=model or "whisper-1", cost_usd=0.006, latency_ms=25.0
        )


def make_temp_dir() -> str:
    return tempfile.mkdtemp(prefix="showscribe-test-")


def list_files(directory: str) -> List[str]:
    return sorted(os.listdir(directory))


@pytest.fixture
def test_config():
    return create_test_config()
