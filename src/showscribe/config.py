from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import config_constants
from .providers.pricing import PRICE_TABLE


# Load .env file if it exists.
# SKIP .env loading in test environments - tests should use Config objects and
# environment variables directly, never rely on .env files
def _is_test_environment() -> bool:
    """Check if we're running in a test environment."""
    import sys

    if "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ:
        return True
    if os.environ.get("TESTING", "").lower() in ("1", "true", "yes"):
        return True
    return False


if not _is_test_environment():
    try:
        load_dotenv(override=False)
    except (PermissionError, OSError):
        # If loading fails, continue without .env file
        pass

# Re-exported constants
DEFAULT_LOG_LEVEL = config_constants.DEFAULT_LOG_LEVEL
DEFAULT_TIMEOUT_SECONDS = config_constants.DEFAULT_TIMEOUT_SECONDS
DEFAULT_USER_AGENT = config_constants.DEFAULT_USER_AGENT
VALID_LOG_LEVELS = config_constants.VALID_LOG_LEVELS
BYTES_PER_MB = config_constants.BYTES_PER_MB

# Environment variable fallbacks: field name -> variable name.
# A variable is only consulted when the field is absent (or None) in the input data.
_ENV_FIELDS: Dict[str, str] = {
    "openai_api_key": "OPENAI_API_KEY",
    "openai_api_base": "OPENAI_API_BASE",
    "daily_cost_cap": "DAILY_COST_CAP",
    "redis_url": "REDIS_URL",
    "dispatch_url": "QUEUE_DISPATCH_URL",
    "dispatch_token": "QUEUE_DISPATCH_TOKEN",
    "worker_callback_url": "WORKER_CALLBACK_URL",
    "log_level": "SHOWSCRIBE_LOG_LEVEL",
}


class Config(BaseModel):
    """Configuration model for the show-notes orchestration service.

    The configuration is organized into several categories:

    - **Provider**: OpenAI credentials, models and generation parameters
    - **Cost**: Daily spend cap and the counter store backing it
    - **Media**: Upload, synchronous-processing and transcription size limits
    - **Compression**: Thresholds at which audio is transcoded before transcription
    - **Rate limiting**: Per-client request window and trusted hosts
    - **Async dispatch**: Message-queue publish endpoint for oversized media
    - **Logging**: Log levels and output destinations

    All fields support validation and provide sensible defaults. The model is immutable
    (frozen) after creation to prevent accidental modification.

    Example:
        >>> from showscribe import Config
        >>> cfg = Config(openai_api_key="sk-...", daily_cost_cap=2.5)

    Example:
        Load configuration from file:

        >>> from showscribe.config import Config, load_config_file
        >>> cfg = Config(**load_config_file("config.yaml"))
    """

    # OpenAI API configuration
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key (prefer OPENAI_API_KEY env var or .env file)",
    )
    openai_api_base: Optional[str] = Field(
        default=None,
        description="OpenAI API base URL. Used for testing against mock servers.",
    )
    openai_chat_model: str = Field(
        default=config_constants.DEFAULT_OPENAI_CHAT_MODEL,
        description="Chat-completion model used for every show-notes section",
    )
    openai_transcription_model: str = Field(
        default=config_constants.DEFAULT_OPENAI_TRANSCRIPTION_MODEL,
        description="Speech-to-text model",
    )
    openai_temperature: float = Field(
        default=config_constants.DEFAULT_OPENAI_TEMPERATURE,
        ge=0.0,
        le=2.0,
        description="Temperature for generation (0.0-2.0, lower = more deterministic)",
    )
    openai_max_tokens: int = Field(
        default=config_constants.DEFAULT_OPENAI_MAX_TOKENS,
        gt=0,
        description="Maximum completion tokens per section",
    )

    # Cost governance
    daily_cost_cap: float = Field(
        default=config_constants.DEFAULT_DAILY_COST_CAP_USD,
        ge=0.0,
        description="Ceiling on provider spend per UTC calendar day (USD)",
    )
    cost_retention_days: int = Field(
        default=config_constants.DEFAULT_COST_RETENTION_DAYS,
        ge=1,
        description="Days a daily cost counter is retained for auditing",
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for shared counters. In-memory counters are used when unset.",
    )

    # Media limits
    max_upload_size_mb: float = Field(
        default=config_constants.DEFAULT_MAX_UPLOAD_SIZE_MB,
        gt=0,
        description="Hard cap on accepted media size",
    )
    sync_size_threshold_mb: float = Field(
        default=config_constants.DEFAULT_SYNC_SIZE_THRESHOLD_MB,
        gt=0,
        description="Media above this size is deferred to the async job queue",
    )
    transcription_size_limit_mb: float = Field(
        default=config_constants.DEFAULT_TRANSCRIPTION_SIZE_LIMIT_MB,
        gt=0,
        description="Largest file the transcription provider accepts",
    )
    temp_dir: Optional[str] = Field(
        default=None,
        description="Directory for temporary media artifacts (default: system temp dir)",
    )

    # Compression
    compress_uncompressed_over_mb: float = Field(
        default=config_constants.DEFAULT_COMPRESS_UNCOMPRESSED_OVER_MB,
        gt=0,
        description="Compress uncompressed formats (WAV) above this size",
    )
    compress_compressed_over_mb: float = Field(
        default=config_constants.DEFAULT_COMPRESS_COMPRESSED_OVER_MB,
        gt=0,
        description="Compress already-compressed formats (MP3) above this size",
    )
    ffmpeg_timeout: int = Field(
        default=config_constants.DEFAULT_FFMPEG_TIMEOUT_SECONDS,
        ge=1,
        description="Timeout for a single ffmpeg transcode (seconds)",
    )

    # Rate limiting
    rate_limit_window_seconds: int = Field(
        default=config_constants.DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
        ge=1,
    )
    rate_limit_max_requests: int = Field(
        default=config_constants.DEFAULT_RATE_LIMIT_MAX_REQUESTS,
        ge=1,
    )
    rate_limit_trusted_hosts: List[str] = Field(
        default_factory=lambda: list(config_constants.DEFAULT_RATE_LIMIT_TRUSTED_HOSTS),
        description="Host header suffixes (e.g. deployment previews) that bypass rate limiting",
    )

    # Async dispatch
    dispatch_url: Optional[str] = Field(
        default=None,
        description="Message-queue publish endpoint. Large media is processed inline when unset.",
    )
    dispatch_token: Optional[str] = Field(default=None, description="Bearer token for dispatch_url")
    worker_callback_url: Optional[str] = Field(
        default=None,
        description="Public URL of the worker callback the dispatcher delivers jobs to",
    )

    # Generation
    sla_latency_seconds: float = Field(
        default=config_constants.DEFAULT_SLA_LATENCY_SECONDS,
        gt=0,
        description="Show-notes wall-clock latency above which a warning is logged",
    )

    # HTTP
    timeout: int = Field(default=DEFAULT_TIMEOUT_SECONDS, ge=1)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)

    # Logging
    log_level: str = Field(default=DEFAULT_LOG_LEVEL)
    log_file: Optional[str] = Field(default=None, description="Optional log file path")
    json_logs: bool = Field(default=False, description="Emit logs as JSON lines")

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _load_from_environment(cls, data: Any) -> Any:
        """Fill unset fields from environment variables (loaded from .env by dotenv)."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for field_name, env_name in _ENV_FIELDS.items():
            if data.get(field_name) is not None:
                continue
            env_value = os.getenv(env_name)
            if env_value and env_value.strip():
                data[field_name] = env_value.strip()
        return data

    @field_validator("openai_api_key", "openai_api_base", "redis_url", "dispatch_url", mode="before")
    @classmethod
    def _strip_optional_strings(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip() or None

    @field_validator("openai_chat_model", "openai_transcription_model")
    @classmethod
    def _validate_priced_model(cls, value: str) -> str:
        if value not in PRICE_TABLE:
            raise ValueError(
                f"Model '{value}' has no entry in the price table. "
                f"Known models: {sorted(PRICE_TABLE)}"
            )
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        level = str(value or DEFAULT_LOG_LEVEL).strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def _validate_size_ordering(self) -> "Config":
        if self.sync_size_threshold_mb > self.max_upload_size_mb:
            raise ValueError("sync_size_threshold_mb cannot exceed max_upload_size_mb")
        if self.transcription_size_limit_mb > self.max_upload_size_mb:
            raise ValueError("transcription_size_limit_mb cannot exceed max_upload_size_mb")
        if not PRICE_TABLE[self.openai_chat_model].is_chat:
            raise ValueError(f"openai_chat_model '{self.openai_chat_model}' is not a chat model")
        return self

    @property
    def max_upload_size_bytes(self) -> int:
        return int(self.max_upload_size_mb * BYTES_PER_MB)

    @property
    def sync_size_threshold_bytes(self) -> int:
        return int(self.sync_size_threshold_mb * BYTES_PER_MB)

    @property
    def transcription_size_limit_bytes(self) -> int:
        return int(self.transcription_size_limit_mb * BYTES_PER_MB)


def load_config_file(path: str) -> Dict[str, Any]:
    """Load configuration from a JSON or YAML file.

    The file format is auto-detected from the file extension (`.json`, `.yaml`, or `.yml`).
    The returned dictionary can be unpacked into the `Config` constructor.

    Args:
        path: Path to configuration file. Supports tilde expansion.

    Returns:
        Dict[str, Any]: Configuration values keyed by `Config` field name.

    Raises:
        ValueError: If the path is empty or missing, the format is unsupported,
            or the file cannot be parsed into a mapping
    """
    if not path:
        raise ValueError("Config path cannot be empty")

    cfg_path = Path(path).expanduser()
    try:
        resolved = cfg_path.resolve()
    except (OSError, RuntimeError) as exc:
        raise ValueError(f"Invalid config path: {path} ({exc})") from exc

    if not resolved.exists():
        raise ValueError(f"Config file not found: {resolved}")

    suffix = resolved.suffix.lower()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Failed to read config file {resolved}: {exc}") from exc

    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON config file {resolved}: {exc}") from exc
    elif suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML config file {resolved}: {exc}") from exc
    else:
        raise ValueError(f"Unsupported config file type: {resolved.suffix}")

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping/object at the top level")

    return data
