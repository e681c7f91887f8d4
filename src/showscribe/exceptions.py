"""Custom exceptions for showscribe.

Every condition the orchestration core can report to a caller is a typed
exception carrying a stable ``code`` and the HTTP status the boundary layer
should answer with. Typed exceptions give:
- Error messages with actionable suggestions
- Test assertions on specific failure causes
- A single place where user-facing vs. opaque failures are decided

Exception Hierarchy:
    ShowScribeError (base)
    ├── InvalidInputError - Malformed, missing or unsupported input
    │   └── EmptyTranscriptError - Transcript missing or blank
    ├── RateLimitedError - Client exceeded its request window
    ├── CostExceededError - Daily provider spend cap would be exceeded
    ├── CompressionError - Audio transcoding failed
    │   └── CompressionUnavailableError - No transcoding engine reachable
    ├── TooLargeError - Media still above the provider limit
    ├── FetchFailedError - Remote media reference could not be fetched
    ├── GenerationFailedError - A show-notes generation call failed
    ├── JobNotFoundError - Unknown async job id
    ├── DispatchError - Async dispatcher rejected or missed a publish
    └── ProviderConfigError - Provider configuration is invalid
"""

from __future__ import annotations

from typing import Optional


class ShowScribeError(Exception):
    """Base exception for all showscribe errors.

    Attributes:
        message: Human-readable error message
        suggestion: Optional suggestion for resolving the error
        code: Stable machine-readable error code
        http_status: Status code the HTTP boundary answers with
        is_user_facing: Whether ``message`` may be shown to the end user verbatim
    """

    code = "INTERNAL_ERROR"
    http_status = 500
    is_user_facing = False

    def __init__(self, message: str, suggestion: Optional[str] = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message with suggestion."""
        if self.suggestion:
            return f"{self.message} Suggestion: {self.suggestion}"
        return self.message

    @property
    def public_message(self) -> str:
        """Message safe to return to the end user."""
        if self.is_user_facing:
            return self._format_message()
        return "Internal server error"


class InvalidInputError(ShowScribeError):
    """Raised when a request is malformed, missing data, or oversized at intake."""

    code = "INVALID_INPUT"
    http_status = 400
    is_user_facing = True


class EmptyTranscriptError(InvalidInputError):
    """Raised when show-notes generation is requested without a transcript."""

    def __init__(self, message: str = "No transcript provided") -> None:
        super().__init__(message)


class RateLimitedError(ShowScribeError):
    """Raised when a client exceeds its request quota.

    Attributes:
        retry_after: Seconds until the client's window resets
    """

    code = "RATE_LIMITED"
    http_status = 429
    is_user_facing = True

    def __init__(self, retry_after: int, message: Optional[str] = None) -> None:
        self.retry_after = retry_after
        super().__init__(
            message or f"Rate limit exceeded. Please try again in {retry_after} seconds."
        )


class CostExceededError(ShowScribeError):
    """Raised before a provider call when it would push daily spend over the cap.

    Attributes:
        current_spend: Spend already recorded today (USD)
        estimated_cost: Estimated cost of the rejected call (USD)
        daily_cap: Configured daily cap (USD)
        retry_after: Seconds until the daily counter rolls over (UTC midnight)
    """

    code = "COST_EXCEEDED"
    http_status = 429
    is_user_facing = True

    def __init__(
        self,
        current_spend: float,
        estimated_cost: float,
        daily_cap: float,
        retry_after: Optional[int] = None,
    ) -> None:
        self.current_spend = current_spend
        self.estimated_cost = estimated_cost
        self.daily_cap = daily_cap
        self.retry_after = retry_after
        super().__init__(
            "Daily cost limit reached. Please try again later.",
            suggestion=None,
        )

    def __str__(self) -> str:
        return (
            f"Daily cost limit exceeded. Current: ${self.current_spend:.4f}, "
            f"Additional: ${self.estimated_cost:.4f}, Limit: ${self.daily_cap}"
        )


class CompressionError(ShowScribeError):
    """Raised when audio compression fails."""

    code = "COMPRESSION_FAILED"
    http_status = 413
    is_user_facing = True


class CompressionUnavailableError(CompressionError):
    """Raised when no transcoding engine is reachable in this environment."""

    code = "COMPRESSION_UNAVAILABLE"

    def __init__(
        self,
        message: str = "Audio compression is not available in this environment.",
        suggestion: Optional[str] = "Upload a smaller or already-compressed audio file.",
    ) -> None:
        super().__init__(message, suggestion=suggestion)


class TooLargeError(ShowScribeError):
    """Raised when media exceeds the transcription provider size limit."""

    code = "TOO_LARGE"
    http_status = 413
    is_user_facing = True

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"Audio file is {size_bytes / (1024 * 1024):.1f}MB, above the "
            f"{limit_bytes / (1024 * 1024):.0f}MB transcription limit.",
            suggestion="Compress the audio (mono, lower bitrate) or upload a shorter file.",
        )


class FetchFailedError(ShowScribeError):
    """Raised when a remote media reference cannot be downloaded."""

    code = "FETCH_FAILED"


class GenerationFailedError(ShowScribeError):
    """Raised when any show-notes generation call fails for a non-budget reason.

    Attributes:
        section: Name of the show-notes section whose call failed
    """

    code = "GENERATION_FAILED"

    def __init__(self, section: str, message: str) -> None:
        self.section = section
        super().__init__(f"Generation of '{section}' failed: {message}")


class JobNotFoundError(ShowScribeError):
    """Raised when an async job id is unknown to this instance."""

    code = "NOT_FOUND"
    http_status = 404
    is_user_facing = True

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class DispatchError(ShowScribeError):
    """Raised when the async dispatcher cannot accept a job."""

    code = "DISPATCH_FAILED"


class ProviderConfigError(ShowScribeError):
    """Raised when provider configuration is invalid or missing.

    Example:
        >>> raise ProviderConfigError(
        ...     message="API key not provided",
        ...     config_key="openai_api_key",
        ...     suggestion="Set OPENAI_API_KEY environment variable"
        ... )
    """

    code = "PROVIDER_CONFIG"

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.config_key = config_key
        if config_key and config_key not in message:
            message = f"{message} (config key: {config_key})"
        super().__init__(message, suggestion=suggestion)
