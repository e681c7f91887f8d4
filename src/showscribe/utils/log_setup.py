"""Root logger configuration for the CLI and the HTTP server."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

# Third-party loggers that flood DEBUG output with request/response dumps
_NOISY_LOGGERS = (
    "openai",
    "openai._base_client",
    "httpx",
    "httpcore",
    "urllib3",
    "urllib3.connectionpool",
    "multipart",
)

# Set on handlers installed here so a repeated call replaces them
_OWNED_HANDLER_ATTR = "_showscribe_owned"

TEXT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _make_formatter(json_logs: bool) -> logging.Formatter:
    if json_logs:
        from .json_logging import JSONFormatter

        return JSONFormatter()
    return logging.Formatter(TEXT_LOG_FORMAT)


def apply_log_level(level: str, log_file: Optional[str] = None, json_logs: bool = False) -> None:
    """Configure the root logger with a console handler and an optional file handler.

    Handlers installed by an earlier call are replaced; handlers added by anyone
    else (a test runner, an embedding application) are left untouched.

    Args:
        level: Log level name (e.g. 'DEBUG', 'INFO')
        log_file: Also append logs to this file, creating parent directories
        json_logs: Render records with ``JSONFormatter``

    Raises:
        ValueError: If log level is invalid
        OSError: If the log file cannot be opened
    """
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    root_logger = logging.getLogger()
    for handler in [h for h in root_logger.handlers if getattr(h, _OWNED_HANDLER_ATTR, False)]:
        root_logger.removeHandler(handler)
        handler.close()

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))

    formatter = _make_formatter(json_logs)
    for handler in handlers:
        setattr(handler, _OWNED_HANDLER_ATTR, True)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    if numeric_level <= logging.DEBUG:
        for logger_name in _NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    if log_file:
        logger.info("Logging to file: %s", log_file)
