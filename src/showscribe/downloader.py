"""HTTP session management and transfer helpers for showscribe.

Used to fetch remote media references into local temporary files and to
publish jobs to the async dispatcher.
"""

from __future__ import annotations

import atexit
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple, cast

import requests
from requests.adapters import HTTPAdapter
from requests.utils import requote_uri
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

_urllib3_logs_suppressed = False


def _suppress_urllib3_debug_logs() -> None:
    """Clamp urllib3 connection logs to WARNING when the root logger is DEBUG."""
    global _urllib3_logs_suppressed
    if _urllib3_logs_suppressed:
        return

    root_level = logging.getLogger().level or logging.INFO
    if root_level <= logging.DEBUG:
        for logger_name in ("urllib3", "urllib3.connectionpool", "urllib3.connection"):
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    _urllib3_logs_suppressed = True


DEFAULT_HTTP_BACKOFF_FACTOR = 0.5
DEFAULT_HTTP_RETRY_TOTAL = 3
DOWNLOAD_CHUNK_SIZE = 1024 * 256
HTTP_RETRY_ALLOWED_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
HTTP_RETRY_STATUS_CODES = (429, 500, 502, 503, 504)

_THREAD_LOCAL = threading.local()
_SESSION_REGISTRY: List[requests.Session] = []
_SESSION_REGISTRY_LOCK = threading.Lock()


def normalize_url(url: str) -> str:
    """Normalize URLs while preserving already-encoded segments."""
    return cast(str, requote_uri(url))


class LoggingRetry(Retry):
    """Retry policy that logs every retry attempt at WARNING."""

    def increment(self, method=None, url=None, *args, **kwargs):  # type: ignore[override]
        new_retry = super().increment(method=method, url=url, *args, **kwargs)
        attempt = len(new_retry.history) + 1
        reason = kwargs.get("error") or kwargs.get("response")
        logger.warning(
            "Retrying HTTP request (attempt %d/%s) %s %s due to %s",
            attempt,
            new_retry.total,
            method or "",
            url or "",
            reason,
        )
        return new_retry


def _configure_http_session(session: requests.Session) -> None:
    """Attach retry-enabled HTTP adapters to a session.

    Only idempotent methods are retried on read errors and retryable statuses.
    """
    retry = LoggingRetry(
        total=DEFAULT_HTTP_RETRY_TOTAL,
        read=DEFAULT_HTTP_RETRY_TOTAL,
        connect=DEFAULT_HTTP_RETRY_TOTAL,
        status=DEFAULT_HTTP_RETRY_TOTAL,
        backoff_factor=DEFAULT_HTTP_BACKOFF_FACTOR,
        status_forcelist=HTTP_RETRY_STATUS_CODES,
        allowed_methods=HTTP_RETRY_ALLOWED_METHODS,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)


def get_session() -> requests.Session:
    """Return this thread's retry-enabled session, creating it on first use."""
    _suppress_urllib3_debug_logs()

    session = getattr(_THREAD_LOCAL, "session", None)
    if session is None:
        session = requests.Session()
        _configure_http_session(session)
        _THREAD_LOCAL.session = session
        with _SESSION_REGISTRY_LOCK:
            _SESSION_REGISTRY.append(session)
        logger.debug("Created new thread-local HTTP session %s", hex(id(session)))
    return session


def _close_all_sessions() -> None:
    with _SESSION_REGISTRY_LOCK:
        for session in _SESSION_REGISTRY:
            try:
                session.close()
            except Exception:  # pragma: no cover  # nosec B110
                pass
        _SESSION_REGISTRY.clear()


atexit.register(_close_all_sessions)


def http_download_to_file(
    url: str,
    user_agent: str,
    timeout: int,
    out_path: str,
    max_bytes: Optional[int] = None,
) -> Tuple[bool, int]:
    """Stream ``url`` into ``out_path``.

    Args:
        url: Remote URL to fetch
        user_agent: User-Agent header value
        timeout: Connect/read timeout in seconds
        out_path: Existing or new local file to write
        max_bytes: Abort once the body exceeds this many bytes

    Returns:
        Tuple of (success, bytes written). The file may hold a partial body when
        success is False; the caller owns its deletion.
    """
    normalized_url = normalize_url(url)
    try:
        resp = get_session().get(
            normalized_url, headers={"User-Agent": user_agent}, timeout=timeout, stream=True
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Failed to fetch %s: %s", url, exc)
        return False, 0

    try:
        logger.debug(
            "Streaming download from %s to %s (content-length=%s)",
            url,
            out_path,
            resp.headers.get("Content-Length"),
        )
        total_bytes = 0
        with open(out_path, "wb") as f:
            for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                total_bytes += len(chunk)
                if max_bytes is not None and total_bytes > max_bytes:
                    logger.warning(
                        "Aborting download of %s: body exceeds %d bytes", url, max_bytes
                    )
                    return False, total_bytes
        logger.debug("Finished downloading %s (%s bytes written)", url, total_bytes)
        return True, total_bytes
    except (requests.RequestException, OSError) as exc:
        logger.warning("Failed to download %s to %s: %s", url, out_path, exc)
        return False, 0
    finally:
        resp.close()


def http_post_json(
    url: str,
    payload: Dict[str, Any],
    user_agent: str,
    timeout: int,
    headers: Optional[Dict[str, str]] = None,
) -> requests.Response:
    """POST ``payload`` as JSON and return the response without raising on status.

    Raises:
        requests.RequestException: On connection or transport failure
    """
    request_headers = {"User-Agent": user_agent, "Content-Type": "application/json"}
    if headers:
        request_headers.update(headers)
    return get_session().post(
        normalize_url(url), json=payload, headers=request_headers, timeout=timeout
    )
