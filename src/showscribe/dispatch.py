"""Async dispatch of oversized media to an external message queue.

The dispatcher is an HTTP publish endpoint in the style of a hosted message
queue: the intake pipeline POSTs the worker payload with a bearer token and the
queue later delivers it to the worker callback (``POST /api/worker/long-job``).
Delivery is at-least-once; the worker tolerates redelivery.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from . import config, downloader
from .exceptions import DispatchError

logger = logging.getLogger(__name__)


class QueueDispatcher:
    """Publishes worker payloads to the message-queue endpoint.

    Args:
        dispatch_url: Publish endpoint of the message queue
        token: Bearer token for the publish endpoint
        worker_callback_url: Public worker URL the queue delivers to. When set,
            it is appended to ``dispatch_url`` (``<dispatch_url>/<callback>``)
        user_agent: User-Agent header value
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        dispatch_url: str,
        token: Optional[str] = None,
        worker_callback_url: Optional[str] = None,
        user_agent: str = config.DEFAULT_USER_AGENT,
        timeout: int = config.DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.dispatch_url = dispatch_url
        self.token = token
        self.worker_callback_url = worker_callback_url
        self.user_agent = user_agent
        self.timeout = timeout

    @property
    def publish_url(self) -> str:
        if self.worker_callback_url:
            return f"{self.dispatch_url.rstrip('/')}/{self.worker_callback_url}"
        return self.dispatch_url

    def publish(self, payload: Dict[str, Any]) -> None:
        """Hand ``payload`` to the message queue.

        Raises:
            DispatchError: If the endpoint is unreachable or rejects the message
        """
        headers: Dict[str, str] = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        queue_id = payload.get("queueId")

        try:
            resp = downloader.http_post_json(
                self.publish_url,
                payload,
                user_agent=self.user_agent,
                timeout=self.timeout,
                headers=headers,
            )
        except requests.RequestException as exc:
            logger.warning("Dispatch of job %s failed: %s", queue_id, exc)
            raise DispatchError(f"Dispatcher unreachable: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            logger.warning(
                "Dispatch of job %s rejected with status %s", queue_id, resp.status_code
            )
            raise DispatchError(f"Dispatcher rejected job with status {resp.status_code}")

        logger.info("Dispatched job %s to message queue", queue_id)


def create_dispatcher(cfg: config.Config) -> Optional[QueueDispatcher]:
    """Create the dispatcher, or None when no dispatch endpoint is configured.

    Without a dispatcher, large media is processed synchronously.
    """
    if not cfg.dispatch_url:
        logger.info("No dispatch_url configured: large media will be processed inline")
        return None
    if not cfg.dispatch_token:
        logger.warning("dispatch_url is set without dispatch_token; publishing unauthenticated")
    return QueueDispatcher(
        dispatch_url=cfg.dispatch_url,
        token=cfg.dispatch_token,
        worker_callback_url=cfg.worker_callback_url,
        user_agent=cfg.user_agent,
        timeout=cfg.timeout,
    )
