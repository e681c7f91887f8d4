"""Fixed-window request admission per client address.

Each client key gets a counter that lives for one window. The first request
creates the counter and starts the window; requests beyond the quota inside a
still-open window are rejected with the seconds remaining until it expires.
When the window expires the counter disappears and the next request starts a
fresh window.

Counters live in the injected CounterStore. With the in-memory store every
instance counts on its own, so a client spread over N instances gets up to N
times the quota; use the Redis store to share windows.
"""

from __future__ import annotations

import ipaddress
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from . import config_constants
from .exceptions import RateLimitedError
from .stores.base import CounterStore

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY_PREFIX = "ratelimit:"
UNKNOWN_CLIENT = "unknown"

# Site-local networks; documentation ranges (e.g. 203.0.113.0/24) are not included
INTERNAL_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "fc00::/7")
)


@dataclass(frozen=True)
class RateWindowEntry:
    """State of a client's window after an admitted request."""

    client_key: str
    count: int
    resets_in_seconds: float


def client_key_from_headers(headers: Mapping[str, str], peer_address: Optional[str] = None) -> str:
    """Derive the client key from forwarding headers.

    Uses the first address of ``X-Forwarded-For``, else ``X-Real-IP``, else the
    socket peer address, else ``"unknown"``. Header lookup is case-insensitive
    when ``headers`` is (as Starlette's headers are).
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    return peer_address or UNKNOWN_CLIENT


def _is_internal_address(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return ip.is_loopback or any(ip in network for network in INTERNAL_NETWORKS)


def _host_matches(host: Optional[str], trusted_hosts: Iterable[str]) -> bool:
    if not host:
        return False
    hostname = host.rsplit(":", 1)[0].lower() if host.count(":") == 1 else host.lower()
    return any(
        hostname == trusted.lower() or hostname.endswith("." + trusted.lower())
        for trusted in trusted_hosts
    )


class RateLimiter:
    """Admission gate allowing ``max_requests`` per ``window_seconds`` per client.

    Args:
        store: Counter store holding the per-client windows
        window_seconds: Window length
        max_requests: Requests admitted per window
        trusted_hosts: Host header suffixes (deployment previews) that bypass the gate
    """

    def __init__(
        self,
        store: CounterStore,
        window_seconds: int = config_constants.DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
        max_requests: int = config_constants.DEFAULT_RATE_LIMIT_MAX_REQUESTS,
        trusted_hosts: Sequence[str] = config_constants.DEFAULT_RATE_LIMIT_TRUSTED_HOSTS,
    ) -> None:
        self.store = store
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.trusted_hosts = tuple(trusted_hosts)

    def is_trusted(self, client_key: str, host: Optional[str] = None) -> bool:
        """Loopback and private addresses and trusted hosts bypass the limiter."""
        return _is_internal_address(client_key) or _host_matches(host, self.trusted_hosts)

    def check(self, client_key: str, host: Optional[str] = None) -> Optional[RateWindowEntry]:
        """Admit or reject one request from ``client_key``.

        Returns:
            The client's window after admission, or None for trusted clients
            and when the store is unavailable (the gate fails open)

        Raises:
            RateLimitedError: If the client already used its quota in the open window
        """
        if self.is_trusted(client_key, host):
            return None

        key = f"{RATE_LIMIT_KEY_PREFIX}{client_key}"
        try:
            count = self.store.incr(key)
            ttl = self.store.ttl(key)
            if count == 1 or ttl is None:
                self.store.expire(key, self.window_seconds)
                ttl = float(self.window_seconds)
        except Exception as exc:
            logger.error("Rate limit store unavailable, admitting request: %s", exc)
            return None

        if count > self.max_requests:
            retry_after = max(1, math.ceil(ttl))
            logger.info(
                "Rate limit exceeded for %s (%d requests, retry after %ds)",
                client_key,
                count,
                retry_after,
            )
            raise RateLimitedError(retry_after=retry_after)

        return RateWindowEntry(client_key=client_key, count=count, resets_in_seconds=ttl)
