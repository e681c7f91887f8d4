"""Pytest configuration for unit tests.

This module enforces network isolation for unit tests: any outgoing HTTP request
through ``requests`` or any new socket connection fails the test immediately.
Unit tests must mock the downloader, the dispatcher and the provider SDK.

Filesystem access is allowed (intake and compression tests work on temporary
directories).

Integration tests (tests/integration/) are not affected.
"""

import socket
from unittest.mock import patch

import pytest


class NetworkCallDetectedError(Exception):
    """Raised when a unit test attempts a real network call."""


def _blocked(*args, **kwargs):
    target = args[1] if len(args) > 1 else kwargs.get("url", args[0] if args else "")
    raise NetworkCallDetectedError(
        f"Network call detected in unit test: {target!r}. "
        "Mock the downloader, dispatcher or provider client instead."
    )


@pytest.fixture(autouse=True)
def block_network_calls():
    """Block network access for every unit test."""
    with patch("requests.Session.request", _blocked), patch(
        "socket.create_connection", _blocked
    ), patch.object(socket.socket, "connect", _blocked):
        yield
