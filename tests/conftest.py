"""
Test Configuration
==================

Pytest fixtures and in-memory transport fakes for the taxi simulator.
"""

import json
from typing import List, Optional

import pytest

from taxi_simulator.errors import TransportError
from taxi_simulator.models.geo import GeoPoint, make_route


REFERENCE_POLYLINE = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"
REFERENCE_POINTS = [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]


class FakeTransport:
    """In-memory transport recording sends and firing close callbacks once."""

    def __init__(self) -> None:
        self.sent: List[str] = []
        self.close_calls: int = 0
        self._closed = False
        self._close_code: Optional[int] = None
        self._close_fired = False
        self._message_handlers = []
        self._close_handlers = []

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def close_code(self) -> Optional[int]:
        return self._close_code

    async def send(self, message: str) -> None:
        if self._closed:
            raise TransportError("send on closed transport")
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_calls += 1
        self.remote_close(code)

    def on_message(self, handler) -> None:
        self._message_handlers.append(handler)

    def on_close(self, handler) -> None:
        if self._close_fired:
            handler(self._close_code)
        else:
            self._close_handlers.append(handler)

    def deliver(self, raw) -> None:
        for handler in list(self._message_handlers):
            handler(raw)

    def remote_close(self, code: Optional[int]) -> None:
        self._closed = True
        if self._close_fired:
            return
        self._close_fired = True
        self._close_code = code
        for handler in self._close_handlers:
            handler(code)


class FakeConnector:
    """Connector handing out FakeTransports and recording every attempt."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.attempts = []
        self.transports: List[FakeTransport] = []

    async def connect(self, role, session_id, position):
        self.attempts.append((role, session_id, position))
        if self.fail:
            raise TransportError("connection refused")
        transport = FakeTransport()
        self.transports.append(transport)
        return transport


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload, status_code: int = 200) -> None:
        self.payload = payload
        self.status_code = status_code
        self.content = json.dumps(payload).encode("utf-8")

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            import requests
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeHttpSession:
    """Records GET calls and returns a canned response (or raises)."""

    def __init__(self, response=None, error: Optional[Exception] = None) -> None:
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def fake_connector():
    return FakeConnector()


@pytest.fixture
def reference_route():
    """The three-point route of the reference polyline."""
    return make_route(REFERENCE_POINTS)


@pytest.fixture
def london_route():
    """A short route heading north, then east, through central London."""
    return (
        GeoPoint(51.5000, -0.1200),
        GeoPoint(51.5010, -0.1200),
        GeoPoint(51.5010, -0.1180),
        GeoPoint(51.5020, -0.1170),
        GeoPoint(51.5030, -0.1170),
    )
