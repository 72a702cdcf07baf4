"""
Session Transport
=================

Message-oriented, bidirectional connection used by one session.

This module provides:
    - Transport: Protocol the streamer, aggregator and manager depend on
    - WebSocketTransport: websockets-backed implementation
    - WebSocketConnector: Opens a WebSocketTransport for a role
    - build_endpoint: Hub subscribe URL for a session

Events:
    Incoming frames and the close event are delivered to registered
    callbacks from a single reader task on the event loop. Close callbacks
    fire exactly once, with the close code (None if the peer vanished
    without a close frame).

Example:
    connector = WebSocketConnector("ws://127.0.0.1:4200")
    transport = await connector.connect(Role.PRODUCER, "abc", GeoPoint(51.5, -0.12))
    transport.on_close(lambda code: print("closed", code))
    await transport.send("pos#51.5,-0.12,0")
"""

import asyncio
import logging
from typing import Callable, List, Optional, Protocol, Union
from urllib.parse import urlencode

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    InvalidHandshake,
    InvalidURI,
)

from taxi_simulator.errors import TransportError
from taxi_simulator.models.geo import GeoPoint
from taxi_simulator.models.roles import Role


logger = logging.getLogger(__name__)


SUBSCRIBE_PATH = "/subscribe"

CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_POLICY_VIOLATION = 1008

MessageHandler = Callable[[Union[str, bytes]], None]
CloseHandler = Callable[[Optional[int]], None]


class Transport(Protocol):
    """
    Protocol for session transports.

    Implementations must report closed-state synchronously so callers can
    check it before sending.
    """

    @property
    def closed(self) -> bool:
        ...

    @property
    def close_code(self) -> Optional[int]:
        ...

    async def send(self, message: str) -> None:
        ...

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        ...

    def on_message(self, handler: MessageHandler) -> None:
        ...

    def on_close(self, handler: CloseHandler) -> None:
        ...


class Connector(Protocol):
    """Opens a transport for a session."""

    async def connect(
        self,
        role: Role,
        session_id: str,
        position: Optional[GeoPoint],
    ) -> Transport:
        ...


def build_endpoint(
    base_url: str,
    session_id: str,
    latitude: float,
    longitude: float,
    heading: int = 0,
) -> str:
    """
    Build the hub subscribe URL for a session.

    Args:
        base_url: Hub base, e.g. "ws://127.0.0.1:4200"
        session_id: Session identifier
        latitude: Initial latitude
        longitude: Initial longitude
        heading: Initial heading in whole degrees

    Returns:
        "<base>/subscribe?id=...&lat=...&lon=...&head=..."
    """
    query = urlencode({
        "id": session_id,
        "lat": latitude,
        "lon": longitude,
        "head": heading,
    })
    return f"{base_url.rstrip('/')}{SUBSCRIBE_PATH}?{query}"


class WebSocketTransport:
    """
    Transport over a websockets client connection.

    Attributes:
        closed: True once close was requested locally or the peer closed
        close_code: Close code, available once the connection has closed
    """

    def __init__(self, websocket) -> None:
        self._websocket = websocket
        self._closed: bool = False
        self._close_code: Optional[int] = None
        self._message_handlers: List[MessageHandler] = []
        self._close_handlers: List[CloseHandler] = []
        self._close_fired: bool = False
        self._reader_task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def close_code(self) -> Optional[int]:
        return self._close_code

    @property
    def subprotocol(self) -> Optional[str]:
        return self._websocket.subprotocol

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handlers.append(handler)

    def on_close(self, handler: CloseHandler) -> None:
        if self._close_fired:
            handler(self._close_code)
            return
        self._close_handlers.append(handler)

    def start(self) -> None:
        """Start the reader task that dispatches incoming frames."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(
                self._read_loop(),
                name="transport_reader",
            )

    async def send(self, message: str) -> None:
        if self._closed:
            raise TransportError("Cannot send on a closed transport", code=self._close_code)
        try:
            await self._websocket.send(message)
        except ConnectionClosed as e:
            self._closed = True
            raise TransportError(f"Connection closed while sending: {e}", code=_code_of(e)) from e

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        self._closed = True
        try:
            await self._websocket.close(code=code, reason=reason)
        except ConnectionClosed:
            pass
        if self._reader_task is not None:
            await asyncio.wait({self._reader_task})
        else:
            self._fire_close(self._websocket.close_code or code)

    async def _read_loop(self) -> None:
        try:
            async for message in self._websocket:
                for handler in list(self._message_handlers):
                    handler(message)
        except ConnectionClosedOK:
            logger.info("Connection closed normally")
        except ConnectionClosed as e:
            logger.warning(f"Connection closed with error: {e}")
        finally:
            self._closed = True
            self._fire_close(self._websocket.close_code)

    def _fire_close(self, code: Optional[int]) -> None:
        if self._close_fired:
            return
        self._close_fired = True
        self._close_code = code
        for handler in self._close_handlers:
            try:
                handler(code)
            except Exception as e:
                logger.error(f"Close handler failed: {e}")
        self._close_handlers.clear()


def _code_of(error: ConnectionClosed) -> Optional[int]:
    frame = error.rcvd or error.sent
    return frame.code if frame is not None else None


class WebSocketConnector:
    """
    Opens session transports against a hub.

    Example:
        connector = WebSocketConnector("ws://127.0.0.1:4200", open_timeout=10)
        transport = await connector.connect(Role.CONSUMER, "abc", None)
    """

    def __init__(self, base_url: str, open_timeout: float = 10.0) -> None:
        self.base_url = base_url
        self.open_timeout = open_timeout

    async def connect(
        self,
        role: Role,
        session_id: str,
        position: Optional[GeoPoint],
    ) -> WebSocketTransport:
        """
        Connect with the role's subprotocol.

        Raises:
            TransportError: If the handshake or the TCP connection fails
        """
        position = position or GeoPoint(0.0, 0.0)
        url = build_endpoint(self.base_url, session_id, position.latitude, position.longitude)

        try:
            websocket = await websockets.connect(
                url,
                subprotocols=[role.subprotocol],
                open_timeout=self.open_timeout,
                ping_interval=20,
                ping_timeout=10,
                close_timeout=5,
            )
        except (InvalidURI, InvalidHandshake, OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"Failed to connect to {url}: {e}") from e

        logger.info(f"Connected {role.value} session {session_id} to {self.base_url}")
        transport = WebSocketTransport(websocket)
        transport.start()
        return transport
