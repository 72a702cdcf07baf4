"""
Feed Hub
========

Server-side fan-in/fan-out of taxi positions.

Taxis connect with the "map-taxi" subprotocol and send "pos#" messages;
the hub keeps the latest position per taxi. Clients connect with
"map-client" and receive a "taxis-" batch of every known position on each
broadcast tick. A client whose send fails is dropped.

All state is touched only from coroutines on the hub's event loop; the
broadcast iterates over copies so connects and disconnects during a send
are safe.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from taxi_simulator.errors import ProtocolError
from taxi_simulator.models.messages import (
    POSITION_PREFIX,
    FeedBatch,
    FeedRecord,
    PositionMessage,
)
from taxi_simulator.models.roles import Role


logger = logging.getLogger(__name__)


@dataclass
class HubSubscriber:
    """A connected taxi or client as seen by the hub."""

    id: str
    role: Role
    socket: Any
    position: PositionMessage


class FeedHub:
    """
    Registry of connected participants plus the broadcast loop.

    Attributes:
        include_heading: Append the heading to each feed record
        broadcasts_sent: Total client deliveries across all broadcasts
    """

    def __init__(self, include_heading: bool = False) -> None:
        self.include_heading = include_heading
        self.broadcasts_sent: int = 0

        self._subscribers: Dict[Role, Dict[str, HubSubscriber]] = {role: {} for role in Role}
        self._positions: Dict[str, PositionMessage] = {}
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def taxi_count(self) -> int:
        return len(self._subscribers[Role.PRODUCER])

    @property
    def client_count(self) -> int:
        return len(self._subscribers[Role.CONSUMER])

    def add(self, session_id: str, role: Role, socket: Any, position: PositionMessage) -> HubSubscriber:
        """Register a connection; a repeated id replaces the previous one."""
        subscribers = self._subscribers[role]
        if session_id in subscribers:
            logger.warning(f"This {role.value} is already subscribed: {session_id}")

        subscriber = HubSubscriber(session_id, role, socket, position)
        subscribers[session_id] = subscriber
        logger.info(f"Adding sub with protocol {role.subprotocol} and id {session_id}")
        return subscriber

    def remove(self, session_id: str, socket: Any = None) -> None:
        """
        Drop a connection and, for taxis, its last position.

        When `socket` is given the entry is only removed if it still belongs
        to that socket, so a replaced connection cannot evict its successor.
        """
        for role, subscribers in self._subscribers.items():
            subscriber = subscribers.get(session_id)
            if subscriber is None:
                continue
            if socket is not None and subscriber.socket is not socket:
                continue
            del subscribers[session_id]
            if role is Role.PRODUCER:
                self._positions.pop(session_id, None)
            logger.info(f"Removed {role.value} {session_id}")

    def handle_message(self, session_id: str, raw: str) -> Optional[PositionMessage]:
        """
        Apply one incoming text frame.

        Only taxi "pos#" messages change state; anything else is ignored and
        malformed positions are logged and dropped.
        """
        if not raw.startswith(POSITION_PREFIX):
            return None

        taxi = self._subscribers[Role.PRODUCER].get(session_id)
        if taxi is None:
            logger.debug(f"Ignoring position from non-taxi session {session_id}")
            return None

        try:
            position = PositionMessage.from_wire(raw)
        except ProtocolError as e:
            logger.warning(f"Failed to parse location from {session_id}: {e}")
            return None

        taxi.position = position
        self._positions[session_id] = position
        logger.debug(f"Position received from {session_id}: {position}")
        return position

    def snapshot(self) -> FeedBatch:
        return FeedBatch(tuple(
            FeedRecord(taxi_id, pos.latitude, pos.longitude, int(pos.heading))
            for taxi_id, pos in self._positions.items()
        ))

    def positions(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": taxi_id,
                "latitude": pos.latitude,
                "longitude": pos.longitude,
                "heading": int(pos.heading),
            }
            for taxi_id, pos in self._positions.items()
        ]

    async def broadcast_once(self) -> int:
        """
        Send the current batch to every client.

        Returns:
            Number of clients the batch was delivered to (0 when no taxi
            has reported a position yet)
        """
        if not self._positions:
            return 0

        message = self.snapshot().to_wire(self.include_heading)
        delivered = 0
        for client in list(self._subscribers[Role.CONSUMER].values()):
            try:
                await client.socket.send_text(message)
                delivered += 1
            except Exception as e:
                logger.error(f"Failed to send taxi positions to client {client.id}: {e}")
                self.remove(client.id, client.socket)

        self.broadcasts_sent += delivered
        return delivered

    async def run(self, interval: float = 2.0) -> None:
        """Broadcast every `interval` seconds until stop() is called."""
        self._stop_event = asyncio.Event()
        logger.info(f"Feed broadcast started (every {interval}s)")

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass
            await self.broadcast_once()

        logger.info("Feed broadcast stopped")

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
