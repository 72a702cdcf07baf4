"""
Connection Role Manager
=======================

Establishes role-tagged sessions and owns their lifecycle.

Open:
    1. Resolve the role and the session id (supplied or generated)
    2. Register a CONNECTING session; a second consumer is rejected here,
       before any connection attempt
    3. Connect; on failure the session is deregistered and the error raised
    4. Mark OPEN; producers start streaming, consumers feed the aggregator

Close (remote or local, any code):
    - Deregister the session and mark it CLOSED
    - Cancel the producer's pending ticks
    - Notify status listeners

Example:
    manager = ConnectionRoleManager(WebSocketConnector("ws://127.0.0.1:4200"))
    taxi = await manager.open_session("taxi", route=route)
    client = await manager.open_session("map-client")
    manager.aggregator.add_listener(lambda batch: print(batch.ids()))
"""

import asyncio
import logging
from typing import Callable, Iterable, List, Optional, Union

from taxi_simulator.errors import DuplicateRoleError
from taxi_simulator.models.geo import GeoPoint
from taxi_simulator.models.messages import validate_producer_id
from taxi_simulator.models.roles import Role
from taxi_simulator.models.session import NORMAL_CLOSE_CODES, Session, SessionStatus
from taxi_simulator.routing.identity import new_session_id
from taxi_simulator.session.registry import SessionRegistry
from taxi_simulator.stream.aggregator import FeedAggregator
from taxi_simulator.stream.streamer import PositionStreamer
from taxi_simulator.stream.transport import Connector


logger = logging.getLogger(__name__)


StatusListener = Callable[[Session], None]


class ConnectionRoleManager:
    """
    Opens and tears down producer and consumer sessions.

    Attributes:
        connector: Opens transports for new sessions
        registry: Owned table of live sessions
        aggregator: Feed view fed by the consumer session
        tick_interval: Producer tick period in seconds
    """

    def __init__(
        self,
        connector: Connector,
        registry: Optional[SessionRegistry] = None,
        aggregator: Optional[FeedAggregator] = None,
        tick_interval: float = 1.7,
        id_source: Callable[[], str] = new_session_id,
    ) -> None:
        self.connector = connector
        self.registry = registry or SessionRegistry()
        self.aggregator = aggregator or FeedAggregator()
        self.tick_interval = tick_interval
        self.id_source = id_source
        self._status_listeners: List[StatusListener] = []

    def add_status_listener(self, listener: StatusListener) -> None:
        """Call `listener(session)` whenever a session opens or closes."""
        self._status_listeners.append(listener)

    def sessions(self) -> List[Session]:
        return list(self.registry)

    async def open_session(
        self,
        role: Union[str, Role],
        route: Iterable[GeoPoint] = (),
        session_id: Optional[str] = None,
    ) -> Session:
        """
        Establish a new session.

        Args:
            role: "taxi" / "client" or their "map-" subprotocol spellings
            route: Travel route; required (non-empty) for producers. For
                consumers only its first point is used, as the initial location.
            session_id: Identifier; generated by `id_source` when omitted

        Returns:
            The OPEN session

        Raises:
            DuplicateRoleError: A consumer session is already open
            DuplicateSessionError: The id is already registered
            TransportError: The connection could not be established
            ValueError: Invalid id, or a producer without a route
        """
        role = Role.parse(role)
        route = tuple(route)

        if role is Role.PRODUCER and not route:
            raise ValueError("A taxi session needs a route with at least one point")
        if role is Role.CONSUMER and self.registry.consumer is not None:
            raise DuplicateRoleError("Client already connected")

        if session_id is None:
            session_id = await asyncio.to_thread(self.id_source)
        validate_producer_id(session_id)

        session = Session(id=session_id, role=role, route=route)
        self.registry.register(session)

        try:
            transport = await self.connector.connect(role, session_id, session.origin)
        except BaseException:
            self.registry.unregister(session_id)
            session.status = SessionStatus.CLOSED
            raise

        session.transport = transport
        session.status = SessionStatus.OPEN
        transport.on_close(lambda code: self._handle_close(session, code))
        if session.status is SessionStatus.CLOSED:
            return session

        if role is Role.PRODUCER:
            session.streamer = PositionStreamer(session, transport, self.tick_interval)
            session.streamer.start()
        else:
            transport.on_message(self.aggregator.handle_message)

        logger.info(f"Opened {role.value} session {session_id}")
        self._notify(session)
        return session

    async def close_session(self, session_id: str) -> None:
        """Close a session's transport; its resources are released on close."""
        session = self.registry.get(session_id)
        if session is None:
            return
        if session.transport is not None:
            await session.transport.close()
        self._handle_close(session, session.close_code or 1000)

    async def close_all(self) -> None:
        for session in list(self.registry):
            await self.close_session(session.id)

    def _handle_close(self, session: Session, code: Optional[int]) -> None:
        if session.status is SessionStatus.CLOSED:
            return

        session.status = SessionStatus.CLOSED
        session.close_code = code
        self.registry.unregister(session.id)
        if session.streamer is not None:
            session.streamer.stop()

        if code in NORMAL_CLOSE_CODES:
            logger.info(f"Connection closed for {session.role.value} session {session.id}")
        else:
            logger.warning(
                f"Connection for {session.role.value} session {session.id} "
                f"closed abnormally (code={code})"
            )
        self._notify(session)

    def _notify(self, session: Session) -> None:
        for listener in list(self._status_listeners):
            try:
                listener(session)
            except Exception as e:
                logger.error(f"Status listener failed for session {session.id}: {e}")
