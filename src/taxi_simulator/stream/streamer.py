"""
Position Streamer
=================

Drives one simulated taxi along its route, one position message per tick.

States:
    IDLE -> STREAMING -> FINISHED
                      -> STOPPED   (transport closed or stop() before the end)

Tick Rules:
    - Tick 0 is sent immediately on start, at route[0] with heading 0
    - Tick i > 0 is sent at route[i] with heading bearing(route[i-1], route[i])
    - After the last point the streamer is FINISHED and closes the transport
    - Closed-state is checked before every tick; nothing is sent once closed
    - Ticks run sequentially in one task; the next tick is scheduled from the
      start of the previous one, so a slow tick delays but never overlaps

Example:
    streamer = PositionStreamer(session, transport, interval=1.7)
    streamer.start()
    await streamer.wait()
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from taxi_simulator.errors import TransportError
from taxi_simulator.geo.bearing import bearing
from taxi_simulator.models.messages import PositionMessage
from taxi_simulator.models.session import Session
from taxi_simulator.stream.transport import Transport


logger = logging.getLogger(__name__)


class StreamerState(str, Enum):
    """Lifecycle of a position streamer."""

    IDLE = "IDLE"
    STREAMING = "STREAMING"
    FINISHED = "FINISHED"
    STOPPED = "STOPPED"


class PositionStreamer:
    """
    Periodic position publisher for a producer session.

    Attributes:
        session: Producer session whose route is streamed
        transport: Transport the messages are sent on
        interval: Tick period in seconds
        state: Current StreamerState
        sent: Number of messages sent so far
    """

    def __init__(
        self,
        session: Session,
        transport: Transport,
        interval: float = 1.7,
    ) -> None:
        if not session.route:
            raise ValueError("Cannot stream an empty route")
        if interval < 0:
            raise ValueError("interval must be >= 0")

        self.session = session
        self.transport = transport
        self.interval = interval

        self._state = StreamerState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._sent: int = 0

    @property
    def state(self) -> StreamerState:
        return self._state

    @property
    def sent(self) -> int:
        return self._sent

    @property
    def done(self) -> bool:
        return self._state in (StreamerState.FINISHED, StreamerState.STOPPED)

    def message_for(self, index: int) -> PositionMessage:
        """Position message for route point `index`."""
        route = self.session.route
        if index == 0:
            return PositionMessage.at(route[0], 0.0)
        return PositionMessage.at(route[index], bearing(route[index - 1], route[index]))

    def start(self) -> None:
        """
        Enter STREAMING and schedule the tick task.

        Must be called from a running event loop.
        """
        if self._state is not StreamerState.IDLE:
            raise RuntimeError(f"Streamer already started (state={self._state.value})")

        self._state = StreamerState.STREAMING
        self._task = asyncio.create_task(
            self._run(),
            name=f"streamer-{self.session.id}",
        )
        logger.info(
            f"Streaming {len(self.session.route)} points for session {self.session.id} "
            f"every {self.interval}s"
        )

    def stop(self) -> None:
        """
        Cancel pending ticks.

        Safe to call in any state. A streamer that already reached FINISHED is
        left to complete its own close.
        """
        if self._state is StreamerState.IDLE:
            self._state = StreamerState.STOPPED
            return
        if self._state is not StreamerState.STREAMING:
            return

        self._state = StreamerState.STOPPED
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.info(f"Streamer for session {self.session.id} stopped after {self._sent} ticks")

    async def wait(self) -> None:
        """Wait until the tick task has ended, however it ended."""
        if self._task is not None:
            await asyncio.wait({self._task})

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        last_index = len(self.session.route) - 1

        try:
            for index in range(last_index + 1):
                started = loop.time()

                if self.transport.closed:
                    logger.info(
                        f"Transport closed, session {self.session.id} stops at tick {index}"
                    )
                    self._state = StreamerState.STOPPED
                    return

                message = self.message_for(index)
                await self.transport.send(message.to_wire())
                self.session.advance(index)
                self._sent += 1
                logger.debug(f"Session {self.session.id} tick {index}: {message}")

                if index == last_index:
                    self._state = StreamerState.FINISHED
                    logger.info(f"Route finished for session {self.session.id}")
                    await self.transport.close()
                    return

                elapsed = loop.time() - started
                await asyncio.sleep(max(0.0, self.interval - elapsed))

        except TransportError as e:
            logger.error(f"Send failed for session {self.session.id}: {e}")
            self._state = StreamerState.STOPPED
        except asyncio.CancelledError:
            if self._state is StreamerState.STREAMING:
                self._state = StreamerState.STOPPED
            raise
