"""
Session Model
=============

Per-connection state owned by the connection role manager.

A Session is created CONNECTING when it is registered, becomes OPEN once
the transport is up, and ends CLOSED when the transport closes for any
reason. Closed sessions are removed from the registry.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from taxi_simulator.models.geo import GeoPoint, Route
from taxi_simulator.models.roles import Role


NORMAL_CLOSE_CODES = frozenset({1000, 1001})


class SessionStatus(str, Enum):
    """Lifecycle of a session's connection."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(eq=False)
class Session:
    """
    State of one participant connection.

    Attributes:
        id: Opaque identifier, supplied or generated
        role: Producer or consumer, fixed for the session lifetime
        route: Travel route (producer sessions only)
        tick_index: Index of the last emitted route point (producer only)
        status: Connection lifecycle status
        close_code: WebSocket close code once closed
    """

    id: str
    role: Role
    route: Route = ()
    tick_index: int = 0
    status: SessionStatus = SessionStatus.CONNECTING
    close_code: Optional[int] = None
    transport: Any = field(default=None, repr=False)
    streamer: Any = field(default=None, repr=False)

    @property
    def origin(self) -> Optional[GeoPoint]:
        return self.route[0] if self.route else None

    @property
    def is_open(self) -> bool:
        return self.status is SessionStatus.OPEN

    @property
    def closed_abnormally(self) -> bool:
        """True if the transport closed with a code other than normal/going-away."""
        return (
            self.status is SessionStatus.CLOSED
            and self.close_code not in NORMAL_CLOSE_CODES
        )

    def advance(self, index: int) -> None:
        """Move the tick cursor forward; never backwards, never past the route end."""
        if index < self.tick_index:
            raise ValueError(f"tick_index cannot go backwards ({self.tick_index} -> {index})")
        if index > len(self.route) - 1:
            raise ValueError(f"tick_index {index} is past the end of the route")
        self.tick_index = index
