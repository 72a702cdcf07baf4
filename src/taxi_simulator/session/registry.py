"""
Session Registry
================

Explicitly owned table of live sessions, keyed by role.

The consumer capacity is checked when a session is registered, so a
second consumer is rejected before anything tries to connect it.
"""

import logging
from typing import Dict, Iterator, List, Optional

from taxi_simulator.errors import DuplicateRoleError, DuplicateSessionError
from taxi_simulator.models.roles import Role
from taxi_simulator.models.session import Session


logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Live sessions grouped by role.

    Attributes:
        max_consumers: Maximum concurrent consumer sessions (default 1)
    """

    def __init__(self, max_consumers: int = 1) -> None:
        if max_consumers < 1:
            raise ValueError("max_consumers must be >= 1")
        self.max_consumers = max_consumers
        self._by_role: Dict[Role, Dict[str, Session]] = {role: {} for role in Role}

    def register(self, session: Session) -> None:
        """
        Add a session.

        Raises:
            DuplicateSessionError: If the id is already registered
            DuplicateRoleError: If the consumer capacity is exhausted
        """
        if session.id in self:
            raise DuplicateSessionError(f"Session {session.id!r} is already registered")

        sessions = self._by_role[session.role]
        if session.role is Role.CONSUMER and len(sessions) >= self.max_consumers:
            raise DuplicateRoleError("Client already connected")

        sessions[session.id] = session
        logger.debug(f"Registered {session.role.value} session {session.id}")

    def unregister(self, session_id: str) -> Optional[Session]:
        """Remove a session by id; returns it, or None if unknown."""
        for sessions in self._by_role.values():
            session = sessions.pop(session_id, None)
            if session is not None:
                logger.debug(f"Unregistered {session.role.value} session {session_id}")
                return session
        return None

    def get(self, session_id: str) -> Optional[Session]:
        for sessions in self._by_role.values():
            if session_id in sessions:
                return sessions[session_id]
        return None

    def by_role(self, role: Role) -> List[Session]:
        return list(self._by_role[Role.parse(role)].values())

    @property
    def consumer(self) -> Optional[Session]:
        consumers = self._by_role[Role.CONSUMER]
        return next(iter(consumers.values()), None)

    def __contains__(self, session_id: object) -> bool:
        return any(session_id in sessions for sessions in self._by_role.values())

    def __iter__(self) -> Iterator[Session]:
        for sessions in self._by_role.values():
            yield from list(sessions.values())

    def __len__(self) -> int:
        return sum(len(sessions) for sessions in self._by_role.values())
