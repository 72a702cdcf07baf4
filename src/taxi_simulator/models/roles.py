"""
Session Roles
=============

Participant roles of the broadcast protocol.

A role is fixed for the lifetime of a connection and is carried on the
wire as the WebSocket subprotocol. Call sites use either the bare name
("taxi" / "client") or the subprotocol tag ("map-taxi" / "map-client");
both are accepted by Role.parse.
"""

from enum import Enum
from typing import Union


SUBPROTOCOL_PREFIX = "map-"


class Role(str, Enum):
    """
    Participant role.

    Attributes:
        PRODUCER: A simulated taxi publishing its own position
        CONSUMER: A client observing the aggregated feed
    """

    PRODUCER = "taxi"
    CONSUMER = "client"

    @property
    def subprotocol(self) -> str:
        """WebSocket subprotocol tag for this role."""
        return f"{SUBPROTOCOL_PREFIX}{self.value}"

    @classmethod
    def parse(cls, value: Union[str, "Role"]) -> "Role":
        """
        Resolve a role from any of its accepted spellings.

        Raises:
            ValueError: If the value names no known role
        """
        if isinstance(value, Role):
            return value

        name = str(value).strip().lower()
        if name.startswith(SUBPROTOCOL_PREFIX):
            name = name[len(SUBPROTOCOL_PREFIX):]

        if name in ("taxi", "producer"):
            return cls.PRODUCER
        if name in ("client", "consumer"):
            return cls.CONSUMER
        raise ValueError(f"Unknown role: {value!r}")
