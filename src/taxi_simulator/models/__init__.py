"""
Data Models
===========

Types shared across the taxi feed simulator.

Models:
    Geo:
        - GeoPoint: Immutable coordinate
        - Route: Ordered tuple of GeoPoint

    Roles:
        - Role: PRODUCER ("taxi") or CONSUMER ("client")

    Messages:
        - PositionMessage: Producer "pos#" message
        - FeedRecord, FeedBatch: Consumer "taxis-" message

    Session:
        - Session, SessionStatus: Per-connection state
"""

from taxi_simulator.models.geo import GeoPoint, Route, make_route
from taxi_simulator.models.roles import Role
from taxi_simulator.models.messages import (
    FeedBatch,
    FeedRecord,
    PositionMessage,
    parse_feed_batch,
    validate_producer_id,
)
from taxi_simulator.models.session import Session, SessionStatus

__all__ = [
    # Geo
    "GeoPoint",
    "Route",
    "make_route",
    # Roles
    "Role",
    # Messages
    "PositionMessage",
    "FeedRecord",
    "FeedBatch",
    "parse_feed_batch",
    "validate_producer_id",
    # Session
    "Session",
    "SessionStatus",
]
