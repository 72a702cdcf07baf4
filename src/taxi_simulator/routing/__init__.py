"""
Routing Module
==============

External collaborators: route lookup and session identifiers.

Components:
    - RouteLookupClient: GET /route and decode the first route
    - GoogleDirectionsClient: Directions web API, used by the hub's /route
    - new_session_id / UuidServiceSource: Session id sources
"""

from taxi_simulator.routing.client import RouteLookupClient
from taxi_simulator.routing.directions import GoogleDirectionsClient
from taxi_simulator.routing.identity import UuidServiceSource, new_session_id

__all__ = [
    "RouteLookupClient",
    "GoogleDirectionsClient",
    "UuidServiceSource",
    "new_session_id",
]
