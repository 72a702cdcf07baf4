"""
Taxi Simulator
==============

Simulated taxi fleet broadcasting live positions, and a hub/feed for
clients that watch them.

This package provides the taxi side (route decoding, heading computation,
periodic position streaming), the client side (feed parsing and display
rows), the role-based session manager that ties them to a transport, and
the hub that fans positions out to clients.

Components:
    - geo: Polyline codec and bearing calculator
    - models: Geo, role, wire message and session types
    - stream: Transport, position streamer, feed aggregator
    - session: Session registry and connection role manager
    - routing: Route lookup and session id sources
    - hub / main: Server-side feed hub and FastAPI application
    - simulate: Command line simulator

Example:
    from taxi_simulator.geo import decode, bearing

    route = decode("_p~iF~ps|U_ulLnnqC_mqNvxq`@")
    heading = bearing(route[0], route[1])
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
