"""
Geo Module
==========

Route decoding and heading computation.

Components:
    - decode / encode: Google encoded-polyline codec
    - bearing: Compass bearing between two points
"""

from taxi_simulator.geo.polyline import decode, encode
from taxi_simulator.geo.bearing import bearing

__all__ = [
    "decode",
    "encode",
    "bearing",
]
