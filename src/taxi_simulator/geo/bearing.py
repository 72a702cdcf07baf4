"""
Bearing Calculator
==================

Compass bearing between two geographic points.

Latitude is projected with the Mercator function ln(tan(φ/2 + π/4)), so the
result is the constant-heading (rhumb line) bearing. The longitude delta is
wrapped onto the shortest way round before use.

Formula:
    Δψ = ln(tan(φ2/2 + π/4) / tan(φ1/2 + π/4))
    Δλ = λ2 - λ1, wrapped into [-π, π]
    θ  = (degrees(atan2(Δλ, Δψ)) + 360) mod 360
"""

import math

from taxi_simulator.models.geo import GeoPoint


# Mercator projection diverges at the poles
_MAX_LATITUDE = math.radians(90.0 - 1e-9)


def _mercator(latitude: float) -> float:
    phi = max(-_MAX_LATITUDE, min(_MAX_LATITUDE, latitude))
    return math.log(math.tan(phi / 2.0 + math.pi / 4.0))


def bearing(start: GeoPoint, end: GeoPoint) -> float:
    """
    Bearing in degrees from start to end.

    Args:
        start: Origin point
        end: Destination point

    Returns:
        Degrees clockwise from north in [0, 360). Identical points give 0.
    """
    if start == end:
        return 0.0

    d_lon = math.radians(end.longitude - start.longitude)
    d_psi = _mercator(math.radians(end.latitude)) - _mercator(math.radians(start.latitude))

    if abs(d_lon) > math.pi:
        d_lon -= math.copysign(2.0 * math.pi, d_lon)

    result = (math.degrees(math.atan2(d_lon, d_psi)) + 360.0) % 360.0
    return 0.0 if result >= 360.0 else result
