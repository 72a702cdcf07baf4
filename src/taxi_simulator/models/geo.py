"""
Geographic Primitives
=====================

GeoPoint and Route types shared by the decoder, the bearing calculator
and the position streamer.

Rules:
    - GeoPoint is immutable (frozen)
    - Route is a tuple: travel order is insertion order and it cannot be
      mutated after decode
"""

from dataclasses import dataclass
from typing import Iterable, Tuple


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """
    A WGS84 coordinate in decimal degrees.

    Attributes:
        latitude: Degrees north, in [-90, 90]
        longitude: Degrees east, in [-180, 180]
    """

    latitude: float
    longitude: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


Route = Tuple[GeoPoint, ...]


def make_route(points: Iterable[Tuple[float, float]]) -> Route:
    """Build a Route from (latitude, longitude) pairs, preserving order."""
    return tuple(GeoPoint(float(lat), float(lon)) for lat, lon in points)
