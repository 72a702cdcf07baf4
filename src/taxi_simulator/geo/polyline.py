"""
Polyline Codec
==============

Google encoded-polyline decoding (and its inverse).

Each point is stored as the delta from the previous point, latitude first,
then longitude. A delta is zig-zag mapped to a non-negative integer and
written as 5-bit groups, least significant first. Every group is offset by
63 to land in printable ASCII; groups with the 0x20 bit set are followed by
another group of the same value.

Example:
    from taxi_simulator.geo.polyline import decode

    route = decode("_p~iF~ps|U_ulLnnqC_mqNvxq`@")
    # (GeoPoint(38.5, -120.2), GeoPoint(40.7, -120.95), GeoPoint(43.252, -126.453))
"""

import logging
import math
from typing import Iterable, List, Tuple, Union

from taxi_simulator.errors import DecodeError
from taxi_simulator.models.geo import GeoPoint, Route


logger = logging.getLogger(__name__)


CHAR_OFFSET = 63
CONTINUATION_BIT = 0x20
GROUP_MASK = 0x1F
GROUP_BITS = 5

DEFAULT_PRECISION = 5


def _read_value(encoded: str, index: int) -> Tuple[int, int]:
    """
    Read one zig-zag encoded delta starting at index.

    Returns:
        (delta, index of the next unread character)
    """
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise DecodeError(
                f"Unterminated group at end of input (length {len(encoded)})",
                position=index,
            )
        group = ord(encoded[index]) - CHAR_OFFSET
        if not 0 <= group <= 0x3F:
            raise DecodeError(
                f"Invalid character {encoded[index]!r} at position {index}",
                position=index,
            )
        index += 1
        result |= (group & GROUP_MASK) << shift
        shift += GROUP_BITS
        if group < CONTINUATION_BIT:
            break

    if result & 1:
        return ~(result >> 1), index
    return result >> 1, index


def decode(encoded: str, precision: int = DEFAULT_PRECISION) -> Route:
    """
    Decode an encoded polyline into a Route.

    Args:
        encoded: Encoded polyline string
        precision: Number of decimal digits the coordinates were encoded with

    Returns:
        Route in decode order; empty for an empty string

    Raises:
        DecodeError: If a group is unterminated or a character is out of range
    """
    factor = 10 ** precision
    points: List[GeoPoint] = []
    index = 0
    lat = 0
    lon = 0

    while index < len(encoded):
        lat_delta, index = _read_value(encoded, index)
        lon_delta, index = _read_value(encoded, index)
        lat += lat_delta
        lon += lon_delta
        points.append(GeoPoint(lat / factor, lon / factor))

    logger.debug(f"Decoded {len(points)} points from {len(encoded)} characters")
    return tuple(points)


def _round(value: float, factor: int) -> int:
    # Half away from zero, as the reference encoder does
    return int(math.copysign(math.floor(abs(value) * factor + 0.5), value))


def _write_value(delta: int, out: List[str]) -> None:
    value = ~(delta << 1) if delta < 0 else delta << 1
    while value >= CONTINUATION_BIT:
        out.append(chr((CONTINUATION_BIT | (value & GROUP_MASK)) + CHAR_OFFSET))
        value >>= GROUP_BITS
    out.append(chr(value + CHAR_OFFSET))


def encode(
    points: Iterable[Union[GeoPoint, Tuple[float, float]]],
    precision: int = DEFAULT_PRECISION,
) -> str:
    """
    Encode points as a polyline string.

    Args:
        points: GeoPoints or (latitude, longitude) pairs, in travel order
        precision: Number of decimal digits to keep

    Returns:
        Encoded polyline
    """
    factor = 10 ** precision
    out: List[str] = []
    prev_lat = 0
    prev_lon = 0

    for point in points:
        if isinstance(point, GeoPoint):
            latitude, longitude = point.latitude, point.longitude
        else:
            latitude, longitude = point
        lat = _round(latitude, factor)
        lon = _round(longitude, factor)
        _write_value(lat - prev_lat, out)
        _write_value(lon - prev_lon, out)
        prev_lat, prev_lon = lat, lon

    return "".join(out)
