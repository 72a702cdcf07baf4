"""
Wire Messages
=============

Compact text messages exchanged over the session transport.

Producer -> hub (one per tick):
    pos#<lat>,<lon>,<heading>

    heading is truncated to whole degrees.

Hub -> consumer (one per broadcast):
    taxis-<record>$<record>$...

    record   = <position>&<producerId>
    position = <lat>,<lon>[,<heading>]

The format is not self-describing and has no escaping, so producer
identifiers must not contain any of the delimiter characters. An empty
batch is the bare prefix "taxis-".

Example:
    from taxi_simulator.models.messages import parse_feed_batch

    batch = parse_feed_batch("taxis-51.5,-0.12&abc$51.6,-0.13&def")
    assert batch.ids() == ("abc", "def")
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from taxi_simulator.errors import ProtocolError
from taxi_simulator.models.geo import GeoPoint


POSITION_PREFIX = "pos#"
FEED_PREFIX = "taxis-"

RECORD_SEPARATOR = "$"
ID_SEPARATOR = "&"
FIELD_SEPARATOR = ","

RESERVED_CHARACTERS = frozenset("#$&,")


def validate_producer_id(producer_id: str) -> str:
    """
    Check that an identifier can travel inside a feed record.

    Raises:
        ValueError: If the id is empty, padded or contains a delimiter
    """
    if not producer_id or producer_id != producer_id.strip():
        raise ValueError(f"Invalid session id: {producer_id!r}")
    reserved = RESERVED_CHARACTERS.intersection(producer_id)
    if reserved:
        raise ValueError(
            f"Session id {producer_id!r} contains reserved characters: "
            f"{''.join(sorted(reserved))}"
        )
    return producer_id


def _parse_float(value: str, field: str, raw: str) -> float:
    value = value.strip()
    if not value:
        raise ProtocolError(f"Missing {field}", raw=raw)
    try:
        return float(value)
    except ValueError:
        raise ProtocolError(f"Invalid {field}: {value!r}", raw=raw) from None


def _parse_heading(value: str, raw: str) -> int:
    value = value.strip()
    try:
        heading = int(value)
    except ValueError:
        raise ProtocolError(f"Invalid heading: {value!r}", raw=raw) from None
    if not 0 <= heading < 360:
        raise ProtocolError(f"Heading out of range: {heading}", raw=raw)
    return heading


@dataclass(frozen=True, slots=True)
class PositionMessage:
    """
    One producer's current state.

    Attributes:
        latitude: Current latitude in degrees
        longitude: Current longitude in degrees
        heading: Bearing of travel in degrees, [0, 360)
    """

    latitude: float
    longitude: float
    heading: float = 0.0

    @classmethod
    def at(cls, point: GeoPoint, heading: float = 0.0) -> "PositionMessage":
        return cls(point.latitude, point.longitude, heading)

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)

    def to_wire(self) -> str:
        return f"{POSITION_PREFIX}{self.latitude},{self.longitude},{int(self.heading)}"

    @classmethod
    def from_wire(cls, raw: str) -> "PositionMessage":
        """
        Parse a "pos#" message.

        The heading field is optional and defaults to 0.

        Raises:
            ProtocolError: On a missing prefix or malformed field
        """
        if not raw.startswith(POSITION_PREFIX):
            raise ProtocolError("Missing position prefix", raw=raw)

        parts = raw[len(POSITION_PREFIX):].split(FIELD_SEPARATOR)
        if len(parts) not in (2, 3):
            raise ProtocolError("Invalid position format", raw=raw)

        latitude = _parse_float(parts[0], "latitude", raw)
        longitude = _parse_float(parts[1], "longitude", raw)
        heading = _parse_heading(parts[2], raw) if len(parts) == 3 else 0
        return cls(latitude, longitude, heading)


@dataclass(frozen=True, slots=True)
class FeedRecord:
    """A single producer entry of a feed batch."""

    producer_id: str
    latitude: float
    longitude: float
    heading: Optional[int] = None

    def to_wire(self, include_heading: bool = False) -> str:
        position = f"{self.latitude},{self.longitude}"
        if include_heading:
            position += f",{int(self.heading or 0)}"
        return f"{position}{ID_SEPARATOR}{self.producer_id}"

    @classmethod
    def from_wire(cls, raw: str) -> "FeedRecord":
        position, sep, producer_id = raw.partition(ID_SEPARATOR)
        if not sep:
            raise ProtocolError("Record is missing its producer id", raw=raw)
        producer_id = producer_id.strip()
        if not producer_id:
            raise ProtocolError("Record has an empty producer id", raw=raw)
        if ID_SEPARATOR in producer_id:
            raise ProtocolError("Record has more than one id separator", raw=raw)

        fields = position.split(FIELD_SEPARATOR)
        if len(fields) < 2:
            raise ProtocolError("Record is missing a coordinate", raw=raw)
        if len(fields) > 3:
            raise ProtocolError("Record has too many position fields", raw=raw)

        latitude = _parse_float(fields[0], "latitude", raw)
        longitude = _parse_float(fields[1], "longitude", raw)
        heading = _parse_heading(fields[2], raw) if len(fields) == 3 else None
        return cls(producer_id, latitude, longitude, heading)


@dataclass(frozen=True, slots=True)
class FeedBatch:
    """
    Snapshot of every producer's position at one broadcast instant.

    Records carry no ordering guarantee.
    """

    records: Tuple[FeedRecord, ...] = ()

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[FeedRecord]:
        return iter(self.records)

    def ids(self) -> Tuple[str, ...]:
        return tuple(record.producer_id for record in self.records)

    def to_wire(self, include_heading: bool = False) -> str:
        body = RECORD_SEPARATOR.join(
            record.to_wire(include_heading) for record in self.records
        )
        return f"{FEED_PREFIX}{body}"


def parse_feed_batch(raw: str) -> FeedBatch:
    """
    Parse a consumer-facing "taxis-" message.

    Args:
        raw: Text frame as received from the hub

    Returns:
        FeedBatch, empty when the prefix carries no records

    Raises:
        ProtocolError: On a missing prefix or any malformed record
    """
    if not isinstance(raw, str) or not raw.startswith(FEED_PREFIX):
        raise ProtocolError("Missing feed prefix", raw=raw if isinstance(raw, str) else None)

    body = raw[len(FEED_PREFIX):]
    if not body.strip():
        return FeedBatch()

    return FeedBatch(tuple(
        FeedRecord.from_wire(record) for record in body.split(RECORD_SEPARATOR)
    ))
