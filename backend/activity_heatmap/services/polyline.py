"""
Google Polyline encoding/decoding utilities.

Strava and RideWithGPS both publish tracks in Google's Encoded Polyline
Algorithm Format. Each coordinate is scaled to a fixed-point integer, delta
encoded against the previous point and written as 5-bit groups offset into
the printable ASCII range.
"""

import math
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

DEFAULT_PRECISION = 5
MAX_PRECISION = 10

# Every encoded character lies in '?' (63) .. '~' (126)
_MIN_CHAR = 63
_MAX_CHAR = 126


@dataclass(frozen=True)
class GeoPoint:
    """A single recorded position. Elevation is optional and never encoded."""
    latitude: float
    longitude: float
    elevation: Optional[float] = None


Track = List[GeoPoint]


class InvalidCoordinate(ValueError):
    """Raised by encode() when a point cannot be represented."""

    def __init__(self, index: int, latitude: float, longitude: float):
        self.index = index
        self.latitude = latitude
        self.longitude = longitude
        super().__init__(
            f"Invalid coordinate at index {index}: ({latitude}, {longitude})"
        )


class MalformedPolyline(ValueError):
    """Raised by decode() when the encoded string is truncated or corrupt."""

    def __init__(self, offset: int, reason: str):
        self.offset = offset
        self.reason = reason
        super().__init__(f"Malformed polyline at offset {offset}: {reason}")


def _check_precision(precision: int) -> int:
    if isinstance(precision, bool) or not isinstance(precision, int):
        raise ValueError(f"Precision must be an integer, got {precision!r}")
    if not 0 <= precision <= MAX_PRECISION:
        raise ValueError(f"Precision must be between 0 and {MAX_PRECISION}, got {precision}")
    return precision


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    """Check that a lat/lng pair is finite and inside WGS84 bounds."""
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        return False

    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False

    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def encode(points: Sequence[GeoPoint], precision: int = DEFAULT_PRECISION) -> str:
    """
    Encode a track into a Google Polyline string.

    Args:
        points: Ordered GeoPoints (latitude, longitude; elevation is ignored)
        precision: Number of decimal places kept (5 for Strava/RideWithGPS)

    Returns:
        Polyline encoded string ("" for an empty track)

    Raises:
        InvalidCoordinate: If any point is out of range or not finite
    """
    factor = 10 ** _check_precision(precision)

    # Validate everything first so a bad point never yields a partial result
    for index, point in enumerate(points):
        if not is_valid_coordinate(point.latitude, point.longitude):
            raise InvalidCoordinate(index, point.latitude, point.longitude)

    encoded = []
    prev_lat = 0
    prev_lng = 0

    for point in points:
        lat_int = int(round(point.latitude * factor))
        lng_int = int(round(point.longitude * factor))

        encoded.extend(_encode_value(lat_int - prev_lat))
        encoded.extend(_encode_value(lng_int - prev_lng))

        prev_lat = lat_int
        prev_lng = lng_int

    return ''.join(encoded)


def _encode_value(value: int) -> List[str]:
    """Encode a single coordinate delta value."""
    # Left shift and invert if negative
    value = ~(value << 1) if value < 0 else (value << 1)

    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1f)) + 63))
        value >>= 5

    chunks.append(chr(value + 63))
    return chunks


def _decode_value(encoded: str, index: int, start: int) -> Tuple[int, int]:
    """
    Read one signed delta starting at index.

    Returns:
        (delta, index of the next unread character)
    """
    result = 0
    shift = 0

    while True:
        if index >= len(encoded):
            raise MalformedPolyline(index, f"string ends inside the value starting at offset {start}")

        char = ord(encoded[index])
        if char < _MIN_CHAR or char > _MAX_CHAR:
            raise MalformedPolyline(index, f"character {encoded[index]!r} is outside the polyline alphabet")

        b = char - 63
        index += 1
        result |= (b & 0x1f) << shift
        shift += 5
        if b < 0x20:
            break

    delta = ~(result >> 1) if (result & 1) else (result >> 1)
    return delta, index


def iter_decode(encoded: str, precision: int = DEFAULT_PRECISION) -> Iterator[GeoPoint]:
    """
    Lazily decode a polyline, yielding one GeoPoint per coordinate pair.

    The generator holds no shared state, so decoding the same string again
    yields the same points. Errors surface at the point they are reached;
    use decode() when the whole track must be valid.
    """
    factor = 10 ** _check_precision(precision)
    index = 0
    lat = 0
    lng = 0

    while index < len(encoded):
        start = index
        dlat, index = _decode_value(encoded, index, start)

        if index >= len(encoded):
            raise MalformedPolyline(index, f"latitude at offset {start} has no longitude")

        dlng, index = _decode_value(encoded, index, start)

        lat += dlat
        lng += dlng

        yield GeoPoint(latitude=lat / factor, longitude=lng / factor)


def decode(
    encoded: str,
    precision: int = DEFAULT_PRECISION,
    elevations: Optional[Sequence[Optional[float]]] = None,
) -> Track:
    """
    Decode a Google Polyline encoded string into a track.

    Args:
        encoded: Polyline encoded string
        precision: Number of decimal places used when encoding
        elevations: Optional out-of-band elevation array, one per point

    Returns:
        List of GeoPoints in recording order

    Raises:
        MalformedPolyline: If the string is truncated or contains invalid characters
    """
    points = list(iter_decode(encoded, precision))

    if elevations is None:
        return points

    if len(elevations) != len(points):
        raise ValueError(
            f"Got {len(elevations)} elevations for {len(points)} decoded points"
        )

    return [
        GeoPoint(point.latitude, point.longitude, elevation)
        for point, elevation in zip(points, elevations)
    ]


def split_elevations(points: Sequence[GeoPoint]) -> List[Optional[float]]:
    """Split the elevation channel off a track so it can travel beside the polyline."""
    return [point.elevation for point in points]


def has_elevation(points: Sequence[GeoPoint]) -> bool:
    """Check whether any point carries an elevation."""
    return any(point.elevation is not None for point in points)
