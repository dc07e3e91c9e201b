"""
Track wire representations.

Providers hand us tracks either as an encoded polyline or, when only raw
points are available, as a JSON array of [lat, lng] pairs. Both describe the
same Track; this module converts between them and GeoPoints.
"""

import json
from typing import Any, Dict, Iterable, List, Optional

from activity_heatmap.services.polyline import (
    DEFAULT_PRECISION,
    GeoPoint,
    InvalidCoordinate,
    MalformedPolyline,
    Track,
    decode,
    encode,
    is_valid_coordinate,
)


def _load_json_list(payload: str) -> Optional[list]:
    stripped = payload.lstrip()
    if not stripped.startswith("["):
        return None
    try:
        data = json.loads(stripped)
    except ValueError:
        return None
    return data if isinstance(data, list) else None


def is_json_coordinates(payload: str) -> bool:
    """Check whether a track payload is a JSON coordinate array rather than a polyline."""
    return _load_json_list(payload) is not None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _points_from_json(data: List[Any]) -> Track:
    points = []
    for index, entry in enumerate(data):
        if not isinstance(entry, (list, tuple)) or len(entry) not in (2, 3):
            raise MalformedPolyline(index, "coordinate entries must be [lat, lng] or [lat, lng, ele]")

        lat, lng = entry[0], entry[1]
        if not is_valid_coordinate(lat, lng):
            raise InvalidCoordinate(index, lat, lng)

        elevation = entry[2] if len(entry) == 3 else None
        if elevation is not None and not _is_number(elevation):
            raise MalformedPolyline(index, f"elevation must be a number, got {elevation!r}")

        points.append(GeoPoint(
            latitude=float(lat),
            longitude=float(lng),
            elevation=float(elevation) if elevation is not None else None,
        ))
    return points


def parse_track(payload: str, precision: int = DEFAULT_PRECISION) -> Track:
    """
    Turn any supported track payload into GeoPoints.

    Args:
        payload: Encoded polyline or JSON array of [lat, lng] pairs
        precision: Polyline precision, ignored for JSON payloads

    Returns:
        List of GeoPoints

    Raises:
        MalformedPolyline: If the payload cannot be read
        InvalidCoordinate: If a JSON coordinate is out of range
    """
    data = _load_json_list(payload)
    if data is not None:
        return _points_from_json(data)
    return decode(payload, precision)


def to_encoded_polyline(payload: str, precision: int = DEFAULT_PRECISION) -> str:
    """Normalize a track payload to an encoded polyline."""
    data = _load_json_list(payload)
    if data is None:
        # Validate by decoding so corrupt strings never get stored
        decode(payload, precision)
        return payload
    return encode(_points_from_json(data), precision)


def points_from_rwgps(track_points: Iterable[Dict[str, Any]]) -> Track:
    """
    Convert RideWithGPS track_points ({x: lng, y: lat, e: elevation}) to GeoPoints.

    Points without both x and y, or with values that are not numbers, are
    skipped.
    """
    points = []
    for point in track_points or []:
        if not isinstance(point, dict):
            continue
        lng = point.get("x")
        lat = point.get("y")
        elevation = point.get("e")
        if not (_is_number(lat) and _is_number(lng)):
            continue
        if elevation is not None and not _is_number(elevation):
            continue
        points.append(GeoPoint(
            latitude=float(lat),
            longitude=float(lng),
            elevation=float(elevation) if elevation is not None else None,
        ))
    return points


def to_json_coordinates(points: Iterable[GeoPoint]) -> str:
    """Serialize a track as a JSON array of [lat, lng] pairs."""
    return json.dumps([[p.latitude, p.longitude] for p in points])
