"""
Segment aggregation for heatmaps.

Tracks are snapped to a 1e-5 degree grid and split into undirected segments
between consecutive points. Counting how often each segment appears across
all tracks gives the overlap intensity the heatmap is drawn from.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

import gpxpy
import gpxpy.gpx

from activity_heatmap.services.polyline import GeoPoint, MalformedPolyline, InvalidCoordinate
from activity_heatmap.services.track_payload import parse_track

logger = logging.getLogger(__name__)

LatLng = Tuple[float, float]
SegmentKey = Tuple[LatLng, LatLng]


@dataclass(frozen=True)
class Segment:
    """An undirected edge between two grid points and how often it was travelled."""
    start: LatLng
    end: LatLng
    count: int

    def to_dict(self) -> Dict:
        return {
            "start": list(self.start),
            "end": list(self.end),
            "count": self.count,
        }


def snap(value: float) -> float:
    """Round a coordinate to 5 decimal places (about 1.1 m)."""
    return round(value * 1e5) / 1e5


def _segment_keys(points: Sequence[LatLng]) -> Iterable[SegmentKey]:
    for a, b in zip(points, points[1:]):
        if a == b:
            continue
        yield (a, b) if a < b else (b, a)


def count_segments(tracks: Iterable[Sequence[GeoPoint]]) -> List[Segment]:
    """
    Aggregate tracks into undirected segment counts.

    Returns:
        Segments sorted by descending count, ties broken by coordinates
    """
    counts: Counter = Counter()

    for track in tracks:
        snapped = [(snap(p.latitude), snap(p.longitude)) for p in track]
        counts.update(_segment_keys(snapped))

    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [Segment(start=a, end=b, count=count) for (a, b), count in ordered]


def decode_polyline_string(payload: str) -> List[List[float]]:
    """
    Decode one track payload into [[lat, lng], ...].

    Raises:
        MalformedPolyline: If the payload cannot be read
    """
    return [[p.latitude, p.longitude] for p in parse_track(payload)]


def process_polylines(payloads: Iterable[str]) -> List[Segment]:
    """
    Build heatmap segments from encoded polylines or JSON coordinate arrays.

    Unreadable payloads are logged and skipped so one corrupt activity does
    not sink a whole batch.
    """
    tracks = []

    for position, payload in enumerate(payloads):
        if not payload:
            continue
        try:
            tracks.append(parse_track(payload))
        except (MalformedPolyline, InvalidCoordinate) as e:
            logger.warning("Skipping polyline %d: %s", position, e)

    segments = count_segments(tracks)
    logger.info("Processed %d polylines into %d segments", len(tracks), len(segments))
    return segments


def tracks_from_gpx(content: bytes) -> List[List[GeoPoint]]:
    """
    Parse a GPX document into one track per GPX track segment.

    Raises:
        gpxpy.gpx.GPXException: If the document cannot be parsed
    """
    gpx = gpxpy.parse(content.decode("utf-8-sig"))
    tracks = []

    for track in gpx.tracks:
        for segment in track.segments:
            points = [
                GeoPoint(p.latitude, p.longitude, p.elevation)
                for p in segment.points
                if p.latitude is not None and p.longitude is not None
            ]
            if points:
                tracks.append(points)

    return tracks


def process_gpx_files(files: Iterable[bytes]) -> List[Segment]:
    """
    Build heatmap segments from raw GPX file contents.

    Files that fail to parse are logged and skipped.
    """
    tracks = []
    parsed = 0

    for position, content in enumerate(files):
        try:
            tracks.extend(tracks_from_gpx(content))
            parsed += 1
        except (gpxpy.gpx.GPXException, UnicodeDecodeError) as e:
            logger.warning("Skipping GPX file %d: %s", position, e)

    segments = count_segments(tracks)
    logger.info("Processed %d GPX files into %d segments", parsed, len(segments))
    return segments
