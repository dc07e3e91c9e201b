"""Track store for persisting imported provider tracks."""
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from activity_heatmap.models import StoredTrack
from activity_heatmap.services.polyline import GeoPoint, InvalidCoordinate, MalformedPolyline, decode
from activity_heatmap.services.session import RIDEWITHGPS, STRAVA
from activity_heatmap.services.strava import StravaService
from activity_heatmap.services.tile_renderer import TileCoordinate
from activity_heatmap.services.track_payload import to_encoded_polyline

logger = logging.getLogger(__name__)

Bounds = Tuple[float, float, float, float]


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a provider ISO timestamp into a naive UTC datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _mercator_bbox(points: Sequence[GeoPoint]) -> Optional[Bounds]:
    """
    Calculate the Web Mercator bounding box of a track.

    Returns:
        (min_x, min_y, max_x, max_y) in meters, or None if no point projects
    """
    projected = [TileCoordinate.latlng_to_mercator(p.latitude, p.longitude) for p in points]
    projected = [xy for xy in projected if xy is not None]
    if not projected:
        return None

    xs = [x for x, _ in projected]
    ys = [y for _, y in projected]
    return (min(xs), min(ys), max(xs), max(ys))


class TrackStore:
    """Service for storing and querying imported tracks."""

    @staticmethod
    def items_from_strava(activities: Iterable[Dict]) -> List[Dict]:
        """
        Convert Strava activities into track items.

        Activities without a polyline are dropped.
        """
        items = []
        for activity in activities:
            polyline = StravaService.activity_polyline(activity)
            if not polyline:
                continue
            items.append({
                "external_id": str(activity["id"]),
                "name": activity.get("name"),
                "activity_type": activity.get("type"),
                "start_date": _parse_datetime(activity.get("start_date")),
                "distance": activity.get("distance"),
                "polyline": polyline,
            })
        return items

    @staticmethod
    def items_from_rwgps(trips_with_payloads: Iterable) -> List[Dict]:
        """
        Convert (trip, payload) pairs from RideWithGPS into track items.

        Trips whose payload is empty are dropped.
        """
        items = []
        for trip, payload in trips_with_payloads:
            if not payload:
                continue
            items.append({
                "external_id": str(trip["id"]),
                "name": trip.get("name"),
                "activity_type": trip.get("activity_type"),
                "start_date": _parse_datetime(trip.get("departed_at") or trip.get("created_at")),
                "distance": trip.get("distance"),
                "polyline": payload,
            })
        return items

    @staticmethod
    def upsert_tracks(db: Session, source: str, items: Iterable[Dict]) -> Dict:
        """
        Insert or update tracks for a source.

        Payloads are normalized to encoded polylines before storage; items
        whose payload cannot be read are skipped.

        Args:
            db: Database session
            source: Provider name (strava or ridewithgps)
            items: Track items with external_id, name, activity_type,
                start_date, distance and polyline

        Returns:
            Dictionary with new, updated, skipped and total counts
        """
        if source not in (STRAVA, RIDEWITHGPS):
            raise ValueError(f"Unknown track source: {source}")

        new_count = 0
        updated_count = 0
        skipped_count = 0

        for item in items:
            try:
                polyline = to_encoded_polyline(item["polyline"])
            except (MalformedPolyline, InvalidCoordinate) as e:
                logger.warning("Skipping %s track %s: %s", source, item.get("external_id"), e)
                skipped_count += 1
                continue

            points = decode(polyline)
            bbox = _mercator_bbox(points) or (None, None, None, None)

            values = {
                "name": item.get("name"),
                "activity_type": item.get("activity_type"),
                "start_date": item.get("start_date"),
                "distance": item.get("distance"),
                "polyline": polyline,
                "point_count": len(points),
                "bbox_min_x": bbox[0],
                "bbox_min_y": bbox[1],
                "bbox_max_x": bbox[2],
                "bbox_max_y": bbox[3],
            }

            existing = db.query(StoredTrack).filter(
                StoredTrack.source == source,
                StoredTrack.external_id == item["external_id"],
            ).first()

            if existing:
                for key, value in values.items():
                    setattr(existing, key, value)
                updated_count += 1
            else:
                db.add(StoredTrack(source=source, external_id=item["external_id"], **values))
                new_count += 1

        db.commit()

        total_count = db.query(StoredTrack).filter(StoredTrack.source == source).count()
        logger.info(
            "Stored %s tracks: %d new, %d updated, %d skipped, %d total",
            source, new_count, updated_count, skipped_count, total_count,
        )

        return {
            "new": new_count,
            "updated": updated_count,
            "skipped": skipped_count,
            "total": total_count,
        }

    @staticmethod
    def list_tracks(
        db: Session,
        source: Optional[str] = None,
        activity_type: Optional[str] = None,
        bounds: Optional[Bounds] = None,
    ) -> List[StoredTrack]:
        """
        Get stored tracks, newest first, with optional filters.

        Args:
            db: Database session
            source: Only tracks from this provider
            activity_type: Only tracks of this type ("all" disables the filter)
            bounds: Web Mercator (min_x, min_y, max_x, max_y); only tracks whose
                bounding box intersects it are returned
        """
        query = db.query(StoredTrack)

        if bounds:
            min_x, min_y, max_x, max_y = bounds
            query = query.filter(
                StoredTrack.bbox_min_x <= max_x,
                StoredTrack.bbox_max_x >= min_x,
                StoredTrack.bbox_min_y <= max_y,
                StoredTrack.bbox_max_y >= min_y,
            )

        if source:
            query = query.filter(StoredTrack.source == source)

        if activity_type and activity_type != "all":
            query = query.filter(StoredTrack.activity_type == activity_type)

        return query.order_by(StoredTrack.start_date.desc(), StoredTrack.id.desc()).all()

    @staticmethod
    def polylines(
        db: Session,
        source: Optional[str] = None,
        activity_type: Optional[str] = None,
        bounds: Optional[Bounds] = None,
    ) -> List[str]:
        """Get the encoded polylines of stored tracks."""
        return [track.polyline for track in TrackStore.list_tracks(db, source, activity_type, bounds)]

    @staticmethod
    def delete_source(db: Session, source: str) -> int:
        """Delete every stored track from a source; returns the number removed."""
        deleted = db.query(StoredTrack).filter(StoredTrack.source == source).delete()
        db.commit()
        logger.info("Deleted %d %s tracks", deleted, source)
        return deleted
