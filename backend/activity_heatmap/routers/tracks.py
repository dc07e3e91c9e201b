"""Tracks router for importing provider tracks and listing stored ones."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from activity_heatmap.database import get_db
from activity_heatmap.dependencies import (
    get_rwgps_service,
    get_rwgps_session,
    get_strava_service,
    get_strava_session,
)
from activity_heatmap.services.ridewithgps import RideWithGPSService
from activity_heatmap.services.session import RIDEWITHGPS, STRAVA, ProviderSession
from activity_heatmap.services.strava import StravaService
from activity_heatmap.services.track_store import TrackStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tracks", tags=["tracks"])


@router.post("/import/strava")
async def import_strava(
    max_pages: Optional[int] = Query(None, ge=1, le=50, description="Stop after this many pages"),
    session: ProviderSession = Depends(get_strava_session),
    service: StravaService = Depends(get_strava_service),
    db: Session = Depends(get_db),
):
    """
    Fetch every Strava activity for the caller and store its polyline.

    The access token is used for this request only.
    """
    activities = await service.fetch_all_activities(session, max_pages=max_pages)
    result = TrackStore.upsert_tracks(db, STRAVA, TrackStore.items_from_strava(activities))

    return {
        "success": True,
        "message": f"Imported {result['new']} new Strava tracks",
        "fetched": len(activities),
        **result,
    }


@router.post("/import/rwgps")
async def import_rwgps(
    session: ProviderSession = Depends(get_rwgps_session),
    service: RideWithGPSService = Depends(get_rwgps_service),
    db: Session = Depends(get_db),
):
    """Fetch every RideWithGPS trip for the caller and store its track."""
    trips = await service.fetch_all_trips(session)

    pairs = await service.trips_with_payloads(session, trips)
    result = TrackStore.upsert_tracks(db, RIDEWITHGPS, TrackStore.items_from_rwgps(pairs))

    return {
        "success": True,
        "message": f"Imported {result['new']} new RideWithGPS tracks",
        "fetched": len(trips),
        **result,
    }


@router.get("")
async def list_tracks(
    source: Optional[str] = Query(None, description="Filter by source (strava, ridewithgps)"),
    activity_type: Optional[str] = Query(None, description="Filter by activity type"),
    db: Session = Depends(get_db),
):
    """List stored tracks, newest first."""
    tracks = TrackStore.list_tracks(db, source=source, activity_type=activity_type)

    return {
        "count": len(tracks),
        "tracks": [track.to_dict() for track in tracks],
    }


@router.delete("/{source}")
async def delete_tracks(source: str, db: Session = Depends(get_db)):
    """Remove every stored track imported from a source."""
    if source not in (STRAVA, RIDEWITHGPS):
        raise HTTPException(status_code=404, detail=f"Unknown track source: {source}")

    deleted = TrackStore.delete_source(db, source)
    return {"success": True, "deleted": deleted}
