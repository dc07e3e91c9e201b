"""
Pass-through routes for provider data.

The browser cannot call RideWithGPS directly (CORS), so these routes forward
a request with the caller's own token and return the upstream JSON. Provider
errors are turned into responses by the handler registered in main.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from activity_heatmap.dependencies import (
    get_rwgps_service,
    get_rwgps_session,
    get_strava_service,
    get_strava_session,
)
from activity_heatmap.services.ridewithgps import RideWithGPSService
from activity_heatmap.services.session import ProviderSession
from activity_heatmap.services.strava import StravaService

router = APIRouter(prefix="/api", tags=["proxies"])


@router.get("/strava-activities")
async def strava_activities(
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(200, ge=1, le=200, description="Activities per page (max 200)"),
    session: ProviderSession = Depends(get_strava_session),
    service: StravaService = Depends(get_strava_service),
):
    """Fetch one page of the caller's Strava activities."""
    return await service.get_athlete_activities(session, page=page, per_page=per_page)


@router.get("/strava-athlete")
async def strava_athlete(
    session: ProviderSession = Depends(get_strava_session),
    service: StravaService = Depends(get_strava_service),
):
    """Fetch the caller's Strava athlete profile."""
    return await service.get_athlete(session)


@router.get("/rwgps-user")
async def rwgps_user(
    session: ProviderSession = Depends(get_rwgps_session),
    service: RideWithGPSService = Depends(get_rwgps_service),
):
    """Fetch the caller's RideWithGPS user."""
    return await service.get_current_user(session)


@router.get("/rwgps-trips")
async def rwgps_trips(
    offset: int = Query(0, ge=0, description="Number of trips to skip"),
    limit: int = Query(100, ge=1, le=200, description="Trips per page"),
    session: ProviderSession = Depends(get_rwgps_session),
    service: RideWithGPSService = Depends(get_rwgps_service),
):
    """Fetch one page of the caller's RideWithGPS trips."""
    return await service.get_trips(session, offset=offset, limit=limit)


@router.get("/rwgps-track")
async def rwgps_track(
    id: Optional[int] = Query(None, description="RideWithGPS track ID"),
    session: ProviderSession = Depends(get_rwgps_session),
    service: RideWithGPSService = Depends(get_rwgps_service),
):
    """Fetch track data for one RideWithGPS track."""
    if id is None:
        raise HTTPException(status_code=400, detail="Missing track ID")

    return await service.get_track(session, id)
