"""Authentication router for Strava and RideWithGPS token exchange."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from activity_heatmap.dependencies import get_rwgps_service, get_strava_service
from activity_heatmap.schemas import RWGPSTokenRequest, StravaTokenRequest
from activity_heatmap.services.ridewithgps import RideWithGPSService
from activity_heatmap.services.session import ProviderError
from activity_heatmap.services.strava import StravaService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["authentication"])


@router.get("/strava/authorize-url")
async def strava_authorize_url(
    redirect_uri: Optional[str] = Query(None, description="Callback URL registered with Strava"),
    state: Optional[str] = Query(None, description="Opaque CSRF state"),
    service: StravaService = Depends(get_strava_service),
):
    """Build the Strava OAuth authorization URL the browser should visit."""
    return {"url": service.get_authorization_url(redirect_uri, state)}


@router.get("/rwgps/authorize-url")
async def rwgps_authorize_url(
    redirect_uri: Optional[str] = Query(None, description="Callback URL registered with RideWithGPS"),
    state: Optional[str] = Query(None, description="Opaque CSRF state"),
    service: RideWithGPSService = Depends(get_rwgps_service),
):
    """Build the RideWithGPS OAuth authorization URL the browser should visit."""
    return {"url": service.get_authorization_url(redirect_uri, state)}


@router.post("/strava-token")
async def strava_token(
    body: StravaTokenRequest,
    service: StravaService = Depends(get_strava_service),
):
    """
    Exchange a Strava authorization code for tokens.

    The token response is handed back to the caller as-is; nothing is stored
    server side.
    """
    if not body.code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    try:
        return await service.exchange_token(body.code)
    except ProviderError as e:
        logger.error("Strava token exchange failed: %s", e.detail)
        raise HTTPException(status_code=e.status_code, detail="Token exchange failed")


@router.post("/rwgps-token")
async def rwgps_token(
    body: RWGPSTokenRequest,
    service: RideWithGPSService = Depends(get_rwgps_service),
):
    """Exchange a RideWithGPS authorization code for tokens."""
    if not body.code or not body.redirectUri:
        raise HTTPException(status_code=400, detail="Missing code or redirectUri")

    try:
        return await service.exchange_token(body.code, body.redirectUri)
    except ProviderError as e:
        logger.error("RideWithGPS token exchange failed: %s", e.detail)
        raise HTTPException(status_code=e.status_code, detail="Token exchange failed")
