"""FastAPI dependencies for provider credentials and services."""
from typing import Optional

from fastapi import HTTPException, Query, Request

from activity_heatmap.services.ridewithgps import RideWithGPSService
from activity_heatmap.services.session import RIDEWITHGPS, STRAVA, ProviderSession
from activity_heatmap.services.strava import StravaService


def _bearer_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization")
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() == "bearer":
        return token.strip() or None
    return authorization.strip() or None


def get_strava_session(request: Request) -> ProviderSession:
    """
    Build the Strava session for this request from its Authorization header.

    Raises HTTPException if no token was sent.
    """
    token = _bearer_token(request)

    if not token:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    return ProviderSession(provider=STRAVA, access_token=token)


def get_rwgps_session(
    request: Request,
    token: Optional[str] = Query(None, description="RideWithGPS access token"),
) -> ProviderSession:
    """
    Build the RideWithGPS session for this request.

    The token query parameter wins over the Authorization header.
    """
    access_token = token or _bearer_token(request)

    if not access_token:
        raise HTTPException(status_code=401, detail="Missing access token")

    return ProviderSession(provider=RIDEWITHGPS, access_token=access_token)


def get_strava_service() -> StravaService:
    return StravaService()


def get_rwgps_service() -> RideWithGPSService:
    return RideWithGPSService()
