"""RideWithGPS API service for OAuth and trip/track retrieval."""
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

from activity_heatmap.config import Settings, settings as default_settings
from activity_heatmap.services.session import (
    RIDEWITHGPS,
    ProviderAuthError,
    ProviderError,
    ProviderSession,
    raise_for_provider,
)
from activity_heatmap.services.track_payload import points_from_rwgps, to_json_coordinates

logger = logging.getLogger(__name__)

# RideWithGPS exposes track data under several paths depending on account age
TRACK_ENDPOINTS = (
    "/tracks/{id}.json",
    "/api/v1/tracks/{id}.json",
    "/trips/{id}/track.json",
)


class RideWithGPSService:
    """Service for interacting with RideWithGPS API."""

    def __init__(
        self,
        settings: Settings = default_settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.RWGPS_API_BASE,
            transport=self.transport,
            headers={
                "Accept": "application/json",
                "User-Agent": self.settings.USER_AGENT,
            },
        )

    def get_authorization_url(self, redirect_uri: Optional[str] = None, state: Optional[str] = None) -> str:
        """Build RideWithGPS OAuth authorization URL (RideWithGPS takes no scope)."""
        params = {
            "client_id": self.settings.RWGPS_CLIENT_ID,
            "redirect_uri": redirect_uri or self.settings.RWGPS_REDIRECT_URI,
            "response_type": "code",
        }

        if state:
            params["state"] = state

        return f"{self.settings.RWGPS_AUTH_URL}?{urlencode(params)}"

    async def exchange_token(self, code: str, redirect_uri: str) -> Dict:
        """
        Exchange authorization code for an access token.

        RideWithGPS expects a form-encoded body and the same redirect_uri the
        authorization request used.

        Raises:
            ProviderError: If token exchange fails
        """
        async with self._client() as client:
            response = await client.post(
                self.settings.RWGPS_TOKEN_URL,
                data={
                    "grant_type": "authorization_code",
                    "client_id": self.settings.RWGPS_CLIENT_ID,
                    "client_secret": self.settings.RWGPS_CLIENT_SECRET,
                    "code": code,
                    "redirect_uri": redirect_uri,
                },
            )
            raise_for_provider(response, RIDEWITHGPS)
            return response.json()

    @staticmethod
    def session_from_token(token_data: Dict) -> ProviderSession:
        """Build a ProviderSession from a RideWithGPS token response."""
        return ProviderSession(
            provider=RIDEWITHGPS,
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
        )

    async def _get(self, session: ProviderSession, path: str, params: Optional[Dict] = None):
        async with self._client() as client:
            response = await client.get(path, headers=session.authorization_header(), params=params)
            raise_for_provider(response, RIDEWITHGPS)
            return response.json()

    async def get_current_user(self, session: ProviderSession) -> Dict:
        """Fetch the authenticated user."""
        return await self._get(session, "/users/current.json")

    async def get_trips(self, session: ProviderSession, offset: int = 0, limit: int = 100) -> Dict:
        """
        Fetch one page of the user's trips.

        Returns:
            Raw response body; trips are under "results"
        """
        return await self._get(
            session,
            "/users/current/trips.json",
            {"offset": offset, "limit": limit},
        )

    async def fetch_all_trips(
        self,
        session: ProviderSession,
        limit: int = 100,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> List[Dict]:
        """
        Page through every trip using offset pagination.

        Stops on an empty page or on a page shorter than limit.
        """
        all_trips: List[Dict] = []
        offset = 0

        while True:
            data = await self.get_trips(session, offset=offset, limit=limit)
            trips = data.get("results") or []

            if not trips:
                break

            all_trips.extend(trips)

            if on_progress:
                on_progress(len(all_trips))

            offset += limit
            await asyncio.sleep(self.settings.PAGE_DELAY_SECONDS)

            if len(trips) < limit:
                break

        logger.info("Fetched %d trips from RideWithGPS", len(all_trips))
        return all_trips

    async def get_track(self, session: ProviderSession, track_id: int) -> Dict:
        """
        Fetch track data, trying each known endpoint in turn.

        Raises:
            ProviderAuthError: If the token is rejected
            ProviderError: If every endpoint fails; carries the last status
        """
        last_error = None

        async with self._client() as client:
            for attempt, template in enumerate(TRACK_ENDPOINTS, start=1):
                path = template.format(id=track_id)
                response = await client.get(path, headers=session.authorization_header())

                if response.is_success:
                    logger.debug("Track %s fetched from endpoint %d (%s)", track_id, attempt, path)
                    return response.json()

                if response.status_code == 401:
                    raise ProviderAuthError(RIDEWITHGPS)

                logger.debug("Track endpoint %d failed for %s: %d", attempt, track_id, response.status_code)
                last_error = ProviderError(
                    response.status_code,
                    f"Failed to fetch track from all endpoints (last: {path}): {response.text}",
                    RIDEWITHGPS,
                )

        raise last_error

    @staticmethod
    def track_payload(data: Dict) -> Optional[str]:
        """
        Pick the track representation out of a track response.

        Raw track_points win over track_encoded; points are serialized as a
        JSON coordinate array.
        """
        if data.get("track_points"):
            points = points_from_rwgps(data["track_points"])
            if points:
                return to_json_coordinates(points)
        if data.get("track_encoded"):
            return data["track_encoded"]
        return None

    async def trip_payload(self, session: ProviderSession, trip: Dict) -> Optional[str]:
        """
        Find a track payload for one trip.

        Uses, in order: track_encoded, inline track_points, or a separate
        track fetch when the trip has a track_id and is_gps. A failed fetch
        is logged and yields None.
        """
        if trip.get("track_encoded"):
            return trip["track_encoded"]

        if trip.get("track_points"):
            points = points_from_rwgps(trip["track_points"])
            return to_json_coordinates(points) if points else None

        if trip.get("track_id") and trip.get("is_gps"):
            try:
                return self.track_payload(await self.get_track(session, trip["track_id"]))
            except ProviderAuthError:
                raise
            except ProviderError as e:
                logger.warning("Failed to fetch track data for trip %s: %s", trip.get("id"), e)
                return None
            finally:
                await asyncio.sleep(self.settings.TRACK_DELAY_SECONDS)

        logger.debug("No GPS data found for trip %s", trip.get("id"))
        return None

    async def trips_with_payloads(
        self,
        session: ProviderSession,
        trips: List[Dict],
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> List[Tuple[Dict, str]]:
        """
        Pair every trip that has GPS data with its track payload.

        Trips without a payload are left out; on_progress is called with
        (processed, total) after each trip.
        """
        pairs = []

        for processed, trip in enumerate(trips, start=1):
            payload = await self.trip_payload(session, trip)
            if payload:
                pairs.append((trip, payload))

            if on_progress:
                on_progress(processed, len(trips))

        logger.info("Found track data for %d of %d trips", len(pairs), len(trips))
        return pairs
