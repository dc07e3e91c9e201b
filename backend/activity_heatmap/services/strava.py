"""Strava API service for OAuth and activity data retrieval."""
import asyncio
import logging
from typing import Callable, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from activity_heatmap.config import Settings, settings as default_settings
from activity_heatmap.services.session import STRAVA, ProviderSession, raise_for_provider

logger = logging.getLogger(__name__)


class StravaService:
    """Service for interacting with Strava API."""

    def __init__(
        self,
        settings: Settings = default_settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self.transport,
            headers={
                "Accept": "application/json",
                "User-Agent": self.settings.USER_AGENT,
            },
        )

    def get_authorization_url(self, redirect_uri: Optional[str] = None, state: Optional[str] = None) -> str:
        """
        Build Strava OAuth authorization URL.

        Args:
            redirect_uri: Callback URL, defaults to STRAVA_REDIRECT_URI
            state: Optional state parameter for CSRF protection

        Returns:
            Full authorization URL to redirect user to
        """
        params = {
            "client_id": self.settings.STRAVA_CLIENT_ID,
            "redirect_uri": redirect_uri or self.settings.STRAVA_REDIRECT_URI,
            "response_type": "code",
            "scope": "read,activity:read_all",
            "approval_prompt": "auto",
        }

        if state:
            params["state"] = state

        return f"{self.settings.STRAVA_AUTH_URL}?{urlencode(params)}"

    async def exchange_token(self, code: str) -> Dict:
        """
        Exchange authorization code for access and refresh tokens.

        Args:
            code: Authorization code from Strava callback

        Returns:
            Dictionary containing token data and athlete info

        Raises:
            ProviderError: If token exchange fails
        """
        async with self._client() as client:
            response = await client.post(
                self.settings.STRAVA_TOKEN_URL,
                data={
                    "client_id": self.settings.STRAVA_CLIENT_ID,
                    "client_secret": self.settings.STRAVA_CLIENT_SECRET,
                    "code": code,
                    "grant_type": "authorization_code",
                },
            )
            raise_for_provider(response, STRAVA)
            return response.json()

    async def refresh_token(self, refresh_token: str) -> Dict:
        """
        Refresh an expired access token.

        Args:
            refresh_token: The refresh token from previous authorization

        Returns:
            Dictionary containing new token data
        """
        async with self._client() as client:
            response = await client.post(
                self.settings.STRAVA_TOKEN_URL,
                data={
                    "client_id": self.settings.STRAVA_CLIENT_ID,
                    "client_secret": self.settings.STRAVA_CLIENT_SECRET,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
            raise_for_provider(response, STRAVA)
            return response.json()

    @staticmethod
    def session_from_token(token_data: Dict) -> ProviderSession:
        """Build a ProviderSession from a Strava token response."""
        return ProviderSession(
            provider=STRAVA,
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            athlete=token_data.get("athlete"),
        )

    async def _get(self, session: ProviderSession, path: str, params: Optional[Dict] = None):
        async with self._client() as client:
            response = await client.get(
                f"{self.settings.STRAVA_API_BASE}{path}",
                headers=session.authorization_header(),
                params=params,
            )
            raise_for_provider(response, STRAVA)
            return response.json()

    async def get_athlete(self, session: ProviderSession) -> Dict:
        """Fetch the authenticated athlete's profile."""
        return await self._get(session, "/athlete")

    async def get_athlete_activities(
        self,
        session: ProviderSession,
        page: int = 1,
        per_page: int = 200,
        after: Optional[int] = None,
        before: Optional[int] = None,
    ) -> list:
        """
        Fetch one page of athlete activities from Strava API.

        Args:
            session: Strava session for the calling user
            page: Page number for pagination
            per_page: Number of activities per page (max 200)
            after: Unix timestamp to fetch activities after
            before: Unix timestamp to fetch activities before

        Returns:
            List of activity dictionaries
        """
        params = {"page": page, "per_page": per_page}

        if after:
            params["after"] = after
        if before:
            params["before"] = before

        return await self._get(session, "/athlete/activities", params)

    async def fetch_all_activities(
        self,
        session: ProviderSession,
        per_page: int = 200,
        max_pages: Optional[int] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> List[Dict]:
        """
        Page through every activity of the athlete.

        Pages are fetched one after another, pausing PAGE_DELAY_SECONDS
        between requests, until Strava returns an empty page.

        Args:
            session: Strava session for the calling user
            per_page: Activities per page (200 is Strava's maximum)
            max_pages: Optional cap on pages fetched
            on_progress: Called with the running activity count after each page

        Returns:
            All activities in the order Strava returned them
        """
        all_activities: List[Dict] = []
        page = 1

        while max_pages is None or page <= max_pages:
            logger.debug("Fetching Strava activities page %d (per_page=%d)", page, per_page)
            activities = await self.get_athlete_activities(session, page=page, per_page=per_page)

            if not activities:
                break

            all_activities.extend(activities)

            if on_progress:
                on_progress(len(all_activities))

            page += 1
            await asyncio.sleep(self.settings.PAGE_DELAY_SECONDS)

        logger.info("Fetched %d activities from Strava", len(all_activities))
        return all_activities

    async def get_activity_detail(self, session: ProviderSession, activity_id: int) -> Dict:
        """Fetch a single activity including its full-resolution polyline."""
        return await self._get(session, f"/activities/{activity_id}")

    @staticmethod
    def activity_polyline(activity: Dict) -> Optional[str]:
        """
        Pick the polyline of one activity.

        The detailed map.polyline (only present on activity detail) is
        preferred over map.summary_polyline.
        """
        activity_map = activity.get("map") or {}
        return activity_map.get("polyline") or activity_map.get("summary_polyline") or None
