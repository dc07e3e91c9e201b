"""Per-request provider credentials and upstream errors."""
from dataclasses import dataclass, field
from typing import Dict, Optional

STRAVA = "strava"
RIDEWITHGPS = "ridewithgps"


@dataclass(frozen=True)
class ProviderSession:
    """
    Credentials for one provider, passed explicitly into every service call.

    Nothing holds a session between requests; callers build one from the
    incoming request (or a fresh token exchange) and drop it when done.
    """
    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    athlete: Optional[Dict] = field(default=None, compare=False)

    def authorization_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def __repr__(self):
        return f"<ProviderSession(provider={self.provider}, token={'present' if self.access_token else 'missing'})>"


class ProviderError(Exception):
    """An upstream provider answered with a non-success status."""

    def __init__(self, status_code: int, detail: str, provider: str = ""):
        self.status_code = status_code
        self.detail = detail
        self.provider = provider
        super().__init__(f"{provider or 'provider'} error {status_code}: {detail}")


class ProviderAuthError(ProviderError):
    """The provider rejected the access token; the caller must reconnect."""

    def __init__(self, provider: str = "", detail: Optional[str] = None):
        name = {STRAVA: "Strava", RIDEWITHGPS: "RideWithGPS"}.get(provider, "Provider")
        super().__init__(
            401,
            detail or f"{name} authentication expired. Please reconnect.",
            provider,
        )


def raise_for_provider(response, provider: str) -> None:
    """
    Map a non-success httpx response to ProviderError / ProviderAuthError.

    Args:
        response: httpx.Response from the upstream API
        provider: Provider name for error messages
    """
    if response.is_success:
        return
    if response.status_code == 401:
        raise ProviderAuthError(provider)
    raise ProviderError(response.status_code, response.text or response.reason_phrase, provider)
