"""
Market stats client for the provider's JSON endpoint.

Calls getAllMktStats.json with the cached session's bearer token and
cookies. An authorization-denied status invalidates the session, forces
one fresh login and retries the request exactly once.
"""

from urllib.parse import urlencode

import httpx

from market_intel.config.settings import ApiSettings, ProviderSettings
from market_intel.core.exceptions import SessionExpired, UpstreamError
from market_intel.core.models import LocationParams, MarketStats, Session
from market_intel.normalization.normalizer import normalize_payload
from market_intel.session.manager import SessionManager
from market_intel.utils.logging import get_logger
from market_intel.utils.metrics import increment_reauthentications, time_stats_request

logger = get_logger(__name__)

AUTH_DENIED_STATUSES = frozenset({401, 403})


class MarketStatsClient:
    """
    Fetches and normalizes suburb market stats.

    Example:
        >>> client = MarketStatsClient(sessions, settings.dsr, settings.api)
        >>> stats = await client.fetch_stats(LocationParams("Paddington", "nsw", "2021"))
        >>> stats.stock_rating
        <Rating.LOW: 'Low'>
    """

    def __init__(
        self,
        sessions: SessionManager,
        provider: ProviderSettings,
        settings: ApiSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.sessions = sessions
        self.provider = provider
        self.settings = settings
        self._http = http_client
        self._owns_http = http_client is None

    def build_url(self, token: str, location: LocationParams) -> str:
        """Build the deterministic stats URL for a token and location."""
        params = {
            "access_token": token,
            "state": location.state.upper(),
            "postCode": location.postcode,
            "locality": location.suburb.upper(),
            "propTypeCode": self.settings.property_type_code,
            "requestType": self.settings.request_type,
            "captchaResponse": "",
            "status": "noRecap",
        }
        return f"{self.provider.base_url}{self.settings.stats_path}?{urlencode(params)}"

    def _headers(self, session: Session) -> dict[str, str]:
        return {
            "Accept": "*/*",
            "Cookie": session.cookie_header,
            "Referer": f"{self.provider.base_url}{self.settings.referer_path}",
        }

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.settings.timeout_seconds)
        return self._http

    async def _get(self, session: Session, location: LocationParams) -> httpx.Response:
        url = self.build_url(session.token, location)
        logger.debug(f"Stats request: {url.split('?')[0]} for {location.suburb}")
        try:
            return await self._client().get(url, headers=self._headers(session))
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Stats request failed: {e}",
                url=url.split("?")[0],
            ) from e

    async def fetch_stats(
        self,
        location: LocationParams,
        session: Session | None = None,
    ) -> MarketStats:
        """
        Fetch market stats for a suburb.

        Args:
            location: Suburb, state and postcode to look up
            session: Session to use (defaults to the manager's cached one)

        Raises:
            SessionExpired: The session was rejected before and after re-login
            UpstreamError: Non-auth HTTP failure or malformed payload
            AuthenticationFailure, TokenCaptureFailure: From re-login
        """
        with time_stats_request():
            if session is None:
                session = await self.sessions.acquire_session()

            response = await self._get(session, location)

            if response.status_code in AUTH_DENIED_STATUSES:
                logger.warning(
                    f"Session rejected with {response.status_code}, re-authenticating")
                increment_reauthentications()
                if not self.sessions.invalidate(session):
                    # The rejected session was not the cached one; drop the
                    # cached one too so the retry runs on a fresh login
                    self.sessions.invalidate()
                session = await self.sessions.acquire_session()
                response = await self._get(session, location)

                if response.status_code in AUTH_DENIED_STATUSES:
                    self.sessions.invalidate(session)
                    raise SessionExpired(
                        "Session rejected again after re-authentication",
                        provider=self.sessions.flow.name,
                        details={"status_code": response.status_code},
                    )

            if not response.is_success:
                raise UpstreamError(
                    f"Stats endpoint returned {response.status_code}",
                    status_code=response.status_code,
                )

            try:
                payload = response.json()
            except ValueError as e:
                raise UpstreamError(
                    "Stats endpoint returned a non-JSON payload",
                    status_code=response.status_code,
                ) from e

            return normalize_payload(payload)

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None
