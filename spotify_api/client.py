import logging
from typing import Any, Dict, Optional

import httpx

from constants import DEFAULT_HTTP_TIMEOUT, SPOTIFY_API_BASE_URL
from .errors import ProfileFetchFailed
from .playback import Profile

logger = logging.getLogger(__name__)


class SpotifyClient:
    """Thin async Spotify Web API client.

    The caller passes the access token on every call; token ownership and
    refresh live in SpotifyPKCEAuth / PlaybackPoller, not here.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = SPOTIFY_API_BASE_URL,
    ):
        self.config = config or {}
        self.base_url = base_url.rstrip("/")
        self._owns_http = http_client is None
        self.http = http_client or httpx.AsyncClient(
            timeout=float(self.config.get("http_timeout", DEFAULT_HTTP_TIMEOUT))
        )

    async def get(self, path: str, access_token: str) -> httpx.Response:
        return await self.http.get(
            f"{self.base_url}{path}",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )

    async def me(self, access_token: str) -> Profile:
        resp = await self.get("/me", access_token)
        if not resp.is_success:
            raise ProfileFetchFailed(resp.status_code, resp.text)

        try:
            payload = resp.json()
        except ValueError as e:
            raise ProfileFetchFailed(resp.status_code, f"response was not JSON: {resp.text}") from e

        return Profile.from_spotify(payload if isinstance(payload, dict) else {})

    async def currently_playing(self, access_token: str) -> httpx.Response:
        """Return the raw response; the poller branches on 200/204/401/other."""

        resp = await self.get("/me/player/currently-playing", access_token)
        logger.debug("Currently playing response status: %s", resp.status_code)
        return resp

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()
