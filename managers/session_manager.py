import webbrowser
from typing import Any, Dict, Optional

import httpx

from constants import DEFAULT_POLL_INTERVAL_MS, DEFAULT_STATUS_CLEAR_SECONDS
from managers.poll_manager import PlaybackPoller, PollOutcome
from managers.status_manager import TransientStatus
from spotify_api.auth import SpotifyPKCEAuth, extract_code_from_redirect_url, strip_code_from_url
from spotify_api.client import SpotifyClient
from spotify_api.errors import SpotifyAuthError
from spotify_api.playback import Profile
from utils.logger import log_info, log_success, log_warning


class SessionManager:
    """Ties login, profile, polling and logout together for one user session.

    The view is the rendering collaborator: render_profile(profile),
    clear_profile(), render_playback(snapshot), render_no_track() and
    clear_playback().
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        auth: SpotifyPKCEAuth,
        client: SpotifyClient,
        view,
        status: Optional[TransientStatus] = None,
        poller: Optional[PlaybackPoller] = None,
    ):
        self.config = config or {}
        self.auth = auth
        self.client = client
        self.view = view
        self.status = status or TransientStatus(self.config.get("status_clear_seconds", DEFAULT_STATUS_CLEAR_SECONDS))
        self.poller = poller or PlaybackPoller(client, auth, view, status=self.status)
        self._profile: Optional[Profile] = None

    @property
    def is_logged_in(self) -> bool:
        return self.auth.token_manager.has_token()

    @property
    def profile(self) -> Optional[Profile]:
        return self._profile

    @property
    def has_pending_login(self) -> bool:
        return self.auth.verifier_store.load() is not None

    def login(self, open_url=webbrowser.open) -> str:
        return self.auth.begin_login(open_url)

    async def handle_redirect(self, redirect: str) -> bool:
        """Handle the URL Spotify redirected to (or a bare authorization code)."""

        redirect = str(redirect or "").strip()
        if not redirect:
            return False

        if "://" not in redirect:
            return await self.process_auth_code(redirect)

        parsed = extract_code_from_redirect_url(redirect)
        # The code is single use; only the stripped URL is ever logged.
        log_info(f"Handling redirect to {strip_code_from_url(redirect)}")

        if parsed.get("error"):
            self.status.show(f"Spotify returned an error: {parsed['error']}", level="error")
            return False

        code = parsed.get("code")
        if not code:
            self.status.show("No authorization code found in the redirect URL", level="warning")
            return False

        return await self.process_auth_code(code)

    async def process_auth_code(self, code: str) -> bool:
        try:
            await self.auth.complete_login(code)
            profile = await self.client.me(self.auth.token_manager.access_token)
        except (SpotifyAuthError, httpx.HTTPError) as e:
            self.auth.token_manager.clear()
            log_warning(f"Error during authentication: {e}")
            self.status.show("Failed to authenticate with Spotify", level="error")
            return False

        self._profile = profile
        self.view.render_profile(profile)
        log_success(f"Logged in as {profile.display_name}")
        self.start_polling()
        return True

    def start_polling(self) -> None:
        if not self.is_logged_in:
            log_warning("Not logged in; log in before watching playback")
            return
        self.poller.start(interval_ms=int(self.config.get("poll_interval_ms", DEFAULT_POLL_INTERVAL_MS)))

    def stop_polling(self) -> None:
        self.poller.stop()

    async def refresh_now(self) -> Optional[PollOutcome]:
        if not self.is_logged_in:
            return None
        return await self.poller.refresh_now()

    def logout(self) -> None:
        self.poller.stop()
        self.auth.logout()
        self.status.clear()
        self._profile = None
        self.view.clear_profile()
        self.view.clear_playback()
        log_info("Logged out")


def build_session(config: Dict[str, Any], view, *, http_client: httpx.AsyncClient) -> SessionManager:
    """Wire auth, API client, status and poller around one shared HTTP client."""

    status = TransientStatus(config.get("status_clear_seconds", DEFAULT_STATUS_CLEAR_SECONDS))
    if hasattr(view, "render_status"):
        status.subscribe(view.render_status)

    auth = SpotifyPKCEAuth(config, http_client=http_client)
    client = SpotifyClient(config, http_client=http_client)
    return SessionManager(config, auth=auth, client=client, view=view, status=status)
