import base64
import hashlib
import json
import logging
import secrets
import urllib.parse
import webbrowser
from typing import Any, Callable, Dict, Iterable, Optional

import httpx

from constants import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_SCOPES,
    SPOTIFY_AUTHORIZE_URL,
    SPOTIFY_TOKEN_URL,
    VERIFIER_ALPHABET,
    VERIFIER_MAX_LENGTH,
    VERIFIER_MIN_LENGTH,
    VERIFIER_STORE_FILE,
)
from .errors import MissingVerifier, NoRefreshToken, TokenExchangeFailed
from .token_manager import TokenInfo, TokenManager
from .verifier_store import VerifierStore

logger = logging.getLogger(__name__)


def _base64url_no_pad(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def generate_code_verifier(length: int = VERIFIER_MAX_LENGTH) -> str:
    """Return a random PKCE code_verifier of exactly `length` unreserved characters."""

    length = int(length)
    if not VERIFIER_MIN_LENGTH <= length <= VERIFIER_MAX_LENGTH:
        raise ValueError(
            f"PKCE verifier length must be between {VERIFIER_MIN_LENGTH} and {VERIFIER_MAX_LENGTH}, got {length}"
        )
    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))


def code_challenge_from_verifier(verifier: str) -> str:
    """Compute PKCE S256 code_challenge from code_verifier."""

    digest = hashlib.sha256((verifier or "").encode("utf-8")).digest()
    return _base64url_no_pad(digest)


def _scope_string(scopes: Iterable[str]) -> str:
    return " ".join([str(s).strip() for s in scopes if str(s).strip()])


def build_authorize_url(*, client_id: str, redirect_uri: str, code_challenge: str, scopes: Iterable[str]) -> str:
    params: Dict[str, str] = {
        "client_id": client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "scope": _scope_string(scopes),
        "code_challenge_method": "S256",
        "code_challenge": str(code_challenge),
    }
    return f"{SPOTIFY_AUTHORIZE_URL}?{urllib.parse.urlencode(params, quote_via=urllib.parse.quote)}"


def check_spotify_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate Spotify OAuth config fields and return a structured status dict."""

    config = config or {}
    client_id = str(config.get("spotify_client_id", "")).strip()
    redirect_uri = str(config.get("spotify_redirect_uri", "")).strip()
    scopes = list(config.get("spotify_scopes", []) or [])

    status = {
        "ok": False,
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scopes": scopes,
    }

    if not client_id:
        status["message"] = (
            "Missing spotify_client_id in config.json.\n"
            "Create a Spotify app and copy its Client ID (see the setup instructions)."
        )
        return status

    if not redirect_uri:
        status["message"] = (
            "Missing spotify_redirect_uri in config.json.\n"
            "Recommended default: http://127.0.0.1:8888/callback"
        )
        return status

    status["ok"] = True
    status["message"] = "Spotify credentials look OK."
    return status


def spotify_app_setup_instructions(*, redirect_uri: str = "http://127.0.0.1:8888/callback") -> str:
    """Return user-facing setup instructions for creating a Spotify Developer app."""

    redirect_uri = str(redirect_uri or "").strip() or "http://127.0.0.1:8888/callback"
    return (
        "Spotify app setup:\n"
        "1) Go to https://developer.spotify.com/dashboard\n"
        "2) Create an app (or select an existing app)\n"
        f"3) Add this Redirect URI in the app settings: {redirect_uri}\n"
        "4) Copy the Client ID into config.json as spotify_client_id\n\n"
        "Notes:\n"
        "- This client uses Authorization Code + PKCE (no client secret required).\n"
        "- Redirect URI must match *exactly* what you configure in the Spotify dashboard.\n"
    )


def extract_code_from_redirect_url(redirect_url: str) -> Dict[str, str]:
    """Parse a redirect URL and return {"code": ..., "state": ..., "error": ...} (missing keys omitted)."""

    parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    qs = urllib.parse.parse_qs(parsed.query)
    out: Dict[str, str] = {}
    for key in ("code", "state", "error"):
        if qs.get(key):
            out[key] = str(qs[key][0])
    return out


def strip_code_from_url(redirect_url: str) -> str:
    """Return the redirect URL without its one-shot `code`/`state` parameters."""

    parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    kept = [
        (k, v)
        for k, v in urllib.parse.parse_qsl(parsed.query, keep_blank_values=True)
        if k not in ("code", "state")
    ]
    return urllib.parse.urlunparse(parsed._replace(query=urllib.parse.urlencode(kept)))


class SpotifyPKCEAuth:
    """Spotify OAuth (Authorization Code + PKCE) handshake.

    Owns the verifier slot and the session's TokenManager. Only one login
    may be outstanding at a time: begin_login() overwrites the previous
    verifier and complete_login() consumes it.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        token_manager: Optional[TokenManager] = None,
        verifier_store: Optional[VerifierStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or {}
        self.token_manager = token_manager or TokenManager()
        self.verifier_store = verifier_store or VerifierStore(
            str(self.config.get("verifier_store_file") or VERIFIER_STORE_FILE)
        )
        self._owns_http = http_client is None
        self.http = http_client or httpx.AsyncClient(
            timeout=float(self.config.get("http_timeout", DEFAULT_HTTP_TIMEOUT)),
            follow_redirects=False,
        )

    @property
    def client_id(self) -> str:
        return str(self.config.get("spotify_client_id", "")).strip()

    @property
    def redirect_uri(self) -> str:
        return str(self.config.get("spotify_redirect_uri", "")).strip()

    def begin_login(self, open_url: Optional[Callable[[str], Any]] = webbrowser.open) -> str:
        """Start a PKCE login: persist a fresh verifier and send the user to Spotify.

        Returns the authorize URL. `open_url` plays the part of browser
        navigation; pass None (or set open_browser=false) to only get the URL.
        """

        if not self.client_id:
            raise ValueError("Missing config.spotify_client_id")
        if not self.redirect_uri:
            raise ValueError("Missing config.spotify_redirect_uri")

        length = int(self.config.get("spotify_verifier_length", VERIFIER_MAX_LENGTH))
        verifier = generate_code_verifier(length)
        challenge = code_challenge_from_verifier(verifier)
        self.verifier_store.save(verifier)

        url = build_authorize_url(
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            code_challenge=challenge,
            scopes=self.config.get("spotify_scopes") or DEFAULT_SCOPES,
        )
        logger.info("Redirecting to Spotify authorization page")

        if open_url is not None and bool(self.config.get("open_browser", True)):
            open_url(url)
        return url

    async def complete_login(self, code: str) -> TokenInfo:
        """Exchange an authorization code (plus the stored verifier) for tokens."""

        verifier = self.verifier_store.load()
        if not verifier:
            raise MissingVerifier()

        payload = await self._post_form(
            SPOTIFY_TOKEN_URL,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
                "client_id": self.client_id,
                "code_verifier": verifier,
            },
        )
        token = TokenInfo.from_spotify_token_response(payload)
        if not token.access_token:
            raise TokenExchangeFailed(200, json.dumps(payload))

        self.token_manager.set(token)
        self.verifier_store.clear()
        logger.info("Spotify login complete (token expires in %ss)", token.expires_in)
        return token

    async def refresh(self) -> Optional[str]:
        """Refresh the access token. Returns the new access token, or None on failure.

        Raises NoRefreshToken when the session holds no refresh token.
        """

        refresh_token = self.token_manager.refresh_token
        if not refresh_token:
            raise NoRefreshToken()

        try:
            payload = await self._post_form(
                SPOTIFY_TOKEN_URL,
                {
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self.client_id,
                },
            )
        except TokenExchangeFailed as e:
            logger.error("Error refreshing token: %s", e)
            return None

        refreshed = TokenInfo.from_spotify_token_response(payload)
        if not refreshed.access_token:
            logger.error("Error refreshing token: response had no access_token")
            return None

        # Spotify may omit refresh_token on refresh; keep existing.
        token = self.token_manager.apply_refresh(refreshed)
        logger.info("Access token refreshed")
        return token.access_token

    def logout(self) -> None:
        self.token_manager.clear()
        self.verifier_store.clear()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def _post_form(self, url: str, form: Dict[str, Any]) -> Dict[str, Any]:
        data = {k: str(v) for k, v in (form or {}).items() if v is not None}

        try:
            resp = await self.http.post(
                url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            raise TokenExchangeFailed(None, f"request failed: {e}") from e

        if not resp.is_success:
            raise TokenExchangeFailed(resp.status_code, resp.text)

        try:
            payload = resp.json()
        except ValueError as e:
            raise TokenExchangeFailed(resp.status_code, f"response was not JSON: {resp.text}") from e

        if not isinstance(payload, dict):
            raise TokenExchangeFailed(resp.status_code, f"response was not an object: {payload}")

        return payload
