from typing import Optional


class SpotifyAuthError(RuntimeError):
    """Base class for failures in the login / refresh / playback flows."""


class MissingVerifier(SpotifyAuthError):
    """No persisted PKCE verifier; the login must be restarted."""

    def __init__(self, message: str = "No PKCE verifier found. Start the login again."):
        super().__init__(message)


class TokenExchangeFailed(SpotifyAuthError):
    def __init__(self, status: Optional[int], body: str):
        self.status = status
        self.body = body
        if status is None:
            super().__init__(f"Spotify token exchange failed: {body}")
        else:
            super().__init__(f"Spotify token exchange failed (HTTP {status}): {body}")


class NoRefreshToken(SpotifyAuthError):
    def __init__(self, message: str = "No refresh token available"):
        super().__init__(message)


class RefreshFailed(SpotifyAuthError):
    def __init__(self, message: str = "Failed to refresh token"):
        super().__init__(message)


class SpotifyApiError(SpotifyAuthError):
    """Non-success response from the Web API."""

    def __init__(self, status: int, body: str, *, what: str = "Spotify API request"):
        self.status = status
        self.body = body
        super().__init__(f"{what} failed (HTTP {status}): {body}")


class PlaybackFetchFailed(SpotifyApiError):
    def __init__(self, status: int, body: str):
        super().__init__(status, body, what="Currently playing fetch")


class ProfileFetchFailed(SpotifyApiError):
    def __init__(self, status: int, body: str):
        super().__init__(status, body, what="Profile fetch")


class MalformedPayload(SpotifyAuthError):
    """A 200 response whose body does not look like a playback payload."""
