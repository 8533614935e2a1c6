"""Spotify Web API integration (OAuth PKCE + currently playing)."""

from .auth import SpotifyPKCEAuth
from .client import SpotifyClient
from .errors import (
    MalformedPayload,
    MissingVerifier,
    NoRefreshToken,
    PlaybackFetchFailed,
    ProfileFetchFailed,
    RefreshFailed,
    SpotifyAuthError,
    TokenExchangeFailed,
)
from .playback import PlaybackSnapshot, Profile
from .token_manager import TokenInfo, TokenManager
from .verifier_store import VerifierStore

__all__ = [
    "SpotifyPKCEAuth",
    "SpotifyClient",
    "PlaybackSnapshot",
    "Profile",
    "TokenInfo",
    "TokenManager",
    "VerifierStore",
    "SpotifyAuthError",
    "MissingVerifier",
    "TokenExchangeFailed",
    "NoRefreshToken",
    "RefreshFailed",
    "PlaybackFetchFailed",
    "ProfileFetchFailed",
    "MalformedPayload",
]
