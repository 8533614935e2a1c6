from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class TokenInfo:
    """Access/refresh token pair as returned by the Spotify token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = 0
    token_type: str = "Bearer"
    scope: Optional[str] = None

    @staticmethod
    def from_spotify_token_response(payload: Dict[str, Any]) -> "TokenInfo":
        """Convert Spotify token response JSON into TokenInfo.

        Spotify returns:
        - access_token
        - token_type
        - expires_in (seconds)
        - refresh_token (optional on refresh)
        - scope (space-delimited string)
        """

        try:
            expires_in = int(payload.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0

        return TokenInfo(
            access_token=str(payload.get("access_token") or ""),
            refresh_token=payload.get("refresh_token") or None,
            expires_in=expires_in,
            token_type=str(payload.get("token_type") or "Bearer"),
            scope=payload.get("scope"),
        )


class TokenManager:
    """Holds the session's single current token pair in memory.

    Tokens are never written to disk; they are gone after clear() or when
    the process exits.
    """

    def __init__(self, token: Optional[TokenInfo] = None):
        self._token = token

    @property
    def token(self) -> Optional[TokenInfo]:
        return self._token

    @property
    def access_token(self) -> Optional[str]:
        return self._token.access_token if self._token else None

    @property
    def refresh_token(self) -> Optional[str]:
        return self._token.refresh_token if self._token else None

    def has_token(self) -> bool:
        return bool(self._token and self._token.access_token)

    def set(self, token: TokenInfo) -> None:
        self._token = token

    def apply_refresh(self, refreshed: TokenInfo) -> TokenInfo:
        """Swap in a refreshed token, keeping the old refresh token if none was rotated."""

        if not refreshed.refresh_token and self._token is not None:
            refreshed = replace(refreshed, refresh_token=self._token.refresh_token)
        self._token = refreshed
        return refreshed

    def clear(self) -> None:
        self._token = None
