from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import MalformedPayload


def format_duration(ms: int) -> str:
    """Format milliseconds as m:ss (minutes are not wrapped into hours)."""

    ms = max(0, int(ms or 0))
    minutes = ms // 60000
    seconds = (ms % 60000) // 1000
    return f"{minutes}:{seconds:02d}"


def progress_percent(progress_ms: int, duration_ms: int) -> float:
    """Progress as a percentage, clamped to [0, 100]."""

    if not duration_ms or duration_ms <= 0:
        return 0.0
    percent = (float(progress_ms or 0) / float(duration_ms)) * 100.0
    return max(0.0, min(100.0, percent))


def _first_image_url(images: Any) -> Optional[str]:
    if isinstance(images, list) and images and isinstance(images[0], dict):
        url = images[0].get("url")
        return str(url) if url else None
    return None


@dataclass(frozen=True)
class Profile:
    display_name: str
    avatar_url: Optional[str] = None
    id: Optional[str] = None
    email: Optional[str] = None
    uri: Optional[str] = None
    spotify_url: Optional[str] = None
    href: Optional[str] = None

    @staticmethod
    def from_spotify(payload: Dict[str, Any]) -> "Profile":
        payload = payload or {}
        external = payload.get("external_urls") or {}
        return Profile(
            display_name=str(payload.get("display_name") or payload.get("id") or ""),
            avatar_url=_first_image_url(payload.get("images")),
            id=payload.get("id"),
            email=payload.get("email"),
            uri=payload.get("uri"),
            spotify_url=external.get("spotify") if isinstance(external, dict) else None,
            href=payload.get("href"),
        )


@dataclass(frozen=True)
class PlaybackSnapshot:
    """One poll's worth of "currently playing" state plus display fields."""

    track_name: str
    artists: List[str] = field(default_factory=list)
    album_name: str = ""
    album_image_url: Optional[str] = None
    progress_ms: int = 0
    duration_ms: int = 0
    device_name: Optional[str] = None
    device_type: Optional[str] = None
    is_playing: bool = True

    @property
    def artists_text(self) -> str:
        return ", ".join(self.artists)

    @property
    def progress_percent(self) -> float:
        return progress_percent(self.progress_ms, self.duration_ms)

    @property
    def elapsed_text(self) -> str:
        return format_duration(self.progress_ms)

    @property
    def duration_text(self) -> str:
        return format_duration(self.duration_ms)

    @property
    def time_text(self) -> str:
        return f"{self.elapsed_text} / {self.duration_text}"

    @property
    def device_text(self) -> str:
        if not self.device_name:
            return ""
        if self.device_type:
            return f"Playing on {self.device_name} ({self.device_type})"
        return f"Playing on {self.device_name}"


def snapshot_from_payload(payload: Any) -> PlaybackSnapshot:
    """Build a PlaybackSnapshot from a currently-playing payload.

    Raises MalformedPayload when the payload has no usable track `item`
    (e.g. podcasts with additional_types unset, or an upstream shape change).
    """

    if not isinstance(payload, dict):
        raise MalformedPayload(f"expected an object, got {type(payload).__name__}")

    item = payload.get("item")
    if not isinstance(item, dict) or not item.get("name"):
        raise MalformedPayload("payload has no track item")

    raw_artists = item.get("artists")
    artists = [
        str(a.get("name"))
        for a in (raw_artists if isinstance(raw_artists, list) else [])
        if isinstance(a, dict) and a.get("name")
    ]
    album = item.get("album") if isinstance(item.get("album"), dict) else {}
    device = payload.get("device") if isinstance(payload.get("device"), dict) else {}

    try:
        progress_ms = int(payload.get("progress_ms") or 0)
        duration_ms = int(item.get("duration_ms") or 0)
    except (TypeError, ValueError) as e:
        raise MalformedPayload(f"bad progress/duration: {e}") from e

    return PlaybackSnapshot(
        track_name=str(item["name"]),
        artists=artists,
        album_name=str(album.get("name") or ""),
        album_image_url=_first_image_url(album.get("images")),
        progress_ms=progress_ms,
        duration_ms=duration_ms,
        device_name=device.get("name"),
        device_type=device.get("type"),
        is_playing=bool(payload.get("is_playing", True)),
    )
