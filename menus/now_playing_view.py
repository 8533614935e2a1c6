from typing import Optional, Tuple

from tqdm import tqdm

from spotify_api.playback import PlaybackSnapshot, Profile

_NO_TRACK = ("",)

# tqdm prefixes a non-empty postfix with ", ".
BAR_FORMAT = "{desc} |{bar}|{postfix}"


class ConsoleView:
    """Terminal rendering of the profile card and the now-playing track.

    A tqdm bar tracks playback progress of the current track; a new bar is
    opened whenever the track changes. "Nothing playing" is printed only on
    the transition, not on every poll.
    """

    def __init__(self, *, bar_width: int = 40, file=None):
        self.bar_width = bar_width
        self.file = file
        self._bar: Optional[tqdm] = None
        self._current: Optional[Tuple[str, ...]] = None

    def _write(self, text: str) -> None:
        tqdm.write(text, file=self.file)

    # Profile

    def render_profile(self, profile: Profile) -> None:
        self._write("")
        self._write(f"👤 {profile.display_name}")
        if profile.avatar_url:
            self._write(f"   Avatar: {profile.avatar_url}")
        if profile.email:
            self._write(f"   Email: {profile.email}")
        if profile.spotify_url:
            self._write(f"   Profile: {profile.spotify_url}")

    def clear_profile(self) -> None:
        self._write("👤 Not logged in")

    # Playback

    def render_playback(self, snapshot: PlaybackSnapshot) -> None:
        key = (snapshot.track_name, snapshot.artists_text, snapshot.album_name)
        if key != self._current:
            self._close_bar()
            self._current = key
            self._write("")
            self._write(f"🎵 {snapshot.track_name}")
            self._write(f"   {snapshot.artists_text}")
            self._write(f"   {snapshot.album_name}")
            if snapshot.album_image_url:
                self._write(f"   Cover: {snapshot.album_image_url}")
            if snapshot.device_text:
                self._write(f"   {snapshot.device_text}")
            self._bar = tqdm(
                total=100,
                desc="⏵" if snapshot.is_playing else "⏸",
                bar_format=BAR_FORMAT,
                ncols=self.bar_width + 30,
                file=self.file,
                leave=False,
            )

        if self._bar is not None:
            self._bar.set_description_str("⏵" if snapshot.is_playing else "⏸", refresh=False)
            self._bar.n = round(snapshot.progress_percent, 1)
            self._bar.set_postfix_str(snapshot.time_text, refresh=False)
            self._bar.refresh()

    def render_no_track(self) -> None:
        if self._current == _NO_TRACK:
            return
        self._close_bar()
        self._current = _NO_TRACK
        self._write("🔇 Nothing playing right now")

    def clear_playback(self) -> None:
        self._close_bar()
        self._current = None

    # Status

    def render_status(self, message: Optional[str], level: str) -> None:
        # Logging already echoes the message; the view only marks errors.
        if message and level == "error":
            self._write(f"⚠️  {message}")

    def _close_bar(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None
