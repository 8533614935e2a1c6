import asyncio
from enum import Enum
from typing import Callable, Optional

import httpx

from constants import DEFAULT_POLL_INTERVAL_MS
from spotify_api.auth import SpotifyPKCEAuth
from spotify_api.client import SpotifyClient
from spotify_api.errors import MalformedPayload, PlaybackFetchFailed, RefreshFailed, SpotifyAuthError
from spotify_api.playback import PlaybackSnapshot, snapshot_from_payload
from utils.logger import log_debug, log_error, log_info

TokenProvider = Callable[[], Optional[str]]


class PollOutcome(Enum):
    PLAYING = "playing"
    NO_TRACK = "no_track"
    FAILED = "failed"
    SKIPPED = "skipped"


class PlaybackPoller:
    """Polls "currently playing" on a fixed interval and feeds a renderer.

    The renderer needs render_playback(snapshot) and render_no_track().
    A 401 triggers exactly one refresh through the auth manager and at most
    one retried fetch per cycle. Cycles never overlap: a tick that comes due
    while a cycle is still in flight is dropped.
    """

    def __init__(
        self,
        client: SpotifyClient,
        auth: SpotifyPKCEAuth,
        renderer,
        *,
        status=None,
    ):
        self.client = client
        self.auth = auth
        self.renderer = renderer
        self.status = status
        self.interval_ms = DEFAULT_POLL_INTERVAL_MS
        self._token_provider: TokenProvider = lambda: auth.token_manager.access_token
        self._task: Optional[asyncio.Task] = None
        self._in_flight = False
        self._idle: Optional[asyncio.Event] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def start(self, token_provider: Optional[TokenProvider] = None, interval_ms: int = DEFAULT_POLL_INTERVAL_MS) -> asyncio.Task:
        """(Re)start polling: one cycle now, then one per interval tick."""

        interval_ms = int(interval_ms)
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        self.stop()
        if token_provider is not None:
            self._token_provider = token_provider
        self.interval_ms = interval_ms
        self._task = asyncio.get_running_loop().create_task(self._run(interval_ms / 1000.0))
        log_debug(f"Playback polling started (every {interval_ms} ms)")
        return self._task

    def stop(self) -> None:
        """Cancel polling, including a fetch that is currently in flight."""

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            log_debug("Playback polling stopped")

    async def refresh_now(self) -> PollOutcome:
        return await self.run_cycle()

    async def _run(self, interval: float) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        first = True
        while True:
            try:
                # The opening cycle waits for a manual refresh that is still running.
                await self.run_cycle(wait=first)
            except Exception as e:
                log_error(f"Unexpected error while polling currently playing: {e}")
            first = False
            next_tick += interval
            now = loop.time()
            # A slow cycle swallows the ticks it overran instead of queueing them.
            while next_tick <= now:
                next_tick += interval
            await asyncio.sleep(next_tick - now)

    def _idle_event(self) -> asyncio.Event:
        if self._idle is None:
            self._idle = asyncio.Event()
            if not self._in_flight:
                self._idle.set()
        return self._idle

    async def run_cycle(self, wait: bool = False) -> PollOutcome:
        """Fetch and render once.

        With wait=False a cycle that finds another one in flight is SKIPPED;
        with wait=True it runs once the other cycle has finished.
        """

        while self._in_flight:
            if not wait:
                log_debug("Previous playback poll still in flight; skipping tick")
                return PollOutcome.SKIPPED
            await self._idle_event().wait()

        self._in_flight = True
        if self._idle is not None:
            self._idle.clear()
        try:
            snapshot = await self._fetch_snapshot()
        except (SpotifyAuthError, httpx.HTTPError) as e:
            log_error(f"Error fetching currently playing track: {e}")
            self.renderer.render_no_track()
            if self.status is not None:
                self.status.show("Could not update now playing", level="error")
            return PollOutcome.FAILED
        finally:
            self._in_flight = False
            if self._idle is not None:
                self._idle.set()

        if snapshot is None:
            self.renderer.render_no_track()
            return PollOutcome.NO_TRACK

        self.renderer.render_playback(snapshot)
        return PollOutcome.PLAYING

    async def _fetch_snapshot(self) -> Optional[PlaybackSnapshot]:
        token = self._token_provider()
        if not token:
            raise SpotifyAuthError("Not logged in to Spotify")

        resp = await self.client.currently_playing(token)

        if resp.status_code == 401:
            log_info("Token expired, attempting refresh...")
            new_token = await self.auth.refresh()
            if not new_token:
                raise RefreshFailed()
            resp = await self.client.currently_playing(new_token)

        if resp.status_code == 204:
            log_debug("No content response - nothing playing")
            return None

        if not resp.is_success:
            raise PlaybackFetchFailed(resp.status_code, resp.text)

        try:
            return snapshot_from_payload(resp.json())
        except (ValueError, MalformedPayload) as e:
            log_debug(f"Treating unexpected currently-playing payload as nothing playing: {e}")
            return None
