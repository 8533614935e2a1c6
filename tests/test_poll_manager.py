import asyncio
import os
import sys
import tempfile
import unittest

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(THIS_DIR)
for _path in (PROJECT_ROOT, THIS_DIR):
    if _path not in sys.path:
        sys.path.insert(0, _path)

import httpx

from managers.poll_manager import PlaybackPoller, PollOutcome
from managers.status_manager import TransientStatus
from spotify_api.auth import SpotifyPKCEAuth
from spotify_api.client import SpotifyClient
from spotify_api.token_manager import TokenInfo, TokenManager
from spotify_api.verifier_store import VerifierStore
from spotify_fakes import (
    NON_UTF8_BODY,
    PLAYBACK_PAYLOAD,
    TEST_CONFIG,
    FakeSpotify,
    RecordingView,
    json_response,
)

PLAYING_PATH = "/v1/me/player/currently-playing"
TOKEN_PATH = "/api/token"


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


class PollerTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)

        self.fake = FakeSpotify()
        self.http = self.fake.http_client()
        self.tokens = TokenManager(TokenInfo(access_token="AT1", refresh_token="RT1", expires_in=3600))
        self.auth = SpotifyPKCEAuth(
            dict(TEST_CONFIG),
            token_manager=self.tokens,
            verifier_store=VerifierStore(os.path.join(self._tmp.name, "verifier.json")),
            http_client=self.http,
        )
        self.client = SpotifyClient(TEST_CONFIG, http_client=self.http)
        self.view = RecordingView()
        self.status = TransientStatus(clear_after=0)
        self.status.subscribe(self.view.render_status)
        self.poller = PlaybackPoller(self.client, self.auth, self.view, status=self.status)

    async def asyncTearDown(self):
        self.poller.stop()
        await self.http.aclose()

    def error_statuses(self):
        return [s for s in self.view.statuses if s[1] == "error"]


class TestPollCycle(PollerTestCase):
    async def test_valid_payload_is_rendered(self):
        self.fake.playing_responses.append(json_response(PLAYBACK_PAYLOAD))

        outcome = await self.poller.run_cycle()

        self.assertEqual(outcome, PollOutcome.PLAYING)
        snapshot = self.view.playback
        self.assertEqual(snapshot.progress_percent, 25.0)
        self.assertEqual(snapshot.time_text, "0:50 / 3:20")
        self.assertEqual(snapshot.device_text, "Playing on Phone (Smartphone)")
        (request,) = self.fake.requests_to(PLAYING_PATH)
        self.assertEqual(request.headers["Authorization"], "Bearer AT1")

    async def test_204_is_no_track_without_error(self):
        self.fake.playing_responses.append(httpx.Response(204))

        outcome = await self.poller.run_cycle()

        self.assertEqual(outcome, PollOutcome.NO_TRACK)
        self.assertEqual(self.view.no_track_count, 1)
        self.assertEqual(self.error_statuses(), [])

    async def test_malformed_200_is_same_as_204(self):
        self.fake.playing_responses.append(json_response({"is_playing": False, "item": None}))
        self.fake.playing_responses.append(httpx.Response(200, content=b"not json"))

        self.assertEqual(await self.poller.run_cycle(), PollOutcome.NO_TRACK)
        self.assertEqual(await self.poller.run_cycle(), PollOutcome.NO_TRACK)
        self.assertEqual(self.view.no_track_count, 2)
        self.assertEqual(self.error_statuses(), [])

    async def test_undecodable_200_is_no_track(self):
        self.fake.playing_responses.append(httpx.Response(200, content=NON_UTF8_BODY))

        self.assertEqual(await self.poller.run_cycle(), PollOutcome.NO_TRACK)
        self.assertEqual(self.view.no_track_count, 1)
        self.assertEqual(self.error_statuses(), [])

    async def test_wrongly_typed_artists_is_not_fatal(self):
        payload = {**PLAYBACK_PAYLOAD, "item": {**PLAYBACK_PAYLOAD["item"], "artists": 5}}
        self.fake.playing_responses.append(json_response(payload))

        self.assertEqual(await self.poller.run_cycle(), PollOutcome.PLAYING)
        self.assertEqual(self.view.playback.artists, [])
        self.assertEqual(self.view.playback.track_name, "Song A")

    async def test_server_error_fails_cycle_with_transient_notice(self):
        self.fake.playing_responses.append(json_response({"error": {"status": 503}}, status=503))

        outcome = await self.poller.run_cycle()

        self.assertEqual(outcome, PollOutcome.FAILED)
        self.assertEqual(self.view.no_track_count, 1)
        self.assertEqual(len(self.error_statuses()), 1)

    async def test_network_error_fails_cycle(self):
        self.fake.playing_responses.append(httpx.ConnectError("offline"))

        self.assertEqual(await self.poller.run_cycle(), PollOutcome.FAILED)
        self.assertEqual(self.view.no_track_count, 1)

    async def test_not_logged_in_fails_without_request(self):
        self.tokens.clear()

        self.assertEqual(await self.poller.run_cycle(), PollOutcome.FAILED)
        self.assertEqual(self.fake.requests, [])


class TestRefreshOn401(PollerTestCase):
    async def test_401_refreshes_once_and_retries_with_new_token(self):
        self.fake.playing_responses.extend([httpx.Response(401), json_response(PLAYBACK_PAYLOAD)])
        self.fake.token_responses.append(json_response({"access_token": "AT2", "expires_in": 3600}))

        outcome = await self.poller.run_cycle()

        self.assertEqual(outcome, PollOutcome.PLAYING)
        self.assertEqual(len(self.fake.requests_to(TOKEN_PATH)), 1)
        first, retry = self.fake.requests_to(PLAYING_PATH)
        self.assertEqual(first.headers["Authorization"], "Bearer AT1")
        self.assertEqual(retry.headers["Authorization"], "Bearer AT2")
        self.assertEqual(self.tokens.access_token, "AT2")

    async def test_second_401_does_not_refresh_again(self):
        self.fake.playing_responses.extend([httpx.Response(401), httpx.Response(401)])
        self.fake.token_responses.append(json_response({"access_token": "AT2", "expires_in": 3600}))

        outcome = await self.poller.run_cycle()

        self.assertEqual(outcome, PollOutcome.FAILED)
        self.assertEqual(len(self.fake.requests_to(TOKEN_PATH)), 1)
        self.assertEqual(len(self.fake.requests_to(PLAYING_PATH)), 2)
        self.assertEqual(self.view.no_track_count, 1)

    async def test_401_then_refresh_failure_renders_no_track_and_notice(self):
        self.fake.playing_responses.append(httpx.Response(401))
        self.fake.token_responses.append(json_response({"error": "invalid_grant"}, status=400))

        outcome = await self.poller.run_cycle()

        self.assertEqual(outcome, PollOutcome.FAILED)
        self.assertIsNone(self.view.playback)
        self.assertEqual(self.view.events[-1], ("no_track",))
        self.assertEqual(len(self.error_statuses()), 1)
        self.assertEqual(len(self.fake.requests_to(PLAYING_PATH)), 1)

    async def test_401_without_refresh_token_fails_cycle(self):
        self.tokens.set(TokenInfo(access_token="AT1"))
        self.fake.playing_responses.append(httpx.Response(401))

        self.assertEqual(await self.poller.run_cycle(), PollOutcome.FAILED)
        self.assertEqual(self.fake.requests_to(TOKEN_PATH), [])


class TestPollLoop(PollerTestCase):
    async def test_start_runs_immediately_and_survives_failures(self):
        self.fake.playing_responses.extend([httpx.ConnectError("offline"), json_response(PLAYBACK_PAYLOAD)])

        self.poller.start(interval_ms=20)
        await wait_until(lambda: self.view.playback is not None)

        self.assertEqual(self.view.events[0], ("no_track",))
        self.assertTrue(self.poller.is_running)

    async def test_loop_survives_undecodable_body(self):
        self.fake.playing_responses.extend(
            [httpx.Response(200, content=NON_UTF8_BODY), json_response(PLAYBACK_PAYLOAD)]
        )

        self.poller.start(interval_ms=20)
        await wait_until(lambda: self.view.playback is not None)

        self.assertEqual(self.view.events[0], ("no_track",))
        self.assertTrue(self.poller.is_running)

    async def test_unexpected_cycle_error_does_not_stop_next_tick(self):
        calls = []
        real_run_cycle = self.poller.run_cycle

        async def flaky_run_cycle(wait=False):
            calls.append(wait)
            if len(calls) == 1:
                raise RuntimeError("renderer exploded")
            return await real_run_cycle(wait=wait)

        self.poller.run_cycle = flaky_run_cycle
        self.fake.playing_responses.append(json_response(PLAYBACK_PAYLOAD))

        with self.assertLogs("spotify_now_playing", level="ERROR"):
            self.poller.start(interval_ms=20)
            await wait_until(lambda: self.view.playback is not None)

        self.assertGreaterEqual(len(calls), 2)
        self.assertTrue(self.poller.is_running)

    async def test_restart_cancels_previous_loop(self):
        first = self.poller.start(interval_ms=10000)
        second = self.poller.start(interval_ms=10000)

        await asyncio.sleep(0)
        self.assertTrue(first.cancelled() or first.done())
        self.assertIsNot(first, second)
        self.assertTrue(self.poller.is_running)

    async def test_stop_is_safe_when_idle(self):
        self.poller.stop()
        self.poller.start(interval_ms=10000)
        self.poller.stop()
        self.poller.stop()
        self.assertFalse(self.poller.is_running)

    async def test_custom_token_provider(self):
        self.fake.playing_responses.append(httpx.Response(204))

        self.poller.start(lambda: "OTHER", interval_ms=10000)
        await wait_until(lambda: self.view.no_track_count == 1)

        (request,) = self.fake.requests_to(PLAYING_PATH)
        self.assertEqual(request.headers["Authorization"], "Bearer OTHER")

    async def test_invalid_interval_rejected(self):
        with self.assertRaises(ValueError):
            self.poller.start(interval_ms=0)


class TestInFlightGuard(PollerTestCase):
    async def test_overlapping_cycle_is_skipped(self):
        gate = asyncio.Event()
        original_handler = self.fake.handler

        async def slow_handler(request):
            await gate.wait()
            return await original_handler(request)

        self.fake.handler = slow_handler
        self.fake.playing_responses.append(json_response(PLAYBACK_PAYLOAD))

        first = asyncio.ensure_future(self.poller.run_cycle())
        await wait_until(lambda: self.poller.in_flight)

        self.assertEqual(await self.poller.refresh_now(), PollOutcome.SKIPPED)

        gate.set()
        self.assertEqual(await first, PollOutcome.PLAYING)
        self.assertFalse(self.poller.in_flight)

    async def test_start_during_manual_refresh_still_runs_first_cycle(self):
        gate = asyncio.Event()
        original_handler = self.fake.handler

        async def slow_handler(request):
            await gate.wait()
            return await original_handler(request)

        self.fake.handler = slow_handler
        self.fake.playing_responses.extend([json_response(PLAYBACK_PAYLOAD), httpx.Response(204)])

        manual = asyncio.ensure_future(self.poller.refresh_now())
        await wait_until(lambda: self.poller.in_flight)

        self.poller.start(interval_ms=10000)
        await asyncio.sleep(0.01)
        gate.set()

        self.assertEqual(await manual, PollOutcome.PLAYING)
        await wait_until(lambda: len(self.fake.requests_to(PLAYING_PATH)) == 2)
        await wait_until(lambda: self.view.no_track_count == 1)
        self.assertTrue(self.poller.is_running)


if __name__ == "__main__":
    unittest.main(verbosity=2)
