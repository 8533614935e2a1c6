import httpx
import questionary

from constants import DEFAULT_HTTP_TIMEOUT
from managers.poll_manager import PollOutcome
from managers.session_manager import SessionManager, build_session
from menus.config_menu import config_menu
from menus.now_playing_view import ConsoleView
from spotify_api.auth import check_spotify_credentials, spotify_app_setup_instructions
from utils.logger import log_error, log_info, log_warning


def _menu_choices(session: SessionManager) -> list:
    if session.is_logged_in:
        return [
            "Watch now playing",
            "Refresh now playing",
            "Show profile",
            "Log out",
            "Config Menu",
            "Exit",
        ]
    choices = ["Log in with Spotify"]
    if session.has_pending_login:
        choices.append("Paste redirect URL")
    choices += ["Spotify setup help", "Config Menu", "Exit"]
    return choices


async def main_menu(config: dict) -> dict:
    """
    Runs the top-level menu on the event loop until the user exits.
    Returns the (possibly edited) config.
    """
    view = ConsoleView()
    timeout = float(config.get("http_timeout", DEFAULT_HTTP_TIMEOUT))

    async with httpx.AsyncClient(timeout=timeout, follow_redirects=False) as http:
        session = build_session(config, view, http_client=http)

        if session.has_pending_login:
            log_info("A Spotify login is in progress. Choose 'Paste redirect URL' to finish it.")

        while True:
            choice = await questionary.select(
                "🎧 Spotify Now Playing — Choose an option:",
                choices=_menu_choices(session),
            ).ask_async()

            if choice == "Log in with Spotify":
                await login_flow(session)

            elif choice == "Paste redirect URL":
                await paste_redirect(session)

            elif choice == "Watch now playing":
                await watch_now_playing(session)

            elif choice == "Refresh now playing":
                outcome = await session.refresh_now()
                if outcome == PollOutcome.SKIPPED:
                    log_info("A refresh is already running")

            elif choice == "Show profile":
                if session.profile is not None:
                    view.render_profile(session.profile)

            elif choice == "Log out":
                session.logout()

            elif choice == "Spotify setup help":
                spotify_setup_help(config)

            elif choice == "Config Menu":
                config = await config_menu(config)
                log_info("Config changes apply the next time the program starts.")

            elif choice == "Exit" or choice is None:
                session.stop_polling()
                log_info("Exiting program...")
                break

    return config


def spotify_setup_help(config: dict) -> None:
    creds = check_spotify_credentials(config)
    log_info("\n" + "=" * 72)
    log_info("SPOTIFY WEB API SETUP")
    log_info("=" * 72)
    log_info(spotify_app_setup_instructions(redirect_uri=creds.get("redirect_uri") or "http://127.0.0.1:8888/callback"))
    log_info(f"- spotify_client_id: {'SET' if creds.get('client_id') else 'NOT SET'}")
    log_info(f"- spotify_redirect_uri: {creds.get('redirect_uri') or ''}")
    log_info(f"- spotify_scopes: {', '.join(creds.get('scopes') or [])}")
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Spotify credentials are incomplete.")
    else:
        log_info(creds.get("message") or "Spotify credentials look OK.")
    log_info("=" * 72 + "\n")


async def login_flow(session: SessionManager) -> None:
    """Open the authorize page, then collect the redirect URL the browser lands on."""
    creds = check_spotify_credentials(session.config)
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Spotify credentials are incomplete.")
        spotify_setup_help(session.config)
        return

    auth_url = session.login()

    log_info("\n" + "=" * 72)
    log_info("SPOTIFY AUTHENTICATION")
    log_info("=" * 72)
    log_info("1) Log in and approve access in the browser window.")
    log_info("2) Spotify will redirect you to your redirect_uri.")
    log_info("3) Copy the FULL redirect URL from the browser and paste it back here.")
    log_info("")
    log_info(f"Authorize URL:\n{auth_url}")
    log_info("=" * 72)

    await paste_redirect(session)


async def paste_redirect(session: SessionManager) -> None:
    pasted = await questionary.text(
        "Paste the full redirect URL (preferred) OR just the code=... value:"
    ).ask_async()
    pasted = (pasted or "").strip()
    if not pasted:
        log_warning("No redirect URL / code provided. You can paste it later from the menu.")
        return

    if await session.handle_redirect(pasted):
        await watch_now_playing(session, already_polling=True)
    elif not session.has_pending_login:
        log_error("Login could not be completed. Choose 'Log in with Spotify' to start over.")


async def watch_now_playing(session: SessionManager, *, already_polling: bool = False) -> None:
    """Keep the poller running until the user presses a key."""
    if not session.is_logged_in:
        log_warning("Not logged in.")
        return

    if not already_polling:
        session.start_polling()
    try:
        await questionary.press_any_key_to_continue(
            "Watching now playing — press any key to return to the menu..."
        ).ask_async()
    finally:
        session.stop_polling()
        session.view.clear_playback()
