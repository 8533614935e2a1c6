# Managers module exports
from managers.poll_manager import PlaybackPoller, PollOutcome
from managers.session_manager import SessionManager, build_session
from managers.status_manager import TransientStatus

__all__ = [
    # Poll manager
    "PlaybackPoller",
    "PollOutcome",
    # Session manager
    "SessionManager",
    "build_session",
    # Status manager
    "TransientStatus",
]
