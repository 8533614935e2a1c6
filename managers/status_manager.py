import asyncio
from typing import Callable, List, Optional

from constants import DEFAULT_STATUS_CLEAR_SECONDS
from utils.logger import log_error, log_info, log_success, log_warning

_LOG_BY_LEVEL = {
    "info": log_info,
    "success": log_success,
    "warning": log_warning,
    "error": log_error,
}

StatusListener = Callable[[Optional[str], str], None]


class TransientStatus:
    """User-facing status line that clears itself after a short delay.

    Listeners are called with (message, level); message is None when the
    status clears. The auto-clear is scheduled on the running event loop, so
    show() outside a loop leaves the message up until the next show/clear.
    """

    def __init__(self, clear_after: float = DEFAULT_STATUS_CLEAR_SECONDS):
        self.clear_after = float(clear_after)
        self.message: Optional[str] = None
        self.level: str = "info"
        self._listeners: List[StatusListener] = []
        self._clear_handle: Optional[asyncio.TimerHandle] = None

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def show(self, message: str, level: str = "info") -> None:
        _LOG_BY_LEVEL.get(level, log_info)(message)

        self._cancel_pending_clear()
        self.message = message
        self.level = level
        self._notify()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self.clear_after > 0:
            self._clear_handle = loop.call_later(self.clear_after, self.clear)

    def clear(self) -> None:
        self._cancel_pending_clear()
        if self.message is None:
            return
        self.message = None
        self.level = "info"
        self._notify()

    def _cancel_pending_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self.message, self.level)
