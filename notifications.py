"""Transient status messages that revert to the idle hint"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger

TOAST_DELAY = 3.0  # seconds
IDLE_MESSAGE = "F5: Run | q: Quit | r: Refresh | Tab: Cycle Focus"


@dataclass(frozen=True)
class Toast:
    message: str
    posted_at: float
    seq: int


class Notifier:
    """
    Shows one toast at a time on the status line.

    Every toast schedules a single revert timer. Posting again cancels the
    pending timer and bumps the sequence number, so a revert that fires late
    finds a different sequence and does nothing. The revert itself is handed
    to `dispatch` and runs on the UI loop, never on the timer thread.

    `post` and `show_idle` must be called from the UI loop.
    """

    def __init__(
        self,
        show_toast: Callable[[str], None],
        show_idle: Callable[[str], None],
        dispatch: Callable[..., object],
        delay: float = TOAST_DELAY,
        idle_message: str = IDLE_MESSAGE,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._show_toast = show_toast
        self._show_idle = show_idle
        self._dispatch = dispatch
        self._delay = delay
        self.idle_message = idle_message
        self._timer_factory = timer_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._seq = 0
        self._timer: Optional[threading.Timer] = None
        self.current: Optional[Toast] = None

    def post(self, message: str) -> Toast:
        """Show a toast and schedule its revert."""
        with self._lock:
            self._seq += 1
            toast = Toast(message=message, posted_at=self._clock(), seq=self._seq)
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(self._delay, self._expire, args=(toast.seq,))
            timer.daemon = True
            self._timer = timer
            self.current = toast

        logger.debug("Toast #{}: {}", toast.seq, message)
        self._show_toast(message)
        timer.start()
        return toast

    def show_idle(self) -> None:
        """Drop any active toast and show the idle hint."""
        with self._lock:
            self._seq += 1
            self._cancel_timer()
            self.current = None
        self._show_idle(self.idle_message)

    def shutdown(self) -> None:
        with self._lock:
            self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self, seq: int) -> None:
        # Timer thread
        self._dispatch(self._revert, seq)

    def _revert(self, seq: int) -> None:
        with self._lock:
            if seq != self._seq:
                logger.debug("Stale revert #{} ignored (current #{})", seq, self._seq)
                return
            self._timer = None
            self.current = None
        self._show_idle(self.idle_message)
