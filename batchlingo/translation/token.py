"""
Pause / resume / cancel token

The token is shared between the thread running a TranslationController and
whoever controls the run (a web request, a test). All waiting happens on one
condition variable: pausing blocks the runner until resume() or cancel(), and
the inter-request delay wakes up early when the run is cancelled.
"""

import threading
from typing import Optional


class ControlToken:

    def __init__(self):
        self._condition = threading.Condition()
        self._paused = False
        self._cancelled = False

    @property
    def paused(self) -> bool:
        with self._condition:
            return self._paused

    @property
    def cancelled(self) -> bool:
        with self._condition:
            return self._cancelled

    def pause(self) -> bool:
        """Withhold new dispatches. Returns False if the run is already cancelled."""
        with self._condition:
            if self._cancelled:
                return False
            self._paused = True
            return True

    def resume(self) -> bool:
        with self._condition:
            if self._cancelled or not self._paused:
                return False
            self._paused = False
            self._condition.notify_all()
            return True

    def cancel(self) -> None:
        """Terminal. Also releases a paused runner."""
        with self._condition:
            self._cancelled = True
            self._paused = False
            self._condition.notify_all()

    def reset(self) -> None:
        with self._condition:
            self._cancelled = False
            self._paused = False
            self._condition.notify_all()

    def wait_if_paused(self, timeout: Optional[float] = None) -> bool:
        """
        Block while paused.

        Returns:
            True if the runner may continue, False if the run was cancelled
            (or the timeout expired while still paused)
        """
        with self._condition:
            self._condition.wait_for(lambda: not self._paused or self._cancelled, timeout=timeout)
            return not self._cancelled and not self._paused

    def sleep(self, seconds: float) -> bool:
        """
        Wait up to `seconds`, returning early on cancel.

        Returns:
            False if the run was cancelled
        """
        with self._condition:
            if seconds > 0:
                self._condition.wait_for(lambda: self._cancelled, timeout=seconds)
            return not self._cancelled
