"""Deadline-based debouncing, polled from the main loop."""

import time
from typing import Callable, Optional


class Debouncer:
    """Fire an action once after a quiet interval.

    Every submit() cancels the pending action and restarts the deadline.
    Nothing runs in the background: the owner calls poll() from its loop.
    """

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self.clock = clock
        self._action: Optional[Callable] = None
        self._args: tuple = ()
        self._deadline: Optional[float] = None

    @property
    def pending(self) -> bool:
        return self._action is not None

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def submit(self, action: Callable, *args):
        self._action = action
        self._args = args
        self._deadline = self.clock() + self.interval

    def cancel(self):
        self._action = None
        self._args = ()
        self._deadline = None

    def poll(self, now: Optional[float] = None):
        """Run the pending action if its deadline passed. Returns (fired, result)."""
        if self._action is None:
            return False, None
        if now is None:
            now = self.clock()
        if now < self._deadline:
            return False, None

        action, args = self._action, self._args
        self.cancel()
        return True, action(*args)
