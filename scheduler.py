"""
Fixed-period tick source for the check loop
"""

import logging
import threading
import time
from typing import Callable, Iterator

logger = logging.getLogger(__name__)


class PollScheduler:
    """
    Emits ticks every `interval` seconds until stop() is called.

    The first tick fires immediately. When a tick's work runs past the next
    deadline, the following tick fires right away and the schedule restarts
    from that moment, so missed ticks are never replayed in a burst.
    """

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self._clock = clock
        self._stopped = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self):
        """Stop emitting ticks; safe to call from signal handlers and other threads"""
        self._stopped.set()

    def ticks(self) -> Iterator[int]:
        """Yield consecutive tick numbers starting at 1"""
        tick = 0
        next_at = self._clock()
        while not self._stopped.is_set():
            delay = next_at - self._clock()
            if delay > 0 and self._stopped.wait(delay):
                break
            if self._stopped.is_set():
                break

            tick += 1
            yield tick

            next_at += self.interval
            now = self._clock()
            if next_at <= now:
                logger.warning(f"Tick {tick} overran the {self.interval}s interval")
                next_at = now
