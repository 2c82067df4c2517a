"""Fixed-interval scheduler driving the prober."""

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Scheduler:
    """Call *tick* every *interval* seconds until stopped.

    Ticks sit on a fixed grid measured from the start of :meth:`run`
    against the monotonic clock.  A tick that overruns one or more
    periods skips the grid points it missed instead of firing them in a
    burst, and the next tick never starts before the previous one
    returned.

    Args:
        interval: Seconds between ticks; must be positive.
        tick: Callable run on each tick, on the thread that called
            :meth:`run`.
        immediate: Fire once right away instead of waiting one interval.
        clock: Monotonic time source, replaceable in tests.
    """

    def __init__(
        self,
        interval: float,
        tick: Callable[[], object],
        immediate: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        self.interval = interval
        self.immediate = immediate
        self._tick = tick
        self._clock = clock
        self._stop = threading.Event()
        self.ticks = 0
        self.skipped = 0

    def run(self) -> None:
        """Run ticks until :meth:`stop`; exceptions from *tick* propagate."""
        start = self._clock()
        next_at = start if self.immediate else start + self.interval

        while not self._stop.is_set():
            delay = next_at - self._clock()
            if delay > 0 and self._stop.wait(delay):
                break

            self._tick()
            self.ticks += 1

            next_at += self.interval
            now = self._clock()
            if now > next_at:
                missed = int((now - next_at) // self.interval) + 1
                self.skipped += missed
                next_at += missed * self.interval
                logger.debug("Tick overran; skipping %d interval(s)", missed)

    def stop(self) -> None:
        """Stop the loop; wakes a pending wait immediately.  Thread-safe."""
        self._stop.set()
