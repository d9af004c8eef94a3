"""Fixed-duration countdown driven by an injected clock.

States::

    armed --start--> running --pause--> paused --start--> running
                        |
                        +--tick (remaining <= 0)--> fired

``reset``/``stop`` return to ``armed`` from any state. The completion
callback runs only on the running -> fired edge, so it fires at most once
per armed period.
"""

import math
import time
from typing import Callable, Optional

ARMED = 'armed'
RUNNING = 'running'
PAUSED = 'paused'
FIRED = 'fired'


class Countdown:
    def __init__(self, duration: float, clock: Callable[[], float] = time.time,
                 on_complete: Optional[Callable[[], None]] = None):
        self.duration = float(duration)
        self._clock = clock
        self._on_complete = on_complete
        self.state = ARMED
        self._remaining = self.duration
        self._deadline: Optional[float] = None

    @property
    def remaining(self) -> float:
        if self.state == RUNNING:
            return max(0.0, self._deadline - self._clock())
        if self.state == FIRED:
            return 0.0
        return self._remaining

    @property
    def remaining_seconds(self) -> int:
        return math.ceil(self.remaining)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline if self.state == RUNNING else None

    def start(self) -> bool:
        if self.state not in (ARMED, PAUSED):
            return False
        self._deadline = self._clock() + self._remaining
        self.state = RUNNING
        return True

    def pause(self) -> bool:
        if self.state != RUNNING:
            return False
        self._remaining = max(0.0, self._deadline - self._clock())
        self._deadline = None
        self.state = PAUSED
        return True

    def reset(self, duration: Optional[float] = None) -> None:
        if duration is not None:
            self.duration = float(duration)
        self._remaining = self.duration
        self._deadline = None
        self.state = ARMED

    stop = reset

    def tick(self) -> bool:
        """Fire if the deadline has passed. Returns True on the firing tick only."""
        if self.state != RUNNING or self._clock() < self._deadline:
            return False
        self.state = FIRED
        self._remaining = 0.0
        self._deadline = None
        if self._on_complete is not None:
            self._on_complete()
        return True
