"""Frame timing: elapsed scene time and a smoothed FPS readout."""
from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque


class FrameClock:
    """
    Elapsed time since the last ``restart()``, plus an FPS estimate over the
    most recent frames. The time source is injectable for tests.
    """

    def __init__(self, time_source: Callable[[], float] = time.perf_counter, window: int = 60) -> None:
        self._now = time_source
        self._start = self._now()
        self._frames: Deque[float] = deque(maxlen=window)

    def restart(self) -> None:
        self._start = self._now()
        self._frames.clear()

    @property
    def elapsed(self) -> float:
        return self._now() - self._start

    def tick(self) -> float:
        """Records a frame and returns the elapsed time."""
        now = self._now()
        self._frames.append(now)
        return now - self._start

    @property
    def fps(self) -> float:
        if len(self._frames) < 2:
            return 0.0
        span = self._frames[-1] - self._frames[0]
        return (len(self._frames) - 1) / span if span > 0 else 0.0
