"""Media clock sources.

The engine never subscribes to clock events: it polls ``now()`` once per
tick, so a clock may pause, resume, seek or change rate without telling
anyone.
"""

from typing import Optional, Protocol

from ..utils.timers import WallClock, monotonic_ms


class Clock(Protocol):
    def now(self) -> float:
        """Current media time in milliseconds."""
        ...


class ManualClock:
    """Clock that only moves when told to. Used by simulations and tests."""

    def __init__(self, start_ms: float = 0.0):
        self.time_ms = float(start_ms)

    def now(self) -> float:
        return self.time_ms

    def advance(self, delta_ms: float) -> float:
        self.time_ms += delta_ms
        return self.time_ms

    def seek(self, time_ms: float) -> float:
        self.time_ms = float(time_ms)
        return self.time_ms


class PlaybackClock:
    """Media clock derived from a wall clock, with rate, pause and seek."""

    def __init__(
        self,
        rate: float = 1.0,
        start_ms: float = 0.0,
        wall_clock: Optional[WallClock] = None,
    ):
        self.wall_clock = wall_clock or monotonic_ms
        self._rate = rate
        self._anchor_media = float(start_ms)
        self._anchor_wall = self.wall_clock()
        self.paused = False

    @property
    def rate(self) -> float:
        return self._rate

    def now(self) -> float:
        if self.paused:
            return self._anchor_media
        return self._anchor_media + (self.wall_clock() - self._anchor_wall) * self._rate

    def _rebase(self) -> None:
        self._anchor_media = self.now()
        self._anchor_wall = self.wall_clock()

    def set_rate(self, rate: float) -> None:
        if rate < 0:
            raise ValueError("Playback rate must be non-negative")
        self._rebase()
        self._rate = rate

    def pause(self) -> None:
        if not self.paused:
            self._rebase()
            self.paused = True

    def resume(self) -> None:
        if self.paused:
            self._anchor_wall = self.wall_clock()
            self.paused = False

    def seek(self, time_ms: float) -> None:
        self._anchor_media = float(time_ms)
        self._anchor_wall = self.wall_clock()
