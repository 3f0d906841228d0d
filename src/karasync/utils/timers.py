"""Cancellable timers for the cooperative engine loop.

There is no event loop behind the engine: timers are polled against a
wall clock on every tick and on every input callback. A timer has a single
owner, and starting it again replaces the pending deadline instead of
stacking a second callback.
"""

import time
from typing import Any, Callable, Dict, Iterable, Optional

from .logging import get_logger

logger = get_logger(__name__)

WallClock = Callable[[], float]


def monotonic_ms() -> float:
    """Default wall clock in milliseconds."""
    return time.monotonic() * 1000.0


class CancellableTimer:
    """One-shot timer that fires its callback when polled past its deadline."""

    def __init__(
        self,
        callback: Callable[[], Any],
        name: str = "",
        clock: Optional[WallClock] = None,
    ):
        self.callback = callback
        self.name = name or getattr(callback, "__name__", "timer")
        self.clock = clock or monotonic_ms
        self.due_at: Optional[float] = None

    @property
    def active(self) -> bool:
        return self.due_at is not None

    def start(self, delay_ms: float, base_ms: Optional[float] = None) -> None:
        """(Re)arm the timer, replacing any pending deadline."""
        base = self.clock() if base_ms is None else base_ms
        self.due_at = base + max(0.0, delay_ms)

    def cancel(self) -> None:
        self.due_at = None

    def poll(self, now: Optional[float] = None) -> bool:
        """Fire the callback if the deadline has passed. Returns True if fired."""
        if self.due_at is None:
            return False
        now = self.clock() if now is None else now
        if now < self.due_at:
            return False
        self.due_at = None
        self.callback()
        return True


class TimerGroup:
    """Named timers sharing one wall clock."""

    # Upper bound on callbacks fired by a single poll, so a timer that keeps
    # re-arming itself with a zero delay cannot spin forever.
    MAX_FIRES_PER_POLL = 1000

    def __init__(self, clock: Optional[WallClock] = None):
        self.clock = clock or monotonic_ms
        self._timers: Dict[str, CancellableTimer] = {}

    def add(self, name: str, callback: Callable[[], Any]) -> CancellableTimer:
        timer = CancellableTimer(callback, name=name, clock=self.clock)
        self._timers[name] = timer
        return timer

    def get(self, name: str) -> CancellableTimer:
        return self._timers[name]

    def start(self, name: str, delay_ms: float) -> None:
        self._timers[name].start(delay_ms)

    def cancel(self, name: str) -> None:
        self._timers[name].cancel()

    def cancel_all(self) -> None:
        for timer in self._timers.values():
            timer.cancel()

    def active_names(self) -> Iterable[str]:
        return [name for name, t in self._timers.items() if t.active]

    def poll(self) -> int:
        """Fire every due timer, earliest deadline first. Returns fire count."""
        fired = 0
        while fired < self.MAX_FIRES_PER_POLL:
            now = self.clock()
            due = [t for t in self._timers.values() if t.active and t.due_at <= now]
            if not due:
                break
            timer = min(due, key=lambda t: t.due_at)
            timer.poll(now)
            fired += 1
        if fired >= self.MAX_FIRES_PER_POLL:
            logger.warning("Timer poll limit reached; remaining timers deferred")
        return fired


class Debounced:
    """Debounce wrapper: each call restarts the delay, the last call wins."""

    def __init__(self, func: Callable[..., Any], delay_ms: float, clock: Optional[WallClock] = None):
        self.func = func
        self._args: tuple = ()
        self._kwargs: dict = {}
        self.timer = CancellableTimer(self._fire, name=f"debounced:{getattr(func, '__name__', 'func')}", clock=clock)
        self.delay_ms = delay_ms

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self._args = args
        self._kwargs = kwargs
        self.timer.start(self.delay_ms)

    def _fire(self) -> None:
        self.func(*self._args, **self._kwargs)

    def poll(self, now: Optional[float] = None) -> bool:
        return self.timer.poll(now)

    def cancel(self) -> None:
        self.timer.cancel()
