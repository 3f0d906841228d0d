"""Scroll coordination.

Turns the scheduler's scroll target into a container offset, staggers the
per-line transitions so lines nearer the reference line move first, and
arbitrates between programmatic scrolling and a temporary user override.

Timers (user-scroll revert, wheel idle, programmatic settle, touch
momentum) are polled by the engine; each has a single owner and is
replaced, never stacked, when retriggered.
"""

from collections import deque
from typing import Deque, Dict, Optional, Tuple

from ..config import (
    MOMENTUM_DECELERATION,
    MOMENTUM_FRAME_MS,
    MOMENTUM_MIN_START_VELOCITY,
    MOMENTUM_MIN_VELOCITY,
    POSITION_CLASS_WINDOW,
    PROGRAMMATIC_SCROLL_SETTLE_MS,
    RESIZE_DEBOUNCE_MS,
    SCROLL_SNAP_TOLERANCE_PX,
    TOUCH_MAX_SAMPLES,
    TOUCH_SCROLL_SENSITIVITY,
    TOUCH_VELOCITY_WINDOW_MS,
    USER_SCROLL_IDLE_MS,
    WHEEL_SCROLL_SENSITIVITY,
    EngineSettings,
)
from ..utils.logging import get_logger
from ..utils.timers import Debounced, TimerGroup, WallClock, monotonic_ms
from .models import Line
from .surface import CONTAINER_ID, RenderSurface
from .timeline import Timeline
from .visibility import VisibilityIndex

logger = get_logger(__name__)

SCROLL_OFFSET_PROP = "--lyrics-scroll-offset"
LINE_DELAY_PROP = "--lyrics-line-delay"

NOT_FOCUSED = "not-focused"
USER_SCROLLING = "user-scrolling"
WHEEL_SCROLLING = "wheel-scrolling"
TOUCH_SCROLLING = "touch-scrolling"
PAST_CLASS = "past"

REVERT_TIMER = "user-scroll-revert"
IDLE_TIMER = "user-scroll-idle"
SETTLE_TIMER = "programmatic-settle"
MOMENTUM_TIMER = "momentum"


def position_class(position: int) -> str:
    """Styling hook for a line ``position`` rows away from the scroll target."""
    if position == 0:
        return "lyrics-activest"
    if position == -1:
        return "pre-active-line"
    if position == 1:
        return "next-active-line"
    if position < 0:
        return f"prev-{-position}"
    return f"next-{position}"


def _px(value: float) -> str:
    return f"{value:g}px"


class ScrollCoordinator:
    """Owns the scroll offset and who is in control of it."""

    def __init__(
        self,
        surface: RenderSurface,
        visibility: VisibilityIndex,
        settings: Optional[EngineSettings] = None,
        wall_clock: Optional[WallClock] = None,
    ):
        self.surface = surface
        self.visibility = visibility
        self.settings = settings or EngineSettings()
        self.wall_clock = wall_clock or monotonic_ms
        self.timeline = Timeline()

        self.current_primary: Optional[Line] = None
        self.last_primary: Optional[Line] = None
        self.current_scroll_offset = 0.0
        self.is_programmatic_scrolling = False
        self.is_user_controlling_scroll = False
        self.position_classes: Dict[str, str] = {}

        self.timers = TimerGroup(self.wall_clock)
        self.timers.add(REVERT_TIMER, self._revert_to_auto_scroll)
        self.timers.add(IDLE_TIMER, self._end_wheel_scrolling)
        self.timers.add(SETTLE_TIMER, self._end_programmatic_scroll)
        self.timers.add(MOMENTUM_TIMER, self._momentum_frame)
        self.resize_handler = Debounced(self._handle_resize, RESIZE_DEBOUNCE_MS, self.wall_clock)

        self.touch_active = False
        self.touch_last_y = 0.0
        self.touch_velocity = 0.0
        self.touch_samples: Deque[Tuple[float, float]] = deque(maxlen=TOUCH_MAX_SAMPLES)

    def attach(self, timeline: Timeline) -> None:
        """Start a new render pass."""
        self.teardown()
        self.timeline = timeline
        self.current_primary = None
        self.last_primary = None
        self.current_scroll_offset = 0.0
        self.is_programmatic_scrolling = False
        self.is_user_controlling_scroll = False
        self.position_classes = {}

    def teardown(self) -> None:
        self.timers.cancel_all()
        self.resize_handler.cancel()
        self.touch_active = False
        self.touch_velocity = 0.0
        self.touch_samples.clear()

    def poll_timers(self) -> int:
        fired = self.timers.poll()
        if self.resize_handler.poll():
            fired += 1
        return fired

    # ------------------------------------------------------------------
    # Programmatic scrolling
    # ------------------------------------------------------------------

    def sync_to_target(self, target: Optional[Line], force: bool = False) -> bool:
        """
        Follow the scroll target unless the user is in control.

        A forced sync (seek, explicit resync) scrolls even when the target
        did not change and even during a user override.

        Returns:
            True if the primary line changed or a forced sync ran
        """
        if target is None:
            return False
        if target is self.current_primary and not force:
            return False
        if self.is_user_controlling_scroll and not force:
            return False

        self.update_position_classes_and_scroll(target, force)
        self.last_primary = self.current_primary
        self.current_primary = target
        return True

    def update_position_classes_and_scroll(self, target: Line, force: bool = False) -> None:
        index = self.timeline.index_of(target)
        if index == -1:
            return

        lines = self.timeline.lines
        window = POSITION_CLASS_WINDOW
        assigned: Dict[str, str] = {}
        for i in range(max(0, index - window), min(len(lines) - 1, index + window) + 1):
            assigned[lines[i].id] = position_class(i - index)

        for line_id, name in self.position_classes.items():
            if assigned.get(line_id) != name:
                self.surface.remove_class(line_id, name)
        for line_id, name in assigned.items():
            self.surface.add_class(line_id, name)
        self.position_classes = assigned

        self.scroll_to_line(target, force)

    def scroll_to_line(self, line: Line, force: bool = False) -> bool:
        """Scroll so ``line`` rests at the container's scroll padding."""
        padding = self.surface.scroll_padding_top()
        top = self.surface.offset_top(line.id)
        target_offset = padding - top

        if not force and abs(top + self.current_scroll_offset - padding) < SCROLL_SNAP_TOLERANCE_PX:
            return False

        self.surface.remove_class(CONTAINER_ID, NOT_FOCUSED)
        self.surface.remove_class(CONTAINER_ID, USER_SCROLLING)
        self.is_programmatic_scrolling = True
        self.is_user_controlling_scroll = False
        self.timers.cancel(IDLE_TIMER)
        self.timers.cancel(REVERT_TIMER)
        self.timers.start(SETTLE_TIMER, PROGRAMMATIC_SCROLL_SETTLE_MS)

        self.animate_scroll(target_offset, force)
        return True

    def animate_scroll(self, offset: float, force: bool = False) -> bool:
        """
        Write the container offset and per-line transition delays.

        Visible lines from the reference line onward are staggered so the
        reference line moves first; everything else moves at once. A forced
        scroll or a user gesture moves every line at once.
        """
        if not force and offset == self.current_scroll_offset:
            return False

        self.current_scroll_offset = offset
        self.surface.set_style(CONTAINER_ID, SCROLL_OFFSET_PROP, _px(offset))

        lines = self.timeline.lines
        user_scrolling = self.is_user_controlling_scroll or self.surface.has_class(
            CONTAINER_ID, USER_SCROLLING
        )
        if force or user_scrolling:
            for line in lines:
                self.surface.set_style(line.id, LINE_DELAY_PROP, "0ms")
            return True

        reference = self.current_primary or self.last_primary or self.timeline.first
        reference_index = self.timeline.index_of(reference)
        if reference_index == -1:
            return True

        stagger = self.settings.scroll_stagger_ms
        counter = 0
        for i, line in enumerate(lines):
            if self.visibility.is_visible(line.id) and i >= reference_index:
                delay = counter * stagger
                counter += 1
            else:
                delay = 0
            self.surface.set_style(line.id, LINE_DELAY_PROP, f"{delay:g}ms")
        return True

    def _end_programmatic_scroll(self) -> None:
        self.is_programmatic_scrolling = False

    # ------------------------------------------------------------------
    # User scrolling
    # ------------------------------------------------------------------

    def on_user_scroll(self, delta: float) -> float:
        """
        Manual scroll by ``delta`` pixels (positive scrolls down).

        Takes control away from auto-scroll until the user has been idle for
        the revert delay. Returns the new offset.
        """
        self.is_user_controlling_scroll = True
        self.timers.start(REVERT_TIMER, self.settings.user_scroll_revert_ms)

        offset = self.current_scroll_offset - delta * WHEEL_SCROLL_SENSITIVITY
        offset = max(offset, self.min_scroll_offset())
        offset = min(offset, 0.0)
        self.animate_scroll(offset)
        return offset

    def min_scroll_offset(self) -> float:
        """Most negative offset that still keeps the last line on screen."""
        lines = self.timeline.lines
        if not lines:
            return 0.0
        first, last = lines[0], lines[-1]
        content_bottom = self.surface.offset_top(last.id) + self.surface.offset_height(last.id)
        viewport = self.surface.viewport_height()
        if content_bottom - self.surface.offset_top(first.id) > viewport:
            return viewport - content_bottom
        return 0.0

    def _revert_to_auto_scroll(self) -> None:
        self.is_user_controlling_scroll = False
        logger.debug("User scroll idle, resuming auto-scroll")
        if self.current_primary is not None:
            self.scroll_to_line(self.current_primary, force=True)

    def _clear_past(self) -> None:
        for line in self.timeline:
            self.surface.remove_class(line.id, PAST_CLASS)

    def _begin_gesture(self, gesture_class: str, other_class: str) -> None:
        self.is_programmatic_scrolling = False
        self.timers.cancel(SETTLE_TIMER)
        for name in (NOT_FOCUSED, USER_SCROLLING, gesture_class):
            self.surface.add_class(CONTAINER_ID, name)
        self.surface.remove_class(CONTAINER_ID, other_class)
        self._clear_past()

    def on_wheel(self, delta_y: float) -> float:
        self._begin_gesture(WHEEL_SCROLLING, TOUCH_SCROLLING)
        offset = self.on_user_scroll(delta_y)
        self.timers.start(IDLE_TIMER, USER_SCROLL_IDLE_MS)
        return offset

    def _end_wheel_scrolling(self) -> None:
        self.surface.remove_class(CONTAINER_ID, USER_SCROLLING)
        self.surface.remove_class(CONTAINER_ID, WHEEL_SCROLLING)

    def on_touch_start(self, y: float) -> None:
        self.timers.cancel(MOMENTUM_TIMER)
        now = self.wall_clock()
        self.touch_active = True
        self.touch_last_y = y
        self.touch_velocity = 0.0
        self.touch_samples.clear()
        self.touch_samples.append((now, y))
        self._begin_gesture(TOUCH_SCROLLING, WHEEL_SCROLLING)
        self.timers.cancel(IDLE_TIMER)

    def on_touch_move(self, y: float) -> Optional[float]:
        if not self.touch_active:
            return None
        delta = self.touch_last_y - y
        self.touch_last_y = y
        self.touch_samples.append((self.wall_clock(), y))
        return self.on_user_scroll(delta * TOUCH_SCROLL_SENSITIVITY)

    def on_touch_end(self) -> bool:
        """Finish a drag. Returns True if momentum scrolling started."""
        if not self.touch_active:
            return False
        self.touch_active = False

        now = self.wall_clock()
        recent = [(t, y) for t, y in self.touch_samples if now - t <= TOUCH_VELOCITY_WINDOW_MS]
        if len(recent) >= 2:
            (oldest_t, oldest_y), (newest_t, newest_y) = recent[0], recent[-1]
            elapsed = newest_t - oldest_t
            if elapsed > 0:
                self.touch_velocity = (oldest_y - newest_y) / elapsed

        if abs(self.touch_velocity) > MOMENTUM_MIN_START_VELOCITY:
            self.timers.start(MOMENTUM_TIMER, MOMENTUM_FRAME_MS)
            return True
        self._end_touch_scrolling()
        return False

    def on_touch_cancel(self) -> None:
        self.touch_active = False
        self.timers.cancel(MOMENTUM_TIMER)
        self._end_touch_scrolling()

    def _momentum_frame(self) -> None:
        self.on_user_scroll(self.touch_velocity * MOMENTUM_FRAME_MS)
        self.touch_velocity *= MOMENTUM_DECELERATION
        if abs(self.touch_velocity) > MOMENTUM_MIN_VELOCITY:
            self.timers.start(MOMENTUM_TIMER, MOMENTUM_FRAME_MS)
        else:
            self._end_touch_scrolling()

    def _end_touch_scrolling(self) -> None:
        self.surface.remove_class(CONTAINER_ID, USER_SCROLLING)
        self.surface.remove_class(CONTAINER_ID, TOUCH_SCROLLING)
        self.touch_velocity = 0.0
        self.touch_samples.clear()

    # ------------------------------------------------------------------
    # Resize
    # ------------------------------------------------------------------

    def on_resize(self) -> None:
        self.resize_handler()

    def _handle_resize(self) -> None:
        if not self.is_user_controlling_scroll and self.current_primary is not None:
            self.scroll_to_line(self.current_primary, force=False)
