"""Sync engine: one render pass, driven tick by tick from a media clock."""

import time
from typing import Callable, Optional

from ..config import FPS, EngineSettings
from ..utils.logging import get_logger
from ..utils.timers import WallClock, monotonic_ms
from .clock import Clock
from .metrics import TextMetrics
from .models import ActivationState
from .scheduler import ActivationScheduler
from .scroll import ScrollCoordinator
from .surface import CONTAINER_ID, RecordingSurface, RenderSurface
from .timeline import LyricsDocument, Timeline, build_timeline
from .visibility import ViewportVisibility, VisibilityIndex, VisibleLineCache

logger = get_logger(__name__)

FADE_PAST_LINES_CLASS = "fade-past-lines"
WORD_BY_WORD_CLASS = "word-by-word"


class SyncEngine:
    """
    Keeps a lyric display in step with a media clock.

    Each ``tick`` runs activation, syllable highlighting, scrolling and
    past-line fading strictly in that order. Input callbacks (scroll,
    touch, resize) may be called between ticks; their timers are polled at
    the start of every tick.
    """

    def __init__(
        self,
        surface: Optional[RenderSurface] = None,
        metrics: Optional[TextMetrics] = None,
        settings: Optional[EngineSettings] = None,
        visibility: Optional[VisibilityIndex] = None,
        wall_clock: Optional[WallClock] = None,
    ):
        self.surface = surface if surface is not None else RecordingSurface()
        self.settings = (settings or EngineSettings()).validate()
        self.metrics = metrics or TextMetrics.from_settings(self.settings)
        self.visibility = visibility if visibility is not None else ViewportVisibility(self.surface)
        self.wall_clock = wall_clock or monotonic_ms

        self.timeline = Timeline()
        self.scheduler = ActivationScheduler(self.surface, self.settings)
        self.scroll = ScrollCoordinator(
            self.surface, self.visibility, self.settings, wall_clock=self.wall_clock
        )
        self.visible_cache = VisibleLineCache()
        self.last_time_ms: Optional[float] = None
        self.rendered = False

    # ------------------------------------------------------------------
    # Render pass
    # ------------------------------------------------------------------

    def render(self, document: LyricsDocument) -> Timeline:
        """Build a fresh timeline and reset every per-render cache."""
        self.teardown()
        self.timeline = build_timeline(document, self.metrics, self.settings)

        attach = getattr(self.surface, "attach", None)
        if attach is not None:
            attach(self.timeline.lines)
        if self.settings.fade_past_lines:
            self.surface.add_class(CONTAINER_ID, FADE_PAST_LINES_CLASS)
        if document.is_word_timed and self.settings.word_by_word:
            self.surface.add_class(CONTAINER_ID, WORD_BY_WORD_CLASS)

        self.scroll.attach(self.timeline)
        self._refresh_visibility()
        if self.timeline.first is not None:
            self.scroll.sync_to_target(self.timeline.first, force=True)
        self.rendered = True

        logger.info(f"Rendered {len(self.timeline)} lines from {document.source}")
        return self.timeline

    def teardown(self) -> None:
        """Cancel timers and drop the current render pass."""
        self.scroll.teardown()
        self.scheduler.reset()
        self.visible_cache.invalidate()
        self.timeline = Timeline()
        self.last_time_ms = None
        self.rendered = False

    def _refresh_visibility(self) -> None:
        if isinstance(self.visibility, ViewportVisibility):
            self.visibility.refresh(self.timeline.lines, self.scroll.current_scroll_offset)

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def is_seek(self, time_ms: float) -> bool:
        if self.last_time_ms is None:
            return False
        return abs(time_ms - self.last_time_ms) > self.settings.seek_threshold_ms

    def tick(self, time_ms: float, force_resync: bool = False) -> ActivationState:
        """
        Bring the display in line with media time ``time_ms``.

        A clock jump larger than the seek threshold, in either direction,
        is a seek: the scroll resyncs at once with no stagger.
        """
        self.scroll.poll_timers()
        seek = self.is_seek(time_ms)

        if not self.timeline:
            self.last_time_ms = time_ms
            return ActivationState(time_ms=time_ms, is_seek=seek)

        if seek:
            logger.debug(f"Seek detected: {self.last_time_ms:.0f}ms -> {time_ms:.0f}ms")

        self._refresh_visibility()
        visible = self.visible_cache.lines(self.timeline.lines, self.visibility)

        target = self.scheduler.select_scroll_target(time_ms, self.timeline.lines)
        active = self.scheduler.select_active_lines(time_ms, visible)
        deactivated = self.scheduler.apply_activation(active, self.timeline)
        highlighted = self.scheduler.update_syllables(time_ms, self.timeline)

        self.scroll.sync_to_target(target, force=force_resync or seek)

        self.scheduler.update_past_lines(
            time_ms,
            self.timeline,
            deactivated,
            programmatic=self.scroll.is_programmatic_scrolling,
        )
        self.last_time_ms = time_ms

        return ActivationState(
            time_ms=time_ms,
            active_line_ids=frozenset(self.scheduler.active_line_ids),
            highlighted_syllable_ids=frozenset(highlighted),
            visible_line_ids=frozenset(line.id for line in visible),
            scroll_target_id=target.id if target else None,
            primary_line_id=self.scroll.current_primary.id if self.scroll.current_primary else None,
            last_primary_line_id=self.scroll.last_primary.id if self.scroll.last_primary else None,
            focused_line_id=self.scheduler.focused_line_id,
            scroll_offset=self.scroll.current_scroll_offset,
            is_seek=seek,
            is_user_controlling_scroll=self.scroll.is_user_controlling_scroll,
        )

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def on_user_scroll(self, delta: float) -> float:
        return self.scroll.on_user_scroll(delta)

    def on_wheel(self, delta_y: float) -> float:
        return self.scroll.on_wheel(delta_y)

    def on_touch_start(self, y: float) -> None:
        self.scroll.on_touch_start(y)

    def on_touch_move(self, y: float) -> Optional[float]:
        return self.scroll.on_touch_move(y)

    def on_touch_end(self) -> bool:
        return self.scroll.on_touch_end()

    def on_touch_cancel(self) -> None:
        self.scroll.on_touch_cancel()

    def on_resize(self) -> None:
        self.scroll.on_resize()

    def on_line_click(self, line_id: str) -> bool:
        """Jump the view to a clicked line."""
        line = self.timeline.get(line_id)
        if line is None:
            return False
        return self.scroll.scroll_to_line(line, force=True)


class SyncLoop:
    """Polls a clock at a fixed frame rate and ticks the engine."""

    def __init__(
        self,
        engine: SyncEngine,
        clock: Clock,
        fps: int = FPS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.engine = engine
        self.clock = clock
        self.frame_seconds = 1.0 / fps
        self.sleep = sleep
        self.running = False
        self.ticks = 0

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False

    def step(self) -> ActivationState:
        self.ticks += 1
        return self.engine.tick(self.clock.now())

    def run(
        self,
        until_ms: Optional[float] = None,
        max_ticks: Optional[int] = None,
        on_tick: Optional[Callable[[ActivationState], None]] = None,
    ) -> int:
        """
        Tick until stopped, torn down, past ``until_ms`` or ``max_ticks``.

        Returns the number of ticks run.
        """
        self.start()
        count = 0
        while self.running and self.engine.rendered:
            state = self.step()
            count += 1
            if on_tick is not None:
                on_tick(state)
            if until_ms is not None and state.time_ms >= until_ms:
                break
            if max_ticks is not None and count >= max_ticks:
                break
            self.sleep(self.frame_seconds)
        self.running = False
        return count
