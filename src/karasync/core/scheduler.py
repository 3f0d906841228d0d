"""Per-tick activation decisions.

Given the media time, the scheduler decides:
- which line the viewport should scroll to (with a forward look-ahead)
- which visible lines glow as active (with a tighter look-ahead)
- the pending/highlighting/finished state of every syllable of the active
  lines, writing the animation plan of each syllable the moment its
  highlight starts

All writes go through the render surface and are skipped when nothing
changed, so ticking twice at the same time is a no-op.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Set

from ..config import PAST_REWIND_GRACE_MS, EngineSettings
from ..utils.logging import get_logger
from .animation import HighlightPlan, build_highlight_plan
from .models import Line, Syllable, SyllableStatus
from .surface import RenderSurface
from .timeline import Timeline

logger = get_logger(__name__)

ACTIVE_CLASS = "active"
FOCUSED_CLASS = "fullscreen-focused"
PAST_CLASS = "past"
HIGHLIGHT_CLASS = "highlight"
FINISHED_CLASS = "finished"
PRE_HIGHLIGHT_CLASS = "pre-highlight"

_PRE_WIPE_STYLES = ("--pre-wipe-duration", "--pre-wipe-delay")
_GROW_ANIMATION = "grow-dynamic"


class ActivationScheduler:
    """Decides active lines, scroll target and syllable states for each tick."""

    def __init__(self, surface: RenderSurface, settings: Optional[EngineSettings] = None):
        self.surface = surface
        self.settings = settings or EngineSettings()
        self.active_line_ids: List[str] = []
        self.focused_line_id: Optional[str] = None
        self.status: Dict[str, SyllableStatus] = {}
        # Grow animations armed on characters of emphasized words, kept so a
        # later syllable's wipe does not replace them
        self._grow_animations: Dict[str, str] = {}

    def reset(self) -> None:
        """Forget all per-render state (surface writes are not undone)."""
        self.active_line_ids = []
        self.focused_line_id = None
        self.status.clear()
        self._grow_animations.clear()

    def status_of(self, syllable_id: str) -> SyllableStatus:
        return self.status.get(syllable_id, SyllableStatus.PENDING)

    @property
    def highlighted_syllable_ids(self) -> Set[str]:
        return {sid for sid, st in self.status.items() if st == SyllableStatus.HIGHLIGHTING}

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_scroll_target(self, time_ms: float, lines: Sequence[Line]) -> Optional[Line]:
        """
        Line the viewport should center on.

        Prefers the earliest-starting line containing ``time + scroll
        look-ahead``, then the most recent line that started at least one
        look-ahead ago, then the first line.
        """
        if not lines:
            return None
        lookahead = self.settings.scroll_lookahead_ms
        predictive = time_ms + lookahead

        target: Optional[Line] = None
        for line in lines:
            if line.start_ms <= predictive < line.end_ms:
                if target is None or line.start_ms < target.start_ms:
                    target = line
        if target is not None:
            return target

        lookback = time_ms - lookahead
        for line in reversed(lines):
            if line.start_ms <= lookback:
                return line
        return lines[0]

    def select_active_lines(self, time_ms: float, visible_lines: Iterable[Line]) -> List[Line]:
        """Active visible lines, most recently started first."""
        lookahead = self.settings.highlight_lookahead_ms
        limit = self.settings.max_active_lines
        active: List[Line] = []
        for line in visible_lines:
            if len(active) >= limit:
                break
            if line.start_ms - lookahead <= time_ms < line.end_ms - lookahead:
                active.append(line)
        active.sort(key=lambda l: l.start_ms, reverse=True)
        return active

    # ------------------------------------------------------------------
    # Line activation
    # ------------------------------------------------------------------

    def apply_activation(self, active: Sequence[Line], timeline: Timeline) -> List[Line]:
        """
        Diff the active set against the previous tick.

        Returns:
            Lines deactivated by this tick
        """
        new_ids = [line.id for line in active]
        new_set = set(new_ids)
        deactivated: List[Line] = []

        for line_id in self.active_line_ids:
            if line_id in new_set:
                continue
            self.surface.remove_class(line_id, ACTIVE_CLASS)
            line = timeline.get(line_id)
            if line is not None:
                self.reset_line(line)
                deactivated.append(line)

        previous = set(self.active_line_ids)
        for line_id in new_ids:
            if line_id not in previous:
                self.surface.add_class(line_id, ACTIVE_CLASS)
                self.surface.remove_class(line_id, PAST_CLASS)

        self.active_line_ids = new_ids

        focused = new_ids[0] if new_ids else None
        if focused != self.focused_line_id:
            if self.focused_line_id:
                self.surface.remove_class(self.focused_line_id, FOCUSED_CLASS)
            if focused:
                self.surface.add_class(focused, FOCUSED_CLASS)
            self.focused_line_id = focused

        return deactivated

    # ------------------------------------------------------------------
    # Syllables
    # ------------------------------------------------------------------

    def update_syllables(self, time_ms: float, timeline: Timeline) -> Set[str]:
        """Advance the syllable state machine for every active line."""
        highlighted: Set[str] = set()
        for line_id in self.active_line_ids:
            for syllable in timeline.syllables_of_line.get(line_id, ()):
                status = self.status_of(syllable.id)
                if syllable.start_ms <= time_ms < syllable.end_ms:
                    highlighted.add(syllable.id)
                    if status != SyllableStatus.HIGHLIGHTING:
                        self.start_highlight(syllable, timeline)
                elif time_ms < syllable.start_ms:
                    if status != SyllableStatus.PENDING:
                        self.reset_syllable(syllable)
                elif status != SyllableStatus.FINISHED:
                    self.finish_syllable(syllable, timeline)
        return highlighted

    def _plan_for(
        self, syllable: Syllable, timeline: Timeline, preview: bool = True
    ) -> HighlightPlan:
        line = timeline.line_of_syllable.get(syllable.id)
        return build_highlight_plan(
            syllable,
            word=timeline.word_of_syllable.get(syllable.id),
            is_gap=bool(line and line.is_gap),
            preview=preview,
        )

    def start_highlight(self, syllable: Syllable, timeline: Timeline) -> HighlightPlan:
        plan = self._plan_for(syllable, timeline)
        self.surface.remove_class(syllable.id, PRE_HIGHLIGHT_CLASS)
        self.surface.remove_class(syllable.id, FINISHED_CLASS)
        self.surface.add_class(syllable.id, HIGHLIGHT_CLASS)
        self._apply_plan(plan)
        self.status[syllable.id] = SyllableStatus.HIGHLIGHTING
        return plan

    def finish_syllable(self, syllable: Syllable, timeline: Timeline) -> None:
        """
        Mark a syllable sung.

        A syllable that never highlighted (skipped by a seek, or zero
        length) gets its wipe applied here so it renders filled.
        """
        if self.status_of(syllable.id) == SyllableStatus.PENDING:
            self.surface.remove_class(syllable.id, PRE_HIGHLIGHT_CLASS)
            for prop in _PRE_WIPE_STYLES:
                self.surface.remove_style(syllable.id, prop)
            self._apply_plan(self._plan_for(syllable, timeline, preview=False))
        self.surface.add_class(syllable.id, FINISHED_CLASS)
        self.status[syllable.id] = SyllableStatus.FINISHED

    def _apply_plan(self, plan: HighlightPlan) -> None:
        for element_id, parts in plan.animations.items():
            grow = [p for p in parts if p.startswith(_GROW_ANIMATION)]
            if grow:
                self._grow_animations[element_id] = grow[0]
            elif element_id in self._grow_animations:
                parts = [self._grow_animations[element_id]] + parts
            self.surface.set_style(element_id, "animation", ", ".join(parts))
        for element_id, prop, value in plan.styles:
            self.surface.set_style(element_id, prop, value)
        for element_id, name in plan.added_classes:
            self.surface.add_class(element_id, name)

    def reset_syllable(self, syllable: Syllable) -> None:
        """Back to pending: clear flags, preview and running animations."""
        self.surface.remove_style(syllable.id, "animation")
        for name in (HIGHLIGHT_CLASS, FINISHED_CLASS, PRE_HIGHLIGHT_CLASS):
            self.surface.remove_class(syllable.id, name)
        for prop in _PRE_WIPE_STYLES:
            self.surface.remove_style(syllable.id, prop)
        for cw in syllable.char_wipes:
            element_id = cw.element_id(syllable.id)
            self.surface.remove_style(element_id, "animation")
            self._grow_animations.pop(element_id, None)
        self.status.pop(syllable.id, None)

    def reset_line(self, line: Line) -> None:
        for syllable in line.syllables:
            self.reset_syllable(syllable)

    # ------------------------------------------------------------------
    # Past lines
    # ------------------------------------------------------------------

    def update_past_lines(
        self,
        time_ms: float,
        timeline: Timeline,
        deactivated: Iterable[Line] = (),
        programmatic: bool = True,
    ) -> None:
        """Fade lines whose time has passed, only while auto-scrolling."""
        if not self.settings.fade_past_lines or not programmatic:
            return

        for line in deactivated:
            self.surface.add_class(line.id, PAST_CLASS)

        active = set(self.active_line_ids)
        for line in timeline:
            if line.id in active:
                self.surface.remove_class(line.id, PAST_CLASS)
            elif time_ms > line.actual_end_ms:
                self.surface.add_class(line.id, PAST_CLASS)
            elif time_ms < line.start_ms - PAST_REWIND_GRACE_MS:
                self.surface.remove_class(line.id, PAST_CLASS)
