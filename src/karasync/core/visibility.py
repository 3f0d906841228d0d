"""Which lines are currently on (or near) screen.

Activation only looks at visible lines, which bounds per-tick cost on long
lyrics. The viewport implementation uses a margin so lines just outside
the viewport still count as visible.
"""

from typing import FrozenSet, Iterable, List, Optional, Protocol, Tuple

from ..config import VISIBILITY_MARGIN_PX, VISIBILITY_THRESHOLD
from .models import Line
from .surface import RenderSurface


class VisibilityIndex(Protocol):
    def is_visible(self, line_id: str) -> bool: ...

    @property
    def visible_ids(self) -> FrozenSet[str]: ...


class StaticVisibility:
    """Visibility set fed by an external intersection collaborator."""

    def __init__(self, visible: Iterable[str] = ()):
        self._visible = set(visible)

    def is_visible(self, line_id: str) -> bool:
        return line_id in self._visible

    @property
    def visible_ids(self) -> FrozenSet[str]:
        return frozenset(self._visible)

    def mark(self, line_id: str, visible: bool) -> None:
        if visible:
            self._visible.add(line_id)
        else:
            self._visible.discard(line_id)

    def set_visible(self, line_ids: Iterable[str]) -> None:
        self._visible = set(line_ids)

    def clear(self) -> None:
        self._visible.clear()


class ViewportVisibility(StaticVisibility):
    """Visibility computed from line positions and the current scroll offset."""

    def __init__(
        self,
        surface: RenderSurface,
        margin_px: float = VISIBILITY_MARGIN_PX,
        threshold: float = VISIBILITY_THRESHOLD,
    ):
        super().__init__()
        self.surface = surface
        self.margin_px = margin_px
        self.threshold = threshold

    def intersection_ratio(self, line_id: str, scroll_offset: float) -> float:
        top = self.surface.offset_top(line_id) + scroll_offset
        height = self.surface.offset_height(line_id)
        root_top = -self.margin_px
        root_bottom = self.surface.viewport_height() + self.margin_px
        if height <= 0:
            return 1.0 if root_top <= top <= root_bottom else 0.0
        overlap = min(top + height, root_bottom) - max(top, root_top)
        return max(0.0, overlap) / height

    def refresh(self, lines: Iterable[Line], scroll_offset: float) -> None:
        self.set_visible(
            line.id
            for line in lines
            if self.intersection_ratio(line.id, scroll_offset) >= self.threshold
        )


class VisibleLineCache:
    """Visible lines in display order, recomputed only when the set changes."""

    def __init__(self):
        self._key: Optional[Tuple[int, FrozenSet[str]]] = None
        self._lines: List[Line] = []

    def lines(self, all_lines: List[Line], index: VisibilityIndex) -> List[Line]:
        key = (id(all_lines), index.visible_ids)
        if key != self._key:
            self._lines = [line for line in all_lines if index.is_visible(line.id)]
            self._key = key
        return self._lines

    def invalidate(self) -> None:
        self._key = None
        self._lines = []
