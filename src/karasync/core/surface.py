"""Render surface interface and an in-memory implementation.

The engine writes classes and style properties to elements addressed by id
(line, syllable and character ids, plus ``CONTAINER_ID`` for the scrolling
container). The only layout it reads back are vertical positions needed for
scroll math.
"""

import math
from typing import Dict, Iterable, List, Optional, Protocol, Set

from ..config import FONT_SIZE, LINE_HEIGHT_RATIO, SCROLL_PADDING_RATIO, VIEWPORT_HEIGHT
from .metrics import TextMetrics
from .models import Line

CONTAINER_ID = "container"


class RenderSurface(Protocol):
    def add_class(self, element_id: str, name: str) -> None: ...

    def remove_class(self, element_id: str, name: str) -> None: ...

    def has_class(self, element_id: str, name: str) -> bool: ...

    def set_style(self, element_id: str, prop: str, value: str) -> None: ...

    def remove_style(self, element_id: str, prop: str) -> None: ...

    def offset_top(self, line_id: str) -> float: ...

    def offset_height(self, line_id: str) -> float: ...

    def viewport_height(self) -> float: ...

    def scroll_padding_top(self) -> float: ...


class StackedLayout:
    """Lines stacked top to bottom, each as tall as its wrapped text rows."""

    def __init__(
        self,
        line_height: float = FONT_SIZE * LINE_HEIGHT_RATIO,
        viewport_height: float = VIEWPORT_HEIGHT,
        padding_ratio: float = SCROLL_PADDING_RATIO,
        metrics: Optional[TextMetrics] = None,
        max_width: Optional[float] = None,
    ):
        self.line_height = line_height
        self.viewport_height = viewport_height
        self.padding_ratio = padding_ratio
        self.metrics = metrics
        self.max_width = max_width
        self.tops: Dict[str, float] = {}
        self.heights: Dict[str, float] = {}
        self.order: List[str] = []

    def _rows(self, line: Line) -> int:
        rows = 0
        for text_row in (line.text or "").split("\n"):
            if self.metrics is not None and self.max_width:
                width = self.metrics.width(text_row)
                rows += max(1, math.ceil(width / self.max_width))
            else:
                rows += 1
        return max(1, rows)

    def layout(self, lines: Iterable[Line]) -> None:
        self.tops.clear()
        self.heights.clear()
        self.order = []
        top = 0.0
        for line in lines:
            height = self._rows(line) * self.line_height
            self.tops[line.id] = top
            self.heights[line.id] = height
            self.order.append(line.id)
            top += height

    @property
    def content_height(self) -> float:
        if not self.order:
            return 0.0
        last = self.order[-1]
        return self.tops[last] + self.heights[last]

    @property
    def scroll_padding_top(self) -> float:
        return self.viewport_height * self.padding_ratio


class RecordingSurface:
    """In-memory render surface that records every effective write.

    ``writes`` only counts writes that changed something, so two identical
    ticks can be compared by it.
    """

    def __init__(self, layout: Optional[StackedLayout] = None):
        self.layout = layout or StackedLayout()
        self.classes: Dict[str, Set[str]] = {}
        self.styles: Dict[str, Dict[str, str]] = {}
        self.writes = 0

    def attach(self, lines: Iterable[Line]) -> None:
        """Start a new render pass: forget all element state, lay out lines."""
        self.classes.clear()
        self.styles.clear()
        self.layout.layout(lines)

    def add_class(self, element_id: str, name: str) -> None:
        names = self.classes.setdefault(element_id, set())
        if name not in names:
            names.add(name)
            self.writes += 1

    def remove_class(self, element_id: str, name: str) -> None:
        names = self.classes.get(element_id)
        if names and name in names:
            names.discard(name)
            self.writes += 1

    def has_class(self, element_id: str, name: str) -> bool:
        return name in self.classes.get(element_id, ())

    def set_style(self, element_id: str, prop: str, value: str) -> None:
        props = self.styles.setdefault(element_id, {})
        if props.get(prop) != value:
            props[prop] = value
            self.writes += 1

    def remove_style(self, element_id: str, prop: str) -> None:
        props = self.styles.get(element_id)
        if props and prop in props:
            del props[prop]
            self.writes += 1

    def style(self, element_id: str, prop: str) -> Optional[str]:
        return self.styles.get(element_id, {}).get(prop)

    def elements_with_class(self, name: str) -> List[str]:
        return sorted(eid for eid, names in self.classes.items() if name in names)

    def offset_top(self, line_id: str) -> float:
        return self.layout.tops.get(line_id, 0.0)

    def offset_height(self, line_id: str) -> float:
        return self.layout.heights.get(line_id, 0.0)

    def viewport_height(self) -> float:
        return self.layout.viewport_height

    def scroll_padding_top(self) -> float:
        return self.layout.scroll_padding_top
