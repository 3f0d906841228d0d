"""Data models for the lyric timeline and per-tick activation state."""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from ..config import DEFAULT_MAX_SCALE, FONT_FAMILY, FONT_SIZE, FONT_WEIGHT
from ..exceptions import TimelineError


class LineKind(str, Enum):
    """What a timeline row represents."""

    LYRIC = "lyric"
    GAP = "gap"
    METADATA = "metadata"


class SyllableStatus(str, Enum):
    """Highlight state of a syllable at a given tick."""

    PENDING = "pending"
    HIGHLIGHTING = "highlighting"
    FINISHED = "finished"


@dataclass(frozen=True)
class FontDescriptor:
    """Font used to measure rendered text.

    Fonts are cached by ``key``: the element tag plus its class list, the
    same granularity at which computed styles differ on the render surface.
    """

    family: str = FONT_FAMILY
    size_px: int = FONT_SIZE
    weight: int = FONT_WEIGHT
    tag: str = "span"
    css_class: str = ""

    @property
    def key(self) -> Tuple[str, str]:
        return (self.tag, self.css_class)

    @property
    def css(self) -> str:
        return f"{self.weight} {self.size_px}px {self.family}"


DEFAULT_FONT = FontDescriptor()


@dataclass
class CharWipe:
    """Proportional wipe timing for one character of a growable word."""

    char: str
    start_fraction: float
    duration_fraction: float
    char_index: int
    word_char_index: int
    horizontal_offset: float = 0.0

    def element_id(self, syllable_id: str) -> str:
        return f"{syllable_id}-c{self.char_index}"


@dataclass
class Syllable:
    """Smallest timed text unit of a line."""

    text: str
    start_ms: float
    duration_ms: float
    id: str = ""
    syllable_index: int = 0
    word_duration_ms: Optional[float] = None
    is_background: bool = False
    is_rtl: bool = False
    # Non-owning link to the following syllable of the same word
    next_syllable_in_word: Optional["Syllable"] = field(
        default=None, repr=False, compare=False
    )
    pre_highlight_duration_ms: Optional[float] = None
    pre_highlight_delay_ms: Optional[float] = None
    char_wipes: List[CharWipe] = field(default_factory=list, repr=False)

    @property
    def end_ms(self) -> float:
        return self.start_ms + self.duration_ms

    def validate(self) -> None:
        if self.duration_ms < 0:
            raise TimelineError(f"Syllable {self.id or self.text!r} has negative duration")


@dataclass
class WordGroup:
    """Syllables that render as one word, with emphasis parameters."""

    syllables: List[Syllable]
    trailing_space: str = ""
    growable: bool = False
    max_scale: float = DEFAULT_MAX_SCALE
    shadow_intensity: float = 0.0
    translate_y_peak: float = 0.0

    @property
    def text(self) -> str:
        return "".join(s.text for s in self.syllables)

    @property
    def start_ms(self) -> float:
        return self.syllables[0].start_ms if self.syllables else 0.0

    @property
    def end_ms(self) -> float:
        return self.syllables[-1].end_ms if self.syllables else 0.0

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms

    @property
    def is_background(self) -> bool:
        return bool(self.syllables) and self.syllables[0].is_background

    @property
    def char_wipes(self) -> List[CharWipe]:
        return [cw for s in self.syllables for cw in s.char_wipes]


@dataclass
class Line:
    """One timed row of the display: a lyric line, a gap filler or metadata."""

    start_ms: float
    end_ms: float
    text: str = ""
    id: str = ""
    kind: LineKind = LineKind.LYRIC
    words: List[WordGroup] = field(default_factory=list)
    singer: str = ""
    is_rtl: bool = False
    actual_end_ms: Optional[float] = None

    def __post_init__(self):
        if self.actual_end_ms is None:
            self.actual_end_ms = self.end_ms

    @property
    def syllables(self) -> List[Syllable]:
        return [s for w in self.words for s in w.syllables]

    @property
    def is_gap(self) -> bool:
        return self.kind == LineKind.GAP

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms

    def validate(self) -> None:
        if self.end_ms < self.start_ms:
            raise TimelineError(
                f"Line {self.id or self.text!r} ends before it starts "
                f"({self.start_ms:.0f} > {self.end_ms:.0f}ms)"
            )
        for s in self.syllables:
            s.validate()


@dataclass(frozen=True)
class ActivationState:
    """Snapshot of the engine's decisions for one tick."""

    time_ms: float
    active_line_ids: FrozenSet[str] = frozenset()
    highlighted_syllable_ids: FrozenSet[str] = frozenset()
    visible_line_ids: FrozenSet[str] = frozenset()
    scroll_target_id: Optional[str] = None
    primary_line_id: Optional[str] = None
    last_primary_line_id: Optional[str] = None
    focused_line_id: Optional[str] = None
    scroll_offset: float = 0.0
    is_seek: bool = False
    is_user_controlling_scroll: bool = False
