"""Timeline construction: source lyrics to a corrected, indexed line cache.

This module handles:
- Parsing lyric payloads (provider JSON and LRC, including enhanced
  word-timed LRC)
- Grouping syllables into words
- Inserting gap lines for long instrumental breaks and a trailing
  metadata line
- Running timing correction and animation parameter derivation once per
  render pass
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..config import (
    GAP_DOT_STRETCH,
    GAP_LINE_DOTS,
    GAP_LINE_LEAD_IN_MS,
    GAP_LINE_LEAD_OUT_MS,
    GAP_LINE_THRESHOLD_MS,
    METADATA_END_OFFSET_MS,
    METADATA_START_OFFSET_MS,
    EngineSettings,
)
from ..exceptions import TimelineError
from ..utils.logging import get_logger
from .animation import derive_animation_parameters
from .metrics import TextMetrics
from .models import Line, LineKind, Syllable, WordGroup
from .text_utils import ends_with_whitespace, is_rtl, trailing_whitespace
from .timing import correct_timings

logger = get_logger(__name__)

GAP_DOT = "•"


# ----------------------
# Source documents
# ----------------------


@dataclass
class SourceSyllable:
    text: str
    time_ms: float
    duration_ms: float
    is_background: bool = False
    is_line_ending: bool = False


@dataclass
class SourceLine:
    text: str
    start_ms: float
    end_ms: float
    singer: str = ""
    syllables: List[SourceSyllable] = field(default_factory=list)


@dataclass
class LyricsDocument:
    """Lyrics as delivered by the fetching collaborator."""

    lines: List[SourceLine]
    type: str = "Line"  # "Word" when syllable timings are present
    source: str = "Unknown"
    song_writers: List[str] = field(default_factory=list)

    @property
    def is_word_timed(self) -> bool:
        return self.type == "Word" and any(line.syllables for line in self.lines)


def _number(value: Any, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise TimelineError(f"Invalid {what}: {value!r}") from e


def parse_lyrics_payload(payload: Mapping[str, Any]) -> LyricsDocument:
    """
    Parse a provider payload.

    Line times are in seconds; syllable ``time``/``duration`` are in
    milliseconds, as delivered by the lyrics providers.

    Raises:
        TimelineError: If the payload is not shaped like a lyrics document
    """
    if not isinstance(payload, Mapping):
        raise TimelineError("Lyrics payload must be an object")
    data = payload.get("data")
    if not isinstance(data, list):
        raise TimelineError("Lyrics payload has no 'data' list")

    lines: List[SourceLine] = []
    for index, raw in enumerate(data):
        if not isinstance(raw, Mapping):
            raise TimelineError(f"Line {index} is not an object")
        element = raw.get("element") or {}
        syllables = []
        for s in raw.get("syllabus") or []:
            syllables.append(
                SourceSyllable(
                    text=str(s.get("text", "")),
                    time_ms=_number(s.get("time"), f"syllable time in line {index}"),
                    duration_ms=_number(s.get("duration", 0), f"syllable duration in line {index}"),
                    is_background=bool(s.get("isBackground", False)),
                    is_line_ending=bool(s.get("isLineEnding", False)),
                )
            )
        start = _number(raw.get("startTime"), f"startTime of line {index}") * 1000
        end = _number(raw.get("endTime"), f"endTime of line {index}") * 1000
        if end < start:
            logger.warning(f"Line {index} ends before it starts ({start:.0f} > {end:.0f}ms)")
        lines.append(
            SourceLine(
                text=str(raw.get("text", "")),
                start_ms=start,
                end_ms=end,
                singer=str(element.get("singer") or "") if isinstance(element, Mapping) else "",
                syllables=syllables,
            )
        )

    metadata = payload.get("metadata") or {}
    song_writers = metadata.get("songWriters") or []
    return LyricsDocument(
        lines=lines,
        type=str(payload.get("type", "Word" if any(l.syllables for l in lines) else "Line")),
        source=str(metadata.get("source") or payload.get("source") or "Unknown"),
        song_writers=[str(w) for w in song_writers],
    )


_LRC_TS_RE = re.compile(
    r"""
    \[                      # opening bracket
    (?P<min>\d+)            # minutes
    :
    (?P<sec>[0-5]?\d)       # seconds
    (?:[.:](?P<frac>\d{1,3}))?  # optional fractional seconds
    \]                      # closing bracket
    """,
    re.VERBOSE,
)
_LRC_WORD_TS_RE = re.compile(r"<(?P<min>\d+):(?P<sec>[0-5]?\d)(?:[.:](?P<frac>\d{1,3}))?>")
_LRC_TAG_RE = re.compile(r"^\[(?P<key>[a-z]+):(?P<value>.*)\]$", re.IGNORECASE)

# LRC has no end times: a line lasts until the next one, capped for long breaks
LRC_MAX_LINE_MS = 10000.0
LRC_CAPPED_LINE_MS = 5000.0
LRC_LAST_LINE_MS = 3000.0


def _match_to_ms(match: re.Match) -> float:
    minutes = int(match.group("min"))
    seconds = int(match.group("sec"))
    frac = match.group("frac")
    frac_seconds = int(frac) / (10 ** len(frac)) if frac else 0.0
    return (minutes * 60 + seconds + frac_seconds) * 1000


def _parse_enhanced_words(text: str, line_end: float) -> Tuple[str, List[SourceSyllable]]:
    """Split an enhanced-LRC line (<mm:ss.xx>word ...) into timed syllables."""
    stamps = list(_LRC_WORD_TS_RE.finditer(text))
    if not stamps:
        return text.strip(), []

    pieces: List[Tuple[float, str]] = []
    for i, stamp in enumerate(stamps):
        end = stamps[i + 1].start() if i + 1 < len(stamps) else len(text)
        piece = text[stamp.end():end]
        if piece.strip():
            pieces.append((_match_to_ms(stamp), piece))

    syllables = []
    for i, (start, piece) in enumerate(pieces):
        next_start = pieces[i + 1][0] if i + 1 < len(pieces) else line_end
        syllables.append(
            SourceSyllable(text=piece, time_ms=start, duration_ms=max(0.0, next_start - start))
        )
    plain = "".join(p for _, p in pieces).strip()
    return plain, syllables


def parse_lrc(lrc_text: str) -> LyricsDocument:
    """Parse LRC (optionally enhanced with per-word timestamps)."""
    if not lrc_text:
        return LyricsDocument(lines=[])

    timed: List[Tuple[float, str]] = []
    tags: Dict[str, str] = {}
    for raw_line in lrc_text.strip().splitlines():
        raw_line = raw_line.strip()
        if not raw_line:
            continue
        tag = _LRC_TAG_RE.match(raw_line)
        if tag and not _LRC_TS_RE.match(raw_line):
            tags[tag.group("key").lower()] = tag.group("value").strip()
            continue

        # A line may carry several timestamps ([00:01.00][00:30.00]chorus)
        stamps = []
        rest = raw_line
        match = _LRC_TS_RE.match(rest)
        while match:
            stamps.append(_match_to_ms(match))
            rest = rest[match.end():]
            match = _LRC_TS_RE.match(rest)
        if not stamps or not rest.strip():
            continue
        for stamp in stamps:
            timed.append((stamp, rest))

    timed.sort(key=lambda item: item[0])

    lines: List[SourceLine] = []
    for i, (start, text) in enumerate(timed):
        if i + 1 < len(timed):
            end = timed[i + 1][0]
            if end - start > LRC_MAX_LINE_MS:
                end = start + LRC_CAPPED_LINE_MS
        else:
            end = start + LRC_LAST_LINE_MS
        plain, syllables = _parse_enhanced_words(text, end)
        lines.append(SourceLine(text=plain, start_ms=start, end_ms=end, syllables=syllables))

    writers = [w.strip() for w in tags.get("au", "").split(",") if w.strip()]
    return LyricsDocument(
        lines=lines,
        type="Word" if any(l.syllables for l in lines) else "Line",
        source=tags.get("re") or "LRC",
        song_writers=writers,
    )


def load_lyrics_file(path: Path) -> LyricsDocument:
    """Load a .json provider payload or an .lrc file."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise TimelineError(f"Cannot read lyrics file {path}: {e}") from e

    if path.suffix.lower() == ".lrc":
        return parse_lrc(content)
    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        raise TimelineError(f"Invalid JSON in {path}: {e}") from e
    return parse_lyrics_payload(payload)


# ----------------------
# Word grouping
# ----------------------


def group_syllables(source: Sequence[SourceSyllable]) -> List[WordGroup]:
    """
    Group syllables into words.

    A word ends at a syllable with trailing whitespace or an explicit line
    ending, at the last syllable of the line, or where background-vocal
    status changes between neighbours.
    """
    words: List[WordGroup] = []
    buffer: List[SourceSyllable] = []

    def flush() -> None:
        if not buffer:
            return
        syllables = [
            Syllable(
                text=s.text.rstrip(),
                start_ms=s.time_ms,
                duration_ms=max(0.0, s.duration_ms),
                syllable_index=i,
                is_background=s.is_background,
                is_rtl=is_rtl(s.text),
            )
            for i, s in enumerate(buffer)
        ]
        combined = "".join(s.text for s in buffer)
        words.append(WordGroup(syllables=syllables, trailing_space=trailing_whitespace(combined)))
        buffer.clear()

    for index, s in enumerate(source):
        buffer.append(s)
        is_last = index == len(source) - 1
        following = source[index + 1] if not is_last else None
        delimiter = s.is_line_ending or ends_with_whitespace(s.text)
        background_changes = (
            following is not None
            and s.is_background != following.is_background
            and not delimiter
        )
        if delimiter or is_last or background_changes:
            flush()

    return words


def _gap_line(start_ms: float, end_ms: float, like: Optional[Line] = None) -> Line:
    """Filler line shown during a long instrumental break: three timed dots."""
    duration = end_ms - start_ms
    dot_duration = (duration / GAP_LINE_DOTS) / GAP_DOT_STRETCH
    syllables = [
        Syllable(
            text=GAP_DOT,
            start_ms=start_ms + i * duration / GAP_LINE_DOTS,
            duration_ms=dot_duration,
            syllable_index=i,
        )
        for i in range(GAP_LINE_DOTS)
    ]
    return Line(
        start_ms=start_ms,
        end_ms=end_ms,
        text=GAP_DOT * GAP_LINE_DOTS,
        kind=LineKind.GAP,
        words=[WordGroup(syllables=syllables)],
        singer=like.singer if like else "",
        is_rtl=like.is_rtl if like else False,
    )


# ----------------------
# Timeline cache
# ----------------------


class Timeline:
    """Indexed, owned cache of one render pass.

    Rebuilt wholesale on every render; nothing is patched incrementally.
    """

    def __init__(self, lines: Optional[List[Line]] = None):
        self.lines: List[Line] = []
        self.by_id: Dict[str, Line] = {}
        self.syllables: List[Syllable] = []
        self.syllable_by_id: Dict[str, Syllable] = {}
        self.line_of_syllable: Dict[str, Line] = {}
        self.syllables_of_line: Dict[str, List[Syllable]] = {}
        self.word_of_syllable: Dict[str, WordGroup] = {}
        self._index: Dict[str, int] = {}
        self.replace(lines or [])

    def replace(self, lines: List[Line]) -> None:
        self.clear()
        self.lines = list(lines)
        for i, line in enumerate(self.lines):
            if not line.id:
                line.id = f"line-{i}"
            self.by_id[line.id] = line
            self._index[line.id] = i
        for line in self.lines:
            self.syllables_of_line[line.id] = line.syllables
            for word in line.words:
                for syllable in word.syllables:
                    if not syllable.id:
                        syllable.id = f"syllable-{len(self.syllables)}"
                    self.syllables.append(syllable)
                    self.syllable_by_id[syllable.id] = syllable
                    self.line_of_syllable[syllable.id] = line
                    self.word_of_syllable[syllable.id] = word

    def clear(self) -> None:
        self.lines = []
        self.by_id.clear()
        self.syllables = []
        self.syllable_by_id.clear()
        self.line_of_syllable.clear()
        self.syllables_of_line.clear()
        self.word_of_syllable.clear()
        self._index.clear()

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self) -> Iterator[Line]:
        return iter(self.lines)

    def __bool__(self) -> bool:
        return bool(self.lines)

    @property
    def first(self) -> Optional[Line]:
        return self.lines[0] if self.lines else None

    @property
    def lyric_lines(self) -> List[Line]:
        return [line for line in self.lines if line.kind == LineKind.LYRIC]

    def index_of(self, line: Optional[Line]) -> int:
        if line is None:
            return -1
        return self._index.get(line.id, -1)

    def get(self, line_id: str) -> Optional[Line]:
        return self.by_id.get(line_id)


def build_timeline(
    document: LyricsDocument,
    metrics: Optional[TextMetrics] = None,
    settings: Optional[EngineSettings] = None,
) -> Timeline:
    """
    Build the render-pass timeline for a lyrics document.

    Order matters: ids are assigned in display order, gap lines are
    inserted before timing correction (they mark the preceding line as
    followed by a manual gap), and animation parameters are derived from
    the corrected lines.

    Raises:
        TimelineError: If a lyric line still ends before it starts once
            timings are corrected
    """
    settings = settings or EngineSettings()
    metrics = metrics or TextMetrics()
    word_mode = document.is_word_timed and settings.word_by_word

    lyric_lines: List[Line] = []
    for source in document.lines:
        words = group_syllables(source.syllables) if word_mode and source.syllables else []
        lyric_lines.append(
            Line(
                start_ms=source.start_ms,
                end_ms=source.end_ms,
                text=source.text,
                words=words,
                singer=source.singer,
                is_rtl=is_rtl(source.text),
            )
        )

    display: List[Line] = []
    gap_markers: List[Line] = []
    if lyric_lines and lyric_lines[0].start_ms >= GAP_LINE_THRESHOLD_MS:
        first = lyric_lines[0]
        display.append(_gap_line(0.0, first.start_ms - GAP_LINE_LEAD_OUT_MS, first))
    for i, line in enumerate(lyric_lines):
        display.append(line)
        if i + 1 < len(lyric_lines):
            following = lyric_lines[i + 1]
            if following.start_ms - line.end_ms >= GAP_LINE_THRESHOLD_MS:
                display.append(
                    _gap_line(
                        line.end_ms + GAP_LINE_LEAD_IN_MS,
                        following.start_ms - GAP_LINE_LEAD_OUT_MS,
                        following,
                    )
                )
                gap_markers.append(line)

    if document.lines:
        last_end = document.lines[-1].end_ms
        credits = []
        if document.song_writers:
            credits.append(f"Written by: {', '.join(document.song_writers)}")
        credits.append(f"Source: {document.source}")
        display.append(
            Line(
                start_ms=last_end + METADATA_START_OFFSET_MS,
                end_ms=last_end + METADATA_END_OFFSET_MS,
                text="\n".join(credits),
                kind=LineKind.METADATA,
            )
        )

    timeline = Timeline(display)
    correct_timings(lyric_lines, gap_marker_ids=[line.id for line in gap_markers])
    for line in lyric_lines:
        line.validate()

    metrics.invalidate()
    if word_mode:
        for line in lyric_lines:
            derive_animation_parameters(line, metrics, lightweight=settings.lightweight)

    logger.debug(
        f"Built timeline: {len(lyric_lines)} lyric lines, "
        f"{len(display) - len(lyric_lines)} other rows, {len(timeline.syllables)} syllables"
    )
    return timeline
