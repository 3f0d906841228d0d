"""Test configuration and fixtures.

Provides reusable fixtures for:
- A deterministic text measurer (no font files needed)
- In-memory render surfaces with a fixed layout
- A controllable wall clock for timers
- Lyric payloads in the provider JSON format
"""

import json
import logging
from typing import Dict, List, Optional

import pytest

from karasync.config import EngineSettings
from karasync.core.metrics import TextMetrics
from karasync.core.models import FontDescriptor, Line, Syllable, WordGroup
from karasync.core.surface import RecordingSurface, StackedLayout
from karasync.core.timeline import Timeline


# =============================================================================
# Measurement and clocks
# =============================================================================


class FakeMeasurer:
    """Every character is 10px wide unless overridden; spaces are 5px."""

    def __init__(self, char_widths: Optional[Dict[str, float]] = None,
                 text_widths: Optional[Dict[str, float]] = None):
        self.char_widths = {" ": 5.0}
        self.char_widths.update(char_widths or {})
        self.text_widths = dict(text_widths or {})
        self.calls = 0

    def measure(self, text: str, font: FontDescriptor) -> float:
        self.calls += 1
        if text in self.text_widths:
            return self.text_widths[text]
        return sum(self.char_widths.get(ch, 10.0) for ch in text)


class FakeWallClock:
    """Callable wall clock in milliseconds that only moves when told to."""

    def __init__(self, start_ms: float = 0.0):
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


@pytest.fixture
def measurer():
    return FakeMeasurer()


@pytest.fixture
def metrics(measurer):
    return TextMetrics(measurer)


@pytest.fixture
def wall():
    return FakeWallClock()


# =============================================================================
# Surfaces
# =============================================================================

LINE_HEIGHT = 40.0
VIEWPORT = 400.0


@pytest.fixture
def surface():
    """Lines 40px tall in a 400px viewport; scroll padding is 100px."""
    return RecordingSurface(StackedLayout(line_height=LINE_HEIGHT, viewport_height=VIEWPORT,
                                          padding_ratio=0.25))


@pytest.fixture
def settings():
    return EngineSettings()


# =============================================================================
# Timelines
# =============================================================================


def make_line(start_ms: float, end_ms: float, *syllables: tuple, text: str = "") -> Line:
    """Line with one word per syllable tuple group: ("text", start, duration)."""
    words = []
    for group in syllables:
        words.append(WordGroup(syllables=[Syllable(text=t, start_ms=s, duration_ms=d)
                                          for t, s, d in group]))
    if not text:
        text = " ".join(w.text for w in words)
    return Line(start_ms=start_ms, end_ms=end_ms, text=text, words=words)


def plain_lines(count: int, length_ms: float = 1000.0) -> List[Line]:
    return [Line(start_ms=i * length_ms, end_ms=(i + 1) * length_ms, text=f"line {i}")
            for i in range(count)]


@pytest.fixture
def ten_line_timeline(surface):
    timeline = Timeline(plain_lines(10))
    surface.attach(timeline.lines)
    return timeline


# =============================================================================
# Lyric payloads
# =============================================================================


def _syllables(*items):
    return [{"text": t, "time": time, "duration": d} for t, time, d in items]


@pytest.fixture
def word_payload():
    """Three overlapping/gapped lines: [0,2000) [1900,4000) [4100,6000)."""
    return {
        "type": "Word",
        "data": [
            {
                "text": "Hello world",
                "startTime": 0.0,
                "endTime": 2.0,
                "syllabus": _syllables(("Hel", 0, 600), ("lo ", 600, 600), ("world", 1200, 700)),
            },
            {
                "text": "Again we go",
                "startTime": 1.9,
                "endTime": 4.0,
                "element": {"singer": "v1"},
                "syllabus": _syllables(("A", 1900, 300), ("gain ", 2200, 500),
                                       ("we ", 2700, 500), ("go", 3200, 800)),
            },
            {
                "text": "Last line",
                "startTime": 4.1,
                "endTime": 6.0,
                "syllabus": _syllables(("Last ", 4100, 900), ("line", 5000, 1000)),
            },
        ],
        "metadata": {"source": "Test Provider", "songWriters": ["Ada", "Bo"]},
    }


@pytest.fixture
def word_payload_file(tmp_path, word_payload):
    path = tmp_path / "song.json"
    path.write_text(json.dumps(word_payload), encoding="utf-8")
    return path


@pytest.fixture
def lrc_file(tmp_path):
    path = tmp_path / "song.lrc"
    path.write_text(
        "[ar:Someone]\n"
        "[au:Ada, Bo]\n"
        "[00:01.00]First line\n"
        "[00:03.50]Second line\n",
        encoding="utf-8",
    )
    return path


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True)
def reset_karasync_logger():
    """Undo setup_logging() so CLI runs do not leak handlers into other tests."""
    yield
    logger = logging.getLogger("karasync")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    for name in ("karasync.core.engine", "karasync.core.scroll", "karasync.utils.timers"):
        logging.getLogger(name).setLevel(logging.NOTSET)
