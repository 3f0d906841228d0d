"""Tests for lyric parsing, word grouping and timeline building."""

import logging

import pytest

from karasync.config import EngineSettings
from karasync.core.metrics import TextMetrics
from karasync.core.models import Line, LineKind, Syllable, WordGroup
from karasync.core.timeline import (
    GAP_DOT,
    LyricsDocument,
    SourceLine,
    SourceSyllable,
    Timeline,
    build_timeline,
    group_syllables,
    load_lyrics_file,
    parse_lrc,
    parse_lyrics_payload,
)
from karasync.exceptions import TimelineError

from conftest import FakeMeasurer, make_line


def _document(*spans):
    return LyricsDocument(
        lines=[SourceLine(text=f"line {i}", start_ms=s, end_ms=e) for i, (s, e) in enumerate(spans)],
        source="Test",
    )


@pytest.fixture
def fake_metrics():
    return TextMetrics(FakeMeasurer())


# ------------------------------
# Provider payloads
# ------------------------------


class TestParseLyricsPayload:
    def test_line_times_converted_to_ms(self, word_payload):
        document = parse_lyrics_payload(word_payload)
        assert [(l.start_ms, l.end_ms) for l in document.lines] == [
            (0, 2000), (1900, 4000), (4100, 6000)
        ]
        assert document.is_word_timed
        assert document.source == "Test Provider"
        assert document.song_writers == ["Ada", "Bo"]

    def test_syllables_and_singer(self, word_payload):
        document = parse_lyrics_payload(word_payload)
        second = document.lines[1]
        assert second.singer == "v1"
        assert [(s.text, s.time_ms, s.duration_ms) for s in second.syllables][:2] == [
            ("A", 1900, 300), ("gain ", 2200, 500)
        ]

    @pytest.mark.parametrize("payload", [[], {"type": "Word"}, {"data": "nope"}, {"data": [1]}])
    def test_malformed_payload_raises(self, payload):
        with pytest.raises(TimelineError):
            parse_lyrics_payload(payload)

    def test_invalid_time_raises(self):
        with pytest.raises(TimelineError, match="startTime"):
            parse_lyrics_payload({"data": [{"text": "x", "startTime": "abc", "endTime": 1}]})

    def test_reversed_line_logs_warning(self, caplog):
        caplog.set_level(logging.WARNING)
        parse_lyrics_payload({"data": [{"text": "x", "startTime": 2, "endTime": 1}]})
        assert "ends before it starts" in caplog.text

    def test_line_synced_payload(self):
        document = parse_lyrics_payload(
            {"type": "Line", "data": [{"text": "x", "startTime": 1, "endTime": 2}]}
        )
        assert not document.is_word_timed
        assert document.source == "Unknown"


# ------------------------------
# LRC
# ------------------------------


class TestParseLrc:
    def test_basic_lines_and_tags(self):
        document = parse_lrc("[au:Ada, Bo]\n[00:01.00]First line\n[00:03.50]Second line\n")
        assert [(l.text, l.start_ms, l.end_ms) for l in document.lines] == [
            ("First line", 1000, 3500),
            ("Second line", 3500, 6500),
        ]
        assert document.song_writers == ["Ada", "Bo"]
        assert document.source == "LRC"
        assert document.type == "Line"

    def test_fraction_precision(self):
        document = parse_lrc("[00:01.5]a\n[01:02.345]b")
        assert [l.start_ms for l in document.lines] == pytest.approx([1500, 62345])

    def test_repeated_timestamps(self):
        document = parse_lrc("[00:05.00][00:01.00]chorus")
        assert [(l.text, l.start_ms) for l in document.lines] == [("chorus", 1000), ("chorus", 5000)]

    def test_long_break_caps_line_end(self):
        document = parse_lrc("[00:00.00]a\n[00:20.00]b")
        assert document.lines[0].end_ms == 5000

    def test_enhanced_word_timestamps(self):
        document = parse_lrc("[00:01.00]<00:01.00>Hel<00:01.50>lo <00:02.00>world")
        line = document.lines[0]
        assert document.type == "Word"
        assert line.text == "Hello world"
        assert [(s.text, s.time_ms, s.duration_ms) for s in line.syllables] == [
            ("Hel", 1000, 500),
            ("lo ", 1500, 500),
            ("world", 2000, 2000),
        ]

    def test_empty_input(self):
        assert parse_lrc("").lines == []

    def test_skips_lines_without_text(self):
        document = parse_lrc("[00:01.00]\n[00:02.00]text")
        assert [l.text for l in document.lines] == ["text"]


class TestLoadLyricsFile:
    def test_json_file(self, word_payload_file):
        assert len(load_lyrics_file(word_payload_file).lines) == 3

    def test_lrc_file(self, lrc_file):
        document = load_lyrics_file(lrc_file)
        assert [l.text for l in document.lines] == ["First line", "Second line"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(TimelineError, match="Cannot read"):
            load_lyrics_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(TimelineError, match="Invalid JSON"):
            load_lyrics_file(path)


# ------------------------------
# Word grouping
# ------------------------------


class TestGroupSyllables:
    def test_trailing_whitespace_ends_word(self):
        words = group_syllables([
            SourceSyllable("Hel", 0, 300),
            SourceSyllable("lo ", 300, 300),
            SourceSyllable("world", 600, 300),
        ])
        assert [w.text for w in words] == ["Hello", "world"]
        assert words[0].trailing_space == " "
        assert [s.syllable_index for s in words[0].syllables] == [0, 1]

    def test_background_change_splits_word(self):
        words = group_syllables([
            SourceSyllable("Hi", 0, 300),
            SourceSyllable("oh", 300, 300, is_background=True),
        ])
        assert len(words) == 2
        assert words[1].is_background

    def test_explicit_line_ending(self):
        words = group_syllables([
            SourceSyllable("one", 0, 300, is_line_ending=True),
            SourceSyllable("two", 300, 300),
        ])
        assert [w.text for w in words] == ["one", "two"]

    def test_negative_duration_clamped(self):
        words = group_syllables([SourceSyllable("x", 0, -5)])
        assert words[0].syllables[0].duration_ms == 0


# ------------------------------
# Timeline building
# ------------------------------


class TestBuildTimeline:
    def test_fixture_lines_are_corrected(self, word_payload, fake_metrics):
        timeline = build_timeline(parse_lyrics_payload(word_payload), fake_metrics)
        lyric = timeline.lyric_lines
        assert [(l.start_ms, l.end_ms) for l in lyric] == [(0, 4100), (1900, 4100), (4100, 6000)]
        assert [l.actual_end_ms for l in lyric] == [2000, 4000, 6000]

    def test_ids_in_display_order(self, word_payload, fake_metrics):
        timeline = build_timeline(parse_lyrics_payload(word_payload), fake_metrics)
        assert [l.id for l in timeline] == ["line-0", "line-1", "line-2", "line-3"]
        assert [s.id for s in timeline.syllables] == [f"syllable-{i}" for i in range(9)]

    def test_metadata_line(self, word_payload, fake_metrics):
        timeline = build_timeline(parse_lyrics_payload(word_payload), fake_metrics)
        metadata = timeline.lines[-1]
        assert metadata.kind == LineKind.METADATA
        assert (metadata.start_ms, metadata.end_ms) == (6500, 16000)
        assert metadata.text == "Written by: Ada, Bo\nSource: Test Provider"

    def test_animation_parameters_derived(self, word_payload, fake_metrics):
        timeline = build_timeline(parse_lyrics_payload(word_payload), fake_metrics)
        first = timeline.syllable_by_id["syllable-0"]
        assert first.next_syllable_in_word is timeline.syllable_by_id["syllable-1"]
        assert first.pre_highlight_delay_ms is not None

    def test_gap_line_between_distant_lines(self, fake_metrics):
        timeline = build_timeline(_document((0, 1000), (9000, 10000)), fake_metrics)
        assert [l.kind for l in timeline] == [
            LineKind.LYRIC, LineKind.GAP, LineKind.LYRIC, LineKind.METADATA
        ]
        gap = timeline.lines[1]
        assert (gap.start_ms, gap.end_ms) == (1400, 8150)
        assert gap.text == GAP_DOT * 3
        assert [s.start_ms for s in gap.syllables] == [1400, 3650, 5900]
        assert all(s.duration_ms == pytest.approx(2500) for s in gap.syllables)
        # The line before a gap line keeps its own end
        assert timeline.lines[0].end_ms == 1000

    def test_gap_line_before_late_first_line(self, fake_metrics):
        timeline = build_timeline(_document((8000, 9000)), fake_metrics)
        gap = timeline.first
        assert gap.is_gap
        assert (gap.start_ms, gap.end_ms) == (0, 7150)

    def test_no_gap_line_below_threshold(self, fake_metrics):
        timeline = build_timeline(_document((0, 1000), (7999, 9000)), fake_metrics)
        assert not any(l.is_gap for l in timeline)

    def test_line_mode_has_no_words(self, word_payload, fake_metrics):
        settings = EngineSettings(word_by_word=False)
        timeline = build_timeline(parse_lyrics_payload(word_payload), fake_metrics, settings)
        assert all(not l.words for l in timeline.lyric_lines)

    def test_empty_document(self, fake_metrics):
        timeline = build_timeline(LyricsDocument(lines=[]), fake_metrics)
        assert len(timeline) == 0
        assert timeline.first is None

    def test_reversed_line_rejected(self, fake_metrics):
        with pytest.raises(TimelineError, match="ends before it starts"):
            build_timeline(_document((2000, 1000)), fake_metrics)

    def test_rebuild_clears_metric_caches(self, word_payload, fake_metrics):
        fake_metrics.font_for("span", "stale")
        build_timeline(parse_lyrics_payload(word_payload), fake_metrics, EngineSettings(word_by_word=False))
        assert fake_metrics.font_cache == {}


class TestTimeline:
    def test_lookups(self):
        lines = [Line(start_ms=0, end_ms=1000), Line(start_ms=1000, end_ms=2000)]
        timeline = Timeline(lines)
        assert timeline.get("line-1") is lines[1]
        assert timeline.index_of(lines[1]) == 1
        assert timeline.index_of(None) == -1
        assert timeline.index_of(Line(start_ms=0, end_ms=1, id="other")) == -1

    def test_syllables_of_line(self):
        line = make_line(0, 2000, [("Hel", 0, 500), ("lo ", 500, 500)], [("there", 1000, 500)])
        timeline = Timeline([line, Line(start_ms=2000, end_ms=3000)])
        assert [s.text for s in timeline.syllables_of_line["line-0"]] == ["Hel", "lo ", "there"]
        assert timeline.syllables_of_line["line-1"] == []

    def test_negative_syllable_duration_rejected(self):
        line = Line(start_ms=0, end_ms=1000, words=[WordGroup([Syllable("x", 0, -5)])])
        with pytest.raises(TimelineError, match="negative duration"):
            line.validate()

    def test_replace_is_wholesale(self):
        timeline = Timeline([Line(start_ms=0, end_ms=1000)])
        timeline.replace([Line(start_ms=5, end_ms=6, id="x")])
        assert [l.id for l in timeline] == ["x"]
        assert timeline.get("line-0") is None

    def test_clear(self):
        timeline = Timeline([Line(start_ms=0, end_ms=1000)])
        timeline.clear()
        assert not timeline
        assert timeline.syllables == []
