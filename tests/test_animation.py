"""Tests for animation parameter derivation and highlight plans."""

import pytest

from karasync.core.animation import (
    build_highlight_plan,
    compute_char_wipes,
    derive_animation_parameters,
    emphasis_parameters,
    pre_highlight_delay_ms,
    pre_highlight_trigger_fraction,
    should_emphasize,
)
from karasync.core.metrics import TextMetrics
from karasync.core.timeline import Timeline

from conftest import FakeMeasurer, make_line


# ------------------------------
# Pre-highlight timing
# ------------------------------


class TestPreHighlightTiming:
    def test_trigger_fraction_for_wide_syllable(self):
        # 1.125em wide: trigger at 0.75em of a 1.875em sweep
        assert pre_highlight_trigger_fraction(11.25, 10.0) == pytest.approx(0.6)

    def test_trigger_fraction_for_narrow_syllable(self):
        # Narrower than the gradient: trigger fixed at -0.1875em
        assert pre_highlight_trigger_fraction(5.0, 10.0) == pytest.approx(0.15)

    def test_zero_em_width_skips_proportional_timing(self):
        assert pre_highlight_trigger_fraction(20.0, 0.0) == 0.0
        assert pre_highlight_delay_ms(20.0, 0.0, 1000) == 0

    def test_delay_is_rounded_fraction_of_duration(self):
        assert pre_highlight_delay_ms(11.25, 10.0, 1000) == 600
        assert pre_highlight_delay_ms(5.0, 10.0, 1000) == 150

    def test_zero_duration(self):
        assert pre_highlight_delay_ms(11.25, 10.0, 0) == 0


class TestDeriveAnimationParameters:
    def test_pre_highlight_overlap(self):
        metrics = TextMetrics(FakeMeasurer(text_widths={"Hel": 11.25}))
        line = make_line(0, 2000, [("Hel", 0, 1000), ("lo", 1000, 500)])
        derive_animation_parameters(line, metrics, lightweight=True)

        first, second = line.syllables
        assert first.next_syllable_in_word is second
        assert first.pre_highlight_delay_ms == 600
        assert first.pre_highlight_duration_ms == 400

    def test_last_syllable_of_word_has_no_successor(self):
        line = make_line(0, 3000, [("Hel", 0, 500), ("lo", 500, 500)], [("world", 1000, 1000)])
        derive_animation_parameters(line, TextMetrics(FakeMeasurer()))

        syllables = line.syllables
        assert syllables[1].next_syllable_in_word is None
        assert syllables[1].pre_highlight_delay_ms is None
        assert syllables[2].next_syllable_in_word is None

    def test_word_duration_recorded_on_syllables(self):
        line = make_line(0, 3000, [("Hel", 0, 500), ("lo", 500, 700)])
        derive_animation_parameters(line, TextMetrics(FakeMeasurer()))
        assert [s.word_duration_ms for s in line.syllables] == [1200, 1200]

    def test_growable_word_gets_char_wipes(self):
        line = make_line(0, 3000, [("Hel", 0, 600), ("lo", 600, 600)])
        derive_animation_parameters(line, TextMetrics(FakeMeasurer()))

        word = line.words[0]
        assert word.growable is True
        first, second = line.syllables
        assert [cw.char for cw in first.char_wipes] == ["H", "e", "l"]
        assert [cw.word_char_index for cw in second.char_wipes] == [3, 4]
        assert word.max_scale > 1.0

    def test_lightweight_disables_emphasis(self):
        line = make_line(0, 3000, [("Hel", 0, 600), ("lo", 600, 600)])
        derive_animation_parameters(line, TextMetrics(FakeMeasurer()), lightweight=True)
        assert line.words[0].growable is False
        assert all(not s.char_wipes for s in line.syllables)

    def test_horizontal_offsets_spread_from_centre(self):
        line = make_line(0, 3000, [("abcd", 0, 3000)])
        derive_animation_parameters(line, TextMetrics(FakeMeasurer()))

        offsets = [cw.horizontal_offset for cw in line.syllables[0].char_wipes]
        assert offsets[0] < 0 < offsets[-1]
        assert offsets[0] == pytest.approx(-offsets[-1])

    def test_rederiving_resets_previous_values(self):
        metrics = TextMetrics(FakeMeasurer())
        line = make_line(0, 3000, [("Hel", 0, 600), ("lo", 600, 600)])
        derive_animation_parameters(line, metrics)
        derive_animation_parameters(line, metrics, lightweight=True)
        assert all(not s.char_wipes for s in line.syllables)
        assert line.words[0].shadow_intensity == 0.0


# ------------------------------
# Emphasis
# ------------------------------


class TestEmphasis:
    @pytest.mark.parametrize(
        "text,duration,lightweight,expected",
        [
            ("Hello", 1000, False, True),
            ("Hello", 799, False, False),
            ("Hello", 1000, True, False),
            ("שלום", 1000, False, False),
            ("你好", 1000, False, False),
            ("a" * 15, 1000, False, True),
            ("a" * 16, 1000, False, False),
        ],
    )
    def test_should_emphasize(self, text, duration, lightweight, expected):
        assert should_emphasize(text, duration, lightweight) is expected

    def test_parameters_at_minimum_duration(self):
        scale, shadow, lift = emphasis_parameters("abc", 800)
        assert scale == pytest.approx(1.05)
        assert shadow == pytest.approx(0.8)
        assert lift == pytest.approx(-1.875)

    def test_parameters_at_maximum_duration(self):
        scale, shadow, lift = emphasis_parameters("abc", 5000)
        assert scale == pytest.approx(1.13)
        assert shadow == pytest.approx(1.4)
        assert lift == pytest.approx(-4.875)

    def test_long_text_grows_less(self):
        short_scale, _, _ = emphasis_parameters("abc", 2000)
        long_scale, _, _ = emphasis_parameters("abcdefghijklm", 2000)
        assert long_scale < short_scale


# ------------------------------
# Character wipes
# ------------------------------


class TestCharWipes:
    def test_fractions_follow_measured_widths(self, metrics):
        metrics.measurer.char_widths.update({"b": 20.0})
        font = metrics.font_for("span", "lyrics-word")
        wipes = compute_char_wipes("abc", font, metrics)

        assert [(w.start_fraction, w.duration_fraction) for w in wipes] == [
            (0.0, 0.25),
            (0.25, 0.5),
            (0.75, 0.25),
        ]

    def test_whitespace_gets_no_wipe(self, metrics):
        font = metrics.font_for("span", "lyrics-word")
        wipes = compute_char_wipes("a b ", font, metrics)
        assert [w.char for w in wipes] == ["a", "b"]
        assert [w.char_index for w in wipes] == [0, 1]

    def test_zero_total_width_falls_back_to_whole_syllable(self):
        metrics = TextMetrics(FakeMeasurer(text_widths={"xyz": 0.0}))
        font = metrics.font_for("span", "lyrics-word")
        assert compute_char_wipes("xyz", font, metrics) == []

    def test_word_char_offset(self, metrics):
        font = metrics.font_for("span", "lyrics-word")
        wipes = compute_char_wipes("lo", font, metrics, word_char_offset=3)
        assert [w.word_char_index for w in wipes] == [3, 4]
        assert [w.element_id("syllable-1") for w in wipes] == ["syllable-1-c0", "syllable-1-c1"]


# ------------------------------
# Highlight plans
# ------------------------------


def _timeline(*lines):
    return Timeline(list(lines))


class TestHighlightPlan:
    def test_plain_syllable_wipes_whole_element(self):
        line = make_line(0, 1000, [("la", 0, 500)])
        _timeline(line)
        syllable = line.syllables[0]

        plan = build_highlight_plan(syllable, line.words[0])
        assert (syllable.id, "animation", "wipe 500ms linear forwards") in plan.styles
        assert plan.pre_highlight_target is None

    def test_rtl_and_gap_animation_names(self):
        line = make_line(0, 1000, [("la", 0, 500)])
        _timeline(line)
        syllable = line.syllables[0]

        syllable.is_rtl = True
        assert build_highlight_plan(syllable).styles[0][2].startswith("wipe-rtl ")
        assert build_highlight_plan(syllable, is_gap=True).styles[0][2].startswith("fade-gap ")

    def test_next_syllable_preview_is_armed(self):
        metrics = TextMetrics(FakeMeasurer(text_widths={"Hel": 11.25}))
        line = make_line(0, 2000, [("Hel", 0, 1000), ("lo", 1000, 500)])
        _timeline(line)
        derive_animation_parameters(line, metrics, lightweight=True)
        first, second = line.syllables

        plan = build_highlight_plan(first, line.words[0])
        assert plan.pre_highlight_target == second.id
        assert (second.id, "pre-highlight") in plan.added_classes
        assert (second.id, "--pre-wipe-duration", "400ms") in plan.styles
        assert (second.id, "--pre-wipe-delay", "600ms") in plan.styles

    def test_growable_word_first_syllable_starts_grow(self):
        line = make_line(0, 2000, [("Hel", 0, 600), ("lo", 600, 600)])
        _timeline(line)
        derive_animation_parameters(line, TextMetrics(FakeMeasurer()))
        first, second = line.syllables

        plan = build_highlight_plan(first, line.words[0])
        assert plan.animation_for(f"{first.id}-c0").startswith(
            "grow-dynamic 1800ms ease-in-out 0ms forwards, wipe "
        )
        assert "pre-wipe-char" in plan.animation_for(f"{first.id}-c1")
        # Characters of the next syllable grow too, and its first one previews
        next_first = plan.animation_for(f"{second.id}-c0")
        assert next_first.startswith("grow-dynamic 1800ms ease-in-out 324ms forwards")
        assert next_first.endswith("forwards") and "pre-wipe-char" in next_first

    def test_later_syllable_does_not_restart_grow(self):
        line = make_line(0, 2000, [("Hel", 0, 600), ("lo", 600, 600)])
        _timeline(line)
        derive_animation_parameters(line, TextMetrics(FakeMeasurer()))
        second = line.syllables[1]

        plan = build_highlight_plan(second, line.words[0])
        assert all("grow-dynamic" not in plan.animation_for(eid) for eid in plan.animations)
