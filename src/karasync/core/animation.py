"""Animation parameter derivation for syllable highlight sweeps.

All timing here is derived from measured text geometry rather than from
character counts, so a wipe moves at a uniform visual speed whatever the
font or script.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..config import (
    DEFAULT_MAX_SCALE,
    GRADIENT_WIDTH_EM,
    GROW_CHAR_DELAY_RATIO,
    GROW_DURATION_RATIO,
    GROW_EASING_POWER,
    GROW_MAX_DURATION_MS,
    GROW_MAX_TEXT_LENGTH,
    GROW_MIN_DURATION_MS,
)
from ..utils.logging import get_logger
from .metrics import TextMetrics
from .models import CharWipe, FontDescriptor, Line, Syllable, WordGroup
from .text_utils import is_cjk, is_rtl

logger = get_logger(__name__)

GRADIENT_HALF_WIDTH_EM = GRADIENT_WIDTH_EM / 2

WORD_TAG = "span"
WORD_CLASS = "lyrics-word"
BACKGROUND_WORD_CLASS = "lyrics-word background"


def _js_round(value: float) -> int:
    """Round half up, matching how render surfaces round pixel/ms values."""
    return int(math.floor(value + 0.5))


def _ms(value: float) -> str:
    return f"{value:g}ms"


def pre_highlight_trigger_fraction(syllable_width_px: float, em_width_px: float) -> float:
    """
    Fraction of a syllable's wipe after which the next syllable's preview starts.

    The wipe is a gradient ``GRADIENT_WIDTH_EM`` wide that travels from
    half a gradient before the text to half a gradient past its end. The
    next syllable is triggered when the gradient's leading half reaches the
    end of this syllable's text.

    Returns 0.0 when the em width is unknown (no proportional timing).
    """
    if em_width_px <= 0:
        return 0.0

    width_em = syllable_width_px / em_width_px
    initial_position = -GRADIENT_HALF_WIDTH_EM
    final_position = width_em + GRADIENT_HALF_WIDTH_EM
    total_distance = final_position - initial_position

    if width_em <= GRADIENT_WIDTH_EM:
        # Narrower than the gradient itself: trigger early to avoid a
        # negative or degenerate trigger position
        trigger_position = -GRADIENT_HALF_WIDTH_EM * 0.5
    else:
        trigger_position = width_em - GRADIENT_HALF_WIDTH_EM

    if total_distance <= 0:
        return 0.0
    fraction = (trigger_position - initial_position) / total_distance
    return min(1.0, max(0.0, fraction))


def pre_highlight_delay_ms(
    syllable_width_px: float, em_width_px: float, duration_ms: float
) -> int:
    """Delay (ms) from this syllable's highlight start to the next one's preview."""
    fraction = pre_highlight_trigger_fraction(syllable_width_px, em_width_px)
    return max(0, _js_round(fraction * duration_ms))


def compute_pre_highlight_delay(
    text: str, font: FontDescriptor, duration_ms: float, metrics: TextMetrics
) -> int:
    """Measure text under font and compute its pre-highlight delay."""
    return pre_highlight_delay_ms(metrics.width(text, font), metrics.em_width(font), duration_ms)


def should_emphasize(text: str, word_duration_ms: float, lightweight: bool = False) -> bool:
    """Whether a word gets the per-character grow/wipe treatment."""
    return (
        not lightweight
        and not is_rtl(text)
        and not is_cjk(text)
        and len(text.strip()) <= GROW_MAX_TEXT_LENGTH
        and word_duration_ms >= GROW_MIN_DURATION_MS
    )


def emphasis_parameters(text: str, word_duration_ms: float) -> Tuple[float, float, float]:
    """
    Scale, shadow and lift for an emphasized word.

    Longer-held words grow more (eased with a cubic curve); longer text
    grows less.

    Returns:
        Tuple of (max_scale, shadow_intensity, translate_y_peak)
    """
    span = GROW_MAX_DURATION_MS - GROW_MIN_DURATION_MS
    progress = min(1.0, max(0.0, (word_duration_ms - GROW_MIN_DURATION_MS) / span))
    eased = progress ** GROW_EASING_POWER

    text_length = len(text.strip())
    length_factor = max(0.5, 1.0 - ((text_length - 3) * 0.05))

    max_scale = 1.0 + (0.05 + eased * 0.08) * length_factor
    shadow_intensity = (0.8 + eased * 0.6) * length_factor
    normalized_growth = (max_scale - 1.0) / 0.08
    translate_y_peak = -normalized_growth * 3.0 * length_factor
    return max_scale, shadow_intensity, translate_y_peak


def compute_char_wipes(
    text: str,
    font: FontDescriptor,
    metrics: TextMetrics,
    word_char_offset: int = 0,
) -> List[CharWipe]:
    """
    Per-character wipe fractions proportional to measured glyph widths.

    Whitespace and zero-width characters get no wipe of their own; they stay
    plain text between the wiped characters. If the syllable measures zero
    width there are no fractions to compute and an empty list is returned,
    so the syllable falls back to a whole-syllable wipe.
    """
    text = text.rstrip()
    total_width = metrics.width(text, font)
    wipes: List[CharWipe] = []
    if total_width <= 0:
        return wipes

    cumulative = 0.0
    for char in text:
        if char.isspace():
            continue
        char_width = metrics.width(char, font)
        if char_width <= 0:
            continue
        start = cumulative / total_width
        duration = char_width / total_width
        cumulative += char_width
        wipes.append(
            CharWipe(
                char=char,
                start_fraction=round(start, 4),
                duration_fraction=round(duration, 4),
                char_index=len(wipes),
                word_char_index=word_char_offset + len(wipes),
            )
        )
    return wipes


def assign_horizontal_offsets(
    word: WordGroup, font: FontDescriptor, metrics: TextMetrics
) -> None:
    """Spread characters of a growing word outward from its centre."""
    chars = word.char_wipes
    if not chars:
        return
    word_width = metrics.width("".join(s.text.rstrip() for s in word.syllables), font)
    if word_width <= 0:
        return

    spread = (word.max_scale - 1.0) * 40
    cumulative = 0.0
    for cw in chars:
        char_width = metrics.width(cw.char, font)
        position = (cumulative + char_width / 2) / word_width
        centred = (position - 0.5) * 2
        cw.horizontal_offset = math.copysign(abs(centred) ** 1.3, centred) * spread if centred else 0.0
        cumulative += char_width


def word_font(word: WordGroup, metrics: TextMetrics) -> FontDescriptor:
    css_class = BACKGROUND_WORD_CLASS if word.is_background else WORD_CLASS
    return metrics.font_for(WORD_TAG, css_class)


def derive_word_parameters(
    word: WordGroup, metrics: TextMetrics, lightweight: bool = False
) -> None:
    """Emphasis, character wipes and pre-highlight links for one word."""
    font = word_font(word, metrics)
    duration = word.duration_ms

    for syllable in word.syllables:
        syllable.word_duration_ms = duration
        syllable.next_syllable_in_word = None
        syllable.pre_highlight_delay_ms = None
        syllable.pre_highlight_duration_ms = None
        syllable.char_wipes = []

    word.growable = should_emphasize(word.text, duration, lightweight)
    if word.growable:
        word.max_scale, word.shadow_intensity, word.translate_y_peak = emphasis_parameters(
            word.text, duration
        )
        offset = 0
        for syllable in word.syllables:
            if syllable.is_background:
                continue
            syllable.char_wipes = compute_char_wipes(syllable.text, font, metrics, offset)
            offset += len(syllable.char_wipes)
        assign_horizontal_offsets(word, font, metrics)
    else:
        word.max_scale = DEFAULT_MAX_SCALE
        word.shadow_intensity = 0.0
        word.translate_y_peak = 0.0

    for current, following in zip(word.syllables, word.syllables[1:]):
        delay = compute_pre_highlight_delay(current.text, font, current.duration_ms, metrics)
        current.next_syllable_in_word = following
        current.pre_highlight_delay_ms = delay
        current.pre_highlight_duration_ms = max(0, current.duration_ms - delay)


def derive_animation_parameters(
    line: Line, metrics: TextMetrics, lightweight: bool = False
) -> Line:
    """Precompute all geometry-dependent animation parameters of a line."""
    for word in line.words:
        derive_word_parameters(word, metrics, lightweight)
    return line


# =============================================================================
# Highlight plans
# =============================================================================


@dataclass
class HighlightPlan:
    """Render-surface writes that start one syllable's highlight."""

    syllable_id: str
    animations: Dict[str, List[str]] = field(default_factory=dict)
    styles: List[Tuple[str, str, str]] = field(default_factory=list)
    added_classes: List[Tuple[str, str]] = field(default_factory=list)
    pre_highlight_target: Optional[str] = None

    def animation_for(self, element_id: str) -> str:
        return ", ".join(self.animations.get(element_id, []))


def build_highlight_plan(
    syllable: Syllable,
    word: Optional[WordGroup] = None,
    is_gap: bool = False,
    preview: bool = True,
) -> HighlightPlan:
    """
    Build the animations fired when a syllable starts highlighting.

    Covers the wipe itself (per character for emphasized words, whole
    syllable otherwise), the grow animation of an emphasized word's
    characters when its first syllable starts, and the preview armed on the
    next syllable of the word. With ``preview`` off the next syllable is
    left alone, for syllables filled in after the fact.
    """
    plan = HighlightPlan(syllable_id=syllable.id)
    wipe_name = "wipe-rtl" if syllable.is_rtl else "wipe"

    if word is not None and word.growable and syllable.syllable_index == 0:
        final_duration = syllable.word_duration_ms or syllable.duration_ms
        base_delay = final_duration * GROW_CHAR_DELAY_RATIO
        grow_duration = final_duration * GROW_DURATION_RATIO
        for owner in word.syllables:
            for cw in owner.char_wipes:
                element_id = cw.element_id(owner.id)
                grow_delay = base_delay * cw.word_char_index
                plan.animations[element_id] = [
                    f"grow-dynamic {_ms(grow_duration)} ease-in-out {_ms(grow_delay)} forwards"
                ]
                plan.styles.append((element_id, "--char-offset-x", f"{cw.horizontal_offset:g}"))

    if syllable.char_wipes:
        duration = syllable.duration_ms
        for index, cw in enumerate(syllable.char_wipes):
            element_id = cw.element_id(syllable.id)
            parts = list(plan.animations.get(element_id, []))
            if index > 0:
                prev = syllable.char_wipes[index - 1]
                prev_duration = duration * prev.duration_fraction
                if prev_duration > 0:
                    prev_delay = duration * prev.start_fraction
                    parts.append(f"pre-wipe-char {_ms(prev_duration)} linear {_ms(prev_delay)}")
            wipe_duration = duration * cw.duration_fraction
            if wipe_duration > 0:
                wipe_delay = duration * cw.start_fraction
                parts.append(f"{wipe_name} {_ms(wipe_duration)} linear {_ms(wipe_delay)} forwards")
            plan.animations[element_id] = parts
    else:
        name = "fade-gap" if is_gap else wipe_name
        plan.styles.append((syllable.id, "animation", f"{name} {_ms(syllable.duration_ms)} linear forwards"))

    following = syllable.next_syllable_in_word
    if following is not None and preview:
        pre_duration = syllable.pre_highlight_duration_ms or 0
        pre_delay = syllable.pre_highlight_delay_ms or 0
        plan.pre_highlight_target = following.id
        plan.added_classes.append((following.id, "pre-highlight"))
        plan.styles.append((following.id, "--pre-wipe-duration", _ms(pre_duration)))
        plan.styles.append((following.id, "--pre-wipe-delay", _ms(pre_delay)))
        if following.char_wipes:
            element_id = following.char_wipes[0].element_id(following.id)
            pre_wipe = f"pre-wipe-char {_ms(pre_duration)} linear {_ms(pre_delay)} forwards"
            plan.animations[element_id] = plan.animations.get(element_id, []) + [pre_wipe]

    return plan
