"""Line timing correction.

Source timings routinely overlap (a line is still ringing out when the next
one starts) or leave short dead intervals between lines. This module repairs
the end times so the active line hands over cleanly, without ever moving a
start time or reordering lines.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from ..config import END_TIME_EPSILON_MS, MAX_GAP_EXTENSION_MS, MIN_OVERLAP_MS
from ..utils.logging import get_logger
from .models import Line

logger = get_logger(__name__)


@dataclass
class _LineTiming:
    line: Line
    start_ms: float
    original_end_ms: float
    new_end_ms: float
    handled_by_precursor: bool = False
    followed_by_gap_marker: bool = False


def _precursor_pass(timings: List[_LineTiming]) -> None:
    """Clip A to C's start when A overlaps B, B overlaps C, but A clears C."""
    for i in range(len(timings) - 2):
        a, b, c = timings[i], timings[i + 1], timings[i + 2]
        a_overlaps_b = b.start_ms < a.original_end_ms
        b_overlaps_c = c.start_ms < b.original_end_ms
        a_clears_c = c.start_ms >= a.original_end_ms
        if a_overlaps_b and b_overlaps_c and a_clears_c:
            a.new_end_ms = c.start_ms
            a.handled_by_precursor = True


def _trailing_pass(timings: List[_LineTiming]) -> None:
    """Right-to-left: extend through real overlaps, bridge short gaps."""
    for i in range(len(timings) - 2, -1, -1):
        current = timings[i]
        following = timings[i + 1]
        if current.handled_by_precursor:
            continue

        if following.start_ms < current.original_end_ms:
            overlap = current.original_end_ms - following.start_ms
            if overlap >= MIN_OVERLAP_MS:
                current.new_end_ms = following.new_end_ms
            else:
                current.new_end_ms = current.original_end_ms
        else:
            gap = following.start_ms - current.original_end_ms
            if gap > 0 and not current.followed_by_gap_marker:
                current.new_end_ms = current.original_end_ms + min(MAX_GAP_EXTENSION_MS, gap)


def correct_timings(
    lines: Sequence[Line], gap_marker_ids: Optional[Iterable[str]] = None
) -> Sequence[Line]:
    """
    Repair overlapping and gapped line end times in place.

    Args:
        lines: Lines ordered by start time
        gap_marker_ids: Ids of lines that are followed by an explicit gap
            line in the display; their trailing gap is left alone

    Returns:
        The same sequence, with ``end_ms`` corrected and ``actual_end_ms``
        holding the original end
    """
    if not lines or len(lines) < 2:
        return lines

    markers = set(gap_marker_ids or ())
    timings = [
        _LineTiming(
            line=line,
            start_ms=line.start_ms,
            original_end_ms=line.end_ms,
            new_end_ms=line.end_ms,
            followed_by_gap_marker=line.id in markers if line.id else False,
        )
        for line in lines
    ]

    _precursor_pass(timings)
    _trailing_pass(timings)

    changed = 0
    for timing in timings:
        timing.line.actual_end_ms = timing.original_end_ms
        if abs(timing.new_end_ms - timing.original_end_ms) > END_TIME_EPSILON_MS:
            timing.line.end_ms = timing.new_end_ms
            changed += 1

    logger.debug(f"Corrected end times of {changed}/{len(timings)} lines")
    return lines
