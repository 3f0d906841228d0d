"""Script detection helpers for lyric text."""

import re

_RTL_RE = re.compile(
    "[\u0600-\u06FF\u0750-\u077F\u0590-\u05FF\u08A0-\u08FF"
    "\uFB50-\uFDCF\uFDF0-\uFDFF\uFE70-\uFEFF]"
)
_CJK_RE = re.compile("[\u4E00-\u9FFF\u3000-\u303F\u3040-\u309F\u30A0-\u30FF\uAC00-\uD7AF]")
_TRAILING_SPACE_RE = re.compile(r"\s+$")


def is_rtl(text: str) -> bool:
    """Check whether text contains right-to-left characters."""
    return bool(text) and _RTL_RE.search(text) is not None


def is_cjk(text: str) -> bool:
    """Check whether text contains CJK characters (Han, kana, hangul)."""
    return bool(text) and _CJK_RE.search(text) is not None


def trailing_whitespace(text: str) -> str:
    """Return the run of whitespace at the end of text ('' if none)."""
    match = _TRAILING_SPACE_RE.search(text or "")
    return match.group(0) if match else ""


def ends_with_whitespace(text: str) -> bool:
    return bool(text) and text[-1].isspace()
