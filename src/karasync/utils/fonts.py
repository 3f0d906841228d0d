"""Font utilities for cross-platform font loading."""

import os
import sys
from functools import lru_cache
from typing import Optional

from PIL import ImageFont

from ..config import FONT_SIZE
from .logging import get_logger

logger = get_logger(__name__)


# Platform-specific font paths in order of preference, per generic family
FONT_PATHS = {
    'darwin': {  # macOS
        'sans-serif': [
            "/System/Library/Fonts/Helvetica.ttc",
            "/System/Library/Fonts/SFNSDisplay.ttf",
            "/Library/Fonts/Arial.ttf",
            "/System/Library/Fonts/Arial.ttf",
        ],
        'serif': [
            "/System/Library/Fonts/Times.ttc",
            "/Library/Fonts/Times New Roman.ttf",
        ],
        'monospace': [
            "/System/Library/Fonts/Menlo.ttc",
            "/System/Library/Fonts/Courier.ttc",
        ],
    },
    'linux': {
        'sans-serif': [
            "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
            "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
            "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
            "/usr/share/fonts/TTF/DejaVuSans.ttf",
        ],
        'serif': [
            "/usr/share/fonts/truetype/dejavu/DejaVuSerif.ttf",
            "/usr/share/fonts/truetype/liberation/LiberationSerif-Regular.ttf",
            "/usr/share/fonts/TTF/DejaVuSerif.ttf",
        ],
        'monospace': [
            "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
            "/usr/share/fonts/truetype/liberation/LiberationMono-Regular.ttf",
            "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
        ],
    },
    'win32': {  # Windows
        'sans-serif': [
            "C:/Windows/Fonts/arial.ttf",
            "C:/Windows/Fonts/segoeui.ttf",
            "C:/Windows/Fonts/tahoma.ttf",
            "C:/Windows/Fonts/verdana.ttf",
        ],
        'serif': [
            "C:/Windows/Fonts/times.ttf",
            "C:/Windows/Fonts/georgia.ttf",
        ],
        'monospace': [
            "C:/Windows/Fonts/consola.ttf",
            "C:/Windows/Fonts/cour.ttf",
        ],
    },
}

GENERIC_FAMILIES = ('sans-serif', 'serif', 'monospace')


def _get_platform_fonts(family: str = 'sans-serif') -> list[str]:
    """Get font paths for the current platform and generic family."""
    platform = sys.platform
    if platform.startswith('linux'):
        platform = 'linux'
    families = FONT_PATHS.get(platform, FONT_PATHS['linux'])
    return families.get(family, families['sans-serif'])


def _candidate_paths(family: str) -> list[str]:
    """Font files to try for a family, most preferred first."""
    candidates = []
    # An explicit font file wins over generic family lookup
    if family and os.path.splitext(family)[1].lower() in ('.ttf', '.otf', '.ttc'):
        candidates.append(family)
    generic = family if family in GENERIC_FAMILIES else 'sans-serif'
    candidates.extend(_get_platform_fonts(generic))
    for platform_fonts in FONT_PATHS.values():
        candidates.extend(platform_fonts[generic])
    return candidates


@lru_cache(maxsize=32)
def get_font(
    size: int = FONT_SIZE, family: str = 'sans-serif'
) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """
    Get a suitable font for measuring, with cross-platform support.

    Args:
        size: Font size in pixels (default from config)
        family: Generic family name or path to a font file

    Returns:
        PIL ImageFont object
    """
    for path in _candidate_paths(family):
        if os.path.exists(path):
            try:
                return ImageFont.truetype(path, size)
            except OSError:
                continue

    # Last resort: PIL default font
    logger.debug(f"No TrueType font found for {family!r}, using PIL default")
    return ImageFont.load_default(size)


def get_font_path(family: str = 'sans-serif') -> Optional[str]:
    """
    Get the path to the font that will be used for measuring.

    Returns:
        Path to font file, or None if using default
    """
    for path in _candidate_paths(family):
        if os.path.exists(path):
            return path

    return None
