"""Text width measurement with a memoized font cache."""

from dataclasses import replace
from typing import Dict, Mapping, Optional, Protocol, Tuple

from PIL import ImageFont

from ..config import EngineSettings
from ..exceptions import MeasurementError
from ..utils.fonts import get_font
from ..utils.logging import get_logger
from .models import DEFAULT_FONT, FontDescriptor

logger = get_logger(__name__)

# Fallback width per character, as a fraction of the font size, used when
# no font at all can measure the text.
_ESTIMATED_CHAR_WIDTH_RATIO = 0.5


class TextMeasurer(Protocol):
    def measure(self, text: str, font: FontDescriptor) -> float:
        """Rendered width of text in pixels."""
        ...


class PillowTextMeasurer:
    """Measures text advance widths with Pillow's FreeType bindings."""

    def _load(self, font: FontDescriptor) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        return get_font(font.size_px, font.family)

    def measure(self, text: str, font: FontDescriptor) -> float:
        if not text:
            return 0.0
        try:
            pil_font = self._load(font)
            return float(pil_font.getlength(text))
        except (OSError, ValueError) as e:
            raise MeasurementError(f"Cannot measure {text!r} with {font.css}: {e}") from e


class TextMetrics:
    """Width lookups keyed by font, with fonts resolved per (tag, class).

    Both caches belong to one render pass and are dropped wholesale by
    ``invalidate()`` when the timeline is rebuilt.
    """

    def __init__(
        self,
        measurer: Optional[TextMeasurer] = None,
        base_font: FontDescriptor = DEFAULT_FONT,
        styles: Optional[Mapping[Tuple[str, str], FontDescriptor]] = None,
    ):
        self.measurer = measurer or PillowTextMeasurer()
        self.base_font = base_font
        self.styles = dict(styles or {})
        self.font_cache: Dict[Tuple[str, str], FontDescriptor] = {}
        self._width_cache: Dict[Tuple[FontDescriptor, str], float] = {}

    @classmethod
    def from_settings(
        cls, settings: EngineSettings, measurer: Optional[TextMeasurer] = None
    ) -> "TextMetrics":
        base_font = FontDescriptor(family=settings.font_family, size_px=settings.font_size)
        return cls(measurer, base_font=base_font)

    def font_for(self, tag: str, css_class: str = "") -> FontDescriptor:
        """Resolve the font used by elements with this tag and class."""
        key = (tag, css_class)
        cached = self.font_cache.get(key)
        if cached is not None:
            return cached
        font = self.styles.get(key) or replace(self.base_font, tag=tag, css_class=css_class)
        self.font_cache[key] = font
        return font

    def width(self, text: str, font: Optional[FontDescriptor] = None) -> float:
        """Measured width of text in pixels; never raises."""
        font = font or self.base_font
        cache_key = (font, text)
        cached = self._width_cache.get(cache_key)
        if cached is not None:
            return cached

        width = self._measure_with_fallback(text, font)
        self._width_cache[cache_key] = width
        return width

    def em_width(self, font: Optional[FontDescriptor] = None) -> float:
        return self.width("M", font)

    def _measure_with_fallback(self, text: str, font: FontDescriptor) -> float:
        try:
            return self.measurer.measure(text, font)
        except MeasurementError as e:
            logger.warning(f"Measurement failed, using default font: {e}")

        if font != DEFAULT_FONT:
            try:
                return self.measurer.measure(text, DEFAULT_FONT)
            except MeasurementError as e:
                logger.warning(f"Default font measurement failed: {e}")

        return len(text) * font.size_px * _ESTIMATED_CHAR_WIDTH_RATIO

    def invalidate(self) -> None:
        self.font_cache.clear()
        self._width_cache.clear()
