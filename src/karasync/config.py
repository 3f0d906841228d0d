"""Configuration settings for karasync."""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

from .exceptions import ConfigError

# Engine frame rate used by the polling loop (can be overridden via environment variables)
FPS = int(os.getenv("KARASYNC_FPS", "60"))

# Default level for the karasync logger
LOG_LEVEL = os.getenv("KARASYNC_LOG_LEVEL", "INFO")

# Predictive timing (milliseconds)
HIGHLIGHT_LOOKAHEAD_MS = float(os.getenv("KARASYNC_HIGHLIGHT_LOOKAHEAD_MS", "190"))
SCROLL_LOOKAHEAD_MS = float(os.getenv("KARASYNC_SCROLL_LOOKAHEAD_MS", "300"))
MAX_ACTIVE_LINES = int(os.getenv("KARASYNC_MAX_ACTIVE_LINES", "3"))
SEEK_THRESHOLD_MS = 1000.0  # Clock jumps larger than this are treated as seeks

# Timing correction
MIN_OVERLAP_MS = 5.0  # Overlaps shorter than this are noise
MAX_GAP_EXTENSION_MS = 500.0
END_TIME_EPSILON_MS = 1.0

# Gap lines (instrumental breaks)
GAP_LINE_THRESHOLD_MS = 7000.0
GAP_LINE_LEAD_IN_MS = 400.0
GAP_LINE_LEAD_OUT_MS = 850.0
GAP_LINE_DOTS = 3
GAP_DOT_STRETCH = 0.9

# Trailing metadata line (songwriters, source)
METADATA_START_OFFSET_MS = 500.0
METADATA_END_OFFSET_MS = 10000.0

# Pre-highlight gradient (em units)
GRADIENT_WIDTH_EM = 0.75

# Emphasized ("growable") words
GROW_MIN_DURATION_MS = 800.0
GROW_MAX_DURATION_MS = 3000.0
GROW_MAX_TEXT_LENGTH = 15
GROW_EASING_POWER = 3.0
GROW_CHAR_DELAY_RATIO = 0.09
GROW_DURATION_RATIO = 1.5
DEFAULT_MAX_SCALE = 1.05

# Scrolling
SCROLL_STAGGER_MS = 30.0
POSITION_CLASS_WINDOW = 4
SCROLL_SNAP_TOLERANCE_PX = 5.0
USER_SCROLL_REVERT_MS = float(os.getenv("KARASYNC_USER_SCROLL_REVERT_MS", "4000"))
USER_SCROLL_IDLE_MS = 200.0
PROGRAMMATIC_SCROLL_SETTLE_MS = 250.0
WHEEL_SCROLL_SENSITIVITY = 0.7
TOUCH_SCROLL_SENSITIVITY = 0.8
TOUCH_VELOCITY_WINDOW_MS = 100.0
TOUCH_MAX_SAMPLES = 5
MOMENTUM_MIN_START_VELOCITY = 0.1  # px per ms
MOMENTUM_MIN_VELOCITY = 0.01
MOMENTUM_DECELERATION = 0.95
MOMENTUM_FRAME_MS = 16.0
RESIZE_DEBOUNCE_MS = 1.0

# Visibility
VISIBILITY_MARGIN_PX = 200.0
VISIBILITY_THRESHOLD = 0.1

# Past-line fading
PAST_REWIND_GRACE_MS = 50.0

# Layout defaults (used by the in-memory render surface)
FONT_SIZE = int(os.getenv("KARASYNC_FONT_SIZE", "16"))
FONT_FAMILY = os.getenv("KARASYNC_FONT_FAMILY", "sans-serif")
FONT_WEIGHT = 400
LINE_HEIGHT_RATIO = 2.0
VIEWPORT_HEIGHT = float(os.getenv("KARASYNC_VIEWPORT_HEIGHT", "600"))
SCROLL_PADDING_RATIO = 0.25


def validate_config() -> None:
    """Validate configuration values."""
    if HIGHLIGHT_LOOKAHEAD_MS < 0 or SCROLL_LOOKAHEAD_MS < 0:
        raise ConfigError("Look-ahead values must be non-negative")

    if MAX_ACTIVE_LINES < 1:
        raise ConfigError("At least one active line must be allowed")

    if FPS <= 0:
        raise ConfigError("Invalid FPS value")

    if FONT_SIZE <= 0:
        raise ConfigError("Invalid font size")

    if VIEWPORT_HEIGHT <= 0:
        raise ConfigError("Invalid viewport height")

    if USER_SCROLL_REVERT_MS < 0:
        raise ConfigError("Invalid user scroll revert delay")


# Validate config on import
validate_config()


# Settings keys as stored by the settings collaborator
_SETTINGS_ALIASES = {
    "wordByWord": "word_by_word",
    "lightweight": "lightweight",
    "fadePastLines": "fade_past_lines",
    "fontSize": "font_size",
    "highlightLookAheadMs": "highlight_lookahead_ms",
    "scrollLookAheadMs": "scroll_lookahead_ms",
    "maxActiveLines": "max_active_lines",
}


@dataclass
class EngineSettings:
    """Per-engine tuning values.

    The look-ahead constants and the active line cap are presentation
    tuning and can be changed per engine without touching module defaults.
    """

    highlight_lookahead_ms: float = HIGHLIGHT_LOOKAHEAD_MS
    scroll_lookahead_ms: float = SCROLL_LOOKAHEAD_MS
    max_active_lines: int = MAX_ACTIVE_LINES
    seek_threshold_ms: float = SEEK_THRESHOLD_MS
    scroll_stagger_ms: float = SCROLL_STAGGER_MS
    user_scroll_revert_ms: float = USER_SCROLL_REVERT_MS
    word_by_word: bool = True
    lightweight: bool = False
    fade_past_lines: bool = True
    font_size: int = FONT_SIZE
    font_family: str = FONT_FAMILY

    def validate(self) -> "EngineSettings":
        if self.highlight_lookahead_ms < 0 or self.scroll_lookahead_ms < 0:
            raise ConfigError("Look-ahead values must be non-negative")
        if self.max_active_lines < 1:
            raise ConfigError("max_active_lines must be at least 1")
        if self.seek_threshold_ms <= 0:
            raise ConfigError("seek_threshold_ms must be positive")
        if self.scroll_stagger_ms < 0:
            raise ConfigError("scroll_stagger_ms must be non-negative")
        if self.font_size <= 0:
            raise ConfigError("font_size must be positive")
        return self

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "EngineSettings":
        """
        Build settings from a mapping.

        Accepts both the snake_case field names and the camelCase keys used
        by the persisted user settings. Unknown keys are ignored.

        Raises:
            ConfigError: If a value has the wrong type or is out of range
        """
        if not data:
            return cls()

        known = {f.name: f for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = _SETTINGS_ALIASES.get(key, key)
            if name not in known:
                continue
            default = getattr(cls, name)
            try:
                if isinstance(default, bool):
                    values[name] = bool(value)
                elif isinstance(default, int):
                    values[name] = int(value)
                elif isinstance(default, float):
                    values[name] = float(value)
                else:
                    values[name] = str(value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for {key}: {value!r}") from e

        return cls(**values).validate()
