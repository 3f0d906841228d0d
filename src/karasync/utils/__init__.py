"""Utility modules."""

from .logging import setup_logging, get_logger
from .timers import CancellableTimer, Debounced, TimerGroup, monotonic_ms
from .fonts import get_font, get_font_path

__all__ = [
    "setup_logging",
    "get_logger",
    "CancellableTimer",
    "Debounced",
    "TimerGroup",
    "monotonic_ms",
    "get_font",
    "get_font_path",
]
