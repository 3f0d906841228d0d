"""Core functionality modules."""

from .models import ActivationState, Line, LineKind, Syllable, SyllableStatus, WordGroup
from .timing import correct_timings
from .animation import derive_animation_parameters
from .timeline import LyricsDocument, Timeline, build_timeline, load_lyrics_file
from .engine import SyncEngine, SyncLoop

__all__ = [
    "ActivationState",
    "Line",
    "LineKind",
    "Syllable",
    "SyllableStatus",
    "WordGroup",
    "correct_timings",
    "derive_animation_parameters",
    "LyricsDocument",
    "Timeline",
    "build_timeline",
    "load_lyrics_file",
    "SyncEngine",
    "SyncLoop",
]
