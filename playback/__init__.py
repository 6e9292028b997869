"""Page-side runtime: element resolution, playback and recording."""

from .config import PlaybackConfig, load_config
from .element_finder import CacheStats, ElementFinder, ElementNotFoundError
from .executor import ExecutionResult, PlaybackExecutor
from .recorder import ActionRecorder
from .session import PlaybackProgress, PlaybackReport, PlaybackSession

__all__ = [
    "ActionRecorder",
    "CacheStats",
    "ElementFinder",
    "ElementNotFoundError",
    "ExecutionResult",
    "PlaybackConfig",
    "PlaybackExecutor",
    "PlaybackProgress",
    "PlaybackReport",
    "PlaybackSession",
    "load_config",
]
