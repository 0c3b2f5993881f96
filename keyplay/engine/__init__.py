"""
Engine module.

Command interface and event channel of the external playback engine.
"""

from .base import (
    EngineClient,
    EngineCommandError,
    EngineError,
    EngineUnavailable,
    EventListener,
    Subscription,
)
from .types import (
    MAX_OCTAVE_SHIFT,
    MIN_OCTAVE_SHIFT,
    EngineEvent,
    EngineStatus,
    NoteMode,
    PauseResumeResult,
    ProgressEvent,
    ShortcutAction,
    ShortcutEvent,
    Track,
    TrackEndedEvent,
)
from .ws_client import WebSocketEngine

__all__ = [
    # Base
    "EngineClient",
    "EngineError",
    "EngineUnavailable",
    "EngineCommandError",
    "EventListener",
    "Subscription",
    # Types
    "EngineEvent",
    "EngineStatus",
    "NoteMode",
    "PauseResumeResult",
    "ProgressEvent",
    "ShortcutAction",
    "ShortcutEvent",
    "Track",
    "TrackEndedEvent",
    "MIN_OCTAVE_SHIFT",
    "MAX_OCTAVE_SHIFT",
    # WebSocket transport
    "WebSocketEngine",
]
