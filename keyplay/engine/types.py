"""
Engine types and enumerations.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


class NoteMode(Enum):
    """
    How the engine maps MIDI notes to keys.

    Values match the engine's serialized names.
    """

    CLOSEST = "Closest"  # Closest available note
    QUANTIZE = "Quantize"  # Snap to exact scale notes only
    TRANSPOSE_ONLY = "TransposeOnly"  # Shift octaves, direct mapping
    PENTATONIC = "Pentatonic"  # Map to pentatonic scale
    CHROMATIC = "Chromatic"  # Detailed chromatic mapping
    RAW = "Raw"  # 1:1 mapping, no transpose

    def step(self, delta: int) -> "NoteMode":
        """Neighbouring mode, wrapping at both ends."""
        modes = list(NoteMode)
        return modes[(modes.index(self) + delta) % len(modes)]


class ShortcutAction(Enum):
    """Actions pushed by the engine's global shortcut listener."""

    PAUSE_RESUME = "pause_resume"
    STOP = "stop"
    PREVIOUS = "previous"
    NEXT = "next"
    TOGGLE_LOOP = "toggle_loop"
    MODE_PREV = "mode_prev"
    MODE_NEXT = "mode_next"
    TOGGLE_MINI = "toggle_mini"


# Octave shift range accepted by the engine
MIN_OCTAVE_SHIFT = -2
MAX_OCTAVE_SHIFT = 2


@dataclass(frozen=True)
class Track:
    """
    A playable MIDI file.

    Identity is `path`; the same path may appear several times in a queue.
    """

    path: str
    name: str = ""
    duration: Optional[float] = None  # seconds

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "path": self.path,
            "name": self.name,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        """Build from a dictionary (persisted JSON or engine payload)."""
        duration = data.get("duration")
        return cls(
            path=str(data["path"]),
            name=str(data.get("name") or ""),
            duration=float(duration) if duration is not None else None,
        )


@dataclass
class EngineStatus:
    """Result of a status query."""

    is_playing: bool = False
    is_paused: bool = False
    loop_mode: bool = False
    current_position: float = 0.0
    total_duration: float = 0.0
    current_file: Optional[str] = None
    note_mode: Optional[NoteMode] = None
    octave_shift: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineStatus":
        """Build from the engine's status payload."""
        note_mode = data.get("note_mode")
        try:
            mode = NoteMode(note_mode) if note_mode is not None else None
        except ValueError:
            mode = None
        return cls(
            is_playing=bool(data.get("is_playing", False)),
            is_paused=bool(data.get("is_paused", False)),
            loop_mode=bool(data.get("loop_mode", False)),
            current_position=float(data.get("current_position", 0.0)),
            total_duration=float(data.get("total_duration", 0.0)),
            current_file=data.get("current_file"),
            note_mode=mode,
            octave_shift=int(data.get("octave_shift", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "is_playing": self.is_playing,
            "is_paused": self.is_paused,
            "loop_mode": self.loop_mode,
            "current_position": self.current_position,
            "total_duration": self.total_duration,
            "current_file": self.current_file,
            "note_mode": self.note_mode.value if self.note_mode else None,
            "octave_shift": self.octave_shift,
        }


@dataclass
class PauseResumeResult:
    """Engine state after a pause/resume toggle."""

    is_paused: bool
    is_playing: bool
    current_position: float
    total_duration: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PauseResumeResult":
        return cls(
            is_paused=bool(data.get("is_paused", False)),
            is_playing=bool(data.get("is_playing", False)),
            current_position=float(data.get("current_position", 0.0)),
            total_duration=float(data.get("total_duration", 0.0)),
        )


# ---------------------------------------------------------------------------
# Events pushed by the engine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProgressEvent:
    """Periodic playback position tick."""

    position: float  # seconds


@dataclass(frozen=True)
class TrackEndedEvent:
    """Current track finished naturally."""

    pass


@dataclass(frozen=True)
class ShortcutEvent:
    """Global shortcut pressed while the engine has focus elsewhere."""

    action: ShortcutAction


EngineEvent = Union[ProgressEvent, TrackEndedEvent, ShortcutEvent]
