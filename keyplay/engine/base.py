"""
Abstract engine client interface.

Defines the command contract of the external playback engine and the
subscription interface for the events it pushes.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List

from .types import (
    EngineEvent,
    EngineStatus,
    NoteMode,
    PauseResumeResult,
    Track,
)

logger = logging.getLogger(__name__)

# Event listener type
EventListener = Callable[[EngineEvent], None]


class EngineError(Exception):
    """Base class for engine command failures."""

    pass


class EngineUnavailable(EngineError):
    """Command channel unreachable or engine not responding."""

    pass


class EngineCommandError(EngineError):
    """Engine received the command and rejected it."""

    pass


class Subscription:
    """Cancellation token returned by EngineClient.subscribe()."""

    def __init__(self, listeners: List[EventListener], listener: EventListener):
        self._listeners = listeners
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Stop delivering events to this listener. Safe to call twice."""
        if not self._active:
            return
        self._active = False
        try:
            self._listeners.remove(self._listener)
        except ValueError:
            pass


class EngineClient(ABC):
    """
    Abstract base class for engine connections.

    Every command raises EngineUnavailable when the engine cannot be reached
    and EngineCommandError when the engine answers with an error.
    Events are delivered to subscribers in arrival order, once each.
    """

    def __init__(self, name: str = "EngineClient"):
        self.name = name
        self._listeners: List[EventListener] = []

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Open the command/event channel."""
        pass

    async def stop(self) -> None:
        """Close the command/event channel."""
        pass

    async def wait_connected(self, timeout: float) -> bool:
        """Wait until the engine is reachable."""
        return self.is_connected

    @property
    def is_connected(self) -> bool:
        return True

    # =========================================================================
    # Playback Commands
    # =========================================================================

    @abstractmethod
    async def play(self, path: str) -> None:
        """Load and start playing a file."""
        pass

    @abstractmethod
    async def pause_resume(self) -> PauseResumeResult:
        """Toggle pause; returns the resulting engine state."""
        pass

    @abstractmethod
    async def stop_playback(self) -> None:
        """Stop playback."""
        pass

    @abstractmethod
    async def seek(self, position: float) -> None:
        """Seek to position in seconds."""
        pass

    @abstractmethod
    async def set_loop(self, enabled: bool) -> None:
        """Enable or disable loop mode."""
        pass

    @abstractmethod
    async def query_status(self) -> EngineStatus:
        """Get the engine's playback status."""
        pass

    @abstractmethod
    async def query_focus(self) -> bool:
        """Check if the rendering target window has focus."""
        pass

    @abstractmethod
    async def focus(self) -> None:
        """Bring the rendering target window to the foreground."""
        pass

    # =========================================================================
    # Configuration / Bootstrap Commands
    # =========================================================================

    @abstractmethod
    async def set_note_mode(self, mode: NoteMode) -> None:
        pass

    @abstractmethod
    async def set_octave_shift(self, shift: int) -> None:
        pass

    @abstractmethod
    async def set_interaction_mode(self, interactive: bool) -> None:
        pass

    @abstractmethod
    async def import_track(self, source_path: str) -> Track:
        """Copy a MIDI file into the engine's library."""
        pass

    @abstractmethod
    async def load_library(self) -> list[Track]:
        """List the MIDI files in the engine's library."""
        pass

    @abstractmethod
    async def test_all_keys(self) -> None:
        """Press every mapped key once."""
        pass

    # =========================================================================
    # Events
    # =========================================================================

    def subscribe(self, listener: EventListener) -> Subscription:
        """
        Register an event listener.

        Returns:
            Subscription; call cancel() to unregister
        """
        self._listeners.append(listener)
        return Subscription(self._listeners, listener)

    def _emit(self, event: EngineEvent) -> None:
        """Deliver an event to all listeners."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Event listener error for {event}: {e}", exc_info=True)
