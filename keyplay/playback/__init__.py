"""Playback session, queue and playlist management module."""

from .queue import (
    NotFoundError,
    PlayCallback,
    QueueManager,
    QueueSnapshot,
    SavedPlaylist,
)
from .favorites import FavoritesManager
from .library import LibraryManager
from .controller import SessionController, SessionPhase
from .shortcut_handler import ShortcutHandler

__all__ = [
    # Queue and playlists
    "NotFoundError",
    "PlayCallback",
    "QueueManager",
    "QueueSnapshot",
    "SavedPlaylist",
    # Collections
    "FavoritesManager",
    "LibraryManager",
    # Controller
    "SessionController",
    "SessionPhase",
    "ShortcutHandler",
]
