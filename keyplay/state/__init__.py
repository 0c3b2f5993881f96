"""Observable state and persistence module."""

from .persistence import (
    ACTIVE_PLAYLIST_KEY,
    FAVORITES_KEY,
    PLAYLISTS_KEY,
    JsonStore,
    PersistenceUnavailable,
)
from .store import (
    ObservableStore,
    StateCell,
    format_time,
    progress_percent,
)

__all__ = [
    # Store
    "ObservableStore",
    "StateCell",
    "format_time",
    "progress_percent",
    # Persistence
    "JsonStore",
    "PersistenceUnavailable",
    "FAVORITES_KEY",
    "PLAYLISTS_KEY",
    "ACTIVE_PLAYLIST_KEY",
]
