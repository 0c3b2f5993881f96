"""
Observable state store.

Named state cells with synchronous subscriber notification. Every write
installs a new value and notifies subscribers in write order.
"""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

# Subscriber callback type: receives the newly installed value
Subscriber = Callable[[Any], None]
Unsubscribe = Callable[[], None]

# Cell names
IS_PLAYING = "is_playing"
IS_PAUSED = "is_paused"
IS_SEEKING = "is_seeking"
LOOP_MODE = "loop_mode"
CURRENT_FILE = "current_file"
CURRENT_POSITION = "current_position"
TOTAL_DURATION = "total_duration"
NOTE_MODE = "note_mode"
OCTAVE_SHIFT = "octave_shift"
SMART_PAUSE = "smart_pause"
IS_DRAGGABLE = "is_draggable"
MINI_MODE = "mini_mode"
QUEUE = "queue"
CURRENT_INDEX = "current_index"
SAVED_PLAYLISTS = "saved_playlists"
ACTIVE_PLAYLIST_ID = "active_playlist_id"
FAVORITES = "favorites"
LIBRARY = "library"


class StateCell:
    """
    A single observable value.

    The component that created the cell holds this object and is the only
    writer. Everyone else goes through ObservableStore.read/subscribe.
    """

    def __init__(self, name: str, initial: Any = None):
        self.name = name
        self._value = initial
        self._subscribers: List[Subscriber] = []

    def get(self) -> Any:
        """Get the current value."""
        return self._value

    def set(self, value: Any) -> None:
        """Install a new value and notify subscribers."""
        self._value = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as e:
                logger.error(f"Error in subscriber for {self.name}: {e}", exc_info=True)

    def subscribe(self, callback: Subscriber) -> Unsubscribe:
        """
        Register a subscriber.

        Returns:
            Callable that removes the subscriber again
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class ObservableStore:
    """
    Registry of named state cells.

    Usage:
        store = ObservableStore()
        cell = store.create_cell("is_playing", False)   # owner keeps `cell`
        store.subscribe("is_playing", print)
        cell.set(True)                                  # prints True
        store.read("is_playing")                        # True
    """

    def __init__(self) -> None:
        self._cells: Dict[str, StateCell] = {}

    def create_cell(self, name: str, initial: Any = None) -> StateCell:
        """
        Create a cell and return its write handle.

        Raises:
            ValueError: If a cell with this name already has an owner
        """
        if name in self._cells:
            raise ValueError(f"State cell already owned: {name}")
        cell = StateCell(name, initial)
        self._cells[name] = cell
        logger.debug(f"Created state cell: {name}")
        return cell

    def read(self, name: str) -> Any:
        """Read the current value of a cell."""
        return self._cell(name).get()

    def subscribe(self, name: str, callback: Subscriber) -> Unsubscribe:
        """Subscribe to replacements of a cell's value."""
        return self._cell(name).subscribe(callback)

    @property
    def names(self) -> list[str]:
        return list(self._cells.keys())

    def snapshot(self) -> dict[str, Any]:
        """Current value of every cell."""
        return {name: cell.get() for name, cell in self._cells.items()}

    def _cell(self, name: str) -> StateCell:
        try:
            return self._cells[name]
        except KeyError:
            raise KeyError(f"Unknown state cell: {name}") from None


def progress_percent(position: float, duration: float) -> float:
    """Playback progress in percent, 0 when duration is unknown."""
    if not duration:
        return 0.0
    return position / duration * 100


def format_time(seconds: float) -> str:
    """Format seconds as m:ss."""
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"
