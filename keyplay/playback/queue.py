"""
Queue and saved playlist management.

Owns the live queue, the "currently playing" index and the user's saved
playlists. Saved playlists and the active playlist id are persisted on every
change; the live queue is not.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from keyplay.engine.types import Track
from keyplay.state.persistence import ACTIVE_PLAYLIST_KEY, PLAYLISTS_KEY, JsonStore
from keyplay.state.store import (
    ACTIVE_PLAYLIST_ID,
    CURRENT_INDEX,
    QUEUE,
    SAVED_PLAYLISTS,
    ObservableStore,
)

logger = logging.getLogger(__name__)

# Callback used to start playback of a path (SessionController.play)
PlayCallback = Callable[[str], Awaitable[bool]]


class NotFoundError(Exception):
    """Operation referenced a playlist id, queue index or track no longer present."""

    pass


@dataclass(frozen=True)
class SavedPlaylist:
    """
    A named, persisted list of tracks.

    Attributes:
        id: Time-derived unique token
        name: Display name
        tracks: Ordered tracks, unique by path within the playlist
        created_at: ISO-8601 creation timestamp
    """

    id: str
    name: str
    tracks: tuple[Track, ...] = ()
    created_at: str = ""

    def has_track(self, path: str) -> bool:
        return any(t.path == path for t in self.tracks)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "tracks": [t.to_dict() for t in self.tracks],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SavedPlaylist":
        """Build from persisted JSON."""
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            tracks=tuple(Track.from_dict(t) for t in data.get("tracks", [])),
            created_at=str(data.get("createdAt", "")),
        )


@dataclass
class QueueSnapshot:
    """Read-only view of the live queue."""

    tracks: tuple[Track, ...] = field(default_factory=tuple)
    current_index: int = 0

    @property
    def current_track(self) -> Optional[Track]:
        if 0 <= self.current_index < len(self.tracks):
            return self.tracks[self.current_index]
        return None


def _move(items: tuple, from_index: int, to_index: int) -> tuple:
    """Remove the item at from_index and reinsert it at to_index."""
    lst = list(items)
    item = lst.pop(from_index)
    lst.insert(to_index, item)
    return tuple(lst)


class QueueManager:
    """
    Queue and playlist manager.

    Handles:
    - Live queue mutation with index-drift correction of the current index
    - Saved playlist CRUD, persisted after every change
    - Loading a saved playlist into the live queue
    """

    def __init__(self, store: ObservableStore, persistence: JsonStore):
        """
        Initialize manager and create its state cells.

        Args:
            store: Shared observable store
            persistence: Durable JSON store for playlists
        """
        self._persistence = persistence

        self._queue = store.create_cell(QUEUE, ())
        self._current_index = store.create_cell(CURRENT_INDEX, 0)
        self._playlists = store.create_cell(SAVED_PLAYLISTS, ())
        self._active_id = store.create_cell(ACTIVE_PLAYLIST_ID, None)

        self._play_callback: Optional[PlayCallback] = None

        logger.debug("QueueManager initialized")

    def set_play_callback(self, callback: PlayCallback) -> None:
        """Set callback used to start playback of a track path."""
        self._play_callback = callback

    async def restore(self) -> None:
        """Seed playlists and the active playlist id from persistence."""
        data = await self._persistence.load(PLAYLISTS_KEY)
        playlists: list[SavedPlaylist] = []
        if isinstance(data, list):
            for item in data:
                try:
                    playlists.append(SavedPlaylist.from_dict(item))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping invalid persisted playlist: {e}")
        elif data is not None:
            logger.warning("Ignoring persisted playlists: not a list")
        self._playlists.set(tuple(playlists))

        active = await self._persistence.load(ACTIVE_PLAYLIST_KEY)
        self._active_id.set(str(active) if active else None)

        logger.info(f"Restored {len(playlists)} saved playlists (active: {self._active_id.get()})")

    # =========================================================================
    # Queue State
    # =========================================================================

    @property
    def tracks(self) -> tuple[Track, ...]:
        return self._queue.get()

    @property
    def current_index(self) -> int:
        return self._current_index.get()

    @property
    def current_track(self) -> Optional[Track]:
        return self.snapshot().current_track

    def snapshot(self) -> QueueSnapshot:
        return QueueSnapshot(tracks=self.tracks, current_index=self.current_index)

    def __len__(self) -> int:
        return len(self.tracks)

    # =========================================================================
    # Queue Mutation
    # =========================================================================

    def append(self, track: Track) -> bool:
        """
        Append a track unless one with the same path is already queued.

        Returns:
            True if appended
        """
        if any(t.path == track.path for t in self.tracks):
            logger.debug(f"Already queued: {track.path}")
            return False
        self._queue.set(self.tracks + (track,))
        logger.info(f"Queued {track.name or track.path}")
        return True

    async def add_to_queue(self, track: Track, play_now: bool = False) -> None:
        """
        Append a track, duplicates allowed.

        If play_now is set and the queue was empty, the track starts playing.
        """
        was_empty = len(self.tracks) == 0
        self._queue.set(self.tracks + (track,))
        logger.info(f"Added to queue: {track.name or track.path}")

        if play_now and was_empty:
            self._current_index.set(0)
            await self._play(track)

    def remove(self, index: int) -> bool:
        """
        Remove the entry at index.

        The current index keeps pointing at the same element when an earlier
        entry is removed, and is clamped when the tail is removed.
        """
        try:
            self._check_index(index)
        except NotFoundError as e:
            logger.warning(f"Cannot remove: {e}")
            return False

        tracks = self.tracks
        current = self.current_index
        removed = tracks[index]
        new_tracks = tracks[:index] + tracks[index + 1:]

        if index < current:
            current -= 1
        current = max(0, min(current, len(new_tracks) - 1))

        self._queue.set(new_tracks)
        self._current_index.set(current)
        logger.info(f"Removed from queue: {removed.name or removed.path}")
        return True

    def reorder(self, from_index: int, to_index: int) -> bool:
        """
        Move the entry at from_index to to_index.

        The current index follows the element it pointed at.
        """
        try:
            self._check_index(from_index)
            self._check_index(to_index)
        except NotFoundError as e:
            logger.warning(f"Cannot reorder: {e}")
            return False
        if from_index == to_index:
            return True

        current = self.current_index
        if from_index == current:
            current = to_index
        elif from_index < current <= to_index:
            current -= 1
        elif to_index <= current < from_index:
            current += 1

        self._queue.set(_move(self.tracks, from_index, to_index))
        self._current_index.set(current)
        logger.debug(f"Queue reorder {from_index} -> {to_index}, current index {current}")
        return True

    def clear(self) -> None:
        """Clear the live queue."""
        self._queue.set(())
        self._current_index.set(0)
        logger.info("Queue cleared")

    def replace(self, tracks: list[Track], current_index: int = 0) -> None:
        """Replace the live queue wholesale."""
        new_tracks = tuple(tracks)
        self._queue.set(new_tracks)
        self._current_index.set(max(0, min(current_index, len(new_tracks) - 1)))

    def select(self, index: int) -> Optional[Track]:
        """Make index the current entry."""
        try:
            self._check_index(index)
        except NotFoundError as e:
            logger.warning(f"Cannot select: {e}")
            return None
        self._current_index.set(index)
        return self.tracks[index]

    def step(self, delta: int) -> Optional[Track]:
        """
        Move the current index by delta, wrapping at both ends.

        Returns:
            New current track, or None if the queue is empty
        """
        tracks = self.tracks
        if not tracks:
            return None
        index = (self.current_index + delta) % len(tracks)
        self._current_index.set(index)
        return tracks[index]

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.tracks):
            raise NotFoundError(f"Queue index {index} out of range (length {len(self.tracks)})")

    # =========================================================================
    # Saved Playlists
    # =========================================================================

    @property
    def playlists(self) -> tuple[SavedPlaylist, ...]:
        return self._playlists.get()

    @property
    def active_playlist_id(self) -> Optional[str]:
        return self._active_id.get()

    def get_playlist(self, playlist_id: str) -> Optional[SavedPlaylist]:
        try:
            return self._find_playlist(playlist_id)
        except NotFoundError:
            return None

    async def create_playlist(self, name: str) -> str:
        """
        Create an empty playlist.

        Returns:
            New playlist id
        """
        playlist = SavedPlaylist(
            id=self._new_playlist_id(),
            name=name.strip(),
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._playlists.set(self.playlists + (playlist,))
        await self._save_playlists()
        logger.info(f"Created playlist '{playlist.name}' ({playlist.id})")
        return playlist.id

    async def rename_playlist(self, playlist_id: str, name: str) -> bool:
        """Rename a playlist in place."""
        try:
            playlist = self._find_playlist(playlist_id)
        except NotFoundError as e:
            logger.warning(f"Cannot rename: {e}")
            return False

        self._replace_playlist(replace(playlist, name=name.strip()))
        await self._save_playlists()
        logger.info(f"Renamed playlist {playlist_id} to '{name.strip()}'")
        return True

    async def delete_playlist(self, playlist_id: str) -> bool:
        """
        Delete a playlist.

        Clears the active playlist pointer if it referenced this playlist.
        The live queue is left untouched.
        """
        try:
            self._find_playlist(playlist_id)
        except NotFoundError as e:
            logger.warning(f"Cannot delete: {e}")
            return False

        self._playlists.set(tuple(p for p in self.playlists if p.id != playlist_id))
        await self._save_playlists()

        if self.active_playlist_id == playlist_id:
            self._active_id.set(None)
            await self._persistence.save(ACTIVE_PLAYLIST_KEY, None)

        logger.info(f"Deleted playlist {playlist_id}")
        return True

    async def add_track_to_playlist(self, playlist_id: str, track: Track) -> bool:
        """
        Append a track to a saved playlist.

        Returns:
            False if the playlist is unknown or already holds this path
        """
        try:
            playlist = self._find_playlist(playlist_id)
        except NotFoundError as e:
            logger.warning(f"Cannot add track: {e}")
            return False

        if playlist.has_track(track.path):
            logger.debug(f"Playlist {playlist_id} already contains {track.path}")
            return False

        self._replace_playlist(replace(playlist, tracks=playlist.tracks + (track,)))
        await self._save_playlists()
        logger.info(f"Added {track.name or track.path} to playlist '{playlist.name}'")
        return True

    async def remove_track_from_playlist(self, playlist_id: str, path: str) -> bool:
        """Remove every entry with this path from a saved playlist."""
        try:
            playlist = self._find_playlist(playlist_id)
            if not playlist.has_track(path):
                raise NotFoundError(f"Track {path} not in playlist {playlist_id}")
        except NotFoundError as e:
            logger.warning(f"Cannot remove track: {e}")
            return False

        tracks = tuple(t for t in playlist.tracks if t.path != path)
        self._replace_playlist(replace(playlist, tracks=tracks))
        await self._save_playlists()
        return True

    async def reorder_playlist_tracks(self, playlist_id: str, from_index: int, to_index: int) -> bool:
        """Move a track within a saved playlist."""
        try:
            playlist = self._find_playlist(playlist_id)
            for i in (from_index, to_index):
                if not 0 <= i < len(playlist.tracks):
                    raise NotFoundError(f"Track index {i} out of range in playlist {playlist_id}")
        except NotFoundError as e:
            logger.warning(f"Cannot reorder playlist tracks: {e}")
            return False

        self._replace_playlist(replace(playlist, tracks=_move(playlist.tracks, from_index, to_index)))
        await self._save_playlists()
        return True

    async def reorder_playlists(self, from_index: int, to_index: int) -> bool:
        """Move a saved playlist within the list of playlists."""
        count = len(self.playlists)
        if not (0 <= from_index < count and 0 <= to_index < count):
            logger.warning(f"Cannot reorder playlists: index out of range ({from_index} -> {to_index})")
            return False

        self._playlists.set(_move(self.playlists, from_index, to_index))
        await self._save_playlists()
        return True

    async def load_playlist_to_queue(self, playlist_id: str, auto_play: bool = True) -> bool:
        """
        Replace the live queue with a saved playlist's tracks.

        Marks the playlist as active and, if auto_play is set, plays its
        first track. Unknown or empty playlists leave everything unchanged.
        """
        try:
            playlist = self._find_playlist(playlist_id)
        except NotFoundError as e:
            logger.warning(f"Cannot load playlist: {e}")
            return False

        if not playlist.tracks:
            logger.info(f"Playlist '{playlist.name}' is empty, queue unchanged")
            return False

        self.replace(list(playlist.tracks), current_index=0)
        self._active_id.set(playlist_id)
        await self._persistence.save(ACTIVE_PLAYLIST_KEY, playlist_id)
        logger.info(f"Loaded playlist '{playlist.name}' ({len(playlist.tracks)} tracks) into queue")

        if auto_play:
            await self._play(playlist.tracks[0])
        return True

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _find_playlist(self, playlist_id: str) -> SavedPlaylist:
        for playlist in self.playlists:
            if playlist.id == playlist_id:
                return playlist
        raise NotFoundError(f"Playlist {playlist_id} not found")

    def _replace_playlist(self, updated: SavedPlaylist) -> None:
        self._playlists.set(tuple(updated if p.id == updated.id else p for p in self.playlists))

    def _new_playlist_id(self) -> str:
        existing = {p.id for p in self.playlists}
        stamp = int(time.time() * 1000)
        while str(stamp) in existing:
            stamp += 1
        return str(stamp)

    async def _save_playlists(self) -> None:
        await self._persistence.save(PLAYLISTS_KEY, [p.to_dict() for p in self.playlists])

    async def _play(self, track: Track) -> None:
        if not self._play_callback:
            logger.warning("No play callback set, cannot start playback")
            return
        await self._play_callback(track.path)
