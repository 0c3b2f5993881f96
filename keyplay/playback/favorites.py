"""Favorite tracks, keyed by path and persisted on every change."""

import logging

from keyplay.engine.types import Track
from keyplay.state.persistence import FAVORITES_KEY, JsonStore
from keyplay.state.store import FAVORITES, ObservableStore

logger = logging.getLogger(__name__)


class FavoritesManager:
    """Toggle/lookup over the set of favorite tracks."""

    def __init__(self, store: ObservableStore, persistence: JsonStore):
        self._persistence = persistence
        self._favorites = store.create_cell(FAVORITES, ())

    @property
    def tracks(self) -> tuple[Track, ...]:
        return self._favorites.get()

    async def restore(self) -> None:
        """Seed favorites from persistence."""
        data = await self._persistence.load(FAVORITES_KEY)
        tracks: list[Track] = []
        seen: set[str] = set()
        for item in data if isinstance(data, list) else []:
            try:
                track = Track.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid persisted favorite: {e}")
                continue
            if track.path not in seen:
                seen.add(track.path)
                tracks.append(track)
        self._favorites.set(tuple(tracks))
        logger.info(f"Restored {len(tracks)} favorites")

    def is_favorite(self, path: str) -> bool:
        return any(t.path == path for t in self.tracks)

    async def toggle(self, track: Track) -> bool:
        """
        Add the track if absent, remove it if present.

        Returns:
            True if the track is a favorite afterwards
        """
        if self.is_favorite(track.path):
            self._favorites.set(tuple(t for t in self.tracks if t.path != track.path))
            now_favorite = False
        else:
            self._favorites.set(self.tracks + (track,))
            now_favorite = True

        await self._persistence.save(FAVORITES_KEY, [t.to_dict() for t in self.tracks])
        logger.info(f"{'Added' if now_favorite else 'Removed'} favorite: {track.name or track.path}")
        return now_favorite
