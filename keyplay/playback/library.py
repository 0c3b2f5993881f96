"""Engine-side MIDI library listing and import."""

import logging
from typing import Optional

from keyplay.engine.base import EngineClient, EngineError
from keyplay.engine.types import Track
from keyplay.state.store import LIBRARY, ObservableStore

logger = logging.getLogger(__name__)


class LibraryManager:
    """Mirrors the engine's library of MIDI files into the store."""

    def __init__(self, store: ObservableStore, engine: EngineClient):
        self._engine = engine
        self._library = store.create_cell(LIBRARY, ())

    @property
    def tracks(self) -> tuple[Track, ...]:
        return self._library.get()

    async def load(self) -> bool:
        """Replace the library with the engine's listing."""
        try:
            tracks = await self._engine.load_library()
        except EngineError as e:
            logger.error(f"Failed to load library: {e}")
            return False
        self._library.set(tuple(tracks))
        logger.info(f"Library loaded: {len(tracks)} files")
        return True

    async def import_track(self, source_path: str) -> Optional[Track]:
        """
        Import a MIDI file into the engine's library.

        Returns:
            Imported track, or None on failure
        """
        try:
            track = await self._engine.import_track(source_path)
        except EngineError as e:
            logger.error(f"Failed to import {source_path}: {e}")
            return None
        self._library.set(self.tracks + (track,))
        logger.info(f"Imported {track.name or track.path}")
        return track
