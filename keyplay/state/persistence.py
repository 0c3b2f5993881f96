"""
Durable JSON key-value store.

Each key is stored as `<data_dir>/<key>.json`. Failures are logged and
degrade to "no data" on load and to a failed (but harmless) save.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Persistence keys
FAVORITES_KEY = "favorites"
PLAYLISTS_KEY = "playlists"
ACTIVE_PLAYLIST_KEY = "active-playlist-id"


class PersistenceUnavailable(Exception):
    """Durable store could not be read or written."""

    pass


class JsonStore:
    """
    JSON blob store backed by one file per key.

    Blocking file I/O runs in the default executor so callers on the event
    loop only await it.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    async def load(self, key: str) -> Optional[Any]:
        """
        Load a value.

        Returns:
            Parsed JSON value, or None if the key is absent or unreadable
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._read, key)
        except PersistenceUnavailable as e:
            logger.error(f"Failed to load '{key}': {e}")
            return None

    async def save(self, key: str, value: Any) -> bool:
        """
        Save a value.

        Returns:
            True if written, False if the write failed
        """
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write, key, value)
            logger.debug(f"Saved '{key}'")
            return True
        except PersistenceUnavailable as e:
            logger.error(f"Failed to save '{key}': {e}")
            return False

    def _read(self, key: str) -> Optional[Any]:
        path = self.path_for(key)
        if not path.exists():
            logger.debug(f"No persisted data for '{key}'")
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceUnavailable(f"{path}: {e}") from e

    def _write(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        tmp_name = None
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceUnavailable(f"{path}: {e}") from e
