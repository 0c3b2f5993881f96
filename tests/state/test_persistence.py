"""Tests for the JSON persistence gateway."""

from pathlib import Path

from keyplay.state.persistence import FAVORITES_KEY, PLAYLISTS_KEY, JsonStore


class TestJsonStore:
    """Tests for JsonStore."""

    async def test_load_missing_key(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        assert await store.load(FAVORITES_KEY) is None

    async def test_save_and_load(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path / "nested" / "dir")
        value = [{"id": "1", "name": "Evening", "tracks": [], "createdAt": "2024-01-01T00:00:00Z"}]

        assert await store.save(PLAYLISTS_KEY, value) is True
        assert await store.load(PLAYLISTS_KEY) == value
        assert store.path_for(PLAYLISTS_KEY).exists()

    async def test_save_overwrites(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        await store.save("active-playlist-id", "a")
        await store.save("active-playlist-id", None)
        assert await store.load("active-playlist-id") is None

    async def test_no_temp_files_left(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        await store.save(FAVORITES_KEY, [1, 2, 3])
        assert [p.name for p in tmp_path.iterdir()] == ["favorites.json"]

    async def test_corrupt_file_loads_as_none(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        store.path_for(FAVORITES_KEY).write_text("{not json", encoding="utf-8")
        assert await store.load(FAVORITES_KEY) is None

    async def test_unserializable_value_fails_softly(self, tmp_path: Path) -> None:
        store = JsonStore(tmp_path)
        assert await store.save(FAVORITES_KEY, {"bad": object()}) is False
        assert not store.path_for(FAVORITES_KEY).exists()
        assert list(tmp_path.iterdir()) == []

    async def test_unwritable_directory_fails_softly(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        store = JsonStore(blocker / "sub")
        assert await store.save(FAVORITES_KEY, []) is False
