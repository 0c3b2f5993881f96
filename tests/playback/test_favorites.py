"""Tests for favorites management."""

import pytest

from keyplay.engine.types import Track
from keyplay.playback.favorites import FavoritesManager
from keyplay.state import FAVORITES_KEY, JsonStore, ObservableStore
from keyplay.state.store import FAVORITES

TRACK_A = Track(path="/midi/a.mid", name="A", duration=61.0)
TRACK_B = Track(path="/midi/b.mid", name="B")


@pytest.fixture
def favorites(store: ObservableStore, persistence: JsonStore) -> FavoritesManager:
    return FavoritesManager(store, persistence)


class TestToggle:
    """Tests for toggling favorites."""

    async def test_toggle_adds(self, favorites: FavoritesManager) -> None:
        assert await favorites.toggle(TRACK_A) is True
        assert favorites.is_favorite(TRACK_A.path) is True
        assert favorites.tracks == (TRACK_A,)

    async def test_toggle_twice_restores_membership(self, favorites: FavoritesManager) -> None:
        await favorites.toggle(TRACK_B)
        before = favorites.tracks

        await favorites.toggle(TRACK_A)
        assert await favorites.toggle(TRACK_A) is False

        assert favorites.tracks == before
        assert favorites.is_favorite(TRACK_A.path) is False

    async def test_lookup_is_by_path(self, favorites: FavoritesManager) -> None:
        await favorites.toggle(TRACK_A)
        renamed = Track(path=TRACK_A.path, name="Renamed")
        assert await favorites.toggle(renamed) is False
        assert favorites.tracks == ()

    async def test_published_in_store(self, favorites: FavoritesManager, store: ObservableStore) -> None:
        await favorites.toggle(TRACK_A)
        assert store.read(FAVORITES) == (TRACK_A,)

    async def test_persisted_on_every_change(
        self, favorites: FavoritesManager, persistence: JsonStore
    ) -> None:
        await favorites.toggle(TRACK_A)
        assert await persistence.load(FAVORITES_KEY) == [TRACK_A.to_dict()]

        await favorites.toggle(TRACK_A)
        assert await persistence.load(FAVORITES_KEY) == []


class TestRestore:
    """Tests for seeding favorites from persistence."""

    async def test_round_trip(self, persistence: JsonStore) -> None:
        first = FavoritesManager(ObservableStore(), persistence)
        await first.toggle(TRACK_A)
        await first.toggle(TRACK_B)

        second = FavoritesManager(ObservableStore(), persistence)
        await second.restore()

        assert second.tracks == first.tracks

    async def test_restore_deduplicates(self, favorites: FavoritesManager, persistence: JsonStore) -> None:
        await persistence.save(FAVORITES_KEY, [TRACK_A.to_dict(), TRACK_A.to_dict()])
        await favorites.restore()
        assert favorites.tracks == (TRACK_A,)

    async def test_restore_skips_invalid(self, favorites: FavoritesManager, persistence: JsonStore) -> None:
        await persistence.save(FAVORITES_KEY, [{"name": "no path"}, TRACK_B.to_dict()])
        await favorites.restore()
        assert favorites.tracks == (TRACK_B,)

    async def test_restore_missing(self, favorites: FavoritesManager) -> None:
        await favorites.restore()
        assert favorites.tracks == ()

    async def test_restore_wrong_shape(self, favorites: FavoritesManager, persistence: JsonStore) -> None:
        await persistence.save(FAVORITES_KEY, {"not": "a list"})
        await favorites.restore()
        assert favorites.tracks == ()
