"""Tests for the KeyPlay application orchestrator."""

import asyncio
from pathlib import Path

import pytest

from keyplay.app import KeyPlay
from keyplay.config import Config
from keyplay.engine import ShortcutAction, ShortcutEvent, Track
from keyplay.state import FAVORITES_KEY, JsonStore
from keyplay.state.store import LIBRARY


@pytest.fixture
def config(tmp_path: Path) -> Config:
    cfg = Config()
    cfg.storage.data_dir = str(tmp_path / "data")
    cfg.session.play_grace = 0
    cfg.session.smart_pause = False
    return cfg


@pytest.fixture
async def app(config: Config, engine):
    keyplay = KeyPlay(config, engine=engine)
    yield keyplay
    await keyplay.stop()


class TestStartup:
    """Tests for startup wiring."""

    async def test_start_builds_components(self, app: KeyPlay, engine) -> None:
        await app.start()

        assert app.is_running is True
        assert app.store is not None
        assert app.engine is engine
        assert app.controller is not None
        assert len(engine._listeners) == 1

    async def test_initial_sync(self, app: KeyPlay, engine) -> None:
        engine.load_library.return_value = [Track(path="/lib/a.mid")]

        await app.start()
        await asyncio.sleep(0.01)

        engine.query_status.assert_awaited()
        assert app.store.read(LIBRARY) == (Track(path="/lib/a.mid"),)

    async def test_restores_favorites(self, app: KeyPlay, config: Config) -> None:
        track = Track(path="/midi/fav.mid", name="Fav")
        await JsonStore(config.storage.path).save(FAVORITES_KEY, [track.to_dict()])

        await app.start()

        assert app.favorites.tracks == (track,)

    async def test_shortcuts_reach_controller(self, app: KeyPlay, engine) -> None:
        await app.start()
        app.queue.replace([Track(path="/midi/a.mid"), Track(path="/midi/b.mid")])

        engine.emit(ShortcutEvent(action=ShortcutAction.NEXT))
        await asyncio.sleep(0.01)

        engine.play.assert_awaited_once_with("/midi/b.mid")


class TestShutdown:
    """Tests for shutdown."""

    async def test_stop_unsubscribes(self, app: KeyPlay, engine) -> None:
        await app.start()
        await app.stop()

        assert app.is_running is False
        assert engine._listeners == []

    async def test_stop_before_start(self, app: KeyPlay) -> None:
        await app.stop()
        assert app.is_running is False

    async def test_run_until_shutdown_requested(self, app: KeyPlay, engine) -> None:
        task = asyncio.create_task(app.run())
        await asyncio.sleep(0.01)
        assert app.is_running is True

        app.request_shutdown()
        await asyncio.wait_for(task, timeout=1.0)

        assert app.is_running is False
        assert engine._listeners == []
