"""Shared test fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from keyplay.engine import (
    EngineClient,
    EngineEvent,
    EngineStatus,
    NoteMode,
    PauseResumeResult,
    Track,
)
from keyplay.state import JsonStore, ObservableStore


class FakeEngine(EngineClient):
    """In-memory engine; every command is an AsyncMock on the instance."""

    def __init__(self) -> None:
        super().__init__(name="FakeEngine")
        self.play = AsyncMock()
        self.pause_resume = AsyncMock(
            return_value=PauseResumeResult(
                is_paused=True, is_playing=True, current_position=12.5, total_duration=90.0
            )
        )
        self.stop_playback = AsyncMock()
        self.seek = AsyncMock()
        self.set_loop = AsyncMock()
        self.query_status = AsyncMock(return_value=EngineStatus())
        self.query_focus = AsyncMock(return_value=True)
        self.focus = AsyncMock()
        self.set_note_mode = AsyncMock()
        self.set_octave_shift = AsyncMock()
        self.set_interaction_mode = AsyncMock()
        self.import_track = AsyncMock(side_effect=lambda source: Track(path=source))
        self.load_library = AsyncMock(return_value=[])
        self.test_all_keys = AsyncMock()

    def emit(self, event: EngineEvent) -> None:
        self._emit(event)

    # Overridden per instance above

    async def play(self, path: str) -> None:
        pass

    async def pause_resume(self) -> PauseResumeResult:
        raise NotImplementedError

    async def stop_playback(self) -> None:
        pass

    async def seek(self, position: float) -> None:
        pass

    async def set_loop(self, enabled: bool) -> None:
        pass

    async def query_status(self) -> EngineStatus:
        return EngineStatus()

    async def query_focus(self) -> bool:
        return True

    async def focus(self) -> None:
        pass

    async def set_note_mode(self, mode: NoteMode) -> None:
        pass

    async def set_octave_shift(self, shift: int) -> None:
        pass

    async def set_interaction_mode(self, interactive: bool) -> None:
        pass

    async def import_track(self, source_path: str) -> Track:
        return Track(path=source_path)

    async def load_library(self) -> list[Track]:
        return []

    async def test_all_keys(self) -> None:
        pass


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def store() -> ObservableStore:
    return ObservableStore()


@pytest.fixture
def persistence(tmp_path: Path) -> JsonStore:
    return JsonStore(tmp_path / "data")
