"""Tests for the command-line interface."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from keyplay.cli import (
    EXIT_CONFIG_ERROR,
    EXIT_NETWORK_ERROR,
    EXIT_SUCCESS,
    args_to_dict,
    main,
    parse_args,
)
from keyplay.engine import EngineStatus, EngineUnavailable, NoteMode, Track
from keyplay.playback import SavedPlaylist
from keyplay.state import PLAYLISTS_KEY


@pytest.fixture(autouse=True)
def quiet(monkeypatch: pytest.MonkeyPatch):
    """Keep env out of config and logging setup out of the test runner."""
    for name in ("KEYPLAY_ENGINE_URL", "KEYPLAY_DATA_DIR", "KEYPLAY_SMART_PAUSE", "KEYPLAY_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    with patch("keyplay.cli.setup_logging"):
        yield


def _base_args(tmp_path: Path) -> list[str]:
    return ["--config", str(tmp_path / "none.yaml"), "--data-dir", str(tmp_path / "data")]


def _mock_engine(connected: bool = True, status: EngineStatus = None) -> MagicMock:
    engine = MagicMock()
    engine.start = AsyncMock()
    engine.stop = AsyncMock()
    engine.wait_connected = AsyncMock(return_value=connected)
    engine.query_status = AsyncMock(return_value=status or EngineStatus())
    return engine


class TestArgs:
    """Tests for argument parsing."""

    def test_defaults(self) -> None:
        args = parse_args([])
        assert args.status is False
        assert args.playlists is False
        assert args.json_output is False
        assert args.config == Path("./config.yaml")

    def test_args_to_dict(self) -> None:
        args = parse_args(
            [
                "--engine-url",
                "ws://h:1",
                "--data-dir",
                "/tmp/kp",
                "--log-level",
                "debug",
                "--no-smart-pause",
            ]
        )
        assert args_to_dict(args) == {
            "engine": {"url": "ws://h:1"},
            "storage": {"data_dir": "/tmp/kp"},
            "logging": {"level": "debug"},
            "session": {"smart_pause": False},
        }

    def test_smart_pause_not_forced_on(self) -> None:
        assert args_to_dict(parse_args([])) == {}


class TestConfigErrors:
    """Tests for configuration error handling."""

    def test_invalid_engine_url(self, tmp_path: Path) -> None:
        code = main(_base_args(tmp_path) + ["--engine-url", "http://nope", "--playlists"])
        assert code == EXIT_CONFIG_ERROR


class TestPlaylists:
    """Tests for --playlists."""

    def _save(self, data_dir: Path) -> None:
        playlist = SavedPlaylist(
            id="1700000000000",
            name="Evening",
            tracks=(Track(path="/midi/a.mid", name="A"),),
            created_at="2024-01-01T00:00:00+00:00",
        )
        data_dir.mkdir(parents=True)
        (data_dir / f"{PLAYLISTS_KEY}.json").write_text(
            json.dumps([playlist.to_dict()]), encoding="utf-8"
        )

    def test_json(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        self._save(tmp_path / "data")

        code = main(_base_args(tmp_path) + ["--playlists", "--json"])

        assert code == EXIT_SUCCESS
        output = json.loads(capsys.readouterr().out)
        assert output["count"] == 1
        assert output["playlists"][0]["name"] == "Evening"

    def test_text(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        self._save(tmp_path / "data")

        assert main(_base_args(tmp_path) + ["--playlists"]) == EXIT_SUCCESS

        out = capsys.readouterr().out
        assert "Evening (1 tracks)" in out
        assert "- A" in out

    def test_none_saved(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        assert main(_base_args(tmp_path) + ["--playlists"]) == EXIT_SUCCESS
        assert "No saved playlists." in capsys.readouterr().out


class TestStatus:
    """Tests for --status."""

    def test_json(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        status = EngineStatus(
            is_playing=True,
            current_position=65.0,
            total_duration=120.0,
            current_file="/midi/a.mid",
            note_mode=NoteMode.PENTATONIC,
        )
        engine = _mock_engine(status=status)

        with patch("keyplay.cli.WebSocketEngine", return_value=engine):
            code = main(_base_args(tmp_path) + ["--status", "--json"])

        assert code == EXIT_SUCCESS
        output = json.loads(capsys.readouterr().out)
        assert output["current_file"] == "/midi/a.mid"
        assert output["note_mode"] == "Pentatonic"
        engine.stop.assert_awaited_once()

    def test_text(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        status = EngineStatus(is_playing=True, is_paused=True, current_position=65.0, total_duration=120.0)
        with patch("keyplay.cli.WebSocketEngine", return_value=_mock_engine(status=status)):
            assert main(_base_args(tmp_path) + ["--status"]) == EXIT_SUCCESS

        out = capsys.readouterr().out
        assert "State: paused" in out
        assert "Position: 1:05 / 2:00" in out

    def test_unreachable(self, tmp_path: Path) -> None:
        engine = _mock_engine(connected=False)
        with patch("keyplay.cli.WebSocketEngine", return_value=engine):
            code = main(_base_args(tmp_path) + ["--status", "--timeout", "0.1"])

        assert code == EXIT_NETWORK_ERROR
        engine.query_status.assert_not_awaited()
        engine.stop.assert_awaited_once()

    def test_engine_error(self, tmp_path: Path) -> None:
        engine = _mock_engine()
        engine.query_status.side_effect = EngineUnavailable("connection lost")
        with patch("keyplay.cli.WebSocketEngine", return_value=engine):
            assert main(_base_args(tmp_path) + ["--status"]) == EXIT_NETWORK_ERROR


class TestServe:
    """Tests for the default service mode."""

    def test_runs_app(self, tmp_path: Path) -> None:
        app = MagicMock()
        app.run = AsyncMock()
        with patch("keyplay.cli.KeyPlay", return_value=app) as app_cls:
            code = main(_base_args(tmp_path) + ["--engine-url", "ws://h:1"])

        assert code == EXIT_SUCCESS
        config = app_cls.call_args.args[0]
        assert config.engine.url == "ws://h:1"
        app.run.assert_awaited_once()

    def test_network_error(self, tmp_path: Path) -> None:
        app = MagicMock()
        app.run = AsyncMock(side_effect=OSError("address in use"))
        with patch("keyplay.cli.KeyPlay", return_value=app):
            assert main(_base_args(tmp_path)) == EXIT_NETWORK_ERROR
