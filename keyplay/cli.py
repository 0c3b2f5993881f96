"""
KeyPlay CLI entry point.

Provides command-line interface for running KeyPlay.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from keyplay import __version__
from keyplay.app import KeyPlay
from keyplay.config import Config, ConfigError, load_config
from keyplay.engine import EngineError, WebSocketEngine
from keyplay.playback import SavedPlaylist
from keyplay.state import PLAYLISTS_KEY, JsonStore
from keyplay.state.store import format_time

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_NETWORK_ERROR = 3


def setup_logging(level: str = "info") -> None:
    """Configure logging to stdout."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        force=True,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="keyplay",
        description="Playback session controller for a MIDI-to-keyboard engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  keyplay --config config.yaml
  keyplay --engine-url ws://127.0.0.1:8765 --no-smart-pause
  keyplay --status --json
  keyplay --playlists

Environment Variables:
  KEYPLAY_ENGINE_URL, KEYPLAY_DATA_DIR, KEYPLAY_SMART_PAUSE, KEYPLAY_LOG_LEVEL
""",
    )

    # General
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # One-shot modes
    parser.add_argument(
        "--status",
        action="store_true",
        help="Query the engine's playback status and exit",
    )
    parser.add_argument(
        "--playlists",
        action="store_true",
        help="Print saved playlists and exit",
    )
    parser.add_argument(
        "--timeout",
        "-t",
        type=float,
        default=3.0,
        metavar="SECONDS",
        help="Engine connection timeout (used with --status)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output as JSON (used with --status and --playlists)",
    )

    # Configuration
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("./config.yaml"),
        metavar="PATH",
        help="Path to config file (default: ./config.yaml)",
    )

    # Engine
    engine_group = parser.add_argument_group("Engine")
    engine_group.add_argument(
        "--engine-url",
        metavar="URL",
        help="Engine WebSocket URL (default: ws://127.0.0.1:8765)",
    )

    # Storage
    storage_group = parser.add_argument_group("Storage")
    storage_group.add_argument(
        "--data-dir",
        metavar="PATH",
        help="Directory for favorites and playlists (default: ~/.keyplay)",
    )

    # Session
    session_group = parser.add_argument_group("Session")
    session_group.add_argument(
        "--no-smart-pause",
        action="store_true",
        help="Do not pause when the target window loses focus",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        metavar="LEVEL",
        help="Log level: debug, info, warning, error",
    )

    return parser.parse_args(argv)


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def args_to_dict(args: argparse.Namespace) -> dict:
    """Convert argparse namespace to nested config dict."""
    result: dict = {}

    mappings = {
        "engine_url": ("engine", "url"),
        "data_dir": ("storage", "data_dir"),
        "log_level": ("logging", "level"),
    }

    for arg_name, path in mappings.items():
        value = getattr(args, arg_name, None)
        if value is not None:
            _set_nested(result, path, value)

    # Only set if explicitly disabled
    if getattr(args, "no_smart_pause", False):
        _set_nested(result, ("session", "smart_pause"), False)

    return result


def log_config(config: Config) -> None:
    """Log configuration summary."""
    logger.info(f"Engine: {config.engine.url}")
    logger.info(f"Data directory: {config.storage.path}")
    logger.info(f"Smart pause: {'on' if config.session.smart_pause else 'off'}")


async def run_status(config: Config, timeout: float, json_output: bool) -> int:
    """
    Query the engine's playback status once.

    Returns:
        Exit code
    """
    engine = WebSocketEngine(config.engine.url)
    await engine.start()
    try:
        if not await engine.wait_connected(timeout):
            print(f"Engine not reachable at {config.engine.url}", file=sys.stderr)
            return EXIT_NETWORK_ERROR
        status = await engine.query_status()
    except EngineError as e:
        print(f"Engine error: {e}", file=sys.stderr)
        return EXIT_NETWORK_ERROR
    finally:
        await engine.stop()

    if json_output:
        print(json.dumps(status.to_dict(), indent=2))
        return EXIT_SUCCESS

    if not status.is_playing:
        state = "stopped"
    elif status.is_paused:
        state = "paused"
    else:
        state = "playing"
    print(f"State: {state}")
    if status.current_file:
        print(f"File: {status.current_file}")
    print(
        f"Position: {format_time(status.current_position)} / {format_time(status.total_duration)}"
    )
    print(f"Loop: {'on' if status.loop_mode else 'off'}")
    if status.note_mode:
        print(f"Note mode: {status.note_mode.value}")
    print(f"Octave shift: {status.octave_shift:+d}")
    return EXIT_SUCCESS


async def run_playlists(config: Config, json_output: bool) -> int:
    """
    Print persisted playlists without contacting the engine.

    Returns:
        Exit code
    """
    data = await JsonStore(config.storage.path).load(PLAYLISTS_KEY)
    playlists = []
    for item in data if isinstance(data, list) else []:
        try:
            playlists.append(SavedPlaylist.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping invalid playlist: {e}")

    if json_output:
        output = {
            "playlists": [p.to_dict() for p in playlists],
            "count": len(playlists),
        }
        print(json.dumps(output, indent=2))
        return EXIT_SUCCESS

    if not playlists:
        print("No saved playlists.")
        return EXIT_SUCCESS

    print(f"{len(playlists)} saved playlist(s):\n")
    for p in playlists:
        print(f"  {p.name} ({len(p.tracks)} tracks)")
        for t in p.tracks:
            print(f"    - {t.name or t.path}")
        print()
    return EXIT_SUCCESS


def run_serve(config: Config) -> int:
    """
    Run the session service.

    Returns:
        Exit code
    """
    try:
        app = KeyPlay(config)
        asyncio.run(app.run())
        return EXIT_SUCCESS

    except (ConnectionError, OSError) as e:
        logger.error(f"Network error: {e}")
        return EXIT_NETWORK_ERROR

    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_SUCCESS

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return EXIT_NETWORK_ERROR


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code: 0=success, 1=config error, 3=engine/network error
    """
    args = parse_args(argv)
    one_shot = args.status or args.playlists

    # Setup basic logging first (will be reconfigured after config load)
    setup_logging("warning" if one_shot else "info")
    if not one_shot:
        logger.info(f"KeyPlay v{__version__}")

    try:
        config = load_config(args.config, args_to_dict(args))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    if args.status:
        return asyncio.run(run_status(config, args.timeout, args.json_output))
    if args.playlists:
        return asyncio.run(run_playlists(config, args.json_output))

    setup_logging(config.logging.level)
    log_config(config)
    return run_serve(config)


if __name__ == "__main__":
    sys.exit(main())
