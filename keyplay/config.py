"""
KeyPlay Configuration System.

Priority order (highest to lowest):
1. Command-line arguments
2. Environment variables
3. Configuration file (YAML)
4. Default values
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)


DEFAULT_ENGINE_URL = "ws://127.0.0.1:8765"
DEFAULT_DATA_DIR = "~/.keyplay"

# Valid log levels
VALID_LOG_LEVELS = {"debug", "info", "warning", "error"}

# Environment variable mappings
ENV_MAPPINGS = {
    # Engine
    "KEYPLAY_ENGINE_URL": ("engine", "url"),
    # Storage
    "KEYPLAY_DATA_DIR": ("storage", "data_dir"),
    # Session
    "KEYPLAY_SMART_PAUSE": ("session", "smart_pause"),
    # Logging
    "KEYPLAY_LOG_LEVEL": ("logging", "level"),
}


class ConfigError(Exception):
    """Configuration error."""

    pass


@dataclass
class EngineConfig:
    """Playback engine connection configuration."""

    url: str = DEFAULT_ENGINE_URL


@dataclass
class StorageConfig:
    """Where favorites and playlists are persisted."""

    data_dir: str = DEFAULT_DATA_DIR

    @property
    def path(self) -> Path:
        return Path(self.data_dir).expanduser()


@dataclass
class SessionConfig:
    """Playback session timings, in seconds."""

    smart_pause: bool = True
    smart_pause_interval: float = 1.0
    smart_pause_cooldown: float = 2.0
    seek_debounce: float = 0.05
    seek_settle: float = 0.1
    seek_end_settle: float = 0.05
    play_grace: float = 0.05


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class Config:
    """Complete KeyPlay configuration."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def validate_engine_url(url: str) -> bool:
    """Validate engine WebSocket URL."""
    return url.startswith(("ws://", "wss://")) and len(url.split("://", 1)[1]) > 0


def validate_config(config: Config) -> None:
    """
    Validate configuration.

    Raises:
        ConfigError: If configuration is invalid
    """
    errors = []

    # Engine
    if not validate_engine_url(config.engine.url):
        errors.append(f"Invalid engine URL: {config.engine.url!r} (expected ws:// or wss://)")

    # Storage
    if not config.storage.data_dir:
        errors.append("Data directory is required")

    # Session timings
    session = config.session
    for name in ("smart_pause_interval", "seek_debounce"):
        value = getattr(session, name)
        if not isinstance(value, (int, float)) or value <= 0:
            errors.append(f"Invalid {name}: {value} (must be > 0)")
    for name in ("smart_pause_cooldown", "seek_settle", "seek_end_settle", "play_grace"):
        value = getattr(session, name)
        if not isinstance(value, (int, float)) or value < 0:
            errors.append(f"Invalid {name}: {value} (must be >= 0)")

    # Logging
    if config.logging.level.lower() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid log level: {config.logging.level}. "
            f"Valid values: {sorted(VALID_LOG_LEVELS)}"
        )

    if errors:
        raise ConfigError("Configuration validation failed:\n  - " + "\n  - ".join(errors))


def load_yaml_config(path: Path) -> dict:
    """
    Load configuration from YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    if not path.exists():
        logger.debug(f"Config file not found: {path}")
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config: {e}")
    except IOError as e:
        raise ConfigError(f"Error reading config file: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value using a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


def load_env_config() -> dict:
    """
    Load configuration from environment variables.

    Returns:
        Configuration dictionary with values from environment
    """
    result: dict = {}

    for env_var, path in ENV_MAPPINGS.items():
        value: Any = os.environ.get(env_var)
        if value is None:
            continue
        if env_var == "KEYPLAY_SMART_PAUSE":
            value = _parse_bool(value)
        _set_nested(result, path, value)

    return result


def _deep_merge(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def merge_configs(*configs: dict) -> dict:
    """
    Deep merge multiple configuration dictionaries.
    Later configs override earlier ones.
    """
    result: dict = {}
    for config in configs:
        _deep_merge(result, config)
    return result


def dict_to_config(d: dict) -> Config:
    """Convert a dictionary to Config dataclass."""
    config = Config()

    # Engine
    if "engine" in d:
        config.engine.url = d["engine"].get("url", config.engine.url)

    # Storage
    if "storage" in d:
        config.storage.data_dir = str(d["storage"].get("data_dir", config.storage.data_dir))

    # Session
    if "session" in d:
        s = d["session"]
        smart_pause = s.get("smart_pause", config.session.smart_pause)
        if isinstance(smart_pause, str):
            smart_pause = _parse_bool(smart_pause)
        config.session.smart_pause = bool(smart_pause)
        for name in (
            "smart_pause_interval",
            "smart_pause_cooldown",
            "seek_debounce",
            "seek_settle",
            "seek_end_settle",
            "play_grace",
        ):
            if name in s:
                setattr(config.session, name, s[name])

    # Logging
    if "logging" in d:
        config.logging.level = d["logging"].get("level", config.logging.level)

    return config


def load_config(
    config_path: Optional[Path] = None,
    cli_args: Optional[dict] = None,
) -> Config:
    """
    Load configuration from all sources.

    Priority (highest to lowest):
    1. CLI arguments
    2. Environment variables
    3. Config file
    4. Defaults

    Args:
        config_path: Path to YAML config file
        cli_args: Dictionary of CLI arguments

    Returns:
        Merged Config object

    Raises:
        ConfigError: If configuration is invalid
    """
    configs = []

    # 1. Load from file (lowest priority of explicit configs)
    if config_path:
        file_config = load_yaml_config(config_path)
        if file_config:
            configs.append(file_config)
            logger.debug(f"Loaded config from {config_path}")

    # 2. Load from environment
    env_config = load_env_config()
    if env_config:
        configs.append(env_config)
        logger.debug("Loaded config from environment variables")

    # 3. Load from CLI (highest priority)
    if cli_args:
        configs.append(cli_args)
        logger.debug("Loaded config from CLI arguments")

    merged = merge_configs(*configs) if configs else {}

    # Convert to Config object (fills in defaults)
    config = dict_to_config(merged)

    validate_config(config)

    return config
