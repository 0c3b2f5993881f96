"""
KeyPlay - Playback session controller for a MIDI-to-keyboard engine.

Drives an external engine that turns MIDI files into simulated key presses.
"""

__version__ = "0.1.0"

from .app import KeyPlay
from .config import Config, load_config, ConfigError

__all__ = [
    "__version__",
    "KeyPlay",
    "Config",
    "load_config",
    "ConfigError",
]
