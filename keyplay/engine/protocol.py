"""
Engine wire protocol encoding and decoding.

JSON text frames exchanged with the engine over WebSocket:

    request:  {"id": 7, "command": "seek", "args": {"position": 12.5}}
    response: {"id": 7, "result": null} or {"id": 7, "error": "..."}
    event:    {"event": "playback-progress", "payload": 12.6}
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from .types import (
    EngineEvent,
    ProgressEvent,
    ShortcutAction,
    ShortcutEvent,
    TrackEndedEvent,
)

logger = logging.getLogger(__name__)


class Command:
    """Engine command names."""

    PLAY = "play_midi"
    PAUSE_RESUME = "pause_resume"
    STOP = "stop_playback"
    SEEK = "seek"
    SET_LOOP = "set_loop_mode"
    GET_STATUS = "get_playback_status"
    IS_FOCUSED = "is_target_focused"
    FOCUS = "focus_target_window"
    SET_NOTE_MODE = "set_note_mode"
    SET_OCTAVE_SHIFT = "set_octave_shift"
    SET_INTERACTION_MODE = "set_interaction_mode"
    IMPORT_FILE = "import_midi_file"
    LOAD_FILES = "load_midi_files"
    TEST_ALL_KEYS = "test_all_keys"


class EventName:
    """Engine event names."""

    PROGRESS = "playback-progress"
    ENDED = "playback-ended"
    SHORTCUT = "global-shortcut"


class FrameKind(Enum):
    """Kind of an incoming frame."""

    RESPONSE = "response"
    EVENT = "event"


@dataclass
class DecodedMessage:
    """Decoded incoming frame."""

    kind: FrameKind
    msg_id: int = 0
    result: Any = None
    error: Optional[str] = None
    event: Optional[EngineEvent] = None


class ProtocolError(ValueError):
    """Frame could not be decoded."""

    pass


class EngineCodec:
    """Encodes engine requests and decodes responses and events."""

    def __init__(self) -> None:
        self._msg_counter = 0

    def _next_msg_id(self) -> int:
        self._msg_counter += 1
        return self._msg_counter

    # -------------------------------------------------------------------------
    # Encoding
    # -------------------------------------------------------------------------

    def encode_request(self, command: str, args: Optional[dict[str, Any]] = None) -> Tuple[int, str]:
        """
        Encode a command request.

        Returns:
            (message id, JSON text frame)
        """
        msg_id = self._next_msg_id()
        frame = json.dumps({"id": msg_id, "command": command, "args": args or {}})
        return msg_id, frame

    # -------------------------------------------------------------------------
    # Decoding
    # -------------------------------------------------------------------------

    def decode_frame(self, data: Any) -> Optional[DecodedMessage]:
        """
        Decode an incoming frame.

        Returns:
            DecodedMessage, or None for frames that are valid JSON but carry
            nothing this client handles (unknown events, stray fields)

        Raises:
            ProtocolError: If the frame is not a JSON object
        """
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        try:
            obj = json.loads(data)
        except ValueError as e:
            raise ProtocolError(f"Invalid JSON frame: {e}") from e
        if not isinstance(obj, dict):
            raise ProtocolError(f"Expected JSON object, got {type(obj).__name__}")

        if "event" in obj:
            event = self.decode_event(obj["event"], obj.get("payload"))
            if event is None:
                return None
            return DecodedMessage(kind=FrameKind.EVENT, event=event)

        if "id" in obj:
            try:
                msg_id = int(obj["id"])
            except (TypeError, ValueError) as e:
                raise ProtocolError(f"Invalid message id: {obj['id']!r}") from e
            error = obj.get("error")
            return DecodedMessage(
                kind=FrameKind.RESPONSE,
                msg_id=msg_id,
                result=obj.get("result"),
                error=str(error) if error is not None else None,
            )

        logger.debug(f"Ignoring frame without id or event: {obj}")
        return None

    def decode_event(self, name: str, payload: Any) -> Optional[EngineEvent]:
        """Map an event name and payload to an event object."""
        if name == EventName.PROGRESS:
            try:
                return ProgressEvent(position=float(payload))
            except (TypeError, ValueError):
                logger.warning(f"Invalid progress payload: {payload!r}")
                return None
        if name == EventName.ENDED:
            return TrackEndedEvent()
        if name == EventName.SHORTCUT:
            try:
                return ShortcutEvent(action=ShortcutAction(payload))
            except ValueError:
                logger.warning(f"Unknown shortcut action: {payload!r}")
                return None

        logger.debug(f"Unknown engine event: {name}")
        return None
