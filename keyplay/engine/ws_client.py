"""
WebSocket engine client.

Handles connection lifecycle, request/response correlation and routing of
pushed engine events to subscribers.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import websockets
from websockets import ClientConnection

from .base import EngineClient, EngineCommandError, EngineUnavailable
from .protocol import Command, EngineCodec, FrameKind, ProtocolError
from .types import (
    MAX_OCTAVE_SHIFT,
    MIN_OCTAVE_SHIFT,
    EngineStatus,
    NoteMode,
    PauseResumeResult,
    Track,
)

logger = logging.getLogger(__name__)

# Connection constants
PING_INTERVAL = 10.0  # seconds
PONG_TIMEOUT = 30.0  # seconds
INITIAL_RECONNECT_DELAY = 1.0  # seconds
MAX_RECONNECT_DELAY = 60.0  # seconds
RECONNECT_BACKOFF_MULTIPLIER = 2.0


class WebSocketEngine(EngineClient):
    """
    Engine client speaking JSON frames over a WebSocket.

    Handles:
    - Connection establishment with automatic reconnection (exponential backoff)
    - Matching responses to pending requests by message id
    - Dispatching pushed events to subscribers in arrival order

    Commands issued while disconnected fail immediately with
    EngineUnavailable; they are not queued or retried.
    """

    def __init__(self, url: str):
        """
        Initialize engine client.

        Args:
            url: Engine WebSocket endpoint, e.g. ws://127.0.0.1:8765
        """
        super().__init__(name=f"WebSocketEngine({url})")
        self.url = url
        self._codec = EngineCodec()

        # Connection state
        self._ws: Optional[ClientConnection] = None
        self._is_connected = False
        self._should_run = False
        self._connected_event = asyncio.Event()

        # Reconnection state
        self._reconnect_delay = INITIAL_RECONNECT_DELAY

        # In-flight requests: message id -> future
        self._pending: Dict[int, asyncio.Future] = {}

        # Tasks
        self._receive_task: Optional[asyncio.Task[None]] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the connection loop."""
        if self._should_run:
            return
        self._should_run = True
        self._receive_task = asyncio.create_task(self._connection_loop())
        logger.info(f"Engine client started ({self.url})")

    async def stop(self) -> None:
        """Close the connection and fail in-flight requests."""
        self._should_run = False
        if self._ws:
            await self._ws.close()
        if self._receive_task:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
            self._receive_task = None
        self._fail_pending("engine client stopped")
        logger.info("Engine client stopped")

    async def wait_connected(self, timeout: float) -> bool:
        """Wait until a connection is established."""
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    # =========================================================================
    # Commands
    # =========================================================================

    async def play(self, path: str) -> None:
        await self._call(Command.PLAY, {"path": path})

    async def pause_resume(self) -> PauseResumeResult:
        result = await self._call(Command.PAUSE_RESUME)
        return PauseResumeResult.from_dict(self._expect_dict(Command.PAUSE_RESUME, result))

    async def stop_playback(self) -> None:
        await self._call(Command.STOP)

    async def seek(self, position: float) -> None:
        await self._call(Command.SEEK, {"position": float(position)})

    async def set_loop(self, enabled: bool) -> None:
        await self._call(Command.SET_LOOP, {"enabled": enabled})

    async def query_status(self) -> EngineStatus:
        result = await self._call(Command.GET_STATUS)
        return EngineStatus.from_dict(self._expect_dict(Command.GET_STATUS, result))

    async def query_focus(self) -> bool:
        return bool(await self._call(Command.IS_FOCUSED))

    async def focus(self) -> None:
        await self._call(Command.FOCUS)

    async def set_note_mode(self, mode: NoteMode) -> None:
        await self._call(Command.SET_NOTE_MODE, {"mode": mode.value})

    async def set_octave_shift(self, shift: int) -> None:
        clamped = max(MIN_OCTAVE_SHIFT, min(MAX_OCTAVE_SHIFT, shift))
        await self._call(Command.SET_OCTAVE_SHIFT, {"shift": clamped})

    async def set_interaction_mode(self, interactive: bool) -> None:
        await self._call(Command.SET_INTERACTION_MODE, {"interactive": interactive})

    async def import_track(self, source_path: str) -> Track:
        result = await self._call(Command.IMPORT_FILE, {"source_path": source_path})
        return Track.from_dict(self._expect_dict(Command.IMPORT_FILE, result))

    async def load_library(self) -> list[Track]:
        result = await self._call(Command.LOAD_FILES)
        if not isinstance(result, list):
            raise EngineCommandError(f"{Command.LOAD_FILES}: expected list, got {result!r}")
        return [Track.from_dict(item) for item in result]

    async def test_all_keys(self) -> None:
        await self._call(Command.TEST_ALL_KEYS)

    async def _call(self, command: str, args: Optional[dict[str, Any]] = None) -> Any:
        """
        Send a request and wait for its response.

        Raises:
            EngineUnavailable: Not connected, send failed, or connection lost
            EngineCommandError: Engine answered with an error
        """
        ws = self._ws
        if not ws or not self._is_connected:
            raise EngineUnavailable(f"Engine not connected ({command})")

        msg_id, frame = self._codec.encode_request(command, args)
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = future

        try:
            await ws.send(frame)
        except Exception as e:
            self._pending.pop(msg_id, None)
            raise EngineUnavailable(f"Failed to send {command}: {e}") from e

        logger.debug(f"-> {command} #{msg_id} {args or ''}")
        try:
            return await future
        finally:
            self._pending.pop(msg_id, None)

    @staticmethod
    def _expect_dict(command: str, result: Any) -> dict:
        if not isinstance(result, dict):
            raise EngineCommandError(f"{command}: expected object, got {result!r}")
        return result

    # -------------------------------------------------------------------------
    # Connection Loop
    # -------------------------------------------------------------------------

    async def _connection_loop(self) -> None:
        """Main connection loop with reconnection logic."""
        while self._should_run:
            try:
                await self._connect_and_run()
            except Exception as e:
                logger.error(f"Engine connection error: {e}")

            if not self._should_run:
                break

            logger.info(f"Reconnecting to engine in {self._reconnect_delay:.1f}s...")
            await asyncio.sleep(self._reconnect_delay)
            self._reconnect_delay = min(
                self._reconnect_delay * RECONNECT_BACKOFF_MULTIPLIER,
                MAX_RECONNECT_DELAY,
            )

    async def _connect_and_run(self) -> None:
        """Connect and handle frames until the connection closes."""
        logger.info(f"Connecting to engine at {self.url}...")

        try:
            async with websockets.connect(
                self.url,
                ping_interval=PING_INTERVAL,
                ping_timeout=PONG_TIMEOUT,
            ) as ws:
                self._ws = ws
                self._is_connected = True
                self._reconnect_delay = INITIAL_RECONNECT_DELAY  # Reset backoff
                self._connected_event.set()
                logger.info("Connected to engine")

                await self._receive_loop()

        except websockets.ConnectionClosed as e:
            logger.warning(f"Engine connection closed: {e}")
        except OSError as e:
            logger.error(f"Engine connection failed: {e}")
        finally:
            self._is_connected = False
            self._connected_event.clear()
            self._ws = None
            self._fail_pending("engine connection lost")

    async def _receive_loop(self) -> None:
        """Receive and dispatch frames."""
        while self._should_run and self._ws:
            data = await self._ws.recv()
            self._handle_message(data)

    def _handle_message(self, data: Any) -> None:
        """Decode a frame and route it to its request or to subscribers."""
        try:
            decoded = self._codec.decode_frame(data)
        except ProtocolError as e:
            logger.warning(f"Dropping malformed engine frame: {e}")
            return
        if not decoded:
            return

        if decoded.kind == FrameKind.EVENT:
            self._emit(decoded.event)
            return

        future = self._pending.get(decoded.msg_id)
        if future is None or future.done():
            logger.debug(f"No pending request for response #{decoded.msg_id}")
            return
        if decoded.error is not None:
            future.set_exception(EngineCommandError(decoded.error))
        else:
            future.set_result(decoded.result)

    def _fail_pending(self, reason: str) -> None:
        """Fail every in-flight request with EngineUnavailable."""
        if not self._pending:
            return
        logger.debug(f"Failing {len(self._pending)} pending engine requests: {reason}")
        for future in self._pending.values():
            if not future.done():
                future.set_exception(EngineUnavailable(reason))
        self._pending.clear()
