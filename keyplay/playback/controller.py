"""
Playback session controller.

Core state machine that mediates between caller intent, the external engine
and the observable store.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional, Set

from keyplay.engine.base import EngineClient, EngineError, Subscription
from keyplay.engine.types import (
    MAX_OCTAVE_SHIFT,
    MIN_OCTAVE_SHIFT,
    EngineEvent,
    NoteMode,
    ProgressEvent,
    ShortcutAction,
    ShortcutEvent,
    TrackEndedEvent,
)
from keyplay.state.store import (
    CURRENT_FILE,
    CURRENT_POSITION,
    IS_DRAGGABLE,
    IS_PAUSED,
    IS_PLAYING,
    IS_SEEKING,
    LOOP_MODE,
    MINI_MODE,
    NOTE_MODE,
    OCTAVE_SHIFT,
    SMART_PAUSE,
    TOTAL_DURATION,
    ObservableStore,
)
from .queue import QueueManager

logger = logging.getLogger(__name__)

# Timings (seconds)
PLAY_GRACE_SECONDS = 0.05  # Let the engine settle before trusting its status
SEEK_DEBOUNCE_SECONDS = 0.05  # Idle window that coalesces a burst of seeks
SEEK_SETTLE_SECONDS = 0.1  # Keep progress events muted after a debounced seek
SEEK_END_SETTLE_SECONDS = 0.05  # Same, after an explicit end of drag
SMART_PAUSE_INTERVAL_SECONDS = 1.0
SMART_PAUSE_COOLDOWN_SECONDS = 2.0

# Handler for shortcut actions pushed by the engine
ShortcutCallback = Callable[[ShortcutAction], Awaitable[None]]


class SessionPhase(Enum):
    """Playback phase derived from session state. Seeking is an overlay flag."""

    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


class SessionController:
    """
    Main playback controller.

    Coordinates:
    - EngineClient: commands and pushed events
    - QueueManager: auto-advance and next/previous
    - ObservableStore: session state cells owned by this controller

    State machine:
        IDLE/PLAYING/PAUSED -> LOADING (on play)
        LOADING -> PLAYING (after the engine accepted the file)
        PLAYING <-> PAUSED (on pause_resume, engine decides)
        PLAYING/PAUSED -> IDLE (on stop, or track end with nothing to advance to)

    Engine failures are logged and leave prior state intact.
    """

    def __init__(
        self,
        store: ObservableStore,
        engine: EngineClient,
        queue: QueueManager,
        *,
        smart_pause: bool = True,
        play_grace: float = PLAY_GRACE_SECONDS,
        seek_debounce: float = SEEK_DEBOUNCE_SECONDS,
        seek_settle: float = SEEK_SETTLE_SECONDS,
        seek_end_settle: float = SEEK_END_SETTLE_SECONDS,
        smart_pause_interval: float = SMART_PAUSE_INTERVAL_SECONDS,
        smart_pause_cooldown: float = SMART_PAUSE_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize controller and create its state cells."""
        self.engine = engine
        self.queue = queue

        # Session state
        self._is_playing = store.create_cell(IS_PLAYING, False)
        self._is_paused = store.create_cell(IS_PAUSED, False)
        self._is_seeking = store.create_cell(IS_SEEKING, False)
        self._loop_mode = store.create_cell(LOOP_MODE, False)
        self._current_file = store.create_cell(CURRENT_FILE, None)
        self._current_position = store.create_cell(CURRENT_POSITION, 0.0)
        self._total_duration = store.create_cell(TOTAL_DURATION, 0.0)

        # Engine settings and UI flags
        self._note_mode = store.create_cell(NOTE_MODE, NoteMode.CLOSEST)
        self._octave_shift = store.create_cell(OCTAVE_SHIFT, 0)
        self._smart_pause = store.create_cell(SMART_PAUSE, smart_pause)
        self._is_draggable = store.create_cell(IS_DRAGGABLE, True)
        self._mini_mode = store.create_cell(MINI_MODE, False)

        # Timings
        self._play_grace = play_grace
        self._seek_debounce = seek_debounce
        self._seek_settle = seek_settle
        self._seek_end_settle = seek_end_settle
        self._smart_pause_interval = smart_pause_interval
        self._smart_pause_cooldown = smart_pause_cooldown
        self._clock = clock

        # Smart pause
        self._cooldown_until: float = 0.0

        # Loading (play requests issued, responses pending)
        self._loading = 0

        # Seek debounce
        self._pending_seek: Optional[float] = None
        self._seek_timer: Optional[asyncio.Task] = None

        # Event handling
        self._shortcut_callback: Optional[ShortcutCallback] = None
        self._subscription: Optional[Subscription] = None

        # Background tasks
        self._smart_pause_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._is_running = False
        self._is_shut_down = False

        self.queue.set_play_callback(self.play)

        logger.info("SessionController initialized")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Subscribe to engine events and start background tasks."""
        if self._is_running:
            return

        self._is_running = True
        self._is_shut_down = False
        self._subscription = self.engine.subscribe(self._on_engine_event)
        self._smart_pause_task = asyncio.create_task(self._smart_pause_loop())

        logger.info("SessionController started")

    async def shutdown(self) -> None:
        """Unsubscribe from engine events and cancel all tasks."""
        self._is_running = False
        self._is_shut_down = True

        if self._subscription:
            self._subscription.cancel()
            self._subscription = None

        tasks = [self._smart_pause_task, self._seek_timer, *self._tasks]
        for task in tasks:
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._smart_pause_task = None
        self._seek_timer = None
        self._tasks.clear()

        logger.info("SessionController stopped")

    def set_shortcut_callback(self, callback: ShortcutCallback) -> None:
        """Set handler for shortcut actions pushed by the engine."""
        self._shortcut_callback = callback

    # =========================================================================
    # Playback Commands
    # =========================================================================

    async def play(self, path: str) -> bool:
        """
        Start playing a file.

        Position and flags are reset before the engine answers so stale
        progress is never shown; the engine's status is applied afterwards.

        Returns:
            True if the engine accepted the file
        """
        logger.info(f"Play: {path}")
        self.extend_smart_pause_cooldown()

        # Optimistic reset
        self._current_position.set(0.0)
        self._is_playing.set(False)
        self._is_paused.set(False)

        self._loading += 1
        try:
            try:
                await self.engine.play(path)
            except EngineError as e:
                logger.error(f"Failed to play {path}: {e}")
                return False

            await asyncio.sleep(self._play_grace)

            # Authoritative refresh
            await self.refresh_status()
            self._is_playing.set(True)
            self._is_paused.set(False)
            self._current_file.set(path)
            return True
        finally:
            self._loading -= 1

    async def pause_resume(self) -> bool:
        """
        Toggle pause. The engine's answer decides the resulting flags.

        Returns:
            True if the engine answered
        """
        try:
            result = await self.engine.pause_resume()
        except EngineError as e:
            logger.error(f"Failed to pause/resume: {e}")
            return False

        self._is_paused.set(result.is_paused)
        self._is_playing.set(result.is_playing)
        self._current_position.set(result.current_position)
        self._total_duration.set(result.total_duration)

        if not result.is_paused:
            await self._focus_target()
            self.extend_smart_pause_cooldown()

        logger.info("Playback paused" if result.is_paused else "Playback resumed")
        return True

    async def stop(self) -> bool:
        """Stop playback and return to idle."""
        self.extend_smart_pause_cooldown()
        try:
            await self.engine.stop_playback()
        except EngineError as e:
            logger.error(f"Failed to stop playback: {e}")
            return False

        self._go_idle()
        logger.info("Playback stopped")
        return True

    async def toggle_loop(self) -> bool:
        """
        Flip loop mode and mirror it to the engine.

        Returns:
            New loop mode (unchanged if the engine call failed)
        """
        previous = self._loop_mode.get()
        enabled = not previous
        self._loop_mode.set(enabled)

        try:
            await self.engine.set_loop(enabled)
        except EngineError as e:
            logger.error(f"Failed to set loop mode: {e}")
            self._loop_mode.set(previous)
            return previous

        self.extend_smart_pause_cooldown()
        logger.info(f"Loop mode: {enabled}")
        return enabled

    async def refresh_status(self) -> bool:
        """Apply the engine's playback status to the store."""
        try:
            status = await self.engine.query_status()
        except EngineError as e:
            logger.error(f"Failed to refresh playback status: {e}")
            return False

        self._is_playing.set(status.is_playing)
        self._is_paused.set(status.is_paused)
        self._loop_mode.set(status.loop_mode)
        self._current_position.set(status.current_position)
        self._total_duration.set(status.total_duration)
        if status.current_file:
            self._current_file.set(status.current_file)
        if status.note_mode is not None:
            self._note_mode.set(status.note_mode)
        self._octave_shift.set(status.octave_shift)
        return True

    # =========================================================================
    # Queue Navigation
    # =========================================================================

    async def play_next(self) -> bool:
        """Play the next queue entry, wrapping to the start."""
        return await self._play_step(1)

    async def play_previous(self) -> bool:
        """Play the previous queue entry, wrapping to the end."""
        return await self._play_step(-1)

    async def play_at(self, index: int) -> bool:
        """Play a specific queue entry."""
        track = self.queue.select(index)
        if not track:
            return False
        return await self.play(track.path)

    async def _play_step(self, delta: int) -> bool:
        track = self.queue.step(delta)
        if not track:
            logger.debug("Queue empty, nothing to play")
            return False

        self._current_position.set(0.0)
        self._total_duration.set(0.0)
        return await self.play(track.path)

    # =========================================================================
    # Seek Control
    # =========================================================================

    async def seek(self, position: float) -> None:
        """
        Request a seek; bursts are coalesced into one engine call.

        Only the latest position is kept. The engine is told after the
        debounce window passes without a newer request.
        """
        duration = self._total_duration.get()
        if duration > 0:
            position = min(position, duration)
        position = max(0.0, float(position))

        self._is_seeking.set(True)
        self._pending_seek = position

        if self._seek_timer:
            self._seek_timer.cancel()
        self._seek_timer = asyncio.create_task(self._debounced_seek())

    async def end_seek(self) -> None:
        """End of drag: flush any pending seek now, then unmute progress."""
        if self._seek_timer:
            self._seek_timer.cancel()
            self._seek_timer = None

        if self._pending_seek is not None:
            await self._flush_seek()

        await asyncio.sleep(self._seek_end_settle)
        self._is_seeking.set(False)

    async def _debounced_seek(self) -> None:
        await asyncio.sleep(self._seek_debounce)
        # From here on the engine call must not be cancelled by newer requests,
        # only by shutdown()
        task = asyncio.current_task()
        if task is self._seek_timer:
            self._seek_timer = None
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        await self._flush_seek()
        if not self._is_shut_down:
            self._spawn(self._settle_seek())

    async def _flush_seek(self) -> bool:
        position = self._pending_seek
        if position is None:
            return False
        self._pending_seek = None

        try:
            await self.engine.seek(position)
        except EngineError as e:
            logger.error(f"Failed to seek to {position:.2f}s: {e}")
            return False

        self._current_position.set(position)
        self.extend_smart_pause_cooldown()
        logger.debug(f"Seeked to {position:.2f}s")
        return True

    async def _settle_seek(self) -> None:
        await asyncio.sleep(self._seek_settle)
        if self._pending_seek is None and self._seek_timer is None:
            self._is_seeking.set(False)

    # =========================================================================
    # Engine Settings and UI Flags
    # =========================================================================

    async def set_note_mode(self, mode: NoteMode) -> bool:
        try:
            await self.engine.set_note_mode(mode)
        except EngineError as e:
            logger.error(f"Failed to set note mode {mode.value}: {e}")
            return False
        self._note_mode.set(mode)
        logger.info(f"Note mode: {mode.value}")
        return True

    async def cycle_note_mode(self, delta: int) -> bool:
        """Switch to the previous (-1) or next (+1) note mode."""
        return await self.set_note_mode(self._note_mode.get().step(delta))

    async def set_octave_shift(self, shift: int) -> bool:
        clamped = max(MIN_OCTAVE_SHIFT, min(MAX_OCTAVE_SHIFT, shift))
        try:
            await self.engine.set_octave_shift(clamped)
        except EngineError as e:
            logger.error(f"Failed to set octave shift {clamped}: {e}")
            return False
        self._octave_shift.set(clamped)
        logger.info(f"Octave shift: {clamped:+d}")
        return True

    async def toggle_draggable(self) -> bool:
        """
        Flip interactive (draggable) mode and mirror it to the engine.

        Returns:
            New mode (unchanged if the engine call failed)
        """
        previous = self._is_draggable.get()
        self._is_draggable.set(not previous)
        try:
            await self.engine.set_interaction_mode(not previous)
        except EngineError as e:
            logger.error(f"Failed to set interaction mode: {e}")
            self._is_draggable.set(previous)
            return previous
        return not previous

    def toggle_smart_pause(self) -> bool:
        self._smart_pause.set(not self._smart_pause.get())
        logger.info(f"Smart pause: {self._smart_pause.get()}")
        return self._smart_pause.get()

    def toggle_mini_mode(self) -> bool:
        self._mini_mode.set(not self._mini_mode.get())
        return self._mini_mode.get()

    async def test_all_keys(self) -> bool:
        try:
            await self.engine.test_all_keys()
        except EngineError as e:
            logger.error(f"Key test failed: {e}")
            return False
        return True

    # =========================================================================
    # Smart Pause
    # =========================================================================

    def extend_smart_pause_cooldown(self, duration: Optional[float] = None) -> None:
        """Suppress automatic pausing for a while after a manual action."""
        if duration is None:
            duration = self._smart_pause_cooldown
        self._cooldown_until = self._clock() + duration

    @property
    def in_smart_pause_cooldown(self) -> bool:
        return self._clock() < self._cooldown_until

    async def check_smart_pause(self) -> bool:
        """
        Pause playback if the target window lost focus.

        Declines while in cooldown, when smart pause is off, or when not
        actively playing.

        Returns:
            True if playback was paused
        """
        if self.in_smart_pause_cooldown:
            return False
        if not (self._smart_pause.get() and self._is_playing.get() and not self._is_paused.get()):
            return False

        try:
            focused = await self.engine.query_focus()
        except EngineError as e:
            logger.error(f"Failed to check target focus: {e}")
            return False

        # A manual action may have happened while the query was in flight
        if focused or self.in_smart_pause_cooldown:
            return False

        logger.info("Target window lost focus, pausing")
        return await self.pause_resume()

    async def _smart_pause_loop(self) -> None:
        """Periodic focus check."""
        while self._is_running:
            try:
                await asyncio.sleep(self._smart_pause_interval)
                await self.check_smart_pause()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Smart pause check error: {e}", exc_info=True)

    async def _focus_target(self) -> None:
        try:
            await self.engine.focus()
            self.extend_smart_pause_cooldown()
        except EngineError as e:
            logger.warning(f"Failed to focus target window: {e}")

    # =========================================================================
    # Engine Events
    # =========================================================================

    def _on_engine_event(self, event: EngineEvent) -> None:
        """
        Subscription callback.

        Progress ticks are applied at once. Events that issue engine commands
        run as tracked tasks so a slow command never holds back later events.
        """
        if isinstance(event, ProgressEvent):
            self.on_progress(event.position)
        else:
            self._spawn(self._dispatch_event(event))

    async def _dispatch_event(self, event: EngineEvent) -> None:
        try:
            await self.handle_event(event)
        except Exception as e:
            logger.error(f"Error handling engine event {event}: {e}", exc_info=True)

    async def handle_event(self, event: EngineEvent) -> None:
        """Dispatch one engine event."""
        if isinstance(event, ProgressEvent):
            self.on_progress(event.position)
        elif isinstance(event, TrackEndedEvent):
            await self.on_track_ended()
        elif isinstance(event, ShortcutEvent):
            if self._shortcut_callback:
                await self._shortcut_callback(event.action)
            else:
                logger.debug(f"No shortcut handler for {event.action.value}")
        else:
            logger.warning(f"Unhandled engine event: {event}")

    def on_progress(self, position: float) -> None:
        """Apply a progress tick unless the user is dragging the scrubber."""
        if self._is_seeking.get():
            return
        self._current_position.set(position)

    async def on_track_ended(self) -> None:
        """
        Handle natural track end.

        Loop with a single-entry queue replays the file; a longer queue
        advances (wrapping); otherwise the session goes idle.
        """
        queue_length = len(self.queue)
        current_file = self._current_file.get()
        logger.info(f"Track ended (queue length {queue_length}, loop {self._loop_mode.get()})")

        if self._loop_mode.get() and queue_length == 1 and current_file:
            await self.play(current_file)
        elif queue_length > 1:
            await self.play_next()
        else:
            self._go_idle()

    # =========================================================================
    # State Access
    # =========================================================================

    @property
    def phase(self) -> SessionPhase:
        if self._loading:
            return SessionPhase.LOADING
        if self._is_playing.get():
            return SessionPhase.PAUSED if self._is_paused.get() else SessionPhase.PLAYING
        return SessionPhase.IDLE

    @property
    def is_seeking(self) -> bool:
        return self._is_seeking.get()

    @property
    def loop_mode(self) -> bool:
        return self._loop_mode.get()

    @property
    def current_file(self) -> Optional[str]:
        return self._current_file.get()

    @property
    def current_position(self) -> float:
        return self._current_position.get()

    @property
    def note_mode(self) -> NoteMode:
        return self._note_mode.get()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _go_idle(self) -> None:
        self._is_playing.set(False)
        self._is_paused.set(False)
        self._current_position.set(0.0)
        self._current_file.set(None)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
