"""
KeyPlay Application.

Main orchestrator that wires together all components and manages lifecycle.
"""

import asyncio
import logging
import signal
from typing import Optional

from keyplay.config import Config
from keyplay.engine import EngineClient, WebSocketEngine
from keyplay.playback import (
    FavoritesManager,
    LibraryManager,
    QueueManager,
    SessionController,
    ShortcutHandler,
)
from keyplay.state import JsonStore, ObservableStore

logger = logging.getLogger(__name__)

# How long each wait for the engine's first connection lasts before logging again
ENGINE_CONNECT_WAIT = 10.0  # seconds


class KeyPlay:
    """
    Main KeyPlay application.

    Orchestrates all components:
    - State (ObservableStore, JsonStore)
    - Engine connection (WebSocketEngine)
    - Playback (QueueManager, FavoritesManager, LibraryManager)
    - Session (SessionController, ShortcutHandler)

    Usage:
        config = load_config(...)
        app = KeyPlay(config)
        await app.run()
    """

    def __init__(self, config: Config, engine: Optional[EngineClient] = None):
        """
        Initialize KeyPlay.

        Args:
            config: Validated configuration
            engine: Engine client (defaults to a WebSocketEngine on config.engine.url)
        """
        self._config = config
        self._engine_override = engine
        self._is_running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in start())
        self.store: Optional[ObservableStore] = None
        self.persistence: Optional[JsonStore] = None
        self.engine: Optional[EngineClient] = None
        self.queue: Optional[QueueManager] = None
        self.favorites: Optional[FavoritesManager] = None
        self.library: Optional[LibraryManager] = None
        self.controller: Optional[SessionController] = None
        self.shortcut_handler: Optional[ShortcutHandler] = None

        self._sync_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """
        Start KeyPlay and all components.

        Startup order:
        1. Store and persistence
        2. Engine client
        3. Managers, controller and shortcut handler
        4. Restore persisted favorites and playlists
        5. Engine connection and controller
        6. Initial engine sync (in background, once connected)
        """
        logger.info("Starting KeyPlay...")
        session = self._config.session

        # 1. State
        self.store = ObservableStore()
        self.persistence = JsonStore(self._config.storage.path)

        # 2. Engine
        self.engine = self._engine_override or WebSocketEngine(self._config.engine.url)

        # 3. Managers and controller
        self.queue = QueueManager(self.store, self.persistence)
        self.favorites = FavoritesManager(self.store, self.persistence)
        self.library = LibraryManager(self.store, self.engine)
        self.controller = SessionController(
            self.store,
            self.engine,
            self.queue,
            smart_pause=session.smart_pause,
            play_grace=session.play_grace,
            seek_debounce=session.seek_debounce,
            seek_settle=session.seek_settle,
            seek_end_settle=session.seek_end_settle,
            smart_pause_interval=session.smart_pause_interval,
            smart_pause_cooldown=session.smart_pause_cooldown,
        )
        self.shortcut_handler = ShortcutHandler(self.controller)
        self.controller.set_shortcut_callback(self.shortcut_handler.handle_action)

        # 4. Restore persisted data
        await self.queue.restore()
        await self.favorites.restore()

        # 5. Engine connection and controller
        await self.engine.start()
        await self.controller.start()

        self._is_running = True

        # 6. Initial sync
        self._sync_task = asyncio.create_task(self._sync_with_engine())

        logger.info(f"KeyPlay ready (engine: {self._config.engine.url})")

    async def _sync_with_engine(self) -> None:
        """Pull playback status and library once the engine is reachable."""
        assert self.engine is not None
        assert self.controller is not None
        assert self.library is not None

        try:
            while self._is_running:
                if await self.engine.wait_connected(ENGINE_CONNECT_WAIT):
                    break
                logger.info("Waiting for engine connection...")
            else:
                return

            await self.controller.refresh_status()
            await self.library.load()
            logger.info("Initial engine sync complete")
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Initial engine sync failed: {e}", exc_info=True)

    async def stop(self) -> None:
        """
        Stop KeyPlay and all components.

        Shutdown order (reverse of startup):
        1. Cancel initial sync
        2. Stop controller
        3. Disconnect engine
        """
        if not self._is_running:
            return

        logger.info("Stopping KeyPlay...")
        self._is_running = False

        # 1. Cancel initial sync
        if self._sync_task and not self._sync_task.done():
            self._sync_task.cancel()
            try:
                await self._sync_task
            except asyncio.CancelledError:
                pass
        self._sync_task = None

        # 2. Stop controller
        if self.controller:
            try:
                await self.controller.shutdown()
            except Exception as e:
                logger.warning(f"Error stopping controller: {e}")

        # 3. Disconnect engine
        if self.engine:
            try:
                await self.engine.stop()
            except Exception as e:
                logger.warning(f"Error disconnecting engine: {e}")

        logger.info("KeyPlay stopped")

    def request_shutdown(self) -> None:
        """Ask run() to return."""
        self._shutdown_event.set()

    async def run(self) -> None:
        """
        Run KeyPlay until interrupted.

        Sets up signal handlers for graceful shutdown on SIGINT/SIGTERM.
        """
        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Shutdown signal received")
            self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, handle_signal)

        try:
            await self.start()

            # Wait for shutdown signal
            await self._shutdown_event.wait()

        finally:
            await self.stop()

    @property
    def is_running(self) -> bool:
        """Check if the application is running."""
        return self._is_running
