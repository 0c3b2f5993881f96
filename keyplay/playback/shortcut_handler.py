"""
Global shortcut handler.

Processes shortcut actions pushed by the engine via the SessionController.
"""

import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from keyplay.engine.types import ShortcutAction

if TYPE_CHECKING:
    from .controller import SessionController

logger = logging.getLogger(__name__)

# Mini mode is a UI concern; the app decides what toggling it means
MiniModeCallback = Callable[[bool], Awaitable[None]]


class ShortcutHandler:
    """
    Handles global shortcut actions.

    Translates shortcut actions to controller operations.
    """

    def __init__(
        self,
        controller: "SessionController",
        on_mini_mode: Optional[MiniModeCallback] = None,
    ):
        """
        Initialize shortcut handler.

        Args:
            controller: SessionController instance
            on_mini_mode: Optional callback invoked with the new mini mode flag
        """
        self.controller = controller
        self._on_mini_mode = on_mini_mode

    async def handle_action(self, action: ShortcutAction) -> None:
        """Handle a shortcut action."""
        logger.debug(f"Shortcut: {action.value}")
        try:
            if action == ShortcutAction.PAUSE_RESUME:
                await self.controller.pause_resume()
            elif action == ShortcutAction.STOP:
                await self.controller.stop()
            elif action == ShortcutAction.PREVIOUS:
                await self.controller.play_previous()
            elif action == ShortcutAction.NEXT:
                await self.controller.play_next()
            elif action == ShortcutAction.TOGGLE_LOOP:
                await self.controller.toggle_loop()
            elif action == ShortcutAction.MODE_PREV:
                await self.controller.cycle_note_mode(-1)
            elif action == ShortcutAction.MODE_NEXT:
                await self.controller.cycle_note_mode(1)
            elif action == ShortcutAction.TOGGLE_MINI:
                await self._handle_toggle_mini()
            else:
                logger.warning(f"Unhandled shortcut action: {action}")
        except Exception as e:
            logger.error(f"Error handling shortcut {action.value}: {e}", exc_info=True)

    async def _handle_toggle_mini(self) -> None:
        enabled = self.controller.toggle_mini_mode()
        if self._on_mini_mode:
            await self._on_mini_mode(enabled)
