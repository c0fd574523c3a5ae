"""
Key-hold gestures: press a key to preview an action, release it to commit.

Qt reports a held key as a stream of auto-repeat press/release pairs. Those
are ignored, so only the first physical press and the final physical release
drive the state machine. One gesture can be pending at a time.
"""

from __future__ import annotations
import logging
from enum import Enum
from typing import Callable, Dict, Optional, Protocol, Tuple

from PyQt6.QtCore import Qt

from toss.ui.helpers.key_utils import normalize_key, normalize_modifiers

logger = logging.getLogger(__name__)

_COMMAND_MODIFIERS = (
    Qt.KeyboardModifier.ControlModifier | Qt.KeyboardModifier.MetaModifier
)
_BLOCKING_MODIFIERS = _COMMAND_MODIFIERS | Qt.KeyboardModifier.AltModifier


class GestureAction(Enum):
    KEEP = "keep"
    MAYBE = "maybe"
    YEET = "yeet"
    START_TRIAGE = "start-triage"


class GestureState(Enum):
    IDLE = "idle"
    PRESSED = "pressed"


class GestureContext(Protocol):
    def show_gesture_preview(self, action: GestureAction) -> None: ...
    def clear_gesture_preview(self, action: GestureAction) -> None: ...
    def commit_gesture(self, action: GestureAction) -> None: ...
    def undo(self) -> None: ...


ModifierCheck = Callable[[Qt.KeyboardModifier], bool]


def no_command_modifiers(modifiers: Qt.KeyboardModifier) -> bool:
    """Plain or shifted key; Ctrl/Cmd/Alt combinations belong to other shortcuts."""
    return not (modifiers & _BLOCKING_MODIFIERS)


def shift_or_command(modifiers: Qt.KeyboardModifier) -> bool:
    return bool(
        modifiers & (Qt.KeyboardModifier.ShiftModifier | _COMMAND_MODIFIERS)
    )


# key -> (label, action, modifier check applied on press only)
GestureBindings = Dict[int, Tuple[str, GestureAction, ModifierCheck]]

TRIAGE_BINDINGS: GestureBindings = {
    Qt.Key.Key_K: ("K", GestureAction.KEEP, no_command_modifiers),
    Qt.Key.Key_M: ("M", GestureAction.MAYBE, no_command_modifiers),
    Qt.Key.Key_Y: ("Y", GestureAction.YEET, no_command_modifiers),
}

START_TRIAGE_BINDINGS: GestureBindings = {
    Qt.Key.Key_Return: ("⇧↵", GestureAction.START_TRIAGE, shift_or_command),
    Qt.Key.Key_Enter: ("⇧↵", GestureAction.START_TRIAGE, shift_or_command),
}


class GestureController:
    def __init__(
        self,
        ctx: GestureContext,
        bindings: GestureBindings,
        undo_key: Optional[int] = None,
        commit_on_release: bool = True,
    ):
        self.ctx = ctx
        self.bindings = bindings
        self.undo_key = undo_key
        self.commit_on_release = commit_on_release
        self.state = GestureState.IDLE
        self._pending_key: Optional[int] = None
        self._pending_action: Optional[GestureAction] = None

    @classmethod
    def for_triage(
        cls, ctx: GestureContext, commit_on_release: bool = True
    ) -> "GestureController":
        return cls(
            ctx,
            TRIAGE_BINDINGS,
            undo_key=Qt.Key.Key_Backspace,
            commit_on_release=commit_on_release,
        )

    @classmethod
    def for_start_triage(cls, ctx: GestureContext) -> "GestureController":
        return cls(ctx, START_TRIAGE_BINDINGS)

    @property
    def pending_action(self) -> Optional[GestureAction]:
        return self._pending_action

    def label_for(self, action: GestureAction) -> Optional[str]:
        for label, bound_action, _ in self.bindings.values():
            if bound_action == action:
                return label
        return None

    def key_press(
        self,
        key: int,
        modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier,
        is_auto_repeat: bool = False,
    ) -> bool:
        """Returns True when the key was consumed."""
        key = normalize_key(key)
        modifiers = normalize_modifiers(modifiers)
        if self.state == GestureState.PRESSED:
            if key == self._pending_key:
                return True
            # Another key while one is held: drop the held gesture unfired
            self.cancel()

        if key == self.undo_key and self.undo_key is not None:
            if not is_auto_repeat:
                self.ctx.undo()
            return True

        entry = self.bindings.get(key)
        if entry is None:
            return False
        label, action, modifiers_ok = entry
        if is_auto_repeat:
            return True
        if not modifiers_ok(modifiers):
            return False

        if not self.commit_on_release:
            logger.debug(f"Gesture {label} committed on press")
            self.ctx.commit_gesture(action)
            return True

        self.state = GestureState.PRESSED
        self._pending_key = key
        self._pending_action = action
        self.ctx.show_gesture_preview(action)
        return True

    def key_release(self, key: int, is_auto_repeat: bool = False) -> bool:
        key = normalize_key(key)
        if self.state != GestureState.PRESSED or key != self._pending_key:
            return False
        if is_auto_repeat:
            return True
        action = self._pending_action
        self._reset()
        self.ctx.clear_gesture_preview(action)
        self.ctx.commit_gesture(action)
        return True

    def window_deactivated(self) -> None:
        if self.state == GestureState.PRESSED:
            logger.debug("Window deactivated during gesture; cancelling")
        self.cancel()

    def cancel(self) -> None:
        """Return to idle without firing."""
        if self.state != GestureState.PRESSED:
            return
        action = self._pending_action
        self._reset()
        self.ctx.clear_gesture_preview(action)

    def _reset(self) -> None:
        self.state = GestureState.IDLE
        self._pending_key = None
        self._pending_action = None
