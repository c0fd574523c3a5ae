from __future__ import annotations
import logging
from typing import Optional, Protocol

from PyQt6.QtCore import Qt

from toss.core.models import Classification
from toss.core.triage_session import TriageSession
from toss.ui.controllers.gesture_controller import GestureAction, GestureController
from toss.ui.helpers.key_utils import normalize_key, normalize_modifiers

logger = logging.getLogger(__name__)

_ACTION_TO_CLASSIFICATION = {
    GestureAction.KEEP: Classification.KEEP,
    GestureAction.MAYBE: Classification.MAYBE,
    GestureAction.YEET: Classification.YEET,
}


class TriageContext(Protocol):
    def get_session(self) -> Optional[TriageSession]: ...
    def show_gesture_preview(self, action: GestureAction) -> None: ...
    def clear_gesture_preview(self, action: GestureAction) -> None: ...
    def triage_state_changed(self) -> None: ...
    def enter_review(self) -> None: ...
    def request_exit_triage(self) -> None: ...


class TriageController:
    """Routes triage-phase keys: K/M/Y gestures, Backspace undo, arrows, Enter, Escape."""

    def __init__(self, ctx: TriageContext, commit_on_release: bool = True):
        self.ctx = ctx
        self.gestures = GestureController.for_triage(
            self, commit_on_release=commit_on_release
        )

    # --- GestureContext ---
    def show_gesture_preview(self, action: GestureAction) -> None:
        self.ctx.show_gesture_preview(action)

    def clear_gesture_preview(self, action: GestureAction) -> None:
        self.ctx.clear_gesture_preview(action)

    def commit_gesture(self, action: GestureAction) -> None:
        classification = _ACTION_TO_CLASSIFICATION.get(action)
        session = self.ctx.get_session()
        if classification is None or session is None:
            return
        if session.classify(classification):
            self.ctx.triage_state_changed()

    def undo(self) -> None:
        session = self.ctx.get_session()
        if session is None:
            return
        before = session.cursor.index
        removed = session.unclassify()
        if removed or session.cursor.index != before:
            self.ctx.triage_state_changed()

    # --- Key routing ---
    def handle_key_press(
        self,
        key: int,
        modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier,
        is_auto_repeat: bool = False,
    ) -> bool:
        key = normalize_key(key)
        modifiers = normalize_modifiers(modifiers)
        if self.gestures.key_press(key, modifiers, is_auto_repeat):
            return True

        session = self.ctx.get_session()
        if session is None:
            return False
        if key == Qt.Key.Key_Right:
            session.navigate_next()
            self.ctx.triage_state_changed()
            return True
        if key == Qt.Key.Key_Left:
            session.navigate_prev()
            self.ctx.triage_state_changed()
            return True
        if key in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
            if is_auto_repeat or not session.can_enter_review:
                return True
            self.ctx.enter_review()
            return True
        if key == Qt.Key.Key_Escape:
            self.ctx.request_exit_triage()
            return True
        return False

    def handle_key_release(self, key: int, is_auto_repeat: bool = False) -> bool:
        return self.gestures.key_release(key, is_auto_repeat)

    def window_deactivated(self) -> None:
        self.gestures.window_deactivated()
