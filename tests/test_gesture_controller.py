from PyQt6.QtCore import Qt

from toss.ui.controllers.gesture_controller import (
    GestureAction,
    GestureController,
    GestureState,
)

NO_MOD = Qt.KeyboardModifier.NoModifier
SHIFT = Qt.KeyboardModifier.ShiftModifier
CTRL = Qt.KeyboardModifier.ControlModifier


class Ctx:
    def __init__(self):
        self.events = []

    # Protocol methods
    def show_gesture_preview(self, action):
        self.events.append(("preview", action))

    def clear_gesture_preview(self, action):
        self.events.append(("clear", action))

    def commit_gesture(self, action):
        self.events.append(("commit", action))

    def undo(self):
        self.events.append(("undo", None))

    @property
    def commits(self):
        return [a for kind, a in self.events if kind == "commit"]


def test_press_previews_release_commits():
    ctx = Ctx()
    gestures = GestureController.for_triage(ctx)
    assert gestures.key_press(Qt.Key.Key_K, NO_MOD) is True
    assert gestures.state == GestureState.PRESSED
    assert ctx.events == [("preview", GestureAction.KEEP)]
    assert ctx.commits == []

    assert gestures.key_release(Qt.Key.Key_K) is True
    assert gestures.state == GestureState.IDLE
    assert ctx.events[-2:] == [
        ("clear", GestureAction.KEEP),
        ("commit", GestureAction.KEEP),
    ]


def test_auto_repeat_while_held_commits_once():
    ctx = Ctx()
    gestures = GestureController.for_triage(ctx)
    gestures.key_press(Qt.Key.Key_Y, NO_MOD)
    for _ in range(5):
        gestures.key_release(Qt.Key.Key_Y, is_auto_repeat=True)
        gestures.key_press(Qt.Key.Key_Y, NO_MOD, is_auto_repeat=True)
    gestures.key_release(Qt.Key.Key_Y)
    assert ctx.commits == [GestureAction.YEET]


def test_auto_repeat_press_without_initial_press_is_ignored():
    ctx = Ctx()
    gestures = GestureController.for_triage(ctx)
    assert gestures.key_press(Qt.Key.Key_M, NO_MOD, is_auto_repeat=True) is True
    assert gestures.state == GestureState.IDLE
    assert ctx.events == []


def test_other_key_cancels_pending_gesture():
    ctx = Ctx()
    gestures = GestureController.for_triage(ctx)
    gestures.key_press(Qt.Key.Key_K, NO_MOD)
    gestures.key_press(Qt.Key.Key_M, NO_MOD)
    assert gestures.pending_action == GestureAction.MAYBE
    # Releasing the first key no longer commits anything
    assert gestures.key_release(Qt.Key.Key_K) is False
    gestures.key_release(Qt.Key.Key_M)
    assert ctx.commits == [GestureAction.MAYBE]
    assert ("clear", GestureAction.KEEP) in ctx.events


def test_unbound_key_cancels_and_is_not_consumed():
    ctx = Ctx()
    gestures = GestureController.for_triage(ctx)
    gestures.key_press(Qt.Key.Key_K, NO_MOD)
    assert gestures.key_press(Qt.Key.Key_Right, NO_MOD) is False
    assert gestures.state == GestureState.IDLE
    gestures.key_release(Qt.Key.Key_K)
    assert ctx.commits == []


def test_window_deactivated_cancels_without_firing():
    ctx = Ctx()
    gestures = GestureController.for_triage(ctx)
    gestures.key_press(Qt.Key.Key_K, NO_MOD)
    gestures.window_deactivated()
    assert gestures.state == GestureState.IDLE
    assert gestures.key_release(Qt.Key.Key_K) is False
    assert ctx.commits == []
    assert ctx.events[-1] == ("clear", GestureAction.KEEP)


def test_undo_fires_on_press_but_not_on_repeat():
    ctx = Ctx()
    gestures = GestureController.for_triage(ctx)
    assert gestures.key_press(Qt.Key.Key_Backspace, NO_MOD) is True
    assert gestures.key_press(Qt.Key.Key_Backspace, NO_MOD, is_auto_repeat=True) is True
    assert ctx.events == [("undo", None)]


def test_command_modifiers_are_not_gestures():
    ctx = Ctx()
    gestures = GestureController.for_triage(ctx)
    assert gestures.key_press(Qt.Key.Key_K, CTRL) is False
    assert gestures.key_press(Qt.Key.Key_K, SHIFT) is True


def test_commit_on_press_mode():
    ctx = Ctx()
    gestures = GestureController.for_triage(ctx, commit_on_release=False)
    gestures.key_press(Qt.Key.Key_M, NO_MOD)
    assert ctx.commits == [GestureAction.MAYBE]
    assert gestures.state == GestureState.IDLE
    assert gestures.key_release(Qt.Key.Key_M) is False


def test_start_triage_requires_shift_or_command():
    ctx = Ctx()
    gestures = GestureController.for_start_triage(ctx)
    assert gestures.key_press(Qt.Key.Key_Return, NO_MOD) is False
    assert gestures.key_press(Qt.Key.Key_Return, SHIFT) is True
    gestures.key_release(Qt.Key.Key_Return)
    assert ctx.commits == [GestureAction.START_TRIAGE]
    assert gestures.label_for(GestureAction.START_TRIAGE) == "⇧↵"


def test_int_keys_are_normalized():
    ctx = Ctx()
    gestures = GestureController.for_triage(ctx)
    assert gestures.key_press(int(Qt.Key.Key_K.value), NO_MOD.value) is True
    assert gestures.key_release(int(Qt.Key.Key_K.value)) is True
    assert ctx.commits == [GestureAction.KEEP]
