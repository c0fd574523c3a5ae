from PyQt6.QtCore import Qt

from toss.core.classification_ledger import ClassificationLedger
from toss.core.models import Classification
from toss.ui.controllers.review_controller import ReviewController, ReviewSelection

KEEP, MAYBE, YEET = Classification.KEEP, Classification.MAYBE, Classification.YEET

NO_MOD = Qt.KeyboardModifier.NoModifier
SHIFT = Qt.KeyboardModifier.ShiftModifier
ALT = Qt.KeyboardModifier.AltModifier
CTRL = Qt.KeyboardModifier.ControlModifier
META = Qt.KeyboardModifier.MetaModifier


class Ctx:
    def __init__(self, keep=(), maybe=(), yeet=()):
        self.ledger = ClassificationLedger()
        for bucket, ids in ((KEEP, keep), (MAYBE, maybe), (YEET, yeet)):
            for image_id in ids:
                self.ledger.assign(image_id, bucket)
        self.returned = False
        self.selection_changes = 0
        self.batch_calls = []

    # Protocol methods
    def get_review_columns(self):
        return self.ledger.columns()

    def reclassify(self, image_id, classification, target_index=None):
        return self.ledger.reclassify(image_id, classification, target_index)

    def reclassify_batch(self, image_ids, classification):
        self.batch_calls.append((list(image_ids), classification))
        return self.ledger.reclassify_batch(image_ids, classification)

    def return_to_triage(self):
        self.returned = True

    def review_selection_changed(self):
        self.selection_changes += 1


def test_selection_retain():
    selection = ReviewSelection()
    selection.extend("a")
    selection.extend("b")
    assert selection.retain(["a"]) is True
    assert selection.selected_ids == ["a"]
    assert selection.focused_id is None
    assert selection.retain(["a"]) is False


def test_first_arrow_bootstraps_focus():
    ctx = Ctx(keep=["k1", "k2"], yeet=["y1"])
    controller = ReviewController(ctx)
    assert controller.handle_key(Qt.Key.Key_Down, SHIFT) is True
    assert controller.selection.focused_id == "k1"
    assert controller.selection.selected_ids == ["k1"]


def test_bootstrap_uses_first_non_empty_column():
    ctx = Ctx(yeet=["y1"])
    controller = ReviewController(ctx)
    controller.handle_key(Qt.Key.Key_Right, NO_MOD)
    assert controller.selection.focused_id == "y1"


def test_shift_arrow_extends_selection():
    ctx = Ctx(keep=["k1", "k2", "k3"])
    controller = ReviewController(ctx)
    controller.handle_key(Qt.Key.Key_Down)
    controller.handle_key(Qt.Key.Key_Down, SHIFT)
    controller.handle_key(Qt.Key.Key_Down, SHIFT)
    assert controller.selection.selected_ids == ["k1", "k2", "k3"]
    assert controller.selection.focused_id == "k3"
    controller.handle_key(Qt.Key.Key_Up)
    assert controller.selection.selected_ids == ["k2"]


def test_horizontal_replaces_selection():
    ctx = Ctx(keep=["x"], yeet=["y"])
    controller = ReviewController(ctx)
    controller.select_image("x")
    controller.handle_key(Qt.Key.Key_Right)
    assert controller.selection.selected_ids == ["y"]
    assert controller.selection.focused_id == "y"


def test_enter_keeps_backspace_yeets_command_enter_maybes():
    ctx = Ctx(yeet=["a", "b"], keep=["c"])
    controller = ReviewController(ctx)

    controller.select_image("a")
    assert controller.handle_key(Qt.Key.Key_Return) is True
    assert ctx.ledger.classification_of("a") == KEEP
    assert len(controller.selection) == 0
    assert controller.selection.focused_id is None

    controller.select_image("c")
    controller.handle_key(Qt.Key.Key_Backspace)
    assert ctx.ledger.classification_of("c") == YEET

    controller.select_image("b")
    controller.handle_key(Qt.Key.Key_Return, CTRL)
    assert ctx.ledger.classification_of("b") == MAYBE

    controller.select_image("c")
    controller.handle_key(Qt.Key.Key_Backspace, META)
    assert ctx.ledger.classification_of("c") == MAYBE
    ctx.ledger.check_invariants()


def test_shift_enter_is_reserved():
    ctx = Ctx(yeet=["a"])
    controller = ReviewController(ctx)
    controller.select_image("a")
    assert controller.handle_key(Qt.Key.Key_Return, SHIFT) is False
    assert ctx.ledger.classification_of("a") == YEET


def test_enter_without_selection_is_not_consumed():
    ctx = Ctx(keep=["a"])
    controller = ReviewController(ctx)
    assert controller.handle_key(Qt.Key.Key_Return) is False
    assert ctx.batch_calls == []


def test_batch_reclassify_keeps_selection_order():
    ctx = Ctx(keep=["k"], maybe=["c"], yeet=["b"])
    controller = ReviewController(ctx)
    controller.select_image("b")
    controller.select_image("c", add_to_selection=True)
    controller.handle_key(Qt.Key.Key_Return)
    assert ctx.ledger.order(KEEP) == ["k", "b", "c"]
    assert ctx.ledger.order(MAYBE) == []
    assert ctx.ledger.order(YEET) == []
    ctx.ledger.check_invariants()


def test_alt_arrow_moves_selection_one_column():
    ctx = Ctx(keep=["a", "b"])
    controller = ReviewController(ctx)
    controller.select_image("a")
    controller.select_image("b", add_to_selection=True)
    controller.handle_key(Qt.Key.Key_Right, ALT)
    assert ctx.ledger.order(MAYBE) == ["a", "b"]
    assert len(controller.selection) == 0
    ctx.ledger.check_invariants()


def test_alt_arrow_at_edge_is_noop():
    ctx = Ctx(keep=["a"], maybe=["m"])
    controller = ReviewController(ctx)
    controller.select_image("a")
    before = ctx.ledger.snapshot()
    assert controller.handle_key(Qt.Key.Key_Left, ALT) is True
    assert ctx.ledger.snapshot() == before
    assert controller.selection.selected_ids == ["a"]
    assert controller.selection.focused_id == "a"


def test_escape_clears_and_returns_to_triage():
    ctx = Ctx(keep=["a"])
    controller = ReviewController(ctx)
    controller.select_image("a")
    assert controller.handle_key(Qt.Key.Key_Escape) is True
    assert ctx.returned
    assert len(controller.selection) == 0


def test_click_toggles_with_modifier():
    ctx = Ctx(keep=["a", "b"])
    controller = ReviewController(ctx)
    controller.select_image("a")
    controller.select_image("b", add_to_selection=True)
    controller.select_image("a", add_to_selection=True)
    assert controller.selection.selected_ids == ["b"]


def test_drop_onto_other_column_at_index():
    ctx = Ctx(keep=["k1", "k2"], yeet=["y1"])
    controller = ReviewController(ctx)
    assert controller.handle_drop("y1", KEEP, 1) is True
    assert ctx.ledger.order(KEEP) == ["k1", "y1", "k2"]
    ctx.ledger.check_invariants()


def test_drop_onto_same_column_is_ignored():
    ctx = Ctx(keep=["k1", "k2"])
    controller = ReviewController(ctx)
    assert controller.handle_drop("k2", KEEP, 0) is False
    assert ctx.ledger.order(KEEP) == ["k1", "k2"]


def test_purge_stale_drops_missing_ids():
    ctx = Ctx(keep=["a", "b"])
    controller = ReviewController(ctx)
    controller.select_image("a")
    controller.select_image("b", add_to_selection=True)
    ctx.ledger.unassign("b")
    controller.purge_stale()
    assert controller.selection.selected_ids == ["a"]
    assert controller.selection.focused_id is None


def test_alt_arrow_without_selection_does_nothing():
    ctx = Ctx(keep=["a"], maybe=["m"])
    controller = ReviewController(ctx)
    before = ctx.ledger.snapshot()
    assert controller.handle_key(Qt.Key.Key_Right, ALT) is True
    assert ctx.ledger.snapshot() == before
    assert len(controller.selection) == 0
    assert controller.selection.focused_id is None
    assert ctx.selection_changes == 0


def test_selection_after_drop_is_moved_once():
    ctx = Ctx(keep=["a", "b"], maybe=["m"])
    controller = ReviewController(ctx)
    controller.select_image("a")
    controller.select_image("b", add_to_selection=True)

    controller.handle_drop("a", YEET)
    assert ctx.ledger.order(YEET) == ["a"]
    assert controller.selection.selected_ids == ["a", "b"]
    ctx.ledger.check_invariants()

    controller.handle_key(Qt.Key.Key_Return)
    assert ctx.ledger.order(KEEP) == ["a", "b"]
    assert ctx.ledger.order(YEET) == []
    assert ctx.ledger.order(MAYBE) == ["m"]
    assert ctx.batch_calls == [(["a", "b"], KEEP)]
    ctx.ledger.check_invariants()
