from __future__ import annotations
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence

from PyQt6.QtCore import Qt

from toss.core.models import Classification
from toss.ui.helpers.review_navigation_utils import (
    adjacent_column,
    locate,
    move_horizontal,
    move_vertical,
)
from toss.ui.helpers.key_utils import normalize_key, normalize_modifiers

logger = logging.getLogger(__name__)

_ENTER_KEYS = (Qt.Key.Key_Return, Qt.Key.Key_Enter)
# Cmd on macOS arrives as ControlModifier; Meta covers the physical Ctrl there
_COMMAND_MODIFIERS = (
    Qt.KeyboardModifier.ControlModifier | Qt.KeyboardModifier.MetaModifier
)


class ReviewContext(Protocol):
    def get_review_columns(self) -> Dict[Classification, List[str]]: ...
    def reclassify(
        self,
        image_id: str,
        classification: Classification,
        target_index: Optional[int] = None,
    ) -> bool: ...
    def reclassify_batch(
        self, image_ids: Sequence[str], classification: Classification
    ) -> int: ...
    def return_to_triage(self) -> None: ...
    def review_selection_changed(self) -> None: ...


class ReviewSelection:
    """Selected ids (insertion ordered) plus the focused id."""

    def __init__(self):
        self._selected: Dict[str, None] = {}
        self.focused_id: Optional[str] = None

    def __contains__(self, image_id: object) -> bool:
        return image_id in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._selected))

    @property
    def selected_ids(self) -> List[str]:
        return list(self._selected)

    def replace(self, image_id: str) -> None:
        self._selected = {image_id: None}
        self.focused_id = image_id

    def extend(self, image_id: str) -> None:
        self._selected[image_id] = None
        self.focused_id = image_id

    def toggle(self, image_id: str) -> None:
        if image_id in self._selected:
            del self._selected[image_id]
        else:
            self._selected[image_id] = None
        self.focused_id = image_id

    def clear(self) -> None:
        self._selected.clear()
        self.focused_id = None

    def retain(self, valid_ids: Iterable[str]) -> bool:
        """Drop ids not in valid_ids. Returns whether anything changed."""
        valid = set(valid_ids)
        before = (len(self._selected), self.focused_id)
        self._selected = {i: None for i in self._selected if i in valid}
        if self.focused_id is not None and self.focused_id not in valid:
            self.focused_id = None
        return before != (len(self._selected), self.focused_id)


class ReviewController:
    """Keyboard and pointer handling for the review screen."""

    def __init__(self, ctx: ReviewContext):
        self.ctx = ctx
        self.selection = ReviewSelection()

    # --- Keyboard ---
    def handle_key(
        self,
        key: int,
        modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier,
    ) -> bool:
        key = normalize_key(key)
        modifiers = normalize_modifiers(modifiers)
        shift = bool(modifiers & Qt.KeyboardModifier.ShiftModifier)
        alt = bool(modifiers & Qt.KeyboardModifier.AltModifier)
        command = bool(modifiers & _COMMAND_MODIFIERS)

        if key in (Qt.Key.Key_Up, Qt.Key.Key_Down):
            self._move_vertical("up" if key == Qt.Key.Key_Up else "down", shift)
            return True
        if key in (Qt.Key.Key_Left, Qt.Key.Key_Right):
            direction = "left" if key == Qt.Key.Key_Left else "right"
            if not alt:
                self._move_horizontal(direction)
            elif len(self.selection) and self._focus_location() is not None:
                self._move_selected(direction)
            else:
                logger.debug("Move-selected ignored: nothing selected")
            return True
        if key == Qt.Key.Key_Escape:
            self.selection.clear()
            self.ctx.return_to_triage()
            return True

        if key not in _ENTER_KEYS and key != Qt.Key.Key_Backspace:
            return False
        if not len(self.selection):
            return False
        if command:
            self.reclassify_selected(Classification.MAYBE)
        elif shift:
            return False
        elif key in _ENTER_KEYS:
            self.reclassify_selected(Classification.KEEP)
        else:
            self.reclassify_selected(Classification.YEET)
        return True

    def _focus_location(self):
        return locate(self.ctx.get_review_columns(), self.selection.focused_id)

    def _move_vertical(self, direction: str, extend: bool) -> None:
        columns = self.ctx.get_review_columns()
        bootstrap = locate(columns, self.selection.focused_id) is None
        target = move_vertical(columns, self.selection.focused_id, direction)
        if target is None:
            return
        if extend and not bootstrap:
            self.selection.extend(target)
        else:
            self.selection.replace(target)
        self.ctx.review_selection_changed()

    def _move_horizontal(self, direction: str) -> None:
        target = move_horizontal(
            self.ctx.get_review_columns(), self.selection.focused_id, direction
        )
        if target is None:
            return
        self.selection.replace(target)
        self.ctx.review_selection_changed()

    def _move_selected(self, direction: str) -> None:
        bucket = adjacent_column(self._focus_location(), direction)
        if bucket is None:
            logger.debug(f"No column to the {direction}; selection not moved")
            return
        self.reclassify_selected(bucket)

    def reclassify_selected(self, classification: Classification) -> int:
        """Move the whole selection into one bucket, then clear selection and focus."""
        ids = self.selection.selected_ids
        if not ids:
            return 0
        moved = self.ctx.reclassify_batch(ids, classification)
        self.selection.clear()
        self.ctx.review_selection_changed()
        return moved

    # --- Pointer ---
    def select_image(self, image_id: str, add_to_selection: bool = False) -> None:
        """Plain click replaces the selection; modifier click toggles image_id."""
        if add_to_selection:
            self.selection.toggle(image_id)
        else:
            self.selection.replace(image_id)
        self.ctx.review_selection_changed()

    def handle_drop(
        self,
        image_id: str,
        target: Classification,
        target_index: Optional[int] = None,
    ) -> bool:
        """Drag-and-drop of one card onto a column. Same-column drops are ignored."""
        changed = self.ctx.reclassify(image_id, target, target_index)
        if changed:
            self.purge_stale()
        return changed

    def purge_stale(self) -> None:
        """Forget selected or focused ids that are no longer in any column."""
        columns = self.ctx.get_review_columns()
        classified = [i for ids in columns.values() for i in ids]
        if self.selection.retain(classified):
            self.ctx.review_selection_changed()
