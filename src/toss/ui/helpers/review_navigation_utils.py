from __future__ import annotations
from typing import List, Mapping, NamedTuple, Optional, Sequence

from toss.core.models import COLUMN_ORDER, Classification

# Review-screen navigation over the three bucket columns (keep, maybe, yeet,
# left to right). UI-agnostic: operate on ordered id lists and return the id
# that should become focused. ReviewController applies the results.

Columns = Mapping[Classification, Sequence[str]]


class Location(NamedTuple):
    column: int  # index into COLUMN_ORDER
    index: int  # row within that column


def _as_lists(columns: Columns) -> List[Sequence[str]]:
    return [columns.get(bucket, ()) for bucket in COLUMN_ORDER]


def locate(columns: Columns, image_id: Optional[str]) -> Optional[Location]:
    """Find the column and row of image_id, or None if it is in no column."""
    if image_id is None:
        return None
    for col, ids in enumerate(_as_lists(columns)):
        for row, candidate in enumerate(ids):
            if candidate == image_id:
                return Location(col, row)
    return None


def first_in_first_non_empty(columns: Columns) -> Optional[str]:
    for ids in _as_lists(columns):
        if ids:
            return ids[0]
    return None


def move_vertical(
    columns: Columns, focused_id: Optional[str], direction: str
) -> Optional[str]:
    """Next id above/below the focus, clamped to the column ends.

    direction: 'up' or 'down'. Without a focus, the first image of the first
    non-empty column.
    """
    location = locate(columns, focused_id)
    if location is None:
        return first_in_first_non_empty(columns)
    ids = _as_lists(columns)[location.column]
    step = -1 if direction == "up" else 1
    row = max(0, min(location.index + step, len(ids) - 1))
    return ids[row]


def move_horizontal(
    columns: Columns, focused_id: Optional[str], direction: str
) -> Optional[str]:
    """Id in the nearest non-empty column to the left/right, wrapping around.

    Keeps the row when the target column is long enough, else the last row.
    Returns None when every other column is empty.
    """
    lists = _as_lists(columns)
    location = locate(columns, focused_id)
    if location is None:
        return first_in_first_non_empty(columns)
    step = -1 if direction == "left" else 1
    count = len(lists)
    for offset in range(1, count):
        target = lists[(location.column + step * offset) % count]
        if target:
            return target[min(location.index, len(target) - 1)]
    return None


def adjacent_column(
    location: Optional[Location], direction: str
) -> Optional[Classification]:
    """Bucket directly left/right of location. No wrap: None past either edge."""
    if location is None:
        return None
    target = location.column + (-1 if direction == "left" else 1)
    if 0 <= target < len(COLUMN_ORDER):
        return COLUMN_ORDER[target]
    return None
