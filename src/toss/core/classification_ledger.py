"""
Classification Ledger
Authoritative record of every triage decision in a session: a map of
image id -> bucket plus one ordered id list per bucket.

The map and the three order lists must always agree: an id has a bucket in
the map if and only if it appears exactly once in that bucket's list and in
no other list.
"""

from __future__ import annotations

import copy
import logging
from typing import Dict, Iterable, Iterator, List, Optional

from toss.core.models import COLUMN_ORDER, Classification

logger = logging.getLogger(__name__)


class LedgerInvariantError(AssertionError):
    """Raised when the ledger's map and order lists disagree."""


class OrderedIdList:
    """An ordered list of image ids that never holds the same id twice."""

    def __init__(self, ids: Iterable[str] = ()):
        self._ids: List[str] = []
        for image_id in ids:
            self.append(image_id)

    def __contains__(self, image_id: object) -> bool:
        return image_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, OrderedIdList):
            return self._ids == other._ids
        if isinstance(other, list):
            return self._ids == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"OrderedIdList({self._ids!r})"

    def index(self, image_id: str) -> int:
        return self._ids.index(image_id)

    def append(self, image_id: str) -> None:
        if image_id in self._ids:
            raise LedgerInvariantError(f"Duplicate id in order list: {image_id}")
        self._ids.append(image_id)

    def insert_at(self, index: int, image_id: str) -> int:
        """Insert at index clamped to [0, len]. Returns the actual position."""
        if image_id in self._ids:
            raise LedgerInvariantError(f"Duplicate id in order list: {image_id}")
        position = max(0, min(index, len(self._ids)))
        self._ids.insert(position, image_id)
        return position

    def remove(self, image_id: str) -> bool:
        """Remove image_id if present. Returns whether it was present."""
        try:
            self._ids.remove(image_id)
            return True
        except ValueError:
            return False

    def remove_all(self, image_ids: Iterable[str]) -> int:
        doomed = set(image_ids)
        before = len(self._ids)
        self._ids = [i for i in self._ids if i not in doomed]
        return before - len(self._ids)

    def clear(self) -> None:
        self._ids.clear()

    def to_list(self) -> List[str]:
        return list(self._ids)


class ClassificationLedger:
    """Map of image id -> Classification plus per-bucket ordering.

    Mutated only through assign (forward classification), unassign (undo),
    reclassify and reclassify_batch.
    """

    def __init__(self):
        self._classifications: Dict[str, Classification] = {}
        self._order: Dict[Classification, OrderedIdList] = {
            bucket: OrderedIdList() for bucket in COLUMN_ORDER
        }

    # --- Queries ---
    def __len__(self) -> int:
        return len(self._classifications)

    def __contains__(self, image_id: object) -> bool:
        return image_id in self._classifications

    def is_empty(self) -> bool:
        return not self._classifications

    def classification_of(self, image_id: str) -> Optional[Classification]:
        return self._classifications.get(image_id)

    @property
    def classifications(self) -> Dict[str, Classification]:
        """A copy of the id -> bucket map."""
        return dict(self._classifications)

    def order(self, classification: Classification) -> List[str]:
        return self._order[classification].to_list()

    def columns(self) -> Dict[Classification, List[str]]:
        """All three order lists, keyed in column order."""
        return {bucket: self._order[bucket].to_list() for bucket in COLUMN_ORDER}

    def counts(self) -> Dict[Classification, int]:
        return {bucket: len(self._order[bucket]) for bucket in COLUMN_ORDER}

    def snapshot(self) -> Dict[str, object]:
        """Deep copy of the ledger contents, for comparison and logging."""
        return {
            "classifications": copy.deepcopy(self._classifications),
            "order": {bucket.value: self._order[bucket].to_list() for bucket in COLUMN_ORDER},
        }

    # --- Mutations ---
    def assign(self, image_id: str, classification: Classification) -> None:
        """Forward classification: drop any previous bucket, append to the new one."""
        previous = self._classifications.get(image_id)
        if previous is not None:
            self._order[previous].remove(image_id)
        self._classifications[image_id] = classification
        self._order[classification].append(image_id)
        self._verify(image_id)
        logger.debug(f"Classified {image_id} as {classification.value}")

    def unassign(self, image_id: str) -> Optional[Classification]:
        """Remove image_id from the ledger. Returns its previous bucket, if any."""
        previous = self._classifications.pop(image_id, None)
        if previous is None:
            return None
        self._order[previous].remove(image_id)
        self._verify(image_id)
        logger.debug(f"Unclassified {image_id} (was {previous.value})")
        return previous

    def reclassify(
        self,
        image_id: str,
        classification: Classification,
        target_index: Optional[int] = None,
    ) -> bool:
        """Move one image into a bucket, optionally at a position.

        Returns False (and changes nothing) when the image is already in that bucket.
        """
        if self._classifications.get(image_id) == classification:
            return False
        for bucket in COLUMN_ORDER:
            if self._order[bucket].remove(image_id):
                break
        self._classifications[image_id] = classification
        target = self._order[classification]
        if image_id not in target:
            if target_index is None:
                target.append(image_id)
            else:
                target.insert_at(target_index, image_id)
        self._verify(image_id)
        logger.debug(f"Reclassified {image_id} to {classification.value}")
        return True

    def reclassify_batch(
        self, image_ids: Iterable[str], classification: Classification
    ) -> int:
        """Move a set of images into one bucket atomically.

        All ids are removed from every list first, then appended to the target
        list in iteration order. Returns the number of ids moved.
        """
        ids: List[str] = list(dict.fromkeys(image_ids))
        if not ids:
            return 0
        for bucket in COLUMN_ORDER:
            self._order[bucket].remove_all(ids)
        target = self._order[classification]
        for image_id in ids:
            self._classifications[image_id] = classification
            if image_id not in target:
                target.append(image_id)
        for image_id in ids:
            self._verify(image_id)
        logger.debug(f"Batch reclassified {len(ids)} image(s) to {classification.value}")
        return len(ids)

    def clear(self) -> None:
        self._classifications.clear()
        for bucket in COLUMN_ORDER:
            self._order[bucket].clear()

    # --- Invariants ---
    def _verify(self, image_id: str) -> None:
        expected = self._classifications.get(image_id)
        holders = [b for b in COLUMN_ORDER if image_id in self._order[b]]
        if expected is None and holders:
            raise LedgerInvariantError(
                f"{image_id} is unclassified but listed in {[b.value for b in holders]}"
            )
        if expected is not None and holders != [expected]:
            raise LedgerInvariantError(
                f"{image_id} is {expected.value} but listed in {[b.value for b in holders]}"
            )

    def check_invariants(self) -> None:
        """Verify the whole ledger. Raises LedgerInvariantError on mismatch."""
        seen: Dict[str, Classification] = {}
        for bucket in COLUMN_ORDER:
            for image_id in self._order[bucket]:
                if image_id in seen:
                    raise LedgerInvariantError(
                        f"{image_id} listed in both {seen[image_id].value} and {bucket.value}"
                    )
                seen[image_id] = bucket
        if seen != self._classifications:
            raise LedgerInvariantError("Classification map and order lists disagree")
