"""
Triage Session
One session is created when the user starts triaging a folder and discarded
when they leave it or commit. It owns the image collection, the cursor used
for one-at-a-time classification and the classification ledger.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from toss.core.classification_ledger import ClassificationLedger
from toss.core.models import (
    COLUMN_ORDER,
    Classification,
    ImageCollection,
    ImageFile,
    TriagePlan,
)

logger = logging.getLogger(__name__)


class TriagePhase(Enum):
    TRIAGE = "triage"
    REVIEW = "review"


class TriageCursor:
    """Single-pass index into the image collection.

    Normally within [0, count-1]; may sit at count transiently to signal
    that everything has been classified.
    """

    def __init__(self, count: int, index: int = 0):
        self.count = count
        self.index = index

    def is_valid(self) -> bool:
        return 0 <= self.index < self.count

    def is_last(self) -> bool:
        return self.index == self.count - 1

    def advance(self) -> None:
        """Move forward one image; stays put on the last image."""
        if self.index < self.count - 1:
            self.index += 1

    def retreat(self) -> None:
        self.index = max(0, min(self.index, self.count) - 1)

    def reset(self) -> None:
        self.index = 0


class TriageSession:
    """Scoped state for triaging one folder."""

    def __init__(
        self,
        images: Iterable[ImageFile] | ImageCollection,
        folder_id: Optional[str] = None,
        source_path: Optional[str] = None,
    ):
        self.images = (
            images if isinstance(images, ImageCollection) else ImageCollection(list(images))
        )
        self.folder_id = folder_id
        self.source_path = source_path
        self.cursor = TriageCursor(len(self.images))
        self.ledger = ClassificationLedger()
        self.phase = TriagePhase.TRIAGE
        self.last_classification: Optional[Classification] = None
        logger.info(
            f"Triage session started for {source_path or folder_id or '<unnamed>'} "
            f"with {len(self.images)} images"
        )

    # --- Cursor-phase operations ---
    @property
    def current_image(self) -> Optional[ImageFile]:
        if self.cursor.is_valid():
            return self.images[self.cursor.index]
        return None

    def classify(self, classification: Classification) -> bool:
        """Classify the image at the cursor and advance.

        Ignored when there is no current image. On the last image the cursor
        stays, so classifying again overwrites that image's bucket.
        """
        image = self.current_image
        if image is None:
            logger.debug("classify ignored: no image at cursor")
            return False
        self.ledger.assign(image.id, classification)
        self.last_classification = classification
        self.cursor.advance()
        return True

    def unclassify(self) -> bool:
        """Single-level undo applied to the image at the cursor.

        A classified image loses its classification and the cursor steps
        back one. On an unclassified image this is plain navigation. The
        last image is the exception: clearing it leaves the cursor in place,
        and a cursor past the end first drops onto it. Returns True when a
        classification was removed.
        """
        count = self.cursor.count
        if count == 0:
            return False
        index = min(self.cursor.index, count - 1)
        removed = self.ledger.unassign(self.images[index].id) is not None
        self.cursor.index = index
        if not (removed and index == count - 1):
            self.cursor.retreat()
        if not removed:
            logger.debug(f"unclassify on unclassified image at {index}: navigation only")
        return removed

    def navigate_next(self) -> None:
        self.cursor.advance()

    def navigate_prev(self) -> None:
        if self.cursor.index > 0:
            self.cursor.retreat()

    def progress(self) -> Tuple[int, int]:
        total = len(self.images)
        return min(self.cursor.index + 1, total), total

    @property
    def is_complete(self) -> bool:
        return len(self.images) > 0 and len(self.ledger) == len(self.images)

    # --- Review-phase operations ---
    @property
    def can_enter_review(self) -> bool:
        return not self.ledger.is_empty()

    def enter_review(self) -> bool:
        if not self.can_enter_review:
            return False
        self.phase = TriagePhase.REVIEW
        logger.info(f"Entering review with {len(self.ledger)} classified image(s)")
        return True

    def return_to_triage(self) -> None:
        self.phase = TriagePhase.TRIAGE

    def reclassify(
        self,
        image_id: str,
        classification: Classification,
        target_index: Optional[int] = None,
    ) -> bool:
        changed = self.ledger.reclassify(image_id, classification, target_index)
        if changed:
            self.last_classification = classification
        return changed

    def reclassify_batch(
        self, image_ids: Iterable[str], classification: Classification
    ) -> int:
        moved = self.ledger.reclassify_batch(image_ids, classification)
        if moved:
            self.last_classification = classification
        return moved

    def classified_images(self) -> Dict[Classification, List[ImageFile]]:
        """Images per bucket in ledger order."""
        result: Dict[Classification, List[ImageFile]] = {}
        for bucket in COLUMN_ORDER:
            ordered = (self.images.by_id(i) for i in self.ledger.order(bucket))
            result[bucket] = [img for img in ordered if img is not None]
        return result

    def build_plan(self) -> TriagePlan:
        classified = self.classified_images()
        return TriagePlan(
            keep_paths=tuple(img.path for img in classified[Classification.KEEP]),
            maybe_paths=tuple(img.path for img in classified[Classification.MAYBE]),
            yeet_paths=tuple(img.path for img in classified[Classification.YEET]),
        )

    def reset(self) -> None:
        """Forget every decision and start over from the first image."""
        self.ledger.clear()
        self.cursor.reset()
        self.phase = TriagePhase.TRIAGE
        self.last_classification = None
        logger.info("Triage session reset")
