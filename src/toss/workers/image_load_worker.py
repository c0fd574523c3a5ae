"""
Image Load Worker
Lists a folder (or a project's output bucket) and then fetches thumbnails one
by one, in a background thread. Results are tagged with the session token the
load was started with; the receiving side commits them into the session cache
only while that token is current.
"""

import logging
import os
from typing import Callable, List, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from toss.core.app_settings import THUMBNAIL_SIZE
from toss.core.image_store import ImageStore, ImageStoreError
from toss.core.models import ImageFile

logger = logging.getLogger(__name__)


class ImageLoadWorker(QObject):
    """Loads one listing plus its thumbnails."""

    # Signals
    images_loaded = pyqtSignal(object, int, list)  # key, token, [ImageFile]
    thumbnail_loaded = pyqtSignal(object, int, str, object)  # key, token, image_id, PIL image
    load_failed = pyqtSignal(object, int, str)  # key, token, message
    finished = pyqtSignal()

    def __init__(
        self,
        image_store: ImageStore,
        key: object,
        token: int,
        list_images: Callable[[], List[ImageFile]],
        thumbnail_size: int = THUMBNAIL_SIZE,
        is_current: Optional[Callable[[int], bool]] = None,
    ):
        super().__init__()
        self.image_store = image_store
        self.key = key
        self.token = token
        self._list_images = list_images
        self.thumbnail_size = thumbnail_size
        self._is_current = is_current
        self._is_running = True

    def stop(self):
        """Discard any further results. In-flight reads still complete."""
        self._is_running = False
        logger.info(f"Image load worker for {self.key!r} stop requested")

    def _still_wanted(self) -> bool:
        if not self._is_running:
            return False
        if self._is_current is not None and not self._is_current(self.token):
            return False
        return True

    def run(self):
        try:
            self._load()
        finally:
            self.finished.emit()

    def _load(self):
        try:
            images = self._list_images()
        except ImageStoreError as e:
            if self._still_wanted():
                self.load_failed.emit(self.key, self.token, str(e))
            return
        except Exception as e:
            logger.error(f"Unexpected error listing {self.key!r}: {e}", exc_info=True)
            if self._still_wanted():
                self.load_failed.emit(self.key, self.token, f"Failed to load images: {e}")
            return

        if not self._still_wanted():
            logger.debug(f"Load for {self.key!r} superseded before listing committed")
            return
        self.images_loaded.emit(self.key, self.token, images)

        for image in images:
            if not self._still_wanted():
                logger.debug(f"Thumbnail loading for {self.key!r} superseded")
                break
            try:
                thumb = self.image_store.get_thumbnail(image.path, self.thumbnail_size)
            except ImageStoreError as e:
                logger.warning(
                    f"Thumbnail failed for {os.path.basename(image.path)}: {e}"
                )
                continue
            except Exception as e:
                logger.error(
                    f"Unexpected thumbnail error for {os.path.basename(image.path)}: {e}",
                    exc_info=True,
                )
                continue
            if self._still_wanted():
                self.thumbnail_loaded.emit(self.key, self.token, image.id, thumb)
