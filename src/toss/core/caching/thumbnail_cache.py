import diskcache
import os
import logging
import time
import unicodedata
from PIL import Image
from typing import Optional, Tuple

from toss.core.app_settings import (
    DEFAULT_THUMBNAIL_CACHE_DIR,
    THUMBNAIL_MIN_FILE_SIZE,
)

logger = logging.getLogger(__name__)

DEFAULT_SIZE_LIMIT = 512 * 1024 * 1024


def make_key(path: str, size: int) -> Tuple[str, int]:
    """Cache key for a thumbnail: (normalized path, edge size)."""
    return unicodedata.normalize("NFC", os.path.normpath(path)), int(size)


class ThumbnailCache:
    """
    Disk-based cache of generated thumbnails (PIL.Image objects), keyed by
    (normalized_path, size).
    """

    def __init__(
        self,
        cache_dir: str = DEFAULT_THUMBNAIL_CACHE_DIR,
        size_limit: int = DEFAULT_SIZE_LIMIT,
    ):
        init_start_time = time.perf_counter()
        os.makedirs(cache_dir, exist_ok=True)
        self._cache_dir = cache_dir
        self._cache = diskcache.Cache(
            directory=cache_dir,
            size_limit=size_limit,
            disk_min_file_size=THUMBNAIL_MIN_FILE_SIZE,
        )
        logger.info(
            f"Thumbnail cache initialized at {cache_dir} with size limit {size_limit / (1024 * 1024):.2f} MB"
        )
        logger.debug(
            f"Initialization complete in {time.perf_counter() - init_start_time:.4f}s"
        )

    def get(self, key: Tuple[str, int]) -> Optional[Image.Image]:
        """
        Retrieves a thumbnail from the cache.

        Returns:
            Optional[Image.Image]: The cached PIL Image, or None if not found or not an Image.
        """
        try:
            cached_item = self._cache.get(key)
            if isinstance(cached_item, Image.Image):
                return cached_item
            elif cached_item is not None:
                logger.warning(
                    f"Invalid item type in Thumbnail cache for key '{key}': {type(cached_item)}"
                )
            return None
        except Exception as e:
            logger.error(
                f"Error reading from Thumbnail cache for key '{key}': {e}",
                exc_info=True,
            )
            return None

    def set(self, key: Tuple[str, int], value: Image.Image) -> None:
        if not isinstance(value, Image.Image):
            logger.error(
                f"Attempted to cache non-Image object for key '{key}'. Type: {type(value)}"
            )
            return
        try:
            self._cache.set(key, value)
        except Exception as e:
            logger.error(
                f"Error writing to Thumbnail cache for key '{key}': {e}", exc_info=True
            )

    def clear(self) -> None:
        """Clears all items from the cache."""
        try:
            count = len(self._cache)
            self._cache.clear()
            logger.info(f"Cleared {count} items from Thumbnail cache.")
        except Exception as e:
            logger.error(f"Error clearing Thumbnail cache: {e}", exc_info=True)

    def close(self) -> None:
        try:
            self._cache.close()
            logger.debug("Thumbnail cache closed.")
        except Exception:
            logger.error("Error closing Thumbnail cache.", exc_info=True)

    def __contains__(self, key: Tuple[str, int]) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)
