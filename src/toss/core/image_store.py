import hashlib
import logging
import os
from typing import List, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from toss.core.app_settings import SUPPORTED_EXTENSIONS, THUMBNAIL_SIZE
from toss.core.caching.thumbnail_cache import ThumbnailCache, make_key
from toss.core.models import Classification, ImageFile, OutputDirectoryMode
from toss.core.project_config import (
    ProjectConfigError,
    folder_display_name,
    load_project,
)

logger = logging.getLogger(__name__)


class ImageStoreError(Exception):
    """Raised when an image or folder cannot be read."""


class FolderNotFoundError(ImageStoreError):
    pass


def image_id_for_path(path: str) -> str:
    """Stable id for an image: the first 16 hex chars of sha256(path)."""
    return hashlib.sha256(path.encode("utf-8")).hexdigest()[:16]


def is_supported_image(filename: str) -> bool:
    return os.path.splitext(filename)[1].lower() in SUPPORTED_EXTENSIONS


def _read_dimensions(path: str):
    try:
        with Image.open(path) as img:
            return img.width, img.height
    except Exception as e:
        logger.debug(f"Could not read dimensions of {os.path.basename(path)}: {e}")
        return None, None


class ImageStore:
    """Folder listings, thumbnails and full images backed by Pillow.

    Thumbnails are cached on disk when a ThumbnailCache is given.
    """

    def __init__(self, thumbnail_cache: Optional[ThumbnailCache] = None):
        self.thumbnail_cache = thumbnail_cache

    def list_images(self, folder_path: str) -> List[ImageFile]:
        """
        Non-recursive scan of folder_path for supported images, sorted by
        lower-case file name.

        Raises:
            FolderNotFoundError: if the folder is missing or unreadable.
        """
        if not os.path.isdir(folder_path):
            raise FolderNotFoundError(f"Folder not found: {folder_path}")
        try:
            entries = list(os.scandir(folder_path))
        except OSError as e:
            raise FolderNotFoundError(f"Cannot read folder {folder_path}: {e}") from e

        images: List[ImageFile] = []
        for entry in entries:
            if not entry.is_file() or not is_supported_image(entry.name):
                continue
            path = os.path.normpath(entry.path)
            try:
                size = entry.stat().st_size
            except OSError as e:
                logger.warning(f"Skipping {entry.name}: {e}")
                continue
            width, height = _read_dimensions(path)
            images.append(
                ImageFile(
                    id=image_id_for_path(path),
                    path=path,
                    name=entry.name,
                    size=size,
                    width=width,
                    height=height,
                )
            )
        images.sort(key=lambda img: img.name.lower())
        logger.info(f"Found {len(images)} images in {folder_path}")
        return images

    def list_output_images(
        self, project_path: str, bucket: Classification
    ) -> List[ImageFile]:
        """Images already written to a project's Keep or Maybe output."""
        if bucket == Classification.YEET:
            return []
        try:
            project = load_project(project_path)
        except ProjectConfigError as e:
            raise ImageStoreError(str(e)) from e

        if project.output_directory_mode == OutputDirectoryMode.UNIFIED:
            dirs = [os.path.join(project_path, bucket.value)]
        else:
            dirs = [
                os.path.join(
                    project_path, folder_display_name(f.source_path), bucket.value
                )
                for f in project.folders
            ]

        images: List[ImageFile] = []
        for directory in dirs:
            if os.path.isdir(directory):
                images.extend(self.list_images(directory))
        return images

    def get_thumbnail(self, path: str, size: int = THUMBNAIL_SIZE) -> Image.Image:
        """
        Returns an RGBA thumbnail no larger than size x size.

        Raises:
            ImageStoreError: if the image cannot be decoded.
        """
        key = make_key(path, size)
        if self.thumbnail_cache is not None:
            cached = self.thumbnail_cache.get(key)
            if cached is not None:
                return cached

        try:
            with Image.open(os.path.normpath(path)) as src:
                img = ImageOps.exif_transpose(src)
                # Fast first pass for large images, then a high-quality one
                if img.width > size * 2 or img.height > size * 2:
                    img.thumbnail((size * 2, size * 2), Image.Resampling.BILINEAR)
                img.thumbnail((size, size), Image.Resampling.LANCZOS)
                thumb = img.convert("RGBA")
        except (UnidentifiedImageError, OSError) as e:
            raise ImageStoreError(
                f"Failed to create thumbnail for '{os.path.basename(path)}': {e}"
            ) from e
        except Exception as e:
            logger.error(f"Unexpected error creating thumbnail for {path}: {e}", exc_info=True)
            raise ImageStoreError(
                f"Failed to create thumbnail for '{os.path.basename(path)}': {e}"
            ) from e

        if self.thumbnail_cache is not None:
            self.thumbnail_cache.set(key, thumb)
        return thumb

    def get_full_image(self, path: str) -> Image.Image:
        try:
            with Image.open(os.path.normpath(path)) as src:
                return ImageOps.exif_transpose(src).convert("RGBA")
        except (UnidentifiedImageError, OSError) as e:
            raise ImageStoreError(
                f"Failed to load image '{os.path.basename(path)}': {e}"
            ) from e
        except Exception as e:
            logger.error(f"Unexpected error loading {path}: {e}", exc_info=True)
            raise ImageStoreError(
                f"Failed to load image '{os.path.basename(path)}': {e}"
            ) from e
