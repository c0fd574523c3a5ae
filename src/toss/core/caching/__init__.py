# This file makes Python treat the directory 'caching' as a package.
from .thumbnail_cache import ThumbnailCache
from .session_cache import FolderSessionCache, GallerySessionCache

__all__ = [
    "ThumbnailCache",
    "FolderSessionCache",
    "GallerySessionCache",
]
