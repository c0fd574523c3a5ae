"""
Folder and gallery session caches.

Each entry holds a loaded image list plus thumbnails that arrive one by one.
Every load is stamped with a session token taken from a monotonically
increasing counter; a result is only written while its token is still the
entry's current token, so a superseded load is a guaranteed no-op.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Generic, Hashable, Iterable, Optional, Tuple, TypeVar

from toss.core.models import Classification, ImageCollection, ImageFile

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)


class LoadStatus(Enum):
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass
class CacheEntry:
    status: LoadStatus
    token: int
    images: ImageCollection = field(default_factory=ImageCollection)
    thumbnails: Dict[str, object] = field(default_factory=dict)
    error: Optional[str] = None

    def thumbnail_for(self, image_id: str) -> Optional[object]:
        return self.thumbnails.get(image_id)


# Folder entries are plain cache entries; the alias keeps call sites readable.
FolderCacheEntry = CacheEntry

_token_counter = itertools.count(1)
_token_lock = threading.Lock()


def next_session_token() -> int:
    """Allocate a session token. Tokens are shared by every cache in the process."""
    with _token_lock:
        return next(_token_counter)


class SessionCache(Generic[K]):
    """Token-guarded cache of image listings keyed by K.

    Only the GUI thread writes; workers hand their results back through
    queued signals and the caller commits with the token it was given.
    """

    def __init__(self):
        self._entries: Dict[K, CacheEntry] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: K) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def begin_load(self, key: K) -> int:
        """Start a (re)load of key. Returns the new token; older tokens go stale."""
        token = next_session_token()
        previous = self._entries.get(key)
        entry = CacheEntry(status=LoadStatus.LOADING, token=token)
        if previous is not None and previous.status == LoadStatus.READY:
            # Keep showing the old list until the reload lands
            entry.images = previous.images
            entry.thumbnails = dict(previous.thumbnails)
        self._entries[key] = entry
        logger.debug(f"Begin load for {key!r} with token {token}")
        return token

    def is_current(self, key: K, token: int) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.token == token

    def commit_images(self, key: K, token: int, images: Iterable[ImageFile]) -> bool:
        if not self.is_current(key, token):
            logger.debug(f"Discarding stale image list for {key!r} (token {token})")
            return False
        entry = self._entries[key]
        entry.images = (
            images if isinstance(images, ImageCollection) else ImageCollection(list(images))
        )
        known = set(entry.images.ids())
        entry.thumbnails = {k: v for k, v in entry.thumbnails.items() if k in known}
        entry.status = LoadStatus.READY
        entry.error = None
        return True

    def commit_thumbnail(
        self, key: K, token: int, image_id: str, thumbnail: object
    ) -> bool:
        if not self.is_current(key, token):
            return False
        entry = self._entries[key]
        if entry.images.by_id(image_id) is None:
            return False
        entry.thumbnails[image_id] = thumbnail
        return True

    def commit_error(self, key: K, token: int, message: str) -> bool:
        if not self.is_current(key, token):
            logger.debug(f"Discarding stale error for {key!r}: {message}")
            return False
        entry = self._entries[key]
        entry.status = LoadStatus.ERROR
        entry.error = message
        entry.images = ImageCollection()
        entry.thumbnails = {}
        logger.warning(f"Load failed for {key!r}: {message}")
        return True

    def invalidate(self, key: K) -> None:
        """Drop key so the next visit reloads; in-flight loads become stale."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


class FolderSessionCache(SessionCache[str]):
    """Image listings keyed by source folder id."""


class GallerySessionCache(SessionCache[Tuple[str, Classification]]):
    """Output gallery listings keyed by (project_path, bucket)."""


def _clamp(index: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(index, count - 1))


class FolderSession:
    """Browse state for one folder tab: the selected image in the listing."""

    def __init__(self, cache: FolderSessionCache):
        self._cache = cache
        self.folder_id: Optional[str] = None
        self.selected_index = 0

    def set_folder(self, folder_id: Optional[str]) -> None:
        if folder_id != self.folder_id:
            self.folder_id = folder_id
            self.selected_index = 0

    @property
    def entry(self) -> Optional[CacheEntry]:
        if self.folder_id is None:
            return None
        return self._cache.get(self.folder_id)

    @property
    def images(self) -> ImageCollection:
        entry = self.entry
        return entry.images if entry is not None else ImageCollection()

    @property
    def is_loading(self) -> bool:
        entry = self.entry
        return entry is not None and entry.status == LoadStatus.LOADING

    @property
    def error(self) -> Optional[str]:
        entry = self.entry
        return entry.error if entry is not None else None

    @property
    def current_image(self) -> Optional[ImageFile]:
        images = self.images
        if 0 <= self.selected_index < len(images):
            return images[self.selected_index]
        return None

    def select(self, index: int) -> None:
        self.selected_index = _clamp(index, len(self.images))

    def navigate_next(self) -> None:
        self.select(self.selected_index + 1)

    def navigate_prev(self) -> None:
        self.select(self.selected_index - 1)

    def total_size(self) -> int:
        return self.images.total_size()


class GallerySession:
    """Keep/Maybe output browsing for one project.

    Each tab remembers its own selected index, so switching tabs returns to
    where the user left off.
    """

    TABS = (Classification.KEEP, Classification.MAYBE)

    def __init__(self, cache: GallerySessionCache, project_path: Optional[str] = None):
        self._cache = cache
        self.project_path = project_path
        self.tab = Classification.KEEP
        self._selected: Dict[Classification, int] = {tab: 0 for tab in self.TABS}

    def set_project(self, project_path: Optional[str]) -> None:
        if project_path != self.project_path:
            self.project_path = project_path
            self._selected = {tab: 0 for tab in self.TABS}

    def set_tab(self, tab: Classification) -> None:
        if tab not in self.TABS:
            logger.debug(f"Ignoring gallery tab {tab}")
            return
        self.tab = tab

    @property
    def key(self) -> Optional[Tuple[str, Classification]]:
        if self.project_path is None:
            return None
        return self.project_path, self.tab

    @property
    def entry(self) -> Optional[CacheEntry]:
        key = self.key
        return self._cache.get(key) if key is not None else None

    @property
    def images(self) -> ImageCollection:
        entry = self.entry
        return entry.images if entry is not None else ImageCollection()

    @property
    def is_loading(self) -> bool:
        entry = self.entry
        return entry is not None and entry.status == LoadStatus.LOADING

    @property
    def error(self) -> Optional[str]:
        entry = self.entry
        return entry.error if entry is not None else None

    @property
    def selected_index(self) -> int:
        return self._selected[self.tab]

    def selected_index_for(self, tab: Classification) -> int:
        return self._selected[tab]

    @property
    def current_image(self) -> Optional[ImageFile]:
        images = self.images
        index = self._selected[self.tab]
        if 0 <= index < len(images):
            return images[index]
        return None

    def select(self, index: int) -> None:
        self._selected[self.tab] = _clamp(index, len(self.images))

    def navigate_next(self) -> None:
        self.select(self._selected[self.tab] + 1)

    def navigate_prev(self) -> None:
        self.select(self._selected[self.tab] - 1)

    def total_size(self) -> int:
        return self.images.total_size()

    def refresh(self) -> None:
        """Forget the current tab's listing so it is loaded again."""
        key = self.key
        if key is not None:
            self._cache.invalidate(key)
