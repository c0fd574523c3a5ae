"""
Core data types shared by the triage session, the image store and the executor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple


class Classification(str, Enum):
    """The three buckets an image can be triaged into."""

    KEEP = "keep"
    MAYBE = "maybe"
    YEET = "yeet"

    @classmethod
    def from_string(cls, value: str) -> Optional["Classification"]:
        """Parse a bucket name case-insensitively, returning None if unknown."""
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            return None


# Left-to-right column order in the review screen
COLUMN_ORDER: Tuple[Classification, ...] = (
    Classification.KEEP,
    Classification.MAYBE,
    Classification.YEET,
)


class OutputMode(str, Enum):
    """How kept files leave the source folder."""

    MOVE = "move"
    COPY = "copy"

    @classmethod
    def from_string(cls, value: str) -> "OutputMode":
        """Convert string to OutputMode, defaulting to MOVE."""
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            return cls.MOVE


class OutputDirectoryMode(str, Enum):
    """Layout of a project's output directories."""

    PER_FOLDER = "per-folder"  # <project>/<folder name>/keep|maybe
    UNIFIED = "unified"  # <project>/keep|maybe

    @classmethod
    def from_string(cls, value: str) -> "OutputDirectoryMode":
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            return cls.PER_FOLDER


@dataclass(frozen=True)
class ImageFile:
    """A single image in a folder listing. Immutable once created."""

    id: str
    path: str
    name: str
    size: int
    width: Optional[int] = None
    height: Optional[int] = None


class ImageCollection:
    """Ordered, immutable sequence of images for one folder.

    Replaced wholesale when the folder changes; never edited in place.
    """

    def __init__(self, images: Sequence[ImageFile] = ()):
        self._images: Tuple[ImageFile, ...] = tuple(images)
        self._index_by_id: Dict[str, int] = {
            img.id: i for i, img in enumerate(self._images)
        }

    def __len__(self) -> int:
        return len(self._images)

    def __getitem__(self, index: int) -> ImageFile:
        return self._images[index]

    def __iter__(self) -> Iterator[ImageFile]:
        return iter(self._images)

    def __bool__(self) -> bool:
        return bool(self._images)

    def __repr__(self) -> str:
        return f"ImageCollection({len(self._images)} images)"

    def ids(self) -> List[str]:
        return [img.id for img in self._images]

    def by_id(self, image_id: str) -> Optional[ImageFile]:
        idx = self._index_by_id.get(image_id)
        return self._images[idx] if idx is not None else None

    def total_size(self) -> int:
        return sum(img.size for img in self._images)


@dataclass
class SourceFolder:
    """A source folder registered in a project."""

    id: str
    source_path: str
    output_mode: OutputMode = OutputMode.MOVE
    added_at: str = ""


@dataclass
class Project:
    """Project metadata as stored in ``toss-project.json``."""

    id: str
    name: str
    created_at: str
    output_directory_mode: OutputDirectoryMode = OutputDirectoryMode.PER_FOLDER
    folders: List[SourceFolder] = field(default_factory=list)


@dataclass(frozen=True)
class TriagePlan:
    """The three ordered path lists handed to the triage executor."""

    keep_paths: Tuple[str, ...] = ()
    maybe_paths: Tuple[str, ...] = ()
    yeet_paths: Tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return len(self.keep_paths) + len(self.maybe_paths) + len(self.yeet_paths)


@dataclass(frozen=True)
class TriageResult:
    keep: int
    maybe: int
    yeet: int
    conflicts: Tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return self.keep + self.maybe + self.yeet


@dataclass(frozen=True)
class FolderStats:
    """Image counts for one source folder and its Keep/Maybe output."""

    folder_id: str
    folder_name: str
    source_count: int
    keep_count: int = 0
    maybe_count: int = 0


@dataclass(frozen=True)
class ProjectStats:
    total_keep: int = 0
    total_maybe: int = 0
    folder_stats: Tuple[FolderStats, ...] = ()

    def for_folder(self, folder_id: str) -> Optional[FolderStats]:
        for stats in self.folder_stats:
            if stats.folder_id == folder_id:
                return stats
        return None
