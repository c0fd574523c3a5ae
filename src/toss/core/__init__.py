# Core logic package

from .models import (
    Classification,
    COLUMN_ORDER,
    OutputMode,
    OutputDirectoryMode,
    ImageFile,
    ImageCollection,
    SourceFolder,
    Project,
    TriagePlan,
    TriageResult,
    FolderStats,
    ProjectStats,
)
from .classification_ledger import ClassificationLedger, LedgerInvariantError
from .triage_session import TriageSession, TriagePhase
from .image_store import ImageStore, ImageStoreError, FolderNotFoundError
from .triage_executor import TriageExecutor, TriageExecutionError
from .project_config import ProjectConfigError

from .caching.thumbnail_cache import ThumbnailCache
from .caching.session_cache import FolderSessionCache, GallerySessionCache

__all__ = [
    # models
    "Classification",
    "COLUMN_ORDER",
    "OutputMode",
    "OutputDirectoryMode",
    "ImageFile",
    "ImageCollection",
    "SourceFolder",
    "Project",
    "TriagePlan",
    "TriageResult",
    "FolderStats",
    "ProjectStats",
    # classification_ledger
    "ClassificationLedger",
    "LedgerInvariantError",
    # triage_session
    "TriageSession",
    "TriagePhase",
    # image_store
    "ImageStore",
    "ImageStoreError",
    "FolderNotFoundError",
    # triage_executor
    "TriageExecutor",
    "TriageExecutionError",
    # project_config
    "ProjectConfigError",
    # caching
    "ThumbnailCache",
    "FolderSessionCache",
    "GallerySessionCache",
]
