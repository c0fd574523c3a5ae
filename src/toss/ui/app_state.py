from typing import List, Optional
import logging
import os

from toss.core.caching.session_cache import (
    FolderSession,
    FolderSessionCache,
    GallerySession,
    GallerySessionCache,
)
from toss.core.caching.thumbnail_cache import ThumbnailCache
from toss.core.image_store import ImageStore, image_id_for_path
from toss.core.models import (
    ImageCollection,
    OutputDirectoryMode,
    OutputMode,
    Project,
    ProjectStats,
    SourceFolder,
)
from toss.core.project_config import find_folder, load_project, remove_folder
from toss.core.project_stats import project_stats
from toss.core.triage_executor import TriageExecutor
from toss.core.triage_session import TriageSession
from toss.ui.controllers.triage_commit_controller import CommitTarget

logger = logging.getLogger(__name__)


class AppState:
    """
    Long-lived application state: the open project, the selected folder and
    the session caches. The triage session itself is created per folder entry
    and dropped on exit or commit.
    """

    def __init__(self, thumbnail_cache: Optional[ThumbnailCache] = None):
        self.thumbnail_cache = thumbnail_cache
        self.image_store = ImageStore(thumbnail_cache)
        self.folder_cache = FolderSessionCache()
        self.gallery_cache = GallerySessionCache()
        self.folder_session = FolderSession(self.folder_cache)
        self.gallery_session = GallerySession(self.gallery_cache)

        self.project_path: Optional[str] = None
        self.project: Optional[Project] = None
        self.current_folder: Optional[SourceFolder] = None
        self.triage_session: Optional[TriageSession] = None

    # --- Project ---
    def open_project(self, project_path: str) -> Project:
        """Raises ProjectConfigError when the project cannot be read."""
        project = load_project(project_path)
        self.project_path = project_path
        self.project = project
        self.current_folder = None
        self.end_triage()
        self.folder_cache.clear()
        self.gallery_cache.clear()
        self.gallery_session.set_project(project_path)
        self.folder_session.set_folder(None)
        logger.info(f"Opened project '{project.name}' with {len(project.folders)} folder(s)")
        return project

    def reload_project(self) -> None:
        if self.project_path:
            self.project = load_project(self.project_path)
            if self.current_folder is not None:
                # Keep the selected folder in step with the reloaded config
                self.current_folder = (
                    find_folder(self.project, self.current_folder.id) or self.current_folder
                )

    def close_project(self) -> None:
        self.project_path = None
        self.project = None
        self.current_folder = None
        self.end_triage()
        self.folder_cache.clear()
        self.gallery_cache.clear()
        self.gallery_session.set_project(None)
        self.folder_session.set_folder(None)

    def stats(self) -> Optional[ProjectStats]:
        if self.project_path is None:
            return None
        return project_stats(self.project_path)

    def change_output_directory_mode(
        self, mode: OutputDirectoryMode, executor: TriageExecutor
    ) -> List[str]:
        """Migrate existing output to a new layout. Raises TriageExecutionError."""
        if self.project_path is None:
            return []
        conflicts = executor.migrate_outputs(self.project_path, mode)
        self.reload_project()
        self.gallery_cache.clear()
        return conflicts

    # --- Folder selection ---
    def select_folder(self, folder_id: str) -> Optional[SourceFolder]:
        if self.project is None:
            return None
        folder = find_folder(self.project, folder_id)
        if folder is None:
            logger.warning(f"Folder {folder_id} not found in project")
            return None
        self._set_current_folder(folder)
        return folder

    def remove_folder(self, folder_id: str) -> Optional[SourceFolder]:
        """Unregister a folder from the project. Raises ProjectConfigError."""
        if self.project_path is None:
            return None
        removed = remove_folder(self.project_path, folder_id)
        self.reload_project()
        self.folder_cache.invalidate(folder_id)
        self.gallery_cache.clear()
        if self.current_folder is not None and self.current_folder.id == folder_id:
            self.end_triage()
            self.current_folder = None
            self.folder_session.set_folder(None)
        return removed

    def open_loose_folder(self, folder_path: str) -> SourceFolder:
        """A folder opened without a project. It can be triaged but not committed."""
        normalized = os.path.normpath(folder_path)
        folder = SourceFolder(id=image_id_for_path(normalized), source_path=normalized)
        self._set_current_folder(folder)
        return folder

    def _set_current_folder(self, folder: SourceFolder) -> None:
        if self.current_folder is not None and self.current_folder.id != folder.id:
            self.end_triage()
        self.current_folder = folder
        self.folder_session.set_folder(folder.id)

    # --- Triage session lifecycle ---
    def start_triage(self) -> Optional[TriageSession]:
        """Create a triage session from the current folder's loaded images."""
        if self.current_folder is None:
            return None
        entry = self.folder_cache.get(self.current_folder.id)
        if entry is None or not entry.images:
            logger.debug("start_triage ignored: folder has no loaded images")
            return None
        self.triage_session = TriageSession(
            ImageCollection(list(entry.images)),
            folder_id=self.current_folder.id,
            source_path=self.current_folder.source_path,
        )
        return self.triage_session

    def end_triage(self) -> None:
        if self.triage_session is not None:
            logger.info("Triage session discarded")
        self.triage_session = None

    def commit_target(self) -> Optional[CommitTarget]:
        if (
            self.project_path is None
            or self.project is None
            or self.current_folder is None
            or find_folder(self.project, self.current_folder.id) is None
        ):
            return None
        folder = self.current_folder
        return CommitTarget(
            project_path=self.project_path,
            folder_id=folder.id,
            source_path=folder.source_path,
            output_mode=folder.output_mode or OutputMode.MOVE,
        )

    def after_commit(self) -> None:
        """Drop cached listings that the commit made stale."""
        if self.current_folder is not None:
            self.folder_cache.invalidate(self.current_folder.id)
        self.gallery_cache.clear()
        self.end_triage()
