"""
Project statistics: how many images each source folder still holds and how
many have landed in its Keep and Maybe output.
"""

import logging
import os

from toss.core.image_store import is_supported_image
from toss.core.models import (
    FolderStats,
    OutputDirectoryMode,
    Project,
    ProjectStats,
    SourceFolder,
)
from toss.core.project_config import (
    ProjectConfigError,
    find_folder,
    folder_display_name,
    load_project,
)

logger = logging.getLogger(__name__)


def count_images_in_dir(directory: str) -> int:
    """Number of supported images directly inside directory. Missing counts as 0."""
    if not os.path.isdir(directory):
        return 0
    try:
        with os.scandir(directory) as entries:
            return sum(
                1 for e in entries if e.is_file() and is_supported_image(e.name)
            )
    except OSError as e:
        logger.warning(f"Could not count images in {directory}: {e}")
        return 0


def _folder_stats(project_path: str, project: Project, folder: SourceFolder) -> FolderStats:
    name = folder_display_name(folder.source_path)
    source_count = count_images_in_dir(folder.source_path)
    if project.output_directory_mode == OutputDirectoryMode.UNIFIED:
        # Unified output is shared, so it is only counted at project level
        return FolderStats(folder.id, name, source_count)
    output_dir = os.path.join(project_path, name)
    return FolderStats(
        folder_id=folder.id,
        folder_name=name,
        source_count=source_count,
        keep_count=count_images_in_dir(os.path.join(output_dir, "keep")),
        maybe_count=count_images_in_dir(os.path.join(output_dir, "maybe")),
    )


def folder_stats(project_path: str, folder_id: str) -> FolderStats:
    """Raises ProjectConfigError for an unknown folder or unreadable project."""
    project = load_project(project_path)
    folder = find_folder(project, folder_id)
    if folder is None:
        raise ProjectConfigError(f"Folder {folder_id} not found in project")
    return _folder_stats(project_path, project, folder)


def project_stats(project_path: str) -> ProjectStats:
    project = load_project(project_path)
    per_folder = tuple(_folder_stats(project_path, project, f) for f in project.folders)
    if project.output_directory_mode == OutputDirectoryMode.UNIFIED:
        total_keep = count_images_in_dir(os.path.join(project_path, "keep"))
        total_maybe = count_images_in_dir(os.path.join(project_path, "maybe"))
    else:
        total_keep = sum(s.keep_count for s in per_folder)
        total_maybe = sum(s.maybe_count for s in per_folder)
    return ProjectStats(total_keep, total_maybe, per_folder)
