"""
Project configuration: reading and writing ``toss-project.json``.

A project is a directory that receives the Keep/Maybe output of one or more
source folders. Only the metadata the triage executor and the output gallery
need lives here.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from toss.core.app_settings import PROJECT_CONFIG_FILENAME
from toss.core.models import OutputDirectoryMode, OutputMode, Project, SourceFolder

logger = logging.getLogger(__name__)

_FORBIDDEN_NAME_CHARS = set('/\\:*?"<>|\0')


class ProjectConfigError(Exception):
    """Raised when a project config cannot be read, written or updated."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def sanitize_name(name: str) -> str:
    """Strip characters that could escape the output directory."""
    return "".join(c for c in name if c not in _FORBIDDEN_NAME_CHARS).strip()


def folder_display_name(source_path: str) -> str:
    return os.path.basename(os.path.normpath(source_path)) or "unnamed"


def config_path(project_path: str) -> str:
    return os.path.join(project_path, PROJECT_CONFIG_FILENAME)


def _project_to_dict(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "created_at": project.created_at,
        "output_directory_mode": project.output_directory_mode.value,
        "folders": [
            {
                "id": f.id,
                "source_path": f.source_path,
                "output_mode": f.output_mode.value,
                "added_at": f.added_at,
            }
            for f in project.folders
        ],
    }


def _project_from_dict(data: Dict[str, Any]) -> Project:
    try:
        return Project(
            id=data["id"],
            name=data["name"],
            created_at=data.get("created_at", ""),
            output_directory_mode=OutputDirectoryMode.from_string(
                data.get("output_directory_mode", OutputDirectoryMode.PER_FOLDER.value)
            ),
            folders=[
                SourceFolder(
                    id=f["id"],
                    source_path=f["source_path"],
                    output_mode=OutputMode.from_string(f.get("output_mode", "move")),
                    added_at=f.get("added_at", ""),
                )
                for f in data.get("folders", [])
            ],
        )
    except (KeyError, TypeError) as e:
        raise ProjectConfigError(f"Malformed project config: {e}") from e


def load_project(project_path: str) -> Project:
    path = config_path(project_path)
    if not os.path.isfile(path):
        raise ProjectConfigError(f"Project config not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ProjectConfigError(f"Failed to read project config {path}: {e}") from e
    return _project_from_dict(data)


def save_project(project_path: str, project: Project) -> None:
    path = config_path(project_path)
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(_project_to_dict(project), f, indent=2)
    except OSError as e:
        raise ProjectConfigError(f"Failed to write project config {path}: {e}") from e
    logger.debug(f"Saved project config: {path}")


def create_project(
    parent_dir: str,
    name: str,
    output_directory_mode: OutputDirectoryMode = OutputDirectoryMode.PER_FOLDER,
) -> str:
    """Create a project directory under parent_dir. Returns the project path."""
    sanitized = sanitize_name(name)
    if not sanitized:
        raise ProjectConfigError("Invalid project name")
    project_path = os.path.join(parent_dir, sanitized)
    try:
        os.makedirs(project_path, exist_ok=True)
    except OSError as e:
        raise ProjectConfigError(f"Failed to create project directory: {e}") from e
    project = Project(
        id=str(uuid.uuid4()),
        name=sanitized,
        created_at=_now(),
        output_directory_mode=output_directory_mode,
    )
    save_project(project_path, project)
    logger.info(f"Created project '{sanitized}' at {project_path}")
    return project_path


def add_folder(
    project_path: str, source_path: str, output_mode: OutputMode = OutputMode.MOVE
) -> SourceFolder:
    project = load_project(project_path)
    if any(f.source_path == source_path for f in project.folders):
        raise ProjectConfigError("Folder already added to project")
    folder = SourceFolder(
        id=str(uuid.uuid4()),
        source_path=source_path,
        output_mode=output_mode,
        added_at=_now(),
    )
    project.folders.append(folder)
    save_project(project_path, project)
    logger.info(f"Added folder {source_path} to project {project.name}")
    return folder


def set_folder_output_mode(
    project_path: str, folder_id: str, output_mode: OutputMode
) -> SourceFolder:
    project = load_project(project_path)
    folder = find_folder(project, folder_id)
    if folder is None:
        raise ProjectConfigError(f"Folder {folder_id} not found in project")
    folder.output_mode = output_mode
    save_project(project_path, project)
    logger.info(f"Output mode of {folder.source_path} set to {output_mode.value}")
    return folder


def remove_folder(project_path: str, folder_id: str) -> Optional[SourceFolder]:
    """Unregister a source folder. Its files and any output stay on disk."""
    project = load_project(project_path)
    folder = find_folder(project, folder_id)
    if folder is None:
        logger.debug(f"remove_folder ignored: {folder_id} not in project")
        return None
    project.folders = [f for f in project.folders if f.id != folder_id]
    save_project(project_path, project)
    logger.info(f"Removed folder {folder.source_path} from project {project.name}")
    return folder


def set_output_directory_mode(
    project_path: str, mode: OutputDirectoryMode
) -> Project:
    """Persist the output layout only. Existing output is moved by the executor."""
    project = load_project(project_path)
    project.output_directory_mode = mode
    save_project(project_path, project)
    logger.info(f"Output layout of {project.name} set to {mode.value}")
    return project


def find_folder(project: Project, folder_id: str) -> Optional[SourceFolder]:
    for folder in project.folders:
        if folder.id == folder_id:
            return folder
    return None


def output_dirs_for(
    project_path: str, project: Project, folder: SourceFolder
) -> Dict[str, str]:
    """Keep/Maybe output directories for one source folder."""
    if project.output_directory_mode == OutputDirectoryMode.UNIFIED:
        base = project_path
    else:
        base = os.path.join(project_path, folder_display_name(folder.source_path))
    return {
        "keep": os.path.join(base, "keep"),
        "maybe": os.path.join(base, "maybe"),
    }
