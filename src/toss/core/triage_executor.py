"""
Triage Executor
Applies a committed triage to disk: Keep and Maybe files are moved or copied
into the project's output directories, Yeet files go to the system trash.
"""

import json
import logging
import os
import shutil
from typing import Dict, List, Sequence

import send2trash

from toss.core.app_settings import MAX_CONFLICT_SUFFIX, OUTPUT_METADATA_FILENAME
from toss.core.image_store import is_supported_image
from toss.core.models import OutputDirectoryMode, OutputMode
from toss.core.project_config import (
    ProjectConfigError,
    find_folder,
    folder_display_name,
    load_project,
    output_dirs_for,
    set_output_directory_mode,
)

logger = logging.getLogger(__name__)


class TriageExecutionError(Exception):
    """Raised when a triage cannot be applied. Files already handled stay where they are."""


def resolve_conflict(dest_dir: str, filename: str) -> str:
    """Returns a name that does not exist in dest_dir, appending _N to the stem.

    Raises:
        TriageExecutionError: if every suffix up to MAX_CONFLICT_SUFFIX is taken.
    """
    stem, ext = os.path.splitext(filename)
    candidate = filename
    counter = 1
    while os.path.exists(os.path.join(dest_dir, candidate)):
        if counter > MAX_CONFLICT_SUFFIX:
            raise TriageExecutionError(
                f"No free name for '{filename}' in {dest_dir} after {MAX_CONFLICT_SUFFIX} attempts"
            )
        candidate = f"{stem}_{counter}{ext}"
        counter += 1
    return candidate


def _read_output_metadata(project_path: str) -> Dict[str, Dict[str, str]]:
    path = os.path.join(project_path, OUTPUT_METADATA_FILENAME)
    if not os.path.isfile(path):
        return {"file_origins": {}}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise TriageExecutionError(f"Failed to read {OUTPUT_METADATA_FILENAME}: {e}") from e
    data.setdefault("file_origins", {})
    return data


def _write_output_metadata(project_path: str, data: Dict[str, Dict[str, str]]) -> None:
    path = os.path.join(project_path, OUTPUT_METADATA_FILENAME)
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
    except OSError as e:
        raise TriageExecutionError(f"Failed to write {OUTPUT_METADATA_FILENAME}: {e}") from e


def _remove_output_metadata(project_path: str) -> None:
    path = os.path.join(project_path, OUTPUT_METADATA_FILENAME)
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise TriageExecutionError(f"Failed to remove {OUTPUT_METADATA_FILENAME}: {e}") from e


def _output_files(directory: str) -> List[str]:
    """Supported images directly inside directory, sorted by name."""
    if not os.path.isdir(directory):
        return []
    return sorted(
        os.path.join(directory, name)
        for name in os.listdir(directory)
        if is_supported_image(name) and os.path.isfile(os.path.join(directory, name))
    )


def _remove_if_empty(directory: str) -> None:
    """Drop an output directory (and an emptied parent) left behind by a migration."""
    for path in (directory, os.path.dirname(directory)):
        try:
            os.rmdir(path)
        except OSError:
            return


class TriageExecutor:
    """Executes triage plans against the file system."""

    def execute(
        self,
        project_path: str,
        folder_id: str,
        source_path: str,
        output_mode: OutputMode,
        keep_paths: Sequence[str],
        maybe_paths: Sequence[str],
        yeet_paths: Sequence[str],
    ) -> List[str]:
        """
        Args:
            project_path: Project directory holding toss-project.json.
            folder_id: Id of the source folder inside the project.
            source_path: Source folder path, used for logging only; the
                project config is authoritative.
            output_mode: Move or copy Keep/Maybe files.

        Returns:
            List[str]: One "name → new_name" entry per renamed file.

        Raises:
            TriageExecutionError: on an unknown folder, unreadable project or
                a file operation failing.
        """
        try:
            project = load_project(project_path)
        except ProjectConfigError as e:
            raise TriageExecutionError(str(e)) from e
        folder = find_folder(project, folder_id)
        if folder is None:
            raise TriageExecutionError(f"Folder {folder_id} not found in project")

        is_unified = project.output_directory_mode == OutputDirectoryMode.UNIFIED
        dirs = output_dirs_for(project_path, project, folder)
        for directory in dirs.values():
            try:
                os.makedirs(directory, exist_ok=True)
            except OSError as e:
                raise TriageExecutionError(
                    f"Failed to create output folder {directory}: {e}"
                ) from e

        metadata = _read_output_metadata(project_path) if is_unified else None
        conflicts: List[str] = []

        logger.info(
            f"Executing triage for {source_path}: {len(keep_paths)} keep, "
            f"{len(maybe_paths)} maybe, {len(yeet_paths)} yeet ({output_mode.value})"
        )
        try:
            for bucket, paths in (("keep", keep_paths), ("maybe", maybe_paths)):
                for file_path in paths:
                    final_name = self._transfer(
                        file_path, dirs[bucket], output_mode, conflicts
                    )
                    if metadata is not None:
                        metadata["file_origins"][final_name] = folder_id
        finally:
            # Record whatever made it across, even if a later file failed
            if metadata is not None:
                _write_output_metadata(project_path, metadata)

        for file_path in yeet_paths:
            self.trash(file_path)

        if conflicts:
            logger.warning(f"Triage finished with {len(conflicts)} renamed file(s)")
        return conflicts

    def _transfer(
        self,
        file_path: str,
        dest_dir: str,
        output_mode: OutputMode,
        conflicts: List[str],
    ) -> str:
        filename = os.path.basename(file_path)
        final_name = resolve_conflict(dest_dir, filename)
        if final_name != filename:
            conflicts.append(f"{filename} → {final_name}")
            logger.debug(f"Destination file exists. Renaming to: {final_name}.")
        dest = os.path.join(dest_dir, final_name)
        try:
            os.makedirs(dest_dir, exist_ok=True)
            if output_mode == OutputMode.COPY:
                shutil.copy2(file_path, dest)
            else:
                shutil.move(file_path, dest)
        except OSError as e:
            error_msg = f"Failed to {output_mode.value} '{filename}': {e}"
            logger.error(error_msg, exc_info=True)
            raise TriageExecutionError(error_msg) from e
        logger.debug(f"{output_mode.value}: '{filename}' -> '{dest}'.")
        return final_name

    def migrate_outputs(self, project_path: str, to_mode: OutputDirectoryMode) -> List[str]:
        """
        Move existing Keep/Maybe output into the other directory layout and
        persist the new layout in the project config.

        Per-folder to unified records each file's origin folder in
        toss-metadata.json. Unified to per-folder uses those records; files
        without a known origin stay in the unified directories.

        Returns:
            List[str]: One "name → new_name" entry per renamed file.

        Raises:
            TriageExecutionError: on an unreadable project or a failed move.
        """
        try:
            project = load_project(project_path)
        except ProjectConfigError as e:
            raise TriageExecutionError(str(e)) from e
        if project.output_directory_mode == to_mode:
            logger.debug(f"Output layout already {to_mode.value}; nothing to migrate")
            return []

        conflicts: List[str] = []
        metadata = _read_output_metadata(project_path)
        origins = metadata["file_origins"]
        moved_back = set()
        try:
            for bucket in ("keep", "maybe"):
                unified_dir = os.path.join(project_path, bucket)
                if to_mode == OutputDirectoryMode.UNIFIED:
                    for folder in project.folders:
                        folder_dir = os.path.join(
                            project_path, folder_display_name(folder.source_path), bucket
                        )
                        for file_path in _output_files(folder_dir):
                            final_name = self._transfer(
                                file_path, unified_dir, OutputMode.MOVE, conflicts
                            )
                            origins[final_name] = folder.id
                        _remove_if_empty(folder_dir)
                else:
                    for file_path in _output_files(unified_dir):
                        filename = os.path.basename(file_path)
                        folder = find_folder(project, origins.get(filename, ""))
                        if folder is None:
                            logger.warning(
                                f"No origin folder recorded for {filename}; left in place"
                            )
                            continue
                        folder_dir = os.path.join(
                            project_path, folder_display_name(folder.source_path), bucket
                        )
                        self._transfer(file_path, folder_dir, OutputMode.MOVE, conflicts)
                        moved_back.add(filename)
                    _remove_if_empty(unified_dir)
        finally:
            # Keep origins consistent with whatever was moved before a failure
            for filename in moved_back:
                origins.pop(filename, None)
            if origins or to_mode == OutputDirectoryMode.UNIFIED:
                _write_output_metadata(project_path, metadata)
            else:
                _remove_output_metadata(project_path)

        try:
            set_output_directory_mode(project_path, to_mode)
        except ProjectConfigError as e:
            raise TriageExecutionError(str(e)) from e
        logger.info(
            f"Migrated output of {project.name} to {to_mode.value} "
            f"({len(conflicts)} renamed)"
        )
        return conflicts

    @staticmethod
    def trash(file_path: str) -> None:
        if not os.path.exists(file_path):
            logger.warning(f"Yeet target already gone: {os.path.basename(file_path)}")
            return
        try:
            send2trash.send2trash(file_path)
        except Exception as e:
            error_msg = f"Failed to trash {os.path.basename(file_path)}: {e}"
            logger.error(error_msg, exc_info=True)
            raise TriageExecutionError(error_msg) from e
        logger.info(f"Moved to trash: {os.path.basename(file_path)}.")
