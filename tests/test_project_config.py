import json
import os

import pytest

from toss.core.models import OutputDirectoryMode, OutputMode
from toss.core.project_config import (
    ProjectConfigError,
    add_folder,
    config_path,
    create_project,
    find_folder,
    folder_display_name,
    load_project,
    output_dirs_for,
    remove_folder,
    sanitize_name,
    set_folder_output_mode,
    set_output_directory_mode,
)


def test_sanitize_name_strips_path_characters():
    assert sanitize_name(" Trip/2024:*? ") == "Trip2024"
    assert sanitize_name("///") == ""


def test_folder_display_name():
    assert folder_display_name("/photos/Summer/") == "Summer"


def test_create_and_load_round_trip(tmp_path):
    project_path = create_project(str(tmp_path), "Holiday", OutputDirectoryMode.UNIFIED)
    assert os.path.isfile(config_path(project_path))
    project = load_project(project_path)
    assert project.name == "Holiday"
    assert project.output_directory_mode == OutputDirectoryMode.UNIFIED
    assert project.folders == []


def test_create_project_rejects_empty_name(tmp_path):
    with pytest.raises(ProjectConfigError):
        create_project(str(tmp_path), "  ")


def test_add_folder_and_duplicate(tmp_path):
    project_path = create_project(str(tmp_path), "P")
    folder = add_folder(project_path, "/photos/a", OutputMode.COPY)
    project = load_project(project_path)
    assert find_folder(project, folder.id).output_mode == OutputMode.COPY
    with pytest.raises(ProjectConfigError):
        add_folder(project_path, "/photos/a")


def test_set_folder_output_mode(tmp_path):
    project_path = create_project(str(tmp_path), "P")
    folder = add_folder(project_path, "/photos/a")
    set_folder_output_mode(project_path, folder.id, OutputMode.COPY)
    assert find_folder(load_project(project_path), folder.id).output_mode == OutputMode.COPY
    with pytest.raises(ProjectConfigError):
        set_folder_output_mode(project_path, "missing", OutputMode.MOVE)


def test_load_missing_and_malformed(tmp_path):
    with pytest.raises(ProjectConfigError):
        load_project(str(tmp_path))
    with open(config_path(str(tmp_path)), "w", encoding="utf-8") as f:
        json.dump({"name": "no id"}, f)
    with pytest.raises(ProjectConfigError):
        load_project(str(tmp_path))


def test_output_dirs_for_both_layouts(tmp_path):
    project_path = create_project(str(tmp_path), "P")
    folder = add_folder(project_path, "/photos/Beach")
    project = load_project(project_path)
    dirs = output_dirs_for(project_path, project, folder)
    assert dirs["keep"] == os.path.join(project_path, "Beach", "keep")

    project.output_directory_mode = OutputDirectoryMode.UNIFIED
    dirs = output_dirs_for(project_path, project, folder)
    assert dirs["maybe"] == os.path.join(project_path, "maybe")


def test_remove_folder(tmp_path):
    project_path = create_project(str(tmp_path), "P")
    first = add_folder(project_path, "/photos/a")
    second = add_folder(project_path, "/photos/b")

    removed = remove_folder(project_path, first.id)
    assert removed.source_path == "/photos/a"
    assert [f.id for f in load_project(project_path).folders] == [second.id]
    assert remove_folder(project_path, first.id) is None


def test_set_output_directory_mode_persists(tmp_path):
    project_path = create_project(str(tmp_path), "P")
    project = set_output_directory_mode(project_path, OutputDirectoryMode.UNIFIED)
    assert project.output_directory_mode == OutputDirectoryMode.UNIFIED
    assert load_project(project_path).output_directory_mode == OutputDirectoryMode.UNIFIED
