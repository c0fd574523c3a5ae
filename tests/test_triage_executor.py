import json
import os

import pytest

from toss.core import triage_executor
from toss.core.app_settings import OUTPUT_METADATA_FILENAME
from toss.core.models import OutputDirectoryMode, OutputMode
from toss.core.project_config import (
    add_folder,
    create_project,
    load_project,
    save_project,
)
from toss.core.triage_executor import (
    TriageExecutionError,
    TriageExecutor,
    resolve_conflict,
)


@pytest.fixture
def trashed(monkeypatch):
    """Capture send2trash calls instead of touching the real trash."""
    calls = []

    def fake_send2trash(path):
        calls.append(path)
        os.remove(path)

    monkeypatch.setattr(triage_executor.send2trash, "send2trash", fake_send2trash)
    return calls


def _setup(tmp_path, unified=False):
    source = tmp_path / "Beach"
    source.mkdir()
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        (source / name).write_bytes(name.encode())
    project_path = create_project(str(tmp_path), "Proj")
    if unified:
        project = load_project(project_path)
        project.output_directory_mode = OutputDirectoryMode.UNIFIED
        save_project(project_path, project)
    folder = add_folder(project_path, str(source))
    return project_path, folder, source


def test_resolve_conflict(tmp_path):
    assert resolve_conflict(str(tmp_path), "x.jpg") == "x.jpg"
    (tmp_path / "x.jpg").write_text("1")
    (tmp_path / "x_1.jpg").write_text("2")
    assert resolve_conflict(str(tmp_path), "x.jpg") == "x_2.jpg"


def test_resolve_conflict_gives_up_instead_of_overwriting(tmp_path, monkeypatch):
    monkeypatch.setattr(triage_executor, "MAX_CONFLICT_SUFFIX", 2)
    for name in ("x.jpg", "x_1.jpg", "x_2.jpg"):
        (tmp_path / name).write_text(name)
    with pytest.raises(TriageExecutionError):
        resolve_conflict(str(tmp_path), "x.jpg")
    assert (tmp_path / "x_2.jpg").read_text() == "x_2.jpg"


def test_move_per_folder(tmp_path, trashed):
    project_path, folder, source = _setup(tmp_path)
    conflicts = TriageExecutor().execute(
        project_path,
        folder.id,
        str(source),
        OutputMode.MOVE,
        [str(source / "a.jpg")],
        [str(source / "b.jpg")],
        [str(source / "c.jpg")],
    )
    assert conflicts == []
    assert os.path.isfile(os.path.join(project_path, "Beach", "keep", "a.jpg"))
    assert os.path.isfile(os.path.join(project_path, "Beach", "maybe", "b.jpg"))
    assert trashed == [str(source / "c.jpg")]
    assert os.listdir(source) == []


def test_copy_leaves_source(tmp_path, trashed):
    project_path, folder, source = _setup(tmp_path)
    TriageExecutor().execute(
        project_path, folder.id, str(source), OutputMode.COPY,
        [str(source / "a.jpg")], [], [],
    )
    assert os.path.isfile(source / "a.jpg")
    assert os.path.isfile(os.path.join(project_path, "Beach", "keep", "a.jpg"))
    assert trashed == []


def test_unified_conflicts_and_metadata(tmp_path, trashed):
    project_path, folder, source = _setup(tmp_path, unified=True)
    keep_dir = os.path.join(project_path, "keep")
    os.makedirs(keep_dir)
    with open(os.path.join(keep_dir, "a.jpg"), "w") as f:
        f.write("existing")

    conflicts = TriageExecutor().execute(
        project_path, folder.id, str(source), OutputMode.MOVE,
        [str(source / "a.jpg")], [], [],
    )
    assert conflicts == ["a.jpg → a_1.jpg"]
    assert os.path.isfile(os.path.join(keep_dir, "a_1.jpg"))
    with open(os.path.join(project_path, OUTPUT_METADATA_FILENAME), encoding="utf-8") as f:
        metadata = json.load(f)
    assert metadata["file_origins"] == {"a_1.jpg": folder.id}


def test_missing_yeet_file_is_skipped(tmp_path, trashed):
    project_path, folder, source = _setup(tmp_path)
    TriageExecutor().execute(
        project_path, folder.id, str(source), OutputMode.MOVE,
        [], [], [str(source / "gone.jpg")],
    )
    assert trashed == []


def test_unknown_folder_raises(tmp_path, trashed):
    project_path, _folder, source = _setup(tmp_path)
    with pytest.raises(TriageExecutionError):
        TriageExecutor().execute(
            project_path, "nope", str(source), OutputMode.MOVE, [], [], []
        )


def test_failed_transfer_raises(tmp_path, trashed):
    project_path, folder, source = _setup(tmp_path)
    with pytest.raises(TriageExecutionError):
        TriageExecutor().execute(
            project_path, folder.id, str(source), OutputMode.MOVE,
            [str(source / "missing.jpg")], [], [],
        )


def _write_output(project_path, *parts):
    path = os.path.join(project_path, *parts)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        f.write(parts[-1])
    return path


class TestMigrateOutputs:
    def test_per_folder_to_unified(self, tmp_path):
        project_path, beach, _ = _setup(tmp_path)
        city_source = tmp_path / "City"
        city_source.mkdir()
        city = add_folder(project_path, str(city_source))
        _write_output(project_path, "Beach", "keep", "a.jpg")
        _write_output(project_path, "Beach", "maybe", "b.jpg")
        _write_output(project_path, "City", "keep", "a.jpg")

        conflicts = TriageExecutor().migrate_outputs(
            project_path, OutputDirectoryMode.UNIFIED
        )

        assert conflicts == ["a.jpg → a_1.jpg"]
        assert sorted(os.listdir(os.path.join(project_path, "keep"))) == ["a.jpg", "a_1.jpg"]
        assert os.listdir(os.path.join(project_path, "maybe")) == ["b.jpg"]
        assert not os.path.exists(os.path.join(project_path, "Beach"))
        assert not os.path.exists(os.path.join(project_path, "City"))
        with open(os.path.join(project_path, OUTPUT_METADATA_FILENAME), encoding="utf-8") as f:
            origins = json.load(f)["file_origins"]
        assert origins == {"a.jpg": beach.id, "b.jpg": beach.id, "a_1.jpg": city.id}
        assert load_project(project_path).output_directory_mode == OutputDirectoryMode.UNIFIED

    def test_unified_back_to_per_folder(self, tmp_path, trashed):
        project_path, folder, source = _setup(tmp_path, unified=True)
        TriageExecutor().execute(
            project_path, folder.id, str(source), OutputMode.MOVE,
            [str(source / "a.jpg")], [str(source / "b.jpg")], [],
        )
        stray = _write_output(project_path, "keep", "stray.jpg")

        conflicts = TriageExecutor().migrate_outputs(
            project_path, OutputDirectoryMode.PER_FOLDER
        )

        assert conflicts == []
        assert os.path.isfile(os.path.join(project_path, "Beach", "keep", "a.jpg"))
        assert os.path.isfile(os.path.join(project_path, "Beach", "maybe", "b.jpg"))
        # Files without a recorded origin stay where they were
        assert os.path.isfile(stray)
        assert not os.path.exists(os.path.join(project_path, "maybe"))
        assert not os.path.exists(os.path.join(project_path, OUTPUT_METADATA_FILENAME))
        assert load_project(project_path).output_directory_mode == OutputDirectoryMode.PER_FOLDER

    def test_same_layout_is_noop(self, tmp_path):
        project_path, _, _ = _setup(tmp_path)
        kept = _write_output(project_path, "Beach", "keep", "a.jpg")
        assert TriageExecutor().migrate_outputs(
            project_path, OutputDirectoryMode.PER_FOLDER
        ) == []
        assert os.path.isfile(kept)

    def test_missing_project_raises(self, tmp_path):
        with pytest.raises(TriageExecutionError):
            TriageExecutor().migrate_outputs(str(tmp_path), OutputDirectoryMode.UNIFIED)
