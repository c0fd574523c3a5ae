"""End-to-end flow through MainWindow with the background loader replaced."""

import os

import pytest
from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import QApplication

from toss.core import app_settings
from toss.core.image_store import ImageStore
from toss.core.models import Classification
from toss.core.project_config import add_folder, create_project
from toss.ui import main_window as main_window_module
from toss.ui.main_window import PAGE_FOLDER, PAGE_REVIEW, PAGE_TRIAGE, MainWindow
from toss.ui.worker_manager import WorkerManager

# Ensure a QApplication exists
app = QApplication.instance() or QApplication([])

NO_MOD = Qt.KeyboardModifier.NoModifier
SHIFT = Qt.KeyboardModifier.ShiftModifier


@pytest.fixture
def window(isolated_settings, monkeypatch, tmp_path, make_image_file):
    app_settings.set_confirm_exit(False)
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        make_image_file(name)

    loads = []
    monkeypatch.setattr(
        WorkerManager,
        "start_folder_load",
        lambda self, folder_id, path, token, is_current=None: loads.append(
            (folder_id, path, token)
        ),
    )
    win = MainWindow(initial_folder=str(tmp_path))
    folder_id, path, token = loads[-1]
    win._on_folder_images_loaded(folder_id, token, ImageStore().list_images(path))
    yield win
    win.close()


def _tap(window, key, modifiers=NO_MOD):
    window.triage_controller.handle_key_press(key, modifiers)
    window.triage_controller.handle_key_release(key)


def test_folder_listing_populates_grid(window):
    assert window.stack.currentIndex() == PAGE_FOLDER
    assert window.folder_image_list.count() == 3
    assert window.start_triage_button.isEnabled()


def test_triage_then_review_flow(window):
    window.start_gesture.key_press(Qt.Key.Key_Return, SHIFT)
    assert window.start_triage_button.isDown()
    window.start_gesture.key_release(Qt.Key.Key_Return)
    assert window.stack.currentIndex() == PAGE_TRIAGE
    assert window.triage_progress_label.text() == "1 / 3"

    _tap(window, Qt.Key.Key_K)
    _tap(window, Qt.Key.Key_Y)
    _tap(window, Qt.Key.Key_K)
    session = window.get_session()
    assert session.ledger.counts()[Classification.KEEP] == 2
    assert window.triage_counts_label.text() == "Keep 2 · Maybe 0 · Yeet 1"

    window.triage_controller.handle_key_press(Qt.Key.Key_Return, NO_MOD)
    assert window.stack.currentIndex() == PAGE_REVIEW
    assert window.review_columns[Classification.KEEP].count() == 2
    assert window.review_columns[Classification.YEET].count() == 1

    window.review_controller.handle_key(Qt.Key.Key_Down)
    window.review_controller.handle_key(Qt.Key.Key_Backspace)
    assert window.review_columns[Classification.YEET].count() == 2

    window.review_controller.handle_key(Qt.Key.Key_Escape)
    assert window.stack.currentIndex() == PAGE_TRIAGE


def test_exit_triage_without_confirmation(window):
    window.start_triage()
    _tap(window, Qt.Key.Key_M)
    window.triage_controller.handle_key_press(Qt.Key.Key_Escape, NO_MOD)
    assert window.stack.currentIndex() == PAGE_FOLDER
    assert window.get_session() is None


def test_loose_folder_commit_reports_no_project(window, monkeypatch):
    errors = []
    monkeypatch.setattr(
        main_window_module.QMessageBox,
        "warning",
        lambda parent, title, message: errors.append(title),
    )
    window.start_triage()
    _tap(window, Qt.Key.Key_K)
    window.enter_review()
    window.accept_button.click()
    assert errors == ["No Project"]
    assert not window.get_session().ledger.is_empty()


def test_project_folder_page_stats_and_remove(isolated_settings, monkeypatch, tmp_path):
    project_path = create_project(str(tmp_path), "Proj")
    source = tmp_path / "Beach"
    source.mkdir()
    (source / "a.jpg").write_bytes(b"x")
    folder = add_folder(project_path, str(source))
    os.makedirs(os.path.join(project_path, "Beach", "keep"))
    with open(os.path.join(project_path, "Beach", "keep", "k.jpg"), "wb") as f:
        f.write(b"x")

    monkeypatch.setattr(WorkerManager, "start_folder_load", lambda self, *a, **kw: None)
    monkeypatch.setattr(
        main_window_module.QMessageBox,
        "question",
        lambda *args, **kwargs: main_window_module.QMessageBox.StandardButton.Yes,
    )
    win = MainWindow(initial_project=project_path)
    try:
        assert win.project_stats_label.text() == "Keep 1 · Maybe 0"
        assert win.folder_list.item(0).text() == "Beach  (1)  K1 M0"
        win.folder_list.setCurrentRow(0)
        assert win.app_state.current_folder.id == folder.id

        win.remove_folder_button.click()
        assert win.folder_list.count() == 0
        assert win.app_state.current_folder is None
        assert os.path.isdir(source)
    finally:
        win.close()
