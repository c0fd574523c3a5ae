import logging
import os
from functools import partial
from typing import Dict, List, Optional

from PyQt6.QtCore import QEvent, QObject, QSize, Qt
from PyQt6.QtGui import QAction, QActionGroup, QBrush, QColor, QFont, QIcon, QKeyEvent
from PyQt6.QtWidgets import (
    QApplication,
    QComboBox,
    QFileDialog,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QListView,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSplitter,
    QStackedWidget,
    QTabBar,
    QVBoxLayout,
    QWidget,
)

from toss.core.app_settings import (
    FILMSTRIP_THUMBNAIL_SIZE,
    add_recent_folder,
    get_confirm_exit,
    get_default_output_mode,
    get_gesture_commit_on_release,
    get_recent_folders,
    set_confirm_exit,
    set_default_output_mode,
    set_gesture_commit_on_release,
)
from toss.core.caching.session_cache import LoadStatus
from toss.core.image_store import ImageStoreError
from toss.core.models import (
    COLUMN_ORDER,
    Classification,
    OutputDirectoryMode,
    OutputMode,
    TriagePlan,
    TriageResult,
)
from toss.core.project_config import (
    ProjectConfigError,
    add_folder,
    create_project,
    folder_display_name,
    set_folder_output_mode,
)
from toss.core.triage_executor import TriageExecutionError
from toss.core.triage_session import TriageSession
from toss.ui.app_state import AppState
from toss.ui.controllers.gesture_controller import GestureAction, GestureController
from toss.ui.controllers.review_controller import ReviewController
from toss.ui.controllers.triage_commit_controller import (
    CommitTarget,
    TriageCommitController,
)
from toss.ui.controllers.triage_controller import TriageController
from toss.ui.helpers.statusbar_utils import (
    build_status_bar_info,
    format_counts,
    format_size,
)
from toss.ui.ui_components import (
    IMAGE_ID_ROLE,
    GestureKeyLabel,
    LoadingOverlay,
    ReviewColumn,
    pil_to_pixmap,
)
from toss.ui.worker_manager import WorkerManager

logger = logging.getLogger(__name__)

PAGE_FOLDER, PAGE_TRIAGE, PAGE_REVIEW, PAGE_GALLERY = range(4)

_SELECTED_BRUSH = QBrush(QColor(70, 110, 200, 120))


class MainWindow(QMainWindow):
    def __init__(
        self,
        initial_folder: Optional[str] = None,
        initial_project: Optional[str] = None,
        thumbnail_cache=None,
    ):
        super().__init__()
        self.setWindowTitle("Toss")
        self.resize(1280, 860)

        self.app_state = AppState(thumbnail_cache)
        self.worker_manager = WorkerManager(self.app_state.image_store, parent=self)
        self.triage_controller = TriageController(
            self, commit_on_release=get_gesture_commit_on_release()
        )
        self.start_gesture = GestureController.for_start_triage(self)
        self.review_controller = ReviewController(self)
        self.commit_controller = TriageCommitController(self)

        self._folder_items: Dict[str, QListWidgetItem] = {}
        self._gallery_items: Dict[str, QListWidgetItem] = {}
        self._icon_cache: Dict[str, QIcon] = {}

        self._create_widgets()
        self._create_menu()
        self._connect_signals()
        self.stack.setCurrentIndex(PAGE_FOLDER)

        app = QApplication.instance()
        if app is not None:
            app.installEventFilter(self)

        if initial_project:
            self.open_project(initial_project)
        if initial_folder:
            self.open_loose_folder(initial_folder)

    # ------------------------------------------------------------------
    # UI construction
    # ------------------------------------------------------------------
    def _create_widgets(self):
        self.stack = QStackedWidget(self)
        self.setCentralWidget(self.stack)
        self.stack.addWidget(self._create_folder_page())
        self.stack.addWidget(self._create_triage_page())
        self.stack.addWidget(self._create_review_page())
        self.stack.addWidget(self._create_gallery_page())

    def _create_folder_page(self) -> QWidget:
        page = QWidget()
        layout = QHBoxLayout(page)
        splitter = QSplitter(Qt.Orientation.Horizontal, page)

        left = QWidget()
        left_layout = QVBoxLayout(left)
        self.project_label = QLabel("No project open")
        self.project_label.setObjectName("project_label")
        self.project_stats_label = QLabel("")
        self.folder_list = QListWidget()
        folder_buttons = QHBoxLayout()
        self.add_folder_button = QPushButton("Add Folder…")
        self.remove_folder_button = QPushButton("Remove")
        folder_buttons.addWidget(self.add_folder_button)
        folder_buttons.addWidget(self.remove_folder_button)
        self.output_layout_combo = QComboBox()
        self.output_layout_combo.addItem("Output per folder", OutputDirectoryMode.PER_FOLDER)
        self.output_layout_combo.addItem("Unified output", OutputDirectoryMode.UNIFIED)
        self.gallery_button = QPushButton("Project Gallery")
        left_layout.addWidget(self.project_label)
        left_layout.addWidget(self.project_stats_label)
        left_layout.addWidget(self.folder_list, 1)
        left_layout.addLayout(folder_buttons)
        left_layout.addWidget(self.output_layout_combo)
        left_layout.addWidget(self.gallery_button)

        right = QWidget()
        right_layout = QVBoxLayout(right)
        header = QHBoxLayout()
        self.folder_title_label = QLabel("Open a folder or a project to begin")
        self.folder_title_label.setObjectName("folder_title_label")
        self.output_mode_combo = QComboBox()
        for mode in OutputMode:
            self.output_mode_combo.addItem(mode.value.title(), mode)
        self.start_triage_button = QPushButton("Start Triage  ⇧↵")
        self.start_triage_button.setObjectName("start_triage_button")
        header.addWidget(self.folder_title_label, 1)
        header.addWidget(self.output_mode_combo)
        header.addWidget(self.start_triage_button)

        self.folder_image_list = QListWidget()
        self.folder_image_list.setViewMode(QListView.ViewMode.IconMode)
        self.folder_image_list.setResizeMode(QListView.ResizeMode.Adjust)
        self.folder_image_list.setIconSize(QSize(150, 150))
        self.folder_image_list.setMovement(QListView.Movement.Static)
        self.loading_overlay = LoadingOverlay(self.folder_image_list)
        self.folder_status_label = QLabel("")

        right_layout.addLayout(header)
        right_layout.addWidget(self.folder_image_list, 1)
        right_layout.addWidget(self.folder_status_label)

        splitter.addWidget(left)
        splitter.addWidget(right)
        splitter.setStretchFactor(1, 3)
        layout.addWidget(splitter)
        return page

    def _create_triage_page(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)

        header = QHBoxLayout()
        self.triage_title_label = QLabel("")
        self.triage_progress_label = QLabel("")
        self.triage_counts_label = QLabel("")
        header.addWidget(self.triage_title_label, 1)
        header.addWidget(self.triage_counts_label)
        header.addWidget(self.triage_progress_label)

        self.triage_image_label = QLabel("")
        self.triage_image_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.triage_image_label.setMinimumSize(200, 200)
        self.triage_info_label = QLabel("")
        self.triage_info_label.setAlignment(Qt.AlignmentFlag.AlignCenter)

        keys = QHBoxLayout()
        self.gesture_labels: Dict[GestureAction, GestureKeyLabel] = {
            GestureAction.KEEP: GestureKeyLabel("K", "Keep"),
            GestureAction.MAYBE: GestureKeyLabel("M", "Maybe"),
            GestureAction.YEET: GestureKeyLabel("Y", "Yeet"),
        }
        for label in self.gesture_labels.values():
            keys.addWidget(label)
        self.undo_button = QPushButton("Undo  ⌫")
        self.review_button = QPushButton("Review  ↵")
        keys.addWidget(self.undo_button)
        keys.addWidget(self.review_button)

        layout.addLayout(header)
        layout.addWidget(self.triage_image_label, 1)
        layout.addWidget(self.triage_info_label)
        layout.addLayout(keys)
        return page

    def _create_review_page(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)

        header = QHBoxLayout()
        self.review_back_button = QPushButton("Back")
        self.review_title_label = QLabel("Review")
        self.review_counts_label = QLabel("")
        self.accept_button = QPushButton("Accept")
        self.accept_button.setObjectName("accept_button")
        header.addWidget(self.review_back_button)
        header.addWidget(self.review_title_label, 1)
        header.addWidget(self.review_counts_label)
        header.addWidget(self.accept_button)

        columns_layout = QHBoxLayout()
        self.review_columns: Dict[Classification, ReviewColumn] = {}
        self.review_column_titles: Dict[Classification, QLabel] = {}
        for bucket in COLUMN_ORDER:
            column_box = QVBoxLayout()
            title = QLabel(bucket.value.title())
            column = ReviewColumn(bucket)
            column_box.addWidget(title)
            column_box.addWidget(column, 1)
            columns_layout.addLayout(column_box)
            self.review_columns[bucket] = column
            self.review_column_titles[bucket] = title

        self.review_hint_label = QLabel(
            "↑↓ select · ⇧↑↓ extend · ←→ column · ⌥←→ move · ↵ keep · ⌘↵ maybe · ⌫ yeet · Esc back"
        )
        layout.addLayout(header)
        layout.addLayout(columns_layout, 1)
        layout.addWidget(self.review_hint_label)
        return page

    def _create_gallery_page(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)

        header = QHBoxLayout()
        self.gallery_back_button = QPushButton("Back")
        self.gallery_tabs = QTabBar()
        for tab in (Classification.KEEP, Classification.MAYBE):
            self.gallery_tabs.addTab(tab.value.title())
        self.gallery_refresh_button = QPushButton("Refresh")
        self.gallery_stats_label = QLabel("")
        header.addWidget(self.gallery_back_button)
        header.addWidget(self.gallery_tabs, 1)
        header.addWidget(self.gallery_stats_label)
        header.addWidget(self.gallery_refresh_button)

        body = QSplitter(Qt.Orientation.Horizontal)
        self.gallery_preview_label = QLabel("")
        self.gallery_preview_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.gallery_list = QListWidget()
        self.gallery_list.setViewMode(QListView.ViewMode.IconMode)
        self.gallery_list.setIconSize(
            QSize(FILMSTRIP_THUMBNAIL_SIZE, FILMSTRIP_THUMBNAIL_SIZE)
        )
        self.gallery_list.setResizeMode(QListView.ResizeMode.Adjust)
        self.gallery_list.setMovement(QListView.Movement.Static)
        body.addWidget(self.gallery_preview_label)
        body.addWidget(self.gallery_list)
        body.setStretchFactor(0, 3)

        layout.addLayout(header)
        layout.addWidget(body, 1)
        return page

    def _create_menu(self):
        menu_bar = self.menuBar()
        file_menu = menu_bar.addMenu("&File")

        new_project_action = QAction("New Project…", self)
        new_project_action.triggered.connect(self._new_project_dialog)
        open_project_action = QAction("Open Project…", self)
        open_project_action.triggered.connect(self._open_project_dialog)
        open_folder_action = QAction("Open Folder…", self)
        open_folder_action.triggered.connect(self._open_folder_dialog)
        self.recent_menu = file_menu.addMenu("Open Recent")
        self.recent_menu.aboutToShow.connect(self._populate_recent_menu)
        reload_folder_action = QAction("Reload Folder", self)
        reload_folder_action.triggered.connect(
            lambda checked=False: self._load_current_folder(force=True)
        )
        clear_cache_action = QAction("Clear Thumbnail Cache", self)
        clear_cache_action.triggered.connect(self._clear_thumbnail_cache)
        quit_action = QAction("Quit", self)
        quit_action.triggered.connect(self.close)

        file_menu.addAction(new_project_action)
        file_menu.addAction(open_project_action)
        file_menu.addAction(open_folder_action)
        file_menu.addAction(reload_folder_action)
        file_menu.addSeparator()
        file_menu.addAction(clear_cache_action)
        file_menu.addSeparator()
        file_menu.addAction(quit_action)

        settings_menu = menu_bar.addMenu("&Settings")
        self.commit_on_release_action = QAction("Preview While Key Is Held", self)
        self.commit_on_release_action.setCheckable(True)
        self.commit_on_release_action.setChecked(get_gesture_commit_on_release())
        self.commit_on_release_action.toggled.connect(self._set_commit_on_release)
        self.confirm_exit_action = QAction("Confirm Before Leaving Triage", self)
        self.confirm_exit_action.setCheckable(True)
        self.confirm_exit_action.setChecked(get_confirm_exit())
        self.confirm_exit_action.toggled.connect(set_confirm_exit)
        settings_menu.addAction(self.commit_on_release_action)
        settings_menu.addAction(self.confirm_exit_action)

        output_menu = settings_menu.addMenu("Default Output Mode")
        group = QActionGroup(self)
        default_mode = get_default_output_mode()
        for mode in OutputMode:
            action = QAction(mode.value.title(), self)
            action.setCheckable(True)
            action.setChecked(mode == default_mode)
            action.triggered.connect(
                lambda checked=False, m=mode: set_default_output_mode(m)
            )
            group.addAction(action)
            output_menu.addAction(action)

    def _connect_signals(self):
        wm = self.worker_manager
        wm.folder_images_loaded.connect(self._on_folder_images_loaded)
        wm.folder_thumbnail_loaded.connect(self._on_folder_thumbnail_loaded)
        wm.folder_load_failed.connect(self._on_folder_load_failed)
        wm.gallery_images_loaded.connect(self._on_gallery_images_loaded)
        wm.gallery_thumbnail_loaded.connect(self._on_gallery_thumbnail_loaded)
        wm.gallery_load_failed.connect(self._on_gallery_load_failed)
        wm.triage_commit_progress.connect(self.statusBar().showMessage)
        wm.triage_commit_finished.connect(self.commit_controller.handle_commit_finished)
        wm.triage_commit_error.connect(self.commit_controller.handle_commit_error)

        self.folder_list.currentItemChanged.connect(self._on_folder_item_changed)
        self.folder_image_list.currentRowChanged.connect(
            self.app_state.folder_session.select
        )
        self.output_mode_combo.activated.connect(self._on_output_mode_changed)
        self.add_folder_button.clicked.connect(self._add_folder_dialog)
        self.remove_folder_button.clicked.connect(self._remove_current_folder)
        self.output_layout_combo.activated.connect(self._on_output_layout_changed)
        self.gallery_button.clicked.connect(self.show_gallery)
        self.start_triage_button.clicked.connect(self.start_triage)

        self.undo_button.clicked.connect(self.triage_controller.undo)
        self.review_button.clicked.connect(self.enter_review)

        self.review_back_button.clicked.connect(self.return_to_triage)
        self.accept_button.clicked.connect(self.commit_controller.commit)
        for bucket, column in self.review_columns.items():
            column.itemClicked.connect(self._on_review_item_clicked)
            column.image_dropped.connect(self.review_controller.handle_drop)

        self.gallery_back_button.clicked.connect(self.show_folder_page)
        self.gallery_refresh_button.clicked.connect(self._refresh_gallery)
        self.gallery_tabs.currentChanged.connect(self._on_gallery_tab_changed)
        self.gallery_list.currentRowChanged.connect(self._on_gallery_row_changed)

    # ------------------------------------------------------------------
    # Key routing
    # ------------------------------------------------------------------
    def eventFilter(self, obj: QObject, event: QEvent) -> bool:
        if event.type() in (QEvent.Type.KeyPress, QEvent.Type.KeyRelease):
            if isinstance(obj, QWidget) and obj.window() is self:
                if self._route_key_event(event):
                    return True
        return super().eventFilter(obj, event)

    def _route_key_event(self, event: QKeyEvent) -> bool:
        is_press = event.type() == QEvent.Type.KeyPress
        key = event.key()
        modifiers = event.modifiers()
        repeat = event.isAutoRepeat()
        page = self.stack.currentIndex()

        if page == PAGE_TRIAGE:
            if is_press:
                return self.triage_controller.handle_key_press(key, modifiers, repeat)
            return self.triage_controller.handle_key_release(key, repeat)
        if page == PAGE_FOLDER:
            if is_press:
                return self.start_gesture.key_press(key, modifiers, repeat)
            return self.start_gesture.key_release(key, repeat)
        if not is_press:
            return False
        if page == PAGE_REVIEW:
            return self.review_controller.handle_key(key, modifiers)
        if page == PAGE_GALLERY:
            return self._handle_gallery_key(key)
        return False

    def _handle_gallery_key(self, key: int) -> bool:
        session = self.app_state.gallery_session
        if key in (Qt.Key.Key_Right, Qt.Key.Key_Down):
            session.navigate_next()
        elif key in (Qt.Key.Key_Left, Qt.Key.Key_Up):
            session.navigate_prev()
        elif key == Qt.Key.Key_Escape:
            self.show_folder_page()
            return True
        else:
            return False
        self._sync_gallery_selection()
        return True

    def changeEvent(self, event: QEvent):
        if event.type() == QEvent.Type.ActivationChange and not self.isActiveWindow():
            self.triage_controller.window_deactivated()
            self.start_gesture.window_deactivated()
        super().changeEvent(event)

    # ------------------------------------------------------------------
    # GestureContext / TriageContext
    # ------------------------------------------------------------------
    def get_session(self) -> Optional[TriageSession]:
        return self.app_state.triage_session

    def show_gesture_preview(self, action: GestureAction) -> None:
        if action == GestureAction.START_TRIAGE:
            self.start_triage_button.setDown(True)
        elif action in self.gesture_labels:
            self.gesture_labels[action].set_pressed(True)

    def clear_gesture_preview(self, action: GestureAction) -> None:
        if action == GestureAction.START_TRIAGE:
            self.start_triage_button.setDown(False)
        elif action in self.gesture_labels:
            self.gesture_labels[action].set_pressed(False)

    def commit_gesture(self, action: GestureAction) -> None:
        if action == GestureAction.START_TRIAGE:
            self.start_triage()

    def undo(self) -> None:
        """The start-triage gesture has no undo."""

    def triage_state_changed(self) -> None:
        self._refresh_triage_page()

    def enter_review(self) -> None:
        session = self.get_session()
        if session is None or not session.enter_review():
            return
        self.triage_controller.gestures.cancel()
        self.review_controller.selection.clear()
        self.stack.setCurrentIndex(PAGE_REVIEW)
        self._refresh_review_page()

    def request_exit_triage(self) -> None:
        session = self.get_session()
        if session is not None and not session.ledger.is_empty() and get_confirm_exit():
            reply = QMessageBox.question(
                self,
                "Leave Triage",
                f"Discard {len(session.ledger)} classification(s) and leave triage?",
                QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
                QMessageBox.StandardButton.No,
            )
            if reply != QMessageBox.StandardButton.Yes:
                return
        self.triage_controller.gestures.cancel()
        self.app_state.end_triage()
        self.show_folder_page()

    # ------------------------------------------------------------------
    # ReviewContext
    # ------------------------------------------------------------------
    def get_review_columns(self) -> Dict[Classification, List[str]]:
        session = self.get_session()
        if session is None:
            return {bucket: [] for bucket in COLUMN_ORDER}
        return session.ledger.columns()

    def reclassify(
        self,
        image_id: str,
        classification: Classification,
        target_index: Optional[int] = None,
    ) -> bool:
        session = self.get_session()
        if session is None:
            return False
        changed = session.reclassify(image_id, classification, target_index)
        if changed:
            self._refresh_review_page()
        return changed

    def reclassify_batch(self, image_ids, classification: Classification) -> int:
        session = self.get_session()
        if session is None:
            return 0
        moved = session.reclassify_batch(image_ids, classification)
        self._refresh_review_page()
        return moved

    def return_to_triage(self) -> None:
        session = self.get_session()
        if session is None:
            self.show_folder_page()
            return
        session.return_to_triage()
        self.review_controller.selection.clear()
        self.stack.setCurrentIndex(PAGE_TRIAGE)
        self._refresh_triage_page()

    def review_selection_changed(self) -> None:
        self._sync_review_selection()

    # ------------------------------------------------------------------
    # TriageCommitContext
    # ------------------------------------------------------------------
    def get_commit_target(self) -> Optional[CommitTarget]:
        return self.app_state.commit_target()

    def start_triage_commit(self, target: CommitTarget, plan: TriagePlan) -> None:
        self.worker_manager.start_triage_commit(
            target.project_path,
            target.folder_id,
            target.source_path,
            target.output_mode,
            plan,
        )

    def set_commit_in_progress(self, in_progress: bool) -> None:
        self.accept_button.setEnabled(not in_progress)
        self.review_back_button.setEnabled(not in_progress)
        if in_progress:
            self.statusBar().showMessage("Applying triage…")
        else:
            self.statusBar().clearMessage()

    def show_error_dialog(self, title: str, message: str) -> None:
        QMessageBox.warning(self, title, message)

    def triage_committed(self, target: CommitTarget, result: TriageResult) -> None:
        self.app_state.after_commit()
        self._icon_cache.clear()
        box = QMessageBox(self)
        box.setIcon(QMessageBox.Icon.Information)
        box.setWindowTitle("Triage Complete")
        box.setText(
            f"{result.total} images sorted: {result.keep} kept, "
            f"{result.maybe} maybe, {result.yeet} yeeted."
        )
        if result.conflicts:
            box.setInformativeText(f"{len(result.conflicts)} file(s) were renamed.")
            box.setDetailedText("\n".join(result.conflicts))
        box.exec()
        self.show_folder_page()

    # ------------------------------------------------------------------
    # Projects and folders
    # ------------------------------------------------------------------
    def open_project(self, project_path: str) -> bool:
        try:
            project = self.app_state.open_project(project_path)
        except ProjectConfigError as e:
            logger.error(f"Failed to open project {project_path}: {e}")
            QMessageBox.warning(self, "Open Project", str(e))
            return False
        self._icon_cache.clear()
        self.project_label.setText(project.name)
        self.setWindowTitle(f"Toss - {project.name}")
        self._populate_folder_list()
        self.show_folder_page()
        return True

    def open_loose_folder(self, folder_path: str) -> None:
        if not os.path.isdir(folder_path):
            QMessageBox.warning(self, "Open Folder", f"Folder not found: {folder_path}")
            return
        if self.app_state.project is not None:
            self.app_state.close_project()
            self.project_label.setText("No project open")
        add_recent_folder(folder_path)
        self.app_state.open_loose_folder(folder_path)
        self._populate_folder_list()
        self.stack.setCurrentIndex(PAGE_FOLDER)
        self._load_current_folder()

    def _populate_folder_list(self):
        self.folder_list.blockSignals(True)
        self.folder_list.clear()
        folders = []
        if self.app_state.project is not None:
            folders = list(self.app_state.project.folders)
        elif self.app_state.current_folder is not None:
            folders = [self.app_state.current_folder]
        current_row = -1
        for row, folder in enumerate(folders):
            item = QListWidgetItem(folder_display_name(folder.source_path))
            item.setToolTip(folder.source_path)
            item.setData(Qt.ItemDataRole.UserRole, folder.id)
            self.folder_list.addItem(item)
            current = self.app_state.current_folder
            if current is not None and current.id == folder.id:
                current_row = row
        if current_row >= 0:
            self.folder_list.setCurrentRow(current_row)
        self.folder_list.blockSignals(False)
        has_project = self.app_state.project is not None
        self.add_folder_button.setEnabled(has_project)
        self.remove_folder_button.setEnabled(has_project)
        self.output_layout_combo.setEnabled(has_project)
        self.gallery_button.setEnabled(has_project)
        if has_project:
            index = self.output_layout_combo.findData(
                self.app_state.project.output_directory_mode
            )
            self.output_layout_combo.setCurrentIndex(max(index, 0))
        self._refresh_project_stats()

    def _on_folder_item_changed(self, current: Optional[QListWidgetItem], _previous):
        if current is None or self.app_state.project is None:
            return
        folder = self.app_state.select_folder(current.data(Qt.ItemDataRole.UserRole))
        if folder is not None:
            self._load_current_folder()

    def _on_output_mode_changed(self, index: int):
        folder = self.app_state.current_folder
        mode = self.output_mode_combo.itemData(index)
        if folder is None or mode is None or self.app_state.project_path is None:
            return
        try:
            set_folder_output_mode(self.app_state.project_path, folder.id, mode)
        except ProjectConfigError as e:
            QMessageBox.warning(self, "Output Mode", str(e))
            return
        self.app_state.reload_project()
        self.app_state.select_folder(folder.id)

    def _refresh_project_stats(self):
        if self.app_state.project is None:
            self.project_stats_label.setText("")
            return
        try:
            stats = self.app_state.stats()
        except ProjectConfigError as e:
            logger.warning(f"Could not compute project stats: {e}")
            self.project_stats_label.setText("")
            return
        self.project_stats_label.setText(
            f"Keep {stats.total_keep} · Maybe {stats.total_maybe}"
        )
        for row in range(self.folder_list.count()):
            item = self.folder_list.item(row)
            folder_stats = stats.for_folder(item.data(Qt.ItemDataRole.UserRole))
            if folder_stats is None:
                continue
            text = f"{folder_stats.folder_name}  ({folder_stats.source_count})"
            if folder_stats.keep_count or folder_stats.maybe_count:
                text += f"  K{folder_stats.keep_count} M{folder_stats.maybe_count}"
            item.setText(text)

    def _remove_current_folder(self):
        folder = self.app_state.current_folder
        if folder is None or self.app_state.project is None:
            return
        reply = QMessageBox.question(
            self,
            "Remove Folder",
            f"Remove '{folder_display_name(folder.source_path)}' from the project?\n"
            "Files on disk are not touched.",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        if reply != QMessageBox.StandardButton.Yes:
            return
        try:
            self.app_state.remove_folder(folder.id)
        except ProjectConfigError as e:
            QMessageBox.warning(self, "Remove Folder", str(e))
            return
        self._populate_folder_list()
        self._populate_folder_images()

    def _on_output_layout_changed(self, index: int):
        project = self.app_state.project
        mode = self.output_layout_combo.itemData(index)
        if project is None or mode is None or mode == project.output_directory_mode:
            return
        reply = QMessageBox.question(
            self,
            "Change Output Layout",
            "Existing Keep and Maybe files will be moved into the new layout. Continue?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        if reply != QMessageBox.StandardButton.Yes:
            self._populate_folder_list()
            return
        try:
            conflicts = self.app_state.change_output_directory_mode(
                mode, self.worker_manager.executor
            )
        except TriageExecutionError as e:
            logger.error(f"Output migration failed: {e}")
            QMessageBox.warning(self, "Change Output Layout", str(e))
            self.app_state.reload_project()
            self._populate_folder_list()
            return
        self._populate_folder_list()
        message = "Output layout changed"
        if conflicts:
            message += f"; {len(conflicts)} file(s) renamed"
        self.statusBar().showMessage(message, 5000)

    def _add_folder_dialog(self):
        if self.app_state.project_path is None:
            return
        path = QFileDialog.getExistingDirectory(self, "Add Source Folder")
        if not path:
            return
        try:
            folder = add_folder(
                self.app_state.project_path, os.path.normpath(path), get_default_output_mode()
            )
            self.app_state.reload_project()
        except ProjectConfigError as e:
            QMessageBox.warning(self, "Add Folder", str(e))
            return
        self.app_state.select_folder(folder.id)
        self._populate_folder_list()
        self._load_current_folder()

    def _new_project_dialog(self):
        parent_dir = QFileDialog.getExistingDirectory(self, "Choose Project Location")
        if not parent_dir:
            return
        name, ok = QInputDialog.getText(self, "New Project", "Project name:")
        if not ok or not name.strip():
            return
        try:
            project_path = create_project(parent_dir, name)
        except ProjectConfigError as e:
            QMessageBox.warning(self, "New Project", str(e))
            return
        self.open_project(project_path)

    def _open_project_dialog(self):
        path = QFileDialog.getExistingDirectory(self, "Open Project")
        if path:
            self.open_project(path)

    def _open_folder_dialog(self):
        path = QFileDialog.getExistingDirectory(self, "Open Folder")
        if path:
            self.open_loose_folder(path)

    def _populate_recent_menu(self):
        self.recent_menu.clear()
        recent = get_recent_folders()
        if not recent:
            empty = self.recent_menu.addAction("No recent folders")
            empty.setEnabled(False)
            return
        for path in recent:
            action = self.recent_menu.addAction(path)
            action.triggered.connect(
                lambda checked=False, p=path: self.open_loose_folder(p)
            )

    def _clear_thumbnail_cache(self):
        cache = self.app_state.thumbnail_cache
        if cache is not None:
            cache.clear()
        self.statusBar().showMessage("Thumbnail cache cleared", 3000)

    def _set_commit_on_release(self, enabled: bool):
        set_gesture_commit_on_release(enabled)
        self.triage_controller.gestures.cancel()
        self.triage_controller.gestures.commit_on_release = enabled

    # ------------------------------------------------------------------
    # Folder loading
    # ------------------------------------------------------------------
    def _load_current_folder(self, force: bool = False):
        folder = self.app_state.current_folder
        if folder is None:
            return
        cache = self.app_state.folder_cache
        entry = cache.get(folder.id)
        if force or entry is None or entry.status != LoadStatus.READY:
            token = cache.begin_load(folder.id)
            self.worker_manager.start_folder_load(
                folder.id,
                folder.source_path,
                token,
                is_current=partial(cache.is_current, folder.id),
            )
        self._populate_folder_images()

    def _populate_folder_images(self):
        folder = self.app_state.current_folder
        session = self.app_state.folder_session
        self.folder_image_list.blockSignals(True)
        self.folder_image_list.clear()
        self._folder_items.clear()
        if folder is None:
            self.folder_title_label.setText("Open a folder or a project to begin")
            self.loading_overlay.hide()
            self.folder_image_list.blockSignals(False)
            return

        self.folder_title_label.setText(folder_display_name(folder.source_path))
        index = self.output_mode_combo.findData(folder.output_mode)
        self.output_mode_combo.setCurrentIndex(max(index, 0))
        self.output_mode_combo.setEnabled(self.app_state.project is not None)

        entry = session.entry
        for image in session.images:
            item = QListWidgetItem(image.name)
            item.setData(IMAGE_ID_ROLE, image.id)
            thumb = entry.thumbnail_for(image.id) if entry is not None else None
            if thumb is not None:
                item.setIcon(self._icon_for(image.id, thumb))
            self.folder_image_list.addItem(item)
            self._folder_items[image.id] = item
        if len(session.images):
            self.folder_image_list.setCurrentRow(session.selected_index)
        self.folder_image_list.blockSignals(False)

        loading = session.is_loading and not len(session.images)
        self.loading_overlay.setVisible(loading)
        if session.error:
            self.folder_status_label.setText(f"Error: {session.error}")
        elif loading:
            self.loading_overlay.setText(f"Loading {folder_display_name(folder.source_path)}…")
            self.folder_status_label.setText("Loading…")
        else:
            images = session.images
            self.folder_status_label.setText(
                f"{len(images)} images · {format_size(images.total_size())}"
            )
        self.start_triage_button.setEnabled(len(session.images) > 0)

    def _icon_for(self, image_id: str, thumb) -> QIcon:
        icon = self._icon_cache.get(image_id)
        if icon is None:
            icon = QIcon(pil_to_pixmap(thumb))
            self._icon_cache[image_id] = icon
        return icon

    def _is_current_folder(self, folder_id) -> bool:
        folder = self.app_state.current_folder
        return folder is not None and folder.id == folder_id

    def _on_folder_images_loaded(self, folder_id, token: int, images: list):
        if not self.app_state.folder_cache.commit_images(folder_id, token, images):
            return
        if self._is_current_folder(folder_id):
            self._populate_folder_images()

    def _on_folder_thumbnail_loaded(self, folder_id, token: int, image_id: str, thumb):
        if not self.app_state.folder_cache.commit_thumbnail(
            folder_id, token, image_id, thumb
        ):
            return
        if self._is_current_folder(folder_id):
            item = self._folder_items.get(image_id)
            if item is not None:
                self._icon_cache.pop(image_id, None)
                item.setIcon(self._icon_for(image_id, thumb))

    def _on_folder_load_failed(self, folder_id, token: int, message: str):
        if not self.app_state.folder_cache.commit_error(folder_id, token, message):
            return
        if self._is_current_folder(folder_id):
            self._populate_folder_images()

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------
    def show_folder_page(self):
        self.stack.setCurrentIndex(PAGE_FOLDER)
        self._refresh_project_stats()
        folder = self.app_state.current_folder
        if folder is not None and self.app_state.folder_cache.get(folder.id) is None:
            self._load_current_folder()
        else:
            self._populate_folder_images()

    def start_triage(self):
        if self.stack.currentIndex() != PAGE_FOLDER:
            return
        session = self.app_state.start_triage()
        if session is None:
            self.statusBar().showMessage("No images to triage", 3000)
            return
        self.review_controller.selection.clear()
        self.stack.setCurrentIndex(PAGE_TRIAGE)
        self._refresh_triage_page()

    def _refresh_triage_page(self):
        session = self.get_session()
        if session is None:
            return
        folder = self.app_state.current_folder
        self.triage_title_label.setText(
            folder_display_name(folder.source_path) if folder else ""
        )
        current, total = session.progress()
        self.triage_progress_label.setText(f"{current} / {total}")
        self.triage_counts_label.setText(format_counts(session.ledger.counts()))
        self.review_button.setEnabled(session.can_enter_review)

        image = session.current_image
        if image is None:
            self.triage_image_label.clear()
            self.triage_info_label.setText("")
            return
        self._show_image(self.triage_image_label, image.path)
        info = build_status_bar_info(
            image, current, total, session.ledger.classification_of(image.id)
        ).to_message()
        if session.is_complete:
            info += "  ·  All images classified. Press ↵ to review."
        self.triage_info_label.setText(info)

    def _show_image(self, label: QLabel, path: str):
        try:
            pil_img = self.app_state.image_store.get_full_image(path)
        except ImageStoreError as e:
            logger.warning(f"Preview unavailable: {e}")
            label.setText("Preview unavailable")
            return
        pixmap = pil_to_pixmap(pil_img)
        label.setPixmap(
            pixmap.scaled(
                label.size(),
                Qt.AspectRatioMode.KeepAspectRatio,
                Qt.TransformationMode.SmoothTransformation,
            )
        )

    def _refresh_review_page(self):
        session = self.get_session()
        if session is None:
            return
        folder = self.app_state.current_folder
        name = folder_display_name(folder.source_path) if folder else ""
        self.review_title_label.setText(f"Review: {name}")
        self.review_counts_label.setText(format_counts(session.ledger.counts()))
        entry = self.app_state.folder_session.entry

        classified = session.classified_images()
        for bucket, column in self.review_columns.items():
            column.clear()
            images = classified[bucket]
            self.review_column_titles[bucket].setText(
                f"{bucket.value.title()} ({len(images)})"
            )
            for image in images:
                item = QListWidgetItem(image.name)
                item.setData(IMAGE_ID_ROLE, image.id)
                thumb = entry.thumbnail_for(image.id) if entry is not None else None
                if thumb is not None:
                    item.setIcon(self._icon_for(image.id, thumb))
                column.addItem(item)
        self.accept_button.setEnabled(
            not session.ledger.is_empty() and not self.commit_controller.in_progress
        )
        self._sync_review_selection()

    def _sync_review_selection(self):
        selection = self.review_controller.selection
        for column in self.review_columns.values():
            for row in range(column.count()):
                item = column.item(row)
                image_id = item.data(IMAGE_ID_ROLE)
                item.setBackground(
                    _SELECTED_BRUSH if image_id in selection else QBrush()
                )
                font = QFont(item.font())
                font.setBold(image_id == selection.focused_id)
                item.setFont(font)
                if image_id == selection.focused_id:
                    column.scrollToItem(item)

    def _on_review_item_clicked(self, item: QListWidgetItem):
        modifiers = QApplication.keyboardModifiers()
        add = bool(
            modifiers
            & (
                Qt.KeyboardModifier.ControlModifier
                | Qt.KeyboardModifier.MetaModifier
                | Qt.KeyboardModifier.ShiftModifier
            )
        )
        self.review_controller.select_image(item.data(IMAGE_ID_ROLE), add)

    # ------------------------------------------------------------------
    # Gallery
    # ------------------------------------------------------------------
    def show_gallery(self):
        if self.app_state.project_path is None:
            return
        self.app_state.gallery_session.set_project(self.app_state.project_path)
        self.stack.setCurrentIndex(PAGE_GALLERY)
        self._load_gallery()

    def _on_gallery_tab_changed(self, index: int):
        tab = (Classification.KEEP, Classification.MAYBE)[index]
        self.app_state.gallery_session.set_tab(tab)
        self._load_gallery()

    def _refresh_gallery(self):
        self.app_state.gallery_session.refresh()
        self._load_gallery()

    def _load_gallery(self):
        session = self.app_state.gallery_session
        key = session.key
        if key is None:
            return
        cache = self.app_state.gallery_cache
        entry = cache.get(key)
        if entry is None or entry.status != LoadStatus.READY:
            token = cache.begin_load(key)
            project_path, bucket = key
            self.worker_manager.start_gallery_load(
                key,
                partial(self.app_state.image_store.list_output_images, project_path, bucket),
                token,
                is_current=partial(cache.is_current, key),
            )
        self._populate_gallery()

    def _populate_gallery(self):
        session = self.app_state.gallery_session
        entry = session.entry
        self.gallery_list.blockSignals(True)
        self.gallery_list.clear()
        self._gallery_items.clear()
        for image in session.images:
            item = QListWidgetItem(image.name)
            item.setData(IMAGE_ID_ROLE, image.id)
            thumb = entry.thumbnail_for(image.id) if entry is not None else None
            if thumb is not None:
                item.setIcon(QIcon(pil_to_pixmap(thumb)))
            self.gallery_list.addItem(item)
            self._gallery_items[image.id] = item
        self.gallery_list.blockSignals(False)

        if session.error:
            self.gallery_stats_label.setText(f"Error: {session.error}")
        else:
            self.gallery_stats_label.setText(
                f"{len(session.images)} images · {format_size(session.total_size())}"
            )
        self._sync_gallery_selection()

    def _sync_gallery_selection(self):
        session = self.app_state.gallery_session
        image = session.current_image
        if image is None:
            self.gallery_preview_label.clear()
            return
        self.gallery_list.blockSignals(True)
        self.gallery_list.setCurrentRow(session.selected_index)
        self.gallery_list.blockSignals(False)
        self._show_image(self.gallery_preview_label, image.path)

    def _on_gallery_row_changed(self, row: int):
        if row < 0:
            return
        self.app_state.gallery_session.select(row)
        self._sync_gallery_selection()

    def _on_gallery_images_loaded(self, key, token: int, images: list):
        if not self.app_state.gallery_cache.commit_images(key, token, images):
            return
        if key == self.app_state.gallery_session.key:
            self._populate_gallery()

    def _on_gallery_thumbnail_loaded(self, key, token: int, image_id: str, thumb):
        if not self.app_state.gallery_cache.commit_thumbnail(key, token, image_id, thumb):
            return
        if key == self.app_state.gallery_session.key:
            item = self._gallery_items.get(image_id)
            if item is not None:
                item.setIcon(QIcon(pil_to_pixmap(thumb)))

    def _on_gallery_load_failed(self, key, token: int, message: str):
        if not self.app_state.gallery_cache.commit_error(key, token, message):
            return
        if key == self.app_state.gallery_session.key:
            self._populate_gallery()

    # ------------------------------------------------------------------
    def closeEvent(self, event):
        session = self.get_session()
        if session is not None and not session.ledger.is_empty() and get_confirm_exit():
            reply = QMessageBox.question(
                self,
                "Quit",
                f"Discard {len(session.ledger)} classification(s) and quit?",
                QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
                QMessageBox.StandardButton.No,
            )
            if reply != QMessageBox.StandardButton.Yes:
                event.ignore()
                return
        app = QApplication.instance()
        if app is not None:
            app.removeEventFilter(self)
        self.worker_manager.stop_all_workers()
        if self.app_state.thumbnail_cache is not None:
            self.app_state.thumbnail_cache.close()
        super().closeEvent(event)
