from PyQt6.QtWidgets import (
    QWidget,
    QVBoxLayout,
    QLabel,
    QListWidget,
    QAbstractItemView,
    QListView,
)
from PyQt6.QtCore import Qt, QMimeData, QSize, pyqtSignal
from PyQt6.QtGui import QDrag, QDragEnterEvent, QDragMoveEvent, QDropEvent, QPixmap
from PIL.ImageQt import ImageQt
from typing import Optional
import logging

from toss.core.models import Classification

logger = logging.getLogger(__name__)

IMAGE_ID_MIME_TYPE = "application/x-toss-image-id"
IMAGE_ID_ROLE = Qt.ItemDataRole.UserRole


def pil_to_pixmap(pil_img) -> QPixmap:
    return QPixmap.fromImage(ImageQt(pil_img))


# --- Review column with drag and drop between buckets ---
class ReviewColumn(QListWidget):
    """One bucket column. Dragging a card out and dropping it on another
    column emits image_dropped; the ledger is the source of truth, so the
    column never rearranges its own items."""

    image_dropped = pyqtSignal(str, object, object)  # image_id, bucket, target_index

    def __init__(self, bucket: Classification, parent=None):
        super().__init__(parent)
        self.bucket = bucket
        self.setObjectName(f"review_column_{bucket.value}")
        self.setSelectionMode(QAbstractItemView.SelectionMode.NoSelection)
        self.setDragEnabled(True)
        self.setAcceptDrops(True)
        self.viewport().setAcceptDrops(True)
        self.setDropIndicatorShown(True)
        self.setDragDropMode(QAbstractItemView.DragDropMode.DragDrop)
        self.setViewMode(QListView.ViewMode.ListMode)
        self.setIconSize(QSize(64, 64))
        self.setFocusPolicy(Qt.FocusPolicy.NoFocus)

    def startDrag(self, supportedActions):  # noqa: N802 (Qt override)
        item = self.currentItem()
        if item is None:
            return
        mime = QMimeData()
        mime.setData(IMAGE_ID_MIME_TYPE, item.data(IMAGE_ID_ROLE).encode("utf-8"))
        drag = QDrag(self)
        drag.setMimeData(mime)
        icon = item.icon()
        if not icon.isNull():
            drag.setPixmap(icon.pixmap(self.iconSize()))
        # Copy so Qt never removes the source item itself
        drag.exec(Qt.DropAction.CopyAction)

    def dragEnterEvent(self, event: Optional[QDragEnterEvent]):
        if event and event.mimeData().hasFormat(IMAGE_ID_MIME_TYPE):
            event.acceptProposedAction()
        elif event:
            event.ignore()

    def dragMoveEvent(self, event: Optional[QDragMoveEvent]):
        if event and event.mimeData().hasFormat(IMAGE_ID_MIME_TYPE):
            event.acceptProposedAction()
        elif event:
            event.ignore()

    def dropEvent(self, event: Optional[QDropEvent]):
        if event is None or not event.mimeData().hasFormat(IMAGE_ID_MIME_TYPE):
            if event:
                event.ignore()
            return
        image_id = bytes(event.mimeData().data(IMAGE_ID_MIME_TYPE)).decode("utf-8")
        row = self.indexAt(event.position().toPoint()).row()
        target_index = row if row >= 0 else None
        event.setDropAction(Qt.DropAction.CopyAction)
        event.accept()
        logger.debug(f"Dropped {image_id} on {self.bucket.value} at {target_index}")
        self.image_dropped.emit(image_id, self.bucket, target_index)


class GestureKeyLabel(QLabel):
    """Key cap shown under the triage image; lights up while its key is held."""

    def __init__(self, key_text: str, caption: str, parent=None):
        super().__init__(f"{key_text}  {caption}", parent)
        self.setObjectName("gesture_key_label")
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.setProperty("pressed", False)

    def set_pressed(self, pressed: bool):
        self.setProperty("pressed", pressed)
        # Re-polish so the stylesheet picks up the property change
        self.style().unpolish(self)
        self.style().polish(self)


class LoadingOverlay(QWidget):
    def __init__(self, parent=None):
        super().__init__(parent)
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)

        main_layout = QVBoxLayout(self)
        main_layout.setContentsMargins(0, 0, 0, 0)

        self.text_label = QLabel("Loading...", self)
        self.text_label.setObjectName("loading_text_label")
        self.text_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        main_layout.addWidget(self.text_label)
        self.hide()

    def setText(self, text):
        self.text_label.setText(text)
        self.text_label.adjustSize()

    def showEvent(self, event):
        if self.parentWidget():
            self.setGeometry(self.parentWidget().rect())
        super().showEvent(event)
