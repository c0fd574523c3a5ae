import logging
from functools import partial
from typing import Callable, List, Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal

from toss.core.app_settings import FILMSTRIP_THUMBNAIL_SIZE, THUMBNAIL_SIZE
from toss.core.image_store import ImageStore
from toss.core.models import ImageFile, OutputMode, TriagePlan
from toss.core.triage_executor import TriageExecutor
from toss.workers.image_load_worker import ImageLoadWorker
from toss.workers.triage_commit_worker import TriageCommitWorker

logger = logging.getLogger(__name__)


class WorkerManager(QObject):
    """
    Manages background workers (image loading, triage commit) and their QThreads.
    """

    # Folder Load Signals
    folder_images_loaded = pyqtSignal(object, int, list)  # folder_id, token, [ImageFile]
    folder_thumbnail_loaded = pyqtSignal(object, int, str, object)
    folder_load_failed = pyqtSignal(object, int, str)

    # Gallery Load Signals
    gallery_images_loaded = pyqtSignal(object, int, list)  # (project, bucket), token, [ImageFile]
    gallery_thumbnail_loaded = pyqtSignal(object, int, str, object)
    gallery_load_failed = pyqtSignal(object, int, str)

    # Triage Commit Signals
    triage_commit_progress = pyqtSignal(str)
    triage_commit_finished = pyqtSignal(list)  # conflicts
    triage_commit_error = pyqtSignal(str)

    def __init__(
        self,
        image_store: ImageStore,
        executor: Optional[TriageExecutor] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.image_store = image_store
        self.executor = executor or TriageExecutor()

        self.folder_load_thread: Optional[QThread] = None
        self.folder_load_worker: Optional[ImageLoadWorker] = None

        self.gallery_load_thread: Optional[QThread] = None
        self.gallery_load_worker: Optional[ImageLoadWorker] = None

        self.triage_commit_thread: Optional[QThread] = None
        self.triage_commit_worker: Optional[TriageCommitWorker] = None

    def _terminate_thread(
        self, thread: Optional[QThread], worker_stop_method: Optional[Callable] = None
    ):
        if thread is not None and thread.isRunning():
            if worker_stop_method:
                try:
                    worker_stop_method()
                except Exception:
                    logger.error(
                        f"Error calling worker stop method for thread {thread}.",
                        exc_info=True,
                    )
            thread.quit()
            if not thread.wait(5000):  # Wait 5 seconds
                logger.warning(f"Thread {thread} did not quit gracefully. Terminating.")
                thread.terminate()
                thread.wait()
            logger.debug(f"Thread {thread} stopped.")
        return None, None

    # --- Folder Image Loading ---
    def _cleanup_folder_load_refs(self, thread: QThread, worker: QObject):
        worker.deleteLater()
        thread.deleteLater()
        # A newer run may already own the attributes
        if self.folder_load_worker is worker:
            self.folder_load_worker = None
        if self.folder_load_thread is thread:
            self.folder_load_thread = None
        logger.debug("Folder load thread and worker cleaned up.")

    def start_folder_load(
        self,
        folder_id: str,
        folder_path: str,
        token: int,
        is_current: Optional[Callable[[int], bool]] = None,
    ):
        self.stop_folder_load()
        self.folder_load_thread = QThread()
        self.folder_load_worker = ImageLoadWorker(
            self.image_store,
            folder_id,
            token,
            lambda: self.image_store.list_images(folder_path),
            thumbnail_size=THUMBNAIL_SIZE,
            is_current=is_current,
        )
        self.folder_load_worker.moveToThread(self.folder_load_thread)

        self.folder_load_worker.images_loaded.connect(self.folder_images_loaded)
        self.folder_load_worker.thumbnail_loaded.connect(self.folder_thumbnail_loaded)
        self.folder_load_worker.load_failed.connect(self.folder_load_failed)

        self.folder_load_thread.started.connect(self.folder_load_worker.run)
        self.folder_load_worker.finished.connect(self.folder_load_thread.quit)
        self.folder_load_thread.finished.connect(
            partial(
                self._cleanup_folder_load_refs,
                self.folder_load_thread,
                self.folder_load_worker,
            )
        )

        self.folder_load_thread.start()
        logger.info(f"Folder load thread started for {folder_path} (token {token}).")

    def stop_folder_load(self):
        worker_stop = self.folder_load_worker.stop if self.folder_load_worker else None
        self._terminate_thread(self.folder_load_thread, worker_stop)
        self.folder_load_thread = None
        self.folder_load_worker = None

    # --- Gallery Image Loading ---
    def _cleanup_gallery_load_refs(self, thread: QThread, worker: QObject):
        worker.deleteLater()
        thread.deleteLater()
        # A newer run may already own the attributes
        if self.gallery_load_worker is worker:
            self.gallery_load_worker = None
        if self.gallery_load_thread is thread:
            self.gallery_load_thread = None
        logger.debug("Gallery load thread and worker cleaned up.")

    def start_gallery_load(
        self,
        key: object,
        list_images: Callable[[], List[ImageFile]],
        token: int,
        is_current: Optional[Callable[[int], bool]] = None,
    ):
        self.stop_gallery_load()
        self.gallery_load_thread = QThread()
        self.gallery_load_worker = ImageLoadWorker(
            self.image_store,
            key,
            token,
            list_images,
            thumbnail_size=FILMSTRIP_THUMBNAIL_SIZE,
            is_current=is_current,
        )
        self.gallery_load_worker.moveToThread(self.gallery_load_thread)

        self.gallery_load_worker.images_loaded.connect(self.gallery_images_loaded)
        self.gallery_load_worker.thumbnail_loaded.connect(self.gallery_thumbnail_loaded)
        self.gallery_load_worker.load_failed.connect(self.gallery_load_failed)

        self.gallery_load_thread.started.connect(self.gallery_load_worker.run)
        self.gallery_load_worker.finished.connect(self.gallery_load_thread.quit)
        self.gallery_load_thread.finished.connect(
            partial(
                self._cleanup_gallery_load_refs,
                self.gallery_load_thread,
                self.gallery_load_worker,
            )
        )

        self.gallery_load_thread.start()
        logger.info(f"Gallery load thread started for {key!r} (token {token}).")

    def stop_gallery_load(self):
        worker_stop = self.gallery_load_worker.stop if self.gallery_load_worker else None
        self._terminate_thread(self.gallery_load_thread, worker_stop)
        self.gallery_load_thread = None
        self.gallery_load_worker = None

    # --- Triage Commit ---
    def _cleanup_triage_commit_refs(self, thread: QThread, worker: QObject):
        worker.deleteLater()
        thread.deleteLater()
        # A newer run may already own the attributes
        if self.triage_commit_worker is worker:
            self.triage_commit_worker = None
        if self.triage_commit_thread is thread:
            self.triage_commit_thread = None
        logger.debug("Triage commit thread and worker cleaned up.")

    def start_triage_commit(
        self,
        project_path: str,
        folder_id: str,
        source_path: str,
        output_mode: OutputMode,
        plan: TriagePlan,
    ):
        if self.is_triage_commit_running():
            logger.warning("Triage commit already running; request ignored.")
            return
        self.triage_commit_thread = QThread()
        self.triage_commit_worker = TriageCommitWorker(self.executor)
        self.triage_commit_worker.moveToThread(self.triage_commit_thread)

        self.triage_commit_worker.progress.connect(self.triage_commit_progress)
        self.triage_commit_worker.finished.connect(self.triage_commit_finished)
        self.triage_commit_worker.error.connect(self.triage_commit_error)

        self.triage_commit_thread.started.connect(
            lambda: self.triage_commit_worker.commit(
                project_path, folder_id, source_path, output_mode, plan
            )
        )
        self.triage_commit_worker.finished.connect(self.triage_commit_thread.quit)
        self.triage_commit_worker.error.connect(self.triage_commit_thread.quit)
        self.triage_commit_thread.finished.connect(
            partial(
                self._cleanup_triage_commit_refs,
                self.triage_commit_thread,
                self.triage_commit_worker,
            )
        )

        self.triage_commit_thread.start()
        logger.info("Triage commit thread started.")

    def is_triage_commit_running(self) -> bool:
        return (
            self.triage_commit_thread is not None
            and self.triage_commit_thread.isRunning()
        )

    def stop_all_workers(self):
        logger.info("Stopping all workers.")
        self.stop_folder_load()
        self.stop_gallery_load()
        # A running commit is waited for, never interrupted mid-file
        if self.triage_commit_thread is not None and self.triage_commit_thread.isRunning():
            self.triage_commit_thread.quit()
            self.triage_commit_thread.wait()
        logger.info("All workers stopped.")
