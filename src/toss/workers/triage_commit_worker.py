"""
Triage Commit Worker
Runs the triage executor for one committed session without blocking the UI.
"""

import logging

from PyQt6.QtCore import QObject, pyqtSignal

from toss.core.models import OutputMode, TriagePlan
from toss.core.triage_executor import TriageExecutor

logger = logging.getLogger(__name__)


class TriageCommitWorker(QObject):
    """Applies a TriagePlan in a background thread."""

    # Signals
    progress = pyqtSignal(str)  # status message
    finished = pyqtSignal(list)  # conflicts
    error = pyqtSignal(str)

    def __init__(self, executor: TriageExecutor):
        super().__init__()
        self.executor = executor
        self._is_running = True

    def stop(self):
        # File operations already started are not interrupted
        self._is_running = False

    def commit(
        self,
        project_path: str,
        folder_id: str,
        source_path: str,
        output_mode: OutputMode,
        plan: TriagePlan,
    ):
        self._is_running = True
        logger.info(f"Committing triage of {plan.total} image(s) from {source_path}")
        self.progress.emit(f"Applying triage to {plan.total} image(s)...")
        try:
            conflicts = self.executor.execute(
                project_path,
                folder_id,
                source_path,
                output_mode,
                list(plan.keep_paths),
                list(plan.maybe_paths),
                list(plan.yeet_paths),
            )
        except Exception as e:
            error_msg = f"Error applying triage: {e}"
            logger.error(error_msg, exc_info=True)
            self.error.emit(error_msg)
            return
        logger.info(f"Triage commit complete ({len(conflicts)} conflict(s))")
        self.finished.emit(list(conflicts))
