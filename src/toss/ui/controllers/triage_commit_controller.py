from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from toss.core.models import OutputMode, TriagePlan, TriageResult
from toss.core.triage_session import TriageSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitTarget:
    project_path: str
    folder_id: str
    source_path: str
    output_mode: OutputMode


class TriageCommitContext(Protocol):
    def get_session(self) -> Optional[TriageSession]: ...
    def get_commit_target(self) -> Optional[CommitTarget]: ...
    def start_triage_commit(self, target: CommitTarget, plan: TriagePlan) -> None: ...
    def set_commit_in_progress(self, in_progress: bool) -> None: ...
    def show_error_dialog(self, title: str, message: str) -> None: ...
    def triage_committed(self, target: CommitTarget, result: TriageResult) -> None: ...


class TriageCommitController:
    """Hands the ledger to the executor and resets the session on success.

    On failure the session is left as it was so the user can retry.
    """

    def __init__(self, ctx: TriageCommitContext):
        self.ctx = ctx
        self._session: Optional[TriageSession] = None
        self._target: Optional[CommitTarget] = None
        self._plan: Optional[TriagePlan] = None

    @property
    def in_progress(self) -> bool:
        return self._plan is not None

    def commit(self) -> bool:
        """Start committing the current session. Returns whether a commit started."""
        if self.in_progress:
            logger.debug("Commit already in progress; ignoring")
            return False
        session = self.ctx.get_session()
        if session is None or session.ledger.is_empty():
            logger.debug("Nothing to commit")
            return False
        target = self.ctx.get_commit_target()
        if target is None:
            self.ctx.show_error_dialog(
                "No Project", "Open or create a project before applying a triage."
            )
            return False

        plan = session.build_plan()
        self._session = session
        self._target = target
        self._plan = plan
        logger.info(
            f"Starting commit: {len(plan.keep_paths)} keep, {len(plan.maybe_paths)} maybe, "
            f"{len(plan.yeet_paths)} yeet -> {target.project_path}"
        )
        self.ctx.set_commit_in_progress(True)
        self.ctx.start_triage_commit(target, plan)
        return True

    def handle_commit_finished(self, conflicts: List[str]) -> None:
        session, target, plan = self._session, self._target, self._plan
        self._clear_pending()
        self.ctx.set_commit_in_progress(False)
        if plan is None or target is None:
            return
        result = TriageResult(
            keep=len(plan.keep_paths),
            maybe=len(plan.maybe_paths),
            yeet=len(plan.yeet_paths),
            conflicts=tuple(conflicts),
        )
        if session is not None and session is self.ctx.get_session():
            session.reset()
        self.ctx.triage_committed(target, result)

    def handle_commit_error(self, message: str) -> None:
        self._clear_pending()
        self.ctx.set_commit_in_progress(False)
        logger.error(f"Triage commit failed: {message}")
        self.ctx.show_error_dialog("Triage Failed", message)

    def _clear_pending(self) -> None:
        self._session = None
        self._target = None
        self._plan = None
