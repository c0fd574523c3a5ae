from toss.core.models import Classification, OutputMode
from toss.core.triage_session import TriageSession
from toss.ui.controllers.triage_commit_controller import (
    CommitTarget,
    TriageCommitController,
)

TARGET = CommitTarget("/proj", "f1", "/photos", OutputMode.MOVE)


class Ctx:
    def __init__(self, session, target=TARGET):
        self.session = session
        self.target = target
        self.started = []
        self.progress_flags = []
        self.errors = []
        self.committed = []

    # Protocol methods
    def get_session(self):
        return self.session

    def get_commit_target(self):
        return self.target

    def start_triage_commit(self, target, plan):
        self.started.append((target, plan))

    def set_commit_in_progress(self, in_progress):
        self.progress_flags.append(in_progress)

    def show_error_dialog(self, title, message):
        self.errors.append((title, message))

    def triage_committed(self, target, result):
        self.committed.append((target, result))


def _classified_session(fake_images):
    session = TriageSession(fake_images("A", "B", "C"))
    session.classify(Classification.KEEP)
    session.classify(Classification.YEET)
    session.classify(Classification.KEEP)
    return session


def test_commit_success_resets_session(fake_images):
    session = _classified_session(fake_images)
    ctx = Ctx(session)
    controller = TriageCommitController(ctx)

    assert controller.commit() is True
    assert controller.in_progress
    target, plan = ctx.started[0]
    assert plan.keep_paths == ("/photos/A.jpg", "/photos/C.jpg")
    assert plan.yeet_paths == ("/photos/B.jpg",)

    controller.handle_commit_finished(["A.jpg → A_1.jpg"])
    assert not controller.in_progress
    assert ctx.progress_flags == [True, False]
    assert session.ledger.is_empty()
    assert session.cursor.index == 0
    _target, result = ctx.committed[0]
    assert (result.keep, result.maybe, result.yeet) == (2, 0, 1)
    assert result.conflicts == ("A.jpg → A_1.jpg",)


def test_commit_failure_keeps_session(fake_images):
    session = _classified_session(fake_images)
    ctx = Ctx(session)
    controller = TriageCommitController(ctx)
    controller.commit()
    before = session.ledger.snapshot()

    controller.handle_commit_error("Error applying triage: disk full")
    assert ctx.errors == [("Triage Failed", "Error applying triage: disk full")]
    assert session.ledger.snapshot() == before
    assert ctx.committed == []
    assert not controller.in_progress


def test_commit_without_project_shows_error(fake_images):
    ctx = Ctx(_classified_session(fake_images), target=None)
    controller = TriageCommitController(ctx)
    assert controller.commit() is False
    assert ctx.errors[0][0] == "No Project"
    assert ctx.started == []


def test_commit_empty_ledger_is_ignored(fake_images):
    ctx = Ctx(TriageSession(fake_images("A")))
    controller = TriageCommitController(ctx)
    assert controller.commit() is False
    assert ctx.started == []


def test_second_commit_while_running_is_ignored(fake_images):
    ctx = Ctx(_classified_session(fake_images))
    controller = TriageCommitController(ctx)
    controller.commit()
    assert controller.commit() is False
    assert len(ctx.started) == 1


def test_finished_after_session_replaced_leaves_new_session(fake_images):
    old = _classified_session(fake_images)
    ctx = Ctx(old)
    controller = TriageCommitController(ctx)
    controller.commit()

    replacement = _classified_session(fake_images)
    ctx.session = replacement
    controller.handle_commit_finished([])
    assert not replacement.ledger.is_empty()
    assert len(ctx.committed) == 1
