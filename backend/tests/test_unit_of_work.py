"""After-commit hooks run once, after a successful commit, and never on rollback."""
import pytest

from arena.unit_of_work import UnitOfWork


class _Session:
    def __init__(self, fail_commit: bool = False):
        self.fail_commit = fail_commit
        self.log = []

    def commit(self):
        if self.fail_commit:
            raise RuntimeError("disk full")
        self.log.append("commit")

    def rollback(self):
        self.log.append("rollback")


def test_callbacks_run_after_commit_in_order():
    session = _Session()
    uow = UnitOfWork(session)
    uow.after_commit(lambda: session.log.append("first"))
    uow.after_commit(lambda: session.log.append("second"))

    assert session.log == []
    uow.commit()
    assert session.log == ["commit", "first", "second"]


def test_callbacks_run_once():
    session = _Session()
    uow = UnitOfWork(session)
    uow.after_commit(lambda: session.log.append("hook"))
    uow.commit()
    uow.commit()
    assert session.log == ["commit", "hook", "commit"]


def test_failed_commit_discards_callbacks():
    session = _Session(fail_commit=True)
    uow = UnitOfWork(session)
    uow.after_commit(lambda: session.log.append("hook"))

    with pytest.raises(RuntimeError):
        uow.commit()

    assert uow.pending_callbacks == 0
    assert "hook" not in session.log


def test_rollback_discards_callbacks():
    session = _Session()
    uow = UnitOfWork(session)
    uow.after_commit(lambda: session.log.append("hook"))
    uow.rollback()
    uow.commit()
    assert session.log == ["rollback", "commit"]


def test_failing_callback_does_not_stop_the_others():
    session = _Session()
    uow = UnitOfWork(session)

    def boom():
        raise ValueError("boom")

    uow.after_commit(boom)
    uow.after_commit(lambda: session.log.append("after"))
    uow.commit()
    assert session.log == ["commit", "after"]
