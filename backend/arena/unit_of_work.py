"""Unit of work: a session wrapper that owns the commit and its after-commit hooks.

Callbacks registered with ``after_commit`` run only once the session commit has
returned. A failing callback is logged and skipped; it never reaches the caller,
so the committed state and the HTTP response are unaffected.
"""
import logging
from typing import Callable, Generator, List

from fastapi import Depends
from sqlmodel import Session

from arena.database import get_session

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class UnitOfWork:
    def __init__(self, session: Session):
        self.session = session
        self._after_commit: List[Callback] = []

    def after_commit(self, callback: Callback) -> None:
        """Queue `callback` to run after the next successful commit."""
        self._after_commit.append(callback)

    @property
    def pending_callbacks(self) -> int:
        return len(self._after_commit)

    def commit(self) -> None:
        try:
            self.session.commit()
        except Exception:
            # Nothing was persisted, so nothing may be announced
            self._after_commit.clear()
            raise

        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("After-commit callback failed")

    def rollback(self) -> None:
        self._after_commit.clear()
        self.session.rollback()


def get_unit_of_work(session: Session = Depends(get_session)) -> Generator[UnitOfWork, None, None]:
    """Request-scoped unit of work; uncommitted work is rolled back."""
    uow = UnitOfWork(session)
    try:
        yield uow
    finally:
        if uow.pending_callbacks:
            logger.warning(f"Discarding {uow.pending_callbacks} after-commit callback(s) never committed")
            uow.rollback()
