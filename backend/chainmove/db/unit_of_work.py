"""
Unit of work: one atomic, isolated transaction over a SQLAlchemy session.
"""
import logging
from typing import Callable, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from chainmove.core.exceptions import ConflictError
from chainmove.db.session import SessionLocal

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Explicit begin/commit/abort boundary.

    Usable as a context manager; every ``with`` block (or ``begin()`` call)
    opens a fresh session, so one instance can run several independent
    transactions one after another. Leaving the block without ``commit()``
    aborts. A uniqueness violation at commit time surfaces as ConflictError.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory
        self.session: Optional[Session] = None
        self._committed = False

    def begin(self) -> Session:
        if self.session is not None:
            raise RuntimeError("Unit of work already in progress.")
        self.session = self.session_factory()
        self._committed = False
        return self.session

    def commit(self):
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"Unit of work commit hit a uniqueness conflict: {e.orig}")
            raise ConflictError("Concurrent update on the same external reference.") from e
        self._committed = True

    def abort(self):
        if self.session is not None:
            self.session.rollback()

    def close(self):
        if self.session is not None:
            self.session.close()
            self.session = None

    def __enter__(self) -> "UnitOfWork":
        self.begin()
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is not None or not self._committed:
                self.abort()
        finally:
            self.close()
        return False
