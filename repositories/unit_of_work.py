"""
Unit of Work - transaction scoping for multi-repository writes
"""

from contextlib import contextmanager
from typing import Iterator
from sqlalchemy.orm import Session
import logging

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Wraps the request session so a group of repository calls commits or rolls
    back as one. Readers never see a contact with only part of its signals.
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on success, roll back and re-raise on any exception.

        Usage:
            with uow.transaction():
                contact_repo.create(...)
                signal_repo.upsert_signal(...)
        """
        try:
            yield self.session
            self.session.commit()
        except Exception:
            logger.debug("Rolling back transaction")
            self.session.rollback()
            raise

    def rollback(self) -> None:
        self.session.rollback()
