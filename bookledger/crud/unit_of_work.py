"""
Unit of work: one session, one transaction, one set of repositories.

Commits when the block exits cleanly and rolls back on any exception, so a
failure part way through a stock movement leaves nothing behind.
"""
import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from bookledger.crud.inventory import ItemRepository, LedgerRepository
from bookledger.crud.purchases import PurchaseRepository
from bookledger.crud.sequences import SequenceRepository
from bookledger.crud.students import StudentRepository
from bookledger.crud.suppliers import SupplierRepository
from bookledger.errors import PersistenceError

logger = logging.getLogger(__name__)


class UnitOfWork:
    items: ItemRepository
    ledger: LedgerRepository
    purchases: PurchaseRepository
    students: StudentRepository
    suppliers: SupplierRepository
    sequences: SequenceRepository

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self.session = None

    def __enter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self.items = ItemRepository(self.session)
        self.ledger = LedgerRepository(self.session)
        self.purchases = PurchaseRepository(self.session)
        self.students = StudentRepository(self.session)
        self.suppliers = SupplierRepository(self.session)
        self.sequences = SequenceRepository(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is not None:
                # The original exception propagates even if rollback fails
                self._rollback_quietly()
                return False
            try:
                self.session.commit()
            except SQLAlchemyError as e:
                self._rollback_quietly()
                logger.error(f"Transaction commit failed: {e}")
                raise PersistenceError("Transaction could not be committed") from e
        finally:
            self.session.close()
        return False

    def _rollback_quietly(self) -> None:
        try:
            self.session.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Transaction rollback failed: {e}")


def unit_of_work_factory(session_factory: sessionmaker) -> Callable[[], UnitOfWork]:
    def factory() -> UnitOfWork:
        return UnitOfWork(session_factory)

    return factory
