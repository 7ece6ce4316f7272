"""
Base repository with SQLAlchemy 2.x patterns: select(), insert(), update(), delete().

Repositories never commit. The unit of work owns the transaction, so several
repository calls either all take effect or none do. Rows are mapped to typed
records before they leave this layer.
"""
import logging
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bookledger.database import Base
from bookledger.errors import PersistenceError

logger = logging.getLogger(__name__)
ModelType = TypeVar("ModelType", bound=Base)
RecordType = TypeVar("RecordType", bound=BaseModel)


def date_bounds(start: Optional[date], end: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Turn an inclusive date range into [start, end) datetime bounds."""
    lower = datetime.combine(start, time.min) if start else None
    upper = datetime.combine(end + timedelta(days=1), time.min) if end else None
    return lower, upper


class CRUDBase(Generic[ModelType, RecordType]):
    model: Type[ModelType]
    record: Type[RecordType]

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Error {action} {self.model.__name__}: {e}")
            raise PersistenceError(f"Failed {action} {self.model.__name__}") from e

    def to_record(self, obj: ModelType) -> RecordType:
        return self.record.model_validate(obj)

    def get(self, id: int) -> Optional[RecordType]:
        """Get record by ID"""
        with self._guard("getting"):
            obj = self.db.get(self.model, id, populate_existing=True)
        return self.to_record(obj) if obj is not None else None

    def get_multi(self, *, skip: int = 0, limit: int = 100) -> List[RecordType]:
        with self._guard("listing"):
            stmt = select(self.model).order_by(self.model.id).offset(skip).limit(limit)
            rows = self.db.execute(stmt).scalars().all()
        return [self.to_record(row) for row in rows]

    def count(self, stmt) -> int:
        with self._guard("counting"):
            return self.db.execute(
                select(func.count()).select_from(stmt.order_by(None).subquery())
            ).scalar_one()

    def add(self, values: Dict[str, Any]) -> RecordType:
        """Insert a row using insert().returning()"""
        with self._guard("creating"):
            stmt = insert(self.model).values(**values).returning(self.model)
            obj = self.db.execute(stmt).scalar_one()
        return self.to_record(obj)

    def update(self, id: int, values: Dict[str, Any]) -> Optional[RecordType]:
        with self._guard("updating"):
            stmt = (
                update(self.model)
                .where(self.model.id == id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if self.db.execute(stmt).rowcount == 0:
                return None
            obj = self.db.get(self.model, id, populate_existing=True)
        return self.to_record(obj)

    def remove(self, id: int) -> Optional[RecordType]:
        """Delete a row, returning what was removed (no silent deletes)"""
        with self._guard("deleting"):
            obj = self.db.execute(select(self.model).where(self.model.id == id)).scalar_one_or_none()
            if obj is None:
                return None
            record = self.to_record(obj)
            self.db.execute(
                delete(self.model)
                .where(self.model.id == id)
                .execution_options(synchronize_session=False)
            )
            self.db.expunge(obj)
        return record
