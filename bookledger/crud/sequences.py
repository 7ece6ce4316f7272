import logging

from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from bookledger.errors import AllocationError
from bookledger.models import IdentifierSequence

logger = logging.getLogger(__name__)


class SequenceRepository:
    """Named counters backed by one row each."""

    def __init__(self, db: Session):
        self.db = db

    def increment(self, name: str) -> int:
        """Atomically bump the counter and return its new value"""
        bump = (
            update(IdentifierSequence)
            .where(IdentifierSequence.name == name)
            .values(value=IdentifierSequence.value + 1)
            .returning(IdentifierSequence.value)
            .execution_options(synchronize_session=False)
        )
        try:
            value = self.db.execute(bump).scalar_one_or_none()
            if value is not None:
                return value
            try:
                with self.db.begin_nested():
                    self.db.execute(insert(IdentifierSequence).values(name=name, value=1))
                return 1
            except IntegrityError:
                # Another allocator created the row first
                return self.db.execute(bump).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error incrementing sequence {name}: {e}")
            raise AllocationError(f"Could not allocate from sequence {name}") from e
