"""
Receipt numbers and entity codes.

Receipt numbers look like RCP-20261019-000042: the UTC day plus a counter
that restarts each day. Entity codes look like STU-000042 with one counter
per prefix. Uniqueness comes from the sequence source, which must hand out
each value once even when called from many threads or processes.
"""
import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from bookledger.crud.unit_of_work import UnitOfWork
from bookledger.errors import AllocationError, LedgerError, ValidationError

logger = logging.getLogger(__name__)


class LocalSequence:
    """In-process counters guarded by a lock. Single-process deployments and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._values: Dict[str, int] = defaultdict(int)

    def next_value(self, name: str) -> int:
        with self._lock:
            self._values[name] += 1
            return self._values[name]


class DatabaseSequence:
    """Counters stored in identifier_sequences; safe across worker processes."""

    def __init__(self, uow_factory: Callable[[], UnitOfWork]):
        self._uow_factory = uow_factory

    def next_value(self, name: str) -> int:
        try:
            with self._uow_factory() as uow:
                return uow.sequences.increment(name)
        except AllocationError:
            raise
        except LedgerError as e:
            raise AllocationError(f"Could not allocate from sequence {name}") from e


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdentifierGenerator:
    def __init__(
        self,
        source,
        *,
        receipt_prefix: str = "RCP",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._source = source
        self._receipt_prefix = receipt_prefix
        self._clock = clock or _utcnow

    def next_receipt_number(self) -> str:
        day = self._clock().strftime("%Y%m%d")
        value = self._next(f"receipt:{day}")
        return f"{self._receipt_prefix}-{day}-{value:06d}"

    def next_entity_code(self, prefix: str) -> str:
        prefix = (prefix or "").strip().upper()
        if not prefix:
            raise ValidationError("Entity code prefix must not be empty")
        value = self._next(f"entity:{prefix}")
        return f"{prefix}-{value:06d}"

    def _next(self, name: str) -> int:
        try:
            value = self._source.next_value(name)
        except AllocationError:
            logger.error(f"Identifier allocation failed for {name}")
            raise
        if not isinstance(value, int) or value <= 0:
            raise AllocationError(f"Sequence {name} returned an invalid value: {value!r}")
        return value
