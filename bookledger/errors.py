"""
Error taxonomy for the stock ledger core.

Every error the core raises derives from LedgerError so the HTTP layer can
map the whole family in one place.
"""
from typing import Optional


class LedgerError(Exception):
    """Base class for all stock ledger errors."""

    code = "LEDGER_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Malformed or missing input. Raised before any write."""

    code = "VALIDATION_ERROR"


class NotFoundError(LedgerError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStockError(LedgerError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: int, requested: int, available: Optional[int]):
        super().__init__(
            f"Insufficient stock for item {item_id}: requested {requested}, available {available}"
        )
        self.item_id = item_id
        self.requested = requested
        self.available = available


class ConcurrencyConflictError(LedgerError):
    """A conditional stock update lost a race that a re-read cannot explain."""

    code = "CONCURRENCY_CONFLICT"


class PersistenceError(LedgerError):
    code = "PERSISTENCE_ERROR"


class AllocationError(LedgerError):
    """The identifier sequence could not be incremented."""

    code = "ALLOCATION_ERROR"
