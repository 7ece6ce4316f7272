from bookledger.crud.inventory import ItemRepository, LedgerRepository
from bookledger.crud.purchases import PurchaseRepository
from bookledger.crud.sequences import SequenceRepository
from bookledger.crud.students import StudentRepository
from bookledger.crud.suppliers import SupplierRepository
from bookledger.crud.unit_of_work import UnitOfWork, unit_of_work_factory

__all__ = [
    "ItemRepository",
    "LedgerRepository",
    "PurchaseRepository",
    "SequenceRepository",
    "StudentRepository",
    "SupplierRepository",
    "UnitOfWork",
    "unit_of_work_factory",
]
