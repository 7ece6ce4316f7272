"""
Catalog and student registration.

Items are created with their opening stock; after that stock_quantity is left
to the transaction manager. Details such as title or price can be edited here.
"""
import logging
from typing import Callable, List, Optional

from bookledger.crud.unit_of_work import UnitOfWork
from bookledger.errors import NotFoundError, ValidationError
from bookledger.models import utcnow
from bookledger.schemas.common import Page
from bookledger.schemas.inventory import ItemCreate, ItemFilters, ItemRecord, ItemUpdate, StockAlert
from bookledger.schemas.students import StudentCreate, StudentRecord
from bookledger.services.identifiers import IdentifierGenerator
from bookledger.services.transactions import MAX_PAGE_SIZE
from bookledger.utils.alerts import check_stock_alerts

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        identifiers: IdentifierGenerator,
        *,
        student_code_prefix: str = "STU",
    ):
        self._uow = uow_factory
        self._identifiers = identifiers
        self._student_code_prefix = student_code_prefix

    def create_item(self, item: ItemCreate) -> ItemRecord:
        now = utcnow()
        values = item.model_dump()
        values.update(stock_quantity=item.opening_stock, created_at=now, updated_at=now)
        with self._uow() as uow:
            record = uow.items.add(values)
        logger.info(f"Item created: {record.title} ({record.class_level}) with {record.opening_stock} in stock")
        return record

    def update_item(self, item_id: int, changes: ItemUpdate) -> ItemRecord:
        values = changes.model_dump(exclude_unset=True)
        if not values:
            raise ValidationError("No fields to update")
        values["updated_at"] = utcnow()
        with self._uow() as uow:
            record = uow.items.update(item_id, values)
        if record is None:
            raise NotFoundError("Item", item_id)
        logger.info(f"Item {item_id} updated: {sorted(k for k in values if k != 'updated_at')}")
        return record

    def get_item(self, item_id: int) -> ItemRecord:
        with self._uow() as uow:
            record = uow.items.get(item_id)
        if record is None:
            raise NotFoundError("Item", item_id)
        return record

    def list_items(
        self,
        filters: Optional[ItemFilters] = None,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> Page[ItemRecord]:
        if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"page must be 1 or greater and limit between 1 and {MAX_PAGE_SIZE}")
        with self._uow() as uow:
            items, total = uow.items.list(filters, skip=(page - 1) * limit, limit=limit)
        return Page[ItemRecord].build(items, total, page, limit)

    def stock_alerts(self) -> List[StockAlert]:
        with self._uow() as uow:
            items = uow.items.list_all()
        return check_stock_alerts(items)

    # Students

    def register_student(self, student: StudentCreate) -> StudentRecord:
        code = self._identifiers.next_entity_code(self._student_code_prefix)
        with self._uow() as uow:
            record = uow.students.add({
                "student_code": code,
                "name": student.name.strip(),
                "class_level": student.class_level,
                "created_at": utcnow(),
            })
        logger.info(f"Student registered: {record.student_code} {record.name}")
        return record

    def list_students(self, class_level: Optional[str] = None) -> List[StudentRecord]:
        with self._uow() as uow:
            return uow.students.list_all(class_level=class_level)
