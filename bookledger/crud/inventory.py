"""
Catalog and ledger repositories:
- Item.stock_quantity only moves through apply_stock_delta (conditional update)
- Append-only ledger
- No commits here; the unit of work decides
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select, update

from bookledger.crud.base import CRUDBase
from bookledger.models import Item, StockLedgerEntry, utcnow
from bookledger.schemas.inventory import ChangeType, ItemFilters, ItemRecord, LedgerEntryRecord

logger = logging.getLogger(__name__)


class ItemRepository(CRUDBase[Item, ItemRecord]):
    model = Item
    record = ItemRecord

    def _filtered(self, filters: Optional[ItemFilters]):
        stmt = select(Item)
        if filters is None:
            return stmt
        if filters.class_level:
            stmt = stmt.where(Item.class_level == filters.class_level)
        if filters.subject:
            stmt = stmt.where(Item.subject == filters.subject)
        if filters.supplier_name:
            stmt = stmt.where(Item.supplier_name == filters.supplier_name)
        if filters.search:
            pattern = f"%{filters.search}%"
            stmt = stmt.where(
                or_(Item.title.ilike(pattern), Item.subject.ilike(pattern), Item.class_level.ilike(pattern))
            )
        return stmt

    def list(self, filters: Optional[ItemFilters] = None, *, skip: int = 0, limit: int = 100) -> Tuple[List[ItemRecord], int]:
        """Filtered, paginated listing, newest first"""
        stmt = self._filtered(filters)
        total = self.count(stmt)
        with self._guard("listing"):
            rows = self.db.execute(
                stmt.order_by(Item.created_at.desc(), Item.id.desc()).offset(skip).limit(limit)
            ).scalars().all()
        return [self.to_record(row) for row in rows], total

    def list_all(self, filters: Optional[ItemFilters] = None, *, max_stock: Optional[int] = None) -> List[ItemRecord]:
        """Unpaginated listing ordered by stock ascending, for reports"""
        stmt = self._filtered(filters)
        if max_stock is not None:
            stmt = stmt.where(Item.stock_quantity <= max_stock)
        with self._guard("listing"):
            rows = self.db.execute(stmt.order_by(Item.stock_quantity, Item.id)).scalars().all()
        return [self.to_record(row) for row in rows]

    def get_many(self, ids) -> Dict[int, ItemRecord]:
        ids = set(ids)
        if not ids:
            return {}
        with self._guard("getting"):
            rows = self.db.execute(select(Item).where(Item.id.in_(ids))).scalars().all()
        return {row.id: self.to_record(row) for row in rows}

    def current_stock(self, item_id: int) -> Optional[int]:
        with self._guard("reading stock of"):
            return self.db.execute(
                select(Item.stock_quantity).where(Item.id == item_id)
            ).scalar_one_or_none()

    def apply_stock_delta(self, item_id: int, delta: int, expected_minimum: int) -> Optional[int]:
        """
        Atomic conditional update: add delta only if stock_quantity >= expected_minimum.

        The check and the write are one statement, so there is no window for a
        concurrent writer between them. Returns the new stock, or None when no
        row matched (missing item or not enough stock).
        """
        stmt = (
            update(Item)
            .where(Item.id == item_id, Item.stock_quantity >= expected_minimum)
            .values(stock_quantity=Item.stock_quantity + delta, updated_at=utcnow())
            .returning(Item.stock_quantity)
            .execution_options(synchronize_session=False)
        )
        with self._guard("updating stock of"):
            return self.db.execute(stmt).scalar_one_or_none()


class LedgerRepository(CRUDBase[StockLedgerEntry, LedgerEntryRecord]):
    model = StockLedgerEntry
    record = LedgerEntryRecord

    def append(
        self,
        *,
        item_id: int,
        delta_quantity: int,
        change_type: ChangeType,
        reason: str,
        created_at: Optional[datetime] = None,
    ) -> LedgerEntryRecord:
        """Create ledger entry (append-only)"""
        values = {
            "item_id": item_id,
            "delta_quantity": delta_quantity,
            "change_type": change_type.value,
            "reason": reason,
        }
        if created_at is not None:
            values["created_at"] = created_at
        return self.add(values)

    def for_item(
        self,
        item_id: int,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[LedgerEntryRecord]:
        """Ledger entries for one item, oldest first, within [start, end)"""
        return self.query(item_id=item_id, start=start, end=end, skip=skip, limit=limit)

    def query(
        self,
        *,
        item_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[LedgerEntryRecord]:
        stmt = select(StockLedgerEntry)
        if item_id is not None:
            stmt = stmt.where(StockLedgerEntry.item_id == item_id)
        if start is not None:
            stmt = stmt.where(StockLedgerEntry.created_at >= start)
        if end is not None:
            stmt = stmt.where(StockLedgerEntry.created_at < end)
        stmt = stmt.order_by(StockLedgerEntry.created_at, StockLedgerEntry.id).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._guard("querying"):
            rows = self.db.execute(stmt).scalars().all()
        return [self.to_record(row) for row in rows]

    def total_for_item(self, item_id: int) -> int:
        """SUM of delta_quantity for one item"""
        with self._guard("summing"):
            return self.db.execute(
                select(func.coalesce(func.sum(StockLedgerEntry.delta_quantity), 0)).where(
                    StockLedgerEntry.item_id == item_id
                )
            ).scalar_one()

    def totals_by_item(self) -> Dict[int, int]:
        with self._guard("summing"):
            rows = self.db.execute(
                select(StockLedgerEntry.item_id, func.sum(StockLedgerEntry.delta_quantity)).group_by(
                    StockLedgerEntry.item_id
                )
            ).all()
        return {item_id: int(total) for item_id, total in rows}
