import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.orm import joinedload

from bookledger.crud.base import CRUDBase, date_bounds
from bookledger.models import Item, Purchase, Student
from bookledger.schemas.purchases import PurchaseDetail, PurchaseFilters, PurchaseRecord

logger = logging.getLogger(__name__)


class PurchaseRepository(CRUDBase[Purchase, PurchaseRecord]):
    model = Purchase
    record = PurchaseRecord

    def _detailed(self):
        return select(Purchase).options(joinedload(Purchase.item), joinedload(Purchase.student))

    def _to_detail(self, obj: Purchase) -> PurchaseDetail:
        return PurchaseDetail.model_validate(obj)

    def get_for_update(self, id: int) -> Optional[PurchaseRecord]:
        """Read a purchase and hold its row lock until the transaction ends"""
        with self._guard("locking"):
            obj = self.db.execute(
                select(Purchase)
                .where(Purchase.id == id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        return self.to_record(obj) if obj is not None else None

    def update_if_unchanged(
        self,
        current: PurchaseRecord,
        values: Dict[str, Any],
    ) -> Optional[PurchaseRecord]:
        """
        Write values only if item and quantity still match what was read.
        Returns None when another writer got there first.
        """
        stmt = (
            update(Purchase)
            .where(
                Purchase.id == current.id,
                Purchase.item_id == current.item_id,
                Purchase.quantity == current.quantity,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._guard("updating"):
            if self.db.execute(stmt).rowcount == 0:
                return None
        return self.get(current.id)

    def get_detail(self, id: int) -> Optional[PurchaseDetail]:
        with self._guard("getting"):
            obj = self.db.execute(self._detailed().where(Purchase.id == id)).unique().scalar_one_or_none()
        return self._to_detail(obj) if obj is not None else None

    def list_detailed(
        self,
        filters: Optional[PurchaseFilters] = None,
        *,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[PurchaseDetail], int]:
        """Purchases joined with item and student summaries, newest first"""
        stmt = select(Purchase)
        if filters is not None:
            if filters.student_id:
                stmt = stmt.where(Purchase.student_id == filters.student_id)
            if filters.item_id:
                stmt = stmt.where(Purchase.item_id == filters.item_id)
            lower, upper = date_bounds(filters.start_date, filters.end_date)
            if lower is not None:
                stmt = stmt.where(Purchase.created_at >= lower)
            if upper is not None:
                stmt = stmt.where(Purchase.created_at < upper)
            if filters.search:
                pattern = f"%{filters.search}%"
                stmt = (
                    stmt.outerjoin(Student, Purchase.student_id == Student.id)
                    .join(Item, Purchase.item_id == Item.id)
                    .where(or_(Student.name.ilike(pattern), Item.title.ilike(pattern)))
                )

        total = self.count(stmt)
        stmt = (
            stmt.options(joinedload(Purchase.item), joinedload(Purchase.student))
            .order_by(Purchase.created_at.desc(), Purchase.id.desc())
            .offset(skip)
            .limit(limit)
        )
        with self._guard("listing"):
            rows = self.db.execute(stmt).unique().scalars().all()
        return [self._to_detail(row) for row in rows], total

    def in_range(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        *,
        student_id: Optional[int] = None,
    ) -> List[PurchaseDetail]:
        """All purchases with created_at in [start, end), oldest first"""
        stmt = self._detailed()
        if start is not None:
            stmt = stmt.where(Purchase.created_at >= start)
        if end is not None:
            stmt = stmt.where(Purchase.created_at < end)
        if student_id is not None:
            stmt = stmt.where(Purchase.student_id == student_id)
        with self._guard("listing"):
            rows = self.db.execute(stmt.order_by(Purchase.created_at, Purchase.id)).unique().scalars().all()
        return [self._to_detail(row) for row in rows]
