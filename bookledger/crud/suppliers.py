"""
Read-only access to the procurement tables.
"""
from datetime import date
from typing import List, Optional

from sqlalchemy import select

from bookledger.crud.base import CRUDBase
from bookledger.models import Supplier, SupplierPayment, SupplyOrder
from bookledger.schemas.suppliers import SupplierPaymentRecord, SupplierRecord, SupplyOrderRecord


class SupplierRepository(CRUDBase[Supplier, SupplierRecord]):
    model = Supplier
    record = SupplierRecord

    def list_all(self, *, supplier_id: Optional[int] = None) -> List[SupplierRecord]:
        stmt = select(Supplier)
        if supplier_id is not None:
            stmt = stmt.where(Supplier.id == supplier_id)
        with self._guard("listing"):
            rows = self.db.execute(stmt.order_by(Supplier.name, Supplier.id)).scalars().all()
        return [self.to_record(row) for row in rows]

    def orders(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        *,
        supplier_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> List[SupplyOrderRecord]:
        """Supply orders with supply_date within [start, end] inclusive"""
        stmt = select(SupplyOrder)
        if start is not None:
            stmt = stmt.where(SupplyOrder.supply_date >= start)
        if end is not None:
            stmt = stmt.where(SupplyOrder.supply_date <= end)
        if supplier_id is not None:
            stmt = stmt.where(SupplyOrder.supplier_id == supplier_id)
        if status is not None:
            stmt = stmt.where(SupplyOrder.status == status)
        with self._guard("listing orders of"):
            rows = self.db.execute(stmt.order_by(SupplyOrder.supply_date, SupplyOrder.id)).scalars().all()
        return [SupplyOrderRecord.model_validate(row) for row in rows]

    def payments(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        *,
        supplier_id: Optional[int] = None,
    ) -> List[SupplierPaymentRecord]:
        stmt = select(SupplierPayment)
        if start is not None:
            stmt = stmt.where(SupplierPayment.payment_date >= start)
        if end is not None:
            stmt = stmt.where(SupplierPayment.payment_date <= end)
        if supplier_id is not None:
            stmt = stmt.where(SupplierPayment.supplier_id == supplier_id)
        with self._guard("listing payments of"):
            rows = self.db.execute(
                stmt.order_by(SupplierPayment.payment_date, SupplierPayment.id)
            ).scalars().all()
        return [SupplierPaymentRecord.model_validate(row) for row in rows]
