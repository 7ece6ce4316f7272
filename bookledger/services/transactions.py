"""
Transaction manager: the only writer of Item.stock_quantity and the ledger.

Every operation is one unit of work. Stock moves in two phases: compute the
delta, then issue one conditional update that refuses to take stock below
zero. A ledger entry is appended in the same transaction for every movement,
so for every item

    stock_quantity == opening_stock + SUM(ledger.delta_quantity)

holds whether an operation succeeds or fails.
"""
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable, List, Optional, Tuple

from bookledger.crud.base import date_bounds
from bookledger.crud.unit_of_work import UnitOfWork
from bookledger.errors import (
    ConcurrencyConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from bookledger.models import utcnow
from bookledger.schemas.common import Page
from bookledger.schemas.inventory import (
    ChangeType,
    LedgerEntryRecord,
    ReconciliationRecord,
    StockAdjustmentResult,
)
from bookledger.schemas.purchases import PurchaseDetail, PurchaseFilters, PurchaseRecord
from bookledger.services.identifiers import IdentifierGenerator

logger = logging.getLogger(__name__)

# Internal retries after a ConcurrencyConflictError before it is surfaced
CONFLICT_RETRIES = 1
MAX_PAGE_SIZE = 100
CENTS = Decimal("0.01")


def require_positive_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return value


def require_money(name: str, value) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{name} is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number")
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{name} must be zero or greater")
    return amount.quantize(CENTS, ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Decimal) -> Decimal:
    return (unit_price * quantity).quantize(CENTS, ROUND_HALF_UP)


class TransactionManager:
    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        identifiers: IdentifierGenerator,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._uow = uow_factory
        self._identifiers = identifiers
        self._clock = clock or utcnow

    # ====================
    # STOCK MOVEMENTS
    # ====================

    def _run(self, operation: str, work):
        """Run work(uow) in a fresh unit of work, retrying a lost race once."""
        for attempt in range(CONFLICT_RETRIES + 1):
            try:
                with self._uow() as uow:
                    return work(uow)
            except ConcurrencyConflictError:
                if attempt == CONFLICT_RETRIES:
                    logger.error(f"{operation}: concurrency conflict persisted after {attempt + 1} attempts")
                    raise
                logger.warning(f"{operation}: concurrency conflict, retrying")

    def _move_stock(
        self,
        uow: UnitOfWork,
        item_id: int,
        delta: int,
        change_type: ChangeType,
        reason: str,
        at: datetime,
    ) -> Tuple[LedgerEntryRecord, int]:
        new_stock = uow.items.apply_stock_delta(item_id, delta, expected_minimum=max(0, -delta))
        if new_stock is None:
            available = uow.items.current_stock(item_id)
            if available is None:
                raise NotFoundError("Item", item_id)
            if available + delta < 0:
                logger.warning(f"Stock for item {item_id} is {available}, cannot apply {delta} ({reason})")
                raise InsufficientStockError(item_id, -delta, available)
            raise ConcurrencyConflictError(f"Stock update for item {item_id} did not apply")

        entry = uow.ledger.append(
            item_id=item_id,
            delta_quantity=delta,
            change_type=change_type,
            reason=reason,
            created_at=at,
        )
        return entry, new_stock

    # ====================
    # PURCHASES
    # ====================

    def create_purchase(self, student_id: int, item_id: int, quantity: int, unit_price) -> PurchaseRecord:
        student_id = require_positive_int("student_id", student_id)
        item_id = require_positive_int("item_id", item_id)
        quantity = require_positive_int("quantity", quantity)
        unit_price = require_money("unit_price", unit_price)

        with self._uow() as uow:
            item = uow.items.get(item_id)
            if item is None:
                raise NotFoundError("Item", item_id)
            if uow.students.get(student_id) is None:
                raise NotFoundError("Student", student_id)
            if item.stock_quantity < quantity:
                logger.warning(
                    f"Rejected purchase of {quantity} x item {item_id}: only {item.stock_quantity} in stock"
                )
                raise InsufficientStockError(item_id, quantity, item.stock_quantity)

        receipt_number = self._identifiers.next_receipt_number()
        total_amount = line_total(quantity, unit_price)

        def work(uow: UnitOfWork) -> PurchaseRecord:
            now = self._clock()
            self._move_stock(uow, item_id, -quantity, ChangeType.OUT, receipt_number, now)
            return uow.purchases.add({
                "student_id": student_id,
                "item_id": item_id,
                "quantity": quantity,
                "unit_price": unit_price,
                "total_amount": total_amount,
                "receipt_number": receipt_number,
                "created_at": now,
                "updated_at": now,
            })

        purchase = self._run("create_purchase", work)
        logger.info(
            f"Purchase {receipt_number}: student {student_id} bought {quantity} x item {item_id} for {total_amount}"
        )
        return purchase

    def update_purchase(
        self,
        purchase_id: int,
        quantity: int,
        unit_price,
        *,
        item_id: Optional[int] = None,
        student_id: Optional[int] = None,
    ) -> PurchaseRecord:
        purchase_id = require_positive_int("purchase_id", purchase_id)
        quantity = require_positive_int("quantity", quantity)
        unit_price = require_money("unit_price", unit_price)
        if item_id is not None:
            item_id = require_positive_int("item_id", item_id)
        if student_id is not None:
            student_id = require_positive_int("student_id", student_id)

        def work(uow: UnitOfWork) -> PurchaseRecord:
            current = uow.purchases.get_for_update(purchase_id)
            if current is None:
                raise NotFoundError("Purchase", purchase_id)

            now = self._clock()
            reason = f"update:{current.receipt_number}"
            new_item_id = item_id or current.item_id

            if student_id is not None and student_id != current.student_id:
                if uow.students.get(student_id) is None:
                    raise NotFoundError("Student", student_id)

            if new_item_id != current.item_id:
                if uow.items.get(new_item_id) is None:
                    raise NotFoundError("Item", new_item_id)
                moves = sorted([(current.item_id, current.quantity), (new_item_id, -quantity)])
                # Lock items in ascending id order
                for move_item_id, delta in moves:
                    self._move_stock(uow, move_item_id, delta, ChangeType.ADJUST, reason, now)
            else:
                # Positive delta returns stock, negative takes more
                delta = current.quantity - quantity
                if delta != 0:
                    self._move_stock(uow, current.item_id, delta, ChangeType.ADJUST, reason, now)

            values = {
                "item_id": new_item_id,
                "quantity": quantity,
                "unit_price": unit_price,
                "total_amount": line_total(quantity, unit_price),
                "updated_at": now,
            }
            if student_id is not None:
                values["student_id"] = student_id
            updated = uow.purchases.update_if_unchanged(current, values)
            if updated is None:
                raise ConcurrencyConflictError(f"Purchase {purchase_id} changed while it was being updated")
            return updated

        purchase = self._run("update_purchase", work)
        logger.info(
            f"Purchase {purchase.receipt_number} updated: {purchase.quantity} x item {purchase.item_id} "
            f"for {purchase.total_amount}"
        )
        return purchase

    def delete_purchase(self, purchase_id: int) -> PurchaseRecord:
        """Remove a purchase and return its stock. The reversal stays in the ledger."""
        purchase_id = require_positive_int("purchase_id", purchase_id)

        def work(uow: UnitOfWork) -> PurchaseRecord:
            current = uow.purchases.get_for_update(purchase_id)
            if current is None:
                raise NotFoundError("Purchase", purchase_id)
            self._move_stock(
                uow,
                current.item_id,
                current.quantity,
                ChangeType.IN,
                f"reversal:{current.receipt_number}",
                self._clock(),
            )
            if uow.purchases.remove(purchase_id) is None:
                # Already deleted by a concurrent writer
                raise NotFoundError("Purchase", purchase_id)
            return current

        purchase = self._run("delete_purchase", work)
        logger.info(f"Purchase {purchase.receipt_number} deleted, {purchase.quantity} returned to item {purchase.item_id}")
        return purchase

    def adjust_stock(
        self,
        item_id: int,
        delta: int,
        reason: str,
        change_type: ChangeType = ChangeType.ADJUST,
    ) -> StockAdjustmentResult:
        """Manual corrections and supply receipts; no purchase row involved."""
        item_id = require_positive_int("item_id", item_id)
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise ValidationError("delta must be a non-zero integer")
        if not reason or not reason.strip():
            raise ValidationError("reason is required")
        change_type = ChangeType(change_type)
        if change_type == ChangeType.IN and delta < 0:
            raise ValidationError("IN adjustments must add stock")
        if change_type == ChangeType.OUT and delta > 0:
            raise ValidationError("OUT adjustments must remove stock")

        def work(uow: UnitOfWork) -> StockAdjustmentResult:
            entry, new_stock = self._move_stock(uow, item_id, delta, change_type, reason.strip(), self._clock())
            return StockAdjustmentResult(entry=entry, stock_quantity=new_stock)

        result = self._run("adjust_stock", work)
        logger.info(f"Stock of item {item_id} adjusted by {delta} ({change_type.value}: {reason}), now {result.stock_quantity}")
        return result

    # ====================
    # READS
    # ====================

    def get_purchase(self, purchase_id: int) -> PurchaseDetail:
        with self._uow() as uow:
            purchase = uow.purchases.get_detail(purchase_id)
        if purchase is None:
            raise NotFoundError("Purchase", purchase_id)
        return purchase

    def list_purchases(
        self,
        filters: Optional[PurchaseFilters] = None,
        *,
        page: int = 1,
        limit: int = 10,
    ) -> Page[PurchaseDetail]:
        if page < 1:
            raise ValidationError("page must be 1 or greater")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if filters and filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError("start_date must not be after end_date")

        with self._uow() as uow:
            items, total = uow.purchases.list_detailed(filters, skip=(page - 1) * limit, limit=limit)
        return Page[PurchaseDetail].build(items, total, page, limit)

    def item_ledger(
        self,
        item_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[LedgerEntryRecord]:
        if start and end and start > end:
            raise ValidationError("start must not be after end")
        lower, upper = date_bounds(start, end)
        with self._uow() as uow:
            if uow.items.get(item_id) is None:
                raise NotFoundError("Item", item_id)
            return uow.ledger.for_item(item_id, start=lower, end=upper)

    def reconcile(self, item_id: int) -> ReconciliationRecord:
        with self._uow() as uow:
            item = uow.items.get(item_id)
            if item is None:
                raise NotFoundError("Item", item_id)
            ledger_total = uow.ledger.total_for_item(item_id)
        return self._reconciliation(item, ledger_total)

    def reconcile_all(self) -> List[ReconciliationRecord]:
        with self._uow() as uow:
            items = uow.items.list_all()
            totals = uow.ledger.totals_by_item()
        results = [self._reconciliation(item, totals.get(item.id, 0)) for item in items]
        drifted = [r.item_id for r in results if not r.balanced]
        if drifted:
            logger.error(f"Stock does not reconcile with the ledger for items {drifted}")
        return results

    @staticmethod
    def _reconciliation(item, ledger_total: int) -> ReconciliationRecord:
        expected = item.opening_stock + ledger_total
        return ReconciliationRecord(
            item_id=item.id,
            title=item.title,
            opening_stock=item.opening_stock,
            ledger_total=ledger_total,
            expected_stock=expected,
            stock_quantity=item.stock_quantity,
            balanced=expected == item.stock_quantity,
        )
