"""
Report engine: aggregate views computed on demand.

Nothing here writes. Reports read purchases, catalog items, students and the
procurement tables, and tolerate missing related rows by counting them as
zero (a purchase whose item is gone contributes no cost).
"""
import logging
from collections import OrderedDict, defaultdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Iterable, List, Optional

from bookledger.crud.base import date_bounds
from bookledger.crud.unit_of_work import UnitOfWork
from bookledger.errors import NotFoundError, ValidationError
from bookledger.models import utcnow
from bookledger.schemas.inventory import ItemFilters, ItemRecord
from bookledger.schemas.purchases import PurchaseDetail
from bookledger.schemas.reports import (
    ClassLevelActivityRow,
    DateRange,
    ExpenseCategory,
    FinanceReport,
    InventoryGroupRow,
    InventoryReport,
    ItemSalesRow,
    MonthlySalesRow,
    ReportFilters,
    SalesReport,
    StudentActivityRow,
    StudentReport,
    StudentSalesRow,
    SupplierPerformanceRow,
    SupplierReport,
    SupplierStatement,
    SupplierStatementLine,
)
from bookledger.schemas.suppliers import SupplyOrderStatus

logger = logging.getLogger(__name__)

# Fixed policy: items at or below this many copies are reported as low stock
LOW_STOCK_THRESHOLD = 10

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, ROUND_HALF_UP)


def _percent(part: Decimal, whole: Decimal) -> float:
    if not whole:
        return 0.0
    return round(float(part / whole * 100), 2)


def _check_range(period: Optional[DateRange]) -> DateRange:
    period = period or DateRange()
    if period.start and period.end and period.start > period.end:
        raise ValidationError("start date must not be after end date")
    return period


def supplier_rating(on_time_rate: float) -> float:
    """Placeholder heuristic pending a real supplier scoring rule."""
    return round(min(5.0, 3.5 + on_time_rate / 100 * 1.5), 1)


class ReportEngine:
    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        *,
        today: Optional[Callable[[], date]] = None,
    ):
        self._uow = uow_factory
        self._today = today or (lambda: utcnow().date())

    def _purchases(self, period: DateRange, filters: Optional[ReportFilters]) -> List[PurchaseDetail]:
        lower, upper = date_bounds(period.start, period.end)
        student_id = filters.student_id if filters else None
        with self._uow() as uow:
            purchases = uow.purchases.in_range(lower, upper, student_id=student_id)
        if filters is None:
            return purchases
        if filters.class_level:
            purchases = [p for p in purchases if p.item and p.item.class_level == filters.class_level]
        if filters.subject:
            purchases = [p for p in purchases if p.item and p.item.subject == filters.subject]
        return purchases

    # ====================
    # SALES
    # ====================

    def sales_report(
        self,
        period: Optional[DateRange] = None,
        filters: Optional[ReportFilters] = None,
    ) -> SalesReport:
        period = _check_range(period)
        purchases = self._purchases(period, filters)

        by_item: Dict[int, ItemSalesRow] = {}
        by_student: Dict[Optional[int], StudentSalesRow] = {}
        by_month: Dict[str, MonthlySalesRow] = {}
        total_sales = ZERO
        total_profit = ZERO
        total_quantity = 0

        for p in purchases:
            unit_cost = p.item.unit_cost if p.item else ZERO
            profit = (p.unit_price - unit_cost) * p.quantity
            total_sales += p.total_amount
            total_profit += profit
            total_quantity += p.quantity

            row = by_item.setdefault(
                p.item_id, ItemSalesRow(item_id=p.item_id, title=p.item.title if p.item else None)
            )
            row.quantity += p.quantity
            row.revenue += p.total_amount
            row.profit += profit
            row.purchase_count += 1

            student_key = p.student.id if p.student else None
            srow = by_student.setdefault(
                student_key,
                StudentSalesRow(student_id=student_key, name=p.student.name if p.student else None),
            )
            srow.quantity += p.quantity
            srow.revenue += p.total_amount
            srow.purchase_count += 1

            month = p.created_at.strftime("%Y-%m")
            mrow = by_month.setdefault(month, MonthlySalesRow(month=month))
            mrow.sales += p.total_amount
            mrow.profit += profit
            mrow.transaction_count += 1

        count = len(purchases)
        return SalesReport(
            period=period,
            total_sales=_money(total_sales),
            total_quantity=total_quantity,
            total_profit=_money(total_profit),
            purchase_count=count,
            average_order_value=_money(total_sales / count) if count else _money(ZERO),
            by_item=sorted(by_item.values(), key=lambda r: (-r.revenue, r.item_id)),
            by_student=sorted(by_student.values(), key=lambda r: (-r.revenue, r.student_id or 0)),
            by_month=[by_month[m] for m in sorted(by_month)],
        )

    # ====================
    # INVENTORY
    # ====================

    def inventory_report(
        self,
        filters: Optional[ReportFilters] = None,
        *,
        low_stock_only: bool = False,
    ) -> InventoryReport:
        item_filters = ItemFilters(
            class_level=filters.class_level if filters else None,
            subject=filters.subject if filters else None,
        )
        with self._uow() as uow:
            items = uow.items.list_all(
                item_filters, max_stock=LOW_STOCK_THRESHOLD if low_stock_only else None
            )

        return InventoryReport(
            low_stock_threshold=LOW_STOCK_THRESHOLD,
            total_items=len(items),
            total_stock=sum(i.stock_quantity for i in items),
            total_value=_money(sum((i.unit_price * i.stock_quantity for i in items), ZERO)),
            low_stock=[i for i in items if i.stock_quantity <= LOW_STOCK_THRESHOLD],
            out_of_stock=[i for i in items if i.stock_quantity == 0],
            by_class_level=self._group(items, lambda i: i.class_level),
            by_subject=self._group(items, lambda i: i.subject),
        )

    @staticmethod
    def _group(items: Iterable[ItemRecord], key) -> List[InventoryGroupRow]:
        groups: Dict[str, InventoryGroupRow] = {}
        for item in items:
            row = groups.setdefault(key(item), InventoryGroupRow(key=key(item)))
            row.book_count += 1
            row.stock += item.stock_quantity
            row.value += item.unit_price * item.stock_quantity
        return [groups[k] for k in sorted(groups)]

    # ====================
    # SUPPLIERS
    # ====================

    def supplier_report(
        self,
        period: Optional[DateRange] = None,
        filters: Optional[ReportFilters] = None,
    ) -> SupplierReport:
        period = _check_range(period)
        supplier_id = filters.supplier_id if filters else None
        with self._uow() as uow:
            suppliers = uow.suppliers.list_all(supplier_id=supplier_id)
            orders = uow.suppliers.orders(period.start, period.end, supplier_id=supplier_id)
            payments = uow.suppliers.payments(period.start, period.end, supplier_id=supplier_id)

        orders_by_supplier = defaultdict(list)
        for order in orders:
            if order.status != SupplyOrderStatus.CANCELLED:
                orders_by_supplier[order.supplier_id].append(order)
        paid_by_supplier = defaultdict(lambda: ZERO)
        for payment in payments:
            paid_by_supplier[payment.supplier_id] += payment.amount

        today = self._today()
        rows = []
        for supplier in suppliers:
            supplier_orders = orders_by_supplier[supplier.id]
            total_orders = len(supplier_orders)
            received = [o for o in supplier_orders if o.status == SupplyOrderStatus.RECEIVED]
            order_value = sum((o.total_amount for o in supplier_orders), ZERO)
            paid = paid_by_supplier[supplier.id]
            on_time_rate = round(len(received) / total_orders * 100, 2) if total_orders else 0.0

            rows.append(SupplierPerformanceRow(
                supplier_id=supplier.id,
                name=supplier.name,
                total_orders=total_orders,
                received_orders=len(received),
                total_order_value=_money(order_value),
                total_paid=_money(paid),
                outstanding=_money(order_value - paid),
                average_order_value=_money(order_value / total_orders) if total_orders else _money(ZERO),
                on_time_rate=on_time_rate,
                rating=supplier_rating(on_time_rate),
                overdue_orders=sum(
                    1 for o in received if o.expected_payment_date and o.expected_payment_date < today
                ),
                last_order_date=max((o.supply_date for o in supplier_orders), default=None),
            ))

        return SupplierReport(
            period=period,
            suppliers=rows,
            total_order_value=_money(sum((r.total_order_value for r in rows), ZERO)),
            total_paid=_money(sum((r.total_paid for r in rows), ZERO)),
            total_outstanding=_money(sum((r.outstanding for r in rows), ZERO)),
        )

    def supplier_statement(self, supplier_id: int) -> SupplierStatement:
        """Running balance of orders (owed) and payments (paid), oldest first."""
        with self._uow() as uow:
            supplier = uow.suppliers.get(supplier_id)
            if supplier is None:
                raise NotFoundError("Supplier", supplier_id)
            orders = uow.suppliers.orders(supplier_id=supplier_id)
            payments = uow.suppliers.payments(supplier_id=supplier_id)

        events = [
            (o.supply_date, 0, "order", o.invoice_number, o.total_amount)
            for o in orders
            if o.status != SupplyOrderStatus.CANCELLED
        ]
        events += [(p.payment_date, 1, "payment", p.reference, -p.amount) for p in payments]
        events.sort(key=lambda e: (e[0], e[1]))

        balance = ZERO
        lines = []
        for entry_date, _, kind, reference, amount in events:
            balance += amount
            lines.append(SupplierStatementLine(
                entry_date=entry_date,
                kind=kind,
                reference=reference,
                amount=_money(abs(amount)),
                balance=_money(balance),
            ))
        return SupplierStatement(
            supplier_id=supplier.id,
            name=supplier.name,
            lines=lines,
            closing_balance=_money(balance),
        )

    # ====================
    # FINANCE
    # ====================

    def finance_report(self, period: Optional[DateRange] = None) -> FinanceReport:
        period = _check_range(period)
        purchases = self._purchases(period, None)
        with self._uow() as uow:
            received = uow.suppliers.orders(
                period.start, period.end, status=SupplyOrderStatus.RECEIVED.value
            )

        revenue = sum((p.total_amount for p in purchases), ZERO)
        cogs = sum(((p.item.unit_cost if p.item else ZERO) * p.quantity for p in purchases), ZERO)
        operating_expenses = sum((o.total_amount for o in received), ZERO)
        gross_profit = revenue - cogs
        net_profit = gross_profit - operating_expenses

        categories = OrderedDict([
            ("Cost of Goods Sold", cogs),
            ("Inventory Purchases", operating_expenses),
        ])
        breakdown = [
            ExpenseCategory(category=name, amount=_money(amount), percentage_of_revenue=_percent(amount, revenue))
            for name, amount in categories.items()
            if amount
        ]

        return FinanceReport(
            period=period,
            revenue=_money(revenue),
            cogs=_money(cogs),
            gross_profit=_money(gross_profit),
            operating_expenses=_money(operating_expenses),
            net_profit=_money(net_profit),
            profit_margin=_percent(net_profit, revenue),
            expense_breakdown=breakdown,
        )

    # ====================
    # STUDENTS
    # ====================

    def student_report(
        self,
        period: Optional[DateRange] = None,
        filters: Optional[ReportFilters] = None,
    ) -> StudentReport:
        period = _check_range(period)
        class_level = filters.class_level if filters else None
        student_id = filters.student_id if filters else None
        lower, upper = date_bounds(period.start, period.end)
        with self._uow() as uow:
            students = uow.students.list_all(class_level=class_level, student_id=student_id)
            purchases = uow.purchases.in_range(lower, upper, student_id=student_id)

        rows = {
            s.id: StudentActivityRow(
                student_id=s.id, student_code=s.student_code, name=s.name, class_level=s.class_level
            )
            for s in students
        }
        for p in purchases:
            row = rows.get(p.student_id)
            if row is None:
                continue
            row.total_spent += p.total_amount
            row.total_books += p.quantity
            row.purchase_count += 1

        levels: Dict[str, ClassLevelActivityRow] = {}
        for row in rows.values():
            level = levels.setdefault(row.class_level, ClassLevelActivityRow(class_level=row.class_level))
            level.students += 1
            level.total_spent += row.total_spent
            level.total_books += row.total_books
            if row.purchase_count:
                level.active_students += 1

        total_students = len(rows)
        total_spent = sum((r.total_spent for r in rows.values()), ZERO)
        return StudentReport(
            period=period,
            total_students=total_students,
            active_students=sum(1 for r in rows.values() if r.purchase_count),
            total_spent=_money(total_spent),
            total_books=sum(r.total_books for r in rows.values()),
            average_spent=_money(total_spent / total_students) if total_students else _money(ZERO),
            students=sorted(rows.values(), key=lambda r: (-r.total_spent, r.name)),
            by_class_level=[levels[k] for k in sorted(levels)],
        )
