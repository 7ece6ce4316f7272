"""Transaction manager tests: stock movements, ledger entries and reconciliation.

Covers:
- create/update/delete purchase and manual adjustments
- rejected operations leave stock, ledger and purchases untouched
- stock == opening_stock + sum(ledger) after every operation
"""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from bookledger.crud import UnitOfWork
from bookledger.errors import (
    ConcurrencyConflictError,
    InsufficientStockError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from bookledger.models import Purchase, StockLedgerEntry
from bookledger.schemas.inventory import ChangeType
from bookledger.schemas.purchases import PurchaseFilters
from bookledger.services import TransactionManager


def ledger_deltas(transactions, item_id):
    return [entry.delta_quantity for entry in transactions.item_ledger(item_id)]


def row_count(session_factory, model):
    with session_factory() as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


def assert_balanced(transactions):
    assert all(r.balanced for r in transactions.reconcile_all())


class TestCreatePurchase:
    def test_worked_example(self, transactions, catalog, item, student):
        """Stock 10 -> 7 on purchase of 3 at 20; delete brings it back to 10."""
        purchase = transactions.create_purchase(student.id, item.id, 3, Decimal("20"))

        assert purchase.total_amount == Decimal("60.00")
        assert purchase.quantity == 3
        assert catalog.get_item(item.id).stock_quantity == 7
        assert ledger_deltas(transactions, item.id) == [-3]

        transactions.delete_purchase(purchase.id)

        assert catalog.get_item(item.id).stock_quantity == 10
        assert ledger_deltas(transactions, item.id) == [-3, 3]
        assert_balanced(transactions)

    def test_receipt_number_assigned(self, transactions, item, student):
        purchase = transactions.create_purchase(student.id, item.id, 1, Decimal("20"))
        assert purchase.receipt_number == "RCP-20260314-000001"

    def test_ledger_entry_is_out_with_receipt_reason(self, transactions, item, student):
        purchase = transactions.create_purchase(student.id, item.id, 2, Decimal("20"))
        [entry] = transactions.item_ledger(item.id)

        assert entry.change_type == ChangeType.OUT
        assert entry.reason == purchase.receipt_number

    def test_insufficient_stock_writes_nothing(self, transactions, session_factory, catalog, item, student):
        with pytest.raises(InsufficientStockError) as exc_info:
            transactions.create_purchase(student.id, item.id, 11, Decimal("20"))

        assert exc_info.value.requested == 11
        assert exc_info.value.available == 10
        assert catalog.get_item(item.id).stock_quantity == 10
        assert row_count(session_factory, StockLedgerEntry) == 0
        assert row_count(session_factory, Purchase) == 0

    def test_exact_remaining_stock_can_be_sold(self, transactions, catalog, item, student):
        transactions.create_purchase(student.id, item.id, 10, Decimal("20"))
        assert catalog.get_item(item.id).stock_quantity == 0

        with pytest.raises(InsufficientStockError):
            transactions.create_purchase(student.id, item.id, 1, Decimal("20"))

    def test_unknown_item(self, transactions, student):
        with pytest.raises(NotFoundError):
            transactions.create_purchase(student.id, 999, 1, Decimal("20"))

    def test_unknown_student(self, transactions, item):
        with pytest.raises(NotFoundError):
            transactions.create_purchase(999, item.id, 1, Decimal("20"))

    @pytest.mark.parametrize(
        "quantity, unit_price",
        [(0, Decimal("20")), (-2, Decimal("20")), (1, Decimal("-1")), (1, None), (1, "abc"), (True, Decimal("1"))],
    )
    def test_invalid_input_rejected_before_any_write(
        self, transactions, session_factory, item, student, quantity, unit_price
    ):
        with pytest.raises(ValidationError):
            transactions.create_purchase(student.id, item.id, quantity, unit_price)
        assert row_count(session_factory, StockLedgerEntry) == 0

    def test_total_is_rounded_to_cents(self, transactions, item, student):
        purchase = transactions.create_purchase(student.id, item.id, 3, "3.333")
        assert purchase.unit_price == Decimal("3.33")
        assert purchase.total_amount == Decimal("9.99")


class TestUpdatePurchase:
    @pytest.fixture
    def purchase(self, transactions, item, student):
        return transactions.create_purchase(student.id, item.id, 3, Decimal("20"))

    def test_reducing_quantity_returns_stock(self, transactions, catalog, item, purchase):
        updated = transactions.update_purchase(purchase.id, 1, Decimal("20"))

        assert updated.quantity == 1
        assert updated.total_amount == Decimal("20.00")
        assert catalog.get_item(item.id).stock_quantity == 9
        assert ledger_deltas(transactions, item.id) == [-3, 2]
        assert_balanced(transactions)

    def test_increasing_quantity_takes_stock(self, transactions, catalog, item, purchase):
        transactions.update_purchase(purchase.id, 5, Decimal("18"))

        assert catalog.get_item(item.id).stock_quantity == 5
        entries = transactions.item_ledger(item.id)
        assert entries[-1].delta_quantity == -2
        assert entries[-1].change_type == ChangeType.ADJUST
        assert entries[-1].reason == f"update:{purchase.receipt_number}"

    def test_increase_beyond_stock_leaves_state_unchanged(self, transactions, catalog, item, purchase):
        with pytest.raises(InsufficientStockError):
            transactions.update_purchase(purchase.id, 11, Decimal("20"))

        assert catalog.get_item(item.id).stock_quantity == 7
        assert transactions.get_purchase(purchase.id).quantity == 3
        assert ledger_deltas(transactions, item.id) == [-3]

    def test_price_only_change_writes_no_ledger_entry(self, transactions, item, purchase):
        updated = transactions.update_purchase(purchase.id, 3, Decimal("25"))

        assert updated.total_amount == Decimal("75.00")
        assert ledger_deltas(transactions, item.id) == [-3]

    def test_moving_to_another_item(self, transactions, catalog, make_item, item, purchase):
        other = make_item(title="English Reader 4", subject="English", opening_stock=4)

        updated = transactions.update_purchase(purchase.id, 2, Decimal("15"), item_id=other.id)

        assert updated.item_id == other.id
        assert catalog.get_item(item.id).stock_quantity == 10
        assert catalog.get_item(other.id).stock_quantity == 2
        assert ledger_deltas(transactions, item.id) == [-3, 3]
        assert ledger_deltas(transactions, other.id) == [-2]
        assert_balanced(transactions)

    def test_moving_to_item_without_capacity_rolls_back_both(self, transactions, catalog, make_item, item, purchase):
        other = make_item(title="English Reader 4", subject="English", opening_stock=1)

        with pytest.raises(InsufficientStockError):
            transactions.update_purchase(purchase.id, 2, Decimal("15"), item_id=other.id)

        assert catalog.get_item(item.id).stock_quantity == 7
        assert catalog.get_item(other.id).stock_quantity == 1
        assert ledger_deltas(transactions, other.id) == []
        assert_balanced(transactions)

    def test_moving_locks_items_in_ascending_id_order(
        self, uow_factory, identifiers, catalog, make_item, item, student, monkeypatch
    ):
        """Two moves between the same pair of items must take their row locks in one order."""
        from bookledger.crud.inventory import ItemRepository

        other = make_item(title="English Reader 4", subject="English", opening_stock=6)
        assert item.id < other.id
        transactions = TransactionManager(uow_factory, identifiers)
        purchase = transactions.create_purchase(student.id, other.id, 2, Decimal("15"))

        real_apply = ItemRepository.apply_stock_delta
        order = []

        def recording_apply(self, item_id, delta, expected_minimum):
            order.append(item_id)
            return real_apply(self, item_id, delta, expected_minimum)

        monkeypatch.setattr(ItemRepository, "apply_stock_delta", recording_apply)

        transactions.update_purchase(purchase.id, 3, Decimal("20"), item_id=item.id)

        assert order == [item.id, other.id]
        assert catalog.get_item(item.id).stock_quantity == 7
        assert catalog.get_item(other.id).stock_quantity == 6
        assert ledger_deltas(transactions, item.id) == [-3]
        assert ledger_deltas(transactions, other.id) == [-2, 2]
        assert_balanced(transactions)

    def test_changing_student(self, transactions, make_student, purchase):
        other = make_student(name="Kofi Boateng")
        updated = transactions.update_purchase(purchase.id, 3, Decimal("20"), student_id=other.id)
        assert updated.student_id == other.id

    def test_unknown_purchase(self, transactions):
        with pytest.raises(NotFoundError):
            transactions.update_purchase(12345, 1, Decimal("1"))


class TestDeletePurchase:
    def test_reversal_entry_outlives_purchase(self, transactions, item, student):
        purchase = transactions.create_purchase(student.id, item.id, 4, Decimal("20"))

        deleted = transactions.delete_purchase(purchase.id)

        assert deleted.receipt_number == purchase.receipt_number
        with pytest.raises(NotFoundError):
            transactions.get_purchase(purchase.id)
        last = transactions.item_ledger(item.id)[-1]
        assert last.delta_quantity == 4
        assert last.change_type == ChangeType.IN
        assert last.reason == f"reversal:{purchase.receipt_number}"

    def test_earlier_entries_are_never_rewritten(self, transactions, item, student):
        purchase = transactions.create_purchase(student.id, item.id, 4, Decimal("20"))
        before = transactions.item_ledger(item.id)

        transactions.update_purchase(purchase.id, 2, Decimal("20"))
        transactions.delete_purchase(purchase.id)

        after = transactions.item_ledger(item.id)
        assert after[: len(before)] == before
        assert [e.delta_quantity for e in after] == [-4, 2, 2]

    def test_deleting_twice(self, transactions, item, student):
        purchase = transactions.create_purchase(student.id, item.id, 1, Decimal("20"))
        transactions.delete_purchase(purchase.id)

        with pytest.raises(NotFoundError):
            transactions.delete_purchase(purchase.id)
        assert ledger_deltas(transactions, item.id) == [-1, 1]


class TestAdjustStock:
    def test_supply_receipt(self, transactions, item):
        result = transactions.adjust_stock(item.id, 25, "supply INV-001", ChangeType.IN)

        assert result.stock_quantity == 35
        assert result.entry.change_type == ChangeType.IN
        assert_balanced(transactions)

    def test_correction_cannot_go_negative(self, transactions, catalog, item):
        with pytest.raises(InsufficientStockError):
            transactions.adjust_stock(item.id, -11, "stock count")
        assert catalog.get_item(item.id).stock_quantity == 10

    def test_write_off(self, transactions, item):
        result = transactions.adjust_stock(item.id, -10, "water damage")
        assert result.stock_quantity == 0

    @pytest.mark.parametrize(
        "delta, reason, change_type",
        [(0, "x", ChangeType.ADJUST), (5, "  ", ChangeType.ADJUST), (-1, "x", ChangeType.IN), (1, "x", ChangeType.OUT)],
    )
    def test_invalid_adjustments(self, transactions, item, delta, reason, change_type):
        with pytest.raises(ValidationError):
            transactions.adjust_stock(item.id, delta, reason, change_type)

    def test_unknown_item(self, transactions):
        with pytest.raises(NotFoundError):
            transactions.adjust_stock(404, 1, "found a box")


class TestReads:
    def test_list_purchases_paginates_newest_first(self, transactions, item, student):
        created = [transactions.create_purchase(student.id, item.id, 1, Decimal("20")) for _ in range(3)]

        page = transactions.list_purchases(page=1, limit=2)

        assert page.total == 3
        assert page.pages == 2
        assert [p.id for p in page.items] == [created[2].id, created[1].id]
        assert page.items[0].item.title == item.title
        assert page.items[0].student.name == student.name

    def test_list_purchases_search_by_student_name(self, transactions, item, student, make_student):
        other = make_student(name="Kofi Boateng")
        transactions.create_purchase(student.id, item.id, 1, Decimal("20"))
        transactions.create_purchase(other.id, item.id, 1, Decimal("20"))

        page = transactions.list_purchases(PurchaseFilters(search="kofi"))

        assert page.total == 1
        assert page.items[0].student_id == other.id

    def test_list_purchases_rejects_inverted_dates(self, transactions):
        with pytest.raises(ValidationError):
            transactions.list_purchases(PurchaseFilters(start_date=date(2026, 3, 2), end_date=date(2026, 3, 1)))

    def test_reconcile_reports_drift(self, transactions, session_factory, item):
        with session_factory() as session:
            session.add(StockLedgerEntry(item_id=item.id, delta_quantity=-1, change_type="ADJUST", reason="manual"))
            session.commit()

        result = transactions.reconcile(item.id)

        assert result.expected_stock == 9
        assert result.stock_quantity == 10
        assert result.balanced is False


class TestAtomicity:
    def test_storage_failure_rolls_back_stock(self, uow_factory, identifiers, catalog, item, student, monkeypatch):
        """A failing ledger append must undo the stock decrement in the same transaction."""
        from bookledger.crud.inventory import LedgerRepository

        def broken_append(self, **kwargs):
            raise PersistenceError("disk full")

        monkeypatch.setattr(LedgerRepository, "append", broken_append)
        transactions = TransactionManager(uow_factory, identifiers)

        with pytest.raises(PersistenceError):
            transactions.create_purchase(student.id, item.id, 3, Decimal("20"))

        monkeypatch.undo()
        assert catalog.get_item(item.id).stock_quantity == 10
        assert transactions.list_purchases().total == 0
        assert_balanced(transactions)

    def test_conflict_retried_once_then_surfaced(self, uow_factory, identifiers, item, student, monkeypatch):
        from bookledger.crud.inventory import ItemRepository

        calls = []

        def always_lost(self, item_id, delta, expected_minimum):
            calls.append(item_id)
            return None

        monkeypatch.setattr(ItemRepository, "apply_stock_delta", always_lost)
        transactions = TransactionManager(uow_factory, identifiers)

        with pytest.raises(ConcurrencyConflictError):
            transactions.adjust_stock(item.id, 1, "recount")
        assert len(calls) == 2

    def test_conflict_resolved_by_retry(self, uow_factory, identifiers, catalog, item, monkeypatch):
        from bookledger.crud.inventory import ItemRepository

        real_apply = ItemRepository.apply_stock_delta
        lost = []

        def lose_first(self, item_id, delta, expected_minimum):
            if not lost:
                lost.append(True)
                return None
            return real_apply(self, item_id, delta, expected_minimum)

        monkeypatch.setattr(ItemRepository, "apply_stock_delta", lose_first)
        transactions = TransactionManager(uow_factory, identifiers)

        result = transactions.adjust_stock(item.id, 2, "recount")

        assert result.stock_quantity == 12
        assert ledger_deltas(transactions, item.id) == [2]


class TestUnitOfWork:
    @staticmethod
    def _failing(session_factory, method):
        def factory():
            session = session_factory()

            def broken():
                raise OperationalError(method.upper(), {}, Exception("server closed the connection"))

            setattr(session, method, broken)
            return session

        return factory

    def test_commit_failure_becomes_persistence_error(self, session_factory):
        with pytest.raises(PersistenceError):
            with UnitOfWork(self._failing(session_factory, "commit")):
                pass

    def test_failed_rollback_keeps_original_error(self, session_factory):
        with pytest.raises(InsufficientStockError):
            with UnitOfWork(self._failing(session_factory, "rollback")):
                raise InsufficientStockError(1, 5, 2)

    def test_work_is_discarded_on_error(self, session_factory, item):
        with pytest.raises(ValidationError):
            with UnitOfWork(session_factory) as uow:
                uow.items.apply_stock_delta(item.id, -4, expected_minimum=4)
                raise ValidationError("abandoned")

        with UnitOfWork(session_factory) as uow:
            assert uow.items.current_stock(item.id) == 10
