import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from bookledger.errors import AllocationError, ValidationError
from bookledger.services import DatabaseSequence, IdentifierGenerator, LocalSequence

RECEIPT_PATTERN = re.compile(r"^RCP-\d{8}-\d{6}$")


class _BrokenSequence:
    def next_value(self, name):
        raise AllocationError(f"sequence {name} unavailable")


class _ZeroSequence:
    def next_value(self, name):
        return 0


class TestReceiptNumbers:
    def test_format_uses_clock_date_and_counter(self):
        generator = IdentifierGenerator(
            LocalSequence(), clock=lambda: datetime(2026, 3, 14, 23, 59, tzinfo=timezone.utc)
        )
        assert generator.next_receipt_number() == "RCP-20260314-000001"
        assert generator.next_receipt_number() == "RCP-20260314-000002"

    def test_counter_restarts_each_day(self):
        now = [datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)]
        generator = IdentifierGenerator(LocalSequence(), clock=lambda: now[0])
        generator.next_receipt_number()
        generator.next_receipt_number()

        now[0] = datetime(2026, 3, 15, 0, 1, tzinfo=timezone.utc)
        assert generator.next_receipt_number() == "RCP-20260315-000001"

    def test_custom_prefix(self):
        generator = IdentifierGenerator(LocalSequence(), receipt_prefix="SHOP")
        assert generator.next_receipt_number().startswith("SHOP-")

    def test_database_sequence_persists_between_generators(self, uow_factory):
        clock = lambda: datetime(2026, 3, 14, tzinfo=timezone.utc)  # noqa: E731
        first = IdentifierGenerator(DatabaseSequence(uow_factory), clock=clock)
        second = IdentifierGenerator(DatabaseSequence(uow_factory), clock=clock)

        assert first.next_receipt_number() == "RCP-20260314-000001"
        assert second.next_receipt_number() == "RCP-20260314-000002"


class TestEntityCodes:
    def test_one_counter_per_prefix(self):
        generator = IdentifierGenerator(LocalSequence())
        assert generator.next_entity_code("STU") == "STU-000001"
        assert generator.next_entity_code("stu") == "STU-000002"
        assert generator.next_entity_code("SUP") == "SUP-000001"

    def test_empty_prefix_rejected(self):
        """A blank prefix is caller input, so it is rejected before any counter moves."""
        generator = IdentifierGenerator(LocalSequence())
        with pytest.raises(ValidationError):
            generator.next_entity_code("  ")
        with pytest.raises(ValidationError):
            generator.next_entity_code(None)
        assert generator.next_entity_code("STU") == "STU-000001"


class TestAllocationFailures:
    def test_source_failure_surfaces_as_allocation_error(self):
        with pytest.raises(AllocationError):
            IdentifierGenerator(_BrokenSequence()).next_receipt_number()

    def test_non_positive_value_rejected(self):
        with pytest.raises(AllocationError):
            IdentifierGenerator(_ZeroSequence()).next_entity_code("STU")


class TestConcurrentAllocation:
    def test_ten_thousand_concurrent_receipts_are_distinct(self):
        generator = IdentifierGenerator(LocalSequence())

        with ThreadPoolExecutor(max_workers=32) as pool:
            receipts = list(pool.map(lambda _: generator.next_receipt_number(), range(10_000)))

        assert len(receipts) == 10_000
        assert len(set(receipts)) == 10_000
        assert all(RECEIPT_PATTERN.match(r) for r in receipts)

    def test_database_sequence_is_distinct_across_threads(self, uow_factory):
        generator = IdentifierGenerator(DatabaseSequence(uow_factory))

        with ThreadPoolExecutor(max_workers=8) as pool:
            codes = list(pool.map(lambda _: generator.next_entity_code("STU"), range(100)))

        assert len(set(codes)) == 100
        assert sorted(codes)[-1] == "STU-000100"
