from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from bookledger.config import Settings
from bookledger.crud import unit_of_work_factory
from bookledger.database import build_engine, build_session_factory, init_db
from bookledger.models import Supplier, SupplierPayment, SupplyOrder
from bookledger.schemas.inventory import ItemCreate
from bookledger.schemas.students import StudentCreate
from bookledger.services import (
    CatalogService,
    DatabaseSequence,
    IdentifierGenerator,
    ReportEngine,
    TransactionManager,
)

FIXED_NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def database_url(tmp_path):
    # File-backed so that several connections (threads) share one database
    return f"sqlite:///{tmp_path / 'bookledger.db'}"


@pytest.fixture
def engine(database_url):
    engine = build_engine(database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def uow_factory(session_factory):
    return unit_of_work_factory(session_factory)


@pytest.fixture
def identifiers(uow_factory):
    return IdentifierGenerator(DatabaseSequence(uow_factory), clock=lambda: FIXED_NOW)


@pytest.fixture
def transactions(uow_factory, identifiers):
    return TransactionManager(uow_factory, identifiers)


@pytest.fixture
def catalog(uow_factory, identifiers):
    return CatalogService(uow_factory, identifiers)


@pytest.fixture
def reports(uow_factory):
    return ReportEngine(uow_factory, today=lambda: date(2026, 3, 14))


@pytest.fixture
def make_item(catalog):
    def _make(**overrides):
        values = {
            "title": "Primary Mathematics 4",
            "class_level": "Grade 4",
            "subject": "Mathematics",
            "unit_price": Decimal("20.00"),
            "unit_cost": Decimal("12.00"),
            "opening_stock": 10,
            "min_stock": 2,
        }
        values.update(overrides)
        return catalog.create_item(ItemCreate(**values))

    return _make


@pytest.fixture
def make_student(catalog):
    def _make(name="Ama Mensah", class_level="Grade 4"):
        return catalog.register_student(StudentCreate(name=name, class_level=class_level))

    return _make


@pytest.fixture
def item(make_item):
    return make_item()


@pytest.fixture
def student(make_student):
    return make_student()


@pytest.fixture
def suppliers(session_factory):
    """Two suppliers with orders and payments in March 2026."""
    with session_factory() as session:
        accra = Supplier(name="Accra Books Ltd", email="orders@accrabooks.test")
        kumasi = Supplier(name="Kumasi Educational Press")
        session.add_all([accra, kumasi])
        session.flush()

        session.add_all([
            SupplyOrder(
                supplier_id=accra.id,
                invoice_number="INV-001",
                total_amount=Decimal("500.00"),
                status="received",
                supply_date=date(2026, 3, 2),
                expected_payment_date=date(2026, 3, 10),
            ),
            SupplyOrder(
                supplier_id=accra.id,
                invoice_number="INV-002",
                total_amount=Decimal("300.00"),
                status="pending",
                supply_date=date(2026, 3, 5),
            ),
            SupplyOrder(
                supplier_id=accra.id,
                invoice_number="INV-003",
                total_amount=Decimal("999.00"),
                status="cancelled",
                supply_date=date(2026, 3, 6),
            ),
            SupplyOrder(
                supplier_id=kumasi.id,
                invoice_number="KEP-17",
                total_amount=Decimal("200.00"),
                status="received",
                supply_date=date(2026, 3, 8),
                expected_payment_date=date(2026, 4, 8),
            ),
            SupplierPayment(
                supplier_id=accra.id,
                amount=Decimal("350.00"),
                payment_method="bank",
                reference="TRX-88",
                payment_date=date(2026, 3, 9),
            ),
        ])
        session.commit()
        return {"accra": accra.id, "kumasi": kumasi.id}


@pytest.fixture
def settings(database_url):
    return Settings(DATABASE_URL=database_url, LOG_LEVEL="WARNING")
