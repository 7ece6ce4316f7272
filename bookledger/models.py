"""
SQLAlchemy 2.x models.

Stock lives on Item.stock_quantity and is only ever changed together with an
append to StockLedgerEntry. Ledger rows are never updated or deleted.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from bookledger.database import Base


def utcnow() -> datetime:
    # Naive UTC so SQLite and PostgreSQL compare the same way
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Item(Base):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    class_level = Column(String(50), nullable=False)
    subject = Column(String(100), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    unit_cost = Column(Numeric(10, 2), nullable=False, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    opening_stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    supplier_name = Column(String(150))
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="check_item_stock_non_negative"),
        CheckConstraint("opening_stock >= 0", name="check_item_opening_stock_non_negative"),
    )

    # Relationships
    ledger_entries = relationship("StockLedgerEntry", back_populates="item")
    purchases = relationship("Purchase", back_populates="item")


class StockLedgerEntry(Base):
    __tablename__ = "stock_ledger"

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    delta_quantity = Column(Integer, nullable=False)
    change_type = Column(String(10), nullable=False)
    reason = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("change_type IN ('IN', 'OUT', 'ADJUST')", name="check_ledger_change_type"),
        Index("ix_stock_ledger_item_created", "item_id", "created_at"),
    )

    item = relationship("Item", back_populates="ledger_entries")


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True)
    student_code = Column(String(32), unique=True, nullable=False)
    name = Column(String(150), nullable=False)
    class_level = Column(String(50), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    purchases = relationship("Purchase", back_populates="student")


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="SET NULL"))
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    receipt_number = Column(String(32), unique=True, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_purchase_quantity_positive"),
        Index("ix_purchases_created", "created_at"),
    )

    item = relationship("Item", back_populates="purchases")
    student = relationship("Student", back_populates="purchases")


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True)
    name = Column(String(150), nullable=False)
    email = Column(String(150))
    phone = Column(String(50))
    address = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    orders = relationship("SupplyOrder", back_populates="supplier")
    payments = relationship("SupplierPayment", back_populates="supplier")


class SupplyOrder(Base):
    __tablename__ = "supply_orders"

    id = Column(Integer, primary_key=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"))
    invoice_number = Column(String(64))
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending")
    supply_date = Column(Date, nullable=False)
    expected_payment_date = Column(Date)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'received', 'cancelled')", name="check_supply_order_status"
        ),
    )

    supplier = relationship("Supplier", back_populates="orders")
    items = relationship("SupplyOrderItem", back_populates="order")


class SupplyOrderItem(Base):
    __tablename__ = "supply_order_items"

    id = Column(Integer, primary_key=True)
    supply_order_id = Column(Integer, ForeignKey("supply_orders.id", ondelete="CASCADE"), nullable=False)
    item_id = Column(Integer, ForeignKey("items.id", ondelete="SET NULL"))
    quantity = Column(Integer, nullable=False)
    cost_price = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    order = relationship("SupplyOrder", back_populates="items")


class SupplierPayment(Base):
    __tablename__ = "supplier_payments"

    id = Column(Integer, primary_key=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"))
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(20), nullable=False, default="cash")
    reference = Column(String(100))
    payment_date = Column(Date, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    supplier = relationship("Supplier", back_populates="payments")


class IdentifierSequence(Base):
    __tablename__ = "identifier_sequences"

    name = Column(String(64), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
