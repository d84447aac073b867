"""SQLAlchemy ORM models for the card ledger"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

Money = Numeric(12, 2, asdecimal=True)


class CreditCardRecord(Base):
    """Credit card configuration"""

    __tablename__ = "credit_card"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    credit_limit = Column(Money, nullable=False)
    closing_day = Column(Integer, nullable=False)
    due_day = Column(Integer, nullable=False)
    allows_partial_payment = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    invoices = relationship("InvoiceRecord", back_populates="credit_card", cascade="all, delete-orphan")


class BillRecord(Base):
    """Purchase made with a credit card"""

    __tablename__ = "bill"

    id = Column(Integer, primary_key=True, autoincrement=True)
    credit_card_id = Column(Integer, ForeignKey("credit_card.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    execution_date = Column(DateTime, nullable=False)
    total_amount = Column(Money, nullable=False)
    number_of_installments = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    installments = relationship("InstallmentRecord", back_populates="bill", cascade="all, delete-orphan")


class InvoiceRecord(Base):
    """Monthly invoice; one row per (credit_card_id, reference_month)"""

    __tablename__ = "invoice"
    __table_args__ = (UniqueConstraint("credit_card_id", "reference_month", name="uq_invoice_card_month"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    credit_card_id = Column(Integer, ForeignKey("credit_card.id", ondelete="CASCADE"), nullable=False, index=True)
    reference_month = Column(Date, nullable=False)
    total_amount = Column(Money, nullable=False, default=0)
    previous_balance = Column(Money, nullable=False, default=0)
    closed = Column(Boolean, nullable=False, default=False)
    paid = Column(Boolean, nullable=False, default=False)
    use_absolute_value = Column(Boolean, nullable=False, default=False)
    register_available_limit = Column(Boolean, nullable=False, default=False)
    registered_available_limit = Column(Money, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    credit_card = relationship("CreditCardRecord", back_populates="invoices")


class InstallmentRecord(Base):
    """Installment of a bill, attached to an invoice"""

    __tablename__ = "installment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bill_id = Column(Integer, ForeignKey("bill.id", ondelete="CASCADE"), nullable=False, index=True)
    credit_card_id = Column(Integer, ForeignKey("credit_card.id", ondelete="CASCADE"), nullable=False)
    invoice_id = Column(Integer, ForeignKey("invoice.id"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    amount = Column(Money, nullable=False)
    due_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    bill = relationship("BillRecord", back_populates="installments")


class PartialPaymentRecord(Base):
    """Payment made against an open invoice"""

    __tablename__ = "partial_payment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey("invoice.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    payment_date = Column(DateTime, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
