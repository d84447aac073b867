"""Data access layer mapping ledger records to domain models"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from card_ledger.domain.exceptions import ConcurrencyConflictError
from card_ledger.domain.models import ZERO, Bill, CreditCard, Installment, Invoice, PartialPayment, to_money
from card_ledger.infrastructure.database.models import (
    BillRecord,
    CreditCardRecord,
    InstallmentRecord,
    InvoiceRecord,
    PartialPaymentRecord,
)

# Dialects whose insert() supports ON CONFLICT DO NOTHING
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class UnsupportedDialectError(RuntimeError):
    """Database backend cannot run the atomic invoice upsert"""

    def __init__(self, dialect: str):
        self.dialect = dialect
        super().__init__(
            f"Invoice get-or-create needs INSERT ... ON CONFLICT DO NOTHING; "
            f"supported dialects: {sorted(_UPSERT_INSERTS)}, got {dialect!r}"
        )


def _to_credit_card(record: CreditCardRecord) -> CreditCard:
    return CreditCard(
        id=record.id,
        name=record.name,
        credit_limit=to_money(record.credit_limit),
        closing_day=record.closing_day,
        due_day=record.due_day,
        allows_partial_payment=record.allows_partial_payment,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _to_invoice(record: InvoiceRecord) -> Invoice:
    return Invoice(
        id=record.id,
        credit_card_id=record.credit_card_id,
        reference_month=record.reference_month,
        total_amount=to_money(record.total_amount),
        previous_balance=to_money(record.previous_balance),
        closed=record.closed,
        paid=record.paid,
        use_absolute_value=record.use_absolute_value,
        register_available_limit=record.register_available_limit,
        registered_available_limit=(
            to_money(record.registered_available_limit) if record.registered_available_limit is not None else None
        ),
        version=record.version,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _to_bill(record: BillRecord) -> Bill:
    return Bill(
        id=record.id,
        credit_card_id=record.credit_card_id,
        name=record.name,
        execution_date=record.execution_date,
        total_amount=to_money(record.total_amount),
        number_of_installments=record.number_of_installments,
        description=record.description,
        created_at=record.created_at,
    )


def _to_installment(record: InstallmentRecord) -> Installment:
    return Installment(
        id=record.id,
        bill_id=record.bill_id,
        credit_card_id=record.credit_card_id,
        invoice_id=record.invoice_id,
        installment_number=record.installment_number,
        amount=to_money(record.amount),
        due_date=record.due_date,
        created_at=record.created_at,
    )


def _to_partial_payment(record: PartialPaymentRecord) -> PartialPayment:
    return PartialPayment(
        id=record.id,
        invoice_id=record.invoice_id,
        amount=to_money(record.amount),
        payment_date=record.payment_date,
        description=record.description,
        created_at=record.created_at,
    )


class CreditCardRepository:
    """Repository for credit cards"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, credit_card: CreditCard) -> CreditCard:
        record = CreditCardRecord(
            name=credit_card.name,
            credit_limit=credit_card.credit_limit,
            closing_day=credit_card.closing_day,
            due_day=credit_card.due_day,
            allows_partial_payment=credit_card.allows_partial_payment,
        )
        self.db.add(record)
        self.db.flush()  # Get ID without committing
        self.db.refresh(record)
        return _to_credit_card(record)

    def find_by_id(self, credit_card_id: int) -> Optional[CreditCard]:
        record = self.db.get(CreditCardRecord, credit_card_id)
        return _to_credit_card(record) if record else None

    def find_all(self) -> List[CreditCard]:
        records = self.db.query(CreditCardRecord).order_by(CreditCardRecord.id).all()
        return [_to_credit_card(r) for r in records]

    def update(self, credit_card: CreditCard) -> CreditCard:
        record = self.db.get(CreditCardRecord, credit_card.id)
        record.name = credit_card.name
        record.credit_limit = credit_card.credit_limit
        record.closing_day = credit_card.closing_day
        record.due_day = credit_card.due_day
        record.allows_partial_payment = credit_card.allows_partial_payment
        self.db.flush()
        self.db.refresh(record)
        return _to_credit_card(record)

    def delete_by_id(self, credit_card_id: int) -> None:
        self.db.query(CreditCardRecord).filter(CreditCardRecord.id == credit_card_id).delete(
            synchronize_session="fetch"
        )


class BillRepository:
    """Repository for purchases"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, bill: Bill) -> Bill:
        record = BillRecord(
            credit_card_id=bill.credit_card_id,
            name=bill.name,
            execution_date=bill.execution_date,
            total_amount=bill.total_amount,
            number_of_installments=bill.number_of_installments,
            description=bill.description,
        )
        self.db.add(record)
        self.db.flush()
        self.db.refresh(record)
        return _to_bill(record)

    def find_by_id(self, bill_id: int) -> Optional[Bill]:
        record = self.db.get(BillRecord, bill_id)
        return _to_bill(record) if record else None

    def update(self, bill: Bill) -> Bill:
        record = self.db.get(BillRecord, bill.id)
        record.credit_card_id = bill.credit_card_id
        record.name = bill.name
        record.execution_date = bill.execution_date
        record.total_amount = bill.total_amount
        record.number_of_installments = bill.number_of_installments
        record.description = bill.description
        self.db.flush()
        self.db.refresh(record)
        return _to_bill(record)

    def _filtered(self, credit_card_id: Optional[int]):
        query = self.db.query(BillRecord)
        if credit_card_id is not None:
            query = query.filter(BillRecord.credit_card_id == credit_card_id)
        return query

    def find_page(self, offset: int, limit: int, credit_card_id: Optional[int] = None) -> List[Bill]:
        records = (
            self._filtered(credit_card_id)
            .order_by(BillRecord.execution_date.desc(), BillRecord.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [_to_bill(r) for r in records]

    def count(self, credit_card_id: Optional[int] = None) -> int:
        return self._filtered(credit_card_id).count()

    def delete_by_id(self, bill_id: int) -> None:
        self.db.query(BillRecord).filter(BillRecord.id == bill_id).delete(synchronize_session="fetch")


class InvoiceRepository:
    """
    Repository for invoices.

    Invoice writes are guarded by an optimistic version counter: an update
    only matches the row when the stored version equals the one the caller
    read, and bumps it by one.
    """

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        # Core updates bypass the identity map; always reload row state
        return self.db.query(InvoiceRecord).populate_existing()

    def find_by_id(self, invoice_id: int) -> Optional[Invoice]:
        record = self._query().filter(InvoiceRecord.id == invoice_id).first()
        return _to_invoice(record) if record else None

    def find_by_card_and_month(self, credit_card_id: int, reference_month: date) -> Optional[Invoice]:
        record = (
            self._query()
            .filter(
                InvoiceRecord.credit_card_id == credit_card_id,
                InvoiceRecord.reference_month == reference_month,
            )
            .first()
        )
        return _to_invoice(record) if record else None

    def find_by_card(self, credit_card_id: int) -> List[Invoice]:
        records = (
            self._query()
            .filter(InvoiceRecord.credit_card_id == credit_card_id)
            .order_by(InvoiceRecord.reference_month)
            .all()
        )
        return [_to_invoice(r) for r in records]

    def find_by_card_and_flags(self, credit_card_id: int, closed: bool, paid: bool) -> List[Invoice]:
        records = (
            self._query()
            .filter(
                InvoiceRecord.credit_card_id == credit_card_id,
                InvoiceRecord.closed == closed,
                InvoiceRecord.paid == paid,
            )
            .order_by(InvoiceRecord.reference_month)
            .all()
        )
        return [_to_invoice(r) for r in records]

    def find_registered_limits(self, credit_card_id: int) -> List[Invoice]:
        records = (
            self._query()
            .filter(
                InvoiceRecord.credit_card_id == credit_card_id,
                InvoiceRecord.register_available_limit.is_(True),
            )
            .order_by(InvoiceRecord.reference_month.desc())
            .all()
        )
        return [_to_invoice(r) for r in records]

    def get_or_create(self, credit_card_id: int, reference_month: date) -> Invoice:
        """
        Atomic upsert on (credit_card_id, reference_month).

        INSERT ... ON CONFLICT DO NOTHING lets the unique constraint settle
        concurrent creations; whichever row won is then read back.
        """
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise UnsupportedDialectError(dialect)

        stmt = (
            insert(InvoiceRecord)
            .values(
                credit_card_id=credit_card_id,
                reference_month=reference_month,
                total_amount=ZERO,
                previous_balance=ZERO,
                closed=False,
                paid=False,
                use_absolute_value=False,
                register_available_limit=False,
                version=1,
            )
            .on_conflict_do_nothing(index_elements=["credit_card_id", "reference_month"])
        )
        self.db.execute(stmt)
        return self.find_by_card_and_month(credit_card_id, reference_month)

    def update(self, invoice: Invoice) -> Invoice:
        """Write all mutable fields; raises ConcurrencyConflictError on a stale version"""
        stmt = (
            update(InvoiceRecord)
            .where(InvoiceRecord.id == invoice.id, InvoiceRecord.version == invoice.version)
            .values(
                total_amount=invoice.total_amount,
                previous_balance=invoice.previous_balance,
                closed=invoice.closed,
                paid=invoice.paid,
                use_absolute_value=invoice.use_absolute_value,
                register_available_limit=invoice.register_available_limit,
                registered_available_limit=invoice.registered_available_limit,
                version=invoice.version + 1,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount != 1:
            raise ConcurrencyConflictError(invoice.id, invoice.version)
        return replace(invoice, version=invoice.version + 1)

    def update_all(self, invoices: Sequence[Invoice]) -> List[Invoice]:
        return [self.update(invoice) for invoice in invoices]


class InstallmentRepository:
    """Repository for installments"""

    def __init__(self, db: Session):
        self.db = db

    def save_all(self, installments: Sequence[Installment]) -> List[Installment]:
        records = [
            InstallmentRecord(
                bill_id=inst.bill_id,
                credit_card_id=inst.credit_card_id,
                invoice_id=inst.invoice_id,
                installment_number=inst.installment_number,
                amount=inst.amount,
                due_date=inst.due_date,
            )
            for inst in installments
        ]
        self.db.add_all(records)
        self.db.flush()
        for record in records:
            self.db.refresh(record)
        return [_to_installment(r) for r in records]

    def find_by_bill(self, bill_id: int) -> List[Installment]:
        records = (
            self.db.query(InstallmentRecord)
            .filter(InstallmentRecord.bill_id == bill_id)
            .order_by(InstallmentRecord.installment_number)
            .all()
        )
        return [_to_installment(r) for r in records]

    def find_by_invoice(self, invoice_id: int) -> List[Installment]:
        records = (
            self.db.query(InstallmentRecord)
            .filter(InstallmentRecord.invoice_id == invoice_id)
            .order_by(InstallmentRecord.due_date, InstallmentRecord.id)
            .all()
        )
        return [_to_installment(r) for r in records]

    def delete_by_bill(self, bill_id: int) -> None:
        self.db.query(InstallmentRecord).filter(InstallmentRecord.bill_id == bill_id).delete(
            synchronize_session="fetch"
        )

    def sum_by_invoice_ids(self, invoice_ids: Sequence[int]) -> Decimal:
        if not invoice_ids:
            return ZERO
        total = (
            self.db.query(func.coalesce(func.sum(InstallmentRecord.amount), 0))
            .filter(InstallmentRecord.invoice_id.in_(list(invoice_ids)))
            .scalar()
        )
        return to_money(total)


class PartialPaymentRepository:
    """Repository for partial payments"""

    def __init__(self, db: Session):
        self.db = db

    def save(self, payment: PartialPayment) -> PartialPayment:
        record = PartialPaymentRecord(
            invoice_id=payment.invoice_id,
            amount=payment.amount,
            payment_date=payment.payment_date,
            description=payment.description,
        )
        self.db.add(record)
        self.db.flush()
        self.db.refresh(record)
        return _to_partial_payment(record)

    def find_by_id(self, payment_id: int) -> Optional[PartialPayment]:
        record = self.db.get(PartialPaymentRecord, payment_id)
        return _to_partial_payment(record) if record else None

    def find_by_invoice(self, invoice_id: int) -> List[PartialPayment]:
        records = (
            self.db.query(PartialPaymentRecord)
            .filter(PartialPaymentRecord.invoice_id == invoice_id)
            .order_by(PartialPaymentRecord.payment_date.desc(), PartialPaymentRecord.id.desc())
            .all()
        )
        return [_to_partial_payment(r) for r in records]

    def sum_by_invoice(self, invoice_id: int) -> Decimal:
        return self.sum_by_invoice_ids([invoice_id])

    def count_by_invoice(self, invoice_id: int) -> int:
        return (
            self.db.query(func.count(PartialPaymentRecord.id))
            .filter(PartialPaymentRecord.invoice_id == invoice_id)
            .scalar()
        )

    def sum_by_invoice_ids(self, invoice_ids: Sequence[int]) -> Decimal:
        if not invoice_ids:
            return ZERO
        total = (
            self.db.query(func.coalesce(func.sum(PartialPaymentRecord.amount), 0))
            .filter(PartialPaymentRecord.invoice_id.in_(list(invoice_ids)))
            .scalar()
        )
        return to_money(total)

    def delete_by_id(self, payment_id: int) -> None:
        self.db.query(PartialPaymentRecord).filter(PartialPaymentRecord.id == payment_id).delete(
            synchronize_session="fetch"
        )
