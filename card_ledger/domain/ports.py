"""
Store contracts the ledger engine depends on.

Uses Protocol for structural typing; the SQLAlchemy repositories in
card_ledger.infrastructure.database.repositories satisfy them.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from card_ledger.domain.models import Bill, CreditCard, Installment, Invoice, PartialPayment


@runtime_checkable
class CreditCardStore(Protocol):
    def find_by_id(self, credit_card_id: int) -> Optional[CreditCard]:
        ...

    def create(self, credit_card: CreditCard) -> CreditCard:
        ...

    def find_all(self) -> List[CreditCard]:
        ...

    def update(self, credit_card: CreditCard) -> CreditCard:
        ...

    def delete_by_id(self, credit_card_id: int) -> None:
        ...


@runtime_checkable
class BillStore(Protocol):
    def find_by_id(self, bill_id: int) -> Optional[Bill]:
        ...

    def create(self, bill: Bill) -> Bill:
        ...

    def update(self, bill: Bill) -> Bill:
        ...

    def find_page(self, offset: int, limit: int, credit_card_id: Optional[int] = None) -> List[Bill]:
        ...

    def count(self, credit_card_id: Optional[int] = None) -> int:
        ...

    def delete_by_id(self, bill_id: int) -> None:
        ...


@runtime_checkable
class InvoiceStore(Protocol):
    def find_by_id(self, invoice_id: int) -> Optional[Invoice]:
        ...

    def find_by_card_and_month(self, credit_card_id: int, reference_month: date) -> Optional[Invoice]:
        ...

    def find_by_card(self, credit_card_id: int) -> List[Invoice]:
        ...

    def find_by_card_and_flags(self, credit_card_id: int, closed: bool, paid: bool) -> List[Invoice]:
        ...

    def find_registered_limits(self, credit_card_id: int) -> List[Invoice]:
        """Invoices flagged register_available_limit, most recent reference month first"""
        ...

    def get_or_create(self, credit_card_id: int, reference_month: date) -> Invoice:
        """Atomic upsert keyed by (credit_card_id, reference_month)"""
        ...

    def update(self, invoice: Invoice) -> Invoice:
        """Write if the stored version equals invoice.version, else ConcurrencyConflictError"""
        ...

    def update_all(self, invoices: Sequence[Invoice]) -> List[Invoice]:
        ...


@runtime_checkable
class InstallmentStore(Protocol):
    def save_all(self, installments: Sequence[Installment]) -> List[Installment]:
        ...

    def find_by_bill(self, bill_id: int) -> List[Installment]:
        ...

    def find_by_invoice(self, invoice_id: int) -> List[Installment]:
        ...

    def delete_by_bill(self, bill_id: int) -> None:
        ...

    def sum_by_invoice_ids(self, invoice_ids: Sequence[int]) -> Decimal:
        ...


@runtime_checkable
class PartialPaymentStore(Protocol):
    def save(self, payment: PartialPayment) -> PartialPayment:
        ...

    def find_by_id(self, payment_id: int) -> Optional[PartialPayment]:
        ...

    def find_by_invoice(self, invoice_id: int) -> List[PartialPayment]:
        ...

    def sum_by_invoice(self, invoice_id: int) -> Decimal:
        ...

    def count_by_invoice(self, invoice_id: int) -> int:
        ...

    def sum_by_invoice_ids(self, invoice_ids: Sequence[int]) -> Decimal:
        ...

    def delete_by_id(self, payment_id: int) -> None:
        ...
