"""Domain models - pure Python dataclasses representing ledger entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from card_ledger.domain.exceptions import InvalidInputError, InvoiceAlreadyClosedError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Quantize any numeric value to a two-place fixed-point Decimal"""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT)


class InvoiceState(str, Enum):
    """Invoice lifecycle state derived from the closed/paid flags"""

    OPEN_UNPAID = "open_unpaid"
    OPEN_PAID = "open_paid"
    CLOSED_UNPAID = "closed_unpaid"
    CLOSED_PAID = "closed_paid"

    @classmethod
    def of(cls, closed: bool, paid: bool) -> "InvoiceState":
        if closed:
            return cls.CLOSED_PAID if paid else cls.CLOSED_UNPAID
        return cls.OPEN_PAID if paid else cls.OPEN_UNPAID


@dataclass
class CreditCard:
    """Card configuration read by the billing cycle and limit calculations"""

    id: Optional[int]
    name: str
    credit_limit: Decimal
    closing_day: int
    due_day: int
    allows_partial_payment: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        for label, day in (("closing_day", self.closing_day), ("due_day", self.due_day)):
            if not 1 <= day <= 31:
                raise InvalidInputError(f"{label} must be between 1 and 31, got {day}")
        if self.credit_limit is None or self.credit_limit <= 0:
            raise InvalidInputError(f"credit_limit must be positive, got {self.credit_limit}")


@dataclass
class Bill:
    """A purchase split into installments"""

    id: Optional[int]
    credit_card_id: int
    name: str
    execution_date: datetime
    total_amount: Decimal
    number_of_installments: int
    description: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class Invoice:
    """Monthly statement of one credit card"""

    id: Optional[int]
    credit_card_id: int
    reference_month: date  # always day 1
    total_amount: Decimal = ZERO
    previous_balance: Decimal = ZERO  # positive = debt, negative = credit
    closed: bool = False
    paid: bool = False
    use_absolute_value: bool = False  # total_amount is edited by hand, not summed from installments
    register_available_limit: bool = False
    registered_available_limit: Optional[Decimal] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def state(self) -> InvoiceState:
        return InvoiceState.of(self.closed, self.paid)

    @property
    def is_open_unpaid(self) -> bool:
        return self.state is InvoiceState.OPEN_UNPAID

    def close_with(self, final_amount: Decimal) -> None:
        """Transition to a closed state; paid is decided by the final amount"""
        if self.closed:
            raise InvoiceAlreadyClosedError(self.id)
        self.closed = True
        self.paid = final_amount <= 0

    def mark_paid(self) -> None:
        self.paid = True

    def mark_unpaid(self) -> None:
        if self.closed:
            raise InvoiceAlreadyClosedError(self.id)
        self.paid = False


@dataclass
class Installment:
    """Single payment obligation of a bill, attached to one invoice"""

    id: Optional[int]
    bill_id: int
    credit_card_id: int
    invoice_id: int
    installment_number: int
    amount: Decimal
    due_date: date
    created_at: Optional[datetime] = None


@dataclass
class PartialPayment:
    """Immutable payment made against an open invoice"""

    id: Optional[int]
    invoice_id: int
    amount: Decimal
    payment_date: datetime
    description: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class InstallmentDateInfo:
    """Scheduling result for one installment"""

    installment_number: int
    due_date: date
    reference_month: date


@dataclass(frozen=True)
class AvailableLimit:
    """Point-in-time credit limit snapshot"""

    credit_card_id: int
    credit_limit: Decimal
    used_limit: Decimal
    partial_payments_total: Decimal
    available_limit: Decimal


@dataclass(frozen=True)
class InvoiceBalance:
    """Live balance view of an invoice"""

    invoice_id: int
    total_amount: Decimal
    previous_balance: Decimal
    partial_payments_total: Decimal
    current_balance: Decimal
    paid: bool
    closed: bool
    partial_payments_count: int


@dataclass(frozen=True)
class InvoiceCloseResult:
    """Closed invoice plus the credit moved to next month's invoice, if any"""

    invoice: Invoice
    final_amount: Decimal
    carried_credit: Decimal = ZERO
    credit_invoice_id: Optional[int] = None


@dataclass(frozen=True)
class BillPage:
    """One page of a card's (or all) purchases, newest first"""

    items: List[Bill]
    total: int
    page: int
    size: int


@dataclass(frozen=True)
class PartialPaymentReceipt:
    """Recorded payment plus the card's available limit right after it"""

    payment: PartialPayment
    available_limit: AvailableLimit


@dataclass
class PurchaseReceipt:
    """Outcome of registering a purchase"""

    bill: Bill
    installments: List[Installment] = field(default_factory=list)
    invoices: List[Invoice] = field(default_factory=list)
