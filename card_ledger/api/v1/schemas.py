"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from card_ledger.domain.models import InvoiceState


class CreditCardRequest(BaseModel):
    """Request body for POST /v1/credit-cards"""

    name: str = Field(..., min_length=1, description="Card display name")
    credit_limit: Decimal = Field(..., description="Total credit limit")
    closing_day: int = Field(..., description="Day of month the invoice closes (1-31)")
    due_day: int = Field(..., description="Day of month the invoice is due (1-31)")
    allows_partial_payment: bool = False


class CreditCardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    credit_limit: Decimal
    closing_day: int
    due_day: int
    allows_partial_payment: bool


class AvailableLimitResponse(BaseModel):
    """Response for GET /v1/credit-cards/{id}/available-limit"""

    model_config = ConfigDict(from_attributes=True)

    credit_card_id: int
    credit_limit: Decimal
    used_limit: Decimal
    partial_payments_total: Decimal
    available_limit: Decimal


class BillRequest(BaseModel):
    """Request body for POST /v1/bills and PUT /v1/bills/{id}"""

    credit_card_id: int
    name: str = Field(..., min_length=1)
    execution_date: datetime = Field(..., description="Purchase timestamp")
    total_amount: Decimal = Field(..., gt=0)
    number_of_installments: int = Field(1, ge=1)
    description: Optional[str] = None


class InstallmentSchema(BaseModel):
    """Single installment of a bill"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    bill_id: int
    invoice_id: int
    installment_number: int
    amount: Decimal
    due_date: date


class BillSummary(BaseModel):
    """Bill without its installments, as listed by GET /v1/bills"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    credit_card_id: int
    name: str
    execution_date: datetime
    total_amount: Decimal
    number_of_installments: int
    description: Optional[str] = None


class BillResponse(BillSummary):
    """Response for POST, GET and PUT on a single bill"""

    installments: List[InstallmentSchema]


class BillPageResponse(BaseModel):
    """Response for GET /v1/bills"""

    model_config = ConfigDict(from_attributes=True)

    items: List[BillSummary]
    total: int
    page: int
    size: int


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    credit_card_id: int
    reference_month: date
    total_amount: Decimal
    previous_balance: Decimal
    closed: bool
    paid: bool
    state: InvoiceState
    use_absolute_value: bool
    register_available_limit: bool
    registered_available_limit: Optional[Decimal] = None
    version: int


class InvoiceBalanceResponse(BaseModel):
    """Response for GET /v1/invoices/{id}/balance"""

    model_config = ConfigDict(from_attributes=True)

    invoice_id: int
    total_amount: Decimal
    previous_balance: Decimal
    partial_payments_total: Decimal
    current_balance: Decimal
    paid: bool
    closed: bool
    partial_payments_count: int


class UseAbsoluteValueRequest(BaseModel):
    use_absolute_value: bool


class TotalAmountRequest(BaseModel):
    total_amount: Decimal


class RegisteredLimitRequest(BaseModel):
    register_available_limit: bool
    registered_available_limit: Optional[Decimal] = None


class PartialPaymentRequest(BaseModel):
    """Request body for POST /v1/invoices/{id}/partial-payments"""

    # Positivity is a ledger rule, checked by the payment manager
    amount: Optional[Decimal] = None
    description: Optional[str] = None


class PartialPaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    amount: Decimal
    payment_date: datetime
    description: Optional[str] = None


class PartialPaymentReceiptResponse(BaseModel):
    """Response for POST /v1/invoices/{id}/partial-payments"""

    payment: PartialPaymentResponse
    available_limit: AvailableLimitResponse
