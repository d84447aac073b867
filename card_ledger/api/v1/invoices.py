"""/v1/invoices - invoice lifecycle endpoints"""

from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from card_ledger.api.dependencies import get_invoice_manager, get_request_id
from card_ledger.api.errors import domain_errors
from card_ledger.api.v1.schemas import (
    InstallmentSchema,
    InvoiceBalanceResponse,
    InvoiceResponse,
    RegisteredLimitRequest,
    TotalAmountRequest,
    UseAbsoluteValueRequest,
)
from card_ledger.domain.invoices import InvoiceManager
from card_ledger.infrastructure.database.session import get_db
from card_ledger.infrastructure.observability.logging import log_invoice_closed
from card_ledger.infrastructure.observability.metrics import record_invoice_closed

router = APIRouter()


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    invoice_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: InvoiceManager = Depends(get_invoice_manager),
):
    with domain_errors(db, get_request_id(request)):
        invoice = manager.get(invoice_id)
    return InvoiceResponse.model_validate(invoice)


@router.get("/invoices/{invoice_id}/balance", response_model=InvoiceBalanceResponse)
def get_invoice_balance(
    invoice_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: InvoiceManager = Depends(get_invoice_manager),
):
    """current_balance = total_amount + previous_balance - partial payments"""
    with domain_errors(db, get_request_id(request)):
        balance = manager.balance(invoice_id)
    return InvoiceBalanceResponse.model_validate(balance)


@router.post("/invoices/{invoice_id}/close", response_model=InvoiceResponse)
def close_invoice(
    invoice_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: InvoiceManager = Depends(get_invoice_manager),
):
    """
    Close an open invoice.

    Overpayment (payments above total_amount) is carried to next month's
    previous_balance; closing twice is rejected with 409.
    """
    with domain_errors(db, get_request_id(request)):
        result = manager.close(invoice_id)
    db.commit()

    invoice = result.invoice
    record_invoice_closed(invoice.paid, result.carried_credit)
    log_invoice_closed(get_request_id(request), invoice.id, invoice.paid, "manual", result.carried_credit)
    return InvoiceResponse.model_validate(invoice)


@router.get("/invoices/{invoice_id}/installments", response_model=List[InstallmentSchema])
def get_invoice_installments(
    invoice_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: InvoiceManager = Depends(get_invoice_manager),
):
    with domain_errors(db, get_request_id(request)):
        installments = manager.installments_of(invoice_id)
    return [InstallmentSchema.model_validate(inst) for inst in installments]


@router.post("/invoices/{invoice_id}/mark-paid", response_model=InvoiceResponse)
def mark_invoice_paid(
    invoice_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: InvoiceManager = Depends(get_invoice_manager),
):
    with domain_errors(db, get_request_id(request)):
        invoice = manager.mark_paid(invoice_id)
    db.commit()
    return InvoiceResponse.model_validate(invoice)


@router.post("/invoices/{invoice_id}/mark-unpaid", response_model=InvoiceResponse)
def mark_invoice_unpaid(
    invoice_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: InvoiceManager = Depends(get_invoice_manager),
):
    with domain_errors(db, get_request_id(request)):
        invoice = manager.mark_unpaid(invoice_id)
    db.commit()
    return InvoiceResponse.model_validate(invoice)


@router.put("/invoices/{invoice_id}/use-absolute-value", response_model=InvoiceResponse)
def update_use_absolute_value(
    invoice_id: int,
    request_body: UseAbsoluteValueRequest,
    request: Request,
    db: Session = Depends(get_db),
    manager: InvoiceManager = Depends(get_invoice_manager),
):
    with domain_errors(db, get_request_id(request)):
        invoice = manager.set_use_absolute_value(invoice_id, request_body.use_absolute_value)
    db.commit()
    return InvoiceResponse.model_validate(invoice)


@router.put("/invoices/{invoice_id}/total-amount", response_model=InvoiceResponse)
def update_total_amount(
    invoice_id: int,
    request_body: TotalAmountRequest,
    request: Request,
    db: Session = Depends(get_db),
    manager: InvoiceManager = Depends(get_invoice_manager),
):
    """Only allowed when use_absolute_value is enabled"""
    with domain_errors(db, get_request_id(request)):
        invoice = manager.update_total_amount(invoice_id, request_body.total_amount)
    db.commit()
    return InvoiceResponse.model_validate(invoice)


@router.put("/invoices/{invoice_id}/registered-limit", response_model=InvoiceResponse)
def update_registered_limit(
    invoice_id: int,
    request_body: RegisteredLimitRequest,
    request: Request,
    db: Session = Depends(get_db),
    manager: InvoiceManager = Depends(get_invoice_manager),
):
    with domain_errors(db, get_request_id(request)):
        invoice = manager.register_available_limit(
            invoice_id,
            request_body.register_available_limit,
            request_body.registered_available_limit,
        )
    db.commit()
    return InvoiceResponse.model_validate(invoice)
