"""Partial payment endpoints"""

from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from card_ledger.api.dependencies import get_payment_manager, get_request_id
from card_ledger.api.errors import domain_errors
from card_ledger.api.v1.schemas import (
    AvailableLimitResponse,
    PartialPaymentReceiptResponse,
    PartialPaymentRequest,
    PartialPaymentResponse,
)
from card_ledger.domain.payments import PartialPaymentManager
from card_ledger.infrastructure.database.session import get_db
from card_ledger.infrastructure.observability.metrics import partial_payment_counter

router = APIRouter()


@router.post(
    "/invoices/{invoice_id}/partial-payments",
    response_model=PartialPaymentReceiptResponse,
    status_code=201,
)
def register_partial_payment(
    invoice_id: int,
    request_body: PartialPaymentRequest,
    request: Request,
    db: Session = Depends(get_db),
    manager: PartialPaymentManager = Depends(get_payment_manager),
):
    """
    Register a partial payment and return the card's available limit after it.

    Returns:
        The stored payment plus a real-time limit snapshot
    """
    with domain_errors(db, get_request_id(request)):
        receipt = manager.register(invoice_id, request_body.amount, request_body.description)
    db.commit()
    partial_payment_counter.labels(action="registered").inc()

    return PartialPaymentReceiptResponse(
        payment=PartialPaymentResponse.model_validate(receipt.payment),
        available_limit=AvailableLimitResponse.model_validate(receipt.available_limit),
    )


@router.get("/invoices/{invoice_id}/partial-payments", response_model=List[PartialPaymentResponse])
def list_partial_payments(
    invoice_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: PartialPaymentManager = Depends(get_payment_manager),
):
    with domain_errors(db, get_request_id(request)):
        payments = manager.list_by_invoice(invoice_id)
    return [PartialPaymentResponse.model_validate(p) for p in payments]


@router.delete("/partial-payments/{payment_id}", status_code=204)
def delete_partial_payment(
    payment_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: PartialPaymentManager = Depends(get_payment_manager),
):
    """Delete a payment; only allowed while its invoice is open"""
    with domain_errors(db, get_request_id(request)):
        manager.delete(payment_id)
    db.commit()
    partial_payment_counter.labels(action="deleted").inc()
