"""/v1/credit-cards - card maintenance, available limit and invoice listing"""

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from card_ledger.api.dependencies import (
    get_credit_card_manager,
    get_invoice_manager,
    get_limit_calculator,
    get_request_id,
)
from card_ledger.api.errors import domain_errors
from card_ledger.api.v1.schemas import (
    AvailableLimitResponse,
    CreditCardRequest,
    CreditCardResponse,
    InvoiceResponse,
)
from card_ledger.config import settings
from card_ledger.domain.credit_cards import CreditCardManager
from card_ledger.domain.invoices import InvoiceManager
from card_ledger.domain.limits import AvailableLimitCalculator
from card_ledger.infrastructure.database.session import get_db
from card_ledger.infrastructure.observability.logging import log_invoice_closed
from card_ledger.infrastructure.observability.metrics import record_invoice_closed

router = APIRouter()


@router.post("/credit-cards", response_model=CreditCardResponse, status_code=201)
def create_credit_card(
    request_body: CreditCardRequest,
    request: Request,
    db: Session = Depends(get_db),
    manager: CreditCardManager = Depends(get_credit_card_manager),
):
    """Register a card; closing and due days must be within 1-31"""
    with domain_errors(db, get_request_id(request)):
        credit_card = manager.create(**request_body.model_dump())
    db.commit()
    return CreditCardResponse.model_validate(credit_card)


@router.get("/credit-cards", response_model=List[CreditCardResponse])
def list_credit_cards(manager: CreditCardManager = Depends(get_credit_card_manager)):
    return [CreditCardResponse.model_validate(card) for card in manager.list_all()]


@router.get("/credit-cards/{credit_card_id}", response_model=CreditCardResponse)
def get_credit_card(
    credit_card_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: CreditCardManager = Depends(get_credit_card_manager),
):
    with domain_errors(db, get_request_id(request)):
        credit_card = manager.get(credit_card_id)
    return CreditCardResponse.model_validate(credit_card)


@router.put("/credit-cards/{credit_card_id}", response_model=CreditCardResponse)
def update_credit_card(
    credit_card_id: int,
    request_body: CreditCardRequest,
    request: Request,
    db: Session = Depends(get_db),
    manager: CreditCardManager = Depends(get_credit_card_manager),
):
    """Replace the card's settings; existing invoices are not re-bucketed"""
    with domain_errors(db, get_request_id(request)):
        credit_card = manager.update(credit_card_id, **request_body.model_dump())
    db.commit()
    return CreditCardResponse.model_validate(credit_card)


@router.delete("/credit-cards/{credit_card_id}", status_code=204)
def delete_credit_card(
    credit_card_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: CreditCardManager = Depends(get_credit_card_manager),
):
    """Delete a card; refused with 409 while it has invoices or purchases"""
    with domain_errors(db, get_request_id(request)):
        manager.delete(credit_card_id)
    db.commit()


@router.get("/credit-cards/{credit_card_id}/available-limit", response_model=AvailableLimitResponse)
def get_available_limit(
    credit_card_id: int,
    request: Request,
    db: Session = Depends(get_db),
    calculator: AvailableLimitCalculator = Depends(get_limit_calculator),
):
    """
    Current limit snapshot.

    available_limit = credit_limit - used_limit + partial_payments_total
    """
    with domain_errors(db, get_request_id(request)):
        limit = calculator.available_limit(credit_card_id)
    return AvailableLimitResponse.model_validate(limit)


@router.get("/credit-cards/{credit_card_id}/invoices", response_model=List[InvoiceResponse])
def list_invoices(
    credit_card_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: InvoiceManager = Depends(get_invoice_manager),
    card_manager: CreditCardManager = Depends(get_credit_card_manager),
):
    """List the card's invoices by reference month, closing those already due first"""
    with domain_errors(db, get_request_id(request)):
        if settings.auto_close_on_read:
            closed = manager.close_due(credit_card_id, date.today())
            db.commit()
            for result in closed:
                record_invoice_closed(result.invoice.paid, result.carried_credit)
                log_invoice_closed(
                    get_request_id(request), result.invoice.id, result.invoice.paid, "auto", result.carried_credit
                )
        else:
            card_manager.get(credit_card_id)
        invoices = manager.list_by_card(credit_card_id)
    return [InvoiceResponse.model_validate(inv) for inv in invoices]
