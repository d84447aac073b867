"""/v1/bills - register, list, edit and delete card purchases"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from card_ledger.api.dependencies import get_purchase_manager, get_request_id
from card_ledger.api.errors import domain_errors
from card_ledger.api.v1.schemas import (
    BillPageResponse,
    BillRequest,
    BillResponse,
    BillSummary,
    InstallmentSchema,
)
from card_ledger.domain.models import Bill, Installment
from card_ledger.domain.purchases import PurchaseManager
from card_ledger.infrastructure.database.session import get_db
from card_ledger.infrastructure.observability.logging import log_purchase_registered, log_purchase_updated
from card_ledger.infrastructure.observability.metrics import record_purchase

router = APIRouter()


def _bill_response(bill: Bill, installments: List[Installment]) -> BillResponse:
    return BillResponse(
        id=bill.id,
        credit_card_id=bill.credit_card_id,
        name=bill.name,
        execution_date=bill.execution_date,
        total_amount=bill.total_amount,
        number_of_installments=bill.number_of_installments,
        description=bill.description,
        installments=[InstallmentSchema.model_validate(inst) for inst in installments],
    )


@router.post("/bills", response_model=BillResponse, status_code=201)
def create_bill(
    request_body: BillRequest,
    request: Request,
    db: Session = Depends(get_db),
    manager: PurchaseManager = Depends(get_purchase_manager),
):
    """
    Register a purchase on a credit card.

    Flow:
    1. Check the card's available limit against the purchase total
    2. Schedule each installment into its invoice month
    3. Persist bill, invoices and installments in one transaction
    """
    with domain_errors(db, get_request_id(request)):
        receipt = manager.register(**request_body.model_dump())
    db.commit()
    record_purchase(request_body.number_of_installments)

    bill = receipt.bill
    log_purchase_registered(
        get_request_id(request),
        bill.id,
        bill.credit_card_id,
        bill.number_of_installments,
        [inv.id for inv in receipt.invoices],
    )
    return _bill_response(bill, receipt.installments)


@router.get("/bills", response_model=BillPageResponse)
def list_bills(
    request: Request,
    page: int = 0,
    size: int = 20,
    credit_card_id: Optional[int] = None,
    db: Session = Depends(get_db),
    manager: PurchaseManager = Depends(get_purchase_manager),
):
    """Page through purchases, newest first; optionally only one card's"""
    with domain_errors(db, get_request_id(request)):
        bill_page = manager.list_bills(page=page, size=size, credit_card_id=credit_card_id)
    return BillPageResponse(
        items=[BillSummary.model_validate(bill) for bill in bill_page.items],
        total=bill_page.total,
        page=bill_page.page,
        size=bill_page.size,
    )


@router.get("/bills/{bill_id}", response_model=BillResponse)
def get_bill(
    bill_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: PurchaseManager = Depends(get_purchase_manager),
):
    with domain_errors(db, get_request_id(request)):
        bill = manager.get(bill_id)
        installments = manager.installments_of(bill_id)
    return _bill_response(bill, installments)


@router.put("/bills/{bill_id}", response_model=BillResponse)
def update_bill(
    bill_id: int,
    request_body: BillRequest,
    request: Request,
    db: Session = Depends(get_db),
    manager: PurchaseManager = Depends(get_purchase_manager),
):
    """
    Edit a purchase and reschedule its installments.

    The old installments come off their invoices before the limit is checked
    again. Refused with 409 if any old or new installment is on a closed invoice.
    """
    with domain_errors(db, get_request_id(request)):
        receipt = manager.update(bill_id, **request_body.model_dump())
    db.commit()

    bill = receipt.bill
    log_purchase_updated(
        get_request_id(request),
        bill.id,
        bill.credit_card_id,
        bill.number_of_installments,
        [inv.id for inv in receipt.invoices],
    )
    return _bill_response(bill, receipt.installments)


@router.get("/bills/{bill_id}/installments", response_model=List[InstallmentSchema])
def get_bill_installments(
    bill_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: PurchaseManager = Depends(get_purchase_manager),
):
    with domain_errors(db, get_request_id(request)):
        installments = manager.installments_of(bill_id)
    return [InstallmentSchema.model_validate(inst) for inst in installments]


@router.delete("/bills/{bill_id}", status_code=204)
def delete_bill(
    bill_id: int,
    request: Request,
    db: Session = Depends(get_db),
    manager: PurchaseManager = Depends(get_purchase_manager),
):
    """Delete a purchase; fails if any installment sits on a closed invoice"""
    with domain_errors(db, get_request_id(request)):
        manager.delete(bill_id)
    db.commit()
