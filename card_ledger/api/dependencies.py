"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from card_ledger.config import settings
from card_ledger.domain.credit_cards import CreditCardManager
from card_ledger.domain.invoices import InvoiceManager
from card_ledger.domain.limits import AvailableLimitCalculator
from card_ledger.domain.payments import PartialPaymentManager
from card_ledger.domain.purchases import PurchaseManager
from card_ledger.infrastructure.database.repositories import (
    BillRepository,
    CreditCardRepository,
    InstallmentRepository,
    InvoiceRepository,
    PartialPaymentRepository,
)
from card_ledger.infrastructure.database.session import get_db


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_credit_card_manager(db: Session = Depends(get_db)) -> CreditCardManager:
    return CreditCardManager(CreditCardRepository(db), InvoiceRepository(db), BillRepository(db))


def get_limit_calculator(db: Session = Depends(get_db)) -> AvailableLimitCalculator:
    return AvailableLimitCalculator(
        CreditCardRepository(db),
        InvoiceRepository(db),
        InstallmentRepository(db),
        PartialPaymentRepository(db),
    )


def get_invoice_manager(db: Session = Depends(get_db)) -> InvoiceManager:
    return InvoiceManager(
        InvoiceRepository(db),
        PartialPaymentRepository(db),
        InstallmentRepository(db),
        CreditCardRepository(db),
    )


def get_payment_manager(
    db: Session = Depends(get_db),
    limit_calculator: AvailableLimitCalculator = Depends(get_limit_calculator),
) -> PartialPaymentManager:
    return PartialPaymentManager(
        PartialPaymentRepository(db),
        InvoiceRepository(db),
        CreditCardRepository(db),
        limit_calculator,
    )


def get_purchase_manager(
    db: Session = Depends(get_db),
    invoice_manager: InvoiceManager = Depends(get_invoice_manager),
    limit_calculator: AvailableLimitCalculator = Depends(get_limit_calculator),
) -> PurchaseManager:
    return PurchaseManager(
        BillRepository(db),
        CreditCardRepository(db),
        InvoiceRepository(db),
        InstallmentRepository(db),
        invoice_manager,
        limit_calculator,
        max_installments=settings.max_installments,
    )
