"""Partial payments against open invoices"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from card_ledger.domain.exceptions import (
    CreditCardNotFoundError,
    InvalidPaymentAmountError,
    InvalidStateError,
    InvoiceClosedError,
    InvoiceNotFoundError,
    PartialPaymentNotAllowedError,
    PartialPaymentNotFoundError,
)
from card_ledger.domain.limits import AvailableLimitCalculator
from card_ledger.domain.models import PartialPayment, PartialPaymentReceipt, to_money
from card_ledger.domain.ports import CreditCardStore, InvoiceStore, PartialPaymentStore

logger = logging.getLogger(__name__)


class PartialPaymentManager:
    """Validates, records and deletes partial payments"""

    def __init__(
        self,
        partial_payments: PartialPaymentStore,
        invoices: InvoiceStore,
        credit_cards: CreditCardStore,
        limit_calculator: AvailableLimitCalculator,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.partial_payments = partial_payments
        self.invoices = invoices
        self.credit_cards = credit_cards
        self.limit_calculator = limit_calculator
        self.clock = clock

    def register(
        self,
        invoice_id: int,
        amount: Optional[Decimal],
        description: Optional[str] = None,
    ) -> PartialPaymentReceipt:
        """
        Record a payment on an open invoice and return the refreshed available limit.

        Checks run in order and the first failure wins:
        invoice exists -> card exists -> card allows partial payments ->
        invoice is open -> amount > 0

        The amount is never compared with the invoice balance; paying more than
        owed is allowed and becomes credit when the invoice closes.
        """
        invoice = self.invoices.find_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)

        credit_card = self.credit_cards.find_by_id(invoice.credit_card_id)
        if credit_card is None:
            raise CreditCardNotFoundError(invoice.credit_card_id)

        if not credit_card.allows_partial_payment:
            raise PartialPaymentNotAllowedError(credit_card.id)

        if invoice.closed:
            raise InvoiceClosedError(invoice_id)

        # Compare at cent precision: anything that rounds to 0.00 is not a payment
        money = to_money(amount) if amount is not None else None
        if money is None or money <= 0:
            raise InvalidPaymentAmountError(amount)

        payment = self.partial_payments.save(
            PartialPayment(
                id=None,
                invoice_id=invoice_id,
                amount=money,
                payment_date=self.clock(),
                description=description,
            )
        )
        logger.info(
            "Partial payment registered",
            extra={"invoice_id": invoice_id, "payment_id": payment.id, "amount": str(payment.amount)},
        )

        available_limit = self.limit_calculator.available_limit(credit_card.id)
        return PartialPaymentReceipt(payment=payment, available_limit=available_limit)

    def delete(self, payment_id: int) -> bool:
        """Delete a payment; only legal while its invoice is open"""
        payment = self.partial_payments.find_by_id(payment_id)
        if payment is None:
            raise PartialPaymentNotFoundError(payment_id)

        invoice = self.invoices.find_by_id(payment.invoice_id)
        if invoice is None:
            raise InvalidStateError(f"Invoice {payment.invoice_id} missing for partial payment {payment_id}")

        if invoice.closed:
            raise InvoiceClosedError(invoice.id)

        self.partial_payments.delete_by_id(payment_id)
        logger.info("Partial payment deleted", extra={"invoice_id": invoice.id, "payment_id": payment_id})
        return True

    def list_by_invoice(self, invoice_id: int) -> List[PartialPayment]:
        if self.invoices.find_by_id(invoice_id) is None:
            raise InvoiceNotFoundError(invoice_id)
        return self.partial_payments.find_by_invoice(invoice_id)
