"""Invoice lifecycle: resolve-or-create, closing with credit carry-forward, manual overrides"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from card_ledger.domain.exceptions import (
    CloseIncompleteError,
    CreditCardNotFoundError,
    DomainException,
    InvalidInputError,
    InvalidStateError,
    InvoiceNotFoundError,
)
from card_ledger.domain.installments import closing_date
from card_ledger.domain.models import ZERO, Installment, Invoice, InvoiceBalance, InvoiceCloseResult, to_money
from card_ledger.domain.ports import CreditCardStore, InstallmentStore, InvoiceStore, PartialPaymentStore
from card_ledger.utils.date_utils import add_months, first_of_month

logger = logging.getLogger(__name__)


class InvoiceManager:
    """Owns invoice creation, state transitions and balance views"""

    def __init__(
        self,
        invoices: InvoiceStore,
        partial_payments: PartialPaymentStore,
        installments: InstallmentStore,
        credit_cards: CreditCardStore,
    ):
        self.invoices = invoices
        self.partial_payments = partial_payments
        self.installments = installments
        self.credit_cards = credit_cards

    def get(self, invoice_id: int) -> Invoice:
        invoice = self.invoices.find_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def resolve_invoice(self, credit_card_id: int, reference_month: date) -> Invoice:
        """Return the card's invoice for the month, creating an empty open one if absent"""
        return self.invoices.get_or_create(credit_card_id, first_of_month(reference_month))

    def close(self, invoice_id: int) -> InvoiceCloseResult:
        """
        Close an open invoice.

        final_amount = total_amount - partial payments
        - final_amount <= 0: the invoice is closed as paid
        - final_amount < 0: the overpayment is added to next month's
          previous_balance (the next invoice is created if needed)
        - final_amount > 0: the debt stays on this invoice, nothing moves

        The next month's invoice is written before this one, so an interrupted
        close leaves the credit staged rather than lost.

        Raises:
            InvoiceNotFoundError: Unknown invoice
            InvoiceAlreadyClosedError: Invoice was closed before
            CloseIncompleteError: Credit staged but this invoice could not be written
        """
        invoice = self.get(invoice_id)
        payments_total = to_money(self.partial_payments.sum_by_invoice(invoice_id))
        final_amount = to_money(invoice.total_amount) - payments_total

        invoice.close_with(final_amount)

        credit = ZERO
        credit_invoice = None
        if final_amount < 0:
            credit = -final_amount
            next_month = add_months(invoice.reference_month, 1)
            credit_invoice = self.invoices.get_or_create(invoice.credit_card_id, next_month)
            credit_invoice.previous_balance = to_money(credit_invoice.previous_balance) + credit
            credit_invoice = self.invoices.update(credit_invoice)
            logger.info(
                "Credit carried forward",
                extra={
                    "invoice_id": invoice_id,
                    "next_invoice_id": credit_invoice.id,
                    "credit_amount": str(credit),
                },
            )

        try:
            closed = self.invoices.update(invoice)
        except DomainException as e:
            if credit_invoice is None:
                raise
            logger.error(
                "Close failed after credit was staged",
                extra={"invoice_id": invoice_id, "next_invoice_id": credit_invoice.id},
            )
            raise CloseIncompleteError(invoice_id, credit_invoice.id, credit) from e

        logger.info(
            "Invoice closed",
            extra={
                "invoice_id": invoice_id,
                "final_amount": str(final_amount),
                "paid": closed.paid,
            },
        )
        return InvoiceCloseResult(
            invoice=closed,
            final_amount=final_amount,
            carried_credit=credit,
            credit_invoice_id=credit_invoice.id if credit_invoice is not None else None,
        )

    def close_due(self, credit_card_id: int, today: date) -> List[InvoiceCloseResult]:
        """
        Close every open invoice of the card whose closing date is on or before today.

        An invoice that cannot be closed cleanly is logged and skipped, unless
        its credit was already staged on the next invoice: CloseIncompleteError
        propagates so the caller rolls the batch back instead of committing a
        credit whose source invoice is still open.
        """
        credit_card = self.credit_cards.find_by_id(credit_card_id)
        if credit_card is None:
            raise CreditCardNotFoundError(credit_card_id)

        closed = []
        for invoice in self.invoices.find_by_card(credit_card_id):
            if invoice.closed:
                continue
            if today < closing_date(invoice.reference_month, credit_card.closing_day):
                continue
            try:
                closed.append(self.close(invoice.id))
            except CloseIncompleteError:
                raise
            except DomainException as e:
                logger.error(
                    f"Failed to auto-close invoice: {e}",
                    extra={"invoice_id": invoice.id, "credit_card_id": credit_card_id},
                )
        return closed

    def balance(self, invoice_id: int) -> InvoiceBalance:
        """Live balance: total_amount + previous_balance - partial payments"""
        invoice = self.get(invoice_id)
        payments_total = to_money(self.partial_payments.sum_by_invoice(invoice_id))
        payments_count = self.partial_payments.count_by_invoice(invoice_id)

        current_balance = to_money(invoice.total_amount) + to_money(invoice.previous_balance) - payments_total

        return InvoiceBalance(
            invoice_id=invoice.id,
            total_amount=to_money(invoice.total_amount),
            previous_balance=to_money(invoice.previous_balance),
            partial_payments_total=payments_total,
            current_balance=current_balance,
            paid=invoice.paid,
            closed=invoice.closed,
            partial_payments_count=payments_count,
        )

    def mark_paid(self, invoice_id: int) -> Invoice:
        invoice = self.get(invoice_id)
        invoice.mark_paid()
        return self.invoices.update(invoice)

    def mark_unpaid(self, invoice_id: int) -> Invoice:
        invoice = self.get(invoice_id)
        invoice.mark_unpaid()
        return self.invoices.update(invoice)

    def set_use_absolute_value(self, invoice_id: int, use_absolute_value: bool) -> Invoice:
        invoice = self.get(invoice_id)
        invoice.use_absolute_value = use_absolute_value
        return self.invoices.update(invoice)

    def update_total_amount(self, invoice_id: int, total_amount: Decimal) -> Invoice:
        """Set total_amount by hand; only allowed in absolute value mode"""
        invoice = self.get(invoice_id)
        if not invoice.use_absolute_value:
            raise InvalidStateError(
                "Cannot update total amount while use_absolute_value is disabled; "
                "the total is calculated from installments"
            )
        invoice.total_amount = to_money(total_amount)
        return self.invoices.update(invoice)

    def register_available_limit(
        self,
        invoice_id: int,
        register_available_limit: bool,
        registered_available_limit: Optional[Decimal] = None,
    ) -> Invoice:
        """Pin (or unpin) a closed invoice as the starting point for limit calculations"""
        invoice = self.get(invoice_id)

        if register_available_limit:
            if not invoice.closed:
                raise InvalidStateError("Close the invoice before registering an available limit")
            if registered_available_limit is None:
                raise InvalidInputError("Registered available limit is required")
            if registered_available_limit < 0:
                raise InvalidInputError("Registered available limit must be zero or greater")

        invoice.register_available_limit = register_available_limit
        invoice.registered_available_limit = (
            to_money(registered_available_limit) if register_available_limit else None
        )
        return self.invoices.update(invoice)

    def list_by_card(self, credit_card_id: int) -> List[Invoice]:
        return sorted(self.invoices.find_by_card(credit_card_id), key=lambda inv: inv.reference_month)

    def installments_of(self, invoice_id: int) -> List[Installment]:
        self.get(invoice_id)
        return self.installments.find_by_invoice(invoice_id)
