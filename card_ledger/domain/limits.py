"""Available credit limit calculation"""

import logging
from decimal import Decimal
from typing import List

from card_ledger.domain.exceptions import CreditCardNotFoundError
from card_ledger.domain.models import ZERO, AvailableLimit, Invoice, to_money
from card_ledger.domain.ports import CreditCardStore, InstallmentStore, InvoiceStore, PartialPaymentStore

logger = logging.getLogger(__name__)


class AvailableLimitCalculator:
    """
    Aggregate a card's open charges into a limit snapshot.

    Formula:
        available = credit_limit - used_limit + partial_payments_total

    - used_limit: installments on invoices that are OPEN and UNPAID
    - partial_payments_total: payments on the same invoices
    - An invoice marked paid, even while open, no longer consumes limit
    - The result may exceed credit_limit (large payments) or go negative (over limit)

    When the card has an invoice flagged register_available_limit, the most
    recent one anchors the calculation: its registered value replaces
    credit_limit as the starting point and only later invoices are summed.
    """

    def __init__(
        self,
        credit_cards: CreditCardStore,
        invoices: InvoiceStore,
        installments: InstallmentStore,
        partial_payments: PartialPaymentStore,
    ):
        self.credit_cards = credit_cards
        self.invoices = invoices
        self.installments = installments
        self.partial_payments = partial_payments

    def available_limit(self, credit_card_id: int) -> AvailableLimit:
        credit_card = self.credit_cards.find_by_id(credit_card_id)
        if credit_card is None:
            raise CreditCardNotFoundError(credit_card_id)

        credit_limit = to_money(credit_card.credit_limit)
        starting_limit = credit_limit
        open_unpaid = self.invoices.find_by_card_and_flags(credit_card_id, closed=False, paid=False)

        anchors = self.invoices.find_registered_limits(credit_card_id)
        if anchors:
            anchor = anchors[0]
            starting_limit = to_money(anchor.registered_available_limit)
            open_unpaid = [inv for inv in open_unpaid if inv.reference_month > anchor.reference_month]

        used_limit, payments_total = self._open_totals(open_unpaid)
        available = starting_limit - used_limit + payments_total

        logger.debug(
            "Available limit computed",
            extra={
                "credit_card_id": credit_card_id,
                "open_invoices": len(open_unpaid),
                "available_limit": str(available),
            },
        )
        return AvailableLimit(
            credit_card_id=credit_card_id,
            credit_limit=credit_limit,
            used_limit=used_limit,
            partial_payments_total=payments_total,
            available_limit=available,
        )

    def _open_totals(self, invoices: List[Invoice]) -> tuple[Decimal, Decimal]:
        # Nothing open: skip the sum queries entirely
        if not invoices:
            return ZERO, ZERO

        invoice_ids = [inv.id for inv in invoices]
        used_limit = to_money(self.installments.sum_by_invoice_ids(invoice_ids))
        payments_total = to_money(self.partial_payments.sum_by_invoice_ids(invoice_ids))
        return used_limit, payments_total
