"""Credit card registration and maintenance"""

import logging
from decimal import Decimal
from typing import List

from card_ledger.domain.exceptions import CreditCardInUseError, CreditCardNotFoundError
from card_ledger.domain.models import CreditCard, to_money
from card_ledger.domain.ports import BillStore, CreditCardStore, InvoiceStore

logger = logging.getLogger(__name__)


class CreditCardManager:
    """Creates, edits and removes credit cards"""

    def __init__(self, credit_cards: CreditCardStore, invoices: InvoiceStore, bills: BillStore):
        self.credit_cards = credit_cards
        self.invoices = invoices
        self.bills = bills

    def create(
        self,
        name: str,
        credit_limit: Decimal,
        closing_day: int,
        due_day: int,
        allows_partial_payment: bool = False,
    ) -> CreditCard:
        """
        Register a card.

        Raises:
            InvalidInputError: Day outside 1-31 or non-positive limit
        """
        credit_card = self.credit_cards.create(
            CreditCard(
                id=None,
                name=name,
                credit_limit=to_money(credit_limit),
                closing_day=closing_day,
                due_day=due_day,
                allows_partial_payment=allows_partial_payment,
            )
        )
        logger.info("Credit card created", extra={"credit_card_id": credit_card.id})
        return credit_card

    def get(self, credit_card_id: int) -> CreditCard:
        credit_card = self.credit_cards.find_by_id(credit_card_id)
        if credit_card is None:
            raise CreditCardNotFoundError(credit_card_id)
        return credit_card

    def list_all(self) -> List[CreditCard]:
        return self.credit_cards.find_all()

    def update(
        self,
        credit_card_id: int,
        name: str,
        credit_limit: Decimal,
        closing_day: int,
        due_day: int,
        allows_partial_payment: bool = False,
    ) -> CreditCard:
        """
        Replace a card's settings.

        Existing invoices keep their reference months; a new closing day only
        affects where future installments land and when invoices auto-close.

        Raises:
            CreditCardNotFoundError: Unknown card
            InvalidInputError: Day outside 1-31 or non-positive limit
        """
        current = self.get(credit_card_id)
        updated = self.credit_cards.update(
            CreditCard(
                id=current.id,
                name=name,
                credit_limit=to_money(credit_limit),
                closing_day=closing_day,
                due_day=due_day,
                allows_partial_payment=allows_partial_payment,
                created_at=current.created_at,
            )
        )
        logger.info(
            "Credit card updated",
            extra={
                "credit_card_id": credit_card_id,
                "closing_day": updated.closing_day,
                "due_day": updated.due_day,
            },
        )
        return updated

    def delete(self, credit_card_id: int) -> bool:
        """
        Remove a card that has no ledger history.

        Raises:
            CreditCardNotFoundError: Unknown card
            CreditCardInUseError: The card has invoices or purchases
        """
        self.get(credit_card_id)
        if self.invoices.find_by_card(credit_card_id) or self.bills.count(credit_card_id=credit_card_id) > 0:
            raise CreditCardInUseError(credit_card_id)

        self.credit_cards.delete_by_id(credit_card_id)
        logger.info("Credit card deleted", extra={"credit_card_id": credit_card_id})
        return True
