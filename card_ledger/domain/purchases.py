"""Purchase registration: split a bill into installments and attach them to invoices"""

import logging
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from card_ledger.domain import installments as scheduler
from card_ledger.domain.exceptions import (
    BillNotFoundError,
    CreditCardNotFoundError,
    CreditLimitExceededError,
    InvalidInputError,
    InvoiceClosedError,
)
from card_ledger.domain.invoices import InvoiceManager
from card_ledger.domain.limits import AvailableLimitCalculator
from card_ledger.domain.models import (
    CENT,
    Bill,
    BillPage,
    CreditCard,
    Installment,
    Invoice,
    PurchaseReceipt,
    to_money,
)
from card_ledger.domain.ports import BillStore, CreditCardStore, InstallmentStore, InvoiceStore

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

# (installment number, amount, due date, invoice)
PlannedInstallment = Tuple[int, Decimal, date, Invoice]


class PurchaseManager:
    """Registers, edits and removes card purchases"""

    def __init__(
        self,
        bills: BillStore,
        credit_cards: CreditCardStore,
        invoices: InvoiceStore,
        installments: InstallmentStore,
        invoice_manager: InvoiceManager,
        limit_calculator: AvailableLimitCalculator,
        max_installments: int = 48,
    ):
        self.bills = bills
        self.credit_cards = credit_cards
        self.invoices = invoices
        self.installments = installments
        self.invoice_manager = invoice_manager
        self.limit_calculator = limit_calculator
        self.max_installments = max_installments

    def register(
        self,
        credit_card_id: int,
        name: str,
        execution_date: datetime,
        total_amount: Decimal,
        number_of_installments: int = 1,
        description: Optional[str] = None,
    ) -> PurchaseReceipt:
        """
        Create a bill and spread its installments over the card's invoices.

        Flow:
        1. Validate the card and the input
        2. Check the available limit once, against the whole purchase
        3. Schedule each installment and resolve its invoice (once per month)
        4. Add installment amounts to invoice totals, unless in absolute value mode
        5. Persist the bill, then invoices, then installments

        Raises:
            CreditCardNotFoundError: Unknown card
            InvalidInputError: Total below one cent per installment or installment count out of range
            CreditLimitExceededError: Purchase larger than the available limit
            InvoiceClosedError: An installment would land on a closed invoice
        """
        credit_card = self._card(credit_card_id)
        total_amount = self._validate(total_amount, number_of_installments)
        self._check_limit(credit_card_id, total_amount)

        logger.info(
            "Registering purchase",
            extra={
                "credit_card_id": credit_card_id,
                "execution_date": execution_date.isoformat(),
                "installments": number_of_installments,
                "closing_day": credit_card.closing_day,
                "due_day": credit_card.due_day,
            },
        )

        invoice_cache, planned = self._plan(credit_card, execution_date, total_amount, number_of_installments)

        bill = self.bills.create(
            Bill(
                id=None,
                credit_card_id=credit_card_id,
                name=name,
                execution_date=execution_date,
                total_amount=total_amount,
                number_of_installments=number_of_installments,
                description=description,
            )
        )
        return self._save(bill, invoice_cache, planned)

    def update(
        self,
        bill_id: int,
        credit_card_id: int,
        name: str,
        execution_date: datetime,
        total_amount: Decimal,
        number_of_installments: int = 1,
        description: Optional[str] = None,
    ) -> PurchaseReceipt:
        """
        Edit a purchase and reschedule its installments.

        The old installments are taken back off their invoices and deleted,
        then the limit is checked with them gone and the purchase is scheduled
        again, possibly on another card. Nothing moves if any old installment
        sits on a closed invoice.

        Writes happen in the caller's transaction; when a later step fails
        (limit, closed target invoice) the caller must roll back.

        Raises:
            BillNotFoundError: Unknown bill
            CreditCardNotFoundError: Unknown target card
            InvalidInputError: Total below one cent per installment or installment count out of range
            InvoiceClosedError: An old or new installment is on a closed invoice
            CreditLimitExceededError: New total larger than the available limit
        """
        bill = self.get(bill_id)
        credit_card = self._card(credit_card_id)
        total_amount = self._validate(total_amount, number_of_installments)

        old_installments = self.installments.find_by_bill(bill_id)
        reverted = self._revert(old_installments)
        self.invoices.update_all(reverted)
        self.installments.delete_by_bill(bill_id)

        self._check_limit(credit_card_id, total_amount)
        invoice_cache, planned = self._plan(credit_card, execution_date, total_amount, number_of_installments)

        bill = self.bills.update(
            replace(
                bill,
                credit_card_id=credit_card_id,
                name=name,
                execution_date=execution_date,
                total_amount=total_amount,
                number_of_installments=number_of_installments,
                description=description,
            )
        )
        logger.info(
            "Purchase updated",
            extra={
                "bill_id": bill_id,
                "credit_card_id": credit_card_id,
                "removed_installments": len(old_installments),
                "installments": number_of_installments,
            },
        )
        return self._save(bill, invoice_cache, planned)

    def delete(self, bill_id: int) -> bool:
        """Remove a bill and its installments, taking their amounts back off open invoices"""
        self.get(bill_id)

        bill_installments = self.installments.find_by_bill(bill_id)
        self.invoices.update_all(self._revert(bill_installments))
        self.installments.delete_by_bill(bill_id)
        self.bills.delete_by_id(bill_id)

        logger.info("Purchase deleted", extra={"bill_id": bill_id, "installments": len(bill_installments)})
        return True

    def get(self, bill_id: int) -> Bill:
        bill = self.bills.find_by_id(bill_id)
        if bill is None:
            raise BillNotFoundError(bill_id)
        return bill

    def list_bills(self, page: int = 0, size: int = 20, credit_card_id: Optional[int] = None) -> BillPage:
        """Page through purchases, newest execution date first"""
        if page < 0:
            raise InvalidInputError(f"Page must be zero or greater, got {page}")
        if not 1 <= size <= MAX_PAGE_SIZE:
            raise InvalidInputError(f"Page size must be between 1 and {MAX_PAGE_SIZE}, got {size}")

        items = self.bills.find_page(offset=page * size, limit=size, credit_card_id=credit_card_id)
        total = self.bills.count(credit_card_id=credit_card_id)
        return BillPage(items=items, total=total, page=page, size=size)

    def installments_of(self, bill_id: int) -> List[Installment]:
        self.get(bill_id)
        return self.installments.find_by_bill(bill_id)

    def _card(self, credit_card_id: int) -> CreditCard:
        credit_card = self.credit_cards.find_by_id(credit_card_id)
        if credit_card is None:
            raise CreditCardNotFoundError(credit_card_id)
        return credit_card

    def _validate(self, total_amount: Optional[Decimal], number_of_installments: int) -> Decimal:
        if not 1 <= number_of_installments <= self.max_installments:
            raise InvalidInputError(
                f"Number of installments must be between 1 and {self.max_installments}, got {number_of_installments}"
            )
        if total_amount is None:
            raise InvalidInputError("Purchase total is required")

        # Validate the stored (cent) value, not the raw input
        money = to_money(total_amount)
        if money < CENT * number_of_installments:
            raise InvalidInputError(
                f"Purchase total must be at least 0.01 per installment, got {total_amount} "
                f"for {number_of_installments} installments"
            )
        return money

    def _check_limit(self, credit_card_id: int, total_amount: Decimal) -> None:
        limit = self.limit_calculator.available_limit(credit_card_id)
        if total_amount > limit.available_limit:
            raise CreditLimitExceededError(total_amount, limit.available_limit)

    def _plan(
        self,
        credit_card: CreditCard,
        execution_date: datetime,
        total_amount: Decimal,
        number_of_installments: int,
    ) -> Tuple[Dict[date, Invoice], List[PlannedInstallment]]:
        # One invoice object per reference month so each is written once
        invoice_cache: Dict[date, Invoice] = {}
        planned: List[PlannedInstallment] = []
        amounts = scheduler.split_amount(total_amount, number_of_installments)

        for number, amount in enumerate(amounts, start=1):
            date_info = scheduler.calculate(execution_date, credit_card.closing_day, credit_card.due_day, number)

            invoice = invoice_cache.get(date_info.reference_month)
            if invoice is None:
                invoice = self.invoice_manager.resolve_invoice(credit_card.id, date_info.reference_month)
                if invoice.closed:
                    raise InvoiceClosedError(invoice.id)
                invoice_cache[date_info.reference_month] = invoice

            if not invoice.use_absolute_value:
                invoice.total_amount = to_money(invoice.total_amount) + amount

            planned.append((number, amount, date_info.due_date, invoice))

        return invoice_cache, planned

    def _revert(self, bill_installments: List[Installment]) -> List[Invoice]:
        """Subtract installments from their invoices in memory; refuses closed invoices"""
        touched: Dict[int, Invoice] = {}
        for installment in bill_installments:
            invoice = touched.get(installment.invoice_id) or self.invoice_manager.get(installment.invoice_id)
            if invoice.closed:
                raise InvoiceClosedError(invoice.id)
            if not invoice.use_absolute_value:
                invoice.total_amount = to_money(invoice.total_amount) - installment.amount
            touched[invoice.id] = invoice
        return list(touched.values())

    def _save(
        self,
        bill: Bill,
        invoice_cache: Dict[date, Invoice],
        planned: List[PlannedInstallment],
    ) -> PurchaseReceipt:
        new_installments = [
            Installment(
                id=None,
                bill_id=bill.id,
                credit_card_id=bill.credit_card_id,
                invoice_id=invoice.id,
                installment_number=number,
                amount=amount,
                due_date=due_date,
            )
            for number, amount, due_date, invoice in planned
        ]

        saved_invoices = self.invoices.update_all(list(invoice_cache.values()))
        saved_installments = self.installments.save_all(new_installments)

        return PurchaseReceipt(bill=bill, installments=saved_installments, invoices=saved_invoices)
