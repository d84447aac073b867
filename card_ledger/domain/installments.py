"""Installment scheduling: due dates and invoice reference months for a purchase"""

from datetime import date, datetime
from decimal import Decimal, ROUND_DOWN
from typing import List
from card_ledger.domain.models import CENT, InstallmentDateInfo
from card_ledger.utils.date_utils import add_months, first_of_month, with_day_clamped


def calculate(
    purchase_timestamp: datetime,
    closing_day: int,
    due_day: int,
    installment_number: int,
) -> InstallmentDateInfo:
    """
    Compute the due date and invoice reference month of one installment.

    Billing cycle rules:
    - A purchase ON or AFTER the closing day belongs to next month's invoice,
      a purchase before it belongs to the current month's invoice
    - The first installment falls due next month when the purchase rolled over,
      or when the due day has already passed this month
    - Installment N falls due (N - 1) months after the first one
    - Due days missing from the target month clamp down to its last day
    - Installments after the first belong to the invoice of the month they fall due in

    Example (closing 21, due 28, purchase on the 29th of January):
        1 -> due 28/Feb, invoice Feb
        2 -> due 28/Mar, invoice Mar
    """
    purchase_date = purchase_timestamp.date() if isinstance(purchase_timestamp, datetime) else purchase_timestamp
    purchase_day = purchase_date.day
    rolled_over = purchase_day >= closing_day

    purchase_month = first_of_month(purchase_date)
    next_month = add_months(purchase_month, 1)

    if rolled_over:
        reference_month = next_month
        first_due_month = next_month
    else:
        reference_month = purchase_month
        # Due day already passed this month
        first_due_month = next_month if due_day < purchase_day else purchase_month

    due_month = add_months(first_due_month, installment_number - 1)
    due_date = with_day_clamped(due_month, due_day)

    if installment_number > 1:
        reference_month = first_of_month(due_date)

    return InstallmentDateInfo(
        installment_number=installment_number,
        due_date=due_date,
        reference_month=reference_month,
    )


def split_amount(total_amount: Decimal, num_installments: int) -> List[Decimal]:
    """
    Split a purchase total into installment amounts.

    Every installment gets the total divided by the count, rounded down to the
    cent. The last installment absorbs the remainder so the parts sum to the total.

    Example:
        Decimal("100.00") / 3 -> [33.33, 33.33, 33.34]
    """
    if num_installments < 1:
        return []

    base_amount = (total_amount / num_installments).quantize(CENT, rounding=ROUND_DOWN)
    remainder = total_amount - base_amount * num_installments

    amounts = [base_amount] * num_installments
    amounts[-1] = base_amount + remainder
    return amounts


def closing_date(reference_month: date, closing_day: int) -> date:
    """Day an invoice closes: its reference month at the card's closing day"""
    return with_day_clamped(reference_month, closing_day)
