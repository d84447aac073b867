"""Integration tests for the ledger services over the SQLAlchemy repositories"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from card_ledger.domain.exceptions import (
    CloseIncompleteError,
    ConcurrencyConflictError,
    CreditCardInUseError,
    CreditLimitExceededError,
    InvalidInputError,
    InvalidPaymentAmountError,
    InvoiceClosedError,
    PartialPaymentNotAllowedError,
)
from card_ledger.domain.invoices import InvoiceManager
from card_ledger.domain.models import Invoice, InvoiceState
from card_ledger.infrastructure.database.repositories import (
    CreditCardRepository,
    InstallmentRepository,
    InvoiceRepository,
    PartialPaymentRepository,
)


class _RacingInvoiceRepository(InvoiceRepository):
    """Bumps one invoice's version right before its first write, as a concurrent writer would"""

    def __init__(self, db, invoice_id: int):
        super().__init__(db)
        self.invoice_id = invoice_id
        self.raced = False

    def update(self, invoice: Invoice) -> Invoice:
        if invoice.id == self.invoice_id and not self.raced:
            self.raced = True
            super().update(self.find_by_id(invoice.id))
        return super().update(invoice)


def test_resolve_invoice_is_unique_per_card_and_month(make_card, invoice_manager, invoice_repo):
    card = make_card()

    first = invoice_manager.resolve_invoice(card.id, date(2025, 5, 3))
    second = invoice_manager.resolve_invoice(card.id, date(2025, 5, 28))

    assert first.id == second.id
    assert first.reference_month == date(2025, 5, 1)
    assert first.state is InvoiceState.OPEN_UNPAID
    assert first.total_amount == Decimal("0.00")
    assert len(invoice_repo.find_by_card(card.id)) == 1


def test_stale_invoice_write_is_rejected(make_card, invoice_manager, invoice_repo):
    card = make_card()
    invoice = invoice_manager.resolve_invoice(card.id, date(2025, 5, 1))

    reader_a = invoice_repo.find_by_id(invoice.id)
    reader_b = invoice_repo.find_by_id(invoice.id)

    reader_a.total_amount = Decimal("10.00")
    saved = invoice_repo.update(reader_a)
    assert saved.version == reader_a.version + 1

    reader_b.total_amount = Decimal("20.00")
    with pytest.raises(ConcurrencyConflictError):
        invoice_repo.update(reader_b)

    assert invoice_repo.find_by_id(invoice.id).total_amount == Decimal("10.00")


def test_billing_cycle_end_to_end(make_card, purchase_manager, payment_manager, invoice_manager, limit_calculator):
    """Purchase on the 29th with closing 21 / due 28 lands on the next three invoices"""
    card = make_card()

    receipt = purchase_manager.register(
        card.id, "Laptop", datetime(2025, 1, 29, 14, 30), Decimal("900.00"), number_of_installments=3
    )

    assert [i.due_date for i in receipt.installments] == [
        date(2025, 2, 28),
        date(2025, 3, 28),
        date(2025, 4, 28),
    ]
    assert [inv.reference_month for inv in receipt.invoices] == [
        date(2025, 2, 1),
        date(2025, 3, 1),
        date(2025, 4, 1),
    ]
    assert all(inv.total_amount == Decimal("300.00") for inv in receipt.invoices)
    assert limit_calculator.available_limit(card.id).available_limit == Decimal("4100.00")

    february = receipt.invoices[0]
    payment_receipt = payment_manager.register(february.id, Decimal("100.00"), "Early payment")
    assert payment_receipt.available_limit.available_limit == Decimal("4200.00")

    balance = invoice_manager.balance(february.id)
    assert balance.current_balance == Decimal("200.00")
    assert balance.partial_payments_count == 1

    closed = invoice_manager.close(february.id).invoice
    assert closed.state is InvoiceState.CLOSED_UNPAID

    # February no longer counts against the limit; its payment goes with it
    assert limit_calculator.available_limit(card.id).available_limit == Decimal("4400.00")

    march = invoice_manager.get(receipt.invoices[1].id)
    assert march.previous_balance == Decimal("0.00")


def test_overpaid_invoice_credits_next_month(make_card, purchase_manager, payment_manager, invoice_manager):
    card = make_card()
    receipt = purchase_manager.register(card.id, "TV", datetime(2025, 3, 5), Decimal("1000.00"))
    march = receipt.invoices[0]

    payment_manager.register(march.id, Decimal("1500.00"))
    closed = invoice_manager.close(march.id).invoice

    assert closed.state is InvoiceState.CLOSED_PAID
    april = invoice_manager.resolve_invoice(card.id, date(2025, 4, 1))
    assert april.previous_balance == Decimal("500.00")
    assert april.state is InvoiceState.OPEN_UNPAID


def test_partial_payment_on_closed_invoice_is_rejected(make_card, purchase_manager, payment_manager, invoice_manager):
    card = make_card()
    receipt = purchase_manager.register(card.id, "Shoes", datetime(2025, 3, 5), Decimal("200.00"))
    invoice_manager.close(receipt.invoices[0].id)

    with pytest.raises(InvoiceClosedError):
        payment_manager.register(receipt.invoices[0].id, Decimal("50.00"))


def test_partial_payment_rules(make_card, invoice_manager, payment_manager):
    no_partial = make_card(allows_partial_payment=False)
    invoice = invoice_manager.resolve_invoice(no_partial.id, date(2025, 3, 1))

    with pytest.raises(PartialPaymentNotAllowedError):
        payment_manager.register(invoice.id, Decimal("10.00"))

    card = make_card()
    open_invoice = invoice_manager.resolve_invoice(card.id, date(2025, 3, 1))
    with pytest.raises(InvalidPaymentAmountError):
        payment_manager.register(open_invoice.id, Decimal("0.00"))


def test_delete_partial_payment_restores_balance(make_card, purchase_manager, payment_manager, invoice_manager):
    card = make_card()
    receipt = purchase_manager.register(card.id, "Desk", datetime(2025, 3, 5), Decimal("400.00"))
    invoice_id = receipt.invoices[0].id
    payment = payment_manager.register(invoice_id, Decimal("150.00")).payment

    assert payment_manager.delete(payment.id) is True

    balance = invoice_manager.balance(invoice_id)
    assert balance.current_balance == Decimal("400.00")
    assert balance.partial_payments_count == 0
    assert payment_manager.list_by_invoice(invoice_id) == []


def test_purchase_over_available_limit(make_card, purchase_manager):
    card = make_card(credit_limit="1000.00")

    with pytest.raises(CreditLimitExceededError):
        purchase_manager.register(card.id, "Sofa", datetime(2025, 3, 5), Decimal("1000.01"))


def test_purchase_on_closed_invoice_is_rejected(make_card, purchase_manager, invoice_manager, installment_repo):
    card = make_card()
    march = invoice_manager.resolve_invoice(card.id, date(2025, 3, 1))
    invoice_manager.close(march.id)

    with pytest.raises(InvoiceClosedError):
        purchase_manager.register(card.id, "Late", datetime(2025, 3, 5), Decimal("50.00"))

    assert installment_repo.find_by_invoice(march.id) == []


def test_delete_purchase_reverts_invoice_totals(make_card, purchase_manager, invoice_manager, limit_calculator):
    card = make_card()
    receipt = purchase_manager.register(card.id, "Bike", datetime(2025, 3, 5), Decimal("600.00"), 2)

    assert purchase_manager.delete(receipt.bill.id) is True

    for invoice in receipt.invoices:
        refreshed = invoice_manager.get(invoice.id)
        assert refreshed.total_amount == Decimal("0.00")
        assert invoice_manager.installments_of(invoice.id) == []
    assert limit_calculator.available_limit(card.id).available_limit == Decimal("5000.00")


def test_absolute_value_invoice_keeps_manual_total(make_card, purchase_manager, invoice_manager):
    card = make_card()
    invoice = invoice_manager.resolve_invoice(card.id, date(2025, 3, 1))
    invoice_manager.set_use_absolute_value(invoice.id, True)
    invoice_manager.update_total_amount(invoice.id, Decimal("777.00"))

    purchase_manager.register(card.id, "Lamp", datetime(2025, 3, 5), Decimal("100.00"))

    refreshed = invoice_manager.get(invoice.id)
    assert refreshed.total_amount == Decimal("777.00")
    assert len(invoice_manager.installments_of(invoice.id)) == 1


def test_registered_limit_anchors_available_limit(make_card, purchase_manager, invoice_manager, limit_calculator):
    card = make_card()
    march = purchase_manager.register(card.id, "Phone", datetime(2025, 3, 5), Decimal("500.00")).invoices[0]
    invoice_manager.close(march.id)
    invoice_manager.register_available_limit(march.id, True, Decimal("3000.00"))

    purchase_manager.register(card.id, "Case", datetime(2025, 4, 5), Decimal("200.00"))

    assert limit_calculator.available_limit(card.id).available_limit == Decimal("2800.00")

    invoice_manager.register_available_limit(march.id, False)
    assert limit_calculator.available_limit(card.id).available_limit == Decimal("4800.00")


def test_close_due_closes_past_cycles_only(make_card, purchase_manager, invoice_manager):
    card = make_card()
    purchase_manager.register(card.id, "Trip", datetime(2025, 3, 5), Decimal("300.00"), 3)

    closed = invoice_manager.close_due(card.id, today=date(2025, 4, 21))

    assert [result.invoice.reference_month for result in closed] == [date(2025, 3, 1), date(2025, 4, 1)]
    states = {inv.reference_month: inv.state for inv in invoice_manager.list_by_card(card.id)}
    assert states[date(2025, 5, 1)] is InvoiceState.OPEN_UNPAID


def test_close_due_rolls_back_staged_credit_when_close_fails(
    db, make_card, purchase_manager, payment_manager, invoice_repo
):
    card = make_card()
    january = purchase_manager.register(card.id, "Coat", datetime(2020, 1, 10), Decimal("100.00")).invoices[0]
    payment_manager.register(january.id, Decimal("150.00"))
    db.commit()

    racing = InvoiceManager(
        _RacingInvoiceRepository(db, january.id),
        PartialPaymentRepository(db),
        InstallmentRepository(db),
        CreditCardRepository(db),
    )
    with pytest.raises(CloseIncompleteError) as excinfo:
        racing.close_due(card.id, today=date(2020, 2, 1))
    assert excinfo.value.credit_amount == Decimal("50.00")
    db.rollback()

    # Retrying after the rollback credits February exactly once
    retry = InvoiceManager(
        InvoiceRepository(db),
        PartialPaymentRepository(db),
        InstallmentRepository(db),
        CreditCardRepository(db),
    )
    closed = retry.close_due(card.id, today=date(2020, 2, 1))

    assert [result.invoice.id for result in closed] == [january.id]
    assert closed[0].carried_credit == Decimal("50.00")
    february = invoice_repo.find_by_card_and_month(card.id, date(2020, 2, 1))
    assert february.previous_balance == Decimal("50.00")
    assert february.closed is False


@pytest.mark.parametrize(
    "total,installments",
    [(Decimal("0.001"), 1), (Decimal("0.004"), 1), (Decimal("0.02"), 3)],
)
def test_purchase_below_one_cent_per_installment_is_rejected(make_card, purchase_manager, total, installments):
    card = make_card()

    with pytest.raises(InvalidInputError):
        purchase_manager.register(card.id, "Gum", datetime(2025, 3, 5), total, installments)

    assert purchase_manager.list_bills().total == 0


def test_purchase_total_is_stored_at_cent_precision(make_card, purchase_manager):
    card = make_card()

    receipt = purchase_manager.register(card.id, "Gum", datetime(2025, 3, 5), Decimal("10.006"), 2)

    assert receipt.bill.total_amount == Decimal("10.01")
    assert sum(inst.amount for inst in receipt.installments) == Decimal("10.01")


def test_update_purchase_reschedules_installments(make_card, purchase_manager, invoice_manager, invoice_repo):
    card = make_card()
    receipt = purchase_manager.register(card.id, "Trip", datetime(2025, 3, 5), Decimal("300.00"), 3)

    updated = purchase_manager.update(
        receipt.bill.id, card.id, "Trip (rebooked)", datetime(2025, 4, 5), Decimal("500.00"), 2, "new dates"
    )

    assert updated.bill.id == receipt.bill.id
    assert updated.bill.name == "Trip (rebooked)"
    assert updated.bill.total_amount == Decimal("500.00")
    assert updated.bill.number_of_installments == 2
    assert [inst.installment_number for inst in purchase_manager.installments_of(receipt.bill.id)] == [1, 2]

    totals = {inv.reference_month: inv.total_amount for inv in invoice_repo.find_by_card(card.id)}
    assert totals == {
        date(2025, 3, 1): Decimal("0.00"),
        date(2025, 4, 1): Decimal("250.00"),
        date(2025, 5, 1): Decimal("250.00"),
    }


def test_update_purchase_rechecks_limit_without_its_old_amount(make_card, purchase_manager, limit_calculator):
    card = make_card(credit_limit="1000.00")
    receipt = purchase_manager.register(card.id, "Sofa", datetime(2025, 3, 5), Decimal("800.00"))

    purchase_manager.update(receipt.bill.id, card.id, "Sofa", datetime(2025, 3, 5), Decimal("900.00"))

    assert limit_calculator.available_limit(card.id).available_limit == Decimal("100.00")

    with pytest.raises(CreditLimitExceededError):
        purchase_manager.update(receipt.bill.id, card.id, "Sofa", datetime(2025, 3, 5), Decimal("1000.01"))


def test_update_purchase_moves_it_to_another_card(make_card, purchase_manager, limit_calculator, invoice_repo):
    first = make_card()
    second = make_card()
    receipt = purchase_manager.register(first.id, "Desk", datetime(2025, 3, 5), Decimal("300.00"))

    moved = purchase_manager.update(receipt.bill.id, second.id, "Desk", datetime(2025, 3, 5), Decimal("300.00"))

    assert moved.bill.credit_card_id == second.id
    assert all(inst.credit_card_id == second.id for inst in moved.installments)
    assert invoice_repo.find_by_card_and_month(first.id, date(2025, 3, 1)).total_amount == Decimal("0.00")
    assert invoice_repo.find_by_card_and_month(second.id, date(2025, 3, 1)).total_amount == Decimal("300.00")
    assert limit_calculator.available_limit(first.id).available_limit == Decimal("5000.00")
    assert limit_calculator.available_limit(second.id).available_limit == Decimal("4700.00")


def test_update_purchase_on_closed_invoice_is_rejected(make_card, purchase_manager, invoice_manager):
    card = make_card()
    receipt = purchase_manager.register(card.id, "Bike", datetime(2025, 3, 5), Decimal("600.00"), 2)
    invoice_manager.close(receipt.invoices[0].id)

    with pytest.raises(InvoiceClosedError):
        purchase_manager.update(receipt.bill.id, card.id, "Bike", datetime(2025, 5, 5), Decimal("600.00"), 2)

    assert len(purchase_manager.installments_of(receipt.bill.id)) == 2
    assert invoice_manager.get(receipt.invoices[1].id).total_amount == Decimal("300.00")


def test_list_bills_pages_newest_first(make_card, purchase_manager):
    card = make_card()
    other = make_card()
    for day in (3, 4, 5):
        purchase_manager.register(card.id, f"Item {day}", datetime(2025, 3, day), Decimal("10.00"))
    purchase_manager.register(other.id, "Other", datetime(2025, 3, 6), Decimal("10.00"))

    first_page = purchase_manager.list_bills(page=0, size=2, credit_card_id=card.id)
    second_page = purchase_manager.list_bills(page=1, size=2, credit_card_id=card.id)

    assert [bill.name for bill in first_page.items] == ["Item 5", "Item 4"]
    assert [bill.name for bill in second_page.items] == ["Item 3"]
    assert first_page.total == second_page.total == 3
    assert purchase_manager.list_bills().total == 4

    with pytest.raises(InvalidInputError):
        purchase_manager.list_bills(size=0)
    with pytest.raises(InvalidInputError):
        purchase_manager.list_bills(page=-1)


def test_delete_card_only_without_history(make_card, purchase_manager, credit_card_manager, card_repo):
    used = make_card()
    unused = make_card()
    purchase_manager.register(used.id, "Lamp", datetime(2025, 3, 5), Decimal("50.00"))

    with pytest.raises(CreditCardInUseError):
        credit_card_manager.delete(used.id)

    assert credit_card_manager.delete(unused.id) is True
    assert card_repo.find_by_id(unused.id) is None
    assert [card.id for card in credit_card_manager.list_all()] == [used.id]


def test_update_card_changes_future_scheduling(make_card, credit_card_manager, purchase_manager):
    card = make_card()

    credit_card_manager.update(card.id, "Renamed", Decimal("7000.00"), 5, 15, False)
    receipt = purchase_manager.register(card.id, "Shoes", datetime(2025, 3, 10), Decimal("80.00"))

    assert credit_card_manager.get(card.id).name == "Renamed"
    # Past the new closing day, the purchase lands on next month's invoice
    assert receipt.invoices[0].reference_month == date(2025, 4, 1)
