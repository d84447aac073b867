"""Prometheus metrics for invoice closing, partial payments and purchases"""

from decimal import Decimal
from prometheus_client import Counter, Histogram

# Invoice metrics
invoice_closed_counter = Counter(
    "card_ledger_invoice_closed_total",
    "Invoices closed",
    ["outcome"],  # paid | unpaid
)

credit_carried_forward_counter = Counter(
    "card_ledger_credit_carried_forward_total",
    "Overpayment carried into the next month's invoice",
)

# Payment metrics
partial_payment_counter = Counter(
    "card_ledger_partial_payment_total",
    "Partial payment operations",
    ["action"],  # registered | deleted
)

# Purchase metrics
purchase_counter = Counter(
    "card_ledger_purchase_total",
    "Purchases registered",
)

purchase_installments_histogram = Histogram(
    "card_ledger_purchase_installments",
    "Installments per purchase",
    buckets=[1, 2, 3, 6, 10, 12, 18, 24, 48],
)

# Conflicts
concurrency_conflict_counter = Counter(
    "card_ledger_concurrency_conflict_total",
    "Optimistic version conflicts surfaced to callers",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_invoice_closed(paid: bool, carried_credit: Decimal = Decimal("0")) -> None:
    """Record a close outcome and any credit moved forward"""
    invoice_closed_counter.labels(outcome="paid" if paid else "unpaid").inc()
    if carried_credit > 0:
        credit_carried_forward_counter.inc(float(carried_credit))


def record_purchase(number_of_installments: int) -> None:
    purchase_counter.inc()
    purchase_installments_histogram.observe(number_of_installments)
