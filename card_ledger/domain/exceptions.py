"""Domain-specific exceptions, grouped by the kind of failure they represent"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


# Not found


class NotFoundError(DomainException):
    """A referenced entity does not exist"""

    entity = "Entity"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class CreditCardNotFoundError(NotFoundError):
    entity = "Credit card"


class InvoiceNotFoundError(NotFoundError):
    entity = "Invoice"


class PartialPaymentNotFoundError(NotFoundError):
    entity = "Partial payment"


class BillNotFoundError(NotFoundError):
    entity = "Bill"


# Invalid input


class InvalidInputError(DomainException):
    """Caller supplied a value outside the accepted domain"""

    pass


class InvalidPaymentAmountError(InvalidInputError):
    """Partial payment amount is missing or not strictly positive"""

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Payment amount must be greater than zero, got {amount}")


# Business-rule conflicts


class StateConflictError(DomainException):
    """Operation is not allowed in the entity's current state"""

    pass


class InvoiceAlreadyClosedError(StateConflictError):
    """Closing (or reopening) an invoice that is already closed"""

    def __init__(self, invoice_id):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice is already closed: {invoice_id}")


class InvoiceClosedError(StateConflictError):
    """Changing payments or charges on a closed invoice"""

    def __init__(self, invoice_id):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice is closed: {invoice_id}")


class PartialPaymentNotAllowedError(StateConflictError):
    """Credit card does not accept partial payments"""

    def __init__(self, credit_card_id):
        self.credit_card_id = credit_card_id
        super().__init__(f"Credit card does not allow partial payments: {credit_card_id}")


class CreditLimitExceededError(StateConflictError):
    """Purchase total is larger than the card's available limit"""

    def __init__(self, required, available):
        self.required = required
        self.available = available
        super().__init__(f"Insufficient limit. Required: {required}, available: {available}")


class CreditCardInUseError(StateConflictError):
    """Deleting a card that still has invoices or purchases"""

    def __init__(self, credit_card_id):
        self.credit_card_id = credit_card_id
        super().__init__(f"Credit card has invoices or purchases and cannot be deleted: {credit_card_id}")


class InvalidStateError(DomainException):
    """Stored data is inconsistent, or a manual edit is disabled for this invoice"""

    pass


class CloseIncompleteError(DomainException):
    """Credit was staged on the next invoice but the closed invoice was not written"""

    def __init__(self, invoice_id, credit_invoice_id, credit_amount):
        self.invoice_id = invoice_id
        self.credit_invoice_id = credit_invoice_id
        self.credit_amount = credit_amount
        super().__init__(
            f"Invoice {invoice_id} not closed; credit of {credit_amount} "
            f"already added to invoice {credit_invoice_id}"
        )


# Concurrency


class ConcurrencyConflictError(DomainException):
    """Optimistic version check failed; the caller may reload and retry"""

    def __init__(self, entity_id, expected_version):
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(f"Version conflict on {entity_id}: expected version {expected_version}")
