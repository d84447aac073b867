"""Translate ledger domain errors into HTTP responses"""

from contextlib import contextmanager

from fastapi import HTTPException
from sqlalchemy.orm import Session

from card_ledger.domain.exceptions import (
    CloseIncompleteError,
    ConcurrencyConflictError,
    CreditLimitExceededError,
    DomainException,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    PartialPaymentNotAllowedError,
    StateConflictError,
)
from card_ledger.infrastructure.observability.logging import log_domain_error
from card_ledger.infrastructure.observability.metrics import concurrency_conflict_counter


def status_for(error: DomainException) -> int:
    """HTTP status for a domain error kind"""
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, (PartialPaymentNotAllowedError, CreditLimitExceededError)):
        return 400
    if isinstance(error, (StateConflictError, ConcurrencyConflictError, CloseIncompleteError)):
        return 409
    if isinstance(error, (InvalidInputError, InvalidStateError)):
        return 400
    return 500


@contextmanager
def domain_errors(db: Session, request_id: str):
    """Roll back and raise HTTPException when a ledger operation fails"""
    try:
        yield
    except DomainException as e:
        db.rollback()
        status_code = status_for(e)
        if isinstance(e, ConcurrencyConflictError):
            concurrency_conflict_counter.inc()
        log_domain_error(request_id, e, status_code)
        raise HTTPException(status_code=status_code, detail=str(e))
