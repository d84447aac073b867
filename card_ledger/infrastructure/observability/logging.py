"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pythonjsonlogger import jsonlogger
from card_ledger.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_domain_error(request_id: str, error: Exception, status_code: int) -> None:
    """Log a rejected ledger operation with its HTTP mapping"""
    logging.warning(
        f"Ledger operation rejected: {error}",
        extra={
            "request_id": request_id,
            "step": "domain_error",
            "error_type": type(error).__name__,
            "status_code": status_code,
        },
    )


def log_invoice_closed(
    request_id: str,
    invoice_id: int,
    paid: bool,
    trigger: str,
    carried_credit: Optional[Decimal] = None,
) -> None:
    """Log a close outcome; trigger is "manual" or "auto" (closing date passed)"""
    logging.info(
        "Invoice close completed",
        extra={
            "request_id": request_id,
            "invoice_id": invoice_id,
            "step": "invoice_closed",
            "close_outcome": "paid" if paid else "unpaid",
            "carried_credit": str(carried_credit) if carried_credit is not None else None,
            "trigger": trigger,
        },
    )


def log_purchase_registered(
    request_id: str,
    bill_id: int,
    credit_card_id: int,
    number_of_installments: int,
    invoice_ids: List[int],
) -> None:
    """Log where a purchase's installments landed"""
    logging.info(
        "Purchase registered",
        extra={
            "request_id": request_id,
            "bill_id": bill_id,
            "credit_card_id": credit_card_id,
            "step": "purchase_registered",
            "installments": number_of_installments,
            "invoice_ids": invoice_ids,
        },
    )


def log_purchase_updated(
    request_id: str,
    bill_id: int,
    credit_card_id: int,
    number_of_installments: int,
    invoice_ids: List[int],
) -> None:
    """Log where an edited purchase's installments were rescheduled to"""
    logging.info(
        "Purchase updated",
        extra={
            "request_id": request_id,
            "bill_id": bill_id,
            "credit_card_id": credit_card_id,
            "step": "purchase_updated",
            "installments": number_of_installments,
            "invoice_ids": invoice_ids,
        },
    )
