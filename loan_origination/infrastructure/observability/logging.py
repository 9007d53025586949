"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from loan_origination.config import settings


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


def log_transition(
    request_id: str,
    application_id: str,
    from_stage: str,
    to_stage: str,
    direction: str,
) -> None:
    """Log a workflow stage change"""
    logging.info(
        "Stage transition",
        extra={
            "request_id": request_id,
            "application_id": application_id,
            "step": "stage_transition",
            "from_stage": from_stage,
            "to_stage": to_stage,
            "direction": direction,
        },
    )


def log_submission(
    request_id: str,
    application_id: str,
    participant_id: str,
    amount: Decimal,
    confirmation_number: str,
) -> None:
    """Log structured submission outcome for reconciliation"""
    logging.info(
        "Loan application submitted",
        extra={
            "request_id": request_id,
            "application_id": application_id,
            "participant_id": participant_id,
            "step": "submission",
            "amount": str(amount),
            "confirmation_number": confirmation_number,
        },
    )
