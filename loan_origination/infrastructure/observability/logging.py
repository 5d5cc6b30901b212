"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
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
    """Configure structured JSON logging on the root logger"""
    logger = logging.getLogger()
    logger.setLevel(level)

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Keep SQL chatter out of application logs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_transition(
    application_id: Any,
    consumer_id: str,
    from_status: Optional[str],
    to_status: str,
    step: Optional[int] = None,
) -> None:
    """Log a loan application lifecycle transition"""
    logging.info(
        "Application transition",
        extra={
            "application_id": str(application_id),
            "consumer_id": consumer_id,
            "from_status": from_status,
            "to_status": to_status,
            "step": step,
        },
    )


def log_signing_event(contract_id: Any, consumer_id: str, outcome: str, **fields: Any) -> None:
    """Log a contract signing event (PIN issued, verified, rejected)"""
    logging.info(
        "Signing event",
        extra={
            "contract_id": str(contract_id),
            "consumer_id": consumer_id,
            "outcome": outcome,
            **fields,
        },
    )
