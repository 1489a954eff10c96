"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from bank_sync.domain.models import SyncOutcome


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "bank-sync"


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


def log_sync_outcome(user_id: str, outcome: SyncOutcome, duration_ms: float) -> None:
    """Log structured refresh outcome for analysis"""
    logging.getLogger("bank_sync.sync").info(
        "Refresh completed",
        extra={
            "user_id": user_id,
            "step": "refresh_complete",
            "sync_status": outcome.status.value,
            "strategy": outcome.strategy.value if outcome.strategy else None,
            "fetched_count": outcome.fetched_count,
            "total_count": outcome.total_count,
            "suggestion_count": outcome.suggestion_count,
            "error_kind": outcome.error_kind.value if outcome.error_kind else None,
            "duration_ms": duration_ms,
        },
    )
