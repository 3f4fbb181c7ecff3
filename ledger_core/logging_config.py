"""
Structured Logging Configuration Module

Ledger loggers live under the "ledger_core" namespace. Structured context
(account, action, correlation id) rides on the log record and is rendered
as JSON or plain text depending on LedgerConfig.log_format.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import get_config


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Record attributes carried through from log_action
CONTEXT_FIELDS = ("account_id", "action", "resource", "correlation_id", "extra")


class JSONFormatter(logging.Formatter):
    """One JSON object per line; context fields that were not set are omitted"""

    def format(self, record):
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(
    level: Optional[str] = None,
    logger_name: str = "ledger_core",
    log_format: Optional[str] = None
) -> logging.Logger:
    """
    Attach a single stream handler to the ledger logger namespace.

    Args:
        level: Log level name; defaults to config
        logger_name: Logger to configure
        log_format: "json" or "text"; defaults to config

    Returns:
        Configured logger instance
    """
    settings = get_config()
    level = level or settings.log_level
    log_format = log_format or settings.log_format

    logger = logging.getLogger(logger_name)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if log_format == "json" else logging.Formatter(TEXT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


def get_logger(name: str = "ledger_core") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               account_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, correlation_id: Optional[str] = None,
               extra: Optional[dict] = None) -> None:
    """
    Log a ledger action with its structured context.

    Args:
        logger: Logger instance
        level: Level name such as "info" or "warning"
        message: Human-readable message
        account_id: Account the action applies to
        action: Operation name (deposit, withdrawal, transfer, ...)
        resource: Object acted upon, e.g. "transaction:TXN-1"
        correlation_id: Id tying related records together (transfer id)
        extra: Additional structured data
    """
    context = {
        "account_id": account_id,
        "action": action,
        "resource": resource,
        "correlation_id": correlation_id,
        "extra": extra,
    }
    logger.log(
        logging.getLevelName(level.upper()), message,
        extra={k: v for k, v in context.items() if v}
    )
