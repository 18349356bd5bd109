"""
Structured Logging Configuration Module

JSON log lines for ledger operations. Besides the standard record fields a
line carries the ledger context of the operation: the acting account, the
operation name, the notification it produced or the error code it was
rejected with.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Record attributes lifted into a JSON line when present
LEDGER_FIELDS = ("account", "action", "resource", "event_type", "event_id", "error_code", "extra")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, ledger fields included only when set"""

    def format(self, record):
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "message": record.getMessage(),
        }
        for name in LEDGER_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "token_ledger",
                  log_format: str = "json") -> logging.Logger:
    """
    Point the ledger's logger tree at a single stream handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Root of the logger tree to configure
        log_format: "json" for JSONFormatter, "text" for TEXT_FORMAT lines

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def get_logger(name: str = "token_ledger") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               account: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, event_type: Optional[str] = None,
               event_id: Optional[str] = None, error_code: Optional[str] = None,
               extra: Optional[dict] = None) -> None:
    """
    Log a ledger operation with its structured context.

    Args:
        logger: Logger instance
        level: Level name (info, warning, error, ...)
        message: Human readable summary
        account: Hex id of the acting account
        action: Operation name (create, transfer, approve, ...)
        resource: What the operation changed (balance, allowance, supply)
        event_type: Notification emitted on success
        event_id: Id of that notification
        error_code: LedgerError code on rejection
        extra: Event data or error details
    """
    fields = {
        "account": account,
        "action": action,
        "resource": resource,
        "event_type": event_type,
        "event_id": event_id,
        "error_code": error_code,
        "extra": extra,
    }
    logger.log(
        getattr(logging, level.upper()), message,
        extra={k: v for k, v in fields.items() if v is not None},
        stacklevel=2
    )
