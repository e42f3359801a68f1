"""
Logging Configuration

JSON lines in production, a readable one-line format everywhere else.
Request-scoped fields (tenant_id, user_id, ...) travel as ``extra`` on the
log call and are copied into the JSON document.
"""
import logging
import sys
from typing import Any, Dict
import json
from datetime import datetime

# LogRecord attributes copied into JSON output when present
CONTEXT_FIELDS = (
    "tenant_id",
    "user_id",
    "request_id",
    "method",
    "path",
    "status_code",
    "client_ip",
    "security_event",
    "event_type",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure the root logger. Call once at startup.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: emit JSON lines instead of the human format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Re-running (reload, tests) must not stack handlers
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))

    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_security_event(event_type: str, details: Dict[str, Any], logger: logging.Logger) -> None:
    """
    Log a security-relevant event at WARNING.

    Event types in use:
    - failed_login: wrong email or password
    - tenant_isolation_violation: a token touched another tenant's data
    - rate_limit_exceeded: a bucket ran dry
    - privilege_escalation: a member tried an admin-only action
    - tokens_revoked: logout-all or admin password reset
    """
    log_data = {
        "security_event": True,
        "event_type": event_type,
        **{key: value for key, value in details.items() if value is not None},
    }
    logger.warning(f"SECURITY EVENT: {event_type}", extra=log_data)
