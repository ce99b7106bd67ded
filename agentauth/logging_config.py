"""
Logging configuration for AgentAuth.

Provides structured JSON logging and an audit logger for identity and
verification events. Private keys and tokens are never passed to any
logger in this package.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from . import config

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per record, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


class AuditLogger:
    """
    Specialized logger for audit events.

    Records identity creation and the outcome of each verification. The
    failure stage is for operators; it is never returned to the peer.
    """

    def __init__(self, name: str = "agentauth.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        if not self._logger.isEnabledFor(level):
            return

        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def identity_generated(self, address: str, identifier: str) -> None:
        """Log creation of a new identity (public material only)."""
        self._log(
            logging.INFO,
            "IDENTITY_GENERATED",
            address=address,
            agentauth_id=identifier,
            message=f"Identity generated: {identifier}"
        )

    def verification_succeeded(self, address: str, identifier: str) -> None:
        """Log a successful request verification."""
        self._log(
            logging.INFO,
            "VERIFICATION_SUCCEEDED",
            address=address,
            agentauth_id=identifier,
            message=f"Verified agent {identifier}"
        )

    def verification_failed(self, stage: str, address: Optional[str] = None) -> None:
        """Log a rejected request and the stage that rejected it."""
        self._log(
            logging.WARNING,
            "VERIFICATION_FAILED",
            stage=stage,
            address=address,
            message=f"Verification failed at {stage}"
        )


def configure_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
) -> None:
    """
    Configure logging for the agentauth logger hierarchy.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            defaults to AGENTAUTH_LOG_LEVEL
        json_format: Use JSON formatting; defaults to AGENTAUTH_LOG_FORMAT
    """
    if level is None:
        level = "DEBUG" if config.is_debug() else config.LOG_LEVEL
    if json_format is None:
        json_format = config.use_json_logs()

    package_logger = logging.getLogger("agentauth")
    package_logger.setLevel(getattr(logging, level.upper()))

    for handler in package_logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            package_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # stderr, so CLI output on stdout stays machine-readable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
