"""
Logging configuration for Deepkey.

Provides structured JSON logging and typed audit events for validation
decisions, so that peers disagreeing about an entry can be compared line
by line.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Context variable for per-invocation tracking
validation_id_var: ContextVar[str] = ContextVar('validation_id', default='')

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line.

    Audit fields attached as ``extra_fields`` are lifted to the top level,
    so a decision line reads as one flat record. Source location is only
    included when asked for.
    """

    def __init__(self, include_source: bool = False):
        super().__init__()
        self.include_source = include_source

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_source:
            payload["source"] = f"{record.module}.{record.funcName}:{record.lineno}"

        payload.update(getattr(record, "extra_fields", {}))
        if not payload.get("validation_id"):
            payload.pop("validation_id", None)
            if validation_id_var.get():
                payload["validation_id"] = validation_id_var.get()

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class AuditLogger:
    """
    Logger for validation audit events.

    Every entry point reports the request and exactly one of decision,
    deferral or host contract violation.
    """

    def __init__(self, name: str = "deepkey.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, message: str, **fields) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra_fields = {"event_type": event_type, "validation_id": validation_id_var.get(), **fields}
        self._logger.log(level, "%s: %s", event_type, message, extra={"extra_fields": extra_fields})

    def validation_request(
        self,
        operation: str,
        element_address: str,
        author: str,
        header_seq: int,
    ) -> None:
        """Log a validation request."""
        self._log(
            logging.DEBUG,
            "VALIDATION_REQUEST",
            operation=operation,
            element_address=element_address,
            author=author,
            header_seq=header_seq,
            message=f"Validating {operation} at seq {header_seq}",
        )

    def validation_decision(
        self,
        operation: str,
        element_address: str,
        outcome: str,
        failure_code: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Log a terminal decision."""
        level = logging.INFO if outcome == "VALID" else logging.WARNING
        self._log(
            level,
            "VALIDATION_DECISION",
            operation=operation,
            element_address=element_address,
            outcome=outcome,
            failure_code=failure_code,
            reason=reason,
            message=f"{operation} {outcome}" + (f" ({failure_code})" if failure_code else ""),
        )

    def validation_deferred(
        self,
        operation: str,
        element_address: str,
        dependencies: List[str],
    ) -> None:
        """Log a deferral awaiting dependencies."""
        self._log(
            logging.INFO,
            "VALIDATION_DEFERRED",
            operation=operation,
            element_address=element_address,
            dependencies=dependencies,
            message=f"{operation} waiting on {len(dependencies)} dependencies",
        )

    def host_contract_violation(
        self,
        operation: str,
        element_address: str,
        header_type: str,
    ) -> None:
        """Log a host routing error."""
        self._log(
            logging.CRITICAL,
            "HOST_CONTRACT_VIOLATION",
            operation=operation,
            element_address=element_address,
            header_type=header_type,
            message=f"{operation} validator invoked with a {header_type} header",
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
    include_source: bool = False,
) -> None:
    """
    Route all deepkey logging through the root logger.

    Handlers from a previous call are replaced, so calling this twice does
    not duplicate lines. Output goes to stderr, and also to log_file when
    one is given.
    """
    formatter = StructuredFormatter(include_source) if json_format else logging.Formatter(TEXT_FORMAT)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level.upper())


def set_validation_id(validation_id: Optional[str] = None) -> str:
    """
    Set the validation ID for the current context.

    Returns:
        The validation ID that was set
    """
    if validation_id is None:
        validation_id = uuid.uuid4().hex
    validation_id_var.set(validation_id)
    return validation_id


def get_validation_id() -> str:
    """Get the current validation ID."""
    return validation_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
