"""
Audit Logger

DESIGN DECISION: Every write that reaches the gateway is logged, whether it
succeeds or is refused. This provides:
1. Traceability of every mutation
2. A record of refused writes and why they were refused
3. Correlation between the steps of one compound operation

The audit logger only writes structured log lines. It never touches the
ledger database, so auditing can't interfere with (or be rolled back by)
the transaction it describes.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from retreat_finance.config import AppSettings, get_settings
from retreat_finance.errors import RetreatFinanceError
from retreat_finance.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_structlog(settings: Optional[AppSettings] = None) -> None:
    """
    Configure structlog on top of the standard library logging module.

    Only structlog itself is touched; handlers and levels of the host
    application's loggers are left alone. Safe to call more than once.
    """
    settings = settings or get_settings().app
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(settings: Optional[AppSettings] = None) -> None:
    """
    Full logging setup for a standalone process (CLI, scripts).

    Unlike configure_structlog this installs a root handler, so library
    users should call it only if they want the package to own logging.
    """
    settings = settings or get_settings().app
    level = getattr(logging, settings.log_level)
    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger("retreat_finance").setLevel(level)
    configure_structlog(settings)


configure_structlog()


class AuditLogger:
    """
    Central audit logging service.

    Each AuditEvent becomes one structured log line at the level matching
    its severity.
    """

    def __init__(self, logger_name: str = "retreat_finance.audit"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def log_failure(
        self,
        operation: str,
        error: Exception,
        entity_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Log a write that did not happen.

        Classified errors (bad input, missing ids, conflicts) are warnings;
        anything else, storage failures included, is an error.
        """
        if isinstance(error, RetreatFinanceError) and error.code != "storage_failure":
            event = AuditEventBuilder.write_rejected(
                operation=operation,
                error_code=error.code,
                error_message=error.detail,
                entity_id=entity_id,
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.system_error(
                operation=operation,
                error_message=str(error),
                details={"error_type": type(error).__name__},
                correlation_id=correlation_id,
            )
        self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a compound operation (e.g., an event deletion
    that cascades to its transactions) and pass it to every audit event
    the operation produces.
    """
    return uuid4()
