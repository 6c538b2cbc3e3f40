"""
Audit Logger

DESIGN DECISION: Every write and every query against the store is logged.
This provides:
1. Traceability of changes to household records
2. Debugging capability
3. A record of rolled-back category deletions

The audit logger:
- Writes structured JSON through stdlib logging (stderr by default)
- Never raises into the operation it is describing
"""

import logging
from typing import Any, Optional

import structlog

from household_finance.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


# Configure structlog for local logging
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
        structlog.processors.JSONRenderer(default=str)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))


class AuditLogger:
    """
    Central audit logging service.

    Severity selects the log method; debug events are dropped unless
    the logging level allows them.
    """

    def __init__(self, logger_name: str = "household_finance.audit"):
        self._logger = structlog.get_logger(logger_name)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was handed to the logger.
        """
        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # A broken log handler must not fail the ledger operation
            logging.getLogger(__name__).warning("audit logging failed: %s", e)
            return False
        return True

    async def log_record_written(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        changed: bool = True,
        details: Optional[dict] = None,
    ) -> None:
        """Log an insert, update or delete of a single record."""
        event = AuditEventBuilder.record_written(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            changed=changed,
            details=details,
        )
        await self.log(event)

    async def log_category_deleted(
        self,
        category_id: str,
        category_deleted: bool,
        subcategories_deleted: int,
    ) -> None:
        event = AuditEventBuilder.category_deleted(
            category_id=category_id,
            category_deleted=category_deleted,
            subcategories_deleted=subcategories_deleted,
        )
        await self.log(event)

    async def log_category_delete_rolled_back(
        self,
        category_id: str,
        error_message: str,
    ) -> None:
        event = AuditEventBuilder.category_delete_rolled_back(
            category_id=category_id,
            error_message=error_message,
        )
        await self.log(event)

    async def log_category_suggested(
        self,
        category: Optional[str],
        confidence: Optional[float] = None,
        is_new_suggestion: bool = False,
    ) -> None:
        event = AuditEventBuilder.category_suggested(
            category=category,
            confidence=confidence,
            is_new_suggestion=is_new_suggestion,
        )
        await self.log(event)

    async def log_query_executed(
        self,
        operation: str,
        result_count: int,
        filters: Optional[dict[str, Any]] = None,
    ) -> None:
        """Log query execution."""
        event = AuditEventBuilder.query_executed(
            operation=operation,
            result_count=result_count,
            filters=filters,
        )
        await self.log(event)

    async def log_report_generated(
        self,
        start: str,
        end: str,
        expense_count: int,
    ) -> None:
        event = AuditEventBuilder.report_generated(
            start=start,
            end=end,
            expense_count=expense_count,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
        )
        await self.log(event)
