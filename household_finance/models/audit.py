"""
Audit Models for Household Finance

Every write and every query against the store is logged for audit purposes.
This provides:
1. Traceability of all changes to household records
2. Debugging information when things go wrong
3. Ability to reconstruct history

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Budgets and goals
    BUDGET_SAVED = "budget_saved"
    GOAL_CREATED = "goal_created"
    GOAL_UPDATED = "goal_updated"

    # Household
    MEMBER_ADDED = "member_added"
    MEMBER_UPDATED = "member_updated"

    # Categories
    CATEGORY_ADDED = "category_added"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    CATEGORY_DELETE_ROLLED_BACK = "category_delete_rolled_back"
    CATEGORY_SUGGESTED = "category_suggested"

    # Reads
    QUERY_EXECUTED = "query_executed"
    REPORT_GENERATED = "report_generated"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of record (e.g., 'transaction', 'category')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Store id of the record this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_written(AuditEventType.GOAL_CREATED, "goal", goal_id)
        event = AuditEventBuilder.query_executed("list_transactions", 12)
    """

    @staticmethod
    def record_written(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        changed: bool = True,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        verb = event_type.value.rsplit("_", 1)[-1]
        outcome = "" if changed else " (no matching record)"
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.INFO if changed else AuditSeverity.DEBUG,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} {verb}{outcome}",
            details={"changed": changed, **(details or {})},
        )

    @staticmethod
    def category_deleted(
        category_id: str,
        category_deleted: bool,
        subcategories_deleted: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category deleted with {subcategories_deleted} subcategories",
            details={
                "category_deleted": category_deleted,
                "subcategories_deleted": subcategories_deleted,
            },
        )

    @staticmethod
    def category_delete_rolled_back(
        category_id: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETE_ROLLED_BACK,
            severity=AuditSeverity.ERROR,
            entity_type="category",
            entity_id=category_id,
            description="Category deletion rolled back",
            error_message=error_message,
        )

    @staticmethod
    def category_suggested(
        category: Optional[str],
        confidence: Optional[float] = None,
        is_new_suggestion: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_SUGGESTED,
            entity_type="category",
            description=f"Suggested category: {category or 'none'}",
            details={
                "category": category,
                "confidence": confidence,
                "is_new_suggestion": is_new_suggestion,
            },
        )

    @staticmethod
    def query_executed(
        operation: str,
        result_count: int,
        filters: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="query",
            description=f"Executed {operation}: {result_count} results",
            details={
                "operation": operation,
                "result_count": result_count,
                "filters": sorted(filters or {}),
            },
        )

    @staticmethod
    def report_generated(
        start: str,
        end: str,
        expense_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_GENERATED,
            entity_type="report",
            description=f"Monthly expense report for {start}..{end}",
            details={"expense_count": expense_count},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            details=details or {},
            error_message=error_message,
        )
