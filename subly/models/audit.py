"""
Audit Models for Subly

Every user-initiated change to a collection is logged for audit purposes.
This provides:
1. Traceability of who changed what, and when
2. Debugging information when a sync goes wrong
3. A record of partial failures (e.g. a contribution whose balance
   update never landed) that need manual follow-up

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Collection loading
    COLLECTION_LOADED = "collection_loaded"
    COLLECTION_LOAD_FAILED = "collection_load_failed"

    # Mutations
    ENTITY_CREATED = "entity_created"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_DELETED = "entity_deleted"
    MUTATION_FAILED = "mutation_failed"

    # Goal contributions
    CONTRIBUTION_APPLIED = "contribution_applied"
    CONTRIBUTION_REJECTED = "contribution_rejected"
    CONTRIBUTION_PARTIAL = "contribution_partial"

    # File storage
    FILE_UPLOADED = "file_uploaded"
    FILE_DELETED = "file_deleted"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


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
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - which row of which table is this about?
    user_id: Optional[str] = None
    table: Optional[str] = None
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., both writes of a contribution)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
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
            "user_id": self.user_id,
            "table": self.table,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_row(self) -> dict:
        """Row for the audit_log table of a collection store."""
        row = self.to_log_dict()
        row["user_id"] = self.user_id or ""
        return row


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entity_created("goals", goal_id, user_id)
        event = AuditEventBuilder.contribution_partial(goal_id, tx_id, ...)
    """

    @staticmethod
    def collection_loaded(table: str, user_id: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_LOADED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            table=table,
            description=f"Loaded {count} rows from {table}",
            details={"count": count},
        )

    @staticmethod
    def collection_load_failed(table: str, user_id: str, error: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            table=table,
            description=f"Failed to load {table}",
            error_message=error,
        )

    @staticmethod
    def entity_created(
        table: str,
        entity_id: str,
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_CREATED,
            user_id=user_id,
            table=table,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Created row in {table}",
        )

    @staticmethod
    def entity_updated(
        table: str,
        entity_id: str,
        user_id: Optional[str],
        fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_UPDATED,
            user_id=user_id,
            table=table,
            entity_id=entity_id,
            description=f"Updated row in {table}",
            details={"fields": fields},
        )

    @staticmethod
    def entity_deleted(table: str, entity_id: str, user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_DELETED,
            user_id=user_id,
            table=table,
            entity_id=entity_id,
            description=f"Deleted row from {table}",
        )

    @staticmethod
    def mutation_failed(
        table: str,
        operation: str,
        error: str,
        user_id: Optional[str],
        entity_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            table=table,
            entity_id=entity_id,
            description=f"{operation.capitalize()} on {table} failed",
            details={"operation": operation},
            error_message=error,
        )

    @staticmethod
    def contribution_applied(
        goal_id: str,
        transaction_id: str,
        amount: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTRIBUTION_APPLIED,
            user_id=user_id,
            table="goals",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Contribution of {amount} applied to goal",
            details={"transaction_id": transaction_id, "amount": amount},
        )

    @staticmethod
    def contribution_rejected(
        goal_id: str,
        amount: str,
        error: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTRIBUTION_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            table="goals",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description="Contribution rejected, goal unchanged",
            details={"amount": amount},
            error_message=error,
        )

    @staticmethod
    def contribution_partial(
        goal_id: str,
        transaction_id: str,
        amount: str,
        error: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTRIBUTION_PARTIAL,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            table="goals",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description="Transaction recorded but goal balance not updated",
            details={"transaction_id": transaction_id, "amount": amount},
            error_message=error,
        )

    @staticmethod
    def file_uploaded(path: str, file_name: str, file_size: int, user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_UPLOADED,
            user_id=user_id,
            description=f"File uploaded: {file_name}",
            details={"path": path, "file_name": file_name, "file_size": file_size},
        )

    @staticmethod
    def file_deleted(path: str, user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_DELETED,
            user_id=user_id,
            description="File deleted",
            details={"path": path},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
