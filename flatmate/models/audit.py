"""
Audit Models for Flatmate

Every mutation of household data is logged for audit purposes.
This provides:
1. A history of who changed what
2. Debugging information when balances look wrong
3. Visibility into failed PIN attempts and lockouts

DESIGN DECISION: Audit logs are append-only. We never modify them.
PINs, hashes and salts never appear in an event.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from flatmate.models.common import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Members
    MEMBER_CREATED = "member_created"
    MEMBER_UPDATED = "member_updated"
    MEMBER_DEACTIVATED = "member_deactivated"

    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSE_SETTLED = "expense_settled"
    BALANCES_RECALCULATED = "balances_recalculated"

    # Chores
    CHORE_CREATED = "chore_created"
    CHORE_UPDATED = "chore_updated"
    CHORE_DEACTIVATED = "chore_deactivated"
    CHORE_ROTATED = "chore_rotated"
    ASSIGNMENT_CREATED = "assignment_created"
    ASSIGNMENT_COMPLETED = "assignment_completed"
    ASSIGNMENT_OVERRIDDEN = "assignment_overridden"
    ASSIGNMENT_DISPUTED = "assignment_disputed"

    # Groceries
    GROCERY_ADDED = "grocery_added"
    GROCERY_UPDATED = "grocery_updated"
    GROCERY_REMOVED = "grocery_removed"
    GROCERY_FLAGGED = "grocery_flagged"
    GROCERIES_MERGED = "groceries_merged"

    # Fitness
    SESSION_LOGGED = "session_logged"
    SESSION_UPDATED = "session_updated"
    SESSION_DELETED = "session_deleted"
    GOAL_CREATED = "goal_created"
    GOAL_UPDATED = "goal_updated"

    # Notes, reminders and chat
    NOTE_CREATED = "note_created"
    NOTE_UPDATED = "note_updated"
    NOTE_DELETED = "note_deleted"
    NOTE_ARCHIVED = "note_archived"
    REMINDER_CREATED = "reminder_created"
    REMINDER_UPDATED = "reminder_updated"
    REMINDER_DISMISSED = "reminder_dismissed"
    MESSAGE_SENT = "message_sent"
    MESSAGE_EDITED = "message_edited"
    MESSAGE_DELETED = "message_deleted"

    # Authentication
    PIN_SETUP = "pin_setup"
    PIN_CHANGED = "pin_changed"
    PIN_VERIFIED = "pin_verified"
    PIN_REJECTED = "pin_rejected"
    LOCKOUT_APPLIED = "lockout_applied"
    APP_LOCKED = "app_locked"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    STORAGE_CONFLICT = "storage_conflict"
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
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'chore', 'settings')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - ties together the events of one workflow call
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    # Member who triggered the action, when known
    actor_id: Optional[UUID] = None

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
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "actor_id": str(self.actor_id) if self.actor_id else None,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_changed(
            AuditEventType.EXPENSE_CREATED, expense_id, "42.00", "USD"
        )
        event = AuditEventBuilder.pin_event(
            AuditEventType.PIN_REJECTED, "Incorrect PIN", {"failed_attempts": 3}
        )
    """

    @staticmethod
    def member_changed(
        event_type: AuditEventType,
        member_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type="member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=f"Member {verb}: {name}",
            details={"name": name},
        )

    @staticmethod
    def expense_changed(
        event_type: AuditEventType,
        expense_id: UUID,
        amount: str,
        currency: str,
        actor_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            actor_id=actor_id,
            description=f"Expense {verb}: {amount} {currency}",
            details={"amount": amount, "currency": currency},
        )

    @staticmethod
    def balances_recalculated(
        balance_count: int,
        total_outstanding: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_RECALCULATED,
            entity_type="balances",
            correlation_id=correlation_id,
            description=f"Balances recalculated: {balance_count} transfers",
            details={
                "balance_count": balance_count,
                "total_outstanding": total_outstanding,
            },
        )

    @staticmethod
    def chore_changed(
        event_type: AuditEventType,
        chore_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type="chore",
            entity_id=chore_id,
            correlation_id=correlation_id,
            description=f"Chore {verb}: {name}",
            details={"name": name},
        )

    @staticmethod
    def chore_rotated(
        chore_id: UUID,
        next_assignee: UUID,
        current_index: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHORE_ROTATED,
            entity_type="chore",
            entity_id=chore_id,
            correlation_id=correlation_id,
            description=f"Chore rotated to position {current_index}",
            details={
                "next_assignee": str(next_assignee),
                "current_index": current_index,
            },
        )

    @staticmethod
    def assignment_changed(
        event_type: AuditEventType,
        assignment_id: UUID,
        assignee: UUID,
        actor_id: Optional[UUID] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type="assignment",
            entity_id=assignment_id,
            correlation_id=correlation_id,
            actor_id=actor_id,
            description=f"Assignment {verb}",
            details={"assignee": str(assignee), **(details or {})},
        )

    @staticmethod
    def record_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        description: str,
        actor_id: Optional[UUID] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Generic event for groceries, fitness and board records."""
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            actor_id=actor_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def pin_event(
        event_type: AuditEventType,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        severity = (
            AuditSeverity.WARNING
            if event_type in (AuditEventType.PIN_REJECTED, AuditEventType.LOCKOUT_APPLIED)
            else AuditSeverity.INFO
        )
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="settings",
            correlation_id=correlation_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def validation_failed(
        subject: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=subject,
            correlation_id=correlation_id,
            description=f"{subject.capitalize()} validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def storage_conflict(
        key: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_CONFLICT,
            severity=AuditSeverity.ERROR,
            entity_type="storage",
            correlation_id=correlation_id,
            description=f"Concurrent write rejected for {key}",
            error_message=error_message,
            details={"key": key},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
