"""
Audit Logger

DESIGN DECISION: Every mutation of household data is logged.
This provides:
1. Traceability of who changed balances and chores
2. Debugging capability when a ledger looks wrong
3. Visibility into PIN failures and lockouts

The audit logger:
- Is async so it can share the storage event loop
- Never crashes a workflow when persisting an event fails
- Supports correlation IDs to trace the events of one workflow call
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from flatmate.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from flatmate.services.storage import AuditStorageInterface


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
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_log_level(level: str) -> None:
    """Route stdlib logging (which structlog writes through) at the given level."""
    logging.basicConfig(format="%(message)s", level=level.upper())
    logging.getLogger("flatmate").setLevel(level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The household key-value store (bounded audit log)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("flatmate.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_member_event(
        self,
        event_type: AuditEventType,
        member_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log member creation, update or deactivation."""
        event = AuditEventBuilder.member_changed(
            event_type=event_type,
            member_id=member_id,
            name=name,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_event(
        self,
        event_type: AuditEventType,
        expense_id: UUID,
        amount: str,
        currency: str,
        actor_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an expense mutation."""
        event = AuditEventBuilder.expense_changed(
            event_type=event_type,
            expense_id=expense_id,
            amount=amount,
            currency=currency,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balances_recalculated(
        self,
        balance_count: int,
        total_outstanding: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.balances_recalculated(
            balance_count=balance_count,
            total_outstanding=total_outstanding,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_chore_event(
        self,
        event_type: AuditEventType,
        chore_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log chore creation, update or deactivation."""
        event = AuditEventBuilder.chore_changed(
            event_type=event_type,
            chore_id=chore_id,
            name=name,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_chore_rotated(
        self,
        chore_id: UUID,
        next_assignee: UUID,
        current_index: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.chore_rotated(
            chore_id=chore_id,
            next_assignee=next_assignee,
            current_index=current_index,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_assignment_event(
        self,
        event_type: AuditEventType,
        assignment_id: UUID,
        assignee: UUID,
        actor_id: Optional[UUID] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an assignment being created, completed, overridden or disputed."""
        event = AuditEventBuilder.assignment_changed(
            event_type=event_type,
            assignment_id=assignment_id,
            assignee=assignee,
            actor_id=actor_id,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        description: str,
        actor_id: Optional[UUID] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            actor_id=actor_id,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_pin_event(
        self,
        event_type: AuditEventType,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a PIN or lock event. Never pass PIN material in details."""
        event = AuditEventBuilder.pin_event(
            event_type=event_type,
            description=description,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        subject: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            subject=subject,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_conflict(
        self,
        key: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.storage_conflict(
            key=key,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a workflow call (e.g., completing a chore)
    and pass it through all subsequent operations.
    """
    return uuid4()
