"""
Main Orchestrator for Flatmate

This module ties together all the components and defines the
household workflows:
1. Members (create → validate → persist)
2. Expenses (validate → persist → recompute balances)
3. Chores (assign → complete → rotate → schedule next)
4. Groceries (add → flag duplicates → merge → contributions)
5. Fitness (log sessions, goals and their progress)
6. Notes, reminders and chat
7. Auth (PIN setup, verification with lockout, manual lock)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is persisted unless both validation stages pass
- Domain failures come back as result objects, never exceptions
- Every collection write goes through a versioned repository
- Every mutation is audited

This is the "glue" that keeps the pure engines (settlement, rotation,
rate-limiting) separate from storage and presentation.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Union
from uuid import UUID

import structlog

from flatmate.audit import AuditLogger, configure_log_level, create_correlation_id
from flatmate.chores import RotationError, get_next_assignee, next_due_date
from flatmate.config import AppSettings, Settings, get_settings
from flatmate.fitness import find_overlapping_goal, goal_progress
from flatmate.groceries import find_duplicate, select_items, summarize_contributions
from flatmate.ledger import UnbalancedLedgerError, calculate_balances
from flatmate.models.audit import AuditEventType
from flatmate.models.board import (
    DELETED_MESSAGE_PLACEHOLDER,
    ChatMessage,
    EditMessageInput,
    MessageQuery,
    Note,
    Reminder,
)
from flatmate.models.chores import (
    Chore,
    ChoreAssignment,
    CreateAssignmentInput,
    OverrideAssignmentInput,
)
from flatmate.models.common import to_money, utcnow
from flatmate.models.fitness import FitnessGoal, GymSession
from flatmate.models.groceries import ContributionFilters, GroceryItem, MergeGroceriesInput
from flatmate.models.household import (
    Balance,
    Expense,
    ExpenseFilters,
    Member,
    SettleExpenseInput,
)
from flatmate.models.results import (
    ActionResult,
    AssignmentResult,
    BalancesResult,
    ChoreResult,
    ContributionsResult,
    ErrorCode,
    ExpenseResult,
    GoalProgressResult,
    GoalResult,
    GroceryResult,
    GymSessionResult,
    LockStatus,
    MemberResult,
    MergeResult,
    MessageResult,
    NoteResult,
    PinResult,
    ReminderResult,
    RotationOutcome,
    ValidationResult,
)
from flatmate.models.security import ChangePinInput, HouseholdSettings, SetupPinInput
from flatmate.security import PinRateLimiter, hash_pin, is_valid_pin, verify_pin
from flatmate.services import create_storage_adapter
from flatmate.services.storage import (
    CollectionRepository,
    ConflictError,
    InMemoryStorage,
    KeyValueAuditStorage,
    SettingsRepository,
    StorageAdapter,
    StorageError,
    StorageKeys,
)
from flatmate.validation import (
    BoardValidator,
    ChoreValidator,
    ExpenseValidator,
    FitnessValidator,
    GroceryValidator,
    MemberValidator,
    parse_input,
)


logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


class WorkflowRejected(Exception):
    """
    Raised inside a repository mutator to abort the write.

    Flows convert it into a failed result; it never escapes a flow.
    """

    def __init__(self, message: str, error_code: ErrorCode):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class _Flow:
    """Shared audit helpers for the workflow classes."""

    def __init__(self, audit_logger: Optional[AuditLogger] = None):
        self._audit_logger = audit_logger

    async def _validation_failed(
        self,
        result: ValidationResult,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
            ]
            await self._audit_logger.log_validation_failed(
                subject=result.subject,
                issues=issues,
                correlation_id=correlation_id,
            )

    @staticmethod
    def _replacer(item_id: UUID, change: Callable, label: str):
        """Mutator replacing one record by id with change(record)."""
        def _mutate(items: list) -> Any:
            for index, item in enumerate(items):
                if item.id == item_id:
                    items[index] = change(item)
                    return items[index]
            raise WorkflowRejected(f"{label} not found", ErrorCode.NOT_FOUND)
        return _mutate

    @staticmethod
    def _remover(item_id: UUID, label: str):
        """Mutator removing one record by id and returning it."""
        def _mutate(items: list) -> Any:
            for index, item in enumerate(items):
                if item.id == item_id:
                    return items.pop(index)
            raise WorkflowRejected(f"{label} not found", ErrorCode.NOT_FOUND)
        return _mutate

    async def _record_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        description: str,
        actor_id: Optional[UUID] = None,
        details: Optional[dict[str, Any]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_record_event(
                event_type,
                entity_type,
                entity_id,
                description,
                actor_id=actor_id,
                details=details,
                correlation_id=correlation_id,
            )

    async def _storage_failed(
        self,
        operation: str,
        error: StorageError,
        correlation_id: UUID,
    ) -> None:
        if not self._audit_logger:
            return
        if isinstance(error, ConflictError):
            await self._audit_logger.log_storage_conflict(
                key=error.key,
                error_message=str(error),
                correlation_id=correlation_id,
            )
        else:
            await self._audit_logger.log_error(
                error_type=type(error).__name__,
                error_message=str(error),
                details={"operation": operation},
                correlation_id=correlation_id,
            )


# =============================================================================
# MEMBERS
# =============================================================================

class MemberFlow(_Flow):
    """
    Household roster management.

    Members are never deleted: expenses and chores keep referencing them.
    """

    def __init__(
        self,
        members: CollectionRepository[Member],
        validator: MemberValidator,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(audit_logger)
        self._members = members
        self._validator = validator

    async def list_members(self, include_inactive: bool = False) -> list[Member]:
        members = await self._members.all()
        if include_inactive:
            return members
        return [m for m in members if m.is_active]

    async def get_member(self, member_id: UUID) -> Optional[Member]:
        return await self._members.get(member_id)

    async def create_member(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> MemberResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            validation = await self._validator.validate_create(payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return MemberResult.from_validation(validation)

            member = Member(**validation.value.model_dump())
            await self._members.update(lambda items: items.append(member))
        except StorageError as e:
            await self._storage_failed("create_member", e, correlation_id)
            return MemberResult.failure(f"Failed to create member: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_member_event(
                AuditEventType.MEMBER_CREATED, member.id, member.name, correlation_id
            )
        return MemberResult(success=True, member=member)

    async def update_member(
        self,
        member_id: UUID,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> MemberResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            existing = await self._members.get(member_id)
            if existing is None:
                return MemberResult.failure("Member not found", ErrorCode.NOT_FOUND)

            validation = await self._validator.validate_update(existing, payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return MemberResult.from_validation(validation)

            updated: Member = validation.value

            def _replace(items: list[Member]) -> None:
                for index, item in enumerate(items):
                    if item.id == member_id:
                        items[index] = updated
                        return
                raise WorkflowRejected("Member not found", ErrorCode.NOT_FOUND)

            await self._members.update(_replace)
        except WorkflowRejected as e:
            return MemberResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("update_member", e, correlation_id)
            return MemberResult.failure(f"Failed to update member: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_member_event(
                AuditEventType.MEMBER_UPDATED, updated.id, updated.name, correlation_id
            )
        return MemberResult(success=True, member=updated)

    async def deactivate_member(
        self,
        member_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> MemberResult:
        """Soft delete: the member stays referenced but leaves the roster."""
        correlation_id = correlation_id or create_correlation_id()

        def _deactivate(items: list[Member]) -> Member:
            for index, item in enumerate(items):
                if item.id == member_id:
                    items[index] = item.model_copy(update={"is_active": False})
                    return items[index]
            raise WorkflowRejected("Member not found", ErrorCode.NOT_FOUND)

        try:
            member = await self._members.update(_deactivate)
        except WorkflowRejected as e:
            return MemberResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("deactivate_member", e, correlation_id)
            return MemberResult.failure(f"Failed to deactivate member: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_member_event(
                AuditEventType.MEMBER_DEACTIVATED, member.id, member.name, correlation_id
            )
        return MemberResult(success=True, member=member)


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseFlow(_Flow):
    """
    Orchestrates shared expenses and the balance cache.

    Flow for every mutation:
    1. Validate (schema, then membership and immutability rules)
    2. Persist the expense collection
    3. Recompute balances from all unsettled expenses
    4. Persist the balance cache

    CRITICAL: Settled expenses are immutable.
    """

    def __init__(
        self,
        expenses: CollectionRepository[Expense],
        members: CollectionRepository[Member],
        balances: CollectionRepository[Balance],
        validator: ExpenseValidator,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(audit_logger)
        self._expenses = expenses
        self._members = members
        self._balances = balances
        self._validator = validator
        self._settings = settings or AppSettings()
        self._clock = clock

    # -- queries ---------------------------------------------------------

    async def list_expenses(
        self,
        filters: Optional[Union[ExpenseFilters, dict]] = None,
    ) -> list[Expense]:
        """Unsettled expenses matching the filters."""
        if filters is None:
            filters = ExpenseFilters()
        elif isinstance(filters, dict):
            filters = ExpenseFilters.model_validate(filters)

        result = []
        for expense in await self._expenses.all():
            if expense.is_settled:
                continue
            if filters.category and expense.category != filters.category:
                continue
            if filters.member_id and not expense.involves(filters.member_id):
                continue
            if filters.date_from and expense.occurred_at < filters.date_from:
                continue
            if filters.date_to and expense.occurred_at > filters.date_to:
                continue
            result.append(expense)
        return result

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        return await self._expenses.get(expense_id)

    async def get_balances(self) -> list[Balance]:
        """Cached balances, re-quantized to 2 decimal places."""
        return [
            b.model_copy(update={"amount": to_money(b.amount)})
            for b in await self._balances.all()
        ]

    # -- balance cache ---------------------------------------------------

    async def _store_balances(
        self,
        expenses: list[Expense],
        correlation_id: UUID,
    ) -> list[Balance]:
        members = await self._members.all()
        balances = calculate_balances(
            expenses, members, strict=self._settings.strict_settlement
        )
        await self._balances.replace_all(balances)

        if self._audit_logger:
            total = sum((b.amount for b in balances), to_money(0))
            await self._audit_logger.log_balances_recalculated(
                balance_count=len(balances),
                total_outstanding=str(total),
                correlation_id=correlation_id,
            )
        return balances

    async def recalculate_balances(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> BalancesResult:
        """Rebuild the balance cache from scratch."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            balances = await self._store_balances(await self._expenses.all(), correlation_id)
        except UnbalancedLedgerError as e:
            return BalancesResult.failure(
                f"Failed to recalculate balances: {e}", ErrorCode.RULE_VIOLATION
            )
        except StorageError as e:
            await self._storage_failed("recalculate_balances", e, correlation_id)
            return BalancesResult.failure(
                f"Failed to recalculate balances: {e}", ErrorCode.STORAGE
            )
        return BalancesResult(success=True, balances=balances)

    # -- mutations -------------------------------------------------------

    async def create_expense(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            validation = await self._validator.validate_create(payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return ExpenseResult.from_validation(validation)

            now = self._clock()
            expense = Expense(
                **validation.value.model_dump(),
                created_at=now,
                updated_at=now,
            )

            def _append(items: list[Expense]) -> list[Expense]:
                items.append(expense)
                return items

            expenses = await self._expenses.update(_append)
            balances = await self._store_balances(expenses, correlation_id)
        except UnbalancedLedgerError as e:
            return ExpenseResult.failure(str(e), ErrorCode.RULE_VIOLATION)
        except StorageError as e:
            await self._storage_failed("create_expense", e, correlation_id)
            return ExpenseResult.failure(f"Failed to create expense: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_expense_event(
                AuditEventType.EXPENSE_CREATED,
                expense.id,
                str(expense.amount),
                expense.currency,
                actor_id=expense.created_by,
                correlation_id=correlation_id,
            )
        return ExpenseResult(success=True, expense=expense, balances=balances)

    async def update_expense(
        self,
        expense_id: UUID,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseResult:
        """Partial update of an unsettled expense."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            existing = await self._expenses.get(expense_id)
            if existing is None:
                return ExpenseResult.failure("Expense not found", ErrorCode.NOT_FOUND)

            validation = await self._validator.validate_update(existing, payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return ExpenseResult.from_validation(validation)

            updated: Expense = validation.value

            def _replace(items: list[Expense]) -> list[Expense]:
                for index, item in enumerate(items):
                    if item.id == expense_id:
                        if item.is_settled:
                            raise WorkflowRejected(
                                "Cannot edit settled expense", ErrorCode.RULE_VIOLATION
                            )
                        items[index] = updated
                        return items
                raise WorkflowRejected("Expense not found", ErrorCode.NOT_FOUND)

            expenses = await self._expenses.update(_replace)
            balances = await self._store_balances(expenses, correlation_id)
        except WorkflowRejected as e:
            return ExpenseResult.failure(e.message, e.error_code)
        except UnbalancedLedgerError as e:
            return ExpenseResult.failure(str(e), ErrorCode.RULE_VIOLATION)
        except StorageError as e:
            await self._storage_failed("update_expense", e, correlation_id)
            return ExpenseResult.failure(f"Failed to update expense: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_expense_event(
                AuditEventType.EXPENSE_UPDATED,
                updated.id,
                str(updated.amount),
                updated.currency,
                correlation_id=correlation_id,
            )
        return ExpenseResult(success=True, expense=updated, balances=balances)

    async def delete_expense(
        self,
        expense_id: UUID,
        member_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseResult:
        """Delete an expense. Only its creator may do this."""
        correlation_id = correlation_id or create_correlation_id()

        def _remove(items: list[Expense]) -> Expense:
            for index, item in enumerate(items):
                if item.id == expense_id:
                    if item.created_by != member_id:
                        raise WorkflowRejected(
                            "Only creator can delete expense", ErrorCode.FORBIDDEN
                        )
                    return items.pop(index)
            raise WorkflowRejected("Expense not found", ErrorCode.NOT_FOUND)

        try:
            removed = await self._expenses.update(_remove)
            balances = await self._store_balances(await self._expenses.all(), correlation_id)
        except WorkflowRejected as e:
            return ExpenseResult.failure(e.message, e.error_code)
        except UnbalancedLedgerError as e:
            return ExpenseResult.failure(str(e), ErrorCode.RULE_VIOLATION)
        except StorageError as e:
            await self._storage_failed("delete_expense", e, correlation_id)
            return ExpenseResult.failure(f"Failed to delete expense: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_expense_event(
                AuditEventType.EXPENSE_DELETED,
                removed.id,
                str(removed.amount),
                removed.currency,
                actor_id=member_id,
                correlation_id=correlation_id,
            )
        return ExpenseResult(success=True, expense=removed, balances=balances)

    async def settle_expense(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseResult:
        """Mark an expense settled. It is immutable afterwards."""
        correlation_id = correlation_id or create_correlation_id()

        request, issues = parse_input(SettleExpenseInput, payload)
        if request is None:
            return ExpenseResult.failure(issues[0].message, ErrorCode.VALIDATION, issues)

        now = self._clock()

        def _settle(items: list[Expense]) -> Expense:
            for index, item in enumerate(items):
                if item.id == request.expense_id:
                    if item.is_settled:
                        raise WorkflowRejected(
                            "Expense already settled", ErrorCode.RULE_VIOLATION
                        )
                    items[index] = item.model_copy(update={
                        "is_settled": True,
                        "settled_at": now,
                        "updated_at": now,
                    })
                    return items[index]
            raise WorkflowRejected("Expense not found", ErrorCode.NOT_FOUND)

        try:
            settled = await self._expenses.update(_settle)
            balances = await self._store_balances(await self._expenses.all(), correlation_id)
        except WorkflowRejected as e:
            return ExpenseResult.failure(e.message, e.error_code)
        except UnbalancedLedgerError as e:
            return ExpenseResult.failure(str(e), ErrorCode.RULE_VIOLATION)
        except StorageError as e:
            await self._storage_failed("settle_expense", e, correlation_id)
            return ExpenseResult.failure(f"Failed to settle expense: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_expense_event(
                AuditEventType.EXPENSE_SETTLED,
                settled.id,
                str(settled.amount),
                settled.currency,
                actor_id=request.settled_by,
                correlation_id=correlation_id,
            )
        return ExpenseResult(success=True, expense=settled, balances=balances)


# =============================================================================
# CHORES
# =============================================================================

class ChoreFlow(_Flow):
    """
    Orchestrates chores and their assignments.

    Completion flow:
    1. Mark the assignment complete (completer defaults to the assignee)
    2. Rotate the chore, skipping inactive members
    3. If rotation fails, roll the completion back
    4. Optionally schedule the next assignment from the cadence

    Overrides reassign one occurrence and never move the rotation.
    """

    def __init__(
        self,
        chores: CollectionRepository[Chore],
        assignments: CollectionRepository[ChoreAssignment],
        members: CollectionRepository[Member],
        validator: ChoreValidator,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(audit_logger)
        self._chores = chores
        self._assignments = assignments
        self._members = members
        self._validator = validator
        self._clock = clock

    # -- chores ----------------------------------------------------------

    async def list_chores(self, include_inactive: bool = False) -> list[Chore]:
        chores = await self._chores.all()
        if include_inactive:
            return chores
        return [c for c in chores if c.is_active]

    async def get_chore(self, chore_id: UUID) -> Optional[Chore]:
        return await self._chores.get(chore_id)

    async def create_chore(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> ChoreResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            validation = await self._validator.validate_create(payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return ChoreResult.from_validation(validation)

            chore = Chore(**validation.value.model_dump(), created_at=self._clock())
            await self._chores.update(lambda items: items.append(chore))
        except StorageError as e:
            await self._storage_failed("create_chore", e, correlation_id)
            return ChoreResult.failure(f"Failed to create chore: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_chore_event(
                AuditEventType.CHORE_CREATED, chore.id, chore.name, correlation_id
            )
        return ChoreResult(success=True, chore=chore)

    async def update_chore(
        self,
        chore_id: UUID,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> ChoreResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            existing = await self._chores.get(chore_id)
            if existing is None:
                return ChoreResult.failure("Chore not found", ErrorCode.NOT_FOUND)

            validation = await self._validator.validate_update(existing, payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return ChoreResult.from_validation(validation)

            updated: Chore = validation.value
            await self._chores.update(self._replacer(chore_id, lambda _: updated, label="Chore"))
        except WorkflowRejected as e:
            return ChoreResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("update_chore", e, correlation_id)
            return ChoreResult.failure(f"Failed to update chore: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_chore_event(
                AuditEventType.CHORE_UPDATED, updated.id, updated.name, correlation_id
            )
        return ChoreResult(success=True, chore=updated)

    async def delete_chore(
        self,
        chore_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> ChoreResult:
        """Soft delete by marking the chore inactive."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            chore = await self._chores.update(self._replacer(
                chore_id, lambda c: c.model_copy(update={"is_active": False}), label="Chore"
            ))
        except WorkflowRejected as e:
            return ChoreResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("delete_chore", e, correlation_id)
            return ChoreResult.failure(f"Failed to delete chore: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_chore_event(
                AuditEventType.CHORE_DEACTIVATED, chore.id, chore.name, correlation_id
            )
        return ChoreResult(success=True, chore=chore)

    # -- rotation --------------------------------------------------------

    async def rotate_chore(
        self,
        chore_id: UUID,
        skip_to_index: Optional[int] = None,
        skip_members: Optional[list[UUID]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> RotationOutcome:
        """
        Advance the chore to its next assignee.

        skip_to_index jumps straight to a position in the sequence;
        otherwise the rotation moves forward past any skip_members.
        """
        correlation_id = correlation_id or create_correlation_id()
        skipped = [str(m) for m in (skip_members or [])]

        def _rotate(chore: Chore) -> Chore:
            if skip_to_index is not None:
                if not 0 <= skip_to_index < len(chore.rotation_sequence):
                    raise WorkflowRejected("Invalid rotation index", ErrorCode.VALIDATION)
                return chore.model_copy(update={"current_index": skip_to_index})

            result = get_next_assignee(
                [str(m) for m in chore.rotation_sequence],
                chore.current_index,
                skip_members=skipped,
            )
            return chore.model_copy(update={"current_index": result.next_index})

        try:
            chore = await self._chores.update(self._replacer(chore_id, _rotate, label="Chore"))
        except WorkflowRejected as e:
            return RotationOutcome.failure(e.message, e.error_code)
        except RotationError as e:
            return RotationOutcome.failure(str(e), ErrorCode.RULE_VIOLATION)
        except StorageError as e:
            await self._storage_failed("rotate_chore", e, correlation_id)
            return RotationOutcome.failure(f"Failed to rotate chore: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_chore_rotated(
                chore.id, chore.current_assignee, chore.current_index, correlation_id
            )
        return RotationOutcome(
            success=True,
            next_assignee=chore.current_assignee,
            current_index=chore.current_index,
        )

    # -- assignments -----------------------------------------------------

    async def list_assignments(self, chore_id: Optional[UUID] = None) -> list[ChoreAssignment]:
        """Assignments, newest first."""
        assignments = await self._assignments.all()
        if chore_id is not None:
            assignments = [a for a in assignments if a.chore_id == chore_id]
        return sorted(assignments[::-1], key=lambda a: a.created_at, reverse=True)

    async def create_assignment(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> AssignmentResult:
        correlation_id = correlation_id or create_correlation_id()

        request, issues = parse_input(CreateAssignmentInput, payload)
        if request is None:
            return AssignmentResult.failure(issues[0].message, ErrorCode.VALIDATION, issues)

        try:
            chore = await self._chores.get(request.chore_id)
            if chore is None:
                return AssignmentResult.failure("Chore not found", ErrorCode.NOT_FOUND)

            validation = await self._validator.validate_assignment(chore, payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return AssignmentResult.from_validation(validation)

            assignment = ChoreAssignment(
                **validation.value.model_dump(),
                created_at=self._clock(),
            )
            await self._assignments.update(lambda items: items.append(assignment))
        except StorageError as e:
            await self._storage_failed("create_assignment", e, correlation_id)
            return AssignmentResult.failure(f"Failed to create assignment: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_assignment_event(
                AuditEventType.ASSIGNMENT_CREATED,
                assignment.id,
                assignment.assigned_to,
                correlation_id=correlation_id,
            )
        return AssignmentResult(success=True, assignment=assignment)

    async def mark_complete(
        self,
        assignment_id: UUID,
        completed_by: Optional[UUID] = None,
        schedule_next: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> AssignmentResult:
        """
        Complete an assignment and rotate its chore.

        The completion is rolled back if the rotation fails (for
        example when every member of the rotation is inactive).
        """
        correlation_id = correlation_id or create_correlation_id()
        now = self._clock()

        try:
            members = await self._members.all()
            if completed_by is not None:
                active_ids = {m.id for m in members if m.is_active}
                if completed_by not in active_ids:
                    return AssignmentResult.failure(
                        f"Invalid member ID: {completed_by} or member is inactive",
                        ErrorCode.VALIDATION,
                    )

            def _complete(item: ChoreAssignment) -> ChoreAssignment:
                if item.is_completed:
                    raise WorkflowRejected(
                        "Assignment already completed", ErrorCode.RULE_VIOLATION
                    )
                return item.model_copy(update={
                    "completed_at": now,
                    "completed_by": completed_by or item.assigned_to,
                })

            assignment = await self._assignments.update(
                self._replacer(assignment_id, _complete, label="Assignment")
            )
        except WorkflowRejected as e:
            return AssignmentResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("mark_complete", e, correlation_id)
            return AssignmentResult.failure(f"Failed to mark chore complete: {e}", ErrorCode.STORAGE)

        inactive = [m.id for m in members if not m.is_active]
        rotation = await self.rotate_chore(
            assignment.chore_id,
            skip_members=inactive,
            correlation_id=correlation_id,
        )

        if not rotation.success:
            try:
                await self._assignments.update(self._replacer(
                    assignment_id,
                    lambda a: a.model_copy(update={"completed_at": None, "completed_by": None}),
                    label="Assignment",
                ))
            except (WorkflowRejected, StorageError) as e:
                logger.error("completion_rollback_failed", assignment_id=str(assignment_id), error=str(e))
                return AssignmentResult.failure(
                    f"Failed to rotate chore and roll back completion: {e}",
                    ErrorCode.STORAGE,
                )
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="RotationFailed",
                    error_message=rotation.error or "",
                    details={"assignment_id": str(assignment_id)},
                    correlation_id=correlation_id,
                )
            return AssignmentResult.failure(
                f"Failed to rotate chore: {rotation.error}", ErrorCode.RULE_VIOLATION
            )

        if self._audit_logger:
            await self._audit_logger.log_assignment_event(
                AuditEventType.ASSIGNMENT_COMPLETED,
                assignment.id,
                assignment.assigned_to,
                actor_id=assignment.completed_by,
                correlation_id=correlation_id,
            )

        next_assignment = None
        if schedule_next:
            try:
                next_assignment = await self._schedule_next(
                    assignment, rotation.next_assignee, correlation_id
                )
            except StorageError as e:
                await self._storage_failed("schedule_next", e, correlation_id)
                logger.warning("next_assignment_not_scheduled", chore_id=str(assignment.chore_id), error=str(e))

        return AssignmentResult(
            success=True,
            assignment=assignment,
            next_assignee=rotation.next_assignee,
            next_assignment=next_assignment,
        )

    async def _schedule_next(
        self,
        completed: ChoreAssignment,
        next_assignee: UUID,
        correlation_id: UUID,
    ) -> Optional[ChoreAssignment]:
        chore = await self._chores.get(completed.chore_id)
        if chore is None or not chore.is_active:
            return None

        due = next_due_date(chore.cadence, completed.due_date)
        if due is None:
            return None

        assignment = ChoreAssignment(
            chore_id=chore.id,
            assigned_to=next_assignee,
            due_date=due,
            created_at=self._clock(),
        )
        await self._assignments.update(lambda items: items.append(assignment))

        if self._audit_logger:
            await self._audit_logger.log_assignment_event(
                AuditEventType.ASSIGNMENT_CREATED,
                assignment.id,
                assignment.assigned_to,
                details={"scheduled_from": str(completed.id)},
                correlation_id=correlation_id,
            )
        return assignment

    async def override_assignment(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> AssignmentResult:
        """Reassign one occurrence without affecting the rotation."""
        correlation_id = correlation_id or create_correlation_id()

        request, issues = parse_input(OverrideAssignmentInput, payload)
        if request is None:
            return AssignmentResult.failure(issues[0].message, ErrorCode.VALIDATION, issues)

        try:
            members = await self._members.all()
            if request.new_assignee not in {m.id for m in members if m.is_active}:
                return AssignmentResult.failure(
                    f"Invalid member ID: {request.new_assignee} or member is inactive",
                    ErrorCode.VALIDATION,
                )

            def _override(item: ChoreAssignment) -> ChoreAssignment:
                if item.is_completed:
                    raise WorkflowRejected(
                        "Cannot override completed assignment", ErrorCode.RULE_VIOLATION
                    )
                return item.model_copy(update={"assigned_to": request.new_assignee})

            assignment = await self._assignments.update(
                self._replacer(request.assignment_id, _override, label="Assignment")
            )
        except WorkflowRejected as e:
            return AssignmentResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("override_assignment", e, correlation_id)
            return AssignmentResult.failure(f"Failed to override assignment: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_assignment_event(
                AuditEventType.ASSIGNMENT_OVERRIDDEN,
                assignment.id,
                assignment.assigned_to,
                details={"reason": request.reason} if request.reason else None,
                correlation_id=correlation_id,
            )
        return AssignmentResult(success=True, assignment=assignment)

    async def set_disputed(
        self,
        assignment_id: UUID,
        disputed: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> AssignmentResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            assignment = await self._assignments.update(self._replacer(
                assignment_id,
                lambda a: a.model_copy(update={"is_disputed": disputed}),
                label="Assignment",
            ))
        except WorkflowRejected as e:
            return AssignmentResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("set_disputed", e, correlation_id)
            return AssignmentResult.failure(f"Failed to update assignment: {e}", ErrorCode.STORAGE)

        if self._audit_logger:
            await self._audit_logger.log_assignment_event(
                AuditEventType.ASSIGNMENT_DISPUTED,
                assignment.id,
                assignment.assigned_to,
                details={"disputed": disputed},
                correlation_id=correlation_id,
            )
        return AssignmentResult(success=True, assignment=assignment)


# =============================================================================
# GROCERIES
# =============================================================================

class GroceryFlow(_Flow):
    """
    The shared grocery list.

    New items are compared with recent purchases and flagged when they
    look like a duplicate. Flagged items can be merged into one.
    """

    def __init__(
        self,
        groceries: CollectionRepository[GroceryItem],
        validator: GroceryValidator,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(audit_logger)
        self._groceries = groceries
        self._validator = validator
        self._settings = settings or AppSettings()
        self._clock = clock

    async def list_groceries(
        self,
        member_id: Optional[UUID] = None,
        category: Optional[str] = None,
    ) -> list[GroceryItem]:
        """Items, most recent purchase first."""
        items = [
            i for i in await self._groceries.all()
            if (member_id is None or i.added_by == member_id)
            and (category is None or i.category == category)
        ]
        return sorted(items[::-1], key=lambda i: i.purchased_at, reverse=True)

    async def get_grocery(self, item_id: UUID) -> Optional[GroceryItem]:
        return await self._groceries.get(item_id)

    async def add_grocery(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> GroceryResult:
        correlation_id = correlation_id or create_correlation_id()
        threshold = self._settings.duplicate_similarity_threshold
        window = timedelta(hours=self._settings.duplicate_window_hours)

        try:
            validation = await self._validator.validate_add(payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return GroceryResult.from_validation(validation)

            request = validation.value
            now = self._clock()

            def _add(items: list[GroceryItem]) -> GroceryItem:
                match = find_duplicate(
                    request.name, request.purchased_at, items, threshold, window
                )
                item = GroceryItem(
                    **request.model_dump(),
                    created_at=now,
                    is_duplicate=match is not None,
                )
                items.append(item)
                return item

            item = await self._groceries.update(_add)
        except StorageError as e:
            await self._storage_failed("add_grocery", e, correlation_id)
            return GroceryResult.failure(f"Failed to add grocery item: {e}", ErrorCode.STORAGE)

        if item.is_duplicate:
            logger.info("grocery_possible_duplicate", item_id=str(item.id), name=item.name)
        await self._record_event(
            AuditEventType.GROCERY_ADDED,
            "grocery",
            item.id,
            f"Grocery added: {item.name} ({item.cost})",
            actor_id=item.added_by,
            details={"is_duplicate": item.is_duplicate},
            correlation_id=correlation_id,
        )
        return GroceryResult(success=True, item=item)

    async def update_grocery(
        self,
        item_id: UUID,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> GroceryResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            existing = await self._groceries.get(item_id)
            if existing is None:
                return GroceryResult.failure("Grocery item not found", ErrorCode.NOT_FOUND)

            validation = await self._validator.validate_update(existing, payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return GroceryResult.from_validation(validation)

            updated: GroceryItem = validation.value
            await self._groceries.update(
                self._replacer(item_id, lambda _: updated, label="Grocery item")
            )
        except WorkflowRejected as e:
            return GroceryResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("update_grocery", e, correlation_id)
            return GroceryResult.failure(f"Failed to update grocery item: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.GROCERY_UPDATED,
            "grocery",
            updated.id,
            f"Grocery updated: {updated.name}",
            correlation_id=correlation_id,
        )
        return GroceryResult(success=True, item=updated)

    async def remove_grocery(
        self,
        item_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> GroceryResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            item = await self._groceries.update(self._remover(item_id, label="Grocery item"))
        except WorkflowRejected as e:
            return GroceryResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("remove_grocery", e, correlation_id)
            return GroceryResult.failure(f"Failed to remove grocery item: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.GROCERY_REMOVED,
            "grocery",
            item.id,
            f"Grocery removed: {item.name}",
            correlation_id=correlation_id,
        )
        return GroceryResult(success=True, item=item)

    async def flag_duplicate(
        self,
        first_id: UUID,
        second_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> ActionResult:
        """Manually mark two items as duplicates of each other."""
        correlation_id = correlation_id or create_correlation_id()
        if first_id == second_id:
            return ActionResult.failure("Invalid grocery IDs", ErrorCode.VALIDATION)

        def _flag(items: list[GroceryItem]) -> None:
            positions = [i for i, item in enumerate(items) if item.id in (first_id, second_id)]
            if len(positions) != 2:
                raise WorkflowRejected("Grocery items not found", ErrorCode.NOT_FOUND)
            for index in positions:
                items[index] = items[index].model_copy(update={"is_duplicate": True})

        try:
            await self._groceries.update(_flag)
        except WorkflowRejected as e:
            return ActionResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("flag_duplicate", e, correlation_id)
            return ActionResult.failure(f"Failed to flag duplicate: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.GROCERY_FLAGGED,
            "grocery",
            first_id,
            "Groceries flagged as duplicates",
            details={"other_id": str(second_id)},
            correlation_id=correlation_id,
        )
        return ActionResult(success=True)

    async def merge_duplicates(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> MergeResult:
        """
        Remove duplicate items, keeping the primary one.

        With combine_costs the duplicates' costs are added to the
        primary item. The merged item is no longer flagged.
        """
        correlation_id = correlation_id or create_correlation_id()

        request, issues = parse_input(MergeGroceriesInput, payload)
        if request is None:
            return MergeResult.failure(issues[0].message, ErrorCode.VALIDATION, issues)

        def _merge(items: list[GroceryItem]) -> GroceryItem:
            by_id = {item.id: item for item in items}
            primary = by_id.get(request.primary_id)
            if primary is None:
                raise WorkflowRejected("Primary grocery item not found", ErrorCode.NOT_FOUND)
            duplicate_ids = set(request.duplicate_ids)
            if not duplicate_ids.issubset(by_id):
                raise WorkflowRejected("Some duplicate items not found", ErrorCode.NOT_FOUND)

            cost = primary.cost
            if request.combine_costs:
                cost = to_money(cost + sum(by_id[i].cost for i in duplicate_ids))
            merged = primary.model_copy(update={"cost": cost, "is_duplicate": False})

            items[:] = [
                merged if item.id == primary.id else item
                for item in items
                if item.id not in duplicate_ids
            ]
            return merged

        try:
            merged = await self._groceries.update(_merge)
        except WorkflowRejected as e:
            return MergeResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("merge_duplicates", e, correlation_id)
            return MergeResult.failure(f"Failed to merge duplicates: {e}", ErrorCode.STORAGE)

        removed = list(dict.fromkeys(request.duplicate_ids))
        await self._record_event(
            AuditEventType.GROCERIES_MERGED,
            "grocery",
            merged.id,
            f"Merged {len(removed)} duplicate(s) into {merged.name}",
            details={"removed_ids": [str(i) for i in removed], "cost": str(merged.cost)},
            correlation_id=correlation_id,
        )
        return MergeResult(success=True, merged=merged, removed_ids=removed)

    async def get_contributions(
        self,
        filters: Union[ContributionFilters, dict],
    ) -> ContributionsResult:
        """Spending per member and per category over an inclusive date range."""
        request, issues = parse_input(ContributionFilters, filters)
        if request is None:
            return ContributionsResult.failure(issues[0].message, ErrorCode.VALIDATION, issues)

        try:
            items = select_items(await self._groceries.all(), request)
        except StorageError as e:
            return ContributionsResult.failure(
                f"Failed to load groceries: {e}", ErrorCode.STORAGE
            )

        by_member, by_category, total = summarize_contributions(items)
        return ContributionsResult(
            success=True,
            by_member=by_member,
            by_category=by_category,
            total=total,
            count=len(items),
        )


# =============================================================================
# FITNESS
# =============================================================================

class FitnessFlow(_Flow):
    """Gym session log and collective fitness goals."""

    def __init__(
        self,
        sessions: CollectionRepository[GymSession],
        goals: CollectionRepository[FitnessGoal],
        validator: FitnessValidator,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(audit_logger)
        self._sessions = sessions
        self._goals = goals
        self._validator = validator
        self._clock = clock

    # -- sessions --------------------------------------------------------

    async def list_sessions(self, member_id: Optional[UUID] = None) -> list[GymSession]:
        """Sessions, most recent first."""
        sessions = await self._sessions.all()
        if member_id is not None:
            sessions = [s for s in sessions if s.member_id == member_id]
        return sorted(sessions[::-1], key=lambda s: s.date, reverse=True)

    async def log_session(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> GymSessionResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            validation = await self._validator.validate_session(payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return GymSessionResult.from_validation(validation)

            now = self._clock()
            session = GymSession(
                **validation.value.model_dump(), created_at=now, updated_at=now
            )
            await self._sessions.update(lambda items: items.append(session))
        except StorageError as e:
            await self._storage_failed("log_session", e, correlation_id)
            return GymSessionResult.failure(f"Failed to log gym session: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.SESSION_LOGGED,
            "gym_session",
            session.id,
            f"Gym session logged: {session.type.value}, {session.duration} min",
            actor_id=session.member_id,
            correlation_id=correlation_id,
        )
        return GymSessionResult(success=True, session=session)

    async def update_session(
        self,
        session_id: UUID,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> GymSessionResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            existing = await self._sessions.get(session_id)
            if existing is None:
                return GymSessionResult.failure("Gym session not found", ErrorCode.NOT_FOUND)

            validation = await self._validator.validate_session_update(existing, payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return GymSessionResult.from_validation(validation)

            updated: GymSession = validation.value
            await self._sessions.update(
                self._replacer(session_id, lambda _: updated, label="Gym session")
            )
        except WorkflowRejected as e:
            return GymSessionResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("update_session", e, correlation_id)
            return GymSessionResult.failure(f"Failed to update gym session: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.SESSION_UPDATED,
            "gym_session",
            updated.id,
            "Gym session updated",
            correlation_id=correlation_id,
        )
        return GymSessionResult(success=True, session=updated)

    async def delete_session(
        self,
        session_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> GymSessionResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            session = await self._sessions.update(self._remover(session_id, label="Gym session"))
        except WorkflowRejected as e:
            return GymSessionResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("delete_session", e, correlation_id)
            return GymSessionResult.failure(f"Failed to delete gym session: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.SESSION_DELETED,
            "gym_session",
            session.id,
            "Gym session deleted",
            correlation_id=correlation_id,
        )
        return GymSessionResult(success=True, session=session)

    # -- goals -----------------------------------------------------------

    async def list_goals(self, active_only: bool = False) -> list[FitnessGoal]:
        goals = await self._goals.all()
        if active_only:
            return [g for g in goals if g.is_active]
        return goals

    @staticmethod
    def _storer(goal: FitnessGoal, replace: bool):
        """Mutator storing goal, rejecting an overlap with another active goal."""
        def _store(items: list[FitnessGoal]) -> FitnessGoal:
            if goal.is_active and find_overlapping_goal(goal, items) is not None:
                raise WorkflowRejected(
                    "An active goal already exists for this period", ErrorCode.RULE_VIOLATION
                )
            if not replace:
                items.append(goal)
                return goal
            for index, item in enumerate(items):
                if item.id == goal.id:
                    items[index] = goal
                    return goal
            raise WorkflowRejected("Fitness goal not found", ErrorCode.NOT_FOUND)
        return _store

    async def create_goal(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> GoalResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            validation = await self._validator.validate_goal(payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return GoalResult.from_validation(validation)

            goal = await self._goals.update(self._storer(validation.value, replace=False))
        except WorkflowRejected as e:
            return GoalResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("create_goal", e, correlation_id)
            return GoalResult.failure(f"Failed to create fitness goal: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.GOAL_CREATED,
            "fitness_goal",
            goal.id,
            f"Fitness goal created: {goal.description}",
            details={
                "target_metric": goal.target_metric.value,
                "target_value": goal.target_value,
            },
            correlation_id=correlation_id,
        )
        return GoalResult(success=True, goal=goal)

    async def update_goal(
        self,
        goal_id: UUID,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> GoalResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            existing = await self._goals.get(goal_id)
            if existing is None:
                return GoalResult.failure("Fitness goal not found", ErrorCode.NOT_FOUND)

            validation = await self._validator.validate_goal_update(existing, payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return GoalResult.from_validation(validation)

            goal = await self._goals.update(self._storer(validation.value, replace=True))
        except WorkflowRejected as e:
            return GoalResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("update_goal", e, correlation_id)
            return GoalResult.failure(f"Failed to update fitness goal: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.GOAL_UPDATED,
            "fitness_goal",
            goal.id,
            f"Fitness goal updated: {goal.description}",
            details={"is_active": goal.is_active},
            correlation_id=correlation_id,
        )
        return GoalResult(success=True, goal=goal)

    async def get_goal_progress(self, goal_id: UUID) -> GoalProgressResult:
        try:
            goal = await self._goals.get(goal_id)
            if goal is None:
                return GoalProgressResult.failure("Fitness goal not found", ErrorCode.NOT_FOUND)
            sessions = await self._sessions.all()
        except StorageError as e:
            return GoalProgressResult.failure(
                f"Failed to compute goal progress: {e}", ErrorCode.STORAGE
            )
        return GoalProgressResult(success=True, progress=goal_progress(goal, sessions))


# =============================================================================
# NOTES AND REMINDERS
# =============================================================================

class NoteFlow(_Flow):
    """
    Shared notes and dated reminders.

    Deleting a note also removes the reminders attached to it.
    """

    def __init__(
        self,
        notes: CollectionRepository[Note],
        reminders: CollectionRepository[Reminder],
        validator: BoardValidator,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(audit_logger)
        self._notes = notes
        self._reminders = reminders
        self._validator = validator
        self._settings = settings or AppSettings()
        self._clock = clock

    # -- notes -----------------------------------------------------------

    async def list_notes(self, include_archived: bool = False) -> list[Note]:
        """Notes, most recently updated first."""
        notes = await self._notes.all()
        if not include_archived:
            notes = [n for n in notes if not n.is_archived]
        return sorted(notes[::-1], key=lambda n: n.updated_at, reverse=True)

    async def create_note(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> NoteResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            validation = await self._validator.validate_note(payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return NoteResult.from_validation(validation)

            now = self._clock()
            note = Note(**validation.value.model_dump(), created_at=now, updated_at=now)
            await self._notes.update(lambda items: items.append(note))
        except StorageError as e:
            await self._storage_failed("create_note", e, correlation_id)
            return NoteResult.failure(f"Failed to create note: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.NOTE_CREATED,
            "note",
            note.id,
            f"Note created: {note.title}",
            actor_id=note.created_by,
            correlation_id=correlation_id,
        )
        return NoteResult(success=True, note=note)

    async def update_note(
        self,
        note_id: UUID,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> NoteResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            existing = await self._notes.get(note_id)
            if existing is None:
                return NoteResult.failure("Note not found", ErrorCode.NOT_FOUND)

            validation = await self._validator.validate_note_update(existing, payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return NoteResult.from_validation(validation)

            updated: Note = validation.value
            await self._notes.update(self._replacer(note_id, lambda _: updated, label="Note"))
        except WorkflowRejected as e:
            return NoteResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("update_note", e, correlation_id)
            return NoteResult.failure(f"Failed to update note: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.NOTE_UPDATED,
            "note",
            updated.id,
            f"Note updated: {updated.title}",
            correlation_id=correlation_id,
        )
        return NoteResult(success=True, note=updated)

    async def archive_note(
        self,
        note_id: UUID,
        archived: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> NoteResult:
        correlation_id = correlation_id or create_correlation_id()
        now = self._clock()

        try:
            note = await self._notes.update(self._replacer(
                note_id,
                lambda n: n.model_copy(update={"is_archived": archived, "updated_at": now}),
                label="Note",
            ))
        except WorkflowRejected as e:
            return NoteResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("archive_note", e, correlation_id)
            return NoteResult.failure(f"Failed to archive note: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.NOTE_ARCHIVED,
            "note",
            note.id,
            f"Note {'archived' if archived else 'restored'}: {note.title}",
            details={"is_archived": archived},
            correlation_id=correlation_id,
        )
        return NoteResult(success=True, note=note)

    async def delete_note(
        self,
        note_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> NoteResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            note = await self._notes.update(self._remover(note_id, label="Note"))
        except WorkflowRejected as e:
            return NoteResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("delete_note", e, correlation_id)
            return NoteResult.failure(f"Failed to delete note: {e}", ErrorCode.STORAGE)

        def _detach(items: list[Reminder]) -> int:
            before = len(items)
            items[:] = [r for r in items if r.note_id != note_id]
            return before - len(items)

        removed = 0
        try:
            removed = await self._reminders.update(_detach)
        except StorageError as e:
            await self._storage_failed("delete_note_reminders", e, correlation_id)
            logger.warning("note_reminders_not_removed", note_id=str(note_id), error=str(e))

        await self._record_event(
            AuditEventType.NOTE_DELETED,
            "note",
            note.id,
            f"Note deleted: {note.title}",
            details={"reminders_removed": removed},
            correlation_id=correlation_id,
        )
        return NoteResult(success=True, note=note)

    # -- reminders -------------------------------------------------------

    async def list_reminders(self, note_id: Optional[UUID] = None) -> list[Reminder]:
        """Reminders, soonest due first."""
        reminders = await self._reminders.all()
        if note_id is not None:
            reminders = [r for r in reminders if r.note_id == note_id]
        return sorted(reminders, key=lambda r: r.due_date)

    async def create_reminder(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> ReminderResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            validation = await self._validator.validate_reminder(payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return ReminderResult.from_validation(validation)

            reminder = Reminder(**validation.value.model_dump(), created_at=self._clock())
            await self._reminders.update(lambda items: items.append(reminder))
        except StorageError as e:
            await self._storage_failed("create_reminder", e, correlation_id)
            return ReminderResult.failure(f"Failed to create reminder: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.REMINDER_CREATED,
            "reminder",
            reminder.id,
            f"Reminder created: {reminder.description}",
            actor_id=reminder.created_by,
            details={"due_date": reminder.due_date.isoformat()},
            correlation_id=correlation_id,
        )
        return ReminderResult(success=True, reminder=reminder)

    async def update_reminder(
        self,
        reminder_id: UUID,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> ReminderResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            existing = await self._reminders.get(reminder_id)
            if existing is None:
                return ReminderResult.failure("Reminder not found", ErrorCode.NOT_FOUND)

            validation = await self._validator.validate_reminder_update(existing, payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return ReminderResult.from_validation(validation)

            updated: Reminder = validation.value
            await self._reminders.update(
                self._replacer(reminder_id, lambda _: updated, label="Reminder")
            )
        except WorkflowRejected as e:
            return ReminderResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("update_reminder", e, correlation_id)
            return ReminderResult.failure(f"Failed to update reminder: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.REMINDER_UPDATED,
            "reminder",
            updated.id,
            f"Reminder updated: {updated.description}",
            correlation_id=correlation_id,
        )
        return ReminderResult(success=True, reminder=updated)

    async def dismiss_reminder(
        self,
        reminder_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> ReminderResult:
        """Mark a reminder as notified so it stops being pending."""
        correlation_id = correlation_id or create_correlation_id()
        now = self._clock()

        try:
            reminder = await self._reminders.update(self._replacer(
                reminder_id,
                lambda r: r.model_copy(update={"notified_at": now}),
                label="Reminder",
            ))
        except WorkflowRejected as e:
            return ReminderResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("dismiss_reminder", e, correlation_id)
            return ReminderResult.failure(f"Failed to dismiss reminder: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.REMINDER_DISMISSED,
            "reminder",
            reminder.id,
            f"Reminder dismissed: {reminder.description}",
            correlation_id=correlation_id,
        )
        return ReminderResult(success=True, reminder=reminder)

    async def get_pending_reminders(self) -> list[Reminder]:
        """Undismissed reminders due between now and the reminder horizon."""
        now = self._clock()
        horizon = now + timedelta(hours=self._settings.reminder_horizon_hours)
        return [
            r for r in await self.list_reminders()
            if r.notified_at is None and now <= r.due_date <= horizon
        ]


# =============================================================================
# CHAT
# =============================================================================

class ChatFlow(_Flow):
    """
    Household chat board.

    Only the author may edit (within the edit window) or delete a
    message. Deletion keeps the message with placeholder content.
    """

    def __init__(
        self,
        messages: CollectionRepository[ChatMessage],
        validator: BoardValidator,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(audit_logger)
        self._messages = messages
        self._validator = validator
        self._settings = settings or AppSettings()
        self._clock = clock

    async def get_messages(
        self,
        query: Optional[Union[MessageQuery, dict]] = None,
    ) -> list[ChatMessage]:
        """Messages oldest first; with a limit, only the newest ones."""
        if query is None:
            query = MessageQuery()
        elif isinstance(query, dict):
            query = MessageQuery.model_validate(query)

        messages = [
            m for m in await self._messages.all()
            if (query.before is None or m.created_at < query.before)
            and (query.after is None or m.created_at > query.after)
        ]
        messages.sort(key=lambda m: m.created_at)
        if query.limit:
            messages = messages[-query.limit:]
        return messages

    async def send_message(
        self,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> MessageResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            validation = await self._validator.validate_message(payload)
            if not validation.is_valid:
                await self._validation_failed(validation, correlation_id)
                return MessageResult.from_validation(validation)

            message = ChatMessage(**validation.value.model_dump(), created_at=self._clock())
            await self._messages.update(lambda items: items.append(message))
        except StorageError as e:
            await self._storage_failed("send_message", e, correlation_id)
            return MessageResult.failure(f"Failed to send message: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.MESSAGE_SENT,
            "message",
            message.id,
            "Message sent",
            actor_id=message.author_id,
            correlation_id=correlation_id,
        )
        return MessageResult(success=True, message=message)

    async def edit_message(
        self,
        message_id: UUID,
        payload: Any,
        correlation_id: Optional[UUID] = None,
    ) -> MessageResult:
        correlation_id = correlation_id or create_correlation_id()

        request, issues = parse_input(EditMessageInput, payload)
        if request is None:
            return MessageResult.failure(issues[0].message, ErrorCode.VALIDATION, issues)

        now = self._clock()
        window_minutes = self._settings.message_edit_window_minutes

        def _edit(message: ChatMessage) -> ChatMessage:
            if message.is_deleted:
                raise WorkflowRejected("Cannot edit deleted message", ErrorCode.RULE_VIOLATION)
            if message.author_id != request.author_id:
                raise WorkflowRejected(
                    "Unauthorized: only author can edit message", ErrorCode.FORBIDDEN
                )
            if now - message.created_at > timedelta(minutes=window_minutes):
                raise WorkflowRejected(
                    f"Edit window expired ({window_minutes} minutes)", ErrorCode.RULE_VIOLATION
                )
            return message.model_copy(update={"content": request.content, "edited_at": now})

        try:
            message = await self._messages.update(
                self._replacer(message_id, _edit, label="Message")
            )
        except WorkflowRejected as e:
            return MessageResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("edit_message", e, correlation_id)
            return MessageResult.failure(f"Failed to edit message: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.MESSAGE_EDITED,
            "message",
            message.id,
            "Message edited",
            actor_id=message.author_id,
            correlation_id=correlation_id,
        )
        return MessageResult(success=True, message=message)

    async def delete_message(
        self,
        message_id: UUID,
        author_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> MessageResult:
        """Soft delete: the content is replaced by a placeholder."""
        correlation_id = correlation_id or create_correlation_id()
        now = self._clock()

        def _delete(message: ChatMessage) -> ChatMessage:
            if message.author_id != author_id:
                raise WorkflowRejected(
                    "Unauthorized: only author can delete message", ErrorCode.FORBIDDEN
                )
            return message.model_copy(update={
                "content": DELETED_MESSAGE_PLACEHOLDER,
                "is_deleted": True,
                "edited_at": now,
            })

        try:
            message = await self._messages.update(
                self._replacer(message_id, _delete, label="Message")
            )
        except WorkflowRejected as e:
            return MessageResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("delete_message", e, correlation_id)
            return MessageResult.failure(f"Failed to delete message: {e}", ErrorCode.STORAGE)

        await self._record_event(
            AuditEventType.MESSAGE_DELETED,
            "message",
            message.id,
            "Message deleted",
            actor_id=author_id,
            correlation_id=correlation_id,
        )
        return MessageResult(success=True, message=message)


# =============================================================================
# AUTH
# =============================================================================

class AuthFlow(_Flow):
    """
    PIN lifecycle and app locking.

    CRITICAL: PINs, hashes and salts are never logged or audited.
    """

    def __init__(
        self,
        settings_repository: SettingsRepository,
        rate_limiter: PinRateLimiter,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(audit_logger)
        self._repository = settings_repository
        self._limiter = rate_limiter
        self._app_settings = app_settings or AppSettings()
        self._clock = clock

    async def _audit(
        self,
        event_type: AuditEventType,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_pin_event(
                event_type, description, details, correlation_id
            )

    async def initialize_settings(self) -> HouseholdSettings:
        """Create default household settings on first run."""
        now = self._clock()
        defaults = HouseholdSettings(
            currency=self._app_settings.default_currency,
            locale=self._app_settings.default_locale,
            created_at=now,
            updated_at=now,
        )
        return await self._repository.initialize(defaults)

    async def setup_pin(
        self,
        pin: str,
        hint: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PinResult:
        correlation_id = correlation_id or create_correlation_id()

        if not is_valid_pin(pin):
            return PinResult.failure("PIN must be 4-6 digits", ErrorCode.VALIDATION)

        request, issues = parse_input(SetupPinInput, {"pin": pin, "hint": hint})
        if request is None:
            return PinResult.failure(issues[0].message, ErrorCode.VALIDATION, issues)

        try:
            settings = await self._repository.get()
            if settings is None:
                return PinResult.failure("Settings not initialized", ErrorCode.NOT_CONFIGURED)
            if settings.pin_configured:
                return PinResult.failure(
                    "PIN already configured. Use change_pin instead.",
                    ErrorCode.RULE_VIOLATION,
                )

            record = await hash_pin(request.pin)
            now = self._clock()

            def _store(current: HouseholdSettings) -> None:
                if current.pin_configured:
                    raise WorkflowRejected(
                        "PIN already configured. Use change_pin instead.",
                        ErrorCode.RULE_VIOLATION,
                    )
                current.pin = record
                current.pin_hint = request.hint
                current.failed_attempts = 0
                current.locked_until = None
                current.updated_at = now

            await self._repository.update(_store)
        except WorkflowRejected as e:
            return PinResult.failure(e.message, e.error_code)
        except StorageError as e:
            await self._storage_failed("setup_pin", e, correlation_id)
            return PinResult.failure(f"Failed to setup PIN: {e}", ErrorCode.STORAGE)

        await self._audit(AuditEventType.PIN_SETUP, "PIN configured", correlation_id=correlation_id)
        return PinResult(success=True)

    async def verify_pin(
        self,
        pin: str,
        correlation_id: Optional[UUID] = None,
    ) -> PinResult:
        """Verify a PIN with progressive delay and lockout."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            result = await self._limiter.attempt(pin)
        except StorageError as e:
            await self._storage_failed("verify_pin", e, correlation_id)
            return PinResult.failure(f"Failed to verify PIN: {e}", ErrorCode.STORAGE)

        if result.success:
            await self._audit(AuditEventType.PIN_VERIFIED, "PIN verified", correlation_id=correlation_id)
        elif result.error_code == ErrorCode.LOCKED and result.delay_ms:
            await self._audit(
                AuditEventType.LOCKOUT_APPLIED,
                "Too many failed PIN attempts",
                {
                    "failed_attempts": result.failed_attempts,
                    "locked_until": result.locked_until.isoformat(),
                },
                correlation_id,
            )
        elif result.error_code in (ErrorCode.INVALID_PIN, ErrorCode.LOCKED):
            await self._audit(
                AuditEventType.PIN_REJECTED,
                "PIN rejected",
                {"failed_attempts": result.failed_attempts, "locked": result.locked},
                correlation_id,
            )
        return result

    async def change_pin(
        self,
        current_pin: str,
        new_pin: str,
        hint: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PinResult:
        """Replace the PIN. Requires the current PIN; resets attempt state."""
        correlation_id = correlation_id or create_correlation_id()

        if not (is_valid_pin(current_pin) and is_valid_pin(new_pin)):
            return PinResult.failure("PIN must be 4-6 digits", ErrorCode.VALIDATION)

        request, issues = parse_input(
            ChangePinInput,
            {"current_pin": current_pin, "new_pin": new_pin, "hint": hint},
        )
        if request is None:
            return PinResult.failure(issues[0].message, ErrorCode.VALIDATION, issues)

        try:
            settings = await self._repository.get()
            if settings is None or settings.pin is None:
                return PinResult.failure("PIN not configured", ErrorCode.NOT_CONFIGURED)

            status = await self._limiter.status()
            if status.locked:
                return PinResult.failure(
                    "Account locked. Unlock with your PIN first.",
                    ErrorCode.LOCKED,
                    locked=True,
                    locked_until=status.locked_until,
                    failed_attempts=status.failed_attempts,
                )

            if not await verify_pin(request.current_pin, settings.pin):
                return PinResult.failure("Current PIN is incorrect", ErrorCode.INVALID_PIN)

            record = await hash_pin(request.new_pin)
            now = self._clock()

            def _store(current: HouseholdSettings) -> None:
                current.pin = record
                current.pin_hint = request.hint or current.pin_hint
                current.failed_attempts = 0
                current.locked_until = None
                current.updated_at = now

            await self._repository.update(_store)
        except StorageError as e:
            await self._storage_failed("change_pin", e, correlation_id)
            return PinResult.failure(f"Failed to change PIN: {e}", ErrorCode.STORAGE)

        await self._audit(AuditEventType.PIN_CHANGED, "PIN changed", correlation_id=correlation_id)
        return PinResult(success=True)

    async def lock_app(self, correlation_id: Optional[UUID] = None) -> LockStatus:
        """Lock immediately using the household lock timeout."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            if await self._repository.get() is None:
                return LockStatus.failure("Settings not initialized", ErrorCode.NOT_CONFIGURED)
            locked_until = await self._limiter.lock_now()
        except StorageError as e:
            await self._storage_failed("lock_app", e, correlation_id)
            return LockStatus.failure(f"Failed to lock app: {e}", ErrorCode.STORAGE)

        await self._audit(
            AuditEventType.APP_LOCKED,
            "App locked",
            {"locked_until": locked_until.isoformat()},
            correlation_id,
        )
        return LockStatus(success=True, locked=True, locked_until=locked_until)

    async def is_app_locked(self) -> LockStatus:
        try:
            return await self._limiter.status()
        except StorageError as e:
            return LockStatus.failure(f"Failed to check lock status: {e}", ErrorCode.STORAGE)


# =============================================================================
# FACTORY
# =============================================================================

@dataclass
class AppComponents:
    """Everything a front end needs, wired to one storage adapter."""
    storage: StorageAdapter
    audit_logger: AuditLogger
    members: MemberFlow
    expenses: ExpenseFlow
    chores: ChoreFlow
    groceries: GroceryFlow
    fitness: FitnessFlow
    notes: NoteFlow
    chat: ChatFlow
    auth: AuthFlow


def create_app_components(
    use_storage: bool = True,
    storage: Optional[StorageAdapter] = None,
    settings: Optional[Settings] = None,
    clock: Clock = utcnow,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured persistent backend.
                    Set to False for an in-memory household (tests, demos).
        storage: Explicit adapter; overrides use_storage.
        settings: Settings to use instead of get_settings().
        clock: Source of "now" for every workflow.

    Returns:
        AppComponents with all flows sharing one audit logger.
    """
    settings = settings or get_settings()
    storage_settings = settings.storage
    app_settings = settings.app

    configure_log_level(app_settings.log_level)

    if storage is None:
        storage = create_storage_adapter(storage_settings) if use_storage else InMemoryStorage()

    audit_logger = AuditLogger(KeyValueAuditStorage(storage, storage_settings))

    members = CollectionRepository(storage, StorageKeys.MEMBERS, Member, storage_settings)
    expenses = CollectionRepository(storage, StorageKeys.EXPENSES, Expense, storage_settings)
    balances = CollectionRepository(storage, StorageKeys.BALANCES, Balance, storage_settings)
    chores = CollectionRepository(storage, StorageKeys.CHORES, Chore, storage_settings)
    assignments = CollectionRepository(
        storage, StorageKeys.CHORE_ASSIGNMENTS, ChoreAssignment, storage_settings
    )
    groceries = CollectionRepository(storage, StorageKeys.GROCERIES, GroceryItem, storage_settings)
    sessions = CollectionRepository(storage, StorageKeys.GYM_SESSIONS, GymSession, storage_settings)
    goals = CollectionRepository(storage, StorageKeys.FITNESS_GOALS, FitnessGoal, storage_settings)
    notes = CollectionRepository(storage, StorageKeys.NOTES, Note, storage_settings)
    reminders = CollectionRepository(storage, StorageKeys.REMINDERS, Reminder, storage_settings)
    messages = CollectionRepository(storage, StorageKeys.CHAT_MESSAGES, ChatMessage, storage_settings)
    settings_repository = SettingsRepository(storage, storage_settings)

    rate_limiter = PinRateLimiter(settings_repository, settings.security, clock)
    board_validator = BoardValidator(members, notes, clock)

    return AppComponents(
        storage=storage,
        audit_logger=audit_logger,
        members=MemberFlow(members, MemberValidator(members, app_settings), audit_logger),
        expenses=ExpenseFlow(
            expenses,
            members,
            balances,
            ExpenseValidator(members, expenses, clock),
            audit_logger,
            app_settings,
            clock,
        ),
        chores=ChoreFlow(
            chores,
            assignments,
            members,
            ChoreValidator(members, clock),
            audit_logger,
            clock,
        ),
        groceries=GroceryFlow(
            groceries, GroceryValidator(members), audit_logger, app_settings, clock
        ),
        fitness=FitnessFlow(
            sessions,
            goals,
            FitnessValidator(members, goals, clock),
            audit_logger,
            clock,
        ),
        notes=NoteFlow(
            notes,
            reminders,
            board_validator,
            audit_logger,
            app_settings,
            clock,
        ),
        chat=ChatFlow(messages, board_validator, audit_logger, app_settings, clock),
        auth=AuthFlow(settings_repository, rate_limiter, audit_logger, app_settings, clock),
    )
