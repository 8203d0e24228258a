"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking, required fields, formats
- Model invariants (participant sums, payer among participants,
  rotation index inside the sequence)
- Runs without storage

STAGE 2 - SEMANTIC VALIDATION:
- Checks against stored household state
- Referenced members exist and are active
- Member names unique, household size limit
- Due dates not in the past, assignees part of the rotation
- Settled expenses are immutable
- Gym sessions not in the future, active goals not overlapping

WHY TWO STAGES:
1. Malformed input never reaches storage lookups
2. Better error messages (know exactly what kind of issue)
3. Stage 2 is skipped if stage 1 fails

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and the workflow refuses to mutate anything.
"""

from typing import Any, Callable, Iterable, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError

from flatmate.config import AppSettings
from flatmate.fitness import find_overlapping_goal
from flatmate.models.board import (
    CreateNoteInput,
    CreateReminderInput,
    Note,
    Reminder,
    SendMessageInput,
    UpdateNoteInput,
    UpdateReminderInput,
)
from flatmate.models.chores import (
    Chore,
    CreateAssignmentInput,
    CreateChoreInput,
    UpdateChoreInput,
)
from flatmate.models.common import utcnow
from flatmate.models.fitness import (
    CreateGoalInput,
    FitnessGoal,
    GymSession,
    LogSessionInput,
    UpdateGoalInput,
    UpdateSessionInput,
)
from flatmate.models.groceries import AddGroceryInput, GroceryItem, UpdateGroceryInput
from flatmate.models.household import (
    CreateExpenseInput,
    CreateMemberInput,
    Expense,
    Member,
    UpdateExpenseInput,
    UpdateMemberInput,
)
from flatmate.models.results import ValidationIssue, ValidationResult
from flatmate.services.storage import CollectionRepository


M = TypeVar("M", bound=BaseModel)

_VALUE_ERROR_PREFIX = "Value error, "


def issues_from_validation_error(error: ValidationError) -> list[ValidationIssue]:
    """Convert a pydantic ValidationError into field-level issues."""
    issues = []
    for err in error.errors():
        field = ".".join(str(part) for part in err["loc"]) or "input"
        message = err["msg"]
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]
        issues.append(ValidationIssue(
            field=field,
            issue_type=err["type"],
            message=message,
            severity="error",
        ))
    return issues


def parse_input(model: Type[M], payload: Any) -> tuple[Optional[M], list[ValidationIssue]]:
    """Stage 1 for a single model: (parsed, issues)."""
    if isinstance(payload, model):
        payload = payload.model_dump()
    try:
        return model.model_validate(payload), []
    except ValidationError as e:
        return None, issues_from_validation_error(e)


def _finish(
    subject: str,
    schema_issues: list[ValidationIssue],
    semantic_issues: list[ValidationIssue],
    value: Any = None,
) -> ValidationResult:
    schema_valid = not any(i.severity == "error" for i in schema_issues)
    semantic_valid = schema_valid and not any(
        i.severity == "error" for i in semantic_issues
    )
    all_issues = schema_issues + semantic_issues
    return ValidationResult(
        subject=subject,
        schema_valid=schema_valid,
        semantic_valid=semantic_valid,
        is_valid=schema_valid and semantic_valid,
        issues=all_issues,
        warnings=[i.message for i in all_issues if i.severity == "warning"],
        value=value if schema_valid and semantic_valid else None,
    )


def _inactive_member_issue(field: str, member_id: UUID) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="inactive_member",
        message=f"Invalid member ID: {member_id} or member is inactive",
        severity="error",
        suggested_fix="Choose an active household member",
    )


class MemberValidator:
    """Validates member creation and updates."""

    def __init__(
        self,
        members: CollectionRepository[Member],
        settings: Optional[AppSettings] = None,
    ):
        self._members = members
        self._settings = settings or AppSettings()

    def _check_roster(
        self,
        name: str,
        becomes_active: bool,
        roster: Iterable[Member],
        exclude_id: Optional[UUID] = None,
    ) -> list[ValidationIssue]:
        issues = []
        others = [m for m in roster if m.is_active and m.id != exclude_id]

        if becomes_active and any(m.name.casefold() == name.casefold() for m in others):
            issues.append(ValidationIssue(
                field="name",
                issue_type="duplicate",
                message=f"A member named '{name}' already exists",
                severity="error",
                suggested_fix="Pick a different display name",
            ))

        limit = self._settings.max_active_members
        if becomes_active and len(others) >= limit:
            issues.append(ValidationIssue(
                field="is_active",
                issue_type="limit_reached",
                message=f"A household can have at most {limit} active members",
                severity="error",
                suggested_fix="Deactivate a member first",
            ))
        return issues

    async def validate_create(self, payload: Any) -> ValidationResult:
        parsed, schema_issues = parse_input(CreateMemberInput, payload)
        if parsed is None:
            return _finish("member", schema_issues, [])

        roster = await self._members.all()
        semantic_issues = self._check_roster(parsed.name, parsed.is_active, roster)
        return _finish("member", schema_issues, semantic_issues, parsed)

    async def validate_update(self, member: Member, payload: Any) -> ValidationResult:
        """Validate a partial update; the result value is the merged Member."""
        parsed, schema_issues = parse_input(UpdateMemberInput, payload)
        if parsed is None:
            return _finish("member", schema_issues, [])

        merged, merge_issues = parse_input(
            Member,
            {**member.model_dump(), **parsed.model_dump(exclude_unset=True, exclude_none=True)},
        )
        if merged is None:
            return _finish("member", merge_issues, [])

        roster = await self._members.all()
        semantic_issues = self._check_roster(
            merged.name, merged.is_active, roster, exclude_id=member.id
        )
        return _finish("member", schema_issues, semantic_issues, merged)


class ExpenseValidator:
    """
    Validates expense creation and updates.

    Amount and split invariants are enforced by the models (stage 1);
    membership and immutability rules need storage (stage 2).
    """

    def __init__(
        self,
        members: CollectionRepository[Member],
        expenses: Optional[CollectionRepository[Expense]] = None,
        clock: Callable = utcnow,
    ):
        self._members = members
        self._expenses = expenses
        self._clock = clock

    async def _check_members(
        self,
        payer_id: Optional[UUID],
        participant_ids: Iterable[UUID],
    ) -> list[ValidationIssue]:
        active = {m.id for m in await self._members.all() if m.is_active}
        issues = []
        if payer_id is not None and payer_id not in active:
            issues.append(ValidationIssue(
                field="payer_id",
                issue_type="inactive_member",
                message="Invalid payer ID or payer is inactive",
                severity="error",
                suggested_fix="Choose an active household member as payer",
            ))
        for index, member_id in enumerate(participant_ids):
            if member_id not in active:
                issues.append(_inactive_member_issue(f"participants.{index}.member_id", member_id))
        return issues

    async def _check_currency(self, currency: str, exclude_id: Optional[UUID] = None) -> list[ValidationIssue]:
        if self._expenses is None:
            return []
        unsettled = [
            e for e in await self._expenses.all()
            if not e.is_settled and e.id != exclude_id
        ]
        if unsettled and unsettled[0].currency != currency:
            return [ValidationIssue(
                field="currency",
                issue_type="mixed_currency",
                message=(
                    f"Other unsettled expenses use {unsettled[0].currency}; "
                    f"balances are computed in a single currency"
                ),
                severity="warning",
                suggested_fix="Settle existing expenses before switching currency",
            )]
        return []

    async def validate_create(self, payload: Any) -> ValidationResult:
        parsed, schema_issues = parse_input(CreateExpenseInput, payload)
        if parsed is None:
            return _finish("expense", schema_issues, [])

        semantic_issues = await self._check_members(
            parsed.payer_id, [p.member_id for p in parsed.participants]
        )
        semantic_issues.extend(await self._check_currency(parsed.currency))
        return _finish("expense", schema_issues, semantic_issues, parsed)

    async def validate_update(self, expense: Expense, payload: Any) -> ValidationResult:
        """Validate a partial update; the result value is the merged Expense."""
        if expense.is_settled:
            return _finish("expense", [], [ValidationIssue(
                field="is_settled",
                issue_type="immutable",
                message="Cannot edit settled expense",
                severity="error",
            )])

        parsed, schema_issues = parse_input(UpdateExpenseInput, payload)
        if parsed is None:
            return _finish("expense", schema_issues, [])

        changes = parsed.model_dump(exclude_unset=True)
        merged, merge_issues = parse_input(Expense, {
            **expense.model_dump(),
            **changes,
            "updated_at": self._clock(),
        })
        if merged is None:
            return _finish("expense", merge_issues, [])

        semantic_issues = await self._check_members(
            merged.payer_id if "payer_id" in changes else None,
            [p.member_id for p in merged.participants] if "participants" in changes else [],
        )
        if "currency" in changes:
            semantic_issues.extend(await self._check_currency(merged.currency, exclude_id=expense.id))
        return _finish("expense", schema_issues, semantic_issues, merged)


class ChoreValidator:
    """Validates chores and chore assignments."""

    def __init__(
        self,
        members: CollectionRepository[Member],
        clock: Callable = utcnow,
    ):
        self._members = members
        self._clock = clock

    async def _check_sequence(self, sequence: list[UUID]) -> list[ValidationIssue]:
        known = {m.id: m for m in await self._members.all()}
        issues = []
        for index, member_id in enumerate(sequence):
            member = known.get(member_id)
            if member is None or not member.is_active:
                issues.append(_inactive_member_issue(f"rotation_sequence.{index}", member_id))
        if len(set(sequence)) != len(sequence):
            issues.append(ValidationIssue(
                field="rotation_sequence",
                issue_type="duplicate",
                message="A member appears more than once in the rotation",
                severity="warning",
            ))
        return issues

    async def validate_create(self, payload: Any) -> ValidationResult:
        parsed, schema_issues = parse_input(CreateChoreInput, payload)
        if parsed is None:
            return _finish("chore", schema_issues, [])

        semantic_issues = await self._check_sequence(parsed.rotation_sequence)
        return _finish("chore", schema_issues, semantic_issues, parsed)

    async def validate_update(self, chore: Chore, payload: Any) -> ValidationResult:
        """Validate a partial update; the result value is the merged Chore."""
        parsed, schema_issues = parse_input(UpdateChoreInput, payload)
        if parsed is None:
            return _finish("chore", schema_issues, [])

        changes = parsed.model_dump(exclude_unset=True, exclude_none=True)
        merged, merge_issues = parse_input(Chore, {**chore.model_dump(), **changes})
        if merged is None:
            return _finish("chore", merge_issues, [])

        semantic_issues = []
        if "rotation_sequence" in changes:
            semantic_issues = await self._check_sequence(merged.rotation_sequence)
        return _finish("chore", schema_issues, semantic_issues, merged)

    async def validate_assignment(self, chore: Chore, payload: Any) -> ValidationResult:
        parsed, schema_issues = parse_input(CreateAssignmentInput, payload)
        if parsed is None:
            return _finish("assignment", schema_issues, [])

        semantic_issues = []
        if parsed.due_date < self._clock():
            semantic_issues.append(ValidationIssue(
                field="due_date",
                issue_type="past_date",
                message="Due date must be in the future",
                severity="error",
                suggested_fix="Pick today or a later date",
            ))
        if parsed.assigned_to not in chore.rotation_sequence:
            semantic_issues.append(ValidationIssue(
                field="assigned_to",
                issue_type="not_in_rotation",
                message="Assignee is not part of this chore's rotation",
                severity="error",
            ))
        else:
            active = {m.id for m in await self._members.all() if m.is_active}
            if parsed.assigned_to not in active:
                semantic_issues.append(_inactive_member_issue("assigned_to", parsed.assigned_to))
        return _finish("assignment", schema_issues, semantic_issues, parsed)


async def _check_active_member(
    members: CollectionRepository[Member],
    field: str,
    member_id: UUID,
) -> list[ValidationIssue]:
    active = {m.id for m in await members.all() if m.is_active}
    if member_id in active:
        return []
    return [_inactive_member_issue(field, member_id)]


class GroceryValidator:
    """Validates grocery purchases."""

    def __init__(self, members: CollectionRepository[Member]):
        self._members = members

    async def validate_add(self, payload: Any) -> ValidationResult:
        parsed, schema_issues = parse_input(AddGroceryInput, payload)
        if parsed is None:
            return _finish("grocery", schema_issues, [])

        semantic_issues = await _check_active_member(self._members, "added_by", parsed.added_by)
        return _finish("grocery", schema_issues, semantic_issues, parsed)

    async def validate_update(self, item: GroceryItem, payload: Any) -> ValidationResult:
        """Validate a partial update; the result value is the merged GroceryItem."""
        parsed, schema_issues = parse_input(UpdateGroceryInput, payload)
        if parsed is None:
            return _finish("grocery", schema_issues, [])

        merged, merge_issues = parse_input(
            GroceryItem, {**item.model_dump(), **parsed.model_dump(exclude_unset=True)}
        )
        if merged is None:
            return _finish("grocery", merge_issues, [])
        return _finish("grocery", schema_issues, [], merged)


class FitnessValidator:
    """
    Validates gym sessions and fitness goals.

    Sessions may be backdated but never logged in the future. Active
    goals of the same period type must not overlap.
    """

    def __init__(
        self,
        members: CollectionRepository[Member],
        goals: CollectionRepository[FitnessGoal],
        clock: Callable = utcnow,
    ):
        self._members = members
        self._goals = goals
        self._clock = clock

    def _check_date(self, date) -> list[ValidationIssue]:
        if date <= self._clock():
            return []
        return [ValidationIssue(
            field="date",
            issue_type="future_date",
            message="Session date cannot be in the future",
            severity="error",
            suggested_fix="Log sessions once they have happened",
        )]

    async def _check_overlap(self, goal: FitnessGoal) -> list[ValidationIssue]:
        if not goal.is_active:
            return []
        if find_overlapping_goal(goal, await self._goals.all()) is None:
            return []
        return [ValidationIssue(
            field="period",
            issue_type="overlapping_goal",
            message="An active goal already exists for this period",
            severity="error",
            suggested_fix="Deactivate the existing goal or pick other dates",
        )]

    async def validate_session(self, payload: Any) -> ValidationResult:
        parsed, schema_issues = parse_input(LogSessionInput, payload)
        if parsed is None:
            return _finish("gym session", schema_issues, [])

        semantic_issues = self._check_date(parsed.date)
        semantic_issues.extend(
            await _check_active_member(self._members, "member_id", parsed.member_id)
        )
        return _finish("gym session", schema_issues, semantic_issues, parsed)

    async def validate_session_update(self, session: GymSession, payload: Any) -> ValidationResult:
        """Validate a partial update; the result value is the merged GymSession."""
        parsed, schema_issues = parse_input(UpdateSessionInput, payload)
        if parsed is None:
            return _finish("gym session", schema_issues, [])

        changes = parsed.model_dump(exclude_unset=True)
        merged, merge_issues = parse_input(GymSession, {
            **session.model_dump(),
            **changes,
            "updated_at": self._clock(),
        })
        if merged is None:
            return _finish("gym session", merge_issues, [])

        semantic_issues = self._check_date(merged.date) if "date" in changes else []
        return _finish("gym session", schema_issues, semantic_issues, merged)

    async def validate_goal(self, payload: Any) -> ValidationResult:
        """The result value is the new FitnessGoal, ready to store."""
        parsed, schema_issues = parse_input(CreateGoalInput, payload)
        if parsed is None:
            return _finish("goal", schema_issues, [])

        goal = FitnessGoal(**parsed.model_dump(), created_at=self._clock())
        semantic_issues = await self._check_overlap(goal)
        return _finish("goal", schema_issues, semantic_issues, goal)

    async def validate_goal_update(self, goal: FitnessGoal, payload: Any) -> ValidationResult:
        """Validate a partial update; the result value is the merged FitnessGoal."""
        parsed, schema_issues = parse_input(UpdateGoalInput, payload)
        if parsed is None:
            return _finish("goal", schema_issues, [])

        merged, merge_issues = parse_input(
            FitnessGoal,
            {**goal.model_dump(), **parsed.model_dump(exclude_unset=True, exclude_none=True)},
        )
        if merged is None:
            return _finish("goal", merge_issues, [])

        semantic_issues = await self._check_overlap(merged)
        return _finish("goal", schema_issues, semantic_issues, merged)


class BoardValidator:
    """Validates notes, reminders and chat messages."""

    def __init__(
        self,
        members: CollectionRepository[Member],
        notes: CollectionRepository[Note],
        clock: Callable = utcnow,
    ):
        self._members = members
        self._notes = notes
        self._clock = clock

    async def _check_reminder(
        self,
        due_date,
        note_id: Optional[UUID],
    ) -> list[ValidationIssue]:
        issues = []
        if due_date is not None and due_date < self._clock():
            issues.append(ValidationIssue(
                field="due_date",
                issue_type="past_date",
                message="Due date must be in the future",
                severity="error",
                suggested_fix="Pick a later date",
            ))
        if note_id is not None and await self._notes.get(note_id) is None:
            issues.append(ValidationIssue(
                field="note_id",
                issue_type="not_found",
                message="Linked note not found",
                severity="error",
            ))
        return issues

    async def validate_note(self, payload: Any) -> ValidationResult:
        parsed, schema_issues = parse_input(CreateNoteInput, payload)
        if parsed is None:
            return _finish("note", schema_issues, [])

        semantic_issues = await _check_active_member(self._members, "created_by", parsed.created_by)
        return _finish("note", schema_issues, semantic_issues, parsed)

    async def validate_note_update(self, note: Note, payload: Any) -> ValidationResult:
        """Validate a partial update; the result value is the merged Note."""
        parsed, schema_issues = parse_input(UpdateNoteInput, payload)
        if parsed is None:
            return _finish("note", schema_issues, [])

        merged, merge_issues = parse_input(Note, {
            **note.model_dump(),
            **parsed.model_dump(exclude_unset=True, exclude_none=True),
            "updated_at": self._clock(),
        })
        if merged is None:
            return _finish("note", merge_issues, [])
        return _finish("note", schema_issues, [], merged)

    async def validate_reminder(self, payload: Any) -> ValidationResult:
        parsed, schema_issues = parse_input(CreateReminderInput, payload)
        if parsed is None:
            return _finish("reminder", schema_issues, [])

        semantic_issues = await self._check_reminder(parsed.due_date, parsed.note_id)
        semantic_issues.extend(
            await _check_active_member(self._members, "created_by", parsed.created_by)
        )
        return _finish("reminder", schema_issues, semantic_issues, parsed)

    async def validate_reminder_update(self, reminder: Reminder, payload: Any) -> ValidationResult:
        """
        Validate a partial update; the result value is the merged Reminder.

        An explicit null note_id detaches the reminder from its note.
        """
        parsed, schema_issues = parse_input(UpdateReminderInput, payload)
        if parsed is None:
            return _finish("reminder", schema_issues, [])

        changes = parsed.model_dump(exclude_unset=True)
        if changes.get("description") is None:
            changes.pop("description", None)
        if changes.get("due_date") is None:
            changes.pop("due_date", None)

        merged, merge_issues = parse_input(Reminder, {**reminder.model_dump(), **changes})
        if merged is None:
            return _finish("reminder", merge_issues, [])

        semantic_issues = await self._check_reminder(
            changes.get("due_date"), changes.get("note_id")
        )
        return _finish("reminder", schema_issues, semantic_issues, merged)

    async def validate_message(self, payload: Any) -> ValidationResult:
        parsed, schema_issues = parse_input(SendMessageInput, payload)
        if parsed is None:
            return _finish("message", schema_issues, [])

        semantic_issues = await _check_active_member(self._members, "author_id", parsed.author_id)
        return _finish("message", schema_issues, semantic_issues, parsed)


def get_user_friendly_summary(result: ValidationResult) -> str:
    """Plain-text summary of validation results for display."""
    if result.is_valid and not result.warnings:
        return "All checks passed."

    lines = []
    errors = [i for i in result.issues if i.severity == "error"]
    if errors:
        lines.append(f"Please fix the following {result.subject} details:")
        for issue in errors:
            lines.append(f"  - {issue.message}")
            if issue.suggested_fix:
                lines.append(f"    ({issue.suggested_fix})")

    if result.warnings:
        if lines:
            lines.append("")
        lines.append("Please verify:")
        for warning in result.warnings:
            lines.append(f"  - {warning}")

    return "\n".join(lines)
