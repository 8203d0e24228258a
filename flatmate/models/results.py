"""
Validation and Workflow Result Models

DESIGN DECISION: Business workflows never use exceptions for expected
outcomes. They return one of these result objects so the caller can
render a message without try/except:

    result = await expense_flow.create_expense(payload)
    if not result.success:
        show(result.error, result.issues)

Pure engines (settlement, rotation) still raise on programmer misuse.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from flatmate.models.board import ChatMessage, Note, Reminder
from flatmate.models.chores import Chore, ChoreAssignment
from flatmate.models.common import utcnow
from flatmate.models.fitness import FitnessGoal, GoalProgress, GymSession
from flatmate.models.groceries import ContributionTotal, GroceryItem
from flatmate.models.household import Balance, Expense, Member


class ErrorCode(str, Enum):
    """Machine-readable reason for a failed workflow."""
    VALIDATION = "validation"          # malformed input
    RULE_VIOLATION = "rule_violation"  # well-formed but not allowed
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_PIN = "invalid_pin"
    LOCKED = "locked"
    NOT_CONFIGURED = "not_configured"
    STORAGE = "storage"


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'inactive_member')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, formats, invariants of the model)
    Stage 2: Semantic validation (checks against stored household state)
    """

    subject: str = Field(
        ...,
        description="What was validated (e.g., 'expense', 'chore')"
    )
    validated_at: datetime = Field(default_factory=utcnow)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    # Parsed input model when schema validation passed
    value: Optional[Any] = Field(default=None, exclude=True)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def field_errors(self) -> dict[str, list[str]]:
        """Error messages grouped by field, for form rendering."""
        grouped: dict[str, list[str]] = {}
        for issue in self.issues:
            if issue.severity == "error":
                grouped.setdefault(issue.field, []).append(issue.message)
        return grouped


# =============================================================================
# WORKFLOW RESULTS
# =============================================================================

class ActionResult(BaseModel):
    """Base discriminated success/failure result."""

    success: bool
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    issues: list[ValidationIssue] = Field(default_factory=list)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: ErrorCode,
        issues: Optional[list[ValidationIssue]] = None,
        **payload: Any,
    ):
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            issues=issues or [],
            **payload,
        )

    @classmethod
    def from_validation(cls, result: ValidationResult):
        """Turn a failed ValidationResult into a failed action."""
        errors = [i.message for i in result.issues if i.severity == "error"]
        code = ErrorCode.VALIDATION if not result.schema_valid else ErrorCode.RULE_VIOLATION
        return cls.failure(
            errors[0] if errors else f"Invalid {result.subject}",
            code,
            issues=result.issues,
        )


class MemberResult(ActionResult):
    member: Optional[Member] = None


class ExpenseResult(ActionResult):
    expense: Optional[Expense] = None
    balances: list[Balance] = Field(default_factory=list)


class BalancesResult(ActionResult):
    balances: list[Balance] = Field(default_factory=list)


class ChoreResult(ActionResult):
    chore: Optional[Chore] = None


class RotationOutcome(ActionResult):
    next_assignee: Optional[UUID] = None
    current_index: Optional[int] = None


class AssignmentResult(ActionResult):
    assignment: Optional[ChoreAssignment] = None
    next_assignee: Optional[UUID] = None
    next_assignment: Optional[ChoreAssignment] = None


class PinResult(ActionResult):
    """Outcome of a PIN operation, including rate-limit state."""

    failed_attempts: int = 0
    delay_ms: int = Field(
        default=0,
        description="Advisory wait before the caller allows another attempt"
    )
    locked: bool = False
    locked_until: Optional[datetime] = None
    retry_after_seconds: Optional[int] = None


class LockStatus(ActionResult):
    locked: bool = False
    locked_until: Optional[datetime] = None
    failed_attempts: int = 0


class GroceryResult(ActionResult):
    item: Optional[GroceryItem] = None


class MergeResult(ActionResult):
    merged: Optional[GroceryItem] = None
    removed_ids: list[UUID] = Field(default_factory=list)


class ContributionsResult(ActionResult):
    """Grocery spending over a date range, by buyer and by category."""

    by_member: dict[UUID, ContributionTotal] = Field(default_factory=dict)
    by_category: dict[str, ContributionTotal] = Field(default_factory=dict)
    total: Decimal = Decimal("0.00")
    count: int = 0


class GymSessionResult(ActionResult):
    session: Optional[GymSession] = None


class GoalResult(ActionResult):
    goal: Optional[FitnessGoal] = None


class GoalProgressResult(ActionResult):
    progress: Optional[GoalProgress] = None


class NoteResult(ActionResult):
    note: Optional[Note] = None


class ReminderResult(ActionResult):
    reminder: Optional[Reminder] = None


class MessageResult(ActionResult):
    message: Optional[ChatMessage] = None
