"""
Household Data Models

These models define the strict schemas for members, shared expenses and
the balances derived from them. They are designed to:
1. Enforce the expense invariants at construction time
2. Provide clear validation error messages per field
3. Round-trip cleanly through JSON storage

DESIGN DECISION: Amounts are Decimal with at most 2 decimal places.
Floats are accepted on input but never used for arithmetic.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from flatmate.models.common import PositiveMoney, UtcDatetime, utcnow


HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

# Participant amounts must match the expense total to within this much
PARTICIPANT_SUM_TOLERANCE = Decimal("0.01")


# =============================================================================
# ENUMS
# =============================================================================

class SplitMode(str, Enum):
    """How an expense is divided between participants."""
    EQUAL = "equal"
    RATIO = "ratio"    # by each member's share ratio
    CUSTOM = "custom"  # explicit amounts


class ExpenseCategory(str, Enum):
    """
    Suggested expense categories.

    Categories are free text (max 30 chars); these are the defaults
    offered to users.
    """
    BILLS = "Bills"
    GROCERIES = "Groceries"
    TAKEOUT = "Takeout"
    ENTERTAINMENT = "Entertainment"
    OTHER = "Other"


def _normalize_currency(v: str) -> str:
    v = v.strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ValueError("Must be ISO 4217 code")
    return v


def check_participant_rules(
    amount: Decimal,
    payer_id: UUID,
    participants: list["ExpenseParticipant"],
) -> None:
    """
    Enforce the split invariants shared by expenses and expense inputs.

    Raises ValueError describing the first broken rule.
    """
    member_ids = [p.member_id for p in participants]
    if len(set(member_ids)) != len(member_ids):
        raise ValueError("Each member can appear only once among participants")

    participant_sum = sum((p.amount for p in participants), Decimal("0"))
    if abs(participant_sum - amount) >= PARTICIPANT_SUM_TOLERANCE:
        raise ValueError(
            "Participant amounts must sum to total expense amount "
            "(within 0.01 tolerance)"
        )

    if payer_id not in member_ids:
        raise ValueError("Payer must be included in participants")


# =============================================================================
# MEMBERS
# =============================================================================

class Member(BaseModel):
    """
    An individual flatmate.

    Members are referenced (never owned) by expenses, chores and
    assignments, so they are deactivated rather than deleted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Display name"
    )
    color: str = Field(
        default="#64748B",
        pattern=HEX_COLOR_PATTERN,
        description="Hex color (#RRGGBB) used to tag the member"
    )
    share_ratio: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Weight used for ratio splits"
    )
    created_at: UtcDatetime = Field(default_factory=utcnow)
    is_active: bool = True


class CreateMemberInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(default="#64748B", pattern=HEX_COLOR_PATTERN)
    share_ratio: float = Field(default=1.0, ge=0.0, le=1.0)
    is_active: bool = True


class UpdateMemberInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    share_ratio: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    is_active: Optional[bool] = None


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseParticipant(BaseModel):
    """One member's share of an expense."""

    member_id: UUID
    amount: PositiveMoney
    percentage: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=100.0,
        description="Percentage of the total, when split by ratio"
    )


class Expense(BaseModel):
    """
    A shared purchase paid by one member on behalf of participants.

    CRITICAL: Once settled, an expense is immutable.
    Workflows must refuse edits on settled expenses.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(..., min_length=1, max_length=200)
    amount: PositiveMoney
    currency: str = Field(..., description="ISO 4217 code")
    category: str = Field(default=ExpenseCategory.OTHER.value, max_length=30)
    payer_id: UUID
    split_mode: SplitMode = SplitMode.EQUAL
    participants: list[ExpenseParticipant] = Field(..., min_length=1)
    notes: Optional[str] = Field(default=None, max_length=500)
    occurred_at: UtcDatetime = Field(default_factory=utcnow)
    created_by: UUID

    # Settlement state
    is_settled: bool = False
    settled_at: Optional[UtcDatetime] = None

    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return _normalize_currency(v)

    @model_validator(mode='after')
    def validate_split(self) -> 'Expense':
        check_participant_rules(self.amount, self.payer_id, self.participants)
        if self.is_settled and self.settled_at is None:
            raise ValueError("Settled expenses need a settlement timestamp")
        return self

    def involves(self, member_id: UUID) -> bool:
        """True if the member paid for or shares this expense."""
        return self.payer_id == member_id or any(
            p.member_id == member_id for p in self.participants
        )


class CreateExpenseInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(..., min_length=1, max_length=200)
    amount: PositiveMoney
    currency: str
    category: str = Field(default=ExpenseCategory.OTHER.value, max_length=30)
    payer_id: UUID
    split_mode: SplitMode = SplitMode.EQUAL
    participants: list[ExpenseParticipant] = Field(..., min_length=1)
    notes: Optional[str] = Field(default=None, max_length=500)
    occurred_at: UtcDatetime = Field(default_factory=utcnow)
    created_by: UUID

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return _normalize_currency(v)

    @model_validator(mode='after')
    def validate_split(self) -> 'CreateExpenseInput':
        check_participant_rules(self.amount, self.payer_id, self.participants)
        return self


class UpdateExpenseInput(BaseModel):
    """
    Partial update of an unsettled expense.

    Only the fields that are set are applied. The merged expense is
    re-validated as a whole, so a new amount without matching
    participants is rejected there.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[PositiveMoney] = None
    currency: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=30)
    payer_id: Optional[UUID] = None
    split_mode: Optional[SplitMode] = None
    participants: Optional[list[ExpenseParticipant]] = Field(default=None, min_length=1)
    notes: Optional[str] = Field(default=None, max_length=500)
    occurred_at: Optional[UtcDatetime] = None

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_currency(v) if v is not None else v


class SettleExpenseInput(BaseModel):
    expense_id: UUID
    settled_by: UUID


class ExpenseFilters(BaseModel):
    """Filters for listing unsettled expenses."""

    category: Optional[str] = None
    member_id: Optional[UUID] = None
    date_from: Optional[UtcDatetime] = None
    date_to: Optional[UtcDatetime] = None


# =============================================================================
# BALANCES (derived)
# =============================================================================

class NetBalance(BaseModel):
    """
    A member's net position across unsettled expenses.

    Positive: the household owes them. Negative: they owe the household.
    Ephemeral - recomputed on demand, never persisted.
    """

    member_id: str
    net: Decimal


class Settlement(BaseModel):
    """One directed payment produced by the settlement engine."""

    from_member_id: str
    to_member_id: str
    amount: Decimal = Field(..., gt=0)
    currency: str

    @model_validator(mode='after')
    def validate_direction(self) -> 'Settlement':
        if self.from_member_id == self.to_member_id:
            raise ValueError("A member cannot settle with themselves")
        return self


class Balance(BaseModel):
    """
    Debt between two members, persisted as a cache.

    Zero balances are never stored.
    """

    from_member_id: UUID = Field(..., description="Member who owes")
    to_member_id: UUID = Field(..., description="Member who is owed")
    amount: PositiveMoney
    currency: str

    @model_validator(mode='after')
    def validate_direction(self) -> 'Balance':
        if self.from_member_id == self.to_member_id:
            raise ValueError("From and to must be different members")
        return self
