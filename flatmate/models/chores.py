"""
Chore Data Models

A Chore is a recurring task template with an ordered rotation of
members. Each concrete occurrence is a ChoreAssignment.

DESIGN DECISION: current_index only moves through the rotation
sequencer (completion or explicit rotate/override). Updates that
replace the sequence must keep the index inside it.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from flatmate.models.common import UtcDatetime, utcnow


class Cadence(str, Enum):
    """Known cadences. Any other label is treated as custom."""
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class Chore(BaseModel):
    """Recurring household task with a member rotation."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    cadence: str = Field(
        ...,
        min_length=1,
        description="daily, weekly, biweekly, monthly or a custom label"
    )
    rotation_sequence: list[UUID] = Field(
        ...,
        min_length=1,
        description="Ordered member ids taking turns"
    )
    current_index: int = Field(default=0, ge=0)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    is_active: bool = True

    @model_validator(mode='after')
    def validate_index(self) -> 'Chore':
        if self.current_index >= len(self.rotation_sequence):
            raise ValueError("Current index must be < rotation sequence length")
        return self

    @property
    def current_assignee(self) -> UUID:
        return self.rotation_sequence[self.current_index]


class ChoreAssignment(BaseModel):
    """A single occurrence of a chore for one member."""

    id: UUID = Field(default_factory=uuid4)
    chore_id: UUID
    assigned_to: UUID
    due_date: UtcDatetime
    completed_at: Optional[UtcDatetime] = None
    completed_by: Optional[UUID] = Field(
        default=None,
        description="Member who did it (may differ from the assignee)"
    )
    is_disputed: bool = False
    created_at: UtcDatetime = Field(default_factory=utcnow)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


class CreateChoreInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    cadence: str = Field(..., min_length=1)
    rotation_sequence: list[UUID] = Field(..., min_length=1)
    current_index: int = Field(default=0, ge=0)
    is_active: bool = True

    @model_validator(mode='after')
    def validate_index(self) -> 'CreateChoreInput':
        if self.current_index >= len(self.rotation_sequence):
            raise ValueError("Current index must be < rotation sequence length")
        return self


class UpdateChoreInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    cadence: Optional[str] = Field(default=None, min_length=1)
    rotation_sequence: Optional[list[UUID]] = Field(default=None, min_length=1)
    current_index: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class CreateAssignmentInput(BaseModel):
    chore_id: UUID
    assigned_to: UUID
    due_date: UtcDatetime


class OverrideAssignmentInput(BaseModel):
    """Reassign one occurrence without touching the rotation."""
    model_config = ConfigDict(str_strip_whitespace=True)

    assignment_id: UUID
    new_assignee: UUID
    reason: Optional[str] = Field(default=None, max_length=200)


class RotationResult(BaseModel):
    """Outcome of the rotation sequencer."""

    member_id: str
    next_index: int = Field(..., ge=0)
