"""
Fitness Data Models

Members log gym sessions; the household tracks collective goals over
a period. Only one active goal may cover any given day of a period type.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from flatmate.models.common import UtcDatetime, utcnow


MAX_SESSION_MINUTES = 600


class SessionType(str, Enum):
    CARDIO = "cardio"
    STRENGTH = "strength"
    OTHER = "other"


class GoalMetric(str, Enum):
    """What a goal counts."""
    SESSION_COUNT = "sessionCount"
    TOTAL_DURATION = "totalDuration"  # minutes


class GoalPeriod(str, Enum):
    WEEK = "week"
    MONTH = "month"
    CUSTOM = "custom"


class GymSession(BaseModel):
    """A workout logged by one member."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    member_id: UUID
    date: UtcDatetime = Field(..., description="When the session happened (may be backdated)")
    type: SessionType
    duration: int = Field(..., ge=1, le=MAX_SESSION_MINUTES, description="Minutes")
    notes: Optional[str] = Field(default=None, max_length=500)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)


class LogSessionInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    member_id: UUID
    date: UtcDatetime
    type: SessionType
    duration: int = Field(..., ge=1, le=MAX_SESSION_MINUTES)
    notes: Optional[str] = Field(default=None, max_length=500)


class UpdateSessionInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    date: Optional[UtcDatetime] = None
    type: Optional[SessionType] = None
    duration: Optional[int] = Field(default=None, ge=1, le=MAX_SESSION_MINUTES)
    notes: Optional[str] = Field(default=None, max_length=500)


def _check_dates(start_date, end_date) -> None:
    if end_date <= start_date:
        raise ValueError("End date must be after start date")


class FitnessGoal(BaseModel):
    """A collective target over [start_date, end_date]."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(..., min_length=1, max_length=200)
    target_metric: GoalMetric
    target_value: float = Field(..., gt=0)
    period: GoalPeriod
    start_date: UtcDatetime
    end_date: UtcDatetime
    created_at: UtcDatetime = Field(default_factory=utcnow)
    is_active: bool = True

    @model_validator(mode='after')
    def validate_dates(self) -> 'FitnessGoal':
        _check_dates(self.start_date, self.end_date)
        return self

    def overlaps(self, other: 'FitnessGoal') -> bool:
        """Same period type with intersecting date ranges."""
        return (
            self.period == other.period
            and self.start_date <= other.end_date
            and other.start_date <= self.end_date
        )


class CreateGoalInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(..., min_length=1, max_length=200)
    target_metric: GoalMetric
    target_value: float = Field(..., gt=0)
    period: GoalPeriod
    start_date: UtcDatetime
    end_date: UtcDatetime
    is_active: bool = True

    @model_validator(mode='after')
    def validate_dates(self) -> 'CreateGoalInput':
        _check_dates(self.start_date, self.end_date)
        return self


class UpdateGoalInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    target_metric: Optional[GoalMetric] = None
    target_value: Optional[float] = Field(default=None, gt=0)
    period: Optional[GoalPeriod] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    is_active: Optional[bool] = None


class GoalProgress(BaseModel):
    """Progress of a goal from the sessions inside its date range."""

    goal: FitnessGoal
    progress: float = Field(..., description="Sessions or minutes so far")
    percent_complete: int
    is_complete: bool
    sessions_count: int
    total_duration: int
