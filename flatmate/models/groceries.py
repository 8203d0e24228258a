"""
Grocery Data Models

A GroceryItem records one shared purchase. Items bought close together
under a similar name are flagged as possible duplicates; flagged items
can be merged into one.
"""

from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from flatmate.models.common import UtcDatetime, utcnow

# Zero is allowed: free items still show up on the list
Cost = Annotated[Decimal, Field(ge=0, decimal_places=2)]


class GroceryItem(BaseModel):
    """A purchased grocery item."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    quantity: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = Field(
        default=None,
        max_length=20,
        description="Free-form unit (kg, L, pcs)"
    )
    cost: Cost
    category: str = Field(default="Other", max_length=30)
    added_by: UUID = Field(..., description="Member who bought it")
    purchased_at: UtcDatetime = Field(default_factory=utcnow)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    is_duplicate: bool = False


class AddGroceryInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    quantity: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = Field(default=None, max_length=20)
    cost: Cost
    category: str = Field(default="Other", max_length=30)
    added_by: UUID
    purchased_at: UtcDatetime = Field(default_factory=utcnow)


class UpdateGroceryInput(BaseModel):
    """Partial update; the buyer cannot be changed."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    quantity: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = Field(default=None, max_length=20)
    cost: Optional[Cost] = None
    category: Optional[str] = Field(default=None, max_length=30)
    purchased_at: Optional[UtcDatetime] = None
    is_duplicate: Optional[bool] = None


class MergeGroceriesInput(BaseModel):
    """Fold duplicate items into a primary item."""

    primary_id: UUID
    duplicate_ids: list[UUID] = Field(..., min_length=1)
    combine_costs: bool = Field(
        default=False,
        description="Add the duplicates' costs to the primary item"
    )

    @model_validator(mode='after')
    def validate_ids(self) -> 'MergeGroceriesInput':
        if self.primary_id in self.duplicate_ids:
            raise ValueError("Primary item cannot also be a duplicate")
        return self


class ContributionFilters(BaseModel):
    """Inclusive date range, optionally narrowed to one buyer or category."""

    start_date: UtcDatetime
    end_date: UtcDatetime
    member_id: Optional[UUID] = None
    category: Optional[str] = None

    @model_validator(mode='after')
    def validate_range(self) -> 'ContributionFilters':
        if self.end_date < self.start_date:
            raise ValueError("End date must not be before start date")
        return self


class ContributionTotal(BaseModel):
    """Spending rolled up under one member or category."""

    count: int = 0
    total: Decimal = Decimal("0.00")
    items: list[GroceryItem] = Field(default_factory=list)
