"""
House-scoped Records: Chores, Expenses, Notes

Every record belongs to exactly one house (`house_id`). Records are
hard-deleted; there is no soft-delete flag.

Each record type has three models:
- the stored row (what the backend returns)
- a *Create payload (what we insert; server fills id/created_at)
- an *Update payload (all optional; only set fields are sent)
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENT = Decimal("0.01")

EXPENSE_CATEGORIES = [
    "General",
    "Food",
    "Transport",
    "Utilities",
    "Entertainment",
    "Shopping",
    "Other",
]


def _unique(values: Optional[list]) -> list:
    """Drop duplicates, keep first-seen order. None becomes []."""
    if not values:
        return []
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


# =============================================================================
# CHORES
# =============================================================================

class RecurrenceType(str, Enum):
    """How often a chore repeats."""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def display_name(self) -> str:
        if self is RecurrenceType.NONE:
            return "No Recurrence"
        return self.value.capitalize()


class Chore(BaseModel):
    """A household task, optionally assigned and due."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    is_completed: bool = False
    assigned_user_id: Optional[UUID] = None
    house_id: UUID
    created_by: UUID
    created_at: datetime
    recurrence: RecurrenceType = RecurrenceType.NONE
    points: Optional[int] = Field(default=None, ge=0)

    @field_validator('recurrence', mode='before')
    @classmethod
    def default_recurrence(cls, v):
        # Older rows store NULL
        return RecurrenceType.NONE if v is None else v


class ChoreCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    is_completed: bool = False
    assigned_user_id: Optional[UUID] = None
    recurrence: RecurrenceType = RecurrenceType.NONE
    points: Optional[int] = Field(default=None, ge=0)


class ChoreUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    is_completed: Optional[bool] = None
    assigned_user_id: Optional[UUID] = None
    recurrence: Optional[RecurrenceType] = None
    points: Optional[int] = Field(default=None, ge=0)


# =============================================================================
# EXPENSES
# =============================================================================

class Expense(BaseModel):
    """
    A shared expense.

    The payer is always an implicit sharer: `amount` is split evenly
    among `len(shared_with) + 1` participants.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    description: Optional[str] = None
    paid_by: UUID
    house_id: UUID
    created_at: datetime
    category: Optional[str] = None
    shared_with: list[UUID] = Field(default_factory=list)

    @field_validator('shared_with', mode='before')
    @classmethod
    def dedupe_shared_with(cls, v):
        return _unique(v)

    @property
    def share_count(self) -> int:
        return len(self.shared_with) + 1

    @property
    def share_amount(self) -> Decimal:
        """One participant's share, unrounded."""
        return self.amount / self.share_count


class ExpenseCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    description: Optional[str] = None
    category: Optional[str] = None
    shared_with: list[UUID] = Field(default_factory=list)

    @field_validator('shared_with', mode='before')
    @classmethod
    def dedupe_shared_with(cls, v):
        return _unique(v)


class ExpenseUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    description: Optional[str] = None
    category: Optional[str] = None
    shared_with: Optional[list[UUID]] = None

    @field_validator('shared_with', mode='before')
    @classmethod
    def dedupe_shared_with(cls, v):
        return None if v is None else _unique(v)


# =============================================================================
# NOTES
# =============================================================================

class Note(BaseModel):
    """A shared note on the house board."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    content: str = ""
    house_id: UUID
    created_by: UUID
    created_at: datetime
    is_pinned: bool = False
    tags: list[str] = Field(default_factory=list)

    @field_validator('tags', mode='before')
    @classmethod
    def dedupe_tags(cls, v):
        return _unique(v)


class NoteCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    content: str = ""
    is_pinned: bool = False
    tags: list[str] = Field(default_factory=list)

    @field_validator('tags', mode='before')
    @classmethod
    def dedupe_tags(cls, v):
        return _unique(v)


class NoteUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = None
    is_pinned: Optional[bool] = None
    tags: Optional[list[str]] = None

    @field_validator('tags', mode='before')
    @classmethod
    def dedupe_tags(cls, v):
        return None if v is None else _unique(v)


# =============================================================================
# BALANCE
# =============================================================================

class BalanceSummary(BaseModel):
    """
    One viewer's net position across a house's shared expenses.

    Derived, never persisted. Values are exact (unrounded) until
    rounded() is called for display.
    """

    you_owe: Decimal = Decimal("0")
    you_are_owed: Decimal = Decimal("0")
    net_balance: Decimal = Decimal("0")

    @model_validator(mode='after')
    def check_net_balance(self) -> 'BalanceSummary':
        if self.net_balance != self.you_are_owed - self.you_owe:
            raise ValueError("net_balance must equal you_are_owed - you_owe")
        return self

    @classmethod
    def from_totals(cls, you_owe: Decimal, you_are_owed: Decimal) -> 'BalanceSummary':
        return cls(
            you_owe=you_owe,
            you_are_owed=you_are_owed,
            net_balance=you_are_owed - you_owe,
        )

    def rounded(self) -> 'BalanceSummary':
        """Cent-precision copy for display. Net is derived from the rounded parts."""
        return BalanceSummary.from_totals(
            you_owe=self.you_owe.quantize(CENT, rounding=ROUND_HALF_UP),
            you_are_owed=self.you_are_owed.quantize(CENT, rounding=ROUND_HALF_UP),
        )
