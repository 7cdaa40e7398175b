"""
Data Models Package

This package contains all Pydantic models used by Cryb.
Backend rows are validated into these models on the way in.
"""

from cryb.models.house import (
    DEFAULT_DISPLAY_NAME,
    House,
    HouseCreate,
    MembershipState,
    ProfileCreate,
    User,
)
from cryb.models.records import (
    EXPENSE_CATEGORIES,
    BalanceSummary,
    Chore,
    ChoreCreate,
    ChoreUpdate,
    Expense,
    ExpenseCreate,
    ExpenseUpdate,
    Note,
    NoteCreate,
    NoteUpdate,
    RecurrenceType,
)

__all__ = [
    # House models
    "DEFAULT_DISPLAY_NAME",
    "House",
    "HouseCreate",
    "MembershipState",
    "ProfileCreate",
    "User",
    # Record models
    "EXPENSE_CATEGORIES",
    "BalanceSummary",
    "Chore",
    "ChoreCreate",
    "ChoreUpdate",
    "Expense",
    "ExpenseCreate",
    "ExpenseUpdate",
    "Note",
    "NoteCreate",
    "NoteUpdate",
    "RecurrenceType",
]
