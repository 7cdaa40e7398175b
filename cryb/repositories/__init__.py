"""House-scoped record repositories."""

from cryb.repositories.base import HouseRepository
from cryb.repositories.chores import ChoreRepository
from cryb.repositories.expenses import ExpenseRepository
from cryb.repositories.notes import NoteRepository

__all__ = [
    "ChoreRepository",
    "ExpenseRepository",
    "HouseRepository",
    "NoteRepository",
]
