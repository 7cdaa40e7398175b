"""
Expense Repository

Newest first. The signed-in user is recorded as the payer of every
expense they create.

`balance` is recomputed from the complete, freshly listed expense set
each time the cache is refreshed.
"""

from typing import Any, Optional

from cryb.balance.engine import compute_balance
from cryb.models.records import EXPENSE_CATEGORIES, BalanceSummary, Expense
from cryb.repositories.base import HouseRepository
from cryb.services.storage.interface import EXPENSES_TABLE, Session, TableBackend


class ExpenseRepository(HouseRepository[Expense]):
    table = EXPENSES_TABLE
    model = Expense
    entity_name = "expense"

    def __init__(self, tables: TableBackend, session: Session, recent_limit: int = 5):
        super().__init__(tables, session)
        self._recent_limit = recent_limit
        self.balance: Optional[BalanceSummary] = None

    def _sort(self, items: list[Expense]) -> list[Expense]:
        return sorted(items, key=lambda e: e.created_at, reverse=True)

    def _owner_fields(self) -> dict[str, Any]:
        return {"paid_by": str(self._session.user_id)}

    def _after_refresh(self) -> None:
        if self.house_id is None:
            self.balance = None
            return
        self.balance = compute_balance(self.items, self._session.user_id)

    @property
    def recent(self) -> list[Expense]:
        return self.items[:self._recent_limit]

    @staticmethod
    def categories() -> list[str]:
        return list(EXPENSE_CATEGORIES)
