"""
Chore Repository

Display order: due date ascending, chores without a due date first
(they count as due now), then oldest first.

A chore with no due date never expires: it is always "upcoming"
until completed.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from cryb.models.records import Chore, ChoreUpdate
from cryb.repositories.base import HouseRepository
from cryb.services.storage.interface import CHORES_TABLE


def _aware(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with stored ones."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class ChoreRepository(HouseRepository[Chore]):
    table = CHORES_TABLE
    model = Chore
    entity_name = "chore"

    def _sort(self, items: list[Chore]) -> list[Chore]:
        return sorted(
            items,
            key=lambda c: (
                c.due_date is not None,
                _aware(c.due_date) if c.due_date else datetime.min.replace(tzinfo=timezone.utc),
                _aware(c.created_at),
            ),
        )

    async def set_completed(self, chore_id: UUID, completed: bool) -> Optional[Chore]:
        return await self.update(chore_id, ChoreUpdate(is_completed=completed))

    async def toggle_completed(self, chore: Chore) -> Optional[Chore]:
        return await self.set_completed(chore.id, not chore.is_completed)

    async def assign(self, chore_id: UUID, user_id: Optional[UUID]) -> Optional[Chore]:
        """Assign to a housemate; None unassigns."""
        return await self.update(chore_id, ChoreUpdate(assigned_user_id=user_id))

    def upcoming(self, now: Optional[datetime] = None) -> list[Chore]:
        """Open chores that are undated or not yet past due."""
        now = _aware(now or datetime.now(timezone.utc))
        return [
            c for c in self.items
            if not c.is_completed and (c.due_date is None or _aware(c.due_date) >= now)
        ]

    def overdue(self, now: Optional[datetime] = None) -> list[Chore]:
        now = _aware(now or datetime.now(timezone.utc))
        return [
            c for c in self.items
            if not c.is_completed and c.due_date is not None and _aware(c.due_date) < now
        ]

    @property
    def pending(self) -> list[Chore]:
        return [c for c in self.items if not c.is_completed]

    @property
    def completed(self) -> list[Chore]:
        return [c for c in self.items if c.is_completed]

    def assigned_to(self, user_id: UUID) -> list[Chore]:
        return [c for c in self.items if c.assigned_user_id == user_id]
