"""
House-scoped Repository Base

CRUD over one backend table whose rows belong to a house.

CACHE CONTRACT:
- `items` mirrors the backend for the last listed house
- every mutation is followed by a full re-list, so server-side defaults
  and triggers are always reflected and the cache can't drift
- a write the backend confirmed is reported as done even if that
  re-list fails; the cache is then flagged `is_stale`
- list() returns a fresh list; callers may keep or discard it

Ordering is applied here, in Python, so every backend gives the same
order regardless of how it handles NULLs.
"""

from typing import Any, Generic, Optional, TypeVar
from uuid import UUID

import structlog
from pydantic import BaseModel

from cryb.services.status import EXPECTED_ERRORS, ServiceStatus
from cryb.services.storage.interface import (
    NotFoundError,
    Row,
    Session,
    TableBackend,
)


ModelT = TypeVar("ModelT", bound=BaseModel)

STALE_MESSAGE = "Saved, but the list couldn't be refreshed. Reload to see the latest."


class HouseRepository(ServiceStatus, Generic[ModelT]):
    """
    Base class for chores, expenses and notes.

    Subclasses set `table`, `model` and `entity_name`, and override
    `_sort` and `_owner_fields` as needed.
    """

    table: str = ""
    model: type[ModelT]
    entity_name: str = "item"

    def __init__(self, tables: TableBackend, session: Session):
        self._init_status()
        self._tables = tables
        self._session = session
        self._logger = structlog.get_logger(self.__class__.__module__).bind(
            table=self.table,
            user_id=str(session.user_id),
        )

        self.house_id: Optional[UUID] = None
        self.items: list[ModelT] = []
        self.is_stale = False

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _sort(self, items: list[ModelT]) -> list[ModelT]:
        return items

    def _owner_fields(self) -> dict[str, Any]:
        """Columns stamped on every new row besides house_id."""
        return {"created_by": str(self._session.user_id)}

    def _after_refresh(self) -> None:
        """Called whenever `items` has been replaced."""
        return None

    # ------------------------------------------------------------------
    # Internals (no busy flag)
    # ------------------------------------------------------------------

    def _parse(self, rows: list[Row]) -> list[ModelT]:
        return [self.model.model_validate(row) for row in rows]

    async def _fetch(self, house_id: UUID) -> list[ModelT]:
        rows = await self._tables.select(self.table, filters={"house_id": str(house_id)})
        return self._sort(self._parse(rows))

    async def _refresh(self, house_id: UUID) -> list[ModelT]:
        items = await self._fetch(house_id)
        self.house_id = house_id
        self.items = items
        self.is_stale = False
        self._after_refresh()
        return list(items)

    async def _relist(self, house_id: UUID) -> None:
        """
        Re-list after a write the backend has confirmed.

        A failure here does not undo the write: the cache is flagged
        stale and the error reported, but the mutation still succeeds.
        """
        try:
            await self._refresh(house_id)
        except EXPECTED_ERRORS as e:
            self.is_stale = True
            self.error_message = STALE_MESSAGE
            self._logger.warning(
                f"{self.table}_relist_failed",
                error=str(e),
                error_type=type(e).__name__,
            )

    async def _house_of(self, item_id: UUID) -> UUID:
        """House of an item: from the cache, else from the backend."""
        for item in self.items:
            if item.id == item_id:
                return item.house_id
        rows = await self._tables.select(self.table, filters={"id": str(item_id)}, limit=1)
        if not rows:
            raise NotFoundError(f"{self.entity_name} {item_id} not found")
        return UUID(str(rows[0]["house_id"]))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list(self, house_id: UUID) -> list[ModelT]:
        """
        Fetch every record of the house, in display order.

        On failure the cache is left as it was and [] is returned.
        """
        try:
            async with self._busy():
                return await self._refresh(house_id)
        except EXPECTED_ERRORS as e:
            self._fail(f"{self.table}_list_failed", e)
        return []

    async def create(self, house_id: UUID, fields: BaseModel) -> Optional[ModelT]:
        """
        Insert a record into the house, then re-list.

        Returns:
            The stored record (with server defaults), or None
        """
        try:
            async with self._busy():
                row = {
                    **fields.model_dump(mode="json"),
                    **self._owner_fields(),
                    "house_id": str(house_id),
                }
                stored = self.model.model_validate(await self._tables.insert(self.table, row))
                self._logger.info(f"{self.entity_name}_created", id=str(stored.id))
                await self._relist(house_id)
                return stored
        except EXPECTED_ERRORS as e:
            self._fail(f"{self.entity_name}_create_failed", e)
        return None

    async def update(self, item_id: UUID, fields: BaseModel) -> Optional[ModelT]:
        """
        Apply the fields that were explicitly set, then re-list.

        Returns:
            The updated record, or None
        """
        try:
            async with self._busy():
                changes = fields.model_dump(mode="json", exclude_unset=True)
                house_id = await self._house_of(item_id)
                rows = await self._tables.update(self.table, changes, filters={"id": str(item_id)})
                if not rows:
                    raise NotFoundError(f"{self.entity_name} {item_id} not found")
                updated = self.model.model_validate(rows[0])
                self._logger.info(f"{self.entity_name}_updated", id=str(item_id), fields=sorted(changes))
                await self._relist(house_id)
                return updated
        except EXPECTED_ERRORS as e:
            self._fail(f"{self.entity_name}_update_failed", e)
        return None

    async def delete(self, item_id: UUID) -> bool:
        """Hard-delete a record, then re-list."""
        try:
            async with self._busy():
                house_id = await self._house_of(item_id)
                removed = await self._tables.delete(self.table, filters={"id": str(item_id)})
                if not removed:
                    raise NotFoundError(f"{self.entity_name} {item_id} not found")
                self._logger.info(f"{self.entity_name}_deleted", id=str(item_id))
                await self._relist(house_id)
                return True
        except EXPECTED_ERRORS as e:
            self._fail(f"{self.entity_name}_delete_failed", e)
        return False

    def get(self, item_id: UUID) -> Optional[ModelT]:
        """Look up a cached record."""
        return next((item for item in self.items if item.id == item_id), None)

    def clear(self) -> None:
        """Forget the cached house (on sign-out or leaving)."""
        self.house_id = None
        self.items = []
        self.is_stale = False
        self._after_refresh()
