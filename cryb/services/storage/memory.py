"""
In-Memory Backend

Behaves like the hosted backend closely enough for tests and local
development:
- fills server-side defaults (id, created_at) on insert
- enforces unique columns with ConflictError("unique_violation")
- hands out copies so callers can't mutate stored rows

Can also simulate an outage (`fail_next`) so failure paths are testable.
"""

import copy
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence
from uuid import uuid4

from cryb.services.storage.interface import (
    HOUSES_TABLE,
    USERS_TABLE,
    BackendError,
    ConflictError,
    Filters,
    NetworkError,
    Order,
    Row,
    TableBackend,
)
from cryb.services.storage.local_auth import ACCOUNTS_TABLE
from cryb.services.storage.query import apply_query, matches, normalize


DEFAULT_UNIQUE_COLUMNS = {
    HOUSES_TABLE: ("code",),
    USERS_TABLE: ("id",),
    ACCOUNTS_TABLE: ("email",),
}


class InMemoryTableBackend(TableBackend):
    """
    Dict-of-lists table store.

    Rows are stored with JSON-compatible values, the same shape the
    REST backend returns.
    """

    def __init__(self, unique_columns: Optional[dict[str, Sequence[str]]] = None):
        self._tables: dict[str, list[Row]] = {}
        self._unique = dict(DEFAULT_UNIQUE_COLUMNS if unique_columns is None else unique_columns)
        self._last_created_at: Optional[datetime] = None
        self._pending_failures: list[BackendError] = []
        self.calls: list[tuple[str, str]] = []

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def fail_next(self, error: Optional[BackendError] = None, times: int = 1) -> None:
        """Make the next `times` calls raise `error` (default NetworkError)."""
        for _ in range(times):
            self._pending_failures.append(error or NetworkError("Backend unreachable"))

    def rows(self, table: str) -> list[Row]:
        """Raw copy of a table, for assertions."""
        return copy.deepcopy(self._tables.get(table, []))

    def _check_failure(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        if self._pending_failures:
            raise self._pending_failures.pop(0)

    def _next_created_at(self) -> str:
        # Strictly increasing so insertion order survives sorting
        now = datetime.now(timezone.utc)
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        return now.isoformat()

    def _check_unique(self, table: str, row: Row, ignore: Optional[Row] = None) -> None:
        for column in self._unique.get(table, ()):
            value = row.get(column)
            if value is None:
                continue
            for existing in self._tables.get(table, []):
                if existing is ignore:
                    continue
                if normalize(existing.get(column)) == normalize(value):
                    raise ConflictError(
                        f"duplicate key value violates unique constraint on {table}.{column}",
                        code="unique_violation",
                    )

    # ------------------------------------------------------------------
    # TableBackend
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> list[Row]:
        self._check_failure("select", table)
        rows = apply_query(self._tables.get(table, []), filters, order, limit)
        return copy.deepcopy(rows)

    async def insert(self, table: str, row: Row) -> Row:
        self._check_failure("insert", table)
        stored = {k: normalize(v) for k, v in row.items()}
        stored.setdefault("id", str(uuid4()))
        stored.setdefault("created_at", self._next_created_at())
        self._check_unique(table, stored)
        self._tables.setdefault(table, []).append(stored)
        return copy.deepcopy(stored)

    async def update(self, table: str, values: Row, filters: Filters) -> list[Row]:
        self._check_failure("update", table)
        changes = {k: normalize(v) for k, v in values.items()}
        updated = []
        for existing in self._tables.get(table, []):
            if not matches(existing, filters):
                continue
            self._check_unique(table, {**existing, **changes}, ignore=existing)
            existing.update(changes)
            updated.append(copy.deepcopy(existing))
        return updated

    async def delete(self, table: str, filters: Filters) -> int:
        self._check_failure("delete", table)
        rows = self._tables.get(table, [])
        kept = [r for r in rows if not matches(r, filters)]
        self._tables[table] = kept
        return len(rows) - len(kept)
