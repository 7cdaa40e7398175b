"""
Python-side filtering and ordering.

Backends without a query engine (in-memory, Google Sheets) fetch
whole tables and narrow them here.
"""

from enum import Enum
from typing import Any, Optional, Sequence
from uuid import UUID

from cryb.services.storage.interface import Filters, Order, Row


def normalize(value: Any) -> Any:
    """Bring filter values and stored values to a comparable form."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def matches(row: Row, filters: Optional[Filters]) -> bool:
    if not filters:
        return True
    for column, expected in filters.items():
        if normalize(row.get(column)) != normalize(expected):
            return False
    return True


def sort_rows(rows: list[Row], order: Sequence[Order]) -> list[Row]:
    """
    Stable multi-key sort with Postgres NULL placement.

    Sorts by the last term first so earlier terms take precedence.
    """
    result = list(rows)
    for term in reversed(order):
        nulls_first = term.nulls_first
        if nulls_first is None:
            nulls_first = not term.ascending

        present = [r for r in result if r.get(term.column) is not None]
        missing = [r for r in result if r.get(term.column) is None]
        present.sort(
            key=lambda r: normalize(r[term.column]),
            reverse=not term.ascending,
        )
        result = missing + present if nulls_first else present + missing
    return result


def apply_query(
    rows: list[Row],
    filters: Optional[Filters] = None,
    order: Sequence[Order] = (),
    limit: Optional[int] = None,
) -> list[Row]:
    selected = [r for r in rows if matches(r, filters)]
    selected = sort_rows(selected, order)
    if limit is not None:
        selected = selected[:limit]
    return selected
