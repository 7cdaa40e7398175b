"""
Balance Engine

Derives one viewer's owed/owing position from a house's expenses.

GUARANTEES:
- Pure function of its inputs: no storage access, no cached state
- Order-independent: same expenses in any order give the same result
- Exact: Decimal arithmetic, no per-expense rounding
  (round once, for display, with BalanceSummary.rounded())

The balance is recomputed from the full expense set every time.
It is NOT a running total, so edits and deletions can't leave it stale.
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from cryb.models.records import BalanceSummary, Expense


ZERO = Decimal("0")


def expense_share(expense: Expense, viewer: UUID) -> tuple[Decimal, Decimal]:
    """
    What one expense means for the viewer.

    Returns:
        (owe, owed) - the viewer owes `owe` to the payer, or is owed
        `owed` by the other participants. At most one is non-zero.
    """
    share = expense.share_amount

    if expense.paid_by == viewer:
        # Fronted everyone else's shares
        return ZERO, expense.amount - share
    if viewer in expense.shared_with:
        return share, ZERO
    return ZERO, ZERO


def compute_balance(expenses: Iterable[Expense], viewer: UUID) -> BalanceSummary:
    """
    Compute the viewer's BalanceSummary over `expenses`.

    Expenses the viewer neither paid nor shares contribute nothing.
    """
    you_owe = ZERO
    you_are_owed = ZERO

    for expense in expenses:
        owe, owed = expense_share(expense, viewer)
        you_owe += owe
        you_are_owed += owed

    return BalanceSummary.from_totals(you_owe=you_owe, you_are_owed=you_are_owed)
