"""Shared-expense balance package."""

from cryb.balance.engine import compute_balance, expense_share

__all__ = ["compute_balance", "expense_share"]
