"""
Cryb - Household Core Package

The headless core of a shared-household app: houses, chores,
shared expenses and notes, bound to a remote backend.

DESIGN PRINCIPLES:
1. The backend is the source of truth - re-fetch after every mutation
2. Balances are derived, never stored
3. A user belongs to at most one house
4. Errors stop at the service boundary as user-facing messages
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Cryb Team"
