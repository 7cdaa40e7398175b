"""
Storage Services Package

Provides the abstract backend interface and its implementations:
in-memory, Google Sheets, and a hosted Postgres-with-REST service.
"""

from cryb.services.storage.interface import (
    CHORES_TABLE,
    EXPENSES_TABLE,
    HOUSES_TABLE,
    NOTES_TABLE,
    USERS_TABLE,
    AuthenticationError,
    AuthGateway,
    BackendError,
    ConflictError,
    NetworkError,
    NotFoundError,
    Order,
    Session,
    TableBackend,
    ValidationError,
)
from cryb.services.storage.local_auth import TableAuthGateway
from cryb.services.storage.memory import InMemoryTableBackend

__all__ = [
    # Tables
    "CHORES_TABLE",
    "EXPENSES_TABLE",
    "HOUSES_TABLE",
    "NOTES_TABLE",
    "USERS_TABLE",
    # Interfaces
    "AuthGateway",
    "Order",
    "Session",
    "TableBackend",
    # Exceptions
    "AuthenticationError",
    "BackendError",
    "ConflictError",
    "NetworkError",
    "NotFoundError",
    "ValidationError",
    # Implementations without third-party clients
    "InMemoryTableBackend",
    "TableAuthGateway",
]
