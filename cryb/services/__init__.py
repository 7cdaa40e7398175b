"""Services package."""

from cryb.services.storage import (
    AuthenticationError,
    AuthGateway,
    BackendError,
    ConflictError,
    InMemoryTableBackend,
    NetworkError,
    NotFoundError,
    Session,
    TableAuthGateway,
    TableBackend,
    ValidationError,
)

__all__ = [
    "AuthenticationError",
    "AuthGateway",
    "BackendError",
    "ConflictError",
    "InMemoryTableBackend",
    "NetworkError",
    "NotFoundError",
    "Session",
    "TableAuthGateway",
    "TableBackend",
    "ValidationError",
]
