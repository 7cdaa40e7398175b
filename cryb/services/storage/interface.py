"""
Abstract Backend Interface

We define a narrow interface to the remote backend so that the
business logic never sees a vendor SDK. This allows us to:
1. Run against a hosted Postgres-with-REST service
2. Run against a Google spreadsheet
3. Use in-memory storage for tests and local development

The interface is small; it is not an ORM.
Tables are addressed by name, rows are plain dicts of JSON-compatible
values, and filters are equality-only.
"""

from abc import ABC, abstractmethod
from typing import Any, NamedTuple, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel, Field


# Table names shared by every backend
USERS_TABLE = "users"
HOUSES_TABLE = "houses"
CHORES_TABLE = "chores"
EXPENSES_TABLE = "expenses"
NOTES_TABLE = "notes"

Row = dict[str, Any]
Filters = dict[str, Any]


class Order(NamedTuple):
    """
    One ORDER BY term.

    nulls_first=None follows Postgres: NULLs last when ascending,
    first when descending.
    """
    column: str
    ascending: bool = True
    nulls_first: Optional[bool] = None


class Session(BaseModel):
    """
    An authenticated session issued by the gateway.

    The access token is opaque to the app; only the gateway and the
    table backend interpret it.
    """

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    user_id: UUID
    email: Optional[str] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)


class TableBackend(ABC):
    """
    Abstract interface for table-scoped CRUD.

    Any backend (REST, Google Sheets, in-memory) must implement these.
    A value of None in `filters` matches NULL.
    """

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> list[Row]:
        """
        Fetch rows matching every filter.

        Returns:
            Matching rows, ordered and limited as requested

        Raises:
            NetworkError: If the backend can't be reached
        """
        pass

    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        """
        Insert one row.

        Returns:
            The stored row, including server-side defaults (id, created_at)

        Raises:
            ConflictError: If a unique constraint is violated
            ValidationError: If the backend rejects the values
        """
        pass

    @abstractmethod
    async def update(self, table: str, values: Row, filters: Filters) -> list[Row]:
        """
        Update every row matching `filters`.

        Returns:
            The updated rows (empty if nothing matched)
        """
        pass

    @abstractmethod
    async def delete(self, table: str, filters: Filters) -> int:
        """
        Hard-delete every row matching `filters`.

        Returns:
            Number of rows removed
        """
        pass

    def authorize(self, session: Optional[Session]) -> None:
        """
        Act on behalf of `session` (None = anonymous).

        Backends that enforce row-level access use the session's token;
        the default is a no-op.
        """
        return None


class AuthGateway(ABC):
    """
    Abstract interface for the identity service.

    Issues sessions; the app never stores passwords itself.
    """

    @abstractmethod
    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Session:
        """
        Register a new identity and open a session for it.

        Raises:
            ConflictError: code "user_already_exists" if the email is taken
        """
        pass

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Session:
        """
        Open a session with existing credentials.

        Raises:
            AuthenticationError: If the credentials are wrong
        """
        pass

    @abstractmethod
    async def sign_out(self, session: Session) -> None:
        """Invalidate the session."""
        pass

    @abstractmethod
    async def current_session(self) -> Optional[Session]:
        """Return the live session, or None if signed out / expired."""
        pass

    @abstractmethod
    async def update_password(self, session: Session, new_password: str) -> None:
        """
        Change the password of the session's identity.

        Raises:
            AuthenticationError: If the session is no longer valid
        """
        pass


class BackendError(Exception):
    """Base exception for backend operations."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(message)


class NetworkError(BackendError):
    """Transport failure or backend unreachable."""
    pass


class NotFoundError(BackendError):
    """No matching row."""
    pass


class ConflictError(BackendError):
    """A uniqueness constraint was violated (typed by `code`)."""
    pass


class ValidationError(BackendError):
    """The backend rejected the submitted values."""
    pass


class AuthenticationError(BackendError):
    """Bad credentials, or the session is missing or expired."""
    pass
