"""
Table-backed Auth Gateway

Identity service for backends that don't ship one (in-memory,
Google Sheets). Accounts live in an `auth_accounts` table of the
same TableBackend; passwords are stored as werkzeug hashes.

Sessions are opaque random tokens held by this gateway instance,
so they don't survive a restart.
"""

import secrets
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog
from werkzeug.security import check_password_hash, generate_password_hash

from cryb.services.storage.interface import (
    AuthenticationError,
    AuthGateway,
    ConflictError,
    Session,
    TableBackend,
    ValidationError,
)


ACCOUNTS_TABLE = "auth_accounts"

MIN_PASSWORD_LENGTH = 6


class TableAuthGateway(AuthGateway):
    """AuthGateway that stores credentials in a TableBackend."""

    def __init__(self, tables: TableBackend):
        self._tables = tables
        self._sessions: dict[str, Session] = {}
        self._current: Optional[Session] = None
        self._logger = structlog.get_logger(__name__)

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    def _open_session(self, account: dict[str, Any]) -> Session:
        session = Session(
            access_token=secrets.token_urlsafe(32),
            refresh_token=secrets.token_urlsafe(32),
            user_id=UUID(str(account["id"])),
            email=account["email"],
            user_metadata=account.get("user_metadata") or {},
        )
        self._sessions[session.access_token] = session
        self._current = session
        return session

    async def _find_account(self, email: str) -> Optional[dict[str, Any]]:
        rows = await self._tables.select(
            ACCOUNTS_TABLE,
            filters={"email": self._normalize_email(email)},
            limit=1,
        )
        return rows[0] if rows else None

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Session:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters",
                code="weak_password",
            )

        if await self._find_account(email) is not None:
            raise ConflictError("User already registered", code="user_already_exists")

        try:
            account = await self._tables.insert(
                ACCOUNTS_TABLE,
                {
                    "id": str(uuid4()),
                    "email": self._normalize_email(email),
                    "password_hash": generate_password_hash(password),
                    "user_metadata": dict(metadata or {}),
                },
            )
        except ConflictError as e:
            # Registered between the lookup and the insert
            raise ConflictError("User already registered", code="user_already_exists") from e
        self._logger.info("account_created", user_id=str(account["id"]))
        return self._open_session(account)

    async def sign_in(self, email: str, password: str) -> Session:
        account = await self._find_account(email)
        if account is None or not check_password_hash(account["password_hash"], password):
            raise AuthenticationError("Invalid login credentials", code="invalid_credentials")
        return self._open_session(account)

    async def sign_out(self, session: Session) -> None:
        self._sessions.pop(session.access_token, None)
        if self._current is not None and self._current.access_token == session.access_token:
            self._current = None

    async def current_session(self) -> Optional[Session]:
        return self._current

    async def update_password(self, session: Session, new_password: str) -> None:
        if session.access_token not in self._sessions:
            raise AuthenticationError("Session expired", code="session_not_found")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters",
                code="weak_password",
            )
        await self._tables.update(
            ACCOUNTS_TABLE,
            {"password_hash": generate_password_hash(new_password)},
            filters={"id": str(session.user_id)},
        )
        self._logger.info("password_updated", user_id=str(session.user_id))
