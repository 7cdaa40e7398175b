"""
Authentication Service

Signs users in and out through the AuthGateway and resolves their
profile. Holds the current session explicitly; nothing else in the
app reads session state from a global.

Duplicate sign-up is recognised by the gateway's typed error code
("user_already_exists"), never by inspecting message text. In that case
we try signing in with the same credentials.
"""

from typing import Optional

import structlog

from cryb.models.house import User
from cryb.profiles.resolver import ProfileError, ProfileResolver
from cryb.services.status import EXPECTED_ERRORS, ServiceStatus
from cryb.services.storage.interface import (
    AuthenticationError,
    AuthGateway,
    BackendError,
    ConflictError,
    Session,
    TableBackend,
)


USER_ALREADY_EXISTS = "user_already_exists"


class AuthService(ServiceStatus):
    """Session lifecycle + the signed-in user's profile."""

    def __init__(
        self,
        gateway: AuthGateway,
        tables: TableBackend,
        profiles: Optional[ProfileResolver] = None,
    ):
        self._init_status()
        self._gateway = gateway
        self._tables = tables
        self._profiles = profiles or ProfileResolver(tables)
        self._logger = structlog.get_logger(__name__)

        self.session: Optional[Session] = None
        self.current_user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None and self.current_user is not None

    async def _establish(self, session: Session, display_name: Optional[str] = None) -> User:
        """Authorize the table backend for `session` and resolve its profile."""
        self._tables.authorize(session)
        try:
            user = await self._profiles.resolve(session, display_name)
        except (BackendError, ProfileError):
            self._tables.authorize(None)
            raise
        self.session = session
        self.current_user = user
        self._logger.info("signed_in", user_id=str(user.id))
        return user

    async def sign_up(self, email: str, password: str, name: str) -> Optional[User]:
        """
        Register and sign in.

        Falls back to sign-in if the account already exists.
        """
        try:
            async with self._busy():
                try:
                    session = await self._gateway.sign_up(
                        email.strip(),
                        password,
                        metadata={"name": name.strip()},
                    )
                except ConflictError as e:
                    if e.code != USER_ALREADY_EXISTS:
                        raise
                    return await self._sign_in_existing(email, password)
                return await self._establish(session, display_name=name)
        except ProfileError as e:
            self._fail("sign_up_profile_failed", e, str(e))
        except EXPECTED_ERRORS as e:
            self._fail("sign_up_failed", e)
        return None

    async def _sign_in_existing(self, email: str, password: str) -> Optional[User]:
        self._logger.info("sign_up_account_exists")
        try:
            session = await self._gateway.sign_in(email.strip(), password)
        except AuthenticationError as e:
            self._fail(
                "sign_up_fallback_failed",
                e,
                "Account exists but password is incorrect. Please try signing in instead.",
            )
            return None
        return await self._establish(session)

    async def sign_in(self, email: str, password: str) -> Optional[User]:
        try:
            async with self._busy():
                session = await self._gateway.sign_in(email.strip(), password)
                return await self._establish(session)
        except AuthenticationError as e:
            self._fail("sign_in_failed", e, "Invalid email or password.")
        except ProfileError as e:
            self._fail("sign_in_profile_failed", e, str(e))
        except EXPECTED_ERRORS as e:
            self._fail("sign_in_failed", e)
        return None

    async def check_current_session(self) -> Optional[User]:
        """Restore a live session (e.g. after restart)."""
        try:
            async with self._busy():
                session = await self._gateway.current_session()
                if session is None:
                    self.session = None
                    self.current_user = None
                    return None
                return await self._establish(session)
        except ProfileError as e:
            self._fail("session_restore_profile_failed", e, str(e))
        except EXPECTED_ERRORS as e:
            self._fail("session_restore_failed", e)
        return None

    async def sign_out(self) -> bool:
        """
        End the session.

        Local state is cleared even if the gateway call fails; the
        error is still reported.
        """
        if self.session is None:
            return True
        session = self.session
        try:
            async with self._busy():
                try:
                    await self._gateway.sign_out(session)
                finally:
                    self.session = None
                    self.current_user = None
                    self._tables.authorize(None)
                self._logger.info("signed_out", user_id=str(session.user_id))
                return True
        except EXPECTED_ERRORS as e:
            self._fail("sign_out_failed", e)
        return False

    async def update_profile(self, name: str) -> Optional[User]:
        if self.current_user is None:
            return None
        try:
            async with self._busy():
                self.current_user = await self._profiles.update_display_name(
                    self.current_user.id, name
                )
                return self.current_user
        except EXPECTED_ERRORS as e:
            self._fail("update_profile_failed", e)
        return None

    async def update_password(self, new_password: str) -> bool:
        if self.session is None:
            self.error_message = "Please sign in again to change your password."
            return False
        try:
            async with self._busy():
                await self._gateway.update_password(self.session, new_password)
                self._logger.info("password_changed", user_id=str(self.session.user_id))
                return True
        except EXPECTED_ERRORS as e:
            self._fail("update_password_failed", e)
        return False

    async def refresh_profile(self) -> Optional[User]:
        """Re-read the profile row (house membership may have changed)."""
        if self.session is None:
            return None
        try:
            async with self._busy():
                self.current_user = await self._profiles.get(self.session.user_id)
                return self.current_user
        except EXPECTED_ERRORS as e:
            self._fail("refresh_profile_failed", e)
        return None
