"""
Profile Resolver

Maps an authenticated identity to its application-level profile row
in `users`, creating one when it's missing.

The hosted backend is supposed to create the profile with a trigger at
sign-up. When it hasn't, we create it ourselves and re-fetch exactly
once. If the row still isn't there we stop with ProfileError rather
than loop.
"""

from typing import Optional
from uuid import UUID

import structlog

from cryb.models.house import DEFAULT_DISPLAY_NAME, ProfileCreate, User
from cryb.services.storage.interface import (
    USERS_TABLE,
    ConflictError,
    NotFoundError,
    Session,
    TableBackend,
)


class ProfileError(Exception):
    """The profile for a signed-in identity could not be resolved."""

    def __init__(self, user_id: UUID, message: str):
        self.user_id = user_id
        super().__init__(message)


class ProfileResolver:
    """Fetches, creates and edits `users` rows."""

    def __init__(self, tables: TableBackend):
        self._tables = tables
        self._logger = structlog.get_logger(__name__)

    async def fetch(self, user_id: UUID) -> Optional[User]:
        """Return the profile, or None if no row exists."""
        rows = await self._tables.select(
            USERS_TABLE,
            filters={"id": str(user_id)},
            limit=1,
        )
        return User.model_validate(rows[0]) if rows else None

    async def get(self, user_id: UUID) -> User:
        """
        Return the profile.

        Raises:
            NotFoundError: If no row exists
        """
        user = await self.fetch(user_id)
        if user is None:
            raise NotFoundError(f"No profile for user {user_id}")
        return user

    async def resolve(self, session: Session, display_name: Optional[str] = None) -> User:
        """
        Return the session's profile, creating it with defaults if absent.

        Display name preference: `display_name`, then the "name" given at
        sign-up, then "User".

        Raises:
            ProfileError: Still no profile after one create + re-fetch
            BackendError: Any backend failure on the way
        """
        user = await self.fetch(session.user_id)
        if user is not None:
            return user

        name = (
            (display_name or "").strip()
            or str(session.user_metadata.get("name") or "").strip()
            or DEFAULT_DISPLAY_NAME
        )
        profile = ProfileCreate(
            id=session.user_id,
            email=session.email,
            display_name=name,
        )

        self._logger.info("profile_missing_creating", user_id=str(session.user_id))
        try:
            await self._tables.insert(USERS_TABLE, profile.model_dump(mode="json"))
        except ConflictError:
            # Created concurrently (late trigger or another device)
            self._logger.info("profile_created_concurrently", user_id=str(session.user_id))

        user = await self.fetch(session.user_id)
        if user is None:
            self._logger.error("profile_unresolved", user_id=str(session.user_id))
            raise ProfileError(
                session.user_id,
                "Could not find a profile for the logged-in user.",
            )
        return user

    async def update_display_name(self, user_id: UUID, display_name: str) -> User:
        """
        Rename the user.

        Raises:
            NotFoundError: If the profile row doesn't exist
        """
        rows = await self._tables.update(
            USERS_TABLE,
            {"display_name": display_name.strip() or DEFAULT_DISPLAY_NAME},
            filters={"id": str(user_id)},
        )
        if not rows:
            raise NotFoundError(f"No profile for user {user_id}")
        return User.model_validate(rows[0])

    async def set_house(self, user_id: UUID, house_id: Optional[UUID]) -> User:
        """
        Point the user's membership at `house_id` (None = no house).

        Raises:
            NotFoundError: If the profile row doesn't exist
        """
        rows = await self._tables.update(
            USERS_TABLE,
            {"house_id": str(house_id) if house_id else None},
            filters={"id": str(user_id)},
        )
        if not rows:
            raise NotFoundError(f"No profile for user {user_id}")
        return User.model_validate(rows[0])
