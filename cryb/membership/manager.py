"""
House Membership Manager

Owns the single-house-per-user rule as a two-state machine:

    NO_HOUSE --create_house / join_house--> IN_HOUSE
    IN_HOUSE --leave_house----------------> NO_HOUSE

fetch_current_membership() resynchronizes the state from the backend
(after a restart or a session change).

On ANY failure the state is left exactly as it was: we only move
after the backend has confirmed the change.

Leaving never deletes the house or its records, and never revokes the
invite code: anyone holding it can (re)join.
"""

import secrets
import string
from typing import Callable, Optional
from uuid import UUID

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from cryb.config import AppSettings
from cryb.models.house import House, HouseCreate, MembershipState, User
from cryb.profiles.resolver import ProfileResolver
from cryb.services.status import EXPECTED_ERRORS, ServiceStatus
from cryb.services.storage.interface import (
    HOUSES_TABLE,
    USERS_TABLE,
    BackendError,
    ConflictError,
    NotFoundError,
    Order,
    Session,
    TableBackend,
)


INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


class MembershipStateError(Exception):
    """Operation not allowed from the current membership state."""

    def __init__(self, state: MembershipState, message: str):
        self.state = state
        super().__init__(message)


def generate_invite_code(length: int = 6) -> str:
    """Uniformly random code over [A-Z0-9]."""
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


class HouseMembershipManager(ServiceStatus):
    """
    Create / join / leave for the signed-in user.

    Bound to one session; the app context builds a new manager
    on every sign-in.
    """

    def __init__(
        self,
        tables: TableBackend,
        session: Session,
        settings: Optional[AppSettings] = None,
        profiles: Optional[ProfileResolver] = None,
        code_generator: Optional[Callable[[int], str]] = None,
    ):
        self._init_status()
        self._tables = tables
        self._session = session
        self._settings = settings or AppSettings()
        self._profiles = profiles or ProfileResolver(tables)
        self._generate_code = code_generator or generate_invite_code
        self._logger = structlog.get_logger(__name__).bind(user_id=str(session.user_id))

        self.current_house: Optional[House] = None
        self.house_members: list[User] = []

    @property
    def state(self) -> MembershipState:
        if self.current_house is None:
            return MembershipState.NO_HOUSE
        return MembershipState.IN_HOUSE

    def _require(self, expected: MembershipState, action: str) -> None:
        if self.state != expected:
            if self.state == MembershipState.IN_HOUSE:
                message = f"You're already in a house. Leave it before you {action}."
            else:
                message = f"You're not in a house, so you can't {action}."
            raise MembershipStateError(self.state, message)

    async def _require_houseless_profile(self, action: str) -> None:
        """
        Check NO_HOUSE against the stored profile, not just local state.

        Local state may be stale (a failed resync leaves it at NO_HOUSE).
        If the profile already points at a house, adopt it and refuse.
        """
        user = await self._profiles.get(self._session.user_id)
        if user.house_id is None:
            return
        self.current_house = await self._load_house(user.house_id)
        self.house_members = []
        self._logger.info("membership_resynced_on_check", house_id=str(user.house_id))
        self._require(MembershipState.NO_HOUSE, action)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def create_house(self, name: str) -> Optional[House]:
        """
        Create a house and join it (NO_HOUSE -> IN_HOUSE).

        A fresh invite code is drawn whenever the backend reports the
        code is taken, up to `invite_code_max_attempts` times.

        Returns:
            The new house, or None (see error_message)
        """
        try:
            async with self._busy():
                self._require(MembershipState.NO_HOUSE, "create a new one")
                await self._require_houseless_profile("create a new one")

                house = await self._insert_house(name)
                try:
                    await self._profiles.set_house(self._session.user_id, house.id)
                except BackendError:
                    await self._discard_house(house)
                    raise

                self.current_house = house
                self.house_members = []
                self._logger.info("house_created", house_id=str(house.id), code=house.code)
                return house
        except MembershipStateError as e:
            self._fail("create_house_rejected", e, str(e))
        except ConflictError as e:
            self._fail(
                "create_house_failed",
                e,
                "Couldn't generate a free invite code. Please try again.",
            )
        except EXPECTED_ERRORS as e:
            self._fail("create_house_failed", e)
        return None

    async def join_house(self, code: str) -> Optional[House]:
        """
        Join the house whose invite code matches exactly (NO_HOUSE -> IN_HOUSE).

        Matching is case-sensitive; callers upper-case user input.

        Returns:
            The joined house, or None (see error_message)
        """
        try:
            async with self._busy():
                self._require(MembershipState.NO_HOUSE, "join another one")
                await self._require_houseless_profile("join another one")

                rows = await self._tables.select(
                    HOUSES_TABLE,
                    filters={"code": code},
                    limit=1,
                )
                if not rows:
                    raise NotFoundError(
                        f"No house with invite code {code!r}",
                        code="invalid_invite_code",
                    )
                house = House.model_validate(rows[0])

                await self._profiles.set_house(self._session.user_id, house.id)

                self.current_house = house
                self.house_members = []
                self._logger.info("house_joined", house_id=str(house.id))
                return house
        except MembershipStateError as e:
            self._fail("join_house_rejected", e, str(e))
        except NotFoundError as e:
            message = None
            if e.code == "invalid_invite_code":
                message = "Invalid invite code. Please try again."
            self._fail("join_house_failed", e, message)
        except EXPECTED_ERRORS as e:
            self._fail("join_house_failed", e, "Couldn't join the house. Please try again.")
        return None

    async def leave_house(self) -> bool:
        """
        Leave the current house (IN_HOUSE -> NO_HOUSE).

        The house, its records and its invite code stay as they are.
        """
        try:
            async with self._busy():
                self._require(MembershipState.IN_HOUSE, "leave one")
                house = self.current_house

                await self._profiles.set_house(self._session.user_id, None)

                self.current_house = None
                self.house_members = []
                self._logger.info("house_left", house_id=str(house.id))
                return True
        except MembershipStateError as e:
            self._fail("leave_house_rejected", e, str(e))
        except EXPECTED_ERRORS as e:
            self._fail("leave_house_failed", e, "Failed to leave house.")
        return False

    async def fetch_current_membership(self) -> MembershipState:
        """
        Re-read the profile and follow its house_id.

        Idempotent. On failure the previous state is kept.

        Returns:
            The (possibly unchanged) membership state
        """
        try:
            async with self._busy():
                user = await self._profiles.get(self._session.user_id)

                house = None
                if user.house_id is not None:
                    house = await self._load_house(user.house_id)

                if house is None or self.current_house is None or house.id != self.current_house.id:
                    self.house_members = []
                self.current_house = house
                self._logger.info(
                    "membership_synced",
                    state=self.state.value,
                    house_id=str(house.id) if house else None,
                )
        except EXPECTED_ERRORS as e:
            self._fail("membership_sync_failed", e)
        return self.state

    async def get_house_members(self) -> list[User]:
        """Profiles of everyone in the current house, by name."""
        if self.current_house is None:
            return []
        try:
            async with self._busy():
                rows = await self._tables.select(
                    USERS_TABLE,
                    filters={"house_id": str(self.current_house.id)},
                    order=[Order("display_name")],
                )
                self.house_members = [User.model_validate(row) for row in rows]
        except EXPECTED_ERRORS as e:
            self._fail("house_members_failed", e)
        return self.house_members

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _insert_house(self, name: str) -> House:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(ConflictError),
            stop=stop_after_attempt(self._settings.invite_code_max_attempts),
            after=self._log_collision,
            reraise=True,
        ):
            with attempt:
                payload = HouseCreate(
                    name=name,
                    code=self._generate_code(self._settings.invite_code_length),
                    created_by=self._session.user_id,
                )
                row = await self._tables.insert(HOUSES_TABLE, payload.model_dump(mode="json"))
        return House.model_validate(row)

    async def _load_house(self, house_id: UUID) -> House:
        rows = await self._tables.select(
            HOUSES_TABLE,
            filters={"id": str(house_id)},
            limit=1,
        )
        if not rows:
            raise NotFoundError(f"House {house_id} not found")
        return House.model_validate(rows[0])

    def _log_collision(self, retry_state) -> None:
        self._logger.warning("invite_code_collision", attempt=retry_state.attempt_number)

    async def _discard_house(self, house: House) -> None:
        """Remove a house nobody managed to join."""
        try:
            await self._tables.delete(HOUSES_TABLE, filters={"id": str(house.id)})
        except BackendError as e:
            self._logger.warning("orphan_house_cleanup_failed", house_id=str(house.id), error=str(e))
