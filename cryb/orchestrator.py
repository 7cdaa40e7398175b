"""
Application Context for Cryb

Ties together the backend, the auth service and the session-bound
services, and defines the session lifecycle:

    sign_in / sign_up / restore_session  ->  _start(session)
    sign_out                             ->  _teardown()

Services that act on behalf of a user (membership, repositories) are
built in _start with the session they serve, and dropped in
_teardown. There is no ambient "current user" anywhere else.
"""

from typing import Optional

import structlog
from pydantic import BaseModel, Field

from cryb.auth import AuthService
from cryb.config import AppSettings, BackendKind, Settings, get_settings
from cryb.log import configure_logging
from cryb.membership import HouseMembershipManager
from cryb.models.house import House, MembershipState, User
from cryb.models.records import BalanceSummary, Chore, Expense, Note
from cryb.profiles import ProfileResolver
from cryb.repositories import ChoreRepository, ExpenseRepository, NoteRepository
from cryb.services.storage import (
    AuthGateway,
    InMemoryTableBackend,
    Session,
    TableAuthGateway,
    TableBackend,
)


DASHBOARD_SECTION_SIZE = 3


class Dashboard(BaseModel):
    """Snapshot of the signed-in user's house for the home screen."""

    user: User
    house: Optional[House] = None
    upcoming_chores: list[Chore] = Field(default_factory=list)
    recent_expenses: list[Expense] = Field(default_factory=list)
    pinned_notes: list[Note] = Field(default_factory=list)
    balance: Optional[BalanceSummary] = None


class HouseholdApp:
    """
    The composed application context.

    A front end holds exactly one of these and talks to
    `auth`, `membership`, `chores`, `expenses` and `notes`.
    The last four are None while signed out.
    """

    def __init__(
        self,
        tables: TableBackend,
        gateway: AuthGateway,
        settings: Optional[AppSettings] = None,
    ):
        self._tables = tables
        self._settings = settings or AppSettings()
        self._profiles = ProfileResolver(tables)
        self._logger = structlog.get_logger(__name__)

        self.auth = AuthService(gateway, tables, profiles=self._profiles)
        self.membership: Optional[HouseMembershipManager] = None
        self.chores: Optional[ChoreRepository] = None
        self.expenses: Optional[ExpenseRepository] = None
        self.notes: Optional[NoteRepository] = None

    @property
    def session(self) -> Optional[Session]:
        return self.auth.session

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str, name: str) -> Optional[User]:
        user = await self.auth.sign_up(email, password, name)
        if user is not None:
            await self._start(self.auth.session)
        return user

    async def sign_in(self, email: str, password: str) -> Optional[User]:
        user = await self.auth.sign_in(email, password)
        if user is not None:
            await self._start(self.auth.session)
        return user

    async def restore_session(self) -> Optional[User]:
        user = await self.auth.check_current_session()
        if user is not None:
            await self._start(self.auth.session)
        return user

    async def sign_out(self) -> bool:
        signed_out = await self.auth.sign_out()
        self._teardown()
        return signed_out

    async def _start(self, session: Session) -> None:
        self._teardown()
        self.membership = HouseMembershipManager(
            self._tables,
            session,
            settings=self._settings,
            profiles=self._profiles,
        )
        self.chores = ChoreRepository(self._tables, session)
        self.expenses = ExpenseRepository(
            self._tables,
            session,
            recent_limit=self._settings.recent_expenses_limit,
        )
        self.notes = NoteRepository(self._tables, session)

        await self.membership.fetch_current_membership()
        self._logger.info(
            "session_started",
            user_id=str(session.user_id),
            membership=self.membership.state.value,
        )

    def _teardown(self) -> None:
        for repository in (self.chores, self.expenses, self.notes):
            if repository is not None:
                repository.clear()
        self.membership = None
        self.chores = None
        self.expenses = None
        self.notes = None

    # ------------------------------------------------------------------
    # House data
    # ------------------------------------------------------------------

    async def load_house_data(self) -> bool:
        """
        (Re)list chores, expenses and notes of the current house.

        Returns False when signed out, houseless, or any list failed.
        """
        if self.membership is None or self.membership.state != MembershipState.IN_HOUSE:
            return False
        house_id = self.membership.current_house.id

        await self.chores.list(house_id)
        await self.expenses.list(house_id)
        await self.notes.list(house_id)
        return not any(
            repository.error_message
            for repository in (self.chores, self.expenses, self.notes)
        )

    async def create_house(self, name: str) -> Optional[House]:
        """Create a house, join it and refresh the signed-in profile."""
        if self.membership is None:
            return None
        house = await self.membership.create_house(name)
        if house is not None:
            await self.auth.refresh_profile()
        return house

    async def join_house(self, code: str) -> Optional[House]:
        """Join by invite code and refresh the signed-in profile."""
        if self.membership is None:
            return None
        house = await self.membership.join_house(code)
        if house is not None:
            await self.auth.refresh_profile()
        return house

    async def leave_house(self) -> bool:
        """Leave the house, drop its cached records and refresh the profile."""
        if self.membership is None:
            return False
        left = await self.membership.leave_house()
        if left:
            for repository in (self.chores, self.expenses, self.notes):
                repository.clear()
            await self.auth.refresh_profile()
        return left

    def dashboard(self) -> Optional[Dashboard]:
        """Home-screen snapshot from the cached data; None while signed out."""
        if self.auth.current_user is None or self.membership is None:
            return None
        if self.membership.current_house is None:
            return Dashboard(user=self.auth.current_user)
        return Dashboard(
            user=self.auth.current_user,
            house=self.membership.current_house,
            upcoming_chores=self.chores.upcoming()[:DASHBOARD_SECTION_SIZE],
            recent_expenses=self.expenses.recent[:DASHBOARD_SECTION_SIZE],
            pinned_notes=self.notes.pinned[:DASHBOARD_SECTION_SIZE],
            balance=self.expenses.balance,
        )


def create_backend(settings: Settings) -> tuple[TableBackend, AuthGateway]:
    """Build the table backend and auth gateway chosen by configuration."""
    kind = settings.app.backend

    if kind == BackendKind.REST:
        from cryb.services.storage.rest import RestAuthGateway, RestClient, RestTableBackend

        rest = settings.rest
        client = RestClient(rest.url, rest.api_key)
        return RestTableBackend(client, schema_name=rest.schema_name), RestAuthGateway(client)

    if kind == BackendKind.GOOGLE_SHEETS:
        from cryb.services.storage.google_sheets import GoogleSheetsClient, GoogleSheetsTableBackend

        tables = GoogleSheetsTableBackend(GoogleSheetsClient(settings.google_sheets))
        return tables, TableAuthGateway(tables)

    tables = InMemoryTableBackend()
    return tables, TableAuthGateway(tables)


def create_app(settings: Optional[Settings] = None) -> HouseholdApp:
    """
    Factory function to create the application context.

    Configures logging, builds the configured backend and returns a
    signed-out HouseholdApp.
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level, json=app_settings.log_json)

    tables, gateway = create_backend(settings)
    structlog.get_logger(__name__).info("app_created", backend=app_settings.backend.value)
    return HouseholdApp(tables, gateway, settings=app_settings)
