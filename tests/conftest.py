"""
Shared fixtures.

Everything runs against InMemoryTableBackend + TableAuthGateway, so no
test needs network access or credentials.
"""

import pytest
import pytest_asyncio

from cryb.config import AppSettings
from cryb.membership import HouseMembershipManager
from cryb.models.house import House
from cryb.profiles import ProfileResolver
from cryb.repositories import ChoreRepository, ExpenseRepository, NoteRepository
from cryb.services.storage import InMemoryTableBackend, Session, TableAuthGateway


@pytest.fixture
def settings():
    return AppSettings(
        backend="memory",
        invite_code_length=6,
        invite_code_max_attempts=5,
        recent_expenses_limit=5,
    )


@pytest.fixture
def tables():
    return InMemoryTableBackend()


@pytest.fixture
def gateway(tables):
    return TableAuthGateway(tables)


@pytest.fixture
def profiles(tables):
    return ProfileResolver(tables)


async def _signed_in(gateway, profiles, email: str, name: str) -> Session:
    session = await gateway.sign_up(email, "secret-pass", metadata={"name": name})
    await profiles.resolve(session)
    return session


@pytest_asyncio.fixture
async def alice(gateway, profiles):
    """Session of a signed-up user with a profile and no house."""
    return await _signed_in(gateway, profiles, "alice@example.com", "Alice")


@pytest_asyncio.fixture
async def bob(gateway, profiles):
    return await _signed_in(gateway, profiles, "bob@example.com", "Bob")


@pytest.fixture
def manager(tables, alice, settings, profiles):
    return HouseMembershipManager(tables, alice, settings=settings, profiles=profiles)


@pytest.fixture
def bob_manager(tables, bob, settings, profiles):
    return HouseMembershipManager(tables, bob, settings=settings, profiles=profiles)


@pytest_asyncio.fixture
async def house(manager) -> House:
    """Alice's freshly created house."""
    created = await manager.create_house("Maple Street")
    assert created is not None, manager.error_message
    return created


@pytest.fixture
def chores(tables, alice):
    return ChoreRepository(tables, alice)


@pytest.fixture
def expenses(tables, alice, settings):
    return ExpenseRepository(tables, alice, recent_limit=settings.recent_expenses_limit)


@pytest.fixture
def notes(tables, alice):
    return NoteRepository(tables, alice)
