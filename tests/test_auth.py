"""
Tests for the table-backed auth gateway and the AuthService.
"""

import pytest

from cryb.auth import AuthService
from cryb.services.storage import (
    USERS_TABLE,
    AuthenticationError,
    ConflictError,
    ValidationError,
)
from cryb.services.storage.local_auth import ACCOUNTS_TABLE


@pytest.fixture
def auth(gateway, tables, profiles):
    return AuthService(gateway, tables, profiles=profiles)


class TestTableAuthGateway:
    """Tests for credential storage."""

    @pytest.mark.asyncio
    async def test_password_is_hashed(self, gateway, tables):
        await gateway.sign_up("Dana@Example.com ", "secret-pass")

        [account] = tables.rows(ACCOUNTS_TABLE)
        assert account["email"] == "dana@example.com"
        assert account["password_hash"] != "secret-pass"

    @pytest.mark.asyncio
    async def test_duplicate_email_is_typed_conflict(self, gateway):
        await gateway.sign_up("dana@example.com", "secret-pass")

        with pytest.raises(ConflictError) as excinfo:
            await gateway.sign_up("DANA@example.com", "other-pass")
        assert excinfo.value.code == "user_already_exists"

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_is_typed_conflict(self, gateway, tables):
        """A sign-up that passes the lookup still loses to the unique email."""
        await gateway.sign_up("dana@example.com", "secret-pass")

        async def not_found(email):
            return None

        gateway._find_account = not_found

        with pytest.raises(ConflictError) as excinfo:
            await gateway.sign_up("dana@example.com", "other-pass")
        assert excinfo.value.code == "user_already_exists"
        assert len(tables.rows(ACCOUNTS_TABLE)) == 1

    @pytest.mark.asyncio
    async def test_weak_password(self, gateway):
        with pytest.raises(ValidationError) as excinfo:
            await gateway.sign_up("dana@example.com", "123")
        assert excinfo.value.code == "weak_password"

    @pytest.mark.asyncio
    async def test_wrong_password(self, gateway):
        await gateway.sign_up("dana@example.com", "secret-pass")
        with pytest.raises(AuthenticationError):
            await gateway.sign_in("dana@example.com", "nope-nope")

    @pytest.mark.asyncio
    async def test_sessions_are_distinct(self, gateway):
        first = await gateway.sign_up("dana@example.com", "secret-pass")
        second = await gateway.sign_in("dana@example.com", "secret-pass")

        assert first.user_id == second.user_id
        assert first.access_token != second.access_token
        assert await gateway.current_session() == second

    @pytest.mark.asyncio
    async def test_sign_out_invalidates_token(self, gateway):
        session = await gateway.sign_up("dana@example.com", "secret-pass")
        await gateway.sign_out(session)

        assert await gateway.current_session() is None
        with pytest.raises(AuthenticationError):
            await gateway.update_password(session, "new-secret")


class TestAuthService:
    """Tests for the sign-up / sign-in flows."""

    @pytest.mark.asyncio
    async def test_sign_up_creates_profile(self, auth, tables):
        user = await auth.sign_up("dana@example.com", "secret-pass", " Dana ")

        assert user.display_name == "Dana"
        assert auth.is_authenticated
        assert auth.session.user_id == user.id
        assert len(tables.rows(USERS_TABLE)) == 1

    @pytest.mark.asyncio
    async def test_sign_up_existing_account_signs_in(self, auth, gateway):
        """A duplicate sign-up with the right password falls back to sign-in."""
        existing = await gateway.sign_up("dana@example.com", "secret-pass", metadata={"name": "Dana"})

        user = await auth.sign_up("dana@example.com", "secret-pass", "Someone Else")

        assert user is not None
        assert user.id == existing.user_id
        assert user.display_name == "Dana"
        assert auth.error_message is None

    @pytest.mark.asyncio
    async def test_sign_up_existing_account_wrong_password(self, auth, gateway):
        await gateway.sign_up("dana@example.com", "secret-pass")

        user = await auth.sign_up("dana@example.com", "wrong-pass", "Dana")

        assert user is None
        assert not auth.is_authenticated
        assert auth.error_message == (
            "Account exists but password is incorrect. Please try signing in instead."
        )

    @pytest.mark.asyncio
    async def test_sign_in_bad_credentials(self, auth):
        assert await auth.sign_in("nobody@example.com", "secret-pass") is None
        assert auth.error_message == "Invalid email or password."
        assert auth.is_loading is False

    @pytest.mark.asyncio
    async def test_sign_in_network_failure(self, auth, gateway, tables):
        await gateway.sign_up("dana@example.com", "secret-pass")
        tables.fail_next()

        assert await auth.sign_in("dana@example.com", "secret-pass") is None
        assert auth.error_message.startswith("Can't reach the server")

    @pytest.mark.asyncio
    async def test_restore_session(self, auth, gateway, profiles):
        session = await gateway.sign_up("dana@example.com", "secret-pass", metadata={"name": "Dana"})
        await profiles.resolve(session)

        user = await auth.check_current_session()

        assert user.id == session.user_id
        assert auth.session == session

    @pytest.mark.asyncio
    async def test_restore_without_session(self, auth):
        assert await auth.check_current_session() is None
        assert auth.error_message is None

    @pytest.mark.asyncio
    async def test_sign_out_clears_state(self, auth, gateway):
        await auth.sign_up("dana@example.com", "secret-pass", "Dana")

        assert await auth.sign_out() is True

        assert auth.session is None
        assert auth.current_user is None
        assert await gateway.current_session() is None

    @pytest.mark.asyncio
    async def test_update_profile_and_password(self, auth, gateway):
        await auth.sign_up("dana@example.com", "secret-pass", "Dana")

        renamed = await auth.update_profile("Dee")
        changed = await auth.update_password("brand-new-pass")

        assert renamed.display_name == "Dee"
        assert changed is True
        session = await gateway.sign_in("dana@example.com", "brand-new-pass")
        assert session.user_id == renamed.id

    @pytest.mark.asyncio
    async def test_update_password_signed_out(self, auth):
        assert await auth.update_password("brand-new-pass") is False
        assert "sign in" in auth.error_message

    @pytest.mark.asyncio
    async def test_refresh_profile_sees_membership(self, auth, tables):
        user = await auth.sign_up("dana@example.com", "secret-pass", "Dana")
        house = await tables.insert("houses", {"name": "Maple", "code": "QWERTY"})
        await tables.update(USERS_TABLE, {"house_id": house["id"]}, {"id": str(user.id)})

        refreshed = await auth.refresh_profile()

        assert str(refreshed.house_id) == house["id"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
