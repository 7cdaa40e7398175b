"""
Tests for the REST backend.

httpx.MockTransport stands in for the hosted service; each test
records the requests it receives.
"""

import json
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest

from cryb.services.storage import (
    AuthenticationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    Order,
    Session,
    ValidationError,
)
from cryb.services.storage.rest import (
    RestAuthGateway,
    RestClient,
    RestTableBackend,
    translate_error,
)


BASE_URL = "https://cryb.example.co"
API_KEY = "anon-key"


def make_client(handler) -> RestClient:
    transport = httpx.MockTransport(handler)
    return RestClient(BASE_URL + "/", API_KEY, client=httpx.AsyncClient(transport=transport))


def session() -> Session:
    return Session(access_token="user-token", user_id=uuid4(), email="a@example.com")


class TestTranslateError:
    """Vendor errors map to the taxonomy by typed code."""

    def _response(self, status, body):
        return httpx.Response(status, json=body)

    def test_unique_violation(self):
        error = translate_error(self._response(409, {"code": "23505", "message": "dup"}))
        assert isinstance(error, ConflictError)
        assert error.code == "unique_violation"

    def test_user_already_exists(self):
        error = translate_error(self._response(422, {"error_code": "user_already_exists", "msg": "taken"}))
        assert isinstance(error, ConflictError)
        assert error.code == "user_already_exists"

    def test_message_text_is_not_inspected(self):
        """A message that merely mentions 'already exists' is not a conflict."""
        error = translate_error(self._response(400, {"message": "User already exists"}))
        assert isinstance(error, ValidationError)

    def test_no_rows(self):
        assert isinstance(translate_error(self._response(406, {"code": "PGRST116"})), NotFoundError)

    def test_unauthorized(self):
        assert isinstance(translate_error(self._response(401, {})), AuthenticationError)

    def test_server_error(self):
        assert isinstance(translate_error(httpx.Response(503, text="down")), NetworkError)


class TestRestTableBackend:
    """Tests for PostgREST table access."""

    @pytest.mark.asyncio
    async def test_select_builds_query(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"id": "1", "amount": 12.5}])

        backend = RestTableBackend(make_client(handler))
        backend.authorize(session())

        rows = await backend.select(
            "expenses",
            filters={"house_id": "h1", "category": None, "is_pinned": True},
            order=[Order("created_at", ascending=False), Order("due_date", nulls_first=True)],
            limit=5,
        )

        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/expenses"
        assert request.url.params["house_id"] == "eq.h1"
        assert request.url.params["category"] == "is.null"
        assert request.url.params["is_pinned"] == "eq.true"
        assert request.url.params["order"] == "created_at.desc,due_date.asc.nullsfirst"
        assert request.url.params["limit"] == "5"
        assert request.headers["Authorization"] == "Bearer user-token"
        assert request.headers["apikey"] == API_KEY
        assert request.headers["Accept-Profile"] == "public"
        assert rows[0]["amount"] == Decimal("12.5")

    @pytest.mark.asyncio
    async def test_anonymous_uses_api_key(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        backend = RestTableBackend(make_client(handler))
        await backend.select("houses")

        assert seen[0].headers["Authorization"] == f"Bearer {API_KEY}"

    @pytest.mark.asyncio
    async def test_insert_returns_representation(self):
        house_id = uuid4()

        def handler(request):
            body = json.loads(request.content)
            assert body["house_id"] == str(house_id)
            assert request.headers["Prefer"] == "return=representation"
            return httpx.Response(201, json=[{**body, "id": "new-id"}])

        backend = RestTableBackend(make_client(handler))
        row = await backend.insert("notes", {"title": "Wifi", "house_id": house_id})

        assert row["id"] == "new-id"

    @pytest.mark.asyncio
    async def test_insert_conflict(self):
        def handler(request):
            return httpx.Response(409, json={"code": "23505", "message": "duplicate key"})

        backend = RestTableBackend(make_client(handler))
        with pytest.raises(ConflictError):
            await backend.insert("houses", {"name": "Maple", "code": "ABC123"})

    @pytest.mark.asyncio
    async def test_update_and_delete(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"id": "1"}, {"id": "2"}])

        backend = RestTableBackend(make_client(handler))
        updated = await backend.update("chores", {"is_completed": True}, {"house_id": "h1"})
        removed = await backend.delete("chores", {"id": "1"})

        assert [r["id"] for r in updated] == ["1", "2"]
        assert removed == 2
        assert seen[0].method == "PATCH"
        assert seen[1].method == "DELETE"
        assert seen[1].url.params["id"] == "eq.1"

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        backend = RestTableBackend(make_client(handler))
        with pytest.raises(NetworkError):
            await backend.select("houses")


class TestRestAuthGateway:
    """Tests for the GoTrue gateway."""

    def _auth_body(self, user_id):
        return {
            "access_token": "tok",
            "refresh_token": "ref",
            "user": {"id": str(user_id), "email": "a@example.com", "user_metadata": {"name": "A"}},
        }

    @pytest.mark.asyncio
    async def test_sign_up_sends_metadata(self):
        user_id = uuid4()

        def handler(request):
            assert request.url.path == "/auth/v1/signup"
            assert json.loads(request.content)["data"] == {"name": "A"}
            return httpx.Response(200, json=self._auth_body(user_id))

        gateway = RestAuthGateway(make_client(handler))
        result = await gateway.sign_up("a@example.com", "secret-pass", {"name": "A"})

        assert result.user_id == user_id
        assert result.user_metadata == {"name": "A"}
        assert await gateway.current_session() == result

    @pytest.mark.asyncio
    async def test_sign_up_needing_confirmation(self):
        def handler(request):
            return httpx.Response(200, json={"id": str(uuid4()), "email": "a@example.com"})

        gateway = RestAuthGateway(make_client(handler))
        with pytest.raises(AuthenticationError) as excinfo:
            await gateway.sign_up("a@example.com", "secret-pass")
        assert excinfo.value.code == "email_not_confirmed"

    @pytest.mark.asyncio
    async def test_sign_up_existing_user_is_typed(self):
        def handler(request):
            return httpx.Response(422, json={"error_code": "user_already_exists", "msg": "User already registered"})

        gateway = RestAuthGateway(make_client(handler))
        with pytest.raises(ConflictError) as excinfo:
            await gateway.sign_up("a@example.com", "secret-pass")
        assert excinfo.value.code == "user_already_exists"

    @pytest.mark.asyncio
    async def test_bad_credentials(self):
        def handler(request):
            assert request.url.params["grant_type"] == "password"
            return httpx.Response(400, json={"error_code": "invalid_credentials", "msg": "Invalid login credentials"})

        gateway = RestAuthGateway(make_client(handler))
        with pytest.raises(AuthenticationError):
            await gateway.sign_in("a@example.com", "wrong-pass")

    @pytest.mark.asyncio
    async def test_expired_session_is_dropped(self):
        user_id = uuid4()

        def handler(request):
            if request.url.path == "/auth/v1/token":
                return httpx.Response(200, json=self._auth_body(user_id))
            return httpx.Response(401, json={"msg": "JWT expired"})

        gateway = RestAuthGateway(make_client(handler))
        await gateway.sign_in("a@example.com", "secret-pass")

        assert await gateway.current_session() is None

    @pytest.mark.asyncio
    async def test_sign_out_clears_even_on_failure(self):
        user_id = uuid4()

        def handler(request):
            if request.url.path == "/auth/v1/token":
                return httpx.Response(200, json=self._auth_body(user_id))
            return httpx.Response(500, json={})

        gateway = RestAuthGateway(make_client(handler))
        current = await gateway.sign_in("a@example.com", "secret-pass")

        with pytest.raises(NetworkError):
            await gateway.sign_out(current)
        assert await gateway.current_session() is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
