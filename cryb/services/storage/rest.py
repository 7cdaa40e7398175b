"""
REST Backend (PostgREST + GoTrue)

Talks to a hosted Postgres-with-REST service such as Supabase:
- tables at  {url}/rest/v1/{table}
- identity at {url}/auth/v1/...

Row-level security is the backend's job; we forward the signed-in
user's bearer token so it can apply it.

Vendor errors are translated into our taxonomy using the typed
fields of the error body (`code`, `error_code`), never the message text.
"""

from decimal import Decimal
from typing import Any, Optional, Sequence

import httpx
import structlog

from cryb.services.storage.interface import (
    AuthenticationError,
    AuthGateway,
    BackendError,
    ConflictError,
    Filters,
    NetworkError,
    NotFoundError,
    Order,
    Row,
    Session,
    TableBackend,
    ValidationError,
)
from cryb.services.storage.query import normalize


# Postgres SQLSTATE codes surfaced by PostgREST
PG_UNIQUE_VIOLATION = "23505"
PG_FOREIGN_KEY_VIOLATION = "23503"
PG_NOT_NULL_VIOLATION = "23502"
PG_CHECK_VIOLATION = "23514"
PG_INVALID_TEXT = "22P02"
PGRST_NO_ROWS = "PGRST116"


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def translate_error(response: httpx.Response) -> BackendError:
    """Map a failed response to a BackendError subclass."""
    body = _error_body(response)
    code = body.get("error_code") or body.get("code")
    code = str(code) if code is not None else None
    message = (
        body.get("message")
        or body.get("msg")
        or body.get("error_description")
        or f"HTTP {response.status_code}"
    )

    if code in (PG_UNIQUE_VIOLATION, "user_already_exists", "email_exists"):
        return ConflictError(message, code="unique_violation" if code == PG_UNIQUE_VIOLATION else code)
    if response.status_code == 409:
        return ConflictError(message, code=code or "conflict")
    if code == PGRST_NO_ROWS or response.status_code == 404:
        return NotFoundError(message, code=code)
    if response.status_code in (401, 403):
        return AuthenticationError(message, code=code)
    if code in (PG_FOREIGN_KEY_VIOLATION, PG_NOT_NULL_VIOLATION, PG_CHECK_VIOLATION, PG_INVALID_TEXT):
        return ValidationError(message, code=code)
    if response.status_code in (400, 422):
        return ValidationError(message, code=code)
    if response.status_code >= 500:
        return NetworkError(message, code=code)
    return BackendError(message, code=code)


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{normalize(value)}"


def _order_param(order: Sequence[Order]) -> str:
    terms = []
    for term in order:
        text = f"{term.column}.{'asc' if term.ascending else 'desc'}"
        if term.nulls_first is True:
            text += ".nullsfirst"
        elif term.nulls_first is False:
            text += ".nullslast"
        terms.append(text)
    return ",".join(terms)


class RestClient:
    """
    Shared httpx client for both halves of the service.

    Timeouts are httpx defaults.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._url = url.rstrip("/")
        self._api_key = api_key
        self._client = client or httpx.AsyncClient()

    def headers(self, access_token: Optional[str] = None) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {access_token or self._api_key}",
        }

    async def request(
        self,
        method: str,
        path: str,
        access_token: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = self.headers(access_token)
        headers.update(kwargs.pop("headers", {}) or {})
        try:
            response = await self._client.request(
                method,
                f"{self._url}{path}",
                headers=headers,
                **kwargs,
            )
        except httpx.TransportError as e:
            raise NetworkError(f"Could not reach backend: {e}") from e

        if response.is_error:
            raise translate_error(response)
        return response

    async def aclose(self) -> None:
        await self._client.aclose()


class RestTableBackend(TableBackend):
    """TableBackend over PostgREST."""

    def __init__(self, client: RestClient, schema_name: str = "public"):
        self._client = client
        self._schema = schema_name
        self._access_token: Optional[str] = None

    def authorize(self, session: Optional[Session]) -> None:
        self._access_token = session.access_token if session else None

    def _headers(self, write: bool = False) -> dict[str, str]:
        headers = {
            "Accept-Profile": self._schema,
        }
        if write:
            headers["Content-Profile"] = self._schema
            headers["Prefer"] = "return=representation"
        return headers

    @staticmethod
    def _params(filters: Optional[Filters]) -> dict[str, str]:
        return {column: _filter_value(value) for column, value in (filters or {}).items()}

    @staticmethod
    def _rows(response: httpx.Response) -> list[Row]:
        if not response.content:
            return []
        body = response.json(parse_float=Decimal)
        return body if isinstance(body, list) else [body]

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> list[Row]:
        params = {"select": "*", **self._params(filters)}
        if order:
            params["order"] = _order_param(order)
        if limit is not None:
            params["limit"] = str(limit)

        response = await self._client.request(
            "GET",
            f"/rest/v1/{table}",
            access_token=self._access_token,
            params=params,
            headers=self._headers(),
        )
        return self._rows(response)

    async def insert(self, table: str, row: Row) -> Row:
        response = await self._client.request(
            "POST",
            f"/rest/v1/{table}",
            access_token=self._access_token,
            json={k: normalize(v) for k, v in row.items()},
            headers=self._headers(write=True),
        )
        rows = self._rows(response)
        if not rows:
            raise BackendError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(self, table: str, values: Row, filters: Filters) -> list[Row]:
        response = await self._client.request(
            "PATCH",
            f"/rest/v1/{table}",
            access_token=self._access_token,
            params=self._params(filters),
            json={k: normalize(v) for k, v in values.items()},
            headers=self._headers(write=True),
        )
        return self._rows(response)

    async def delete(self, table: str, filters: Filters) -> int:
        response = await self._client.request(
            "DELETE",
            f"/rest/v1/{table}",
            access_token=self._access_token,
            params=self._params(filters),
            headers=self._headers(write=True),
        )
        return len(self._rows(response))


class RestAuthGateway(AuthGateway):
    """AuthGateway over GoTrue."""

    def __init__(self, client: RestClient):
        self._client = client
        self._current: Optional[Session] = None
        self._logger = structlog.get_logger(__name__)

    def _session_from_body(self, body: dict[str, Any]) -> Session:
        user = body.get("user") or {}
        session = Session(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            user_id=user["id"],
            email=user.get("email"),
            user_metadata=user.get("user_metadata") or {},
        )
        self._current = session
        return session

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Session:
        response = await self._client.request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": metadata or {}},
        )
        body = response.json()
        if not body.get("access_token"):
            # Project requires e-mail confirmation before the first session
            raise AuthenticationError(
                "Check your email to confirm your account, then sign in.",
                code="email_not_confirmed",
            )
        return self._session_from_body(body)

    async def sign_in(self, email: str, password: str) -> Session:
        try:
            response = await self._client.request(
                "POST",
                "/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except ValidationError as e:
            # GoTrue answers bad credentials with 400 invalid_grant
            raise AuthenticationError(str(e), code=e.code or "invalid_credentials") from e
        return self._session_from_body(response.json())

    async def sign_out(self, session: Session) -> None:
        try:
            await self._client.request(
                "POST",
                "/auth/v1/logout",
                access_token=session.access_token,
            )
        finally:
            if self._current is not None and self._current.access_token == session.access_token:
                self._current = None

    async def current_session(self) -> Optional[Session]:
        if self._current is None:
            return None
        try:
            await self._client.request(
                "GET",
                "/auth/v1/user",
                access_token=self._current.access_token,
            )
        except AuthenticationError:
            self._logger.info("session_expired", user_id=str(self._current.user_id))
            self._current = None
        return self._current

    async def update_password(self, session: Session, new_password: str) -> None:
        await self._client.request(
            "PUT",
            "/auth/v1/user",
            access_token=session.access_token,
            json={"password": new_password},
        )
