"""Client for the hosted auth/data platform.

Wraps the platform's auth (GoTrue) and data (PostgREST) HTTP APIs. Every
operation is a pass-through; errors come back as ``PlatformError`` tagged with
their kind, with the platform's message and code untouched.

One client is bound to one usage context. Contexts differ only in where the
session credentials live:

- browser: an in-memory store (local storage equivalent)
- middleware: request cookies, writes buffered until the response exists
- server render: request cookies, read-only, one client per request
- server action: request cookies, writes go straight to the response
"""

import base64
import enum
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Generic, Protocol, TypeVar
from uuid import UUID

import httpx
from pydantic import ValidationError
from pydantic_core import to_jsonable_python
from starlette.requests import Request
from starlette.responses import Response

from planner.config import get_settings
from planner.models import TABLES, Profile, TableRow
from planner.schemas.auth import PlatformSession, PlatformUser, SignUpResult
from planner.services.platform_errors import (
    ErrorKind,
    PlatformConfigurationError,
    PlatformError,
    error_from_response,
)

logger = logging.getLogger(__name__)
settings = get_settings()

RowT = TypeVar("RowT", bound=TableRow)


class ClientContext(enum.StrEnum):
    browser = "browser"
    middleware = "middleware"
    server_render = "server_render"
    server_action = "server_action"


class AuthChangeEvent(enum.StrEnum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


AuthListener = Callable[[AuthChangeEvent, PlatformSession | None], Awaitable[None] | None]


# ============= Credential storage =============


class CredentialStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryCredentialStore:
    def __init__(self, initial: Mapping[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class CookieCredentialStore:
    """Session storage backed by request/response cookies.

    With a ``response`` writes are applied immediately, otherwise they are
    kept until ``apply_to`` is called with the outgoing response.
    """

    def __init__(
        self,
        cookies: Mapping[str, str],
        *,
        response: Response | None = None,
        read_only: bool = False,
        cookie_options: dict[str, Any] | None = None,
    ):
        self._cookies = dict(cookies)
        self._response = response
        self._read_only = read_only
        self._options = cookie_options or settings.cookie_options()
        self._pending: dict[str, str | None] = {}

    @property
    def has_pending_writes(self) -> bool:
        return bool(self._pending)

    @property
    def cookies(self) -> dict[str, str]:
        return dict(self._cookies)

    def get(self, key: str) -> str | None:
        return self._cookies.get(key)

    def set(self, key: str, value: str) -> None:
        self._write(key, value)

    def remove(self, key: str) -> None:
        self._write(key, None)

    def _write(self, key: str, value: str | None) -> None:
        if self._read_only:
            logger.debug("Ignoring cookie write for %s in a read-only context", key)
            return
        if value is None:
            self._cookies.pop(key, None)
        else:
            self._cookies[key] = value

        if self._response is not None:
            self._apply_one(self._response, key, value)
        else:
            self._pending[key] = value

    def apply_to(self, response: Response) -> None:
        for key, value in self._pending.items():
            self._apply_one(response, key, value)
        self._pending.clear()

    def _apply_one(self, response: Response, key: str, value: str | None) -> None:
        if value is None:
            response.delete_cookie(
                key,
                path=self._options["path"],
                domain=self._options["domain"],
                secure=self._options["secure"],
                samesite=self._options["samesite"],
            )
        else:
            response.set_cookie(key, value, **self._options)


def encode_session(session: PlatformSession) -> str:
    raw = base64.urlsafe_b64encode(session.model_dump_json().encode("utf-8"))
    return raw.decode("ascii").rstrip("=")


def decode_session(value: str) -> PlatformSession | None:
    padded = value + "=" * (-len(value) % 4)
    try:
        return PlatformSession.model_validate_json(base64.urlsafe_b64decode(padded))
    except (ValueError, ValidationError):
        return None


# ============= Subscriptions =============


class Subscription:
    def __init__(self, listeners: list[AuthListener], callback: AuthListener):
        self._listeners = listeners
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        if self._callback in self._listeners:
            self._listeners.remove(self._callback)


# ============= Queries =============


@dataclass
class QueryResult(Generic[RowT]):
    data: Any
    count: int | None = None


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return str(value)


def _format_list_item(value: Any) -> str:
    text = _format_value(value)
    if any(c in text for c in ',()"'):
        escaped = text.replace('"', '\\"')
        return f'"{escaped}"'
    return text


def _parse_count(content_range: str | None) -> int | None:
    # "0-9/42" or "*/0"
    if not content_range or "/" not in content_range:
        return None
    total = content_range.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class QueryBuilder(Generic[RowT]):
    """Builds one PostgREST request against a table."""

    def __init__(self, client: "PlatformClient", table: str, model: type[RowT] | None):
        self._client = client
        self._table = table
        self._model = model
        self._method = "GET"
        self._columns = "*"
        self._body: Any = None
        self._filters: list[tuple[str, str]] = []
        self._order: list[str] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._prefer: list[str] = []
        self._single = False
        self._maybe_single = False

    # Verbs
    def select(self, columns: str = "*", count: str | None = None) -> "QueryBuilder[RowT]":
        self._columns = columns
        if count:
            self._prefer.append(f"count={count}")
        return self

    def insert(self, values: dict[str, Any] | list[dict[str, Any]]) -> "QueryBuilder[RowT]":
        self._method = "POST"
        self._body = values
        self._prefer.append("return=representation")
        return self

    def update(self, values: dict[str, Any]) -> "QueryBuilder[RowT]":
        self._method = "PATCH"
        self._body = values
        self._prefer.append("return=representation")
        return self

    def delete(self) -> "QueryBuilder[RowT]":
        self._method = "DELETE"
        self._prefer.append("return=representation")
        return self

    # Filters
    def _filter(self, column: str, operator: str, value: str) -> "QueryBuilder[RowT]":
        self._filters.append((column, f"{operator}.{value}"))
        return self

    def eq(self, column: str, value: Any) -> "QueryBuilder[RowT]":
        return self._filter(column, "eq", _format_value(value))

    def neq(self, column: str, value: Any) -> "QueryBuilder[RowT]":
        return self._filter(column, "neq", _format_value(value))

    def gte(self, column: str, value: Any) -> "QueryBuilder[RowT]":
        return self._filter(column, "gte", _format_value(value))

    def lte(self, column: str, value: Any) -> "QueryBuilder[RowT]":
        return self._filter(column, "lte", _format_value(value))

    def ilike(self, column: str, pattern: str) -> "QueryBuilder[RowT]":
        return self._filter(column, "ilike", pattern.replace("%", "*"))

    def in_(self, column: str, values: list[Any]) -> "QueryBuilder[RowT]":
        items = ",".join(_format_list_item(v) for v in values)
        return self._filter(column, "in", f"({items})")

    def or_(self, expression: str) -> "QueryBuilder[RowT]":
        self._filters.append(("or", f"({expression})"))
        return self

    # Modifiers
    def order(self, column: str, ascending: bool = True) -> "QueryBuilder[RowT]":
        self._order.append(f"{column}.{'asc' if ascending else 'desc'}")
        return self

    def limit(self, count: int) -> "QueryBuilder[RowT]":
        self._limit = count
        return self

    def range(self, start: int, end: int) -> "QueryBuilder[RowT]":
        """Rows ``start`` to ``end`` inclusive."""
        self._offset = start
        self._limit = end - start + 1
        return self

    def single(self) -> "QueryBuilder[RowT]":
        self._single = True
        return self

    def maybe_single(self) -> "QueryBuilder[RowT]":
        self._single = True
        self._maybe_single = True
        return self

    def build_params(self) -> list[tuple[str, str]]:
        params = [("select", self._columns)]
        params.extend(self._filters)
        if self._order:
            params.append(("order", ",".join(self._order)))
        if self._limit is not None:
            params.append(("limit", str(self._limit)))
        if self._offset is not None:
            params.append(("offset", str(self._offset)))
        return params

    def _parse_row(self, row: Any) -> Any:
        if self._model is None or not isinstance(row, dict):
            return row
        # Partial selects keep the raw shape
        if not self._columns.replace(" ", "").startswith("*"):
            return row
        return self._model.model_validate(row)

    async def execute(self) -> QueryResult[RowT]:
        headers: dict[str, str] = {}
        if self._prefer:
            headers["Prefer"] = ",".join(self._prefer)
        if self._single:
            headers["Accept"] = "application/vnd.pgrst.object+json"

        try:
            response = await self._client.request(
                self._method,
                f"/rest/v1/{self._table}",
                params=self.build_params(),
                json=to_jsonable_python(self._body) if self._body is not None else None,
                headers=headers,
            )
        except PlatformError as e:
            if self._maybe_single and e.kind is ErrorKind.not_found:
                return QueryResult(data=None)
            raise

        payload = response.json() if response.content else None
        count = _parse_count(response.headers.get("content-range"))

        if isinstance(payload, list):
            return QueryResult(data=[self._parse_row(row) for row in payload], count=count)
        return QueryResult(data=self._parse_row(payload), count=count)


# ============= Client =============


class PlatformClient:
    def __init__(
        self,
        url: str | None,
        anon_key: str | None,
        storage: CredentialStore,
        *,
        context: ClientContext = ClientContext.browser,
        storage_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url:
            raise PlatformConfigurationError("Platform URL is missing (SUPABASE_URL)")
        if not anon_key:
            raise PlatformConfigurationError("Platform key is missing (SUPABASE_ANON_KEY)")

        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.storage = storage
        self.context = context
        self.storage_key = storage_key or settings.session_cookie_name
        self.timeout = timeout if timeout is not None else settings.platform_timeout
        self._transport = transport
        self._listeners: list[AuthListener] = []

    # ----- transport -----

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        bearer: str | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        if bearer is None and authenticated:
            session = self._load_session()
            bearer = session.access_token if session else None

        request_headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {bearer or self.anon_key}",
        }
        if headers:
            request_headers.update(headers)

        async with httpx.AsyncClient(
            base_url=self.url, timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.request(
                    method, path, params=params, json=json, headers=request_headers
                )
            except httpx.HTTPError as e:
                logger.error(f"Platform request {method} {path} failed: {e}")
                raise PlatformError(ErrorKind.unknown, f"Platform unreachable: {e}") from e

        if response.is_error:
            error = error_from_response(response)
            logger.debug(f"Platform {method} {path} -> {response.status_code}: {error!r}")
            raise error
        return response

    # ----- session storage -----

    def _load_session(self) -> PlatformSession | None:
        raw = self.storage.get(self.storage_key)
        if not raw:
            return None
        session = decode_session(raw)
        if session is None:
            logger.warning("Discarding unreadable stored session")
            self.storage.remove(self.storage_key)
        return session

    def _save_session(self, session: PlatformSession) -> None:
        self.storage.set(self.storage_key, encode_session(session))

    # ----- auth events -----

    def on_auth_state_change(self, callback: AuthListener) -> Subscription:
        self._listeners.append(callback)
        return Subscription(self._listeners, callback)

    async def _emit(self, event: AuthChangeEvent, session: PlatformSession | None) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event, session)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Auth listener failed on {event}")

    # ----- auth -----

    async def get_session(self) -> PlatformSession | None:
        """Current session, refreshed first if it has already expired."""
        session = self._load_session()
        if session is None:
            return None
        if session.is_expired():
            logger.info("Stored session has expired, refreshing")
            return await self.refresh_session(session.refresh_token)
        return session

    async def refresh_session(self, refresh_token: str | None = None) -> PlatformSession:
        if refresh_token is None:
            current = self._load_session()
            if current is None:
                raise PlatformError(ErrorKind.unauthenticated, "Auth session missing!")
            refresh_token = current.refresh_token

        response = await self.request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
            authenticated=False,
        )
        session = PlatformSession.model_validate(response.json())
        self._save_session(session)
        await self._emit(AuthChangeEvent.TOKEN_REFRESHED, session)
        return session

    async def sign_in_with_password(self, email: str, password: str) -> PlatformSession:
        response = await self.request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            authenticated=False,
        )
        session = PlatformSession.model_validate(response.json())
        self._save_session(session)
        await self._emit(AuthChangeEvent.SIGNED_IN, session)
        return session

    async def sign_up(
        self, email: str, password: str, data: dict[str, Any] | None = None
    ) -> SignUpResult:
        response = await self.request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": data or {}},
            authenticated=False,
        )
        payload = response.json()

        # With auto-confirm the platform answers with a full session
        if "access_token" in payload:
            session = PlatformSession.model_validate(payload)
            self._save_session(session)
            await self._emit(AuthChangeEvent.SIGNED_IN, session)
            return SignUpResult(user=session.user, session=session)

        user_data = payload.get("user", payload)
        user = PlatformUser.model_validate(user_data) if user_data.get("id") else None
        return SignUpResult(user=user, session=None)

    async def sign_out(self) -> None:
        session = self._load_session()
        if session is not None:
            try:
                await self.request("POST", "/auth/v1/logout", bearer=session.access_token)
            except PlatformError as e:
                # The local session is dropped regardless
                logger.warning(f"Remote sign-out failed: {e.message}")
        self.storage.remove(self.storage_key)
        await self._emit(AuthChangeEvent.SIGNED_OUT, None)

    async def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        await self.request(
            "POST",
            "/auth/v1/recover",
            params={"redirect_to": redirect_to} if redirect_to else None,
            json={"email": email},
            authenticated=False,
        )

    # ----- data -----

    def table(self, name: str) -> QueryBuilder:
        if name not in TABLES:
            raise ValueError(f"Unknown table: {name}")
        return QueryBuilder(self, name, TABLES[name])

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        response = await self.request(
            "POST", f"/rest/v1/rpc/{function}", json=to_jsonable_python(params or {})
        )
        return response.json() if response.content else None

    async def get_user_profile(self, user_id: UUID | str) -> Profile | None:
        result = await self.table("profiles").select("*").eq("id", user_id).maybe_single().execute()
        return result.data


# ============= Factories =============


def _transport_for(request: Request) -> httpx.AsyncBaseTransport | None:
    return getattr(request.app.state, "platform_transport", None)


def _build_client(
    storage: CredentialStore,
    context: ClientContext,
    transport: httpx.AsyncBaseTransport | None,
) -> PlatformClient:
    return PlatformClient(
        settings.supabase_url,
        settings.supabase_anon_key,
        storage,
        context=context,
        transport=transport,
    )


def create_browser_client(
    storage: CredentialStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PlatformClient:
    return _build_client(storage or MemoryCredentialStore(), ClientContext.browser, transport)


def create_middleware_client(request: Request) -> PlatformClient:
    """Client for the route guard. Call ``storage.apply_to(response)`` afterwards."""
    storage = CookieCredentialStore(request.cookies)
    return _build_client(storage, ClientContext.middleware, _transport_for(request))


def create_server_render_client(request: Request) -> PlatformClient:
    """Read-only client, cached for the lifetime of the request."""
    cached = getattr(request.state, "server_render_client", None)
    if cached is not None:
        return cached
    storage = CookieCredentialStore(request.cookies, read_only=True)
    client = _build_client(storage, ClientContext.server_render, _transport_for(request))
    request.state.server_render_client = client
    return client


def create_server_action_client(request: Request, response: Response) -> PlatformClient:
    storage = CookieCredentialStore(request.cookies, response=response)
    return _build_client(storage, ClientContext.server_action, _transport_for(request))
