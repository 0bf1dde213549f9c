import os

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["SUPABASE_URL"] = "http://platform.test"
os.environ["SUPABASE_ANON_KEY"] = "anon-test-key"

import json
import re
import time
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import JWTError, jwt

from planner.config import get_settings
from planner.main import app
from planner.models import TABLES
from planner.schemas.auth import PlatformSession
from planner.services.platform_client import MemoryCredentialStore, PlatformClient, encode_session

settings = get_settings()

JWT_SECRET = "platform-test-secret"
PLATFORM_URL = os.environ["SUPABASE_URL"]
ANON_KEY = os.environ["SUPABASE_ANON_KEY"]


def make_access_token(user_id: str, email: str, expires_in: int = 3600) -> str:
    now = int(time.time())
    claims = {
        "sub": user_id,
        "email": email,
        "role": "authenticated",
        "iat": now,
        "exp": now + expires_in,
        "jti": uuid4().hex,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def _text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _split_top_level(expression: str) -> list[str]:
    parts, depth, current = [], 0, ""
    for char in expression:
        if char == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        depth += char == "("
        depth -= char == ")"
        current += char
    if current:
        parts.append(current)
    return parts


def _matches(row: dict[str, Any], column: str, condition: str) -> bool:
    operator, _, value = condition.partition(".")
    actual = row.get(column)
    if operator == "eq":
        return _text(actual) == value
    if operator == "neq":
        return _text(actual) != value
    if operator == "is":
        return _text(actual) == value
    if operator == "gte":
        return actual is not None and _text(actual) >= value
    if operator == "lte":
        return actual is not None and _text(actual) <= value
    if operator == "ilike":
        pattern = ".*".join(re.escape(p) for p in value.split("*"))
        return actual is not None and re.fullmatch(pattern, str(actual), re.IGNORECASE) is not None
    if operator == "in":
        items = [i.strip().strip('"') for i in value.strip("()").split(",") if i.strip()]
        return _text(actual) in items
    raise AssertionError(f"Unsupported filter operator: {operator}")


def _matches_or(row: dict[str, Any], expression: str) -> bool:
    for part in _split_top_level(expression.strip()[1:-1]):
        column, _, condition = part.partition(".")
        if _matches(row, column, condition):
            return True
    return False


class FakePlatform:
    """In-memory stand-in for the hosted auth (GoTrue) and data (PostgREST) APIs."""

    def __init__(self):
        self.users: dict[str, dict[str, Any]] = {}  # by email
        self.refresh_tokens: dict[str, str] = {}  # refresh token -> email
        self.tables: dict[str, list[dict[str, Any]]] = {name: [] for name in TABLES}
        self.rpc_results: dict[str, Any] = {
            "can_delete_event": True,
            "delete_user_profile_complete": True,
        }
        self.files: dict[str, bytes] = {}
        self.auto_confirm = False
        # Errors returned by the next data API calls, oldest first
        self.queued_errors: list[tuple[int, dict[str, Any], str | None]] = []
        self.requests: list[httpx.Request] = []

    # ----- seeding -----

    def add_user(
        self,
        email: str,
        password: str = "secret123",
        role: str = "regisseur",
        username: str | None = None,
        confirmed: bool = True,
        full_name: str | None = None,
    ) -> dict[str, Any]:
        user_id = str(uuid4())
        self.users[email] = {
            "id": user_id,
            "email": email,
            "password": password,
            "confirmed": confirmed,
            "user_metadata": {"username": username, "role": role},
        }
        profile = {
            "id": user_id,
            "username": username or email.split("@")[0],
            "full_name": full_name,
            "role": role,
            "skills": [],
            "availability_status": "available",
            "created_at": self._now(),
            "updated_at": self._now(),
        }
        self.tables["profiles"].append(profile)
        return profile

    def insert(self, table: str, **values: Any) -> dict[str, Any]:
        row = self._with_defaults(table, json.loads(json.dumps(values, default=str)))
        self.tables[table].append(row)
        return row

    def issue_session(self, email: str, expires_in: int = 3600) -> dict[str, Any]:
        user = self.users[email]
        refresh_token = uuid4().hex
        self.refresh_tokens[refresh_token] = email
        return {
            "access_token": make_access_token(user["id"], email, expires_in),
            "token_type": "bearer",
            "expires_in": expires_in,
            "expires_at": int(time.time()) + expires_in,
            "refresh_token": refresh_token,
            "user": {"id": user["id"], "email": email, "user_metadata": user["user_metadata"]},
        }

    def session_cookie(self, email: str, expires_in: int = 3600) -> str:
        session = PlatformSession.model_validate(self.issue_session(email, expires_in))
        return encode_session(session)

    def queue_error(
        self, status: int, payload: dict[str, Any], times: int = 1, target: str | None = None
    ) -> None:
        """Fail the next data calls; ``target`` limits it to one table or function."""
        self.queued_errors.extend([(status, payload, target)] * times)

    def queue_jwt_expired(self, times: int = 1, target: str | None = None) -> None:
        self.queue_error(401, {"code": "PGRST301", "message": "JWT expired"}, times, target)

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    # ----- transport -----

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.files:
            return httpx.Response(200, content=self.files[path])
        if path.startswith("/auth/v1/"):
            return self._auth(request, path.removeprefix("/auth/v1/"))
        if path.startswith("/rest/v1/rpc/"):
            function = path.rsplit("/", 1)[1]
            denied = self._check_token(request, function)
            if denied is not None:
                return denied
            return httpx.Response(200, json=self.rpc_results.get(function))
        if path.startswith("/rest/v1/"):
            return self._rest(request, path.removeprefix("/rest/v1/"))
        return httpx.Response(404, json={"message": "Not found"})

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _auth_error(status: int, error_code: str, msg: str) -> httpx.Response:
        return httpx.Response(status, json={"code": status, "error_code": error_code, "msg": msg})

    def _auth(self, request: httpx.Request, endpoint: str) -> httpx.Response:
        body = json.loads(request.content or b"{}")

        if endpoint == "token":
            grant = request.url.params.get("grant_type")
            if grant == "password":
                user = self.users.get(body.get("email"))
                if user is None or user["password"] != body.get("password"):
                    return self._auth_error(400, "invalid_credentials", "Invalid login credentials")
                if not user["confirmed"]:
                    return self._auth_error(400, "email_not_confirmed", "Email not confirmed")
                return httpx.Response(200, json=self.issue_session(user["email"]))
            if grant == "refresh_token":
                email = self.refresh_tokens.pop(body.get("refresh_token"), None)
                if email is None:
                    return self._auth_error(
                        400,
                        "refresh_token_not_found",
                        "Invalid Refresh Token: Refresh Token Not Found",
                    )
                return httpx.Response(200, json=self.issue_session(email))

        if endpoint == "signup":
            email = body["email"]
            if email in self.users:
                return self._auth_error(422, "user_already_exists", "User already registered")
            data = body.get("data") or {}
            profile = self.add_user(
                email,
                body["password"],
                role=data.get("role", "intermittent"),
                username=data.get("username"),
                confirmed=self.auto_confirm,
                full_name=data.get("full_name"),
            )
            if self.auto_confirm:
                return httpx.Response(200, json=self.issue_session(email))
            return httpx.Response(
                200,
                json={"id": profile["id"], "email": email, "user_metadata": data},
            )

        if endpoint == "logout":
            return httpx.Response(204)
        if endpoint in ("recover", "settings"):
            return httpx.Response(200, json={})
        return httpx.Response(404, json={"msg": "Not found"})

    def _check_token(self, request: httpx.Request, target: str) -> httpx.Response | None:
        for index, (status, payload, wanted) in enumerate(self.queued_errors):
            if wanted in (None, target):
                del self.queued_errors[index]
                return httpx.Response(status, json=payload)
        token = request.headers.get("authorization", "").removeprefix("Bearer ")
        if token == ANON_KEY:
            return None
        try:
            jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
        except JWTError:
            return httpx.Response(401, json={"code": "PGRST301", "message": "JWT expired"})
        return None

    def _with_defaults(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        row.setdefault("id", str(uuid4()))
        row.setdefault("created_at", self._now())
        if table != "notifications":
            row.setdefault("updated_at", self._now())
        if table == "event_participants":
            row.setdefault("invited_at", self._now())
            row.setdefault("status", "invited")
        if table == "events":
            row.setdefault("version", 1)
        return row

    def _select(self, table: str, rows: list[dict[str, Any]], columns: str) -> list[dict[str, Any]]:
        columns = columns.replace(" ", "")
        if columns.startswith("*"):
            selected = [dict(row) for row in rows]
            if "profiles:user_id(" in columns:
                profiles = {p["id"]: p for p in self.tables["profiles"]}
                for row in selected:
                    row["profiles"] = profiles.get(row["user_id"])
            return selected
        wanted = columns.split(",")
        return [{c: row.get(c) for c in wanted} for row in rows]

    def _rest(self, request: httpx.Request, table: str) -> httpx.Response:
        denied = self._check_token(request, table)
        if denied is not None:
            return denied
        if table not in self.tables:
            return httpx.Response(
                404, json={"code": "42P01", "message": f"relation {table} does not exist"}
            )

        params = request.url.params
        rows = self.tables[table]
        matched = list(rows)
        for key, value in params.multi_items():
            if key in ("select", "order", "limit", "offset"):
                continue
            if key == "or":
                matched = [r for r in matched if _matches_or(r, value)]
            else:
                matched = [r for r in matched if _matches(r, key, value)]

        prefer = request.headers.get("prefer", "")
        single = request.headers.get("accept") == "application/vnd.pgrst.object+json"

        if request.method == "POST":
            body = json.loads(request.content)
            body = body if isinstance(body, list) else [body]
            new_rows = [self._with_defaults(table, dict(r)) for r in body]
            rows.extend(new_rows)
            result = new_rows
        elif request.method == "PATCH":
            changes = json.loads(request.content)
            for row in matched:
                row.update(changes)
            result = matched
        elif request.method == "DELETE":
            self.tables[table] = [r for r in rows if r not in matched]
            result = matched
        else:
            result = matched
            order = params.get("order")
            if order:
                for item in reversed(order.split(",")):
                    column, _, direction = item.partition(".")
                    result = sorted(
                        result,
                        key=lambda r: (r.get(column) is None, _text(r.get(column))),
                        reverse=direction == "desc",
                    )

        total = len(result)
        offset = int(params.get("offset", 0))
        if "limit" in params:
            result = result[offset: offset + int(params["limit"])]
        elif offset:
            result = result[offset:]

        payload = self._select(table, result, params.get("select", "*"))
        headers = {}
        if "count=exact" in prefer:
            span = f"{offset}-{offset + len(payload) - 1}" if payload else "*"
            headers["Content-Range"] = f"{span}/{total}"

        if single:
            if len(payload) != 1:
                return httpx.Response(
                    406,
                    json={
                        "code": "PGRST116",
                        "message": "JSON object requested, multiple (or no) rows returned",
                        "details": f"The result contains {len(payload)} rows",
                    },
                )
            return httpx.Response(200, json=payload[0], headers=headers)
        return httpx.Response(200, json=payload, headers=headers)


@pytest.fixture
def platform() -> FakePlatform:
    fake = FakePlatform()
    app.state.platform_transport = httpx.MockTransport(fake.handler)
    yield fake
    app.state.platform_transport = None


@pytest.fixture
def platform_client(platform: FakePlatform) -> PlatformClient:
    """Browser-context client talking to the fake platform."""
    return PlatformClient(
        PLATFORM_URL,
        ANON_KEY,
        MemoryCredentialStore(),
        transport=httpx.MockTransport(platform.handler),
    )


@pytest_asyncio.fixture(scope="function")
async def client(platform: FakePlatform) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client wired to the fake platform."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def regisseur(platform: FakePlatform) -> dict[str, Any]:
    return platform.add_user("regie@example.com", role="regisseur", username="regie")


@pytest.fixture
def intermittent(platform: FakePlatform) -> dict[str, Any]:
    return platform.add_user("tech@example.com", role="intermittent", username="tech")


@pytest.fixture
def admin(platform: FakePlatform) -> dict[str, Any]:
    return platform.add_user("admin@example.com", role="admin", username="admin")


@pytest.fixture
def sign_in(client: AsyncClient, platform: FakePlatform):
    """Put a valid session cookie for a seeded profile in the client's jar."""

    def _sign_in(profile: dict[str, Any], expires_in: int = 3600) -> str:
        email = next(e for e, u in platform.users.items() if u["id"] == profile["id"])
        value = platform.session_cookie(email, expires_in)
        # Same domain the app's Set-Cookie headers land on, so refreshes replace it
        client.cookies.set(settings.session_cookie_name, value, domain="test.local")
        return value

    return _sign_in


@pytest.fixture
def sample_event(platform: FakePlatform, regisseur: dict[str, Any]) -> dict[str, Any]:
    return platform.insert(
        "events",
        title="Festival X",
        description="Trois jours de concerts",
        status="published",
        target_group="both",
        start_date="2024-06-01",
        end_date="2024-06-02",
        location="Parc des Expositions",
        created_by=regisseur["id"],
    )
