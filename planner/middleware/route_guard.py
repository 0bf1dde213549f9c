"""Navigation guard run before every request.

The decision is an ordered tuple of guards. Each guard looks at the request
and either settles it (``Allow`` or ``Redirect``) or returns ``None`` to defer
to the next one. A request no guard settles is allowed.
"""

import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from urllib.parse import urlencode

from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from planner.config import get_settings
from planner.models import Profile, Role
from planner.schemas.auth import PlatformSession
from planner.services.platform_client import (
    CookieCredentialStore,
    PlatformClient,
    create_middleware_client,
)
from planner.services.platform_errors import PlatformError

logger = logging.getLogger(__name__)
settings = get_settings()

STATIC_ASSET = re.compile(r"\.(jpg|jpeg|png|gif|svg|ico|css|js)$", re.IGNORECASE)

PUBLIC_ROUTES = (
    "/",
    "/auth/login",
    "/auth/register",
    "/auth/logout",
    "/auth/reset-password",
    "/auth/callback",
    "/api/auth/callback",
    "/api/v1/health",
    "/api/v1/auth",
    "/docs",
    "/openapi.json",
)

ROLE_RESTRICTED_ROUTES: dict[str, frozenset[Role]] = {
    "/dashboard/regisseur": frozenset({Role.regisseur, Role.admin}),
    "/dashboard/admin": frozenset({Role.admin}),
}


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Redirect:
    target: str


Decision = Allow | Redirect


@dataclass
class RoutePolicy:
    public_routes: Sequence[str] = PUBLIC_ROUTES
    role_routes: dict[str, frozenset[Role]] = field(
        default_factory=lambda: dict(ROLE_RESTRICTED_ROUTES)
    )
    login_route: str = settings.login_route
    refresh_threshold: int = settings.session_refresh_threshold


def matches_pattern(path: str, pattern: str) -> bool:
    """``pattern`` matches itself and anything below it."""
    if path == pattern:
        return True
    # The root pattern covers the home page only
    return pattern != "/" and path.startswith(pattern + "/")


class GuardRequest:
    """What the guards see of a request.

    The session and profile are fetched lazily and at most once.
    """

    _unset = object()

    def __init__(
        self,
        path: str,
        client: PlatformClient,
        policy: RoutePolicy | None = None,
    ):
        self.path = path
        self.client = client
        self.policy = policy or RoutePolicy()
        self._session: object = self._unset
        self._profile: object = self._unset

    async def session(self) -> PlatformSession | None:
        if self._session is self._unset:
            self._session = await self.client.get_session()
        return self._session

    def replace_session(self, session: PlatformSession) -> None:
        self._session = session

    async def profile(self) -> Profile | None:
        if self._profile is self._unset:
            session = await self.session()
            if session is None:
                self._profile = None
            else:
                try:
                    self._profile = await self.client.get_user_profile(session.user.id)
                except PlatformError as e:
                    logger.error(f"Could not load profile for route guard: {e.message}")
                    self._profile = None
                except ValidationError as e:
                    logger.error(f"Malformed profile for {session.user.id}: {e}")
                    self._profile = None
        return self._profile


Guard = Callable[[GuardRequest], Awaitable[Decision | None]]


async def allow_public_routes(request: GuardRequest) -> Decision | None:
    if STATIC_ASSET.search(request.path):
        return Allow()
    if any(matches_pattern(request.path, p) for p in request.policy.public_routes):
        return Allow()
    return None


async def require_session(request: GuardRequest) -> Decision | None:
    try:
        session = await request.session()
    except PlatformError as e:
        logger.info(f"Session lookup failed for {request.path}: {e.message}")
        session = None

    if session is None:
        query = urlencode({"redirectTo": request.path})
        return Redirect(f"{request.policy.login_route}?{query}")
    return None


async def refresh_near_expiry(request: GuardRequest) -> Decision | None:
    session = await request.session()
    if session is None or not session.is_near_expiry(request.policy.refresh_threshold):
        return None
    try:
        refreshed = await request.client.refresh_session(session.refresh_token)
    except PlatformError as e:
        logger.error(f"Session refresh failed in route guard: {e.message}")
        return None
    request.replace_session(refreshed)
    return None


async def enforce_role_restrictions(request: GuardRequest) -> Decision | None:
    allowed = None
    for pattern, roles in request.policy.role_routes.items():
        if matches_pattern(request.path, pattern):
            allowed = roles
            break
    if allowed is None:
        return None

    profile = await request.profile()
    role = profile.role if profile is not None else None
    if role in allowed:
        return None

    if role == Role.intermittent:
        return Redirect("/dashboard/intermittent")
    if role == Role.regisseur and matches_pattern(request.path, "/dashboard/admin"):
        return Redirect("/dashboard/regisseur")
    return Redirect("/")


DEFAULT_GUARDS: tuple[Guard, ...] = (
    allow_public_routes,
    require_session,
    refresh_near_expiry,
    enforce_role_restrictions,
)


async def evaluate(request: GuardRequest, guards: Sequence[Guard] = DEFAULT_GUARDS) -> Decision:
    for guard in guards:
        decision = await guard(request)
        if decision is not None:
            return decision
    return Allow()


def forward_cookies(request: Request, cookies: dict[str, str]) -> None:
    """Rewrite the request's Cookie header so handlers see refreshed credentials."""
    headers = [(k, v) for k, v in request.scope["headers"] if k != b"cookie"]
    if cookies:
        value = "; ".join(f"{name}={token}" for name, token in cookies.items())
        headers.append((b"cookie", value.encode("latin-1")))
    request.scope["headers"] = headers


class RouteGuardMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        guards: Sequence[Guard] = DEFAULT_GUARDS,
        policy: RoutePolicy | None = None,
    ):
        super().__init__(app)
        self.guards = tuple(guards)
        self.policy = policy or RoutePolicy()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            return await call_next(request)

        client = create_middleware_client(request)
        decision = await evaluate(GuardRequest(request.url.path, client, self.policy), self.guards)

        if isinstance(decision, Redirect):
            logger.debug(f"Redirecting {request.url.path} -> {decision.target}")
            response: Response = RedirectResponse(decision.target, status_code=307)
        else:
            storage = client.storage
            if isinstance(storage, CookieCredentialStore) and storage.has_pending_writes:
                forward_cookies(request, storage.cookies)
            response = await call_next(request)

        if isinstance(client.storage, CookieCredentialStore):
            client.storage.apply_to(response)
        return response
