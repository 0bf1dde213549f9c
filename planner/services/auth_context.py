"""Per-consumer authentication state.

An ``AuthContext`` is constructed around a platform client and handed to
whatever needs the current user. It mirrors the platform's session locally
and keeps the mirror in sync through the client's auth events.
"""

import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from pydantic import ValidationError

from planner.config import get_settings
from planner.models import Profile
from planner.schemas.auth import PlatformSession, PlatformUser, SignUpResult
from planner.services.platform_client import (
    AuthChangeEvent,
    ClientContext,
    PlatformClient,
    Subscription,
)
from planner.services.platform_errors import USER_MESSAGES, ErrorKind, PlatformError

logger = logging.getLogger(__name__)
settings = get_settings()

T = TypeVar("T")


class AuthState(enum.StrEnum):
    uninitialized = "uninitialized"
    loading = "loading"
    authenticated = "authenticated"
    unauthenticated = "unauthenticated"


class LifecyclePhase(enum.StrEnum):
    init = "init"
    ready = "ready"
    disposed = "disposed"


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


@dataclass
class Toast:
    level: str
    message: str


@dataclass
class ToastRecorder:
    """Default notifier: keeps the toasts so the caller can return them."""

    toasts: list[Toast] = field(default_factory=list)

    def success(self, message: str) -> None:
        logger.info(f"Toast: {message}")
        self.toasts.append(Toast("success", message))

    def error(self, message: str) -> None:
        logger.warning(f"Toast: {message}")
        self.toasts.append(Toast("error", message))


class NavigationRecorder:
    """Default navigator: remembers the last requested destination."""

    def __init__(self) -> None:
        self.redirect_to: str | None = None

    def __call__(self, path: str) -> None:
        self.redirect_to = path


class AuthContext:
    def __init__(
        self,
        client: PlatformClient,
        *,
        notifier: Notifier | None = None,
        navigate: Callable[[str], None] | None = None,
        login_route: str | None = None,
        refresh_threshold: int | None = None,
    ):
        self.client = client
        self.notifier = notifier or ToastRecorder()
        self.navigate = navigate or NavigationRecorder()
        self.login_route = login_route or settings.login_route
        self.refresh_threshold = (
            refresh_threshold
            if refresh_threshold is not None
            else settings.session_refresh_threshold
        )

        self.state = AuthState.uninitialized
        self.phase = LifecyclePhase.init
        self.session: PlatformSession | None = None
        self.user: PlatformUser | None = None
        self.profile: Profile | None = None
        self._subscription: Subscription | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.state == AuthState.authenticated

    # ----- lifecycle -----

    async def start(self) -> "AuthContext":
        if self.phase == LifecyclePhase.disposed:
            raise RuntimeError("AuthContext has been disposed")
        if self.phase == LifecyclePhase.ready:
            return self

        self._subscription = self.client.on_auth_state_change(self._on_auth_change)
        self.phase = LifecyclePhase.ready
        self.state = AuthState.loading

        try:
            session = await self.client.get_session()
        except PlatformError as e:
            logger.warning(f"Could not load session: {e.message}")
            session = None

        if session is None:
            self._clear()
            return self

        await self._enter_authenticated(session)

        # A read-only client could not keep the rotated refresh token
        if self.client.context == ClientContext.server_render:
            return self
        if session.is_near_expiry(self.refresh_threshold):
            await self.refresh_session()
        return self

    def dispose(self) -> None:
        """Unsubscribe from auth events. Idempotent."""
        if self.phase == LifecyclePhase.disposed:
            return
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self.phase = LifecyclePhase.disposed

    async def __aenter__(self) -> "AuthContext":
        return await self.start()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.dispose()

    # ----- state -----

    async def _enter_authenticated(self, session: PlatformSession) -> None:
        self.session = session
        self.user = session.user
        self.state = AuthState.authenticated
        await self._load_profile()

    async def _load_profile(self) -> None:
        if self.user is None:
            return
        try:
            self.profile = await self.client.get_user_profile(self.user.id)
        except PlatformError as e:
            logger.error(f"Failed to fetch profile for {self.user.id}: {e.message}")
            self.profile = None
        except ValidationError as e:
            logger.error(f"Malformed profile for {self.user.id}: {e}")
            self.profile = None

    def _clear(self) -> None:
        self.session = None
        self.user = None
        self.profile = None
        self.state = AuthState.unauthenticated

    async def _on_auth_change(
        self, event: AuthChangeEvent, session: PlatformSession | None
    ) -> None:
        logger.debug(f"Auth event {event}")
        if event == AuthChangeEvent.SIGNED_IN and session is not None:
            await self._enter_authenticated(session)
        elif event == AuthChangeEvent.SIGNED_OUT:
            self._clear()
        elif event == AuthChangeEvent.TOKEN_REFRESHED and session is not None:
            # Profile untouched
            self.session = session
            self.user = session.user

    # ----- operations -----

    async def sign_in(self, email: str, password: str) -> PlatformSession:
        return await self.client.sign_in_with_password(email, password)

    async def sign_up(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> SignUpResult:
        return await self.client.sign_up(email, password, metadata)

    async def sign_out(self) -> None:
        await self.client.sign_out()
        self.navigate("/")

    async def refresh_session(self) -> bool:
        try:
            await self.client.refresh_session()
        except PlatformError as e:
            logger.error(f"Session refresh failed: {e.message}")
            return False
        return True

    async def update_profile(self, updates: dict[str, Any]) -> Profile:
        if self.user is None:
            raise PlatformError(ErrorKind.unauthenticated, "No user logged in")

        async def _update() -> Profile:
            result = await (
                self.client.table("profiles")
                .update(updates)
                .eq("id", self.user.id)
                .single()
                .execute()
            )
            return result.data

        self.profile = await self.execute_auth_operation(_update)
        return self.profile

    async def execute_auth_operation(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run a platform operation on behalf of the signed-in user.

        An expired token is recovered once: the session is refreshed and the
        operation retried. If the retry fails too, the user is sent back to
        the login route and the error propagates. Other errors propagate
        untouched.
        """
        if not self.is_authenticated:
            self.navigate(self.login_route)
            raise PlatformError(ErrorKind.unauthenticated, "Not authenticated")

        try:
            return await operation()
        except PlatformError as e:
            if e.kind != ErrorKind.token_expired:
                raise
            logger.info(f"Token rejected ({e.code or e.message}), refreshing and retrying")

        await self.refresh_session()
        try:
            return await operation()
        except Exception:
            self.notifier.error(USER_MESSAGES[ErrorKind.token_expired])
            self.navigate(self.login_route)
            raise
