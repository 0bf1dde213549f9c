import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse

from planner.config import get_settings
from planner.schemas.auth import (
    AuthSessionResponse,
    LoginPageResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
)
from planner.services.auth_context import AuthContext
from planner.services.platform_client import create_server_action_client
from planner.services.platform_errors import ErrorKind, PlatformError
from planner.services.profile_service import DASHBOARDS, dashboard_for
from planner.utils.auth import Auth, Client, ReadOnlyAuth

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/auth", tags=["Authentication"])
# Browser-facing routes outside the API prefix
pages_router = APIRouter(prefix="/auth", tags=["Authentication"])

REGISTER_SUCCESS = (
    "Inscription réussie! Veuillez vérifier votre email pour confirmer votre compte."
)


def safe_redirect(target: str | None) -> str:
    """Only same-site paths are accepted as redirect targets."""
    if not target or not target.startswith("/") or target.startswith("//"):
        return "/"
    return target


@router.post("/login", response_model=LoginResponse)
async def login(credentials: LoginRequest, client: Client) -> LoginResponse:
    async with AuthContext(client) as auth:
        try:
            session = await auth.sign_in(credentials.email, credentials.password)
        except PlatformError as e:
            logger.info(f"Login failed for {credentials.email}: {e.message}")
            if e.kind in (ErrorKind.invalid_credentials, ErrorKind.email_not_confirmed):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail=e.user_message,
                )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Erreur de connexion: {e.message}",
            )

        profile = auth.profile
        if profile is not None and profile.role in DASHBOARDS:
            redirect_to = dashboard_for(profile)
        else:
            redirect_to = safe_redirect(credentials.redirect_to)

        return LoginResponse(
            user_id=session.user.id,
            email=session.user.email,
            profile=profile,
            redirect_to=redirect_to,
        )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, client: Client) -> RegisterResponse:
    metadata = {
        "username": data.username,
        "full_name": data.full_name,
        "role": data.role,
    }
    async with AuthContext(client) as auth:
        try:
            result = await auth.sign_up(data.email, data.password, metadata)
        except PlatformError as e:
            logger.info(f"Registration failed for {data.email}: {e.message}")
            if e.kind == ErrorKind.conflict:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=e.user_message,
                )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Erreur d'inscription: {e.message}",
            )

    return RegisterResponse(
        user_id=result.user.id if result.user else None,
        confirmation_required=result.session is None,
        message=REGISTER_SUCCESS if result.session is None else "Inscription réussie",
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(auth: Auth) -> MessageResponse:
    await auth.sign_out()
    return MessageResponse(message="Déconnexion réussie")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(data: ResetPasswordRequest, client: Client) -> MessageResponse:
    await client.reset_password_for_email(data.email, data.redirect_to)
    return MessageResponse(
        message="Si un compte existe pour cet email, un lien de réinitialisation a été envoyé"
    )


@router.get("/session", response_model=AuthSessionResponse)
async def get_session(auth: ReadOnlyAuth) -> AuthSessionResponse:
    if not auth.is_authenticated:
        return AuthSessionResponse(authenticated=False)
    return AuthSessionResponse(
        authenticated=True,
        user_id=auth.user.id,
        email=auth.user.email,
        expires_at=auth.session.expires_at,
        profile=auth.profile,
        dashboard=dashboard_for(auth.profile),
    )


@pages_router.get("/login", response_model=LoginPageResponse)
async def login_page(
    auth: ReadOnlyAuth,
    redirect_to: Annotated[str | None, Query(alias="redirectTo")] = None,
) -> LoginPageResponse:
    if auth.is_authenticated:
        return LoginPageResponse(authenticated=True, redirect_to=dashboard_for(auth.profile))
    return LoginPageResponse(authenticated=False, redirect_to=safe_redirect(redirect_to))


@pages_router.get("/logout")
async def logout_page(request: Request) -> RedirectResponse:
    response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    client = create_server_action_client(request, response)
    await client.sign_out()
    return response
