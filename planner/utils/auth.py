from collections.abc import AsyncGenerator, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status

from planner.config import get_settings
from planner.models import Profile, Role
from planner.services.auth_context import AuthContext
from planner.services.platform_client import (
    PlatformClient,
    create_server_action_client,
    create_server_render_client,
)
from planner.services.platform_errors import ErrorKind, PlatformError

settings = get_settings()


def get_platform_client(request: Request, response: Response) -> PlatformClient:
    """Request-scoped client; session cookie changes land on the response."""
    return create_server_action_client(request, response)


async def get_auth_context(
    request: Request,
    client: Annotated[PlatformClient, Depends(get_platform_client)],
) -> AsyncGenerator[AuthContext, None]:
    context = AuthContext(client)
    await context.start()
    request.state.auth_context = context
    try:
        yield context
    finally:
        context.dispose()


async def get_read_only_auth_context(request: Request) -> AsyncGenerator[AuthContext, None]:
    """Context for routes that only read the session; cookies are never written."""
    async with AuthContext(create_server_render_client(request)) as context:
        yield context


async def get_current_profile(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> Profile:
    if not auth.is_authenticated:
        raise PlatformError(ErrorKind.unauthenticated, "Auth session missing!")
    if auth.profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profil introuvable",
        )
    return auth.profile


def require_roles(*roles: Role) -> Callable:
    """Dependency that only lets the given roles through."""

    async def checker(profile: Annotated[Profile, Depends(get_current_profile)]) -> Profile:
        if profile.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Vous n'avez pas les permissions nécessaires",
            )
        return profile

    return checker


# Type aliases for dependency injection
Client = Annotated[PlatformClient, Depends(get_platform_client)]
Auth = Annotated[AuthContext, Depends(get_auth_context)]
ReadOnlyAuth = Annotated[AuthContext, Depends(get_read_only_auth_context)]
CurrentProfile = Annotated[Profile, Depends(get_current_profile)]
ManagerProfile = Annotated[Profile, Depends(require_roles(Role.regisseur, Role.admin))]
AdminProfile = Annotated[Profile, Depends(require_roles(Role.admin))]
