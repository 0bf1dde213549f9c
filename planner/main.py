import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from planner.api.router import api_router, pages_router
from planner.config import get_settings
from planner.middleware.route_guard import RouteGuardMiddleware
from planner.services.auth_context import NavigationRecorder, ToastRecorder
from planner.services.platform_errors import AUTH_KINDS, PlatformError

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logging.basicConfig(level=settings.log_level.upper())
    settings.validate_platform()
    logger.info("Platform: %s (%s)", settings.supabase_url, settings.environment)
    yield


app = FastAPI(
    title=settings.app_name,
    description="Event planning and schedule sheets for regisseurs and intermittents",
    version="1.0.0",
    lifespan=lifespan,
)

# Injectable httpx transport for platform calls (tests use a mock transport)
app.state.platform_transport = None

# Navigation guard; added first so CORS wraps it
app.add_middleware(RouteGuardMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Enable GZip compression for responses > 500 bytes
app.add_middleware(GZipMiddleware, minimum_size=500)
# Include API router
app.include_router(api_router, prefix="/api/v1")
app.include_router(pages_router)


@app.get("/", include_in_schema=False)
async def root() -> dict[str, str]:
    return {"name": settings.app_name, "login": settings.login_route}


def _recorded_outcome(request: Request) -> tuple[str | None, str | None]:
    """Last error toast and redirect an ``AuthContext`` recorded for this request."""
    auth = getattr(request.state, "auth_context", None)
    if auth is None:
        return None, None
    message = None
    if isinstance(auth.notifier, ToastRecorder):
        errors = [t.message for t in auth.notifier.toasts if t.level == "error"]
        message = errors[-1] if errors else None
    redirect_to = None
    if isinstance(auth.navigate, NavigationRecorder):
        redirect_to = auth.navigate.redirect_to
    return message, redirect_to


# Global exception handlers
@app.exception_handler(PlatformError)
async def platform_error_handler(request: Request, exc: PlatformError) -> JSONResponse:
    logger.warning(
        f"Platform error on {request.method} {request.url.path}: "
        f"{exc.kind} {exc.code or ''} {exc.message}"
    )
    content = {"detail": exc.user_message, "kind": exc.kind.value}
    if exc.kind in AUTH_KINDS:
        content["redirect_to"] = settings.login_route

    # A failed retry after a refresh sends the user back to login
    message, redirect_to = _recorded_outcome(request)
    if redirect_to is not None:
        content["redirect_to"] = redirect_to
        if message is not None:
            content["detail"] = message
    return JSONResponse(status_code=exc.http_status, content=content)


def _field_errors(errors: list[dict]) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
        }
        for error in errors
    ]


@app.exception_handler(RequestValidationError)
@app.exception_handler(ValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError | ValidationError
) -> JSONResponse:
    # Platform rows that fail to parse land here too
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Données invalides", "errors": _field_errors(exc.errors())},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")

    # Don't expose internal error details in production
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Une erreur inattendue est survenue. Veuillez réessayer plus tard.",
        },
    )
