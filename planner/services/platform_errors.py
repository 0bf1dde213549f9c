import enum
from typing import Any

import httpx

# PostgREST codes for an expired or rejected JWT
TOKEN_EXPIRED_CODES = {
    "PGRST301",
    "PGRST302",
    "bad_jwt",
    "session_expired",
    "session_not_found",
    "refresh_token_not_found",
}
NOT_FOUND_CODES = {"PGRST116", "user_not_found"}
FORBIDDEN_CODES = {"42501", "not_admin"}
CONFLICT_CODES = {"23505", "user_already_exists", "email_exists"}


class ErrorKind(enum.StrEnum):
    token_expired = "token_expired"
    invalid_credentials = "invalid_credentials"
    email_not_confirmed = "email_not_confirmed"
    unauthenticated = "unauthenticated"
    not_found = "not_found"
    forbidden = "forbidden"
    conflict = "conflict"
    unknown = "unknown"


USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.token_expired: "Votre session a expiré. Veuillez vous reconnecter.",
    ErrorKind.invalid_credentials: "Email ou mot de passe incorrect",
    ErrorKind.email_not_confirmed: "Veuillez confirmer votre email avant de vous connecter",
    ErrorKind.unauthenticated: "Non authentifié",
    ErrorKind.not_found: "Ressource introuvable",
    ErrorKind.forbidden: "Vous n'avez pas les permissions nécessaires",
    ErrorKind.conflict: "Cet email est déjà utilisé",
    ErrorKind.unknown: "Une erreur inattendue est survenue",
}

HTTP_STATUSES: dict[ErrorKind, int] = {
    ErrorKind.token_expired: 401,
    ErrorKind.invalid_credentials: 401,
    ErrorKind.email_not_confirmed: 401,
    ErrorKind.unauthenticated: 401,
    ErrorKind.not_found: 404,
    ErrorKind.forbidden: 403,
    ErrorKind.conflict: 409,
    ErrorKind.unknown: 502,
}

# Kinds after which the user has to sign in again
AUTH_KINDS = {ErrorKind.token_expired, ErrorKind.unauthenticated}


class PlatformError(Exception):
    """An error returned by the hosted platform, tagged with its kind.

    ``message`` and ``code`` are the platform's own values, unchanged.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        code: str | None = None,
        status: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code
        self.status = status

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]

    @property
    def http_status(self) -> int:
        return HTTP_STATUSES[self.kind]

    def __repr__(self) -> str:
        return (
            f"PlatformError(kind={self.kind.value!r}, "
            f"message={self.message!r}, code={self.code!r})"
        )


class PlatformConfigurationError(RuntimeError):
    """Platform URL or key missing."""

    pass


def classify_error(message: str, code: str | None = None, status: int | None = None) -> ErrorKind:
    """Map a platform error to its kind.

    The order matters: credential failures are reported by the auth endpoint
    with a 400 and must not be mistaken for expired tokens.
    """
    lowered = message.lower()

    if code == "invalid_credentials" or "invalid login credentials" in lowered:
        return ErrorKind.invalid_credentials
    if code == "email_not_confirmed" or "email not confirmed" in lowered:
        return ErrorKind.email_not_confirmed
    if (
        code in TOKEN_EXPIRED_CODES
        or "JWT" in message
        or "token" in message
        or "refresh token" in lowered
    ):
        return ErrorKind.token_expired
    if code in CONFLICT_CODES or "already registered" in lowered or status == 409:
        return ErrorKind.conflict
    if code in NOT_FOUND_CODES or status == 404:
        return ErrorKind.not_found
    if code in FORBIDDEN_CODES or status == 403:
        return ErrorKind.forbidden
    return ErrorKind.unknown


def _error_fields(payload: Any) -> tuple[str | None, str | None]:
    if not isinstance(payload, dict):
        return None, None
    message = (
        payload.get("message")
        or payload.get("msg")
        or payload.get("error_description")
        or payload.get("error")
    )
    # Auth errors carry the HTTP status in "code" and the reason in "error_code"
    code = payload.get("error_code") or payload.get("code")
    if code is None and "error_description" in payload:
        code = payload.get("error")
    return (str(message) if message else None), (str(code) if code is not None else None)


def error_from_response(response: httpx.Response) -> PlatformError:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    message, code = _error_fields(payload)
    if not message:
        message = response.text or f"HTTP {response.status_code}"
    kind = classify_error(message, code, response.status_code)
    return PlatformError(kind, message, code=code, status=response.status_code)
