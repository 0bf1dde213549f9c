import time
from typing import Any, Literal
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from planner.models.profile import Profile


class TokenPayload(BaseModel):
    sub: str  # Platform user id
    exp: int  # Expiration timestamp
    iat: int | None = None
    email: str | None = None
    role: str | None = None  # Postgres role ("authenticated"), not the profile role


def read_token_claims(token: str) -> TokenPayload | None:
    """Read the claims of a platform access token.

    The signature is checked by the platform on every call; here we only need
    the expiry, so the claims are read unverified.
    """
    try:
        return TokenPayload(**jwt.get_unverified_claims(token))
    except (JWTError, ValueError):
        return None


class PlatformUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: UUID
    email: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)


class PlatformSession(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int | None = None
    expires_at: int | None = None  # Epoch seconds
    user: PlatformUser

    @model_validator(mode="after")
    def fill_expires_at(self) -> "PlatformSession":
        if self.expires_at is None:
            if self.expires_in is not None:
                self.expires_at = int(time.time()) + self.expires_in
            else:
                claims = read_token_claims(self.access_token)
                if claims is not None:
                    self.expires_at = claims.exp
        return self

    def seconds_remaining(self, now: float | None = None) -> int | None:
        if self.expires_at is None:
            return None
        current = int(now if now is not None else time.time())
        return self.expires_at - current

    def is_near_expiry(self, threshold: int = 300, now: float | None = None) -> bool:
        remaining = self.seconds_remaining(now)
        return remaining is not None and remaining < threshold

    def is_expired(self, now: float | None = None) -> bool:
        remaining = self.seconds_remaining(now)
        return remaining is not None and remaining <= 0


class SignUpResult(BaseModel):
    user: PlatformUser | None = None
    # None until the email address is confirmed
    session: PlatformSession | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    redirect_to: str | None = None


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    username: str = Field(..., min_length=3, max_length=50)
    full_name: str | None = Field(None, max_length=100)
    role: Literal["regisseur", "intermittent"] = "intermittent"


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    redirect_to: str | None = None


class AuthSessionResponse(BaseModel):
    authenticated: bool
    user_id: UUID | None = None
    email: str | None = None
    expires_at: int | None = None
    profile: Profile | None = None
    dashboard: str | None = None


class LoginResponse(BaseModel):
    user_id: UUID
    email: str | None = None
    profile: Profile | None = None
    redirect_to: str
    message: str = "Connexion réussie"


class RegisterResponse(BaseModel):
    user_id: UUID | None = None
    confirmation_required: bool
    message: str


class LoginPageResponse(BaseModel):
    authenticated: bool
    redirect_to: str | None = None


class MessageResponse(BaseModel):
    message: str
