import logging
from functools import lru_cache
from typing import Any, Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "planner-suite-02-auth"
SEVEN_DAYS = 60 * 60 * 24 * 7


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Planner Suite 02"
    debug: bool = False
    environment: Literal["development", "test", "production"] = "development"
    log_level: str = Field(default="INFO")

    # CORS
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    # Hosted auth/data platform (both mandatory)
    supabase_url: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("supabase_url", "next_public_supabase_url"),
    )
    supabase_anon_key: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("supabase_anon_key", "next_public_supabase_anon_key"),
    )
    platform_timeout: float = Field(default=10.0)

    # Session cookie
    session_cookie_name: str = Field(default=SESSION_COOKIE_NAME)
    session_cookie_max_age: int = Field(default=SEVEN_DAYS)
    session_cookie_domain: str | None = Field(default=None)
    # Sessions with fewer seconds than this left are refreshed proactively
    session_refresh_threshold: int = Field(default=300)

    login_route: str = "/auth/login"

    # Schedule export
    pdf_default_filename: str = "feuille-de-route.pdf"
    pdf_company_name: str | None = None
    pdf_logo_url: str | None = None
    # Timestamps printed on the sheet use this zone
    display_timezone: str = "Europe/Paris"

    @property
    def session_cookie_secure(self) -> bool:
        return self.environment == "production"

    def cookie_options(self) -> dict[str, Any]:
        return {
            "max_age": self.session_cookie_max_age,
            "path": "/",
            "domain": self.session_cookie_domain,
            "samesite": "lax",
            "secure": self.session_cookie_secure,
        }

    def validate_platform(self) -> None:
        if not self.supabase_url.startswith(("http://", "https://")):
            raise RuntimeError(
                "SUPABASE_URL must be an http(s) URL, "
                f"got {self.supabase_url!r}."
            )
        if self.environment == "production" and self.supabase_url.startswith("http://"):
            logger.warning("SUPABASE_URL is not using HTTPS in production")


@lru_cache
def get_settings() -> Settings:
    return Settings()
