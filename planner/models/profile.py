import enum
import uuid
from datetime import datetime

from pydantic import Field, field_validator

from planner.models.base import TableRow


class Role(enum.StrEnum):
    regisseur = "regisseur"
    intermittent = "intermittent"
    admin = "admin"


class AvailabilityStatus(enum.StrEnum):
    available = "available"
    busy = "busy"
    unavailable = "unavailable"


class Profile(TableRow):
    __tablename__ = "profiles"

    id: uuid.UUID
    username: str
    full_name: str | None = None
    avatar_url: str | None = None
    role: Role | None = None
    phone: str | None = None
    bio: str | None = None
    skills: list[str] | None = None
    availability_status: AvailabilityStatus = AvailabilityStatus.available
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("role", mode="before")
    @classmethod
    def known_role(cls, v):
        # Unknown roles are treated like a missing one
        known = {r.value for r in Role}
        return v if v in known else None

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    @property
    def can_manage_events(self) -> bool:
        return self.role in (Role.regisseur, Role.admin)


class ParticipantProfile(TableRow):
    """Subset of a profile embedded in participant listings."""

    __tablename__ = "profiles"

    id: uuid.UUID
    full_name: str | None = None
    username: str | None = None
    avatar_url: str | None = None
    role: Role | None = None
    skills: list[str] = Field(default_factory=list)
