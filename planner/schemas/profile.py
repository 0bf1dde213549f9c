from pydantic import BaseModel, Field

from planner.models import AvailabilityStatus


class ProfileUpdate(BaseModel):
    username: str | None = Field(None, min_length=3, max_length=50)
    full_name: str | None = Field(None, max_length=100)
    avatar_url: str | None = None
    phone: str | None = Field(None, max_length=30)
    bio: str | None = Field(None, max_length=2000)
    skills: list[str] | None = None
    availability_status: AvailabilityStatus | None = None
