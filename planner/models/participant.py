import enum
import uuid
from datetime import datetime
from typing import Any

from pydantic import Field

from planner.models.base import TableRow
from planner.models.profile import ParticipantProfile


class ParticipationStatus(enum.StrEnum):
    invited = "invited"
    confirmed = "confirmed"
    declined = "declined"
    assigned = "assigned"
    completed = "completed"


class EventParticipant(TableRow):
    __tablename__ = "event_participants"

    id: uuid.UUID
    event_id: uuid.UUID
    user_id: uuid.UUID
    status: ParticipationStatus = ParticipationStatus.invited
    role: str | None = None
    invited_at: datetime | None = None
    responded_at: datetime | None = None
    notes: str | None = None
    metadata: dict[str, Any] | None = None
    hourly_rate: float | None = None
    total_hours: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # Embedded via select("*, profiles:user_id(...)")
    profile: ParticipantProfile | None = Field(default=None, alias="profiles")
