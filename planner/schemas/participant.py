from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from planner.models import EventParticipant


class ParticipantListResponse(BaseModel):
    participants: list[EventParticipant]
    total: int


class InvitationResponse(BaseModel):
    accept: bool


class InviteRequest(BaseModel):
    user_ids: list[UUID] = Field(..., min_length=1, max_length=100)
    role: str | None = Field(None, max_length=50)
    message: str | None = Field(None, max_length=500)


class InviteResult(BaseModel):
    invited: list[EventParticipant]
    already_participating: list[UUID] = Field(default_factory=list)


class ParticipationAction(BaseModel):
    participant: EventParticipant | None = None
    action: Literal["joined", "left", "confirmed", "declined"]
    message: str
