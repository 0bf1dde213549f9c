import enum
import uuid
from datetime import date, datetime

from pydantic import Field, field_validator

from planner.models.base import TableRow


class ProposalStatus(enum.StrEnum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class DateProposal(TableRow):
    __tablename__ = "date_proposals"

    id: uuid.UUID
    event_id: uuid.UUID
    proposed_by: uuid.UUID
    proposed_date: date
    alternative_dates: list[date] = Field(default_factory=list)
    status: ProposalStatus = ProposalStatus.pending
    notes: str | None = None
    reviewed_by: uuid.UUID | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("alternative_dates", mode="before")
    @classmethod
    def null_dates(cls, v):
        return v or []
