from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from planner.models import DateProposal


class ProposalCreate(BaseModel):
    proposed_date: date
    alternative_dates: list[date] = Field(default_factory=list, max_length=10)
    notes: str | None = Field(None, max_length=1000)


class ProposalReview(BaseModel):
    status: Literal["accepted", "rejected"]
    notes: str | None = Field(None, max_length=1000)


class ProposalListResponse(BaseModel):
    proposals: list[DateProposal]
    total: int
