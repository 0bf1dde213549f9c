import enum
from datetime import date

from pydantic import BaseModel, Field, model_validator

from planner.models import Event, EventStatus, TargetGroup

END_BEFORE_START = "La date de fin doit être postérieure ou égale à la date de début"


class EventSort(enum.StrEnum):
    start_date = "start_date"
    end_date = "end_date"
    created_at = "created_at"
    title = "title"


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    target_group: TargetGroup = TargetGroup.both
    start_date: date
    end_date: date
    location: str | None = Field(None, max_length=200)
    budget: float | None = Field(None, ge=0)
    max_participants: int | None = Field(None, ge=1)

    @model_validator(mode="after")
    def end_after_start(self) -> "EventCreate":
        if self.end_date < self.start_date:
            raise ValueError(END_BEFORE_START)
        return self


class EventUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    target_group: TargetGroup | None = None
    start_date: date | None = None
    end_date: date | None = None
    location: str | None = Field(None, max_length=200)
    budget: float | None = Field(None, ge=0)
    max_participants: int | None = Field(None, ge=1)

    @model_validator(mode="after")
    def end_after_start(self) -> "EventUpdate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError(END_BEFORE_START)
        return self


class EventStatusUpdate(BaseModel):
    status: EventStatus


class EventFilter(BaseModel):
    status: list[EventStatus] | None = None
    target_group: list[TargetGroup] | None = None
    start_date: date | None = None  # Events starting on or after
    end_date: date | None = None  # Events ending on or before
    search: str | None = None
    sort_by: EventSort = EventSort.start_date
    sort_order: str = "asc"


class EventListResponse(BaseModel):
    events: list[Event]
    total: int
    page: int
    page_size: int
    has_more: bool


class EventDeletability(BaseModel):
    event_id: str
    can_delete: bool
    reason: str | None = None
