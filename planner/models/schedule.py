import uuid
from collections.abc import Iterable
from datetime import date, datetime, time

from pydantic import Field, field_validator

from planner.models.base import TableRow
from planner.models.event import TargetGroup


class DailySchedule(TableRow):
    __tablename__ = "daily_schedules"

    id: uuid.UUID
    event_id: uuid.UUID
    schedule_date: date
    start_time: time
    end_time: time
    title: str
    description: str | None = None
    target_groups: list[TargetGroup] = Field(default_factory=list)
    location: str | None = None
    required_skills: list[str] = Field(default_factory=list)
    max_participants: int | None = None
    is_mandatory: bool = False
    responsible_person: str | None = None
    created_by: uuid.UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("required_skills", mode="before")
    @classmethod
    def null_skills(cls, v):
        return v or []

    @field_validator("target_groups", mode="before")
    @classmethod
    def drop_unknown_groups(cls, v):
        # Unrecognized tags are kept out so the row still parses
        if not v:
            return []
        known = {g.value for g in TargetGroup}
        return [g for g in v if g in known]

    def is_for_any(self, groups: Iterable[TargetGroup | str]) -> bool:
        """True when the entry targets one of ``groups`` or is tagged ``both``."""
        if TargetGroup.both in self.target_groups:
            return True
        wanted = {TargetGroup(g) for g in groups}
        return any(g in wanted for g in self.target_groups)
