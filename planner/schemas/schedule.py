from datetime import date, time

from pydantic import BaseModel, Field, model_validator

from planner.models import DailySchedule, TargetGroup

END_BEFORE_START = "L'heure de fin doit être postérieure à l'heure de début"


class ScheduleCreate(BaseModel):
    schedule_date: date
    start_time: time
    end_time: time
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    target_groups: list[TargetGroup] = Field(default_factory=lambda: [TargetGroup.both])
    location: str | None = Field(None, max_length=200)
    required_skills: list[str] = Field(default_factory=list)
    max_participants: int | None = Field(None, ge=1)
    is_mandatory: bool = False
    responsible_person: str | None = Field(None, max_length=100)

    @model_validator(mode="after")
    def end_after_start(self) -> "ScheduleCreate":
        if self.end_time <= self.start_time:
            raise ValueError(END_BEFORE_START)
        return self


class ScheduleUpdate(BaseModel):
    schedule_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    target_groups: list[TargetGroup] | None = None
    location: str | None = Field(None, max_length=200)
    required_skills: list[str] | None = None
    max_participants: int | None = Field(None, ge=1)
    is_mandatory: bool | None = None
    responsible_person: str | None = Field(None, max_length=100)

    @model_validator(mode="after")
    def end_after_start(self) -> "ScheduleUpdate":
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError(END_BEFORE_START)
        return self


class ScheduleFilter(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    target_groups: list[TargetGroup] = Field(default_factory=list)


class ScheduleListResponse(BaseModel):
    schedules: list[DailySchedule]
    total: int
