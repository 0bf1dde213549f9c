from pydantic import BaseModel, Field

from planner.models import DailySchedule, Event, EventParticipant, Notification, Profile


class RegisseurDashboard(BaseModel):
    profile: Profile
    events_by_status: dict[str, int]
    upcoming_events: list[Event]
    pending_proposals: int
    unread_notifications: int


class IntermittentDashboard(BaseModel):
    profile: Profile
    invitations: list[EventParticipant]
    upcoming_events: list[Event]
    upcoming_schedules: list[DailySchedule]
    recent_notifications: list[Notification]


class AdminDashboard(BaseModel):
    profile: Profile
    users_by_role: dict[str, int]
    events_by_status: dict[str, int]
    total_events: int = Field(ge=0)
