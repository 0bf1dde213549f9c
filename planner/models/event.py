import enum
import uuid
from datetime import date, datetime
from typing import Any

from planner.models.base import TableRow


class EventStatus(enum.StrEnum):
    draft = "draft"
    published = "published"
    cancelled = "cancelled"
    completed = "completed"


class TargetGroup(enum.StrEnum):
    artistes = "artistes"
    techniques = "techniques"
    both = "both"


class Event(TableRow):
    __tablename__ = "events"

    id: uuid.UUID
    title: str
    description: str | None = None
    status: EventStatus = EventStatus.draft
    target_group: TargetGroup = TargetGroup.both
    start_date: date
    end_date: date
    location: str | None = None
    budget: float | None = None
    max_participants: int | None = None
    created_by: uuid.UUID
    version: int = 1
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Only ever set on the transition to published
    published_at: datetime | None = None
