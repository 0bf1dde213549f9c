from pydantic import BaseModel

from planner.models import Notification


class NotificationListResponse(BaseModel):
    notifications: list[Notification]
    total: int
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int
