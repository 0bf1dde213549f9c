from uuid import UUID

from fastapi import APIRouter, HTTPException, Query

from planner.models import Notification
from planner.schemas.notification import MarkAllReadResponse, NotificationListResponse
from planner.services.notification_service import NotificationService
from planner.utils.auth import Auth, CurrentProfile

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    auth: Auth,
    current_profile: CurrentProfile,
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
) -> NotificationListResponse:
    service = NotificationService(auth)
    notifications, total = await service.get_for_user(
        current_profile.id, unread_only=unread_only, limit=limit
    )
    unread = await service.unread_count(current_profile.id)
    return NotificationListResponse(
        notifications=notifications,
        total=total,
        unread_count=unread,
    )


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_notification_read(
    notification_id: UUID,
    auth: Auth,
    current_profile: CurrentProfile,
) -> Notification:
    notification = await NotificationService(auth).mark_read(current_profile.id, notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification introuvable")
    return notification


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_notifications_read(
    auth: Auth, current_profile: CurrentProfile
) -> MarkAllReadResponse:
    updated = await NotificationService(auth).mark_all_read(current_profile.id)
    return MarkAllReadResponse(updated=updated)
