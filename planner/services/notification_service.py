import logging
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from planner.models import (
    EventInviteMetadata,
    Notification,
    NotificationType,
    ProposalResponseMetadata,
    RelatedType,
)
from planner.models.notification import metadata_payload
from planner.services.auth_context import AuthContext

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, auth: AuthContext):
        self.auth = auth
        self.client = auth.client

    async def get_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> tuple[list[Notification], int]:
        query = (
            self.client.table("notifications")
            .select("*", count="exact")
            .eq("user_id", user_id)
            .order("created_at", ascending=False)
            .limit(limit)
        )
        if unread_only:
            query = query.eq("is_read", False)
        result = await self.auth.execute_auth_operation(query.execute)
        notifications = result.data or []
        total = result.count if result.count is not None else len(notifications)
        return notifications, total

    async def unread_count(self, user_id: UUID) -> int:
        query = (
            self.client.table("notifications")
            .select("id", count="exact")
            .eq("user_id", user_id)
            .eq("is_read", False)
            .limit(1)
        )
        result = await self.auth.execute_auth_operation(query.execute)
        return result.count or 0

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> Optional[Notification]:
        query = (
            self.client.table("notifications")
            .update({"is_read": True})
            .eq("id", notification_id)
            .eq("user_id", user_id)
            .maybe_single()
        )
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data

    async def mark_all_read(self, user_id: UUID) -> int:
        query = (
            self.client.table("notifications")
            .update({"is_read": True})
            .eq("user_id", user_id)
            .eq("is_read", False)
        )
        result = await self.auth.execute_auth_operation(query.execute)
        return len(result.data or [])

    async def notify(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: Optional[str] = None,
        related_id: Optional[UUID] = None,
        related_type: Optional[RelatedType] = None,
        metadata: Optional[BaseModel] = None,
    ) -> Notification:
        values = {
            "user_id": user_id,
            "type": type,
            "title": title,
            "message": message,
            "related_id": related_id,
            "related_type": related_type,
            "metadata": metadata_payload(metadata),
            "is_read": False,
        }
        query = self.client.table("notifications").insert(values).single()
        result = await self.auth.execute_auth_operation(query.execute)
        logger.debug(f"Notification {type} sent to {user_id}")
        return result.data

    async def notify_event_invite(
        self,
        user_id: UUID,
        event_id: UUID,
        event_title: str,
        invited_by: UUID,
        role: Optional[str] = None,
        message: Optional[str] = None,
    ) -> Notification:
        return await self.notify(
            user_id,
            NotificationType.event_invite,
            title=f"Invitation : {event_title}",
            message=message or f"Vous êtes invité(e) à participer à « {event_title} ».",
            related_id=event_id,
            related_type=RelatedType.event,
            metadata=EventInviteMetadata(
                event_id=event_id, event_title=event_title, invited_by=invited_by, role=role
            ),
        )

    async def notify_proposal_response(
        self,
        user_id: UUID,
        proposal_id: UUID,
        event_id: UUID,
        accepted: bool,
    ) -> Notification:
        metadata = ProposalResponseMetadata(
            proposal_id=proposal_id,
            event_id=event_id,
            status="accepted" if accepted else "rejected",
        )
        verdict = "acceptée" if accepted else "refusée"
        return await self.notify(
            user_id,
            NotificationType.proposal_response,
            title=f"Proposition de date {verdict}",
            message=f"Votre proposition de date a été {verdict}.",
            related_id=proposal_id,
            related_type=RelatedType.proposal,
            metadata=metadata,
        )
