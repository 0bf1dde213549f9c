import logging
from typing import Optional
from uuid import UUID

from planner.models import Event, EventParticipant, EventStatus, ParticipationStatus
from planner.services.auth_context import AuthContext
from planner.services.event_service import can_manage_event
from planner.services.notification_service import NotificationService
from planner.utils.dates import utc_now

logger = logging.getLogger(__name__)

PARTICIPANT_SELECT = "*, profiles:user_id(id, full_name, username, avatar_url, role, skills)"


class ParticipantService:
    def __init__(self, auth: AuthContext):
        self.auth = auth
        self.client = auth.client

    def _current_user_id(self) -> UUID:
        if self.auth.profile is None:
            raise ParticipationError("Profil introuvable")
        return self.auth.profile.id

    async def get_for_event(self, event_id: UUID) -> list[EventParticipant]:
        query = (
            self.client.table("event_participants")
            .select(PARTICIPANT_SELECT)
            .eq("event_id", event_id)
            .order("invited_at", ascending=False)
        )
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data or []

    async def get_participation(self, event_id: UUID, user_id: UUID) -> Optional[EventParticipant]:
        query = (
            self.client.table("event_participants")
            .select("*")
            .eq("event_id", event_id)
            .eq("user_id", user_id)
            .maybe_single()
        )
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data

    async def join(self, event: Event) -> EventParticipant:
        user_id = self._current_user_id()
        if event.status != EventStatus.published:
            raise ParticipationError("Cet événement n'est pas ouvert aux inscriptions")
        if await self.get_participation(event.id, user_id) is not None:
            raise ParticipationError("Vous participez déjà à cet événement")

        values = {
            "event_id": event.id,
            "user_id": user_id,
            "status": ParticipationStatus.confirmed,
            "responded_at": utc_now(),
        }
        query = self.client.table("event_participants").insert(values).single()
        result = await self.auth.execute_auth_operation(query.execute)
        logger.info(f"User {user_id} joined event {event.id}")
        return result.data

    async def leave(self, event: Event) -> None:
        user_id = self._current_user_id()
        participation = await self.get_participation(event.id, user_id)
        if participation is None:
            raise ParticipationError("Vous ne participez pas à cet événement")

        query = self.client.table("event_participants").delete().eq("id", participation.id)
        await self.auth.execute_auth_operation(query.execute)
        logger.info(f"User {user_id} left event {event.id}")

    async def respond(self, event: Event, accept: bool) -> EventParticipant:
        user_id = self._current_user_id()
        participation = await self.get_participation(event.id, user_id)
        if participation is None:
            raise ParticipationError("Aucune invitation pour cet événement")

        values = {
            "status": ParticipationStatus.confirmed if accept else ParticipationStatus.declined,
            "responded_at": utc_now(),
        }
        query = (
            self.client.table("event_participants")
            .update(values)
            .eq("id", participation.id)
            .single()
        )
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data

    async def invite(
        self,
        event: Event,
        user_ids: list[UUID],
        role: Optional[str] = None,
        message: Optional[str] = None,
    ) -> tuple[list[EventParticipant], list[UUID]]:
        """Invite users and notify them. Returns (invited, already participating)."""
        if not can_manage_event(self.auth.profile, event):
            raise ParticipationPermissionError("Vous n'avez pas les permissions nécessaires")
        inviter = self._current_user_id()

        existing_query = (
            self.client.table("event_participants")
            .select("user_id")
            .eq("event_id", event.id)
            .in_("user_id", user_ids)
        )
        existing = await self.auth.execute_auth_operation(existing_query.execute)
        already = {UUID(str(row["user_id"])) for row in existing.data or []}

        new_ids = [uid for uid in dict.fromkeys(user_ids) if uid not in already]
        if not new_ids:
            return [], sorted(already, key=str)

        now = utc_now()
        rows = [
            {
                "event_id": event.id,
                "user_id": uid,
                "status": ParticipationStatus.invited,
                "role": role,
                "invited_at": now,
            }
            for uid in new_ids
        ]
        query = self.client.table("event_participants").insert(rows)
        result = await self.auth.execute_auth_operation(query.execute)

        notifications = NotificationService(self.auth)
        for uid in new_ids:
            await notifications.notify_event_invite(
                uid, event.id, event.title, invited_by=inviter, role=role, message=message
            )

        logger.info(f"Invited {len(new_ids)} users to event {event.id}")
        return result.data or [], sorted(already, key=str)


class ParticipationError(Exception):
    pass


class ParticipationPermissionError(Exception):
    pass
