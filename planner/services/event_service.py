import logging
from typing import Any, Optional
from uuid import UUID

from planner.models import Event, EventStatus, Profile, Role
from planner.schemas.event import EventCreate, EventFilter, EventUpdate
from planner.services.auth_context import AuthContext
from planner.services.platform_errors import ErrorKind, PlatformError
from planner.utils.dates import utc_now

logger = logging.getLogger(__name__)

# Columns never copied when duplicating an event
DUPLICATE_RESET_FIELDS = {"id", "created_at", "updated_at", "published_at", "version"}


def can_manage_event(profile: Optional[Profile], event: Event) -> bool:
    if profile is None:
        return False
    if profile.role == Role.admin:
        return True
    return profile.role == Role.regisseur and event.created_by == profile.id


class EventService:
    def __init__(self, auth: AuthContext):
        self.auth = auth
        self.client = auth.client

    @property
    def profile(self) -> Optional[Profile]:
        return self.auth.profile

    def _require_manager(self) -> Profile:
        if self.profile is None or not self.profile.can_manage_events:
            raise EventPermissionError("Vous n'avez pas les permissions nécessaires")
        return self.profile

    def _require_manage(self, event: Event) -> None:
        if not can_manage_event(self.profile, event):
            raise EventPermissionError("Vous n'avez pas les permissions nécessaires")

    async def get_list(
        self,
        filters: EventFilter,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Event], int]:
        query = self.client.table("events").select("*", count="exact")

        if filters.status:
            query = query.in_("status", filters.status)
        if filters.target_group:
            query = query.in_("target_group", filters.target_group)
        if filters.start_date:
            query = query.gte("start_date", filters.start_date)
        if filters.end_date:
            query = query.lte("end_date", filters.end_date)
        if filters.search:
            query = query.ilike("title", f"%{filters.search}%")

        # Everyone but managers sees published events and the ones they take part in
        if self.profile is not None and not self.profile.can_manage_events:
            event_ids = await self._participating_event_ids(self.profile.id)
            if event_ids:
                ids = ",".join(str(i) for i in event_ids)
                query = query.or_(f"status.eq.published,id.in.({ids})")
            else:
                query = query.eq("status", EventStatus.published)

        query = query.order(filters.sort_by, ascending=filters.sort_order == "asc")
        offset = (page - 1) * page_size
        query = query.range(offset, offset + page_size - 1)

        result = await self.auth.execute_auth_operation(query.execute)
        events = result.data or []
        total = result.count if result.count is not None else len(events)
        return events, total

    async def _participating_event_ids(self, user_id: UUID) -> list[UUID]:
        query = self.client.table("event_participants").select("event_id").eq("user_id", user_id)
        result = await self.auth.execute_auth_operation(query.execute)
        return [UUID(str(row["event_id"])) for row in result.data or []]

    async def get_by_id(self, event_id: UUID) -> Optional[Event]:
        query = self.client.table("events").select("*").eq("id", event_id).maybe_single()
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data

    async def create(self, event_data: EventCreate) -> Event:
        profile = self._require_manager()
        values = event_data.model_dump(mode="json")
        values.update(status=EventStatus.draft, created_by=profile.id)

        query = self.client.table("events").insert(values).single()
        result = await self.auth.execute_auth_operation(query.execute)
        logger.info(f"Event {result.data.id} created by {profile.id}")
        return result.data

    async def update(self, event: Event, event_data: EventUpdate) -> Event:
        self._require_manage(event)
        values = event_data.model_dump(mode="json", exclude_unset=True)

        start = event_data.start_date or event.start_date
        end = event_data.end_date or event.end_date
        if end < start:
            raise EventValidationError(
                "La date de fin doit être postérieure ou égale à la date de début"
            )
        if not values:
            return event

        values["updated_at"] = utc_now()
        return await self._write(event.id, values)

    async def set_status(self, event: Event, new_status: EventStatus) -> Event:
        self._require_manage(event)
        values: dict[str, Any] = {"status": new_status, "updated_at": utc_now()}
        if new_status == EventStatus.published and event.status != EventStatus.published:
            values["published_at"] = utc_now()
        elif new_status == EventStatus.draft:
            values["published_at"] = None
        logger.info(f"Event {event.id}: {event.status} -> {new_status}")
        return await self._write(event.id, values)

    async def duplicate(self, event: Event) -> Event:
        profile = self._require_manager()
        values = event.model_dump(mode="json", exclude=DUPLICATE_RESET_FIELDS)
        values.update(
            title=f"Copie de {event.title}",
            status=EventStatus.draft,
            created_by=profile.id,
        )
        query = self.client.table("events").insert(values).single()
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data

    async def check_deletable(self, event: Event) -> tuple[bool, Optional[str]]:
        """Whether ``event`` can be deleted, with the reason when it can't."""
        if event.status != EventStatus.draft:
            query = (
                self.client.table("event_participants")
                .select("id")
                .eq("event_id", event.id)
                .limit(1)
            )
            result = await self.auth.execute_auth_operation(query.execute)
            if result.data:
                return False, "Impossible de supprimer un événement avec des participants"

        allowed = await self.auth.execute_auth_operation(
            lambda: self.client.rpc("can_delete_event", {"event_id": event.id})
        )
        if allowed is False:
            return False, "Cet événement ne peut pas être supprimé"
        return True, None

    async def delete(self, event: Event) -> None:
        self._require_manage(event)
        can_delete, reason = await self.check_deletable(event)
        if not can_delete:
            raise EventNotDeletableError(reason)

        query = self.client.table("events").delete().eq("id", event.id)
        await self.auth.execute_auth_operation(query.execute)
        logger.info(f"Event {event.id} deleted")

    async def _write(self, event_id: UUID, values: dict[str, Any]) -> Event:
        query = self.client.table("events").update(values).eq("id", event_id).single()
        try:
            result = await self.auth.execute_auth_operation(query.execute)
        except PlatformError as e:
            if e.kind == ErrorKind.not_found:
                raise EventNotFoundError("Événement introuvable") from e
            raise
        return result.data


class EventPermissionError(Exception):
    pass


class EventValidationError(Exception):
    pass


class EventNotDeletableError(Exception):
    pass


class EventNotFoundError(Exception):
    pass
