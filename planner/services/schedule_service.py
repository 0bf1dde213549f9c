import logging
from typing import Optional
from uuid import UUID

from planner.models import DailySchedule, Event
from planner.schemas.schedule import (
    END_BEFORE_START,
    ScheduleCreate,
    ScheduleFilter,
    ScheduleUpdate,
)
from planner.services.auth_context import AuthContext
from planner.services.schedule_pdf_service import filter_schedules
from planner.utils.dates import utc_now

logger = logging.getLogger(__name__)

DUPLICATE_RESET_FIELDS = {"id", "created_at", "updated_at", "created_by"}


class ScheduleService:
    def __init__(self, auth: AuthContext):
        self.auth = auth
        self.client = auth.client

    def _require_manager(self) -> UUID:
        profile = self.auth.profile
        if profile is None or not profile.can_manage_events:
            raise SchedulePermissionError("Vous n'avez pas les permissions nécessaires")
        return profile.id

    async def get_for_event(
        self, event_id: UUID, filters: Optional[ScheduleFilter] = None
    ) -> list[DailySchedule]:
        filters = filters or ScheduleFilter()
        query = (
            self.client.table("daily_schedules")
            .select("*")
            .eq("event_id", event_id)
            .order("schedule_date")
            .order("start_time")
        )
        if filters.start_date:
            query = query.gte("schedule_date", filters.start_date)
        if filters.end_date:
            query = query.lte("schedule_date", filters.end_date)

        result = await self.auth.execute_auth_operation(query.execute)
        # Array columns are filtered here, with the same rule as the export
        return filter_schedules(result.data or [], filters.target_groups)

    async def get_by_id(self, event_id: UUID, schedule_id: UUID) -> Optional[DailySchedule]:
        query = (
            self.client.table("daily_schedules")
            .select("*")
            .eq("id", schedule_id)
            .eq("event_id", event_id)
            .maybe_single()
        )
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data

    async def create(self, event: Event, schedule_data: ScheduleCreate) -> DailySchedule:
        user_id = self._require_manager()
        if not event.start_date <= schedule_data.schedule_date <= event.end_date:
            raise ScheduleValidationError(
                "La date doit être comprise dans les dates de l'événement"
            )

        values = schedule_data.model_dump(mode="json")
        values.update(event_id=event.id, created_by=user_id)
        query = self.client.table("daily_schedules").insert(values).single()
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data

    async def update(self, schedule: DailySchedule, schedule_data: ScheduleUpdate) -> DailySchedule:
        self._require_manager()
        values = schedule_data.model_dump(mode="json", exclude_unset=True)
        start = schedule_data.start_time or schedule.start_time
        end = schedule_data.end_time or schedule.end_time
        if end <= start:
            raise ScheduleValidationError(END_BEFORE_START)
        if not values:
            return schedule

        values["updated_at"] = utc_now()
        query = (
            self.client.table("daily_schedules")
            .update(values)
            .eq("id", schedule.id)
            .single()
        )
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data

    async def duplicate(self, schedule: DailySchedule) -> DailySchedule:
        user_id = self._require_manager()
        values = schedule.model_dump(mode="json", exclude=DUPLICATE_RESET_FIELDS)
        values.update(title=f"Copie de {schedule.title}", created_by=user_id)
        query = self.client.table("daily_schedules").insert(values).single()
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data

    async def delete(self, schedule: DailySchedule) -> None:
        self._require_manager()
        query = self.client.table("daily_schedules").delete().eq("id", schedule.id)
        await self.auth.execute_auth_operation(query.execute)
        logger.info(f"Schedule {schedule.id} deleted from event {schedule.event_id}")


class SchedulePermissionError(Exception):
    pass


class ScheduleValidationError(Exception):
    pass
