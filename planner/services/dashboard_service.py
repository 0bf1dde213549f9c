from collections import Counter
from datetime import date
from typing import Optional
from uuid import UUID

from planner.models import (
    DailySchedule,
    Event,
    EventParticipant,
    EventStatus,
    ParticipationStatus,
    Profile,
    ProposalStatus,
    Role,
)
from planner.schemas.dashboard import AdminDashboard, IntermittentDashboard, RegisseurDashboard
from planner.services.auth_context import AuthContext
from planner.services.notification_service import NotificationService
from planner.services.profile_service import ProfileService

UPCOMING_LIMIT = 5
SCHEDULE_LIMIT = 10


class DashboardService:
    def __init__(self, auth: AuthContext):
        self.auth = auth
        self.client = auth.client

    async def _run(self, query):
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data or []

    async def _events_by_status(self, created_by: Optional[UUID] = None) -> dict[str, int]:
        query = self.client.table("events").select("status")
        if created_by is not None:
            query = query.eq("created_by", created_by)
        counts = Counter(row["status"] for row in await self._run(query))
        return {s.value: counts.get(s.value, 0) for s in EventStatus}

    async def _upcoming_events(
        self,
        today: date,
        created_by: Optional[UUID] = None,
        event_ids: Optional[list[UUID]] = None,
    ) -> list[Event]:
        query = (
            self.client.table("events")
            .select("*")
            .gte("end_date", today)
            .order("start_date")
            .limit(UPCOMING_LIMIT)
        )
        if created_by is not None:
            query = query.eq("created_by", created_by)
        if event_ids is not None:
            query = query.in_("id", event_ids)
        return await self._run(query)

    async def regisseur(self, profile: Profile, today: date) -> RegisseurDashboard:
        # Admins looking at this dashboard see every event
        owner = None if profile.role == Role.admin else profile.id
        events_by_status = await self._events_by_status(owner)
        upcoming = await self._upcoming_events(today, created_by=owner)

        own_query = self.client.table("events").select("id")
        if owner is not None:
            own_query = own_query.eq("created_by", owner)
        own_ids = [row["id"] for row in await self._run(own_query)]

        pending = 0
        if own_ids:
            proposals = (
                self.client.table("date_proposals")
                .select("id", count="exact")
                .eq("status", ProposalStatus.pending)
                .in_("event_id", own_ids)
                .limit(1)
            )
            result = await self.auth.execute_auth_operation(proposals.execute)
            pending = result.count or 0

        return RegisseurDashboard(
            profile=profile,
            events_by_status=events_by_status,
            upcoming_events=upcoming,
            pending_proposals=pending,
            unread_notifications=await NotificationService(self.auth).unread_count(profile.id),
        )

    async def intermittent(self, profile: Profile, today: date) -> IntermittentDashboard:
        participations: list[EventParticipant] = await self._run(
            self.client.table("event_participants")
            .select("*")
            .eq("user_id", profile.id)
            .order("invited_at", ascending=False)
        )
        invitations = [p for p in participations if p.status == ParticipationStatus.invited]
        confirmed_ids = [
            p.event_id for p in participations if p.status == ParticipationStatus.confirmed
        ]

        upcoming: list[Event] = []
        schedules: list[DailySchedule] = []
        if confirmed_ids:
            upcoming = await self._upcoming_events(today, event_ids=confirmed_ids)
            schedules = await self._run(
                self.client.table("daily_schedules")
                .select("*")
                .in_("event_id", confirmed_ids)
                .gte("schedule_date", today)
                .order("schedule_date")
                .order("start_time")
                .limit(SCHEDULE_LIMIT)
            )

        notifications, _ = await NotificationService(self.auth).get_for_user(
            profile.id, limit=UPCOMING_LIMIT
        )
        return IntermittentDashboard(
            profile=profile,
            invitations=invitations,
            upcoming_events=upcoming,
            upcoming_schedules=schedules,
            recent_notifications=notifications,
        )

    async def admin(self, profile: Profile) -> AdminDashboard:
        events_by_status = await self._events_by_status()
        return AdminDashboard(
            profile=profile,
            users_by_role=await ProfileService(self.auth).count_by_role(),
            events_by_status=events_by_status,
            total_events=sum(events_by_status.values()),
        )
