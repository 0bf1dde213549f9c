import logging
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from planner.models import Event, EventStatus, TargetGroup
from planner.schemas.event import (
    EventCreate,
    EventDeletability,
    EventFilter,
    EventListResponse,
    EventSort,
    EventStatusUpdate,
    EventUpdate,
)
from planner.services.event_service import (
    EventNotDeletableError,
    EventNotFoundError,
    EventPermissionError,
    EventService,
    EventValidationError,
)
from planner.utils.auth import Auth, CurrentProfile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])


async def get_event_or_404(service: EventService, event_id: UUID) -> Event:
    event = await service.get_by_id(event_id)
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Événement introuvable",
        )
    return event


def _forbidden(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


@router.get("", response_model=EventListResponse)
async def list_events(
    auth: Auth,
    current_profile: CurrentProfile,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Annotated[list[EventStatus] | None, Query(alias="status")] = None,
    target_group: Annotated[list[TargetGroup] | None, Query()] = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
    sort_by: EventSort = EventSort.start_date,
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
) -> EventListResponse:
    filters = EventFilter(
        status=status_filter,
        target_group=target_group,
        start_date=start_date,
        end_date=end_date,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    service = EventService(auth)
    events, total = await service.get_list(filters, page=page, page_size=page_size)
    return EventListResponse(
        events=events,
        total=total,
        page=page,
        page_size=page_size,
        has_more=(page * page_size) < total,
    )


@router.post("", response_model=Event, status_code=status.HTTP_201_CREATED)
async def create_event(
    event_data: EventCreate,
    auth: Auth,
    current_profile: CurrentProfile,
) -> Event:
    service = EventService(auth)
    try:
        return await service.create(event_data)
    except EventPermissionError as e:
        raise _forbidden(e)


@router.get("/{event_id}", response_model=Event)
async def get_event(event_id: UUID, auth: Auth, current_profile: CurrentProfile) -> Event:
    return await get_event_or_404(EventService(auth), event_id)


@router.patch("/{event_id}", response_model=Event)
async def update_event(
    event_id: UUID,
    event_data: EventUpdate,
    auth: Auth,
    current_profile: CurrentProfile,
) -> Event:
    service = EventService(auth)
    event = await get_event_or_404(service, event_id)
    try:
        await service.update(event, event_data)
    except EventPermissionError as e:
        raise _forbidden(e)
    except EventValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except EventNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    # Re-read so the caller sees what the platform stored
    return await get_event_or_404(service, event_id)


@router.put("/{event_id}/status", response_model=Event)
async def change_event_status(
    event_id: UUID,
    data: EventStatusUpdate,
    auth: Auth,
    current_profile: CurrentProfile,
) -> Event:
    service = EventService(auth)
    event = await get_event_or_404(service, event_id)
    try:
        await service.set_status(event, data.status)
    except EventPermissionError as e:
        raise _forbidden(e)
    except EventNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return await get_event_or_404(service, event_id)


@router.post("/{event_id}/duplicate", response_model=Event, status_code=status.HTTP_201_CREATED)
async def duplicate_event(event_id: UUID, auth: Auth, current_profile: CurrentProfile) -> Event:
    service = EventService(auth)
    event = await get_event_or_404(service, event_id)
    try:
        return await service.duplicate(event)
    except EventPermissionError as e:
        raise _forbidden(e)


@router.get("/{event_id}/deletable", response_model=EventDeletability)
async def check_event_deletable(
    event_id: UUID, auth: Auth, current_profile: CurrentProfile
) -> EventDeletability:
    service = EventService(auth)
    event = await get_event_or_404(service, event_id)
    can_delete, reason = await service.check_deletable(event)
    return EventDeletability(event_id=str(event.id), can_delete=can_delete, reason=reason)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(event_id: UUID, auth: Auth, current_profile: CurrentProfile) -> None:
    service = EventService(auth)
    event = await get_event_or_404(service, event_id)
    try:
        await service.delete(event)
    except EventPermissionError as e:
        raise _forbidden(e)
    except EventNotDeletableError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
