import logging
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Request, Response, status

from planner.api.events import get_event_or_404
from planner.config import get_settings
from planner.models import DailySchedule, TargetGroup
from planner.schemas.schedule import (
    ScheduleCreate,
    ScheduleFilter,
    ScheduleListResponse,
    ScheduleUpdate,
)
from planner.services.event_service import EventService
from planner.services.schedule_pdf_service import (
    ScheduleExportOptions,
    fetch_logo,
    schedule_pdf_response,
)
from planner.services.schedule_service import (
    SchedulePermissionError,
    ScheduleService,
    ScheduleValidationError,
)
from planner.utils.auth import Auth, CurrentProfile

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/events/{event_id}/schedules", tags=["Schedules"])


async def _get_schedule_or_404(
    service: ScheduleService, event_id: UUID, schedule_id: UUID
) -> DailySchedule:
    schedule = await service.get_by_id(event_id, schedule_id)
    if schedule is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Feuille de route introuvable",
        )
    return schedule


@router.get("", response_model=ScheduleListResponse)
async def list_schedules(
    event_id: UUID,
    auth: Auth,
    current_profile: CurrentProfile,
    start_date: date | None = None,
    end_date: date | None = None,
    target_groups: Annotated[list[TargetGroup] | None, Query()] = None,
) -> ScheduleListResponse:
    await get_event_or_404(EventService(auth), event_id)
    filters = ScheduleFilter(
        start_date=start_date,
        end_date=end_date,
        target_groups=target_groups or [],
    )
    schedules = await ScheduleService(auth).get_for_event(event_id, filters)
    return ScheduleListResponse(schedules=schedules, total=len(schedules))


@router.get("/export")
async def export_schedules(
    event_id: UUID,
    request: Request,
    auth: Auth,
    current_profile: CurrentProfile,
    target_groups: Annotated[list[TargetGroup] | None, Query()] = None,
    start_date: date | None = None,
    end_date: date | None = None,
    include_details: bool = True,
    include_logo: bool = True,
    company_name: str | None = None,
    filename: str | None = Query(None, pattern=r"^[\w\-. ]+\.pdf$"),
) -> Response:
    """Download the schedule sheet of an event as a PDF."""
    event = await get_event_or_404(EventService(auth), event_id)
    options = ScheduleExportOptions(
        include_details=include_details,
        include_logo=include_logo,
        target_groups=target_groups or [],
        logo_url=settings.pdf_logo_url,
        company_name=company_name,
    )
    # Group filtering happens in the document itself
    schedules = await ScheduleService(auth).get_for_event(
        event_id, ScheduleFilter(start_date=start_date, end_date=end_date)
    )

    logo = None
    if options.include_logo and options.logo_url:
        logo = await fetch_logo(
            options.logo_url, transport=getattr(request.app.state, "platform_transport", None)
        )

    logger.info(f"Exporting {len(schedules)} schedules of event {event_id}")
    return schedule_pdf_response(event, schedules, options, filename=filename, logo=logo)


@router.post("", response_model=DailySchedule, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    event_id: UUID,
    schedule_data: ScheduleCreate,
    auth: Auth,
    current_profile: CurrentProfile,
) -> DailySchedule:
    event = await get_event_or_404(EventService(auth), event_id)
    try:
        return await ScheduleService(auth).create(event, schedule_data)
    except SchedulePermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ScheduleValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{schedule_id}", response_model=DailySchedule)
async def update_schedule(
    event_id: UUID,
    schedule_id: UUID,
    schedule_data: ScheduleUpdate,
    auth: Auth,
    current_profile: CurrentProfile,
) -> DailySchedule:
    service = ScheduleService(auth)
    schedule = await _get_schedule_or_404(service, event_id, schedule_id)
    try:
        await service.update(schedule, schedule_data)
    except SchedulePermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ScheduleValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return await _get_schedule_or_404(service, event_id, schedule_id)


@router.post(
    "/{schedule_id}/duplicate",
    response_model=DailySchedule,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_schedule(
    event_id: UUID,
    schedule_id: UUID,
    auth: Auth,
    current_profile: CurrentProfile,
) -> DailySchedule:
    service = ScheduleService(auth)
    schedule = await _get_schedule_or_404(service, event_id, schedule_id)
    try:
        return await service.duplicate(schedule)
    except SchedulePermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
    event_id: UUID,
    schedule_id: UUID,
    auth: Auth,
    current_profile: CurrentProfile,
) -> None:
    service = ScheduleService(auth)
    schedule = await _get_schedule_or_404(service, event_id, schedule_id)
    try:
        await service.delete(schedule)
    except SchedulePermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
