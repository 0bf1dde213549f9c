from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from planner.api.events import get_event_or_404
from planner.schemas.participant import (
    InvitationResponse,
    InviteRequest,
    InviteResult,
    ParticipantListResponse,
    ParticipationAction,
)
from planner.services.event_service import EventService
from planner.services.participant_service import (
    ParticipantService,
    ParticipationError,
    ParticipationPermissionError,
)
from planner.utils.auth import Auth, CurrentProfile

router = APIRouter(prefix="/events/{event_id}/participants", tags=["Participants"])


@router.get("", response_model=ParticipantListResponse)
async def list_participants(
    event_id: UUID, auth: Auth, current_profile: CurrentProfile
) -> ParticipantListResponse:
    await get_event_or_404(EventService(auth), event_id)
    participants = await ParticipantService(auth).get_for_event(event_id)
    return ParticipantListResponse(participants=participants, total=len(participants))


@router.post("/join", response_model=ParticipationAction, status_code=status.HTTP_201_CREATED)
async def join_event(
    event_id: UUID, auth: Auth, current_profile: CurrentProfile
) -> ParticipationAction:
    event = await get_event_or_404(EventService(auth), event_id)
    try:
        participant = await ParticipantService(auth).join(event)
    except ParticipationError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return ParticipationAction(
        participant=participant,
        action="joined",
        message="Vous avez rejoint l'événement avec succès",
    )


@router.post("/leave", response_model=ParticipationAction)
async def leave_event(
    event_id: UUID, auth: Auth, current_profile: CurrentProfile
) -> ParticipationAction:
    event = await get_event_or_404(EventService(auth), event_id)
    try:
        await ParticipantService(auth).leave(event)
    except ParticipationError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return ParticipationAction(
        action="left",
        message="Vous avez quitté l'événement avec succès",
    )


@router.post("/respond", response_model=ParticipationAction)
async def respond_to_invitation(
    event_id: UUID,
    data: InvitationResponse,
    auth: Auth,
    current_profile: CurrentProfile,
) -> ParticipationAction:
    event = await get_event_or_404(EventService(auth), event_id)
    try:
        participant = await ParticipantService(auth).respond(event, data.accept)
    except ParticipationError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    verdict = "acceptée" if data.accept else "refusée"
    return ParticipationAction(
        participant=participant,
        action="confirmed" if data.accept else "declined",
        message=f"Invitation {verdict} avec succès",
    )


@router.post("/invite", response_model=InviteResult, status_code=status.HTTP_201_CREATED)
async def invite_participants(
    event_id: UUID,
    data: InviteRequest,
    auth: Auth,
    current_profile: CurrentProfile,
) -> InviteResult:
    event = await get_event_or_404(EventService(auth), event_id)
    try:
        invited, already = await ParticipantService(auth).invite(
            event, data.user_ids, role=data.role, message=data.message
        )
    except ParticipationPermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return InviteResult(invited=invited, already_participating=already)
