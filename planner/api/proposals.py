from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from planner.api.events import get_event_or_404
from planner.models import DateProposal, ProposalStatus
from planner.schemas.proposal import ProposalCreate, ProposalListResponse, ProposalReview
from planner.services.event_service import EventService
from planner.services.proposal_service import (
    ProposalError,
    ProposalPermissionError,
    ProposalService,
)
from planner.utils.auth import Auth, CurrentProfile

router = APIRouter(prefix="/events/{event_id}/proposals", tags=["Date proposals"])


@router.get("", response_model=ProposalListResponse)
async def list_proposals(
    event_id: UUID,
    auth: Auth,
    current_profile: CurrentProfile,
    status_filter: Annotated[ProposalStatus | None, Query(alias="status")] = None,
) -> ProposalListResponse:
    await get_event_or_404(EventService(auth), event_id)
    proposals = await ProposalService(auth).get_for_event(event_id, status_filter)
    return ProposalListResponse(proposals=proposals, total=len(proposals))


@router.post("", response_model=DateProposal, status_code=status.HTTP_201_CREATED)
async def propose_date(
    event_id: UUID,
    data: ProposalCreate,
    auth: Auth,
    current_profile: CurrentProfile,
) -> DateProposal:
    event = await get_event_or_404(EventService(auth), event_id)
    try:
        return await ProposalService(auth).propose(event, data)
    except ProposalError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{proposal_id}/review", response_model=DateProposal)
async def review_proposal(
    event_id: UUID,
    proposal_id: UUID,
    data: ProposalReview,
    auth: Auth,
    current_profile: CurrentProfile,
) -> DateProposal:
    event = await get_event_or_404(EventService(auth), event_id)
    service = ProposalService(auth)
    proposal = await service.get_by_id(event_id, proposal_id)
    if proposal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proposition introuvable")
    try:
        return await service.review(event, proposal, data)
    except ProposalPermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ProposalError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
