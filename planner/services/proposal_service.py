import logging
from typing import Optional
from uuid import UUID

from planner.models import DateProposal, Event, ProposalStatus
from planner.schemas.proposal import ProposalCreate, ProposalReview
from planner.services.auth_context import AuthContext
from planner.services.event_service import can_manage_event
from planner.services.notification_service import NotificationService
from planner.utils.dates import utc_now

logger = logging.getLogger(__name__)


class ProposalService:
    def __init__(self, auth: AuthContext):
        self.auth = auth
        self.client = auth.client

    async def get_for_event(
        self, event_id: UUID, status: Optional[ProposalStatus] = None
    ) -> list[DateProposal]:
        query = (
            self.client.table("date_proposals")
            .select("*")
            .eq("event_id", event_id)
            .order("created_at", ascending=False)
        )
        if status:
            query = query.eq("status", status)
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data or []

    async def get_by_id(self, event_id: UUID, proposal_id: UUID) -> Optional[DateProposal]:
        query = (
            self.client.table("date_proposals")
            .select("*")
            .eq("id", proposal_id)
            .eq("event_id", event_id)
            .maybe_single()
        )
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data

    async def propose(self, event: Event, proposal_data: ProposalCreate) -> DateProposal:
        if self.auth.profile is None:
            raise ProposalError("Profil introuvable")
        values = proposal_data.model_dump(mode="json")
        values.update(
            event_id=event.id,
            proposed_by=self.auth.profile.id,
            status=ProposalStatus.pending,
        )
        query = self.client.table("date_proposals").insert(values).single()
        result = await self.auth.execute_auth_operation(query.execute)
        return result.data

    async def review(
        self, event: Event, proposal: DateProposal, review: ProposalReview
    ) -> DateProposal:
        if not can_manage_event(self.auth.profile, event):
            raise ProposalPermissionError("Vous n'avez pas les permissions nécessaires")
        if proposal.status != ProposalStatus.pending:
            raise ProposalError("Cette proposition a déjà été traitée")

        values = {
            "status": review.status,
            "reviewed_by": self.auth.profile.id,
            "reviewed_at": utc_now(),
            "updated_at": utc_now(),
        }
        if review.notes is not None:
            values["notes"] = review.notes
        query = (
            self.client.table("date_proposals")
            .update(values)
            .eq("id", proposal.id)
            .single()
        )
        result = await self.auth.execute_auth_operation(query.execute)

        await NotificationService(self.auth).notify_proposal_response(
            proposal.proposed_by,
            proposal.id,
            event.id,
            accepted=review.status == ProposalStatus.accepted,
        )
        return result.data


class ProposalError(Exception):
    pass


class ProposalPermissionError(Exception):
    pass
