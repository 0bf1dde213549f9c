"""Service layer for business logic."""

from planner.services.auth_context import AuthContext
from planner.services.dashboard_service import DashboardService
from planner.services.event_service import EventService
from planner.services.notification_service import NotificationService
from planner.services.participant_service import ParticipantService
from planner.services.platform_client import PlatformClient
from planner.services.profile_service import ProfileService
from planner.services.proposal_service import ProposalService
from planner.services.schedule_service import ScheduleService

__all__ = [
    "AuthContext",
    "DashboardService",
    "EventService",
    "NotificationService",
    "ParticipantService",
    "PlatformClient",
    "ProfileService",
    "ProposalService",
    "ScheduleService",
]
