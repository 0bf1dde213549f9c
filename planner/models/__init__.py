"""Typed schema of the platform tables.

Every client context shares these row models; ``TABLES`` maps a table name
to the model its rows are parsed into.
"""

from planner.models.base import TableRow
from planner.models.event import Event, EventStatus, TargetGroup
from planner.models.notification import (
    EventInviteMetadata,
    GeneralMetadata,
    Notification,
    NotificationType,
    ProposalResponseMetadata,
    RelatedType,
    ScheduleUpdateMetadata,
    UnknownMetadata,
)
from planner.models.participant import EventParticipant, ParticipationStatus
from planner.models.profile import AvailabilityStatus, ParticipantProfile, Profile, Role
from planner.models.proposal import DateProposal, ProposalStatus
from planner.models.schedule import DailySchedule

TABLES: dict[str, type[TableRow]] = {
    model.__tablename__: model
    for model in (Profile, Event, EventParticipant, DailySchedule, DateProposal, Notification)
}

__all__ = [
    "TABLES",
    "TableRow",
    "AvailabilityStatus",
    "DailySchedule",
    "DateProposal",
    "Event",
    "EventInviteMetadata",
    "EventParticipant",
    "EventStatus",
    "GeneralMetadata",
    "Notification",
    "NotificationType",
    "ParticipantProfile",
    "ParticipationStatus",
    "Profile",
    "ProposalResponseMetadata",
    "ProposalStatus",
    "RelatedType",
    "Role",
    "ScheduleUpdateMetadata",
    "TargetGroup",
    "UnknownMetadata",
]
