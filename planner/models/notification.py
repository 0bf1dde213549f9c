import enum
import logging
import uuid
from datetime import datetime
from typing import Any, Literal, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from planner.models.base import TableRow
from planner.models.proposal import ProposalStatus

logger = logging.getLogger(__name__)


class NotificationType(enum.StrEnum):
    event_invite = "event_invite"
    schedule_update = "schedule_update"
    proposal_response = "proposal_response"
    general = "general"


class RelatedType(enum.StrEnum):
    event = "event"
    schedule = "schedule"
    proposal = "proposal"
    unknown = "unknown"


# Metadata variants, one per notification type
class EventInviteMetadata(BaseModel):
    kind: Literal["event_invite"] = "event_invite"
    event_id: uuid.UUID
    event_title: str
    invited_by: uuid.UUID | None = None
    role: str | None = None


class ScheduleUpdateMetadata(BaseModel):
    kind: Literal["schedule_update"] = "schedule_update"
    event_id: uuid.UUID
    schedule_id: uuid.UUID | None = None
    change: Literal["created", "updated", "deleted"] = "updated"


class ProposalResponseMetadata(BaseModel):
    kind: Literal["proposal_response"] = "proposal_response"
    proposal_id: uuid.UUID
    event_id: uuid.UUID
    status: ProposalStatus


class GeneralMetadata(BaseModel):
    kind: Literal["general"] = "general"
    link: str | None = None


class UnknownMetadata(BaseModel):
    """Fallback when stored metadata doesn't match its notification type."""

    kind: Literal["unknown"] = "unknown"
    raw: dict[str, Any] = Field(default_factory=dict)


NotificationMetadata = Union[
    EventInviteMetadata,
    ScheduleUpdateMetadata,
    ProposalResponseMetadata,
    GeneralMetadata,
    UnknownMetadata,
]

METADATA_VARIANTS: dict[str, type[BaseModel]] = {
    NotificationType.event_invite: EventInviteMetadata,
    NotificationType.schedule_update: ScheduleUpdateMetadata,
    NotificationType.proposal_response: ProposalResponseMetadata,
    NotificationType.general: GeneralMetadata,
}


def parse_notification_metadata(notification_type: str, raw: Any) -> BaseModel | None:
    if raw is None:
        return None
    if isinstance(raw, BaseModel):
        return raw
    if not isinstance(raw, dict):
        return UnknownMetadata(raw={"value": raw})

    variant = METADATA_VARIANTS.get(notification_type)
    if variant is None:
        return UnknownMetadata(raw=raw)
    try:
        return variant.model_validate({**raw, "kind": str(notification_type)})
    except ValidationError:
        logger.debug("Metadata for %s notification doesn't match its shape", notification_type)
        return UnknownMetadata(raw=raw)


def metadata_payload(metadata: BaseModel | None) -> dict[str, Any] | None:
    """Metadata as stored on the platform (without the discriminator)."""
    if metadata is None:
        return None
    if isinstance(metadata, UnknownMetadata):
        return metadata.raw
    return metadata.model_dump(mode="json", exclude={"kind"})


class Notification(TableRow):
    __tablename__ = "notifications"

    id: uuid.UUID
    user_id: uuid.UUID
    type: NotificationType = NotificationType.general
    title: str
    message: str | None = None
    is_read: bool = False
    related_id: uuid.UUID | None = None
    related_type: RelatedType | None = None
    created_at: datetime | None = None
    metadata: NotificationMetadata | None = None

    @model_validator(mode="before")
    @classmethod
    def resolve_metadata(cls, data: Any) -> Any:
        if isinstance(data, dict) and "metadata" in data:
            data = dict(data)
            data["metadata"] = parse_notification_metadata(
                data.get("type", NotificationType.general), data["metadata"]
            )
        return data

    @field_validator("related_type", mode="before")
    @classmethod
    def known_related_type(cls, v):
        if v is None:
            return None
        known = {r.value for r in RelatedType}
        return v if v in known else RelatedType.unknown
