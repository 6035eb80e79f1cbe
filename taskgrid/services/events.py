"""Events emitted by the share mutation protocol."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from taskgrid.models.enums import Permission, ResourceType
from taskgrid.services.graph import ResourceRef


class ShareEventType(StrEnum):
    """Event types pushed to affected users."""

    SHARE_GRANTED = "share_granted"
    SHARE_PERMISSION_CHANGED = "share_permission_changed"
    SHARE_REVOKED = "share_revoked"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"
    RESOURCE_DELETED = "resource_deleted"


class DeletionReason(StrEnum):
    """Why a resource was deleted."""

    DELETED = "deleted"
    EXPIRED = "expired"


class BaseShareEvent(BaseModel):
    """Fields carried by every event. ``actor_user_id`` is None for system jobs."""

    model_config = ConfigDict(frozen=True)

    actor_user_id: int | None
    affected_user_id: int
    resource_type: ResourceType
    resource_id: int
    # Set when the resource may be gone by the time the event is delivered
    resource_name: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def resource(self) -> ResourceRef:
        return ResourceRef(self.resource_type, self.resource_id)

    @property
    def persisted(self) -> bool:
        """Whether the affected user gets a stored notification, not just a push."""
        return self.actor_user_id != self.affected_user_id


class ShareGranted(BaseShareEvent):
    type: Literal["share_granted"] = "share_granted"
    share_id: int
    permission: Permission


class SharePermissionChanged(BaseShareEvent):
    type: Literal["share_permission_changed"] = "share_permission_changed"
    share_id: int
    old_permission: Permission
    new_permission: Permission


class ShareRevoked(BaseShareEvent):
    type: Literal["share_revoked"] = "share_revoked"
    share_id: int
    permission: Permission
    # True when the share went away because its resource was deleted
    via_cascade: bool = False


class OwnershipTransferred(BaseShareEvent):
    type: Literal["ownership_transferred"] = "ownership_transferred"
    previous_owner_id: int | None
    new_owner_id: int


class ResourceDeleted(BaseShareEvent):
    type: Literal["resource_deleted"] = "resource_deleted"
    reason: DeletionReason = DeletionReason.DELETED
    # Affected user only saw the resource through its list; push only
    inherited: bool = False

    @property
    def persisted(self) -> bool:
        return not self.inherited and super().persisted


ShareEvent = Annotated[
    ShareGranted | SharePermissionChanged | ShareRevoked | OwnershipTransferred | ResourceDeleted,
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[ShareEvent] = TypeAdapter(ShareEvent)


def parse_event(data: dict[str, Any]) -> ShareEvent:
    """Rebuild an event from its JSON form."""
    return _event_adapter.validate_python(data)


def to_frame(event: BaseShareEvent, notification_id: int | None = None) -> dict[str, Any]:
    """Serialize an event as a push frame for the affected user's connections."""
    return {
        "type": ShareEventType(event.type),
        "user_id": event.affected_user_id,
        "timestamp": event.timestamp.isoformat(),
        "notification_id": notification_id,
        "data": event.model_dump(mode="json"),
    }


class EventEmitter(Protocol):
    """Anything that accepts events after a mutation has been applied."""

    def emit(self, event: BaseShareEvent) -> None: ...

    def emit_many(self, events: list[BaseShareEvent]) -> None: ...
