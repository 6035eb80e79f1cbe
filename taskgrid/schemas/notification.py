"""Notification schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from taskgrid.models.enums import NotificationType, ResourceType


class NotificationResponse(BaseModel):
    """Notification response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    type: NotificationType
    title: str
    description: str | None
    actor_name: str | None
    read: bool
    resource_type: ResourceType | None
    resource_id: int | None
    created_at: datetime


class UnreadCountResponse(BaseModel):
    """Number of unread notifications."""

    unread: int
