"""Notification model."""

from sqlalchemy import Boolean, Column, Enum, ForeignKey, Integer, String

from taskgrid.database import Base
from taskgrid.models.enums import NotificationType, ResourceType
from taskgrid.models.mixins import TimestampMixin


class Notification(Base, TimestampMixin):
    """Persisted notification for a single user."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(
        Enum(NotificationType, name="notificationtype", native_enum=False, length=20),
        nullable=False,
    )
    title = Column(String(255), nullable=False)
    description = Column(String, nullable=True)
    actor_name = Column(String(255), nullable=True)
    read = Column(Boolean, nullable=False, default=False, index=True)
    # Plain columns: the resource may be deleted while the notification lives on
    resource_type = Column(
        Enum(ResourceType, name="resourcetype", native_enum=False, length=20), nullable=True
    )
    resource_id = Column(Integer, nullable=True)
