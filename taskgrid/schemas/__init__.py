"""Pydantic schemas for API requests and responses."""

from taskgrid.schemas.access import (
    AccessibleCategory,
    AccessibleList,
    AccessibleTask,
    AccessSnapshot,
    ShareEntry,
)
from taskgrid.schemas.notification import NotificationResponse, UnreadCountResponse
from taskgrid.schemas.share import (
    CascadeDeleteResponse,
    OwnershipTransfer,
    PermissionResponse,
    ShareCreate,
    ShareResponse,
    ShareUpdate,
)

__all__ = [
    "AccessSnapshot",
    "AccessibleList",
    "AccessibleCategory",
    "AccessibleTask",
    "ShareEntry",
    "ShareCreate",
    "ShareUpdate",
    "ShareResponse",
    "OwnershipTransfer",
    "PermissionResponse",
    "CascadeDeleteResponse",
    "NotificationResponse",
    "UnreadCountResponse",
]
