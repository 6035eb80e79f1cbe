"""Enums for model fields."""

from enum import Enum


class Permission(str, Enum):
    """Permission grades for shared resources, ordered VIEW < EDIT < ADMIN."""

    VIEW = "VIEW"
    EDIT = "EDIT"
    ADMIN = "ADMIN"

    @property
    def rank(self) -> int:
        """Position of this grade in the total order."""
        return _PERMISSION_RANKS[self]

    def can_edit(self) -> bool:
        """Check if this permission allows editing."""
        return self in (Permission.EDIT, Permission.ADMIN)

    def can_admin(self) -> bool:
        """Check if this permission allows admin actions."""
        return self == Permission.ADMIN


_PERMISSION_RANKS = {Permission.VIEW: 1, Permission.EDIT: 2, Permission.ADMIN: 3}


class ResourceType(str, Enum):
    """Levels of the List -> Category -> Task hierarchy."""

    LIST = "list"
    CATEGORY = "category"
    TASK = "task"

    @property
    def depth(self) -> int:
        """Depth in the hierarchy, used to order locks ancestor-first."""
        return _RESOURCE_DEPTHS[self]


_RESOURCE_DEPTHS = {ResourceType.LIST: 0, ResourceType.CATEGORY: 1, ResourceType.TASK: 2}


class NotificationType(str, Enum):
    """Kinds of persisted user notifications."""

    SHARED = "SHARED"
    EXPIRED = "EXPIRED"
    SYSTEM = "SYSTEM"


class TaskStatus(str, Enum):
    """Task workflow status."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Priority(str, Enum):
    """Task priority."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"
