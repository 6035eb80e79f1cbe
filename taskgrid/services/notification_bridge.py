"""Turns share events into persisted notifications and push frames."""

import logging
import threading
from collections import deque
from collections.abc import Callable
from functools import lru_cache
from typing import Any

from sqlalchemy.orm import Session

from taskgrid.models.enums import NotificationType
from taskgrid.models.notification import Notification
from taskgrid.models.user import User
from taskgrid.services.events import (
    BaseShareEvent,
    DeletionReason,
    OwnershipTransferred,
    ResourceDeleted,
    ShareGranted,
    SharePermissionChanged,
    ShareRevoked,
    to_frame,
)
from taskgrid.services.realtime import publish_user_event
from taskgrid.services.sql_graph import RESOURCE_MODELS

logger = logging.getLogger(__name__)

SYSTEM_ACTOR_NAME = "System"


def _dispatch_to_worker(payload: dict[str, Any]) -> None:
    from taskgrid.tasks.notifications import deliver_share_event

    deliver_share_event.delay(payload)


class NotificationBridge:
    """Hands events to the notification worker without blocking the caller.

    Events that cannot be handed off (broker down) stay in a pending buffer
    and are retried on the next emit or by ``flush_pending``. The mutation
    that produced them is never rolled back.
    """

    def __init__(self, dispatch: Callable[[dict[str, Any]], None] | None = None) -> None:
        self._dispatch = dispatch or _dispatch_to_worker
        self._pending: deque[dict[str, Any]] = deque()
        self._lock = threading.Lock()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def emit(self, event: BaseShareEvent) -> None:
        self.emit_many([event])

    def emit_many(self, events: list[BaseShareEvent]) -> None:
        with self._lock:
            self._pending.extend(event.model_dump(mode="json") for event in events)
        self.flush_pending()

    def flush_pending(self) -> int:
        """Dispatch buffered events in order; returns how many were handed off."""
        dispatched = 0
        while True:
            with self._lock:
                if not self._pending:
                    break
                payload = self._pending.popleft()
            try:
                self._dispatch(payload)
            except Exception as e:
                logger.error(f"Failed to dispatch {payload['type']} event, will retry: {e}")
                with self._lock:
                    self._pending.appendleft(payload)
                break
            dispatched += 1
        return dispatched


@lru_cache
def get_notification_bridge() -> NotificationBridge:
    """Get the process-wide notification bridge."""
    return NotificationBridge()


def _actor_name(db: Session, actor_user_id: int | None) -> str:
    if actor_user_id is None:
        return SYSTEM_ACTOR_NAME
    actor = db.get(User, actor_user_id)
    if actor is None:
        return "Someone"
    return actor.name or actor.email


def _resource_label(db: Session, event: BaseShareEvent) -> str:
    kind = event.resource_type.value
    obj = db.get(RESOURCE_MODELS[event.resource_type], event.resource_id)
    # Deleted resources are only known by the name carried in the event
    name = obj.name if obj is not None else event.resource_name
    if name is None:
        return f"a {kind}"
    return f"the {kind} '{name}'"


def render_notification(
    event: BaseShareEvent, actor: str, label: str
) -> tuple[NotificationType, str, str]:
    """Build the (type, title, description) of the notification for ``event``."""
    kind = event.resource_type.value
    if isinstance(event, ShareGranted):
        return (
            NotificationType.SHARED,
            f"New shared {kind}",
            f"{actor} shared {label} with you ({event.permission.value})",
        )
    if isinstance(event, SharePermissionChanged):
        return (
            NotificationType.SHARED,
            "Permission updated",
            f"{actor} changed your access to {label} from "
            f"{event.old_permission.value} to {event.new_permission.value}",
        )
    if isinstance(event, ShareRevoked):
        if event.via_cascade:
            return (
                NotificationType.SYSTEM,
                "Access removed",
                f"{label.capitalize()} shared with you was deleted",
            )
        return NotificationType.SYSTEM, "Access removed", f"{actor} removed your access to {label}"
    if isinstance(event, OwnershipTransferred):
        if event.affected_user_id == event.new_owner_id:
            description = f"{actor} made you the owner of {label}"
        else:
            description = f"You are no longer the owner of {label}"
        return NotificationType.SHARED, "Ownership transferred", description
    if isinstance(event, ResourceDeleted):
        if event.reason is DeletionReason.EXPIRED:
            return (
                NotificationType.EXPIRED,
                f"{kind.capitalize()} deleted",
                f"{label.capitalize()} was deleted after expiring",
            )
        return (
            NotificationType.SYSTEM,
            f"{kind.capitalize()} deleted",
            f"{actor} deleted {label}",
        )
    raise ValueError(f"Unknown event type: {type(event).__name__}")


def persist_notification(db: Session, event: BaseShareEvent) -> Notification:
    """Store the notification for the affected user and commit."""
    actor = _actor_name(db, event.actor_user_id)
    label = _resource_label(db, event)
    notification_type, title, description = render_notification(event, actor, label)

    notification = Notification(
        user_id=event.affected_user_id,
        type=notification_type,
        title=title,
        description=description,
        actor_name=actor,
        resource_type=event.resource_type,
        resource_id=event.resource_id,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def deliver_event(db: Session, event: BaseShareEvent) -> Notification | None:
    """Persist the notification for ``event`` and push it to the affected user.

    Users are not notified of their own actions, nor of deletions they only
    saw through a list, but still get the push frame so their other
    sessions stay in sync. Persistence errors propagate so the caller can
    retry; push errors are logged only.
    """
    notification = None
    if event.persisted:
        notification = persist_notification(db, event)

    frame = to_frame(event, notification.id if notification else None)
    if not publish_user_event(event.affected_user_id, frame):
        logger.warning(
            f"Push of {event.type} to user {event.affected_user_id} failed, "
            "relying on persisted notification"
        )
    return notification
