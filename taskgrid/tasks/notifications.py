"""Celery tasks for notification delivery."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from taskgrid.celery_app import app as celery_app
from taskgrid.config import get_settings
from taskgrid.database import SessionLocal
from taskgrid.services.events import parse_event
from taskgrid.services.notification_bridge import deliver_event

logger = logging.getLogger(__name__)
settings = get_settings()


@celery_app.task(
    bind=True,
    autoretry_for=(SQLAlchemyError,),
    retry_backoff=True,
    retry_backoff_max=settings.notification_retry_backoff_max,
    retry_jitter=True,
    max_retries=settings.notification_max_retries,
)
def deliver_share_event(self, payload: dict) -> dict:
    """Persist and push the notification for one share event.

    Args:
        payload: JSON form of a share event

    Returns:
        dict with the id of the persisted notification, if any
    """
    event = parse_event(payload)
    db: Session = SessionLocal()
    try:
        notification = deliver_event(db, event)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(
            f"Persisting {event.type} for user {event.affected_user_id} failed "
            f"(attempt {self.request.retries + 1}): {e}"
        )
        raise
    finally:
        db.close()

    notification_id = notification.id if notification else None
    logger.info(
        f"Delivered {event.type} on {event.resource} to user {event.affected_user_id} "
        f"(notification {notification_id})"
    )
    return {"notification_id": notification_id}
