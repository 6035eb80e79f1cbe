"""Celery tasks for removing expired data."""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from taskgrid.celery_app import app as celery_app
from taskgrid.config import get_settings
from taskgrid.database import SessionLocal
from taskgrid.models.enums import ResourceType, TaskStatus
from taskgrid.models.task import Task
from taskgrid.services.errors import AccessError
from taskgrid.services.events import DeletionReason
from taskgrid.services.graph import ResourceRef
from taskgrid.services.notification_bridge import get_notification_bridge
from taskgrid.services.sharing import SYSTEM_ACTOR, SharingService
from taskgrid.services.sql_graph import SqlGraphStore

logger = logging.getLogger(__name__)


def purge_completed_tasks(
    db: Session, sharing: SharingService, now: datetime | None = None
) -> int:
    """Delete tasks completed longer ago than the retention window.

    Deletion goes through the sharing protocol so the owner and every
    sharee receive an EXPIRED notification.

    Returns:
        Number of tasks deleted.
    """
    retention = timedelta(days=get_settings().completed_task_retention_days)
    threshold = (now or datetime.now(UTC)) - retention

    deleted = 0
    try:
        task_ids = [
            task_id
            for (task_id,) in db.query(Task.id)
            .filter(Task.status == TaskStatus.COMPLETED, Task.completed_at <= threshold)
            .order_by(Task.id)
            .all()
        ]
        for task_id in task_ids:
            try:
                sharing.cascade_delete_resource(
                    SYSTEM_ACTOR,
                    ResourceRef(ResourceType.TASK, task_id),
                    reason=DeletionReason.EXPIRED,
                )
            except AccessError as e:
                logger.warning(f"Skipping expired task {task_id}: {e.message}")
                continue
            deleted += 1
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to clean up completed tasks: {e}")

    logger.info(f"Removed {deleted} tasks completed before {threshold.isoformat()}")
    return deleted


@celery_app.task
def cleanup_completed_tasks() -> int:
    """Daily removal of old completed tasks."""
    db: Session = SessionLocal()
    try:
        sharing = SharingService(SqlGraphStore(db), get_notification_bridge())
        return purge_completed_tasks(db, sharing)
    finally:
        db.close()
