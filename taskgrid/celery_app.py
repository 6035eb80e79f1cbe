"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from taskgrid.config import get_settings

settings = get_settings()

app = Celery(
    "taskgrid",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["taskgrid.tasks.notifications", "taskgrid.tasks.cleanup"],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max per task
    task_soft_time_limit=240,  # 4 minutes soft limit
    task_acks_late=True,  # redeliver notifications if a worker dies mid-task
    beat_schedule={
        "cleanup-completed-tasks": {
            "task": "taskgrid.tasks.cleanup.cleanup_completed_tasks",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)
