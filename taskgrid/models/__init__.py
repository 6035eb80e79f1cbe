"""SQLAlchemy models."""

from taskgrid.models.category import Category, CategoryShare
from taskgrid.models.list import List, ListShare
from taskgrid.models.notification import Notification
from taskgrid.models.task import Task, TaskShare
from taskgrid.models.user import User

__all__ = [
    "User",
    "List",
    "ListShare",
    "Category",
    "CategoryShare",
    "Task",
    "TaskShare",
    "Notification",
]
