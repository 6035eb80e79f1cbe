"""Task model."""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from taskgrid.database import Base
from taskgrid.models.enums import Priority, TaskStatus
from taskgrid.models.mixins import ShareMixin, TimestampMixin


class Task(Base, TimestampMixin):
    """Task model.

    Tasks reference their list directly; ``category_id`` is organisational
    and plays no part in access control.
    """

    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    list_id = Column(Integer, ForeignKey("lists.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    # NULL means the task is owned through its list
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String(500), nullable=False)
    description = Column(String, nullable=True)
    status = Column(
        Enum(TaskStatus, name="taskstatus", native_enum=False, length=20),
        nullable=False,
        default=TaskStatus.PENDING,
        index=True,
    )
    priority = Column(
        Enum(Priority, name="priority", native_enum=False, length=10),
        nullable=False,
        default=Priority.MEDIUM,
    )
    due_date = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # Relationships
    list = relationship("List", back_populates="tasks")
    category = relationship("Category", back_populates="tasks")
    shares = relationship("TaskShare", back_populates="task", cascade="all, delete-orphan")


class TaskShare(Base, ShareMixin):
    """Task sharing model."""

    __tablename__ = "task_shares"
    __table_args__ = (UniqueConstraint("resource_id", "user_id", name="uq_task_share_user"),)

    resource_fk = "tasks.id"

    # Relationships
    task = relationship("Task", back_populates="shares")
    user = relationship("User", backref="shared_tasks")
