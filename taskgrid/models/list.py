"""List model."""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from taskgrid.database import Base
from taskgrid.models.mixins import ShareMixin, TimestampMixin


class List(Base, TimestampMixin):
    """Top-level container for categories and tasks."""

    __tablename__ = "lists"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    description = Column(String, nullable=True)

    # Relationships
    owner = relationship("User", backref="lists")
    categories = relationship("Category", back_populates="list", cascade="all, delete-orphan")
    tasks = relationship("Task", back_populates="list", cascade="all, delete-orphan")
    shares = relationship("ListShare", back_populates="list", cascade="all, delete-orphan")


class ListShare(Base, ShareMixin):
    """List sharing model for multi-user access."""

    __tablename__ = "list_shares"
    __table_args__ = (UniqueConstraint("resource_id", "user_id", name="uq_list_share_user"),)

    resource_fk = "lists.id"

    # Relationships
    list = relationship("List", back_populates="shares")
    user = relationship("User", backref="shared_lists")
