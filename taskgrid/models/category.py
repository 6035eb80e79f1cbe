"""Category model."""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from taskgrid.database import Base
from taskgrid.models.mixins import ShareMixin, TimestampMixin


class Category(Base, TimestampMixin):
    """Category model for organizing tasks within lists."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    list_id = Column(Integer, ForeignKey("lists.id"), nullable=False, index=True)
    # NULL means the category is owned through its list
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(String, nullable=True)

    # Relationships
    list = relationship("List", back_populates="categories")
    tasks = relationship("Task", back_populates="category")
    shares = relationship("CategoryShare", back_populates="category", cascade="all, delete-orphan")


class CategoryShare(Base, ShareMixin):
    """Category sharing model."""

    __tablename__ = "category_shares"
    __table_args__ = (UniqueConstraint("resource_id", "user_id", name="uq_category_share_user"),)

    resource_fk = "categories.id"

    # Relationships
    category = relationship("Category", back_populates="shares")
    user = relationship("User", backref="shared_categories")
