"""User model."""

from sqlalchemy import Column, Integer, String

from taskgrid.database import Base
from taskgrid.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """User identity referenced by ownership and shares."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
