"""Mixins for SQLAlchemy models."""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, func
from sqlalchemy.orm import declared_attr

from taskgrid.models.enums import Permission


class TimestampMixin:
    """Mixin to add created_at and updated_at timestamp columns."""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ShareMixin(TimestampMixin):
    """Columns shared by the list, category and task share tables.

    Subclasses set ``resource_fk`` to the referenced ``table.id`` and
    expose the foreign key column as ``resource_id``.
    """

    resource_fk: str

    id = Column(Integer, primary_key=True, index=True)
    permission = Column(
        Enum(Permission, name="sharepermission", native_enum=False, length=10),
        nullable=False,
        default=Permission.VIEW,
    )

    @declared_attr
    def user_id(cls):  # noqa: N805
        return Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    @declared_attr
    def resource_id(cls):  # noqa: N805
        return Column(
            Integer, ForeignKey(cls.resource_fk, ondelete="CASCADE"), nullable=False, index=True
        )
