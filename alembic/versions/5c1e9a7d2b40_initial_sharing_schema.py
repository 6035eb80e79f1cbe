"""initial sharing schema

Revision ID: 5c1e9a7d2b40
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c1e9a7d2b40"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
        ),
    ]


def _share_table(kind: str, resource_table: str) -> None:
    name = f"{kind}_shares"
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column(
            "resource_id",
            sa.Integer(),
            sa.ForeignKey(f"{resource_table}.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("permission", sa.String(10), nullable=False, server_default="VIEW"),
        *_timestamps(),
        sa.UniqueConstraint("resource_id", "user_id", name=f"uq_{kind}_share_user"),
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("name", sa.String(255), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "lists",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("description", sa.String(), nullable=True),
        *_timestamps(),
    )

    # owner_id NULL means owned through the list
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("list_id", sa.Integer(), sa.ForeignKey("lists.id"), nullable=False, index=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("list_id", sa.Integer(), sa.ForeignKey("lists.id"), nullable=False, index=True),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id"),
            nullable=True,
            index=True,
        ),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True, index=True),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING", index=True),
        sa.Column("priority", sa.String(10), nullable=False, server_default="MEDIUM"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True, index=True),
        *_timestamps(),
    )

    _share_table("list", "lists")
    _share_table("category", "categories")
    _share_table("task", "tasks")

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("actor_name", sa.String(255), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false(), index=True),
        sa.Column("resource_type", sa.String(20), nullable=True),
        sa.Column("resource_id", sa.Integer(), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("task_shares")
    op.drop_table("category_shares")
    op.drop_table("list_shares")
    op.drop_table("tasks")
    op.drop_table("categories")
    op.drop_table("lists")
    op.drop_table("users")
