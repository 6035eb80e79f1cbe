"""Server-side builder of the access snapshot that seeds client caches."""

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from taskgrid.models.category import Category, CategoryShare
from taskgrid.models.enums import Permission, ResourceType
from taskgrid.models.list import List, ListShare
from taskgrid.models.task import Task, TaskShare
from taskgrid.schemas.access import (
    AccessibleCategory,
    AccessibleList,
    AccessibleTask,
    AccessSnapshot,
    ShareEntry,
)
from taskgrid.services.graph import ResourceRef
from taskgrid.services.resolver import Resolver


def share_visible(share_user_id: int, user_id: int, permission: Permission | None) -> bool:
    """Only admins see the full collaborator list; everyone else sees their own share."""
    return permission == Permission.ADMIN or share_user_id == user_id


def _visible_shares(shares, user_id: int, permission: Permission | None) -> list[ShareEntry]:
    return [
        ShareEntry(id=share.id, user_id=share.user_id, permission=share.permission)
        for share in shares
        if share_visible(share.user_id, user_id, permission)
    ]


def build_access_snapshot(db: Session, resolver: Resolver, user_id: int) -> AccessSnapshot:
    """Collect every resource ``user_id`` can reach, with its effective grade.

    Lists that are only reachable through a shared category or task are
    included as context with ``permission`` set to None, so a client can
    still resolve the child.
    """
    list_ids = set(db.scalars(select(List.id).where(List.owner_id == user_id)))
    list_ids.update(db.scalars(select(ListShare.resource_id).where(ListShare.user_id == user_id)))

    categories = (
        db.query(Category)
        .filter(
            or_(
                Category.list_id.in_(sorted(list_ids)),
                Category.owner_id == user_id,
                Category.id.in_(
                    select(CategoryShare.resource_id).where(CategoryShare.user_id == user_id)
                ),
            )
        )
        .order_by(Category.id)
        .all()
    )
    tasks = (
        db.query(Task)
        .filter(
            or_(
                Task.list_id.in_(sorted(list_ids)),
                Task.owner_id == user_id,
                Task.id.in_(select(TaskShare.resource_id).where(TaskShare.user_id == user_id)),
            )
        )
        .order_by(Task.id)
        .all()
    )
    context_ids = {c.list_id for c in categories} | {t.list_id for t in tasks}
    lists = (
        db.query(List).filter(List.id.in_(sorted(list_ids | context_ids))).order_by(List.id).all()
    )

    refs = [
        *(ResourceRef(ResourceType.LIST, lst.id) for lst in lists),
        *(ResourceRef(ResourceType.CATEGORY, c.id) for c in categories),
        *(ResourceRef(ResourceType.TASK, t.id) for t in tasks),
    ]
    grades = resolver.resolve_many(user_id, refs)

    def grade(resource_type: ResourceType, resource_id: int) -> Permission | None:
        return grades.get(ResourceRef(resource_type, resource_id))

    return AccessSnapshot(
        user_id=user_id,
        lists=[
            AccessibleList(
                id=lst.id,
                name=lst.name,
                owner_id=lst.owner_id,
                shares=_visible_shares(lst.shares, user_id, grade(ResourceType.LIST, lst.id)),
                permission=grade(ResourceType.LIST, lst.id),
            )
            for lst in lists
        ],
        categories=[
            AccessibleCategory(
                id=c.id,
                list_id=c.list_id,
                owner_id=c.owner_id,
                name=c.name,
                shares=_visible_shares(c.shares, user_id, grade(ResourceType.CATEGORY, c.id)),
                permission=grade(ResourceType.CATEGORY, c.id),
            )
            for c in categories
        ],
        tasks=[
            AccessibleTask(
                id=t.id,
                list_id=t.list_id,
                category_id=t.category_id,
                owner_id=t.owner_id,
                name=t.name,
                shares=_visible_shares(t.shares, user_id, grade(ResourceType.TASK, t.id)),
                permission=grade(ResourceType.TASK, t.id),
            )
            for t in tasks
        ],
    )
