"""Client-side effective-access cache.

Keeps a local arena of the resources a user can see and answers
"can I view/edit/admin this" for list rendering without asking the
server per item. Grades are computed with the same rules as the server
resolver and memoised; push frames update the arena and invalidate only
the affected subtree.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from taskgrid.models.enums import Permission, ResourceType
from taskgrid.schemas.access import AccessSnapshot, ShareEntry
from taskgrid.services.errors import NotFoundError
from taskgrid.services.events import (
    OwnershipTransferred,
    ResourceDeleted,
    ShareGranted,
    SharePermissionChanged,
    ShareRevoked,
    parse_event,
)
from taskgrid.services.graph import (
    InMemoryGraphStore,
    ResourceNode,
    ResourceRef,
    RevokeShare,
    ShareRecord,
    ShareRef,
)
from taskgrid.services.resolver import effective_permission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessFlags:
    can_view: bool = False
    can_edit: bool = False
    can_admin: bool = False

    @classmethod
    def from_permission(cls, permission: Permission | None) -> "AccessFlags":
        if permission is None:
            return cls()
        return cls(can_view=True, can_edit=permission.can_edit(), can_admin=permission.can_admin())


def _node(
    ref: ResourceRef,
    owner_id: int | None,
    shares: list[ShareEntry],
    parent: ResourceRef | None = None,
    category_id: int | None = None,
    name: str | None = None,
) -> ResourceNode:
    records = {
        share.user_id: ShareRecord(
            id=share.id, resource=ref, user_id=share.user_id, permission=share.permission
        )
        for share in shares
    }
    return ResourceNode(
        ref=ref,
        owner_id=owner_id,
        parent=parent,
        category_id=category_id,
        shares=MappingProxyType(records),
        name=name,
    )


class EffectiveAccessCache:
    """Per-user cache of effective permissions."""

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        self._store = InMemoryGraphStore()
        self._grades: dict[ResourceRef, Permission | None] = {}
        # Set when a frame refers to data the cache has never seen
        self.needs_reload = False

    def load(self, snapshot: AccessSnapshot | dict[str, Any]) -> None:
        """Replace the cache contents and compute every grade in one pass."""
        if not isinstance(snapshot, AccessSnapshot):
            snapshot = AccessSnapshot.model_validate(snapshot)

        nodes = [
            _node(ResourceRef(ResourceType.LIST, lst.id), lst.owner_id, lst.shares, name=lst.name)
            for lst in snapshot.lists
        ]
        for category in snapshot.categories:
            nodes.append(
                _node(
                    ResourceRef(ResourceType.CATEGORY, category.id),
                    category.owner_id,
                    category.shares,
                    parent=ResourceRef(ResourceType.LIST, category.list_id),
                    name=category.name,
                )
            )
        for task in snapshot.tasks:
            nodes.append(
                _node(
                    ResourceRef(ResourceType.TASK, task.id),
                    task.owner_id,
                    task.shares,
                    parent=ResourceRef(ResourceType.LIST, task.list_id),
                    category_id=task.category_id,
                    name=task.name,
                )
            )
        self._store.load(nodes)

        reader = self._store.snapshot()
        self._grades = {
            node.ref: effective_permission(reader, self.user_id, node.ref)
            for node in reader.nodes()
        }
        self.needs_reload = False

    def permission(self, ref: ResourceRef) -> Permission | None:
        if ref not in self._grades:
            try:
                self._grades[ref] = effective_permission(self._store.snapshot(), self.user_id, ref)
            except NotFoundError:
                return None
        return self._grades[ref]

    def flags(self, ref: ResourceRef) -> AccessFlags:
        return AccessFlags.from_permission(self.permission(ref))

    def accessible(self, resource_type: ResourceType) -> list[ResourceRef]:
        """Resources of one type the user can at least view, by id."""
        refs = [node.ref for node in self._store.snapshot().nodes(resource_type)]
        return sorted((ref for ref in refs if self.permission(ref) is not None), key=lambda r: r.id)

    def accessible_categories_by_list(self, list_id: int) -> list[ResourceRef]:
        parent = ResourceRef(ResourceType.LIST, list_id)
        reader = self._store.snapshot()
        return [
            ref
            for ref in self.accessible(ResourceType.CATEGORY)
            if reader.get_node(ref).parent == parent
        ]

    def accessible_tasks_by_category(self, category_id: int) -> list[ResourceRef]:
        reader = self._store.snapshot()
        return [
            ref
            for ref in self.accessible(ResourceType.TASK)
            if reader.get_node(ref).category_id == category_id
        ]

    def apply_frame(self, frame: dict[str, Any]) -> None:
        """Fold a push frame into the cache."""
        event = parse_event(frame["data"])
        ref = event.resource
        if not self._store.exists(ref):
            if isinstance(event, ShareGranted | OwnershipTransferred):
                # Newly visible resource; the caller must fetch a fresh snapshot
                self.needs_reload = True
            return

        affected = [ref, *self._store.descendants(ref)]
        if isinstance(event, ShareGranted | SharePermissionChanged):
            permission = (
                event.permission if isinstance(event, ShareGranted) else event.new_permission
            )
            self._store.put_share(
                ShareRecord(
                    id=event.share_id,
                    resource=ref,
                    user_id=event.affected_user_id,
                    permission=permission,
                )
            )
        elif isinstance(event, ShareRevoked) and event.via_cascade:
            # Sharees only learn about a delete through their revoked share
            self._store.delete_resource_cascade(ref)
        elif isinstance(event, ShareRevoked):
            share = ShareRef(ref.type, event.share_id)
            if self._store.get_share(share) is not None:
                self._store.apply_share_mutation(RevokeShare(share=share))
        elif isinstance(event, OwnershipTransferred):
            self._store.set_owner(ref, event.new_owner_id)
        elif isinstance(event, ResourceDeleted):
            self._store.delete_resource_cascade(ref)

        for target in affected:
            self._grades.pop(target, None)
        logger.debug(
            f"Applied {event.type} for {event.resource}, invalidated {len(affected)} entries"
        )
