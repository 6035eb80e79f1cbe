"""Effective-permission resolution over the resource graph."""

import logging
from collections.abc import Iterable

from taskgrid.models.enums import Permission, ResourceType
from taskgrid.services.errors import ForbiddenError, NotFoundError
from taskgrid.services.graph import GraphReader, GraphStore, ResourceRef
from taskgrid.services.lattice import highest, satisfies

logger = logging.getLogger(__name__)


def _direct_grade(reader: GraphReader, ref: ResourceRef, user_id: int) -> Permission | None:
    for share in reader.get_shares(ref):
        if share.user_id == user_id:
            return share.permission
    return None


def effective_permission(
    reader: GraphReader, user_id: int, ref: ResourceRef
) -> Permission | None:
    """Compute the grade ``user_id`` holds on ``ref`` within one snapshot.

    Owners get ADMIN. Otherwise the result is the highest of the user's
    direct share on the resource and the grant inherited from the owning
    list. Categories never contribute to a task's grade. Orphaned
    resources resolve to ``None`` for everyone.

    Raises:
        NotFoundError: if ``ref`` does not exist in the snapshot.
    """
    if not reader.exists(ref):
        raise NotFoundError(f"{ref.type.value} {ref.id} not found")

    if ref.type is ResourceType.LIST:
        owner_id = reader.get_owner(ref)
        if owner_id is None:
            return None
        if owner_id == user_id:
            return Permission.ADMIN
        return _direct_grade(reader, ref, user_id)

    parent = reader.get_parent(ref)
    if parent is None:
        return None
    list_owner_id = reader.get_owner(parent)
    if list_owner_id is None:
        return None
    if reader.get_owner(ref) == user_id or list_owner_id == user_id:
        return Permission.ADMIN

    inherited = _direct_grade(reader, parent, user_id)
    return highest(_direct_grade(reader, ref, user_id), inherited)


def owns(reader: GraphReader, user_id: int, ref: ResourceRef) -> bool:
    """Check whether ownership alone already gives ``user_id`` ADMIN on ``ref``."""
    if reader.get_owner(ref) == user_id:
        return True
    parent = reader.get_parent(ref)
    return parent is not None and reader.get_owner(parent) == user_id


class Resolver:
    """Resolves effective permissions against snapshots of a ``GraphStore``."""

    def __init__(self, store: GraphStore) -> None:
        self.store = store

    def resolve(
        self, user_id: int, resource_type: ResourceType, resource_id: int
    ) -> Permission | None:
        """Return the effective grade, or ``None`` when the user has no access."""
        return self.resolve_ref(user_id, ResourceRef(resource_type, resource_id))

    def resolve_ref(
        self, user_id: int, ref: ResourceRef, reader: GraphReader | None = None
    ) -> Permission | None:
        return effective_permission(reader or self.store.snapshot(), user_id, ref)

    def resolve_many(
        self, user_id: int, refs: Iterable[ResourceRef]
    ) -> dict[ResourceRef, Permission | None]:
        """Resolve several resources against a single snapshot, skipping missing ones."""
        reader = self.store.snapshot()
        result: dict[ResourceRef, Permission | None] = {}
        for ref in refs:
            try:
                result[ref] = effective_permission(reader, user_id, ref)
            except NotFoundError:
                continue
        return result

    def require(
        self,
        user_id: int,
        ref: ResourceRef,
        required: Permission,
        reader: GraphReader | None = None,
    ) -> Permission:
        """Return the user's grade on ``ref`` or raise if it is below ``required``."""
        granted = self.resolve_ref(user_id, ref, reader)
        if not satisfies(granted, required):
            logger.warning(
                f"Denied user {user_id} on {ref}: has {granted and granted.value}, "
                f"needs {required.value}"
            )
            raise ForbiddenError(f"{required.value} permission required on {ref.type.value}")
        return granted
