"""SQLAlchemy-backed implementation of the resource graph contract."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from taskgrid.models.category import Category, CategoryShare
from taskgrid.models.enums import ResourceType
from taskgrid.models.list import List, ListShare
from taskgrid.models.task import Task, TaskShare
from taskgrid.services.errors import ConflictError, NotFoundError
from taskgrid.services.graph import (
    CascadeResult,
    GrantShare,
    ResourceRef,
    RevokeShare,
    ShareMutation,
    ShareRecord,
    ShareRef,
    UpdateShare,
)

logger = logging.getLogger(__name__)

RESOURCE_MODELS = {
    ResourceType.LIST: List,
    ResourceType.CATEGORY: Category,
    ResourceType.TASK: Task,
}

SHARE_MODELS = {
    ResourceType.LIST: ListShare,
    ResourceType.CATEGORY: CategoryShare,
    ResourceType.TASK: TaskShare,
}


def to_record(
    resource_type: ResourceType, share: ListShare | CategoryShare | TaskShare
) -> ShareRecord:
    return ShareRecord(
        id=share.id,
        resource=ResourceRef(resource_type, share.resource_id),
        user_id=share.user_id,
        permission=share.permission,
    )


class SqlGraphStore:
    """Reads and writes the share graph through a SQLAlchemy session.

    Reads are isolated by the session's transaction, so ``snapshot`` returns
    the store itself. Every write commits before returning. A unique
    constraint violation or a row changed by another process since it was
    read is reported as ``ConflictError``; missing rows raise ``NotFoundError``.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def snapshot(self) -> "SqlGraphStore":
        return self

    def _get(self, ref: ResourceRef) -> List | Category | Task | None:
        return self.db.get(RESOURCE_MODELS[ref.type], ref.id)

    def exists(self, ref: ResourceRef) -> bool:
        return self._get(ref) is not None

    def get_owner(self, ref: ResourceRef) -> int | None:
        obj = self._get(ref)
        return obj.owner_id if obj else None

    def get_parent(self, ref: ResourceRef) -> ResourceRef | None:
        if ref.type is ResourceType.LIST:
            return None
        obj = self._get(ref)
        if obj is None or self.db.get(List, obj.list_id) is None:
            return None
        return ResourceRef(ResourceType.LIST, obj.list_id)

    def get_shares(self, ref: ResourceRef) -> list[ShareRecord]:
        model = SHARE_MODELS[ref.type]
        shares = self.db.query(model).filter(model.resource_id == ref.id).order_by(model.id).all()
        return [to_record(ref.type, share) for share in shares]

    def get_share(self, share: ShareRef) -> ShareRecord | None:
        row = self.db.get(SHARE_MODELS[share.resource_type], share.share_id)
        return to_record(share.resource_type, row) if row else None

    def descendants(self, ref: ResourceRef) -> list[ResourceRef]:
        """Resources below ``ref``, ordered ancestor-first."""
        if ref.type is ResourceType.LIST:
            categories = (
                self.db.query(Category.id).filter(Category.list_id == ref.id).order_by(Category.id)
            )
            tasks = self.db.query(Task.id).filter(Task.list_id == ref.id).order_by(Task.id)
            return [
                *(ResourceRef(ResourceType.CATEGORY, cid) for (cid,) in categories),
                *(ResourceRef(ResourceType.TASK, tid) for (tid,) in tasks),
            ]
        if ref.type is ResourceType.CATEGORY:
            task_ids = self.db.query(Task.id).filter(Task.category_id == ref.id).order_by(Task.id)
            return [ResourceRef(ResourceType.TASK, tid) for (tid,) in task_ids]
        return []

    def apply_share_mutation(self, mutation: ShareMutation) -> ShareRecord:
        if isinstance(mutation, GrantShare):
            resource_type = mutation.resource.type
            row = SHARE_MODELS[resource_type](
                resource_id=mutation.resource.id,
                user_id=mutation.user_id,
                permission=mutation.permission,
            )
            self.db.add(row)
        else:
            resource_type = mutation.share.resource_type
            row = self.db.get(SHARE_MODELS[resource_type], mutation.share.share_id)
            if row is None:
                raise NotFoundError("Share not found")
            if isinstance(mutation, UpdateShare):
                row.permission = mutation.permission
            elif isinstance(mutation, RevokeShare):
                record = to_record(resource_type, row)
                self.db.delete(row)
                self._commit()
                return record

        self._commit()
        self.db.refresh(row)
        return to_record(resource_type, row)

    def set_owner(self, ref: ResourceRef, owner_id: int) -> int | None:
        obj = self._get(ref)
        if obj is None:
            raise NotFoundError(f"{ref.type.value} {ref.id} not found")
        previous = obj.owner_id
        obj.owner_id = owner_id
        self._commit()
        return previous

    def delete_resource_cascade(self, ref: ResourceRef) -> CascadeResult:
        doomed = [ref, *self.descendants(ref)]
        removed: list[ShareRecord] = []
        for target in doomed:
            model = SHARE_MODELS[target.type]
            rows = self.db.query(model).filter(model.resource_id == target.id).order_by(model.id)
            for row in rows.all():
                removed.append(to_record(target.type, row))
                self.db.delete(row)
        self.db.flush()

        # Children first so foreign keys stay valid
        names: dict[ResourceRef, str] = {}
        for target in reversed(doomed):
            obj = self._get(target)
            if obj is not None:
                names[target] = obj.name
                # Share rows are gone already; stop the ORM cascade from deleting them again
                self.db.expire(obj, ["shares"])
                self.db.delete(obj)
        self._commit()
        return CascadeResult(resources=doomed, shares=removed, names=names)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Share write rejected by the database: {e.orig}")
            raise ConflictError("Concurrent change on this resource, try again") from e
        except StaleDataError as e:
            # Another process changed or deleted the row since it was read
            self.db.rollback()
            logger.warning(f"Stale write on the share graph: {e}")
            raise ConflictError("Concurrent change on this resource, try again") from e
