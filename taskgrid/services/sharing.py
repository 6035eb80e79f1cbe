"""Share mutation protocol.

Every operation runs "resolve caller -> validate -> apply -> enqueue
events" while holding the lock path of the target resource (its list
first, then the resource, then any descendants). Events are handed to
the emitter only after the locks are released, so slow notification
delivery never extends lock hold time.

A ``ConflictError`` (lock timeout or a concurrent write caught by the
store) is retried once with a fresh resolve; the second one reaches the
caller with ``retryable`` set.
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from taskgrid.models.enums import Permission, ResourceType
from taskgrid.services.errors import (
    AlreadyOwnerError,
    ConflictError,
    DuplicateShareError,
    InvalidTargetError,
    NoChangeError,
    NotFoundError,
)
from taskgrid.services.events import (
    BaseShareEvent,
    DeletionReason,
    EventEmitter,
    OwnershipTransferred,
    ResourceDeleted,
    ShareGranted,
    SharePermissionChanged,
    ShareRevoked,
)
from taskgrid.services.graph import (
    CascadeResult,
    GrantShare,
    GraphReader,
    GraphStore,
    ResourceRef,
    RevokeShare,
    ShareRecord,
    ShareRef,
    UpdateShare,
)
from taskgrid.services.locks import ResourceLockManager, resource_locks
from taskgrid.services.resolver import Resolver, owns

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Actor id used by maintenance jobs; skips the ADMIN check
SYSTEM_ACTOR = None


class SharingService:
    """Grants, updates and revokes shares and deletes or transfers resources."""

    def __init__(
        self,
        store: GraphStore,
        emitter: EventEmitter,
        locks: ResourceLockManager | None = None,
        lock_timeout: float | None = None,
    ) -> None:
        self.store = store
        self.resolver = Resolver(store)
        self.emitter = emitter
        self.locks = locks or resource_locks
        self.lock_timeout = lock_timeout

    def resolve(self, user_id: int, ref: ResourceRef) -> Permission | None:
        return self.resolver.resolve_ref(user_id, ref)

    # Operations

    def grant_share(
        self,
        actor_user_id: int | None,
        resource: ResourceRef,
        grantee_user_id: int,
        permission: Permission,
    ) -> ShareRecord:
        """Share ``resource`` with ``grantee_user_id`` at ``permission``."""

        def apply(reader: GraphReader, events: list[BaseShareEvent]) -> ShareRecord:
            self._authorize(actor_user_id, resource, reader)
            if owns(reader, grantee_user_id, resource):
                raise AlreadyOwnerError(
                    f"User {grantee_user_id} already owns this {resource.type.value}"
                )
            if any(s.user_id == grantee_user_id for s in reader.get_shares(resource)):
                raise DuplicateShareError(
                    f"{resource.type.value.capitalize()} already shared with this user"
                )

            record = self.store.apply_share_mutation(
                GrantShare(resource=resource, user_id=grantee_user_id, permission=permission)
            )
            events.append(
                ShareGranted(
                    actor_user_id=actor_user_id,
                    affected_user_id=grantee_user_id,
                    resource_type=resource.type,
                    resource_id=resource.id,
                    share_id=record.id,
                    permission=permission,
                )
            )
            logger.info(
                f"User {actor_user_id} granted {permission.value} on {resource} "
                f"to user {grantee_user_id}"
            )
            return record

        return self._mutate(lambda: self._lock_path(resource), apply)

    def update_share(
        self, actor_user_id: int | None, share: ShareRef, new_permission: Permission
    ) -> ShareRecord:
        """Change the grade of an existing share."""
        resource = self._require_share(self.store, share).resource

        def apply(reader: GraphReader, events: list[BaseShareEvent]) -> ShareRecord:
            current = self._require_share(reader, share)
            self._authorize(actor_user_id, resource, reader)
            if current.permission == new_permission:
                raise NoChangeError(f"Share already has {new_permission.value} permission")

            record = self.store.apply_share_mutation(
                UpdateShare(share=share, permission=new_permission)
            )
            events.append(
                SharePermissionChanged(
                    actor_user_id=actor_user_id,
                    affected_user_id=current.user_id,
                    resource_type=resource.type,
                    resource_id=resource.id,
                    share_id=current.id,
                    old_permission=current.permission,
                    new_permission=new_permission,
                )
            )
            logger.info(
                f"User {actor_user_id} changed share {current.id} on {resource} "
                f"from {current.permission.value} to {new_permission.value}"
            )
            return record

        return self._mutate(lambda: self._lock_path(resource), apply)

    def revoke_share(self, actor_user_id: int | None, share: ShareRef) -> ShareRecord:
        """Delete a share. Access inherited through other paths is untouched."""
        resource = self._require_share(self.store, share).resource

        def apply(reader: GraphReader, events: list[BaseShareEvent]) -> ShareRecord:
            current = self._require_share(reader, share)
            self._authorize(actor_user_id, resource, reader)

            removed = self.store.apply_share_mutation(RevokeShare(share=share))
            events.append(
                ShareRevoked(
                    actor_user_id=actor_user_id,
                    affected_user_id=current.user_id,
                    resource_type=resource.type,
                    resource_id=resource.id,
                    share_id=current.id,
                    permission=current.permission,
                )
            )
            logger.info(f"User {actor_user_id} revoked share {current.id} on {resource}")
            return removed

        return self._mutate(lambda: self._lock_path(resource), apply)

    def transfer_ownership(
        self, actor_user_id: int | None, resource: ResourceRef, new_owner_id: int
    ) -> int | None:
        """Make ``new_owner_id`` the owner of ``resource``; returns the previous owner."""

        def apply(reader: GraphReader, events: list[BaseShareEvent]) -> int | None:
            self._authorize(actor_user_id, resource, reader)
            if any(s.user_id == new_owner_id for s in reader.get_shares(resource)):
                raise InvalidTargetError(
                    "New owner holds a share on this resource; revoke it first"
                )
            if reader.get_owner(resource) == new_owner_id:
                raise NoChangeError(f"User {new_owner_id} already owns this resource")

            previous_owner_id = self.store.set_owner(resource, new_owner_id)
            affected = [new_owner_id]
            if previous_owner_id is not None:
                affected.append(previous_owner_id)
            for user_id in affected:
                events.append(
                    OwnershipTransferred(
                        actor_user_id=actor_user_id,
                        affected_user_id=user_id,
                        resource_type=resource.type,
                        resource_id=resource.id,
                        previous_owner_id=previous_owner_id,
                        new_owner_id=new_owner_id,
                    )
                )
            logger.info(
                f"User {actor_user_id} transferred {resource} from {previous_owner_id} "
                f"to {new_owner_id}"
            )
            return previous_owner_id

        return self._mutate(lambda: self._lock_path(resource), apply)

    def cascade_delete_resource(
        self,
        actor_user_id: int | None,
        resource: ResourceRef,
        reason: DeletionReason = DeletionReason.DELETED,
    ) -> CascadeResult:
        """Delete ``resource`` with everything below it and all their shares."""

        def lock_path() -> list[ResourceRef]:
            return [*self._lock_path(resource), *self.store.descendants(resource)]

        def apply(reader: GraphReader, events: list[BaseShareEvent]) -> CascadeResult:
            self._authorize(actor_user_id, resource, reader)
            refs = [resource, *reader.descendants(resource)]
            owners = {ref: self._effective_owner(reader, ref) for ref in refs}
            # Deleting a list reaches its viewers through the list's own events
            viewers = (
                {ref: self._inherited_viewers(reader, ref) for ref in refs}
                if resource.type is not ResourceType.LIST
                else {}
            )

            result = self.store.delete_resource_cascade(resource)
            for ref in result.resources:
                audience = [(owners.get(ref), False)]
                audience += [(user_id, True) for user_id in sorted(viewers.get(ref, ()))]
                for user_id, inherited in audience:
                    if user_id is None:
                        continue
                    events.append(
                        ResourceDeleted(
                            actor_user_id=actor_user_id,
                            affected_user_id=user_id,
                            resource_type=ref.type,
                            resource_id=ref.id,
                            resource_name=result.names.get(ref),
                            reason=reason,
                            inherited=inherited,
                        )
                    )
            for record in result.shares:
                events.append(
                    ShareRevoked(
                        actor_user_id=actor_user_id,
                        affected_user_id=record.user_id,
                        resource_type=record.resource.type,
                        resource_id=record.resource.id,
                        resource_name=result.names.get(record.resource),
                        share_id=record.id,
                        permission=record.permission,
                        via_cascade=True,
                    )
                )
            logger.info(
                f"User {actor_user_id} deleted {resource} ({reason.value}): "
                f"{len(result.resources)} resources, {len(result.shares)} shares"
            )
            return result

        result = self._mutate(lock_path, apply)
        self.locks.forget(result.resources)
        return result

    # Helpers

    def _mutate(
        self,
        lock_path: Callable[[], list[ResourceRef]],
        apply: Callable[[GraphReader, list[BaseShareEvent]], T],
    ) -> T:
        for attempt in (1, 2):
            events: list[BaseShareEvent] = []
            try:
                with self.locks.hold(lock_path(), timeout=self.lock_timeout):
                    result = apply(self.store.snapshot(), events)
            except ConflictError:
                if attempt == 2:
                    logger.warning("Mutation conflicted twice, giving up")
                    raise
                logger.info("Mutation conflicted, retrying with a fresh resolve")
                continue
            # Locks are released; delivery happens outside the critical section
            if events:
                self.emitter.emit_many(events)
            return result
        raise AssertionError("unreachable")

    def _authorize(
        self, actor_user_id: int | None, resource: ResourceRef, reader: GraphReader
    ) -> None:
        if actor_user_id is SYSTEM_ACTOR:
            if not reader.exists(resource):
                raise NotFoundError(f"{resource.type.value} {resource.id} not found")
            return
        self.resolver.require(actor_user_id, resource, Permission.ADMIN, reader)

    def _lock_path(self, resource: ResourceRef) -> list[ResourceRef]:
        if not self.store.exists(resource):
            raise NotFoundError(f"{resource.type.value} {resource.id} not found")
        parent = self.store.get_parent(resource)
        return [parent, resource] if parent is not None else [resource]

    @staticmethod
    def _require_share(reader: GraphReader, share: ShareRef) -> ShareRecord:
        record = reader.get_share(share)
        if record is None:
            raise NotFoundError("Share not found")
        return record

    @staticmethod
    def _effective_owner(reader: GraphReader, ref: ResourceRef) -> int | None:
        owner_id = reader.get_owner(ref)
        if owner_id is not None:
            return owner_id
        parent = reader.get_parent(ref)
        return reader.get_owner(parent) if parent is not None else None

    @staticmethod
    def _inherited_viewers(reader: GraphReader, ref: ResourceRef) -> set[int]:
        """Users who reach ``ref`` only through its list."""
        parent = reader.get_parent(ref)
        if parent is None:
            return set()
        viewers = {share.user_id for share in reader.get_shares(parent)}
        list_owner_id = reader.get_owner(parent)
        if list_owner_id is not None:
            viewers.add(list_owner_id)
        # Owners and direct sharees get their own events for ``ref``
        viewers -= {share.user_id for share in reader.get_shares(ref)}
        viewers.discard(SharingService._effective_owner(reader, ref))
        return viewers
