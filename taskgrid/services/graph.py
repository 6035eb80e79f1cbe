"""Resource graph contract and the in-memory arena implementation.

The access-control engine never touches ORM objects directly. It reads
and writes the List -> Category -> Task hierarchy through the
``GraphReader`` / ``GraphStore`` protocols defined here. Nodes are
addressed by ``ResourceRef`` and hold an explicit parent pointer plus a
map of shares keyed by user id, so no object back-references exist.

``InMemoryGraphStore`` is a copy-on-write arena: every write publishes a
new immutable ``GraphSnapshot``, so readers holding a snapshot never see
a half-applied mutation and never block writers.
"""

import itertools
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Protocol

from taskgrid.models.enums import Permission, ResourceType
from taskgrid.services.errors import NotFoundError


@dataclass(frozen=True)
class ResourceRef:
    """Stable address of a list, category or task."""

    type: ResourceType
    id: int

    def __str__(self) -> str:
        return f"{self.type.value}:{self.id}"


@dataclass(frozen=True)
class ShareRef:
    """Stable address of a share row; ids are only unique per resource type."""

    resource_type: ResourceType
    share_id: int


@dataclass(frozen=True)
class ShareRecord:
    """A single active share of a resource with one user."""

    id: int
    resource: ResourceRef
    user_id: int
    permission: Permission

    @property
    def ref(self) -> ShareRef:
        return ShareRef(self.resource.type, self.id)


@dataclass(frozen=True)
class ResourceNode:
    """One resource in the arena."""

    ref: ResourceRef
    owner_id: int | None
    parent: ResourceRef | None = None
    category_id: int | None = None
    shares: Mapping[int, ShareRecord] = field(default_factory=lambda: MappingProxyType({}))
    name: str | None = None


@dataclass(frozen=True)
class GrantShare:
    resource: ResourceRef
    user_id: int
    permission: Permission


@dataclass(frozen=True)
class UpdateShare:
    share: ShareRef
    permission: Permission


@dataclass(frozen=True)
class RevokeShare:
    share: ShareRef


ShareMutation = GrantShare | UpdateShare | RevokeShare


@dataclass(frozen=True)
class CascadeResult:
    """Everything removed by a cascading delete, resources listed top-down."""

    resources: list[ResourceRef]
    shares: list[ShareRecord]
    # Display names of the deleted resources, where known
    names: Mapping[ResourceRef, str] = field(default_factory=dict)


class GraphReader(Protocol):
    """Read side of the resource graph."""

    def exists(self, ref: ResourceRef) -> bool: ...

    def get_owner(self, ref: ResourceRef) -> int | None: ...

    def get_parent(self, ref: ResourceRef) -> ResourceRef | None: ...

    def get_shares(self, ref: ResourceRef) -> list[ShareRecord]: ...

    def get_share(self, share: ShareRef) -> ShareRecord | None: ...

    def descendants(self, ref: ResourceRef) -> list[ResourceRef]: ...


class GraphStore(GraphReader, Protocol):
    """Read/write contract; every write is atomic from the caller's view."""

    def snapshot(self) -> GraphReader: ...

    def apply_share_mutation(self, mutation: ShareMutation) -> ShareRecord: ...

    def set_owner(self, ref: ResourceRef, owner_id: int) -> int | None: ...

    def delete_resource_cascade(self, ref: ResourceRef) -> CascadeResult: ...


def is_below(parent: ResourceRef, node: ResourceNode) -> bool:
    """Check whether ``node`` sits under ``parent`` in the hierarchy."""
    if parent.type is ResourceType.LIST:
        return node.parent == parent
    if parent.type is ResourceType.CATEGORY:
        return node.ref.type is ResourceType.TASK and node.category_id == parent.id
    return False


class GraphSnapshot:
    """Immutable view of the arena at one point in time."""

    def __init__(
        self,
        nodes: Mapping[ResourceRef, ResourceNode],
        share_index: Mapping[ShareRef, ResourceRef],
    ) -> None:
        self._nodes = MappingProxyType(dict(nodes))
        self._share_index = MappingProxyType(dict(share_index))

    def exists(self, ref: ResourceRef) -> bool:
        return ref in self._nodes

    def get_node(self, ref: ResourceRef) -> ResourceNode | None:
        return self._nodes.get(ref)

    def get_owner(self, ref: ResourceRef) -> int | None:
        node = self._nodes.get(ref)
        return node.owner_id if node else None

    def get_parent(self, ref: ResourceRef) -> ResourceRef | None:
        node = self._nodes.get(ref)
        if node is None or node.parent is None or node.parent not in self._nodes:
            return None
        return node.parent

    def get_shares(self, ref: ResourceRef) -> list[ShareRecord]:
        node = self._nodes.get(ref)
        return list(node.shares.values()) if node else []

    def get_share(self, share: ShareRef) -> ShareRecord | None:
        resource = self._share_index.get(share)
        if resource is None:
            return None
        for record in self._nodes[resource].shares.values():
            if record.id == share.share_id:
                return record
        return None

    def descendants(self, ref: ResourceRef) -> list[ResourceRef]:
        """Resources below ``ref``, ordered ancestor-first."""
        found = [node.ref for node in self._nodes.values() if is_below(ref, node)]
        return sorted(found, key=lambda r: (r.type.depth, r.id))

    def nodes(self, resource_type: ResourceType | None = None) -> list[ResourceNode]:
        return [
            node
            for node in self._nodes.values()
            if resource_type is None or node.ref.type is resource_type
        ]


class InMemoryGraphStore:
    """Copy-on-write arena implementing ``GraphStore``."""

    def __init__(self) -> None:
        self._snapshot = GraphSnapshot({}, {})
        self._write_lock = threading.Lock()
        self._share_ids = itertools.count(1)

    def snapshot(self) -> GraphSnapshot:
        return self._snapshot

    # Reads always go through the latest published snapshot

    def exists(self, ref: ResourceRef) -> bool:
        return self._snapshot.exists(ref)

    def get_node(self, ref: ResourceRef) -> ResourceNode | None:
        return self._snapshot.get_node(ref)

    def get_owner(self, ref: ResourceRef) -> int | None:
        return self._snapshot.get_owner(ref)

    def get_parent(self, ref: ResourceRef) -> ResourceRef | None:
        return self._snapshot.get_parent(ref)

    def get_shares(self, ref: ResourceRef) -> list[ShareRecord]:
        return self._snapshot.get_shares(ref)

    def get_share(self, share: ShareRef) -> ShareRecord | None:
        return self._snapshot.get_share(share)

    def descendants(self, ref: ResourceRef) -> list[ResourceRef]:
        return self._snapshot.descendants(ref)

    # Writes

    def add_resource(
        self,
        ref: ResourceRef,
        owner_id: int | None,
        parent: ResourceRef | None = None,
        category_id: int | None = None,
        name: str | None = None,
    ) -> ResourceNode:
        """Insert a resource node, replacing any node with the same ref."""
        node = ResourceNode(
            ref=ref, owner_id=owner_id, parent=parent, category_id=category_id, name=name
        )
        with self._write_lock:
            nodes, index = self._copy()
            if ref in nodes:
                for record in nodes[ref].shares.values():
                    index.pop(record.ref, None)
            nodes[ref] = node
            self._publish(nodes, index)
        return node

    def put_share(self, record: ShareRecord) -> None:
        """Insert a share with a known id, as loaded from an external source."""
        with self._write_lock:
            nodes, index = self._copy()
            node = self._require(nodes, record.resource)
            shares = dict(node.shares)
            previous = shares.get(record.user_id)
            if previous is not None:
                index.pop(previous.ref, None)
            shares[record.user_id] = record
            nodes[record.resource] = replace(node, shares=MappingProxyType(shares))
            index[record.ref] = record.resource
            self._publish(nodes, index)

    def apply_share_mutation(self, mutation: ShareMutation) -> ShareRecord:
        """Apply a grant, update or revoke and return the affected share.

        For a revoke the returned record is the share as it was removed.
        """
        with self._write_lock:
            nodes, index = self._copy()
            if isinstance(mutation, GrantShare):
                node = self._require(nodes, mutation.resource)
                if mutation.user_id in node.shares:
                    raise KeyError(f"share exists for user {mutation.user_id} on {node.ref}")
                record = ShareRecord(
                    id=next(self._share_ids),
                    resource=mutation.resource,
                    user_id=mutation.user_id,
                    permission=mutation.permission,
                )
                shares = {**node.shares, record.user_id: record}
                index[record.ref] = record.resource
            else:
                resource = index.get(mutation.share)
                if resource is None:
                    raise NotFoundError("Share not found")
                node = nodes[resource]
                current = next(s for s in node.shares.values() if s.id == mutation.share.share_id)
                shares = dict(node.shares)
                if isinstance(mutation, UpdateShare):
                    record = replace(current, permission=mutation.permission)
                    shares[record.user_id] = record
                else:
                    record = shares.pop(current.user_id)
                    del index[record.ref]
            nodes[node.ref] = replace(node, shares=MappingProxyType(shares))
            self._publish(nodes, index)
        return record

    def set_owner(self, ref: ResourceRef, owner_id: int) -> int | None:
        """Replace the owner of ``ref`` and return the previous owner."""
        with self._write_lock:
            nodes, index = self._copy()
            node = self._require(nodes, ref)
            nodes[ref] = replace(node, owner_id=owner_id)
            self._publish(nodes, index)
        return node.owner_id

    def delete_resource_cascade(self, ref: ResourceRef) -> CascadeResult:
        """Remove ``ref``, everything below it and every share on them."""
        with self._write_lock:
            nodes, index = self._copy()
            self._require(nodes, ref)
            doomed = [ref, *self._snapshot.descendants(ref)]
            removed: list[ShareRecord] = []
            names: dict[ResourceRef, str] = {}
            for target in doomed:
                node = nodes.pop(target)
                if node.name is not None:
                    names[target] = node.name
                for record in node.shares.values():
                    index.pop(record.ref, None)
                    removed.append(record)
            self._publish(nodes, index)
        return CascadeResult(resources=doomed, shares=removed, names=names)

    def load(self, nodes: Iterable[ResourceNode]) -> None:
        """Replace the whole arena with ``nodes``."""
        with self._write_lock:
            fresh = {node.ref: node for node in nodes}
            index = {
                record.ref: node.ref for node in fresh.values() for record in node.shares.values()
            }
            self._publish(fresh, index)

    def _copy(self) -> tuple[dict[ResourceRef, ResourceNode], dict[ShareRef, ResourceRef]]:
        return dict(self._snapshot._nodes), dict(self._snapshot._share_index)

    def _publish(
        self, nodes: dict[ResourceRef, ResourceNode], index: dict[ShareRef, ResourceRef]
    ) -> None:
        self._snapshot = GraphSnapshot(nodes, index)

    @staticmethod
    def _require(nodes: Mapping[ResourceRef, ResourceNode], ref: ResourceRef) -> ResourceNode:
        node = nodes.get(ref)
        if node is None:
            raise NotFoundError(f"{ref.type.value} {ref.id} not found")
        return node
