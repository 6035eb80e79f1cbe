"""Tests for the client-side effective-access cache."""

import pytest

from taskgrid.models.enums import Permission, ResourceType
from taskgrid.models.list import List
from taskgrid.services.access_cache import AccessFlags, EffectiveAccessCache
from taskgrid.services.access_snapshot import build_access_snapshot
from taskgrid.services.graph import ResourceRef


def refs(workspace):
    return {
        "list": ResourceRef(ResourceType.LIST, workspace["list"].id),
        "category": ResourceRef(ResourceType.CATEGORY, workspace["category"].id),
        "task": ResourceRef(ResourceType.TASK, workspace["task"].id),
        "loose_task": ResourceRef(ResourceType.TASK, workspace["loose_task"].id),
    }


def frames_for(pushed, user_id):
    """Frames published to ``user_id`` so far, oldest first."""
    return [call.args[1] for call in pushed.call_args_list if call.args[0] == user_id]


@pytest.fixture
def shared(workspace, sharing, alice, bob, carol):
    """Bob: VIEW on the list and EDIT on the category. Carol: EDIT on one task."""
    r = refs(workspace)
    list_share = sharing.grant_share(alice.id, r["list"], bob.id, Permission.VIEW)
    sharing.grant_share(alice.id, r["category"], bob.id, Permission.EDIT)
    sharing.grant_share(alice.id, r["task"], carol.id, Permission.EDIT)
    return {**r, "list_share": list_share}


@pytest.fixture
def bob_cache(db, sharing, bob, shared, pushed):
    cache = EffectiveAccessCache(bob.id)
    cache.load(build_access_snapshot(db, sharing.resolver, bob.id))
    pushed.reset_mock()
    return cache


class TestLoad:
    """Loading a snapshot."""

    def test_agrees_with_resolver(self, db, sharing, alice, bob, carol, shared):
        for user in (alice, bob, carol):
            cache = EffectiveAccessCache(user.id)
            cache.load(build_access_snapshot(db, sharing.resolver, user.id))
            for key in ("list", "category", "task", "loose_task"):
                assert cache.permission(shared[key]) == sharing.resolve(user.id, shared[key])

    def test_category_share_does_not_reach_tasks(self, bob_cache, shared):
        assert bob_cache.permission(shared["category"]) is Permission.EDIT
        assert bob_cache.permission(shared["task"]) is Permission.VIEW
        assert bob_cache.flags(shared["task"]) == AccessFlags(can_view=True)

    def test_accessible_listings(self, bob_cache, shared, workspace):
        assert bob_cache.accessible(ResourceType.LIST) == [shared["list"]]
        assert bob_cache.accessible_categories_by_list(workspace["list"].id) == [
            shared["category"]
        ]
        assert bob_cache.accessible_tasks_by_category(workspace["category"].id) == [
            shared["task"]
        ]

    def test_context_list_is_not_accessible(self, db, sharing, carol, shared):
        cache = EffectiveAccessCache(carol.id)
        cache.load(build_access_snapshot(db, sharing.resolver, carol.id).model_dump(mode="json"))

        assert cache.accessible(ResourceType.LIST) == []
        assert cache.accessible(ResourceType.TASK) == [shared["task"]]
        assert cache.flags(shared["task"]) == AccessFlags(can_view=True, can_edit=True)

    def test_unknown_resource_has_no_flags(self, bob_cache):
        assert bob_cache.flags(ResourceRef(ResourceType.TASK, 9999)) == AccessFlags()


class TestApplyFrame:
    """Folding push frames into the cache."""

    def test_direct_grant_raises_task_only(self, bob_cache, sharing, alice, bob, shared, pushed):
        sharing.grant_share(alice.id, shared["task"], bob.id, Permission.ADMIN)

        for frame in frames_for(pushed, bob.id):
            bob_cache.apply_frame(frame)

        assert bob_cache.flags(shared["task"]).can_admin
        assert bob_cache.permission(shared["loose_task"]) is Permission.VIEW
        assert bob_cache.permission(shared["task"]) == sharing.resolve(bob.id, shared["task"])

    def test_invalidates_only_affected_subtree(
        self, bob_cache, sharing, alice, bob, shared, pushed
    ):
        sharing.grant_share(alice.id, shared["task"], bob.id, Permission.ADMIN)
        (frame,) = frames_for(pushed, bob.id)

        bob_cache.apply_frame(frame)

        assert shared["task"] not in bob_cache._grades
        assert shared["list"] in bob_cache._grades
        assert shared["loose_task"] in bob_cache._grades

    def test_list_update_reaches_children(self, bob_cache, sharing, alice, bob, shared, pushed):
        sharing.update_share(alice.id, shared["list_share"].ref, Permission.EDIT)

        for frame in frames_for(pushed, bob.id):
            bob_cache.apply_frame(frame)

        assert bob_cache.permission(shared["loose_task"]) is Permission.EDIT
        assert bob_cache.permission(shared["task"]) is Permission.EDIT

    def test_revoke_list_share(self, bob_cache, sharing, alice, bob, shared, pushed):
        sharing.grant_share(alice.id, shared["task"], bob.id, Permission.ADMIN)
        sharing.revoke_share(alice.id, shared["list_share"].ref)

        for frame in frames_for(pushed, bob.id):
            bob_cache.apply_frame(frame)

        assert bob_cache.permission(shared["list"]) is None
        assert bob_cache.permission(shared["loose_task"]) is None
        assert bob_cache.permission(shared["task"]) is Permission.ADMIN
        assert bob_cache.permission(shared["category"]) is Permission.EDIT

    def test_cascade_delete_removes_subtree(self, bob_cache, sharing, alice, bob, shared, pushed):
        sharing.cascade_delete_resource(alice.id, shared["category"])

        for frame in frames_for(pushed, bob.id):
            bob_cache.apply_frame(frame)

        assert bob_cache.accessible(ResourceType.CATEGORY) == []
        assert bob_cache.accessible(ResourceType.TASK) == [shared["loose_task"]]

    def test_list_viewer_sees_child_deletion(self, bob_cache, sharing, alice, bob, shared, pushed):
        sharing.cascade_delete_resource(alice.id, shared["loose_task"])

        frames = frames_for(pushed, bob.id)
        assert [frame["type"] for frame in frames] == ["resource_deleted"]
        # Push only, nothing stored for a resource Bob only saw through the list
        assert frames[0]["notification_id"] is None
        for frame in frames:
            bob_cache.apply_frame(frame)

        assert shared["loose_task"] not in bob_cache.accessible(ResourceType.TASK)
        assert bob_cache.permission(shared["loose_task"]) is None
        assert not bob_cache.needs_reload

    def test_new_resource_requests_reload(self, db, bob_cache, sharing, alice, bob, pushed):
        other = List(name="Trips", owner_id=alice.id)
        db.add(other)
        db.commit()

        sharing.grant_share(
            alice.id, ResourceRef(ResourceType.LIST, other.id), bob.id, Permission.VIEW
        )
        for frame in frames_for(pushed, bob.id):
            bob_cache.apply_frame(frame)

        assert bob_cache.needs_reload

        bob_cache.load(build_access_snapshot(db, sharing.resolver, bob.id))
        assert not bob_cache.needs_reload
        assert ResourceRef(ResourceType.LIST, other.id) in bob_cache.accessible(ResourceType.LIST)
