"""Tests for snapshot reconciliation."""

import copy

from labsync.models import BorrowRequest, Component, RequestStatus, SystemData
from labsync.reconcile import is_empty_snapshot, merge_collections, merge_snapshots, reconcile


def _component(component_id, name, available=5):
    return Component(id=component_id, name=name, total_quantity=5, available_quantity=available)


class TestMergeCollections:
    """Test the per-collection merge rule."""

    def test_remote_wins_on_collision(self):
        local = [_component("c1", "Local name")]
        remote = [_component("c1", "Remote name")]
        merged = merge_collections(local, remote)
        assert [c.name for c in merged] == ["Remote name"]

    def test_local_only_entities_are_appended(self):
        local = [_component("c1", "Servo"), _component("c9", "Offline add")]
        remote = [_component("c1", "Servo"), _component("c2", "Stepper")]
        merged = merge_collections(local, remote)
        assert [c.id for c in merged] == ["c1", "c2", "c9"]

    def test_remote_only_entities_are_adopted(self):
        merged = merge_collections([], [_component("c2", "Stepper")])
        assert [c.id for c in merged] == ["c2"]

    def test_nothing_is_dropped(self):
        local = [_component("a", "A"), _component("b", "B")]
        remote = [_component("b", "B2"), _component("c", "C")]
        merged_ids = {c.id for c in merge_collections(local, remote)}
        assert merged_ids == {"a", "b", "c"}

    def test_local_order_preserved_among_local_only(self):
        local = [_component("z", "Z"), _component("m", "M"), _component("a", "A")]
        merged = merge_collections(local, [_component("m", "M")])
        assert [c.id for c in merged] == ["m", "z", "a"]


class TestMergeSnapshots:
    """Test whole-snapshot merges."""

    def test_merge_is_idempotent(self):
        local = SystemData(components=[_component("c1", "L"), _component("c3", "Only local")])
        remote = SystemData(components=[_component("c1", "R"), _component("c2", "Only remote")])
        once = merge_snapshots(local, remote)
        twice = merge_snapshots(once, remote)
        assert once == twice

    def test_merge_does_not_mutate_inputs(self):
        local = SystemData(components=[_component("c1", "L")])
        remote = SystemData(components=[_component("c2", "R")])
        local_before, remote_before = copy.deepcopy(local), copy.deepcopy(remote)
        merge_snapshots(local, remote)
        assert local == local_before
        assert remote == remote_before

    def test_collections_merge_independently(self):
        request = BorrowRequest(id="r1", user_id="u1", component_id="c1")
        local = SystemData(requests=[request])
        remote = SystemData(components=[_component("c1", "Servo")])
        merged = merge_snapshots(local, remote)
        assert [c.id for c in merged.components] == ["c1"]
        assert [r.id for r in merged.requests] == ["r1"]

    def test_offline_approval_is_replaced_by_remote_pending(self):
        pending = BorrowRequest(id="req-1", user_id="u1", component_id="c1")
        approved = copy.deepcopy(pending)
        approved.status = RequestStatus.APPROVED
        merged = merge_snapshots(SystemData(requests=[approved]), SystemData(requests=[pending]))
        assert merged.requests[0].status == RequestStatus.PENDING


class TestReconcileReport:
    def test_report_counts(self):
        local = SystemData(components=[
            _component("same", "Same"),
            _component("edited", "Edited locally"),
            _component("new", "Local only"),
        ])
        remote = SystemData(components=[
            _component("same", "Same"),
            _component("edited", "Remote copy"),
            _component("remote", "Remote only"),
        ])
        merged, report = reconcile(local, remote)
        assert report.adopted_remote == 3
        assert report.kept_local == 1
        assert report.overridden == 1
        assert report.overridden_ids == ["components/edited"]
        assert len(merged.components) == 4

    def test_is_empty_snapshot(self):
        assert is_empty_snapshot(SystemData())
        assert not is_empty_snapshot(SystemData(components=[_component("c1", "Servo")]))
