"""Tests for conflict detection and the resolution state machine."""

import pytest

from memosync.conflict import ConflictDetector, ConflictState, ConflictTracker, Resolution, is_conflict
from memosync.errors import SyncConflictError
from memosync.storage.snapshots import build_sync_snapshot


def _snapshot(updated_at, entities=(), device="dev"):
    return build_sync_snapshot(list(entities), device, now=updated_at)


class TestIsConflict:
    @pytest.mark.parametrize(
        "cloud_updated_at,last_sync,expected",
        [(101, 100, True), (100, 100, False), (99, 100, False), (1, 0, True), (0, 0, False)],
    )
    def test_strictly_newer_only(self, cloud_updated_at, last_sync, expected):
        assert is_conflict(cloud_updated_at, last_sync) is expected


class TestConflictDetector:
    def test_no_cloud_snapshot(self):
        ConflictDetector().check(_snapshot(150), None, last_sync_time=100)

    def test_cloud_not_newer(self):
        ConflictDetector().check(_snapshot(150), _snapshot(100), last_sync_time=100)

    def test_cloud_newer_raises_with_both_snapshots(self):
        local = _snapshot(150, device="local")
        cloud = _snapshot(300, device="cloud")
        with pytest.raises(SyncConflictError) as exc_info:
            ConflictDetector().check(local, cloud, last_sync_time=100, provider="github")
        err = exc_info.value
        assert err.local_snapshot is local
        assert err.cloud_snapshot is cloud
        assert err.last_sync_time == 100
        assert err.provider == "github"

    def test_entity_timestamps_do_not_matter(self, make_memo):
        """Only snapshot assembly times are compared."""
        local = _snapshot(150, [make_memo("a", 10_000)])
        cloud = _snapshot(90, [make_memo("a", 1)])
        ConflictDetector().check(local, cloud, last_sync_time=100)

        cloud_newer = _snapshot(101, [make_memo("a", 1)])
        with pytest.raises(SyncConflictError):
            ConflictDetector().check(local, cloud_newer, last_sync_time=100)


class TestResolutionParse:
    def test_enum_and_string(self):
        assert Resolution.parse("use_local") is Resolution.USE_LOCAL
        assert Resolution.parse(Resolution.USE_CLOUD) is Resolution.USE_CLOUD

    def test_unknown(self):
        with pytest.raises(ValueError):
            Resolution.parse("merge_both")


class TestConflictTracker:
    def _error(self):
        return SyncConflictError(_snapshot(150), _snapshot(300), last_sync_time=100)

    def test_starts_synced(self):
        tracker = ConflictTracker()
        assert tracker.state is ConflictState.SYNCED
        assert tracker.pending is None

    def test_enter_and_resolve(self):
        tracker = ConflictTracker()
        err = self._error()
        tracker.enter_conflict(err)
        assert tracker.state is ConflictState.CONFLICT_PENDING
        assert tracker.pending is err
        tracker.mark_resolved(Resolution.USE_CLOUD)
        assert tracker.state is ConflictState.RESOLVED
        assert tracker.pending is None

    def test_cancel(self):
        tracker = ConflictTracker()
        tracker.enter_conflict(self._error())
        tracker.cancel()
        assert tracker.state is ConflictState.SYNCED
        assert tracker.pending is None
