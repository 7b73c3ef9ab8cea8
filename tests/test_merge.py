"""Tests for the last-write-wins merge engine."""

from memosync.merge import local_changes, merge


class TestMerge:
    """merge(local, remote)."""

    def test_union_of_ids(self, make_memo):
        local = [make_memo("a", 100), make_memo("b", 50)]
        remote = [make_memo("c", 70)]
        assert {m.id for m in merge(local, remote)} == {"a", "b", "c"}

    def test_remote_wins_when_newer(self, make_memo):
        local = [make_memo("a", 100, content="x")]
        remote = [make_memo("a", 200, content="y")]
        merged = merge(local, remote)
        assert len(merged) == 1
        assert merged[0].content == "y"
        assert merged[0].updated_at == 200

    def test_local_wins_when_newer(self, make_memo):
        local = [make_memo("a", 300, content="x")]
        remote = [make_memo("a", 200, content="y")]
        assert merge(local, remote)[0].content == "x"

    def test_tie_keeps_local(self, make_memo):
        local = [make_memo("a", 100, content="local")]
        remote = [make_memo("a", 100, content="remote")]
        assert merge(local, remote)[0].content == "local"

    def test_sorted_newest_first(self, make_memo):
        local = [make_memo("a", 10), make_memo("b", 30)]
        remote = [make_memo("c", 20)]
        assert [m.updated_at for m in merge(local, remote)] == [30, 20, 10]

    def test_tombstones_survive(self, make_memo):
        local = [make_memo("a", 100)]
        remote = [make_memo("a", 200, is_deleted=True), make_memo("z", 5, is_deleted=True)]
        merged = {m.id: m for m in merge(local, remote)}
        assert merged["a"].is_deleted is True
        assert merged["z"].is_deleted is True

    def test_idempotent(self, make_memo):
        local = [make_memo("a", 100), make_memo("b", 300)]
        remote = [make_memo("a", 200), make_memo("c", 50)]
        once = merge(local, remote)
        assert merge(once, remote) == once
        assert merge(once, local) == once

    def test_empty_inputs(self, make_memo):
        assert merge([], []) == []
        assert [m.id for m in merge([make_memo("a", 1)], [])] == ["a"]

    def test_empty_remote_keeps_local(self, make_memo):
        local = [make_memo("a", 100)]
        merged = merge(local, [])
        assert [(m.id, m.updated_at) for m in merged] == [("a", 100)]

    def test_inputs_not_mutated(self, make_memo):
        local = [make_memo("a", 100, content="x")]
        remote = [make_memo("a", 200, content="y")]
        merge(local, remote)
        assert local[0].content == "x"


class TestLocalChanges:
    """local_changes(local, remote)."""

    def test_nothing_new(self, make_memo):
        local = [make_memo("a", 100)]
        remote = [make_memo("a", 100)]
        assert local_changes(local, remote) == []

    def test_local_only_entity(self, make_memo):
        local = [make_memo("a", 100), make_memo("b", 1)]
        remote = [make_memo("a", 100)]
        assert [m.id for m in local_changes(local, remote)] == ["b"]

    def test_local_newer(self, make_memo):
        local = [make_memo("a", 150)]
        remote = [make_memo("a", 100)]
        assert [m.id for m in local_changes(local, remote)] == ["a"]

    def test_remote_newer_is_not_a_local_change(self, make_memo):
        local = [make_memo("a", 100)]
        remote = [make_memo("a", 150)]
        assert local_changes(local, remote) == []
