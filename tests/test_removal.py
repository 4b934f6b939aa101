"""Tests for removal impact analysis and the removal executor."""

import logging

import pytest

from mcdex.algo import Graph
from mcdex.analysis.removal import compute_impact, remove_mods
from mcdex.errors import CacheError, ManifestError, PartialRemovalError, RemovalError
from mcdex.models import DepInfo, ManifestFileEntry


# ── Helpers ───────────────────────────────────────────────────

def _entry(file_id, index=0, name=None):
    return ManifestFileEntry(
        file_id=file_id,
        project_id=file_id // 10,
        index=index,
        name=name or f"mod{file_id}",
        filename=f"mod{file_id}.jar",
    )


def _graph(nodes, requires=(), optional=()):
    """nodes: file ids in manifest order; requires/optional: (source, target) pairs."""
    entries = {fid: _entry(fid, index=i) for i, fid in enumerate(nodes)}
    graph = Graph()
    for entry in entries.values():
        graph.add_node(entry)
    for src, dst in requires:
        graph[entries[src]].add_dependencies(entries[dst])
    for src, dst in optional:
        graph[entries[src]].add_optionals(entries[dst])
    return graph, entries


def _ids(entries):
    return [e.file_id for e in entries]


def _id_map(mapping):
    return {k.file_id: _ids(v) for k, v in mapping.items()}


# ── Dependents ────────────────────────────────────────────────

class TestDependents:
    def test_direct_dependent_single(self):
        graph, _ = _graph([10, 20], requires=[(20, 10)])
        info = compute_impact(graph, {10}, 1)
        assert _ids(info.targets) == [10]
        assert _id_map(info.dependents) == {20: [10]}
        assert info.dependencies == {}

    def test_recursive_removal_set(self):
        graph, _ = _graph([10, 20], requires=[(20, 10)])
        info = compute_impact(graph, {10}, -1)
        assert sorted(_ids(info.removal_set(recursive=True))) == [10, 20]
        assert _ids(info.removal_set(recursive=False)) == [10]

    def test_depth_one_excludes_grandchildren(self):
        graph, _ = _graph([10, 20, 30], requires=[(20, 10), (30, 20)])
        info = compute_impact(graph, {10}, 1)
        assert _id_map(info.dependents) == {20: [10]}

    def test_unbounded_reaches_transitive_closure(self):
        graph, _ = _graph([10, 20, 30, 40], requires=[(20, 10), (30, 20), (40, 30)])
        info = compute_impact(graph, {10}, -1)
        assert _id_map(info.dependents) == {20: [10], 30: [20], 40: [30]}

    def test_dependent_recorded_once(self):
        graph, _ = _graph([10, 11, 20], requires=[(20, 10), (20, 11)])
        info = compute_impact(graph, {10, 11}, -1)
        assert list(_id_map(info.dependents)) == [20]
        assert len(info.dependents[_entry(20)]) == 1

    def test_target_depending_on_target_is_not_a_dependent(self):
        graph, _ = _graph([10, 20], requires=[(20, 10)])
        info = compute_impact(graph, {10, 20}, -1)
        assert _ids(info.targets) == [10, 20]
        assert info.dependents == {}

    def test_unknown_target(self):
        graph, _ = _graph([10, 20], requires=[(20, 10)])
        info = compute_impact(graph, {999}, -1)
        assert info.targets == []
        assert info.removal_set(recursive=True) == []


# ── Orphaned dependencies ─────────────────────────────────────

class TestDependencies:
    def test_orphaned_dependency(self):
        graph, _ = _graph([10, 30], requires=[(10, 30)])
        info = compute_impact(graph, {10}, -1)
        assert _id_map(info.dependencies) == {30: [10]}
        assert sorted(_ids(info.removal_set(recursive=True))) == [10, 30]

    def test_orphaned_dependency_reported_in_single_mode(self):
        graph, _ = _graph([10, 30], requires=[(10, 30)])
        info = compute_impact(graph, {10}, 1)
        assert _id_map(info.dependencies) == {30: [10]}
        assert _ids(info.removal_set(recursive=False)) == [10]

    def test_shared_dependency_is_kept(self):
        graph, _ = _graph([10, 20, 30], requires=[(10, 30), (20, 30)])
        info = compute_impact(graph, {10}, -1)
        assert info.dependencies == {}

    def test_orphan_chain(self):
        graph, _ = _graph([10, 30, 40], requires=[(10, 30), (30, 40)])
        info = compute_impact(graph, {10}, -1)
        assert _id_map(info.dependencies) == {30: [10], 40: [30]}

    def test_depth_bound_stops_orphaning(self):
        # 20 depends on the target; 50 is only needed by 20
        graph, _ = _graph([10, 20, 50], requires=[(20, 10), (20, 50)])
        single = compute_impact(graph, {10}, 1)
        assert single.dependencies == {}
        recursive = compute_impact(graph, {10}, -1)
        assert _id_map(recursive.dependencies) == {50: [20]}

    def test_roots_never_orphaned(self):
        graph, _ = _graph(
            [10, 20, 30, 40],
            requires=[(10, 30), (20, 30)],
            optional=[(40, 10)],
        )
        for targets in ({10}, {20}, {10, 20}, {30}, {40}):
            info = compute_impact(graph, targets, -1)
            for key in info.dependencies:
                assert not graph[key].is_root()


# ── Optionals ─────────────────────────────────────────────────

class TestOptionals:
    def test_dangling_optional(self):
        graph, _ = _graph([10, 40], optional=[(40, 10)])
        info = compute_impact(graph, {10}, -1)
        assert _id_map(info.optionals) == {40: [10]}
        assert 40 not in _ids(info.removal_set(recursive=True))
        assert info.dependencies == {}

    def test_optional_user_keeps_orphan(self):
        # 30 is orphaned by removing 10, but 40 can still use it
        graph, _ = _graph([10, 30, 40], requires=[(10, 30)], optional=[(40, 30)])
        info = compute_impact(graph, {10}, -1)
        assert info.dependencies == {}
        assert info.optionals == {}
        assert _ids(info.removal_set(recursive=True)) == [10]

    def test_optional_outside_depth_bound_ignored(self):
        graph, _ = _graph([10, 20, 40], requires=[(20, 10)], optional=[(40, 20)])
        info = compute_impact(graph, {10}, 1)
        # 20 was reached at the depth limit
        assert info.optionals == {}

    def test_optional_on_unaffected_mod_ignored(self):
        graph, _ = _graph([10, 20, 40], optional=[(40, 20)])
        info = compute_impact(graph, {10}, -1)
        assert info.optionals == {}


# ── Determinism ───────────────────────────────────────────────

def test_compute_impact_idempotent():
    graph, _ = _graph(
        [10, 20, 30, 40, 50],
        requires=[(20, 10), (10, 30), (50, 30), (30, 40)],
        optional=[(50, 10)],
    )
    first = compute_impact(graph, {10}, -1)
    second = compute_impact(graph, {10}, -1)
    assert first == second


# ── Executor ──────────────────────────────────────────────────

class _FakeCache:
    def __init__(self, fail_for=()):
        self.cleaned = []
        self.fail_for = set(fail_for)

    def cleanup_mod_file(self, project_id):
        if project_id in self.fail_for:
            raise CacheError(f"cannot clean {project_id}")
        self.cleaned.append(project_id)


class _FakePack:
    def __init__(self, size, bad_indices=(), save_fails=False, cache=None):
        self.files = list(range(size))
        self.bad_indices = set(bad_indices)
        self.removed = []
        self.saves = 0
        self.save_fails = save_fails
        self.mod_cache = cache or _FakeCache()

    def remove_file_at(self, index):
        if index in self.bad_indices:
            raise ManifestError(f"cannot remove {index}")
        del self.files[index]
        self.removed.append(index)

    def save_manifest(self):
        if self.save_fails:
            raise ManifestError("disk full")
        self.saves += 1


class TestRemoveMods:
    def test_removes_in_reverse_index_order(self):
        pack = _FakePack(5)
        entries = [_entry(10, index=1), _entry(30, index=3), _entry(20, index=2)]
        assert remove_mods(pack, entries) == 3
        assert pack.removed == [3, 2, 1]
        assert pack.files == [0, 4]
        assert pack.saves == 1
        assert pack.mod_cache.cleaned == [3, 2, 1]

    def test_removes_every_copy_of_a_file(self):
        pack = _FakePack(5)
        doubled = ManifestFileEntry(
            file_id=10, project_id=1, index=1, name="mod10", duplicate_indices=(3,),
        )
        assert remove_mods(pack, [doubled, _entry(20, index=2)]) == 3
        assert pack.removed == [3, 2, 1]
        assert pack.files == [0, 4]
        assert pack.mod_cache.cleaned == [1, 2]

    def test_dry_run_is_noop(self):
        pack = _FakePack(3)
        assert remove_mods(pack, [_entry(10, index=0)], dry_run=True) == 0
        assert pack.removed == []
        assert pack.saves == 0

    def test_nothing_to_remove(self):
        pack = _FakePack(3)
        assert remove_mods(pack, []) == 0
        assert pack.saves == 0

    def test_all_fail(self):
        pack = _FakePack(3, bad_indices={0, 1})
        with pytest.raises(RemovalError, match="no changes have been made"):
            remove_mods(pack, [_entry(10, index=0), _entry(20, index=1)])
        assert pack.saves == 0

    def test_partial_failure_still_saves(self):
        pack = _FakePack(3, bad_indices={1})
        with pytest.raises(PartialRemovalError):
            remove_mods(pack, [_entry(10, index=0), _entry(20, index=1)])
        assert pack.removed == [0]
        assert pack.saves == 1

    def test_save_failure(self):
        pack = _FakePack(3, save_fails=True)
        with pytest.raises(RemovalError, match="failed to save"):
            remove_mods(pack, [_entry(10, index=0)])

    def test_cache_failure_is_not_fatal(self, caplog):
        pack = _FakePack(3, cache=_FakeCache(fail_for={1}))
        with caplog.at_level(logging.WARNING):
            assert remove_mods(pack, [_entry(10, index=0)]) == 1
        assert "cannot clean 1" in caplog.text
        assert pack.saves == 1


def test_removal_set_without_duplicates():
    a, b, c = _entry(10), _entry(20), _entry(30)
    info = DepInfo(targets=[a], dependents={b: [a]}, dependencies={c: [a]})
    assert info.removal_set(recursive=True) == [a, b, c]
    assert info.removal_set(recursive=False) == [a]
