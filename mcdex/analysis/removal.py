"""Mod removal: resolve targets, compute the impact on the pack, apply it."""

from __future__ import annotations

import logging
import sys
from collections import deque
from typing import Iterable

from mcdex.algo import Graph, Node
from mcdex.analysis.graph_builder import build_dependency_graph
from mcdex.database import Database
from mcdex.errors import (
    CacheError,
    ManifestError,
    ModNotFoundError,
    ModNotInPackError,
    NoModsFoundError,
    PartialRemovalError,
    RemovalError,
)
from mcdex.modpack import ModPack
from mcdex.models import DepInfo, ManifestFileEntry, RemovalMode

logger = logging.getLogger(__name__)


def compute_impact(graph: Graph, target_file_ids: Iterable[int], max_depth: int) -> DepInfo:
    """Classify the pack's files relative to removing ``target_file_ids``.

    Runs three passes over the graph:

    1. BFS backwards along "depends on me" edges from the targets, up to
       ``max_depth`` hops; everything reached is a dependent.
    2. A walk in topological order (dependents first) marking non-root nodes
       whose every dependent is already being removed within the bound;
       these are orphaned dependencies.
    3. For nodes left untouched, collect optional edges pointing at removed
       nodes. An orphaned dependency that is also an optional target of a
       surviving node is taken back out of the orphan set.

    ``max_depth < 0`` means unbounded.
    """
    if max_depth < 0:
        max_depth = sys.maxsize

    targets = set(target_file_ids)
    result = DepInfo()
    depth_of: dict[Node, int] = {}

    # Phase 1: dependents
    queue: deque[Node] = deque()
    for node in graph:
        entry = node.value
        if entry.file_id not in targets or node in depth_of:
            continue
        depth_of[node] = 0
        queue.append(node)
        result.targets.append(entry)

    while queue:
        node = queue.popleft()
        depth = depth_of[node]
        if depth >= max_depth:
            continue
        for dependent in node.dependents:
            if dependent in depth_of:
                continue
            depth_of[dependent] = depth + 1
            queue.append(dependent)
            result.dependents.setdefault(dependent.value, []).append(node.value)

    # Phase 2: dependencies left without a dependent
    for node in graph.sorted():
        # Roots were either targets or explicitly selected by the user
        if node.is_root() or node in depth_of:
            continue

        parents: list[ManifestFileEntry] = []
        min_depth = sys.maxsize
        for dependent in node.dependents:
            depth = depth_of.get(dependent)
            if depth is None or depth >= max_depth:
                break  # still has a live dependent
            parents.append(dependent.value)
            min_depth = min(min_depth, depth + 1)
        else:
            depth_of[node] = min_depth
            result.dependencies[node.value] = parents

    # Phase 3: optional dependencies on removed mods
    for node in graph:
        if node in depth_of:
            continue

        optionals: list[ManifestFileEntry] = []
        for optional in node.optionals:
            depth = depth_of.get(optional)
            if depth is None or depth >= max_depth:
                continue
            entry = optional.value
            if entry in result.dependencies:
                # A surviving mod can still use it; keep it installed
                del result.dependencies[entry]
                del depth_of[optional]
            else:
                optionals.append(entry)

        if optionals:
            result.optionals[node.value] = optionals

    return result


def resolve_targets(pack: ModPack, db: Database, mod_names: Iterable[str]) -> set[int]:
    """Map mod names/slugs to the file ids pinned in the pack.

    Names that cannot be resolved are logged and skipped.
    """
    file_ids: set[int] = set()
    for name in mod_names:
        try:
            project_id = db.find_mod_by_name(name)
            file_ids.add(pack.lookup_file_id(project_id))
        except (ModNotFoundError, ModNotInPackError) as e:
            logger.error("%s", e)

    if not file_ids:
        raise NoModsFoundError("no mods found")
    return file_ids


def analyze_removal(
    pack: ModPack,
    db: Database,
    mod_names: Iterable[str],
    mode: RemovalMode,
) -> DepInfo:
    """Resolve ``mod_names`` and compute what removing them would do."""
    file_ids = resolve_targets(pack, db, mod_names)
    graph = build_dependency_graph(pack, db)
    logger.debug("Analyzing removal of %d file(s), max depth %d", len(file_ids), mode.max_depth)
    return compute_impact(graph, file_ids, mode.max_depth)


def remove_mods(pack: ModPack, entries: list[ManifestFileEntry], dry_run: bool = False) -> int:
    """Delete ``entries`` from the manifest, clean their cached jars and save.

    Returns the number of entries removed.
    """
    if dry_run:
        return 0
    if not entries:
        logger.info("Nothing to remove")
        return 0

    # Remove from the back so earlier indices stay valid; duplicated file ids
    # contribute every copy
    ordered = sorted(
        ((index, entry) for entry in entries for index in entry.indices),
        key=lambda pair: pair[0],
        reverse=True,
    )

    done = 0
    cleaned: set[int] = set()
    for index, entry in ordered:
        logger.info("Removing [%7d] %r - %r", entry.file_id, entry.name, entry.filename)
        try:
            pack.remove_file_at(index)
        except ManifestError as e:
            logger.error("Failed to remove mod %r from manifest: %s", entry.name, e)
            continue
        done += 1

        if entry.project_id in cleaned:
            continue
        cleaned.add(entry.project_id)
        try:
            pack.mod_cache.cleanup_mod_file(entry.project_id)
        except CacheError as e:
            logger.warning("%s", e)

    if done == 0:
        raise RemovalError("failed to remove any mods; no changes have been made")

    try:
        pack.save_manifest()
    except ManifestError as e:
        raise RemovalError("failed to save changes to manifest") from e

    if done < len(ordered):
        raise PartialRemovalError("some mods could not be removed; pack may be in an invalid state")

    return done
