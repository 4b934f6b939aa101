"""Dependency graph builder: one node per manifest file, edges from the database."""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Protocol

from mcdex.algo import Graph
from mcdex.models import DependencyEdge, DependencyLevel, ManifestFileEntry

logger = logging.getLogger(__name__)

EdgeFilter = Callable[[DependencyEdge], bool]


class FileSource(Protocol):
    def list_installed_files(self) -> list[ManifestFileEntry]: ...


class EdgeSource(Protocol):
    def resolve_name(self, file_id: int, project_id: int) -> str | None: ...

    def query_dependency_edges(self, file_ids: set[int]) -> list[DependencyEdge]: ...


def installed_edge_filter(installed: set[int]) -> EdgeFilter:
    """Accept edges whose two ends are distinct files installed in the pack."""
    def accept(edge: DependencyEdge) -> bool:
        return (
            edge.source_file_id in installed
            and edge.target_file_id in installed
            and edge.source_file_id != edge.target_file_id
        )
    return accept


def _merge_duplicates(files: list[ManifestFileEntry]) -> list[ManifestFileEntry]:
    """Fold repeated file ids into their first entry, keeping every index."""
    groups: dict[int, list[ManifestFileEntry]] = {}
    for entry in files:
        groups.setdefault(entry.file_id, []).append(entry)

    merged = []
    for first, *copies in groups.values():
        if copies:
            extra = tuple(c.index for c in copies)
            logger.warning(
                "File id %d appears more than once in the manifest (indices %d, %s); "
                "copies are handled together",
                first.file_id, first.index, ", ".join(map(str, extra)),
            )
            first = dataclasses.replace(first, duplicate_indices=extra)
        merged.append(first)
    return merged


def build_dependency_graph(pack: FileSource, db: EdgeSource) -> Graph:
    """Build a graph of ManifestFileEntry values for everything in the pack."""
    graph = Graph()
    entries: dict[int, ManifestFileEntry] = {}

    # Step 1: one node per file id, named from the database
    for entry in _merge_duplicates(pack.list_installed_files()):
        name = db.resolve_name(entry.file_id, entry.project_id)
        if name is None:
            logger.warning(
                "No mod found in database with project id %d and file id %d - File: %r; "
                "dependency resolution may be incomplete",
                entry.project_id, entry.file_id, entry.filename,
            )
        else:
            entry = dataclasses.replace(entry, name=name)

        entries[entry.file_id] = entry
        graph.add_node(entry)

    # Step 2: wire required/optional edges between installed files
    accept = installed_edge_filter(set(entries))
    for edge in db.query_dependency_edges(set(entries)):
        if not accept(edge):
            continue
        node = graph[entries[edge.source_file_id]]
        target = entries[edge.target_file_id]
        if edge.level == DependencyLevel.REQUIRED:
            node.add_dependencies(target)
        elif edge.level == DependencyLevel.OPTIONAL:
            node.add_optionals(target)

    logger.debug("Built dependency graph with %d node(s)", len(graph))
    return graph
