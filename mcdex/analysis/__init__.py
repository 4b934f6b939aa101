"""Dependency analysis for modpacks."""

from mcdex.analysis.graph_builder import build_dependency_graph
from mcdex.analysis.removal import analyze_removal, compute_impact, remove_mods, resolve_targets

__all__ = [
    "analyze_removal",
    "build_dependency_graph",
    "compute_impact",
    "remove_mods",
    "resolve_targets",
]
