"""Graph algorithms."""

from mcdex.algo.graph import Graph, Node

__all__ = ["Graph", "Node"]
