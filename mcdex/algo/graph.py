"""Generic dependency graph with dependency, dependent and optional edges."""

from __future__ import annotations

from collections import deque
from typing import Hashable, Iterator


class Node:
    """A graph vertex wrapping one hashable value.

    Edge sets are dicts used as insertion-ordered sets, which keeps
    traversals deterministic across runs.
    """

    def __init__(self, value: Hashable, graph: Graph):
        self.value = value
        self._graph = graph
        self.dependents: dict[Node, None] = {}
        self.dependencies: dict[Node, None] = {}
        self.optionals: dict[Node, None] = {}

    def __repr__(self) -> str:
        return f"Node({self.value!r})"

    def add_dependencies(self, *values: Hashable) -> None:
        for value in values:
            dep = self._graph.add_node(value)
            self.dependencies[dep] = None
            dep.dependents[self] = None

    def add_optionals(self, *values: Hashable) -> None:
        # One-directional: the target does not learn about optional users
        for value in values:
            dep = self._graph.add_node(value)
            self.optionals[dep] = None

    def is_root(self) -> bool:
        return not self.dependents

    def is_leaf(self) -> bool:
        return not self.dependencies


class Graph:
    """Mapping of value -> Node, iterated in insertion order."""

    def __init__(self):
        self._nodes: dict[Hashable, Node] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, value: Hashable) -> bool:
        return value in self._nodes

    def __getitem__(self, value: Hashable) -> Node:
        return self._nodes[value]

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._nodes.values()))

    def get(self, value: Hashable) -> Node | None:
        return self._nodes.get(value)

    def add_node(self, value: Hashable) -> Node:
        node = self._nodes.get(value)
        if node is None:
            node = Node(value, self)
            self._nodes[value] = node
        return node

    def remove_node(self, value: Hashable) -> None:
        node = self._nodes.pop(value, None)
        if node is None:
            return
        for other in self._nodes.values():
            other.dependencies.pop(node, None)
            other.dependents.pop(node, None)
            other.optionals.pop(node, None)

    def sorted(self) -> list[Node]:
        """Topological order (Kahn) with dependents before their dependencies.

        Nodes caught in a dependency cycle never reach in-degree zero; they
        are appended at the end in insertion order.
        """
        result: list[Node] = []
        degree: dict[Node, int] = {}
        ready: deque[Node] = deque()

        for node in self._nodes.values():
            if node.is_root():
                ready.append(node)
            else:
                degree[node] = len(node.dependents)

        while ready:
            node = ready.popleft()
            result.append(node)
            for dep in node.dependencies:
                degree[dep] -= 1
                if degree[dep] == 0:
                    ready.append(dep)

        if len(result) < len(self._nodes):
            emitted = set(result)
            result.extend(n for n in self._nodes.values() if n not in emitted)

        return result
