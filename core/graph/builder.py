"""Build the dependency graph of a stack and order it for creation."""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import Iterable

from core.errors import CyclicDependencyError, UnknownResourceError
from core.graph.resolver import find_references
from core.models import Resource

_WHITE, _GREY, _BLACK = 0, 1, 2


@dataclass(slots=True)
class DependencyGraph:
    """DAG over logical ids; an edge D->R means R is created after D."""

    nodes: list[str] = field(default_factory=list)
    dependencies: dict[str, list[str]] = field(default_factory=dict)
    dependents: dict[str, list[str]] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)

    def dependencies_of(self, node: str) -> list[str]:
        return list(self.dependencies.get(node, []))

    def dependents_of(self, node: str) -> list[str]:
        return list(self.dependents.get(node, []))

    def edges(self) -> list[tuple[str, str]]:
        return [(dep, node) for node in self.nodes for dep in self.dependencies.get(node, [])]

    def descendants(self, node: str) -> set[str]:
        return self._walk(node, self.dependents)

    def ancestors(self, node: str) -> set[str]:
        return self._walk(node, self.dependencies)

    def reverse_order(self) -> list[str]:
        return list(reversed(self.order))

    @staticmethod
    def _walk(start: str, adjacency: dict[str, list[str]]) -> set[str]:
        seen: set[str] = set()
        pending = list(adjacency.get(start, []))
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            pending.extend(adjacency.get(current, []))
        return seen


class DependencyGraphBuilder:
    """Infer explicit and reference-implied edges, reject cycles, order nodes."""

    def build(self, resources: Iterable[Resource]) -> DependencyGraph:
        declared = list(resources)
        graph = DependencyGraph(nodes=[resource.logical_id for resource in declared])
        known = set(graph.nodes)

        for resource in declared:
            deps: list[str] = []
            for dep in [*resource.depends_on, *self._referenced_ids(resource)]:
                if dep not in known:
                    raise UnknownResourceError(dep, referenced_by=resource.logical_id)
                if dep not in deps:
                    deps.append(dep)
            graph.dependencies[resource.logical_id] = deps
            graph.dependents.setdefault(resource.logical_id, [])
            for dep in deps:
                graph.dependents.setdefault(dep, []).append(resource.logical_id)

        self._check_acyclic(graph)
        graph.order = self._topological_order(graph)
        return graph

    # ------------------------------------------------------------------
    @staticmethod
    def _referenced_ids(resource: Resource) -> list[str]:
        return [ref.resource_id for ref in find_references(resource.properties)]

    @staticmethod
    def _check_acyclic(graph: DependencyGraph) -> None:
        colour = {node: _WHITE for node in graph.nodes}
        path: list[str] = []

        def visit(node: str) -> None:
            colour[node] = _GREY
            path.append(node)
            for dep in graph.dependencies.get(node, []):
                if colour[dep] == _GREY:
                    start = path.index(dep)
                    raise CyclicDependencyError([*path[start:], dep])
                if colour[dep] == _WHITE:
                    visit(dep)
            path.pop()
            colour[node] = _BLACK

        for node in graph.nodes:
            if colour[node] == _WHITE:
                visit(node)

    @staticmethod
    def _topological_order(graph: DependencyGraph) -> list[str]:
        index = {node: position for position, node in enumerate(graph.nodes)}
        remaining = {node: len(graph.dependencies.get(node, [])) for node in graph.nodes}
        ready = [(index[node], node) for node, count in remaining.items() if count == 0]
        heapq.heapify(ready)

        order: list[str] = []
        while ready:
            _, node = heapq.heappop(ready)
            order.append(node)
            for dependent in graph.dependents.get(node, []):
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    heapq.heappush(ready, (index[dependent], dependent))
        return order


__all__ = ["DependencyGraph", "DependencyGraphBuilder"]
