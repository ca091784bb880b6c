"""Dependency graph validation shared by the action resolver, flow runs and editors.

A graph is a mapping ``id -> ordered dependency ids`` where every id is of the
same kind (all actions or all flows). Everything here is pure and synchronous.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from tstyengine.models import DependencyValidation

MAX_DEPTH = 5

Graph = Mapping[str, Sequence[str]]


@dataclass(frozen=True)
class GraphValidation:
    """Result of validating a whole graph."""

    levels: dict[str, int]
    cyclic: frozenset[str]
    cycles: list[list[str]] = field(default_factory=list)
    missing: dict[str, list[str]] = field(default_factory=dict)

    @property
    def max_level(self) -> int:
        return max(self.levels.values(), default=0)

    @property
    def valid(self) -> bool:
        return not self.cyclic and not self.missing and self.max_level <= MAX_DEPTH


def validate(graph: Graph) -> GraphValidation:
    """Find cycles, dangling references and the level of every id."""
    missing: dict[str, list[str]] = {}
    for node, deps in graph.items():
        dangling = [d for d in deps if d not in graph]
        if dangling:
            missing[node] = dangling

    cyclic = _cyclic_nodes(graph)
    cycles = _cycle_paths(graph, cyclic)
    levels = _levels(graph, cyclic)

    return GraphValidation(
        levels={n: levels[n] for n in graph},
        cyclic=frozenset(cyclic),
        cycles=cycles,
        missing=missing,
    )


def _cyclic_nodes(graph: Graph) -> set[str]:
    """Ids lying on a cycle: strongly connected components of size > 1 or self-loops.

    Iterative Tarjan; graphs may be deeper than the recursion limit.
    """
    index: dict[str, int] = {}
    low: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    cyclic: set[str] = set()
    counter = 0

    for root in graph:
        if root in index:
            continue
        work: list[tuple[str, int]] = [(root, 0)]
        while work:
            node, child_i = work.pop()
            if child_i == 0:
                index[node] = low[node] = counter
                counter += 1
                stack.append(node)
                on_stack.add(node)
            deps = [d for d in graph.get(node, ()) if d in graph]
            recurse = False
            for i in range(child_i, len(deps)):
                dep = deps[i]
                if dep not in index:
                    work.append((node, i + 1))
                    work.append((dep, 0))
                    recurse = True
                    break
                if dep in on_stack:
                    low[node] = min(low[node], index[dep])
            if recurse:
                continue
            if low[node] == index[node]:
                component: list[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                if len(component) > 1 or node in graph.get(node, ()):
                    cyclic.update(component)
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[node])
    return cyclic


def _cycle_paths(graph: Graph, cyclic: set[str]) -> list[list[str]]:
    """One readable path per cycle, e.g. ``["a", "b", "a"]``."""
    paths: list[list[str]] = []
    seen: set[str] = set()
    for start in graph:
        if start not in cyclic or start in seen:
            continue
        path = _find_path_back(graph, start)
        if path:
            paths.append(path)
            seen.update(path)
    return paths


def _find_path_back(graph: Graph, start: str) -> list[str] | None:
    """Shortest path from ``start`` back to itself, breadth first."""
    parents: dict[str, str] = {}
    queue: deque[str] = deque([start])
    while queue:
        node = queue.popleft()
        for dep in graph.get(node, ()):
            if dep == start:
                path = [start]
                while node != start:
                    path.append(node)
                    node = parents[node]
                path.append(start)
                path.reverse()
                return path
            if dep in graph and dep not in parents:
                parents[dep] = node
                queue.append(dep)
    return None


def _levels(graph: Graph, cyclic: set[str]) -> dict[str, int]:
    """Longest dependency chain below each id; cyclic and unknown ids count as 0."""
    levels: dict[str, int] = {}
    for root in graph:
        stack = [root]
        while stack:
            node = stack[-1]
            if node in levels:
                stack.pop()
                continue
            if node in cyclic or node not in graph:
                levels[node] = 0
                stack.pop()
                continue
            pending = [d for d in graph[node] if d not in levels]
            if pending:
                stack.extend(pending)
                continue
            deps = graph[node]
            levels[node] = 1 + max(levels[d] for d in deps) if deps else 0
            stack.pop()
    return levels


def all_dependencies(node: str, graph: Graph) -> list[str]:
    """Every id ``node`` depends on, directly or transitively."""
    result: list[str] = []
    seen: set[str] = {node}
    pending = list(graph.get(node, ()))
    while pending:
        dep = pending.pop(0)
        if dep in seen:
            continue
        seen.add(dep)
        result.append(dep)
        pending.extend(graph.get(dep, ()))
    return result


def all_dependents(node: str, graph: Graph) -> list[str]:
    """Every id that depends on ``node``, directly or transitively."""
    reverse: dict[str, list[str]] = {}
    for other, deps in graph.items():
        for dep in deps:
            reverse.setdefault(dep, []).append(other)
    return all_dependencies(node, reverse)


def check_candidate(
    node: str,
    dependencies: Sequence[str],
    graph: Graph,
    kind: str = "action",
) -> DependencyValidation:
    """Validate ``dependencies`` as the new dependency set of ``node``.

    Editors call this before saving; flow runs call it on the flow's own
    declared dependencies.
    """
    errors: list[str] = []
    warnings: list[str] = []

    missing = [d for d in dependencies if d not in graph and d != node]
    for dep in missing:
        errors.append(f'{kind} "{dep}" does not exist')
    if node in dependencies:
        errors.append(f"{kind} cannot depend on itself")

    candidate = dict(graph)
    candidate[node] = list(dependencies)
    result = validate(candidate)

    cycles = [c for c in result.cycles if node in c] if node in result.cyclic else []
    if cycles:
        formatted = "; ".join(" → ".join(c) for c in cycles)
        errors.append(f"Circular dependency detected: {formatted}")

    depth = result.levels.get(node, 0)
    if not cycles and depth > MAX_DEPTH:
        errors.append(
            f"Dependency depth ({depth}) exceeds maximum ({MAX_DEPTH})"
        )

    redundant = _redundant(dependencies, graph)
    if redundant:
        warnings.append(
            "Redundant dependencies detected (already covered by transitive "
            f"dependencies): {', '.join(redundant)}"
        )

    return DependencyValidation(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        cycles=cycles,
        missing=missing,
        redundant=redundant,
        depth=depth,
    )


def _redundant(dependencies: Sequence[str], graph: Graph) -> list[str]:
    transitive: set[str] = set()
    for dep in dependencies:
        transitive.update(all_dependencies(dep, graph))
    return [d for d in dependencies if d in transitive]
