"""Action resolver: expands a step's action ids into a flat primitive sequence."""

from __future__ import annotations

from collections.abc import Mapping

from tstyengine.exceptions import DependencyError, MissingDependencyError
from tstyengine.graph import MAX_DEPTH, validate
from tstyengine.logger import get_logger
from tstyengine.models import ActionDefinition, Flow, FlowStep, Primitive

log = get_logger(__name__)


def reachable_actions(
    roots: list[str], actions: Mapping[str, ActionDefinition]
) -> dict[str, list[str]]:
    """Dependency graph of every action id reachable from ``roots``.

    Dangling ids are kept as keys with no dependencies so callers can report
    them; the caller decides whether that is an error.
    """
    graph: dict[str, list[str]] = {}
    pending = list(roots)
    while pending:
        action_id = pending.pop()
        if action_id in graph:
            continue
        action = actions.get(action_id)
        graph[action_id] = list(action.dependencies) if action else []
        pending.extend(graph[action_id])
    return graph


class ActionResolver:
    """Turns flow steps into executable plans."""

    def __init__(self, actions: Mapping[str, ActionDefinition]) -> None:
        self.actions = actions

    def resolve(self, step: FlowStep, owner: str | None = None) -> list[Primitive]:
        """Inline primitives first, then each action with its dependencies."""
        owner = owner or step.name
        self._check(step.actions, owner)
        plan: list[Primitive] = list(step.primitives)
        for action_id in step.actions:
            plan.extend(self._expand(action_id))
        log.debug(
            "step_resolved",
            step=step.name,
            actions=step.actions,
            primitives=len(plan),
        )
        return plan

    def resolve_action(self, action_id: str) -> list[Primitive]:
        """Expansion of a single action, dependencies first."""
        self._check([action_id], action_id)
        return self._expand(action_id)

    def plan(self, flow: Flow) -> list[list[Primitive]]:
        """Resolve every step of ``flow`` up front."""
        return [self.resolve(step, owner=f"{flow.name}/{step.name}") for step in flow.steps]

    def _check(self, roots: list[str], owner: str) -> None:
        graph = reachable_actions(roots, self.actions)
        missing = sorted(a for a in graph if a not in self.actions)
        if missing:
            raise MissingDependencyError(owner, missing)

        result = validate(graph)
        if result.cyclic:
            paths = "; ".join(" → ".join(c) for c in result.cycles)
            raise DependencyError(
                owner, f"circular action dependency: {paths}", cycles=result.cycles
            )
        if result.max_level > MAX_DEPTH:
            deepest = max(result.levels, key=result.levels.__getitem__)
            raise DependencyError(
                owner,
                f"dependency chain of '{deepest}' is {result.max_level} deep "
                f"(maximum {MAX_DEPTH})",
            )

    def _expand(self, action_id: str) -> list[Primitive]:
        action = self.actions[action_id]
        expanded: list[Primitive] = []
        for dep in action.dependencies:
            expanded.extend(self._expand(dep))
        expanded.extend(action.primitives)
        return expanded


def resolve(
    step: FlowStep, actions: Mapping[str, ActionDefinition]
) -> list[Primitive]:
    """Resolve one step against ``actions``."""
    return ActionResolver(actions).resolve(step)
