"""Tsty exception hierarchy."""

from __future__ import annotations


class TstyError(Exception):
    """Base exception for all Tsty engine errors."""


# --- Raised before a run enters Running ---


class ConfigurationError(TstyError):
    """Raised when a flow, action or primitive document is malformed."""

    def __init__(self, detail: str, entity_id: str | None = None) -> None:
        self.entity_id = entity_id
        self.detail = detail
        if entity_id:
            super().__init__(f"Invalid configuration for '{entity_id}': {detail}")
        else:
            super().__init__(f"Invalid configuration: {detail}")


class FlowNotFoundError(TstyError):
    """Raised when a flow id has no stored document."""

    def __init__(self, flow_id: str) -> None:
        self.flow_id = flow_id
        super().__init__(f"Flow not found: {flow_id}")


class DependencyError(TstyError):
    """Raised on a dependency cycle or a chain deeper than the allowed maximum."""

    def __init__(
        self,
        entity_id: str,
        detail: str,
        cycles: list[list[str]] | None = None,
    ) -> None:
        self.entity_id = entity_id
        self.detail = detail
        self.cycles = cycles or []
        super().__init__(f"Dependency error for '{entity_id}': {detail}")


class MissingDependencyError(DependencyError):
    """Raised when a dependency id does not resolve to a stored entity."""

    def __init__(self, entity_id: str, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            entity_id, f"unknown dependencies: {', '.join(missing)}"
        )


# --- Raised while a run is in progress ---


class ExecutionError(TstyError):
    """Raised when a primitive fails in a way the step can record and survive."""

    def __init__(self, primitive: str, detail: str) -> None:
        self.primitive = primitive
        self.detail = detail
        super().__init__(f"Primitive '{primitive}' failed: {detail}")


class SelectorTimeoutError(ExecutionError):
    """Raised when a primitive does not complete within its timeout."""

    def __init__(self, primitive: str, timeout_ms: float, detail: str = "") -> None:
        self.timeout_ms = timeout_ms
        message = f"timed out after {timeout_ms:.0f}ms"
        if detail:
            message += f": {detail}"
        super().__init__(primitive, message)


class NavigationError(ExecutionError):
    """Raised when a page navigation fails or lands on an unexpected URL."""


class EvaluationError(ExecutionError):
    """Raised when a page script throws."""


class AssertionFailure(TstyError):
    """Raised inside assertion checks when expected and actual differ."""

    def __init__(self, detail: str, actual: object = None) -> None:
        self.detail = detail
        self.actual = actual
        super().__init__(detail)


class FatalError(TstyError):
    """Raised when the browser session itself is gone; aborts the run."""


class BrowserError(FatalError):
    """Raised on browser lifecycle errors."""


class StateTransitionError(TstyError):
    """Raised on an illegal run state transition."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Illegal run state transition {current} -> {target}")
