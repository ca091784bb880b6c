"""Tsty Engine — flow execution and dependency resolution for browser tests."""

from tstyengine.engine import TstyEngine
from tstyengine.exceptions import (
    AssertionFailure,
    BrowserError,
    ConfigurationError,
    DependencyError,
    EvaluationError,
    ExecutionError,
    FatalError,
    FlowNotFoundError,
    MissingDependencyError,
    NavigationError,
    SelectorTimeoutError,
    StateTransitionError,
    TstyError,
)
from tstyengine.models import (
    ActionDefinition,
    Assertion,
    DependencyValidation,
    Device,
    Flow,
    FlowStep,
    ProgressEvent,
    RunReport,
    RunState,
    StepResult,
)
from tstyengine.progress import CallbackEmitter, ProgressEmitter, QueueEmitter

__version__ = "0.1.0"

__all__ = [
    "ActionDefinition",
    "Assertion",
    "AssertionFailure",
    "BrowserError",
    "CallbackEmitter",
    "ConfigurationError",
    "DependencyError",
    "DependencyValidation",
    "Device",
    "EvaluationError",
    "ExecutionError",
    "FatalError",
    "Flow",
    "FlowNotFoundError",
    "FlowStep",
    "MissingDependencyError",
    "NavigationError",
    "ProgressEmitter",
    "ProgressEvent",
    "QueueEmitter",
    "RunReport",
    "RunState",
    "SelectorTimeoutError",
    "StateTransitionError",
    "StepResult",
    "TstyError",
    "TstyEngine",
    "__version__",
]
