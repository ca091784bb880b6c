"""Tsty — Python client library for running browser test flows."""

from tsty.client import Tsty
from tsty.exceptions import (
    ConnectionError,
    FlowExecutionError,
    FlowNotFoundError,
    InvalidFlowError,
    TimeoutError,
    TstyClientError,
)
from tsty.models import FlowInfo, ProgressUpdate, RunResult, StepOutcome, Validation
from tsty.sync_client import TstySync

__version__ = "0.1.0"

__all__ = [
    "ConnectionError",
    "FlowExecutionError",
    "FlowInfo",
    "FlowNotFoundError",
    "InvalidFlowError",
    "ProgressUpdate",
    "RunResult",
    "StepOutcome",
    "TimeoutError",
    "Tsty",
    "TstyClientError",
    "TstySync",
    "Validation",
    "__version__",
]
