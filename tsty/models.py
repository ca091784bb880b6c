"""Tsty client models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FlowInfo(_Wire):
    """Flow metadata."""

    id: str
    name: str
    description: str = ""
    step_count: int = 0
    devices: list[str] = []
    tags: list[str] = []
    dependencies: list[str] = []


class StepOutcome(_Wire):
    """Result of a single step."""

    name: str
    passed: bool
    duration_ms: float | None = None
    error: str | None = None
    screenshots: list[str] = []


class RunResult(_Wire):
    """Outcome of one run."""

    run_id: str
    flow_id: str
    status: str  # completed | failed | aborted
    passed: int = 0
    failed: int = 0
    total_steps: int = 0
    duration: float | None = None
    stopped_early: bool = False
    stop_reason: str | None = None
    error: str | None = None
    steps: list[StepOutcome] = []

    @property
    def ok(self) -> bool:
        return self.status == "completed" and self.failed == 0


class ProgressUpdate(_Wire):
    """One progress event of a streamed run."""

    type: str
    timestamp: datetime
    data: dict[str, Any] = {}


class Validation(_Wire):
    """Result of a dependency check."""

    valid: bool
    errors: list[str] = []
    warnings: list[str] = []
    cycles: list[list[str]] = []
    missing: list[str] = []
    redundant: list[str] = []
    depth: int = 0
