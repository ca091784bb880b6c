"""Run report assembly. Every function returns a new report."""

from __future__ import annotations

import uuid
from datetime import datetime

from tstyengine.models import Device, RunReport, RunState, StepResult
from tstyengine.primitives import slugify


def new_run_id(flow_id: str) -> str:
    return f"{slugify(flow_id)}-{uuid.uuid4().hex[:8]}"


def new_report(
    flow_id: str,
    flow_name: str,
    device: Device,
    planned_steps: int,
    run_id: str | None = None,
    screenshot_dir: str = "",
    started_at: datetime | None = None,
) -> RunReport:
    report = RunReport(
        run_id=run_id or new_run_id(flow_id),
        flow_id=flow_id,
        flow=flow_name,
        device=device,
        planned_steps=planned_steps,
        screenshot_dir=screenshot_dir,
    )
    if started_at is not None:
        report.timestamp = started_at
    return report


def _counted(report: RunReport, steps: list[StepResult], **changes) -> RunReport:
    passed = sum(1 for s in steps if s.passed)
    return report.model_copy(
        update={
            "steps": steps,
            "passed": passed,
            "failed": len(steps) - passed,
            "total_steps": len(steps),
            **changes,
        }
    )


def append(report: RunReport, result: StepResult) -> RunReport:
    """Add a step result; counters are re-derived from the steps."""
    return _counted(report, [*report.steps, result])


def stop_early(report: RunReport, reason: str) -> RunReport:
    return report.model_copy(update={"stopped_early": True, "stop_reason": reason})


def abort(report: RunReport, error: str) -> RunReport:
    return report.model_copy(update={"status": RunState.ABORTED, "error": error})


def finalize(
    report: RunReport,
    status: RunState,
    started_at: float,
    ended_at: float,
) -> RunReport:
    """Set the terminal status and the duration in ms (monotonic clock seconds in)."""
    if not status.is_terminal:
        raise ValueError(f"Cannot finalize a report as {status.value}")
    return _counted(
        report,
        list(report.steps),
        status=status,
        duration=round((ended_at - started_at) * 1000, 1),
    )
