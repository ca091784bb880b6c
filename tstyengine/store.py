"""Persistence for flows, actions and run reports."""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, ValidationError

from tstyengine.config import Settings
from tstyengine.exceptions import ConfigurationError
from tstyengine.logger import get_logger
from tstyengine.models import ActionDefinition, Flow, ReportSummary, RunReport

log = get_logger(__name__)

ACTION_SUFFIX = ".action.json"
EXAMPLE_SUFFIX = ".example.json"


def safe_flow_id(flow_id: str) -> str:
    return flow_id.replace("/", "-").replace("\\", "-")


def summarize(report_id: str, report: RunReport) -> ReportSummary:
    return ReportSummary(
        id=report_id,
        flow_id=report.flow_id,
        flow=report.flow,
        status=report.status,
        passed=report.passed,
        failed=report.failed,
        total_steps=report.total_steps,
        timestamp=report.timestamp,
        duration=report.duration,
    )


class FlowStore(ABC):
    """What the engine needs from persistence."""

    @abstractmethod
    def get_flow(self, flow_id: str) -> Flow | None: ...

    @abstractmethod
    def get_action(self, action_id: str) -> ActionDefinition | None: ...

    @abstractmethod
    def list_flows(self) -> dict[str, Flow]: ...

    @abstractmethod
    def list_actions(self) -> dict[str, ActionDefinition]: ...

    @abstractmethod
    def save_report(self, report: RunReport) -> str:
        """Persist ``report`` and return its id."""

    @abstractmethod
    def get_report(self, report_id: str) -> RunReport | None: ...

    @abstractmethod
    def list_reports(self, flow_id: str | None = None) -> list[ReportSummary]:
        """Summaries, newest first."""


class InMemoryStore(FlowStore):
    """Dict-backed store for tests and embedding."""

    def __init__(
        self,
        flows: dict[str, Flow] | None = None,
        actions: dict[str, ActionDefinition] | None = None,
    ) -> None:
        self.flows = dict(flows or {})
        self.actions = dict(actions or {})
        self.reports: dict[str, RunReport] = {}

    def get_flow(self, flow_id: str) -> Flow | None:
        return self.flows.get(flow_id)

    def get_action(self, action_id: str) -> ActionDefinition | None:
        return self.actions.get(action_id)

    def list_flows(self) -> dict[str, Flow]:
        return dict(self.flows)

    def list_actions(self) -> dict[str, ActionDefinition]:
        return dict(self.actions)

    def save_report(self, report: RunReport) -> str:
        report_id = f"flow-{safe_flow_id(report.flow_id)}-{report.run_id}"
        self.reports[report_id] = report
        return report_id

    def get_report(self, report_id: str) -> RunReport | None:
        return self.reports.get(report_id)

    def list_reports(self, flow_id: str | None = None) -> list[ReportSummary]:
        summaries = [
            summarize(rid, r)
            for rid, r in self.reports.items()
            if flow_id is None or r.flow_id == flow_id
        ]
        return sorted(summaries, key=lambda s: s.timestamp, reverse=True)


class FileStore(FlowStore):
    """JSON files under the project's test directory.

    flows/**/*.json, actions/**/*.action.json, reports/flow-<id>-<ms>.json.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.flows_dir = settings.path(settings.flows_dir)
        self.actions_dir = settings.path(settings.actions_dir)
        self.reports_dir = settings.path(settings.reports_dir)
        self.screenshots_dir = settings.path(settings.screenshots_dir)

    # --- Flows ---

    def get_flow(self, flow_id: str) -> Flow | None:
        path = self._resolve(self.flows_dir, flow_id, ".json")
        if not path.is_file():
            return None
        flow = self._read(path, Flow, flow_id)
        log.info("flow_loaded", flow_id=flow_id, path=str(path))
        return flow

    def list_flows(self) -> dict[str, Flow]:
        flows: dict[str, Flow] = {}
        for path in sorted(self.flows_dir.rglob("*.json")):
            if path.name.endswith(EXAMPLE_SUFFIX):
                continue
            flow_id = path.relative_to(self.flows_dir).as_posix()[: -len(".json")]
            try:
                flows[flow_id] = self._read(path, Flow, flow_id)
            except ConfigurationError as exc:
                log.warning("flow_load_failed", path=str(path), error=str(exc))
        return flows

    # --- Actions ---

    def get_action(self, action_id: str) -> ActionDefinition | None:
        path = self._resolve(self.actions_dir, action_id, ACTION_SUFFIX)
        if not path.is_file():
            return None
        return self._read(path, ActionDefinition, action_id)

    def list_actions(self) -> dict[str, ActionDefinition]:
        actions: dict[str, ActionDefinition] = {}
        for path in sorted(self.actions_dir.rglob(f"*{ACTION_SUFFIX}")):
            action_id = path.relative_to(self.actions_dir).as_posix()[: -len(ACTION_SUFFIX)]
            try:
                actions[action_id] = self._read(path, ActionDefinition, action_id)
            except ConfigurationError as exc:
                log.warning("action_load_failed", path=str(path), error=str(exc))
        return actions

    # --- Reports ---

    def save_report(self, report: RunReport) -> str:
        report_id = f"flow-{safe_flow_id(report.flow_id)}-{int(time.time() * 1000)}"
        path = self.reports_dir / f"{report_id}.json"
        # Two runs of one flow within the same millisecond.
        while path.exists():
            report_id += "-1"
            path = self.reports_dir / f"{report_id}.json"
        self._write(path, report)
        log.info("report_saved", report_id=report_id, path=str(path))
        return report_id

    def get_report(self, report_id: str) -> RunReport | None:
        path = self._resolve(self.reports_dir, report_id, ".json")
        if not path.is_file():
            return None
        return self._read(path, RunReport, report_id)

    def list_reports(self, flow_id: str | None = None) -> list[ReportSummary]:
        if not self.reports_dir.is_dir():
            return []
        summaries: list[ReportSummary] = []
        for path in self.reports_dir.glob("*.json"):
            report_id = path.stem
            if flow_id is not None and not report_id.startswith(
                f"flow-{safe_flow_id(flow_id)}-"
            ):
                continue
            try:
                report = self._read(path, RunReport, report_id)
            except ConfigurationError as exc:
                log.warning("report_load_failed", path=str(path), error=str(exc))
                continue
            if flow_id is not None and report.flow_id != flow_id:
                continue
            summaries.append(summarize(report_id, report))
        return sorted(summaries, key=lambda s: s.timestamp, reverse=True)

    # --- Helpers ---

    @staticmethod
    def _resolve(base: Path, entity_id: str, suffix: str) -> Path:
        parts = entity_id.replace("\\", "/").split("/")
        if not entity_id or any(p in ("", ".", "..") for p in parts):
            raise ConfigurationError("invalid id", entity_id=entity_id)
        return base.joinpath(*parts[:-1], parts[-1] + suffix)

    @staticmethod
    def _read(path: Path, model: type[BaseModel], entity_id: str):
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return model.model_validate(data)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON: {exc}", entity_id=entity_id) from exc
        except ValidationError as exc:
            raise ConfigurationError(str(exc), entity_id=entity_id) from exc

    @staticmethod
    def _write(path: Path, document: BaseModel) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            document.model_dump_json(indent=2, by_alias=True, exclude_none=True),
            encoding="utf-8",
        )
