"""TstyEngine: main entry point for running flows."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from tstyengine.browser import BrowserManager
from tstyengine.config import Settings, load_settings
from tstyengine.exceptions import FlowNotFoundError
from tstyengine.graph import all_dependents, check_candidate
from tstyengine.logger import get_logger
from tstyengine.models import (
    ActionDefinition,
    DependencyValidation,
    Device,
    Flow,
    ReportSummary,
    RunReport,
)
from tstyengine.progress import ProgressEmitter
from tstyengine.resolver import ActionResolver
from tstyengine.runner import FlowRunner
from tstyengine.store import FileStore, FlowStore

log = get_logger(__name__)


class TstyEngine:
    """Main entry point for flow execution."""

    def __init__(
        self,
        project_root: str | Path | None = None,
        settings: Settings | None = None,
        store: FlowStore | None = None,
        headless: bool | None = None,
        fail_fast: bool | None = None,
        monitor_console: bool | None = None,
    ) -> None:
        self.settings = settings or load_settings(project_root)
        if headless is not None:
            self.settings.playwright.headless = headless
        self.store = store or FileStore(self.settings)
        self._fail_fast = fail_fast
        self._monitor_console = monitor_console
        self._browser = BrowserManager(self.settings.playwright)

    # --- Lifecycle ---

    async def start(self) -> None:
        """Start the engine and browser."""
        await self._browser.start()
        log.info("engine_started", project_root=str(self.settings.project_root))

    async def stop(self) -> None:
        """Stop the engine and browser."""
        await self._browser.stop()
        log.info("engine_stopped")

    async def __aenter__(self) -> TstyEngine:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    # --- Execution ---

    async def run_flow(
        self,
        flow_id: str,
        device: Device | str = Device.DESKTOP,
        emitter: ProgressEmitter | None = None,
        fail_fast: bool | None = None,
    ) -> RunReport:
        """Run a flow and return its report.

        The browser is launched on first use if ``start()`` was not called.
        """
        runner = FlowRunner(
            self.store,
            self._browser,
            self.settings,
            emitter=emitter,
            fail_fast=fail_fast if fail_fast is not None else self._fail_fast,
            monitor_console=self._monitor_console,
        )
        return await runner.run(flow_id, device)

    # --- Lookup ---

    def list_flows(self) -> dict[str, Flow]:
        return self.store.list_flows()

    def get_flow(self, flow_id: str) -> Flow:
        flow = self.store.get_flow(flow_id)
        if flow is None:
            raise FlowNotFoundError(flow_id)
        return flow

    def list_actions(self) -> dict[str, ActionDefinition]:
        return self.store.list_actions()

    def get_action(self, action_id: str) -> ActionDefinition | None:
        return self.store.get_action(action_id)

    def resolve_action(self, action_id: str) -> list:
        """Fully expanded primitives of one action, dependencies first."""
        return ActionResolver(self.store.list_actions()).resolve_action(action_id)

    def action_usage(self, action_id: str) -> dict[str, list[str]]:
        """Flows that reference an action (directly or through another action)."""
        actions = self.store.list_actions()
        graph = {aid: a.dependencies for aid, a in actions.items()}
        users = {action_id, *all_dependents(action_id, graph)}
        flows = [
            fid
            for fid, flow in self.store.list_flows().items()
            if any(a in users for step in flow.steps for a in step.actions)
        ]
        return {"actions": sorted(users - {action_id}), "flows": sorted(flows)}

    def list_reports(self, flow_id: str | None = None) -> list[ReportSummary]:
        return self.store.list_reports(flow_id)

    def get_report(self, report_id: str) -> RunReport | None:
        return self.store.get_report(report_id)

    # --- Editor support ---

    def validate_dependencies(
        self, entity_id: str, dependencies: list[str], kind: str = "action"
    ) -> DependencyValidation:
        """Would saving ``dependencies`` on ``entity_id`` keep the graph valid?"""
        if kind == "flow":
            graph = {fid: f.dependencies for fid, f in self.store.list_flows().items()}
        else:
            graph = {aid: a.dependencies for aid, a in self.store.list_actions().items()}
        result = check_candidate(entity_id, dependencies, graph, kind=kind)
        log.debug("dependencies_validated", entity_id=entity_id, kind=kind, valid=result.valid)
        return result
