"""Flow run state machine: Pending -> Running -> Completed | Failed | Aborted."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

from tstyengine.assertions import run_assertions
from tstyengine.browser import BrowserManager, ConsoleRecorder
from tstyengine.config import Settings
from tstyengine.exceptions import (
    ConfigurationError,
    DependencyError,
    ExecutionError,
    FatalError,
    FlowNotFoundError,
    MissingDependencyError,
    StateTransitionError,
)
from tstyengine.graph import check_candidate
from tstyengine.interpolation import InterpolationContext
from tstyengine.interpreter import Interpreter, first_line, page_gone
from tstyengine.logger import get_logger
from tstyengine.models import (
    ActionDefinition,
    Device,
    Evaluate,
    Flow,
    FlowStep,
    Goto,
    Primitive,
    RunReport,
    RunState,
    StepResult,
)
from tstyengine.primitives import ExecutionContext, slugify
from tstyengine.primitives.navigation import absolute_url
from tstyengine.progress import (
    NullEmitter,
    ProgressEmitter,
    complete_event,
    early_stop_event,
    error_event,
    start_event,
    step_complete_event,
    step_start_event,
)
from tstyengine.report import abort, append, finalize, new_report, new_run_id, stop_early
from tstyengine.resolver import ActionResolver
from tstyengine.store import FlowStore

if TYPE_CHECKING:
    from playwright.async_api import Page

log = get_logger(__name__)

_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.PENDING: {RunState.RUNNING, RunState.ABORTED},
    RunState.RUNNING: {RunState.COMPLETED, RunState.FAILED, RunState.ABORTED},
}


def stop_reason(
    step: FlowStep, result: StepResult, fail_fast: bool, monitor_console: bool
) -> str | None:
    """Why a fail-fast run must stop after ``step``, or None to keep going."""
    if not fail_fast:
        return None
    if not result.passed:
        if result.navigation_failed:
            return f'Navigation failed at step "{step.name}" - expected URL not reached'
        if result.errors:
            return f'Step "{step.name}" failed: {result.errors[0]}'
        return f'Step "{step.name}" failed'
    if monitor_console and step.url and result.console_errors > 0:
        return (
            f'Console errors detected during navigation to "{step.url}" '
            f"({result.console_errors} error(s))"
        )
    return None


class FlowRunner:
    """Executes one run of one flow. Create a new runner per run."""

    def __init__(
        self,
        store: FlowStore,
        browser: BrowserManager,
        settings: Settings,
        emitter: ProgressEmitter | None = None,
        fail_fast: bool | None = None,
        monitor_console: bool | None = None,
        interpreter: Interpreter | None = None,
    ) -> None:
        self.store = store
        self.browser = browser
        self.settings = settings
        self.emitter = emitter or NullEmitter()
        self.fail_fast = fail_fast
        self.monitor_console = monitor_console
        self.interpreter = interpreter or Interpreter()
        self.state = RunState.PENDING

    def _transition(self, target: RunState) -> None:
        if target not in _TRANSITIONS.get(self.state, set()):
            raise StateTransitionError(self.state.value, target.value)
        log.debug("run_state", current=self.state.value, target=target.value)
        self.state = target

    # --- Pending ---

    def prepare(self, flow_id: str) -> tuple[Flow, list[list[Primitive]]]:
        """Load and validate the flow, then plan every step. Nothing runs here."""
        flow = self.store.get_flow(flow_id)
        if flow is None:
            raise FlowNotFoundError(flow_id)
        self._check_flow_dependencies(flow_id, flow)

        actions = self._load_actions(flow)
        plans = ActionResolver(actions).plan(flow)
        for step, plan in zip(flow.steps, plans):
            for op in plan:
                missing = op.missing_fields()
                if missing:
                    raise ConfigurationError(
                        f"step '{step.name}': primitive '{op.type}' is missing "
                        f"required field(s): {', '.join(missing)}",
                        entity_id=flow_id,
                    )
        return flow, plans

    def _check_flow_dependencies(self, flow_id: str, flow: Flow) -> None:
        if not flow.dependencies:
            return
        graph = {fid: f.dependencies for fid, f in self.store.list_flows().items()}
        result = check_candidate(flow_id, flow.dependencies, graph, kind="flow")
        for warning in result.warnings:
            log.warning("flow_dependency_warning", flow_id=flow_id, warning=warning)
        if result.valid:
            return
        if result.missing and len(result.errors) == len(result.missing):
            raise MissingDependencyError(flow_id, result.missing)
        raise DependencyError(flow_id, "; ".join(result.errors), cycles=result.cycles)

    def _load_actions(self, flow: Flow) -> dict[str, ActionDefinition]:
        actions: dict[str, ActionDefinition] = {}
        missing: set[str] = set()
        pending = [a for step in flow.steps for a in step.actions]
        while pending:
            action_id = pending.pop()
            if action_id in actions or action_id in missing:
                continue
            action = self.store.get_action(action_id)
            if action is None:
                missing.add(action_id)
                continue
            actions[action_id] = action
            pending.extend(action.dependencies)
        return actions

    # --- Running ---

    async def run(self, flow_id: str, device: Device | str = Device.DESKTOP) -> RunReport:
        """Run ``flow_id`` on ``device`` and return the finalized report.

        Configuration, dependency and not-found errors are raised after a
        single ``error`` event; everything later ends up in the report.
        """
        try:
            try:
                device = Device(device)
            except ValueError as exc:
                raise ConfigurationError(f"unknown device '{device}'", entity_id=flow_id) from exc
            viewport = self.settings.viewport_for(device.value)
            flow, plans = self.prepare(flow_id)
        except (ConfigurationError, DependencyError, FlowNotFoundError) as exc:
            log.warning("run_rejected", flow_id=flow_id, error=str(exc))
            await self.emitter.emit(error_event(exc, flowId=flow_id))
            raise

        run_id = new_run_id(flow_id)
        screenshots_root = self.settings.path(self.settings.screenshots_dir)
        report = new_report(
            flow_id,
            flow.name,
            device,
            planned_steps=len(flow.steps),
            run_id=run_id,
            screenshot_dir=f"run-{run_id}",
        )
        run_log = log.bind(run_id=run_id, flow_id=flow_id, device=device.value)
        fail_fast = self._pick(self.fail_fast, flow.fail_fast, self.settings.fail_fast)
        monitor_console = self._pick(
            self.monitor_console, flow.monitor_console, self.settings.monitor_console
        )
        context = ExecutionContext(
            screenshots_root=screenshots_root,
            run_dir=screenshots_root / f"run-{run_id}",
            interpolation=InterpolationContext.from_settings(
                self.settings, base_url=flow.base_url or None
            ),
            project_root=self.settings.project_root,
            default_timeout_ms=self.settings.playwright.timeout,
        )

        self._transition(RunState.RUNNING)
        started = time.monotonic()
        run_log.info("run_started", steps=len(flow.steps), fail_fast=fail_fast)
        await self.emitter.emit(start_event(flow_id, flow.name, device.value, len(flow.steps)))

        status = RunState.COMPLETED
        try:
            if not self.browser.started:
                await self.browser.start()
            async with self.browser.session(viewport) as page:
                for index, (step, plan) in enumerate(zip(flow.steps, plans)):
                    await self.emitter.emit(step_start_event(index, step.name, len(flow.steps)))
                    result = await self._execute_step(page, step, plan, index, context)
                    report = append(report, result)
                    await self.emitter.emit(step_complete_event(index, result))
                    run_log.info(
                        "step_completed",
                        step=step.name,
                        passed=result.passed,
                        duration_ms=result.duration_ms,
                    )
                    reason = stop_reason(step, result, fail_fast, monitor_console)
                    if reason:
                        report = stop_early(report, reason)
                        await self.emitter.emit(early_stop_event(reason, index))
                        run_log.warning("run_stopped_early", reason=reason)
                        status = RunState.FAILED
                        break
        except FatalError as exc:
            return await self._abort(report, exc, started, run_log)
        except Exception as exc:
            run_log.error("run_crashed", error=str(exc), exc_info=True)
            fatal = FatalError(f"Unexpected {type(exc).__name__}: {exc}")
            return await self._abort(report, fatal, started, run_log)

        self._transition(status)
        report = finalize(report, status, started, time.monotonic())
        report_id = self._save(report)
        run_log.info(
            "run_finished",
            status=status.value,
            passed=report.passed,
            failed=report.failed,
            duration_ms=report.duration,
        )
        await self.emitter.emit(complete_event(report, report_id))
        return report

    @staticmethod
    def _pick(*choices: bool | None) -> bool:
        return next(c for c in choices if c is not None)

    def _save(self, report: RunReport) -> str | None:
        try:
            return self.store.save_report(report)
        except Exception as exc:
            log.error("report_save_failed", run_id=report.run_id, error=str(exc))
            return None

    async def _abort(
        self, report: RunReport, exc: FatalError, started: float, run_log
    ) -> RunReport:
        self._transition(RunState.ABORTED)
        report = finalize(abort(report, str(exc)), RunState.ABORTED, started, time.monotonic())
        run_log.error("run_aborted", error=str(exc))
        report_id = self._save(report)
        await self.emitter.emit(
            error_event(exc, flowId=report.flow_id, runId=report.run_id, reportId=report_id)
        )
        return report

    async def _execute_step(
        self,
        page: Page,
        step: FlowStep,
        plan: list[Primitive],
        index: int,
        context: ExecutionContext,
    ) -> StepResult:
        number = index + 1
        context.begin_step(number, step.name)
        result = StepResult(name=step.name, url=page.url)
        started = time.monotonic()

        def remaining() -> float | None:
            if step.timeout is None:
                return None
            return step.timeout - (time.monotonic() - started) * 1000

        with ConsoleRecorder(page) as console:
            if step.url:
                await self._navigate(page, step, result, context, remaining())

            if not result.navigation_failed:
                for op in plan:
                    try:
                        outcome = await self.interpreter.execute(op, page, context, remaining())
                    except (ExecutionError, ConfigurationError) as exc:
                        result.errors.append(str(exc))
                        break
                    if outcome.artifact:
                        result.screenshots.append(outcome.artifact)
                    if isinstance(op, Evaluate):
                        result.evaluate_results.append(outcome.value)

            result.assertions = await run_assertions(page, step.assertions)
            for assertion in result.assertions:
                if not assertion.passed:
                    target = assertion.selector or "url"
                    result.errors.append(
                        f"Assertion '{assertion.type.value}' on {target} failed: {assertion.error}"
                    )
            result.passed = not result.errors

            await self._capture(page, step, result, context, number)

        result.console_errors = console.error_count
        if step.capture.console:
            result.console = console.messages
        result.passed = not result.errors
        result.duration_ms = round((time.monotonic() - started) * 1000, 1)
        return result

    async def _navigate(
        self,
        page: Page,
        step: FlowStep,
        result: StepResult,
        context: ExecutionContext,
        budget_ms: float | None,
    ) -> None:
        url = absolute_url(step.url or "", context.interpolation.base_url)
        goto = Goto(url=url, wait_until=self.settings.playwright.wait_until)
        try:
            await self.interpreter.execute(goto, page, context, budget_ms)
        except (ExecutionError, ConfigurationError) as exc:
            result.navigation_failed = True
            result.errors.append(f"Navigation failed: {exc}")
            return
        result.url = page.url
        if step.expected_url and step.expected_url not in page.url:
            result.navigation_failed = True
            result.errors.append(
                f'Navigation failed: Expected URL to contain "{step.expected_url}", '
                f'but got "{page.url}"'
            )

    async def _capture(
        self,
        page: Page,
        step: FlowStep,
        result: StepResult,
        context: ExecutionContext,
        number: int,
    ) -> None:
        try:
            if step.capture.wants_screenshot(result.passed):
                path, relative = context.screenshot_target(f"{number}-{slugify(step.name)}.png")
                await page.screenshot(path=str(path), full_page=False, type="png")
                result.screenshots.append(relative)
            if step.capture.html:
                result.html = await page.content()
        except PlaywrightError as exc:
            if page_gone(page, exc):
                raise FatalError(f"Browser page closed during capture: {first_line(exc)}") from exc
            result.errors.append(f"Capture failed: {first_line(exc)}")
