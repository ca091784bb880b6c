"""Tests for the flow run state machine."""

from contextlib import asynccontextmanager
from unittest.mock import MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from tstyengine.config import AuthConfig, Credentials, PlaywrightConfig, Settings
from tstyengine.exceptions import (
    BrowserError,
    ConfigurationError,
    DependencyError,
    FlowNotFoundError,
    MissingDependencyError,
    StateTransitionError,
)
from tstyengine.models import (
    ActionDefinition,
    Assertion,
    CapturePolicy,
    Click,
    Evaluate,
    Fill,
    Flow,
    FlowStep,
    ProgressEventType,
    RunState,
    StepResult,
    WaitForTimeout,
)
from tstyengine.progress import CallbackEmitter
from tstyengine.runner import FlowRunner, stop_reason
from tstyengine.store import InMemoryStore


class FakeBrowser:
    """Stands in for BrowserManager; every session yields the same page double."""

    def __init__(self, page, started: bool = True, start_error: Exception | None = None):
        self.page = page
        self.started = started
        self.start_error = start_error
        self.viewports = []

    async def start(self) -> None:
        if self.start_error:
            raise self.start_error
        self.started = True

    @asynccontextmanager
    async def session(self, viewport):
        self.viewports.append(viewport)
        yield self.page


def _flow(*steps: FlowStep, **kwargs) -> Flow:
    return Flow(name="Shop", base_url="https://shop.test", steps=list(steps), **kwargs)


def _types(events) -> list[str]:
    return [e.type.value for e in events]


@pytest.fixture
def run_settings(tmp_path) -> Settings:
    return Settings(
        project_root=tmp_path,
        auth=AuthConfig(credentials=Credentials(email="qa@shop.test", password="s3cret")),
        playwright=PlaywrightConfig(timeout=2000, wait_until="load"),
    )


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def make_runner(page, run_settings, events):
    def factory(flows=None, actions=None, browser=None, **kwargs) -> FlowRunner:
        store = InMemoryStore(flows=flows, actions=actions)
        return FlowRunner(
            store,
            browser or FakeBrowser(page),
            run_settings,
            emitter=CallbackEmitter(events.append),
            **kwargs,
        )

    return factory


class TestStopReason:
    def test_never_without_fail_fast(self) -> None:
        step = FlowStep(name="s")
        assert stop_reason(step, StepResult(name="s", passed=False), False, True) is None

    def test_failed_step(self) -> None:
        step = FlowStep(name="Pay")
        result = StepResult(name="Pay", passed=False, errors=["card declined"])
        assert stop_reason(step, result, True, True) == 'Step "Pay" failed: card declined'

    def test_navigation_failure(self) -> None:
        step = FlowStep(name="Home", url="/")
        result = StepResult(name="Home", passed=False, navigation_failed=True, errors=["x"])
        assert "Navigation failed" in stop_reason(step, result, True, True)

    def test_console_errors_on_navigating_step(self) -> None:
        step = FlowStep(name="Home", url="/")
        result = StepResult(name="Home", console_errors=2)
        assert "2 error(s)" in stop_reason(step, result, True, True)
        assert stop_reason(step, result, True, False) is None
        assert stop_reason(FlowStep(name="x"), result, True, True) is None


class TestSuccessfulRun:
    async def test_events_and_report(self, make_runner, events, page) -> None:
        flow = _flow(
            FlowStep(name="Open", url="/", assertions=[Assertion(type="visible", selector="#app")]),
            FlowStep(name="Sign in", actions=["login"]),
        )
        login = ActionDefinition(
            primitives=[
                Fill(selector="#email", value="${credentials.email}"),
                Click(selector="#login"),
            ]
        )
        runner = make_runner(flows={"shop": flow}, actions={"login": login})
        report = await runner.run("shop", "desktop")

        assert report.status == RunState.COMPLETED
        assert runner.state == RunState.COMPLETED
        assert (report.passed, report.failed, report.total_steps) == (2, 0, 2)
        assert report.duration is not None
        assert _types(events) == [
            "start", "step-start", "step-complete", "step-start", "step-complete", "complete",
        ]
        page.goto.assert_awaited_once()
        assert page.goto.await_args.args[0] == "https://shop.test/"
        page.fill.assert_awaited_once_with("#email", "qa@shop.test", timeout=2000)

    async def test_report_saved_and_announced(self, make_runner, events) -> None:
        runner = make_runner(flows={"shop": _flow(FlowStep(name="s"))})
        report = await runner.run("shop")
        saved = runner.store.list_reports()
        assert len(saved) == 1
        assert events[-1].data["reportId"] == saved[0].id
        assert events[-1].data["report"]["runId"] == report.run_id

    async def test_device_viewport(self, make_runner, page) -> None:
        browser = FakeBrowser(page)
        runner = make_runner(flows={"shop": _flow(FlowStep(name="s"))}, browser=browser)
        report = await runner.run("shop", "mobile")
        assert report.device.value == "mobile"
        assert browser.viewports[0].width == 375

    async def test_browser_started_lazily(self, make_runner, page) -> None:
        browser = FakeBrowser(page, started=False)
        runner = make_runner(flows={"shop": _flow(FlowStep(name="s"))}, browser=browser)
        await runner.run("shop")
        assert browser.started

    async def test_evaluate_results_recorded(self, make_runner, page) -> None:
        page.evaluate.return_value = 42
        flow = _flow(FlowStep(name="s", primitives=[Evaluate(fn="() => 42")]))
        report = await make_runner(flows={"shop": flow}).run("shop")
        assert report.steps[0].evaluate_results == [42]


class TestStepFailures:
    async def test_primitive_error_stops_step(self, make_runner, page) -> None:
        page.click.side_effect = PlaywrightError("Element is not visible")
        flow = _flow(
            FlowStep(
                name="s",
                primitives=[Click(selector="#a"), Fill(selector="#b", value="x")],
                assertions=[Assertion(type="visible", selector="#app")],
            )
        )
        report = await make_runner(flows={"shop": flow}).run("shop")
        step = report.steps[0]
        assert not step.passed
        assert "not visible" in step.errors[0]
        page.fill.assert_not_awaited()
        assert step.assertions[0].passed

    async def test_failed_assertion_fails_step(self, make_runner, page) -> None:
        page.text_content.return_value = "0"
        flow = _flow(
            FlowStep(name="Cart", assertions=[Assertion(type="text", selector=".n", expected="1")])
        )
        report = await make_runner(flows={"shop": flow}).run("shop")
        assert not report.steps[0].passed
        assert report.steps[0].errors[0].startswith("Assertion 'text' on .n failed")

    async def test_expected_url_mismatch_skips_primitives(self, make_runner, page) -> None:
        page.url = "https://shop.test/login"
        flow = _flow(
            FlowStep(name="Account", url="/account", expected_url="/account",
                     primitives=[Click(selector="#edit")])
        )
        report = await make_runner(flows={"shop": flow}).run("shop")
        step = report.steps[0]
        assert step.navigation_failed
        assert 'Expected URL to contain "/account"' in step.errors[0]
        page.click.assert_not_awaited()

    async def test_continues_without_fail_fast(self, make_runner, page, events) -> None:
        page.click.side_effect = [PlaywrightError("detached"), None]
        flow = _flow(
            FlowStep(name="A", primitives=[Click(selector="#a")]),
            FlowStep(name="B", primitives=[Click(selector="#b")]),
        )
        report = await make_runner(flows={"shop": flow}).run("shop")
        assert report.status == RunState.COMPLETED
        assert [s.passed for s in report.steps] == [False, True]
        assert (report.passed, report.failed) == (1, 1)
        assert "early-stop" not in _types(events)

    async def test_fail_fast_stops_run(self, make_runner, page, events) -> None:
        page.click.side_effect = PlaywrightError("detached")
        flow = _flow(
            FlowStep(name="A", primitives=[Click(selector="#a")]),
            FlowStep(name="B", primitives=[Click(selector="#b")]),
            fail_fast=True,
        )
        report = await make_runner(flows={"shop": flow}).run("shop")
        assert report.status == RunState.FAILED
        assert report.stopped_early
        assert report.total_steps == 1
        assert report.planned_steps == 2
        assert _types(events) == ["start", "step-start", "step-complete", "early-stop", "complete"]
        assert all(e.data.get("stepName") != "B" for e in events)

    async def test_engine_option_overrides_flow(self, make_runner, page) -> None:
        page.click.side_effect = PlaywrightError("detached")
        flow = _flow(
            FlowStep(name="A", primitives=[Click(selector="#a")]),
            FlowStep(name="B"),
            fail_fast=True,
        )
        report = await make_runner(flows={"shop": flow}, fail_fast=False).run("shop")
        assert report.status == RunState.COMPLETED
        assert report.total_steps == 2

    async def test_console_errors_stop_fail_fast_run(self, make_runner, page) -> None:
        async def goto_with_error(*args, **kwargs):
            handler = page.on.call_args.args[1]
            handler(MagicMock(type="error", text="Uncaught TypeError"))

        page.goto.side_effect = goto_with_error
        flow = _flow(FlowStep(name="Home", url="/"), FlowStep(name="Next"), fail_fast=True)
        report = await make_runner(flows={"shop": flow}).run("shop")
        assert report.steps[0].passed
        assert report.steps[0].console_errors == 1
        assert report.steps[0].console == []
        assert report.status == RunState.FAILED
        assert "Console errors" in report.stop_reason

    async def test_step_budget_bounds_wait(self, make_runner) -> None:
        flow = _flow(FlowStep(name="Slow", timeout=20, primitives=[WaitForTimeout(timeout=50)]))
        report = await make_runner(flows={"shop": flow}).run("shop")
        step = report.steps[0]
        assert not step.passed
        assert "timed out" in step.errors[0]
        assert step.duration_ms < 50


class TestCapture:
    async def test_screenshot_always(self, make_runner, page) -> None:
        flow = _flow(FlowStep(name="Home Page", capture=CapturePolicy(screenshot="always")))
        report = await make_runner(flows={"shop": flow}).run("shop")
        shot = report.steps[0].screenshots[0]
        assert shot == f"run-{report.run_id}/1-home-page.png"
        assert report.screenshot_dir == f"run-{report.run_id}"
        page.screenshot.assert_awaited_once()

    async def test_screenshot_on_failure_only(self, make_runner, page) -> None:
        flow = _flow(FlowStep(name="Home", capture=CapturePolicy(screenshot="on-failure")))
        report = await make_runner(flows={"shop": flow}).run("shop")
        assert report.steps[0].screenshots == []
        page.screenshot.assert_not_awaited()

    async def test_html_and_console(self, make_runner, page) -> None:
        page.content.return_value = "<html><body>ok</body></html>"

        async def click_logging(*args, **kwargs):
            page.on.call_args.args[1](MagicMock(type="log", text="clicked"))

        page.click.side_effect = click_logging
        flow = _flow(
            FlowStep(
                name="s",
                primitives=[Click(selector="#a")],
                capture=CapturePolicy(html=True, console=True),
            )
        )
        report = await make_runner(flows={"shop": flow}).run("shop")
        step = report.steps[0]
        assert step.html == "<html><body>ok</body></html>"
        assert [m.text for m in step.console] == ["clicked"]
        page.remove_listener.assert_called()


class TestAbort:
    async def test_closed_page_aborts(self, make_runner, page, events) -> None:
        page.click.side_effect = PlaywrightError("Target page, context or browser has been closed")
        flow = _flow(
            FlowStep(name="A", primitives=[Click(selector="#a")]),
            FlowStep(name="B"),
        )
        runner = make_runner(flows={"shop": flow})
        report = await runner.run("shop")
        assert report.status == RunState.ABORTED
        assert runner.state == RunState.ABORTED
        assert "closed" in report.error
        assert report.total_steps == 0
        assert events[-1].type == ProgressEventType.ERROR
        assert events[-1].data["reportId"] == runner.store.list_reports()[0].id

    async def test_browser_launch_failure_aborts(self, make_runner, page, events) -> None:
        browser = FakeBrowser(page, started=False, start_error=BrowserError("no chromium"))
        runner = make_runner(flows={"shop": _flow(FlowStep(name="s"))}, browser=browser)
        report = await runner.run("shop")
        assert report.status == RunState.ABORTED
        assert report.error == "no chromium"
        assert _types(events) == ["start", "error"]

    async def test_save_failure_does_not_raise(self, make_runner, page) -> None:
        page.click.side_effect = PlaywrightError("Browser closed")
        runner = make_runner(
            flows={"shop": _flow(FlowStep(name="A", primitives=[Click(selector="#a")]))}
        )
        runner.store.save_report = MagicMock(side_effect=OSError("disk full"))
        report = await runner.run("shop")
        assert report.status == RunState.ABORTED

    async def test_unwritable_screenshot_dir_aborts(self, make_runner, page, events, tmp_path) -> None:
        (tmp_path / ".tsty").write_text("not a directory")
        flow = _flow(
            FlowStep(name="A", capture=CapturePolicy(screenshot=True)),
            FlowStep(name="B"),
        )
        runner = make_runner(flows={"shop": flow})
        report = await runner.run("shop")
        assert runner.state == RunState.ABORTED
        assert report.status == RunState.ABORTED
        assert report.error.startswith("Unexpected ")
        assert _types(events) == ["start", "step-start", "error"]
        assert events[-1].data["reportId"] == runner.store.list_reports()[0].id

    async def test_unexpected_error_in_step_setup_aborts(self, make_runner, page, events) -> None:
        page.on.side_effect = RuntimeError("listener registry broken")
        runner = make_runner(flows={"shop": _flow(FlowStep(name="s"))})
        report = await runner.run("shop")
        assert runner.state == RunState.ABORTED
        assert "listener registry broken" in report.error
        assert events[-1].type == ProgressEventType.ERROR
        assert events[-1].data["runId"] == report.run_id


class TestRejectedRuns:
    async def test_unknown_flow(self, make_runner, events) -> None:
        with pytest.raises(FlowNotFoundError):
            await make_runner().run("nope")
        assert _types(events) == ["error"]
        assert events[0].data["flowId"] == "nope"

    async def test_action_cycle(self, make_runner, events, page) -> None:
        actions = {
            "a": ActionDefinition(primitives=[Click(selector="#a")], dependencies=["b"]),
            "b": ActionDefinition(primitives=[Click(selector="#b")], dependencies=["a"]),
        }
        flow = _flow(FlowStep(name="s", actions=["a"]))
        runner = make_runner(flows={"shop": flow}, actions=actions)
        with pytest.raises(DependencyError):
            await runner.run("shop")
        assert _types(events) == ["error"]
        assert runner.state == RunState.PENDING
        assert runner.store.list_reports() == []
        page.click.assert_not_awaited()

    async def test_missing_action(self, make_runner) -> None:
        flow = _flow(FlowStep(name="s", actions=["ghost"]))
        with pytest.raises(MissingDependencyError):
            await make_runner(flows={"shop": flow}).run("shop")

    async def test_missing_flow_dependency(self, make_runner) -> None:
        flow = _flow(FlowStep(name="s"), dependencies=["setup"])
        with pytest.raises(MissingDependencyError) as exc_info:
            await make_runner(flows={"shop": flow}).run("shop")
        assert exc_info.value.missing == ["setup"]

    async def test_valid_flow_dependency(self, make_runner) -> None:
        setup = _flow(FlowStep(name="seed"))
        flow = _flow(FlowStep(name="s"), dependencies=["setup"])
        report = await make_runner(flows={"shop": flow, "setup": setup}).run("shop")
        assert report.status == RunState.COMPLETED

    async def test_primitive_missing_field(self, make_runner) -> None:
        action = ActionDefinition(primitives=[Click(selector="")])
        flow = _flow(FlowStep(name="s", actions=["broken"]))
        with pytest.raises(ConfigurationError, match="selector"):
            await make_runner(flows={"shop": flow}, actions={"broken": action}).run("shop")

    async def test_unknown_device(self, make_runner) -> None:
        with pytest.raises(ConfigurationError, match="watch"):
            await make_runner(flows={"shop": _flow(FlowStep(name="s"))}).run("shop", "watch")


class TestStateMachine:
    async def test_runner_is_single_use(self, make_runner) -> None:
        runner = make_runner(flows={"shop": _flow(FlowStep(name="s"))})
        await runner.run("shop")
        with pytest.raises(StateTransitionError):
            await runner.run("shop")
