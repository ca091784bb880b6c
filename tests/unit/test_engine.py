"""Tests for TstyEngine lookups, validation and run wiring."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest

from tstyengine.engine import TstyEngine
from tstyengine.exceptions import FlowNotFoundError, MissingDependencyError
from tstyengine.models import ActionDefinition, Click, Flow, FlowStep, RunState
from tstyengine.progress import QueueEmitter
from tstyengine.store import InMemoryStore


@pytest.fixture
def store() -> InMemoryStore:
    actions = {
        "auth/login": ActionDefinition(primitives=[Click(selector="#login")]),
        "add-to-cart": ActionDefinition(
            primitives=[Click(selector=".add")], dependencies=["auth/login"]
        ),
        "close-modal": ActionDefinition(primitives=[Click(selector=".close")]),
    }
    flows = {
        "shop/checkout": Flow(name="Checkout", steps=[FlowStep(name="Buy", actions=["add-to-cart"])]),
        "signup": Flow(name="Signup", steps=[FlowStep(name="Form")]),
        "sale/100%25 off": Flow(name="Sale", steps=[FlowStep(name="Banner")]),
    }
    return InMemoryStore(flows=flows, actions=actions)


@pytest.fixture
def engine(settings, store) -> TstyEngine:
    return TstyEngine(settings=settings, store=store)


class TestConstruction:
    def test_loads_settings_from_project(self, project_dir) -> None:
        engine = TstyEngine(project_root=project_dir, headless=False)
        assert engine.settings.base_url == "https://shop.test"
        assert engine.settings.playwright.headless is False
        assert "shop/checkout" in engine.list_flows()

    async def test_start_and_stop_browser(self, engine) -> None:
        with patch.object(engine._browser, "start", new=AsyncMock()) as start, \
                patch.object(engine._browser, "stop", new=AsyncMock()) as stop:
            async with engine:
                start.assert_awaited_once()
            stop.assert_awaited_once()


class TestLookups:
    def test_list_flows(self, engine) -> None:
        assert sorted(engine.list_flows()) == ["sale/100%25 off", "shop/checkout", "signup"]

    def test_get_nested_flow(self, engine) -> None:
        assert engine.get_flow("shop/checkout").name == "Checkout"

    def test_ids_are_used_verbatim(self, engine) -> None:
        assert engine.get_flow("sale/100%25 off").name == "Sale"
        with pytest.raises(FlowNotFoundError):
            engine.get_flow("shop%2Fcheckout")

    def test_get_flow_missing(self, engine) -> None:
        with pytest.raises(FlowNotFoundError):
            engine.get_flow("nope")

    def test_get_action(self, engine) -> None:
        assert engine.get_action("auth/login") is not None
        assert engine.get_action("nope") is None

    def test_resolve_action(self, engine) -> None:
        plan = engine.resolve_action("add-to-cart")
        assert [op.selector for op in plan] == ["#login", ".add"]

    def test_resolve_missing_dependency(self, engine, store) -> None:
        store.actions["broken"] = ActionDefinition(dependencies=["ghost"])
        with pytest.raises(MissingDependencyError):
            engine.resolve_action("broken")

    def test_action_usage(self, engine) -> None:
        usage = engine.action_usage("auth/login")
        assert usage == {"actions": ["add-to-cart"], "flows": ["shop/checkout"]}
        assert engine.action_usage("close-modal") == {"actions": [], "flows": []}


class TestValidateDependencies:
    def test_valid_action_dependencies(self, engine) -> None:
        result = engine.validate_dependencies("close-modal", ["auth/login"])
        assert result.valid

    def test_cycle_detected(self, engine) -> None:
        result = engine.validate_dependencies("auth/login", ["add-to-cart"])
        assert not result.valid
        assert result.cycles

    def test_flow_kind_uses_flow_graph(self, engine) -> None:
        result = engine.validate_dependencies("signup", ["shop/checkout"], kind="flow")
        assert result.valid
        missing = engine.validate_dependencies("signup", ["auth/login"], kind="flow")
        assert missing.missing == ["auth/login"]


class _Browser:
    started = True

    def __init__(self, page) -> None:
        self.page = page

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    @asynccontextmanager
    async def session(self, viewport):
        yield self.page


class TestRunFlow:
    async def test_run_flow_saves_report(self, engine, page) -> None:
        engine._browser = _Browser(page)
        report = await engine.run_flow("signup")
        assert report.status == RunState.COMPLETED
        summaries = engine.list_reports("signup")
        assert len(summaries) == 1
        assert engine.get_report(summaries[0].id) == report

    async def test_run_flow_streams_to_emitter(self, engine, page) -> None:
        engine._browser = _Browser(page)
        emitter = QueueEmitter()
        await engine.run_flow("shop/checkout", emitter=emitter)
        await emitter.close()
        types = [e.type.value async for e in emitter]
        assert types[0] == "start"
        assert types[-1] == "complete"
