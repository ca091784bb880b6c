"""All Pydantic models for Tsty."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase JSON documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# --- Primitives ---


class BasePrimitive(CamelModel):
    """Fields shared by every primitive operation."""

    description: str | None = None
    timeout: float | None = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _lift_options(cls, data: Any) -> Any:
        """Flatten a Playwright-style ``options`` object into the primitive's fields.

        Top-level fields win over options. An option this primitive has no
        field for is rejected rather than dropped.
        """
        if not isinstance(data, dict) or "options" not in data:
            return data
        options = data["options"]
        if not isinstance(options, dict):
            raise ValueError("'options' must be an object")
        accepted = {to_camel(name) for name in cls.model_fields} - {"type"}
        unknown = sorted(k for k in options if to_camel(k) not in accepted)
        if unknown:
            raise ValueError(
                f"unsupported option(s) for '{data.get('type')}': {', '.join(unknown)}"
            )
        lifted = {k: v for k, v in data.items() if k != "options"}
        present = {to_camel(k) for k in lifted}
        for key, value in options.items():
            if to_camel(key) not in present:
                lifted[key] = value
        return lifted

    def required_fields(self) -> list[str]:
        """Names of the fields this variant cannot run without."""
        return [
            name
            for name, field in type(self).model_fields.items()
            if field.is_required()
        ]

    def missing_fields(self) -> list[str]:
        """Required fields that are absent or empty."""
        missing = []
        for name in self.required_fields():
            value = getattr(self, name, None)
            if value is None or (isinstance(value, (str, list, dict)) and not value):
                missing.append(name)
        return missing


WaitUntil = Literal["load", "domcontentloaded", "networkidle", "commit"]


class Goto(BasePrimitive):
    type: Literal["goto", "navigate"] = "goto"
    url: str
    wait_until: WaitUntil | None = None


class GoBack(BasePrimitive):
    type: Literal["goBack"] = "goBack"
    wait_until: WaitUntil | None = None


class GoForward(BasePrimitive):
    type: Literal["goForward"] = "goForward"
    wait_until: WaitUntil | None = None


class Reload(BasePrimitive):
    type: Literal["reload"] = "reload"
    wait_until: WaitUntil | None = None


class SetContent(BasePrimitive):
    type: Literal["setContent"] = "setContent"
    html: str


class Click(BasePrimitive):
    type: Literal["click"] = "click"
    selector: str
    button: Literal["left", "right", "middle"] = "left"
    click_count: int = 1
    force: bool = False


class Dblclick(BasePrimitive):
    type: Literal["dblclick"] = "dblclick"
    selector: str


class Hover(BasePrimitive):
    type: Literal["hover"] = "hover"
    selector: str


class Tap(BasePrimitive):
    type: Literal["tap"] = "tap"
    selector: str


class Focus(BasePrimitive):
    type: Literal["focus"] = "focus"
    selector: str


class Blur(BasePrimitive):
    type: Literal["blur"] = "blur"
    selector: str


class DragAndDrop(BasePrimitive):
    type: Literal["dragAndDrop"] = "dragAndDrop"
    source: str
    target: str


class Scroll(BasePrimitive):
    """Scroll an element into view, or wheel the page by (x, y)."""

    type: Literal["scroll"] = "scroll"
    selector: str | None = None
    x: float = 0
    y: float = 0


class DispatchEvent(BasePrimitive):
    type: Literal["dispatchEvent"] = "dispatchEvent"
    selector: str
    event: str
    event_init: dict[str, Any] | None = None


class Fill(BasePrimitive):
    type: Literal["fill"] = "fill"
    selector: str
    value: str


class TypeText(BasePrimitive):
    """Type text key by key (fires keydown/keypress/keyup per character)."""

    type: Literal["type"] = "type"
    selector: str
    text: str
    delay: float = 0


class Press(BasePrimitive):
    type: Literal["press"] = "press"
    selector: str
    key: str


class Check(BasePrimitive):
    type: Literal["check"] = "check"
    selector: str


class Uncheck(BasePrimitive):
    type: Literal["uncheck"] = "uncheck"
    selector: str


class SelectOption(BasePrimitive):
    type: Literal["selectOption"] = "selectOption"
    selector: str
    value: str | list[str] = Field(validation_alias=AliasChoices("value", "values"))


class SetInputFiles(BasePrimitive):
    type: Literal["setInputFiles"] = "setInputFiles"
    selector: str
    files: str | list[str]


class WaitForSelector(BasePrimitive):
    type: Literal["waitForSelector"] = "waitForSelector"
    selector: str
    state: Literal["attached", "detached", "visible", "hidden"] = "visible"


class WaitForTimeout(BasePrimitive):
    """Sleep for ``timeout`` milliseconds."""

    type: Literal["waitForTimeout"] = "waitForTimeout"
    timeout: float = Field(ge=0)


class WaitForLoadState(BasePrimitive):
    type: Literal["waitForLoadState"] = "waitForLoadState"
    state: Literal["load", "domcontentloaded", "networkidle"] = "load"


class WaitForFunction(BasePrimitive):
    type: Literal["waitForFunction"] = "waitForFunction"
    fn: str = Field(validation_alias=AliasChoices("fn", "pageFunction"))
    arg: Any = None


class WaitForURL(BasePrimitive):
    type: Literal["waitForURL"] = "waitForURL"
    url: str
    wait_until: WaitUntil | None = None


class WaitForEvent(BasePrimitive):
    type: Literal["waitForEvent"] = "waitForEvent"
    event: str


class Screenshot(BasePrimitive):
    type: Literal["screenshot"] = "screenshot"
    path: str | None = None
    full_page: bool = False


class Evaluate(BasePrimitive):
    type: Literal["evaluate"] = "evaluate"
    fn: str = Field(validation_alias=AliasChoices("fn", "pageFunction"))
    arg: Any = None


LocatorAction = Literal["click", "fill", "check", "uncheck", "hover", "waitFor"]


class LocatorPrimitive(BasePrimitive):
    """A locator query followed by one action on the located element."""

    action: LocatorAction = "click"
    value: str | None = None
    exact: bool = False

    def missing_fields(self) -> list[str]:
        missing = super().missing_fields()
        if self.action == "fill" and not self.value:
            missing.append("value")
        return missing


class Locator(LocatorPrimitive):
    type: Literal["locator"] = "locator"
    selector: str


class GetByRole(LocatorPrimitive):
    type: Literal["getByRole"] = "getByRole"
    role: str
    name: str | None = None


class GetByText(LocatorPrimitive):
    type: Literal["getByText"] = "getByText"
    text: str


class GetByLabel(LocatorPrimitive):
    type: Literal["getByLabel"] = "getByLabel"
    text: str


class GetByPlaceholder(LocatorPrimitive):
    type: Literal["getByPlaceholder"] = "getByPlaceholder"
    text: str


class GetByAltText(LocatorPrimitive):
    type: Literal["getByAltText"] = "getByAltText"
    text: str


class GetByTitle(LocatorPrimitive):
    type: Literal["getByTitle"] = "getByTitle"
    text: str


class GetByTestId(LocatorPrimitive):
    type: Literal["getByTestId"] = "getByTestId"
    text: str = Field(validation_alias=AliasChoices("text", "testId"))


class SetViewportSize(BasePrimitive):
    type: Literal["setViewportSize"] = "setViewportSize"
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class SetExtraHTTPHeaders(BasePrimitive):
    type: Literal["setExtraHTTPHeaders"] = "setExtraHTTPHeaders"
    headers: dict[str, str]


class BringToFront(BasePrimitive):
    type: Literal["bringToFront"] = "bringToFront"


Primitive = Annotated[
    Union[
        Goto,
        GoBack,
        GoForward,
        Reload,
        SetContent,
        Click,
        Dblclick,
        Hover,
        Tap,
        Focus,
        Blur,
        DragAndDrop,
        Scroll,
        DispatchEvent,
        Fill,
        TypeText,
        Press,
        Check,
        Uncheck,
        SelectOption,
        SetInputFiles,
        WaitForSelector,
        WaitForTimeout,
        WaitForLoadState,
        WaitForFunction,
        WaitForURL,
        WaitForEvent,
        Screenshot,
        Evaluate,
        Locator,
        GetByRole,
        GetByText,
        GetByLabel,
        GetByPlaceholder,
        GetByAltText,
        GetByTitle,
        GetByTestId,
        SetViewportSize,
        SetExtraHTTPHeaders,
        BringToFront,
    ],
    Field(discriminator="type"),
]


# --- Actions ---


class ActionType(str, Enum):
    """Category tag of an action definition."""

    AUTH = "auth"
    MODAL = "modal"
    FORM = "form"
    NAVIGATION = "navigation"
    INTERACTION = "interaction"
    DATA = "data"


class ActionDefinition(CamelModel):
    """A reusable, named sequence of primitives."""

    type: ActionType = ActionType.INTERACTION
    description: str = ""
    primitives: list[Primitive] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    category: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# --- Flows ---


class AssertionType(str, Enum):
    VISIBLE = "visible"
    HIDDEN = "hidden"
    TEXT = "text"
    COUNT = "count"
    VALUE = "value"
    ATTRIBUTE = "attribute"
    URL = "url"


_NEEDS_EXPECTED = {
    AssertionType.TEXT,
    AssertionType.COUNT,
    AssertionType.VALUE,
    AssertionType.ATTRIBUTE,
    AssertionType.URL,
}


class Assertion(CamelModel):
    """A post-condition checked after a step's primitives."""

    type: AssertionType
    selector: str | None = None
    attribute: str | None = None
    expected: str | int | float | bool | None = None
    match: Literal["exact", "contains", "regex"] | None = None
    timeout: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_fields(self) -> Assertion:
        if self.type != AssertionType.URL and not self.selector:
            raise ValueError(f"'{self.type.value}' assertion requires a selector")
        if self.type == AssertionType.ATTRIBUTE and not self.attribute:
            raise ValueError("'attribute' assertion requires an attribute name")
        if self.type in _NEEDS_EXPECTED and self.expected is None:
            raise ValueError(f"'{self.type.value}' assertion requires an expected value")
        if self.type == AssertionType.COUNT:
            self.expected = _as_count(self.expected)
        return self

    @property
    def effective_match(self) -> str:
        if self.match:
            return self.match
        return "contains" if self.type == AssertionType.URL else "exact"


def _as_count(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("'count' assertion expects a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValueError(f"'count' assertion expects a number, got {value!r}")


class CapturePolicy(CamelModel):
    """What evidence to keep for a step."""

    screenshot: bool | Literal["always", "never", "on-failure"] = False
    html: bool = False
    console: bool = False

    def wants_screenshot(self, passed: bool) -> bool:
        if self.screenshot is True or self.screenshot == "always":
            return True
        if self.screenshot == "on-failure":
            return not passed
        return False


class FlowStep(CamelModel):
    """One stage of a flow."""

    name: str
    url: str | None = None
    actions: list[str] = Field(default_factory=list)
    primitives: list[Primitive] = Field(default_factory=list)
    assertions: list[Assertion] = Field(default_factory=list)
    capture: CapturePolicy = Field(default_factory=CapturePolicy)
    timeout: float | None = Field(default=None, gt=0)
    expected_url: str | None = None


class Device(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"


class Flow(CamelModel):
    """A complete flow definition."""

    name: str
    description: str = ""
    base_url: str = ""
    steps: list[FlowStep] = Field(min_length=1)
    devices: list[Device] = Field(default_factory=lambda: [Device.DESKTOP])
    tags: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    fail_fast: bool | None = None
    monitor_console: bool | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# --- Execution results ---


class ConsoleMessage(CamelModel):
    type: str
    text: str
    timestamp: datetime = Field(default_factory=_utcnow)


class AssertionResult(CamelModel):
    """Outcome of one assertion."""

    type: AssertionType
    selector: str | None = None
    attribute: str | None = None
    expected: str | int | float | bool | None = None
    passed: bool
    actual: Any = None
    error: str | None = None


class StepResult(CamelModel):
    """Result of executing a single step."""

    name: str
    url: str = ""
    passed: bool = True
    screenshots: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    assertions: list[AssertionResult] = Field(default_factory=list)
    console: list[ConsoleMessage] = Field(default_factory=list)
    console_errors: int = 0
    html: str | None = None
    evaluate_results: list[Any] = Field(default_factory=list)
    navigation_failed: bool = False
    duration_ms: float | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error(self) -> str | None:
        return "; ".join(self.errors) or None


class RunState(str, Enum):
    """Run state machine states; the last three are terminal."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.FAILED, RunState.ABORTED)


class RunReport(CamelModel):
    """Persisted outcome of one run."""

    run_id: str
    flow_id: str
    flow: str
    device: Device
    timestamp: datetime = Field(default_factory=_utcnow)
    status: RunState = RunState.RUNNING
    steps: list[StepResult] = Field(default_factory=list)
    passed: int = 0
    failed: int = 0
    total_steps: int = 0
    planned_steps: int = 0
    duration: float | None = None
    stopped_early: bool = False
    stop_reason: str | None = None
    screenshot_dir: str = ""
    error: str | None = None


class ReportSummary(CamelModel):
    """Listing entry for a stored report."""

    id: str
    flow_id: str
    flow: str
    status: RunState
    passed: int
    failed: int
    total_steps: int
    timestamp: datetime
    duration: float | None = None


# --- Dependency validation ---


class DependencyValidation(CamelModel):
    """Result of checking a candidate dependency set."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    cycles: list[list[str]] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    redundant: list[str] = Field(default_factory=list)
    depth: int = 0


# --- Progress events ---


class ProgressEventType(str, Enum):
    START = "start"
    STEP_START = "step-start"
    STEP_COMPLETE = "step-complete"
    EARLY_STOP = "early-stop"
    COMPLETE = "complete"
    ERROR = "error"


class ProgressEvent(BaseModel):
    """Point-in-time notification emitted during a run."""

    model_config = ConfigDict(frozen=True)

    type: ProgressEventType
    timestamp: datetime = Field(default_factory=_utcnow)
    data: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> str:
        """One JSON record: ``type``, ISO-8601 ``timestamp``, ``data``."""
        return self.model_dump_json()
