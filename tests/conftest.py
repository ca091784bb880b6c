"""Shared test fixtures for Tsty."""
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from tstyengine.config import PlaywrightConfig, Settings
from tstyengine.interpolation import InterpolationContext
from tstyengine.primitives import ExecutionContext

# Path to test fixtures
FIXTURES_DIR = Path(__file__).parent / "fixtures"
MOCK_PAGES_DIR = FIXTURES_DIR / "mock_pages"

LOGIN_ACTION = {
    "type": "auth",
    "description": "Log in with the configured credentials",
    "primitives": [
        {"type": "fill", "selector": "#username", "value": "${credentials.email}"},
        {"type": "fill", "selector": "#password", "value": "${credentials.password}"},
        {"type": "click", "selector": "#login-btn"},
    ],
}

ADD_TO_CART_ACTION = {
    "type": "interaction",
    "dependencies": ["auth/login"],
    "primitives": [
        {"type": "click", "selector": ".product .add"},
        {"type": "waitForSelector", "selector": ".cart-count"},
    ],
}

CHECKOUT_FLOW = {
    "name": "Checkout",
    "description": "Log in and buy one product",
    "baseUrl": "https://shop.test",
    "tags": ["smoke"],
    "steps": [
        {
            "name": "Open shop",
            "url": "/",
            "assertions": [{"type": "visible", "selector": "#username"}],
        },
        {
            "name": "Add product",
            "actions": ["add-to-cart"],
            "assertions": [{"type": "text", "selector": ".cart-count", "expected": "1"}],
        },
    ],
}


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to test fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def mock_pages_dir() -> Path:
    """Path to mock HTML pages."""
    return MOCK_PAGES_DIR


@pytest.fixture
def simple_form_path() -> Path:
    """Path to the simple form test page."""
    return MOCK_PAGES_DIR / "simple_form.html"


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project root with a config file, two actions and one flow."""
    (tmp_path / "qa.config.json").write_text(
        json.dumps(
            {
                "baseUrl": "https://shop.test",
                "auth": {"credentials": {"email": "qa@shop.test", "password": "s3cret"}},
                "playwright": {"timeout": 5000, "waitUntil": "load"},
            }
        )
    )
    actions = tmp_path / ".tsty" / "actions"
    (actions / "auth").mkdir(parents=True)
    (actions / "auth" / "login.action.json").write_text(json.dumps(LOGIN_ACTION))
    (actions / "add-to-cart.action.json").write_text(json.dumps(ADD_TO_CART_ACTION))
    flows = tmp_path / ".tsty" / "flows" / "shop"
    flows.mkdir(parents=True)
    (flows / "checkout.json").write_text(json.dumps(CHECKOUT_FLOW))
    return tmp_path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in an empty temp project."""
    return Settings(
        project_root=tmp_path,
        base_url="https://shop.test",
        playwright=PlaywrightConfig(timeout=5000, wait_until="load"),
    )


@pytest.fixture
def context(tmp_path: Path) -> ExecutionContext:
    """Execution context writing screenshots under tmp_path."""
    root = tmp_path / "screenshots"
    ctx = ExecutionContext(
        screenshots_root=root,
        run_dir=root / "run-test",
        interpolation=InterpolationContext(
            base_url="https://shop.test", email="qa@shop.test", password="s3cret"
        ),
        project_root=tmp_path,
        default_timeout_ms=5000,
    )
    ctx.begin_step(1, "Open shop")
    return ctx


@pytest.fixture
def page() -> AsyncMock:
    """A Playwright page double; sync members are MagicMocks."""
    mock_page = AsyncMock()
    mock_page.url = "https://shop.test/"
    mock_page.is_closed = MagicMock(return_value=False)
    mock_page.on = MagicMock()
    mock_page.remove_listener = MagicMock()
    locator = MagicMock()
    for name in ("click", "fill", "check", "uncheck", "hover", "wait_for", "blur",
                 "press_sequentially", "scroll_into_view_if_needed", "count"):
        setattr(locator, name, AsyncMock())
    locator.first = locator
    mock_page.locator = MagicMock(return_value=locator)
    for query in ("get_by_role", "get_by_text", "get_by_label", "get_by_placeholder",
                  "get_by_alt_text", "get_by_title", "get_by_test_id"):
        setattr(mock_page, query, MagicMock(return_value=locator))
    mock_page.mouse = MagicMock()
    mock_page.mouse.wheel = AsyncMock()
    return mock_page
