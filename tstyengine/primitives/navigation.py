"""Navigation primitives: goto, goBack, goForward, reload, setContent."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tstyengine.exceptions import NavigationError
from tstyengine.primitives import BasePrimitiveHandler, ExecutionContext, PrimitiveOutcome

if TYPE_CHECKING:
    from playwright.async_api import Page

    from tstyengine.models import GoBack, GoForward, Goto, Reload, SetContent


class _NavigationHandler(BasePrimitiveHandler):
    failure = NavigationError


class GotoHandler(_NavigationHandler):
    """Navigate to a URL, relative URLs resolved against the flow's base URL."""

    async def execute(
        self, page: Page, op: Goto, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        url = absolute_url(op.url, context.interpolation.base_url)
        await page.goto(url, wait_until=op.wait_until or "load", timeout=timeout_ms)
        return PrimitiveOutcome(value=page.url)


class GoBackHandler(_NavigationHandler):
    async def execute(
        self, page: Page, op: GoBack, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.go_back(wait_until=op.wait_until or "load", timeout=timeout_ms)
        return PrimitiveOutcome()


class GoForwardHandler(_NavigationHandler):
    async def execute(
        self, page: Page, op: GoForward, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.go_forward(wait_until=op.wait_until or "load", timeout=timeout_ms)
        return PrimitiveOutcome()


class ReloadHandler(_NavigationHandler):
    async def execute(
        self, page: Page, op: Reload, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.reload(wait_until=op.wait_until or "load", timeout=timeout_ms)
        return PrimitiveOutcome()


class SetContentHandler(_NavigationHandler):
    async def execute(
        self, page: Page, op: SetContent, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.set_content(op.html, timeout=timeout_ms)
        return PrimitiveOutcome()


def absolute_url(url: str, base_url: str) -> str:
    """Join a relative ``url`` onto ``base_url``; absolute URLs pass through."""
    if not base_url or "://" in url or url.startswith(("data:", "about:")):
        return url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"
