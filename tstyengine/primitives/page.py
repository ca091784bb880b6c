"""Page-level primitives."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tstyengine.primitives import BasePrimitiveHandler, ExecutionContext, PrimitiveOutcome

if TYPE_CHECKING:
    from playwright.async_api import Page

    from tstyengine.models import BringToFront, SetExtraHTTPHeaders, SetViewportSize


class SetViewportSizeHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: SetViewportSize, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.set_viewport_size({"width": op.width, "height": op.height})
        return PrimitiveOutcome()


class SetExtraHTTPHeadersHandler(BasePrimitiveHandler):
    async def execute(
        self,
        page: Page,
        op: SetExtraHTTPHeaders,
        context: ExecutionContext,
        timeout_ms: float,
    ) -> PrimitiveOutcome:
        await page.set_extra_http_headers(op.headers)
        return PrimitiveOutcome()


class BringToFrontHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: BringToFront, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.bring_to_front()
        return PrimitiveOutcome()
