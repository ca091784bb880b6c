"""Screenshot primitive."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tstyengine.primitives import BasePrimitiveHandler, ExecutionContext, PrimitiveOutcome

if TYPE_CHECKING:
    from playwright.async_api import Page

    from tstyengine.models import Screenshot


class ScreenshotHandler(BasePrimitiveHandler):
    """Take a PNG of the page into the run's screenshot directory."""

    async def execute(
        self, page: Page, op: Screenshot, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        path, relative = context.screenshot_target(op.path)
        await page.screenshot(
            path=str(path), full_page=op.full_page, type="png", timeout=timeout_ms
        )
        return PrimitiveOutcome(artifact=relative)
