"""Keyboard primitives: fill, type, press."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tstyengine.primitives import BasePrimitiveHandler, ExecutionContext, PrimitiveOutcome

if TYPE_CHECKING:
    from playwright.async_api import Page

    from tstyengine.models import Fill, Press, TypeText


class FillHandler(BasePrimitiveHandler):
    """Replace an input's value in one go."""

    async def execute(
        self, page: Page, op: Fill, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.fill(op.selector, op.value, timeout=timeout_ms)
        return PrimitiveOutcome()


class TypeHandler(BasePrimitiveHandler):
    """Type key by key, for inputs that react to individual keystrokes."""

    async def execute(
        self, page: Page, op: TypeText, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.locator(op.selector).press_sequentially(
            op.text, delay=op.delay, timeout=timeout_ms
        )
        return PrimitiveOutcome()


class PressHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: Press, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.press(op.selector, op.key, timeout=timeout_ms)
        return PrimitiveOutcome()
