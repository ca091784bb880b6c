"""Pointer primitives."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tstyengine.primitives import BasePrimitiveHandler, ExecutionContext, PrimitiveOutcome

if TYPE_CHECKING:
    from playwright.async_api import Page

    from tstyengine.models import (
        Blur,
        Click,
        Dblclick,
        DispatchEvent,
        DragAndDrop,
        Focus,
        Hover,
        Scroll,
        Tap,
    )


class ClickHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: Click, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.click(
            op.selector,
            button=op.button,
            click_count=op.click_count,
            force=op.force,
            timeout=timeout_ms,
        )
        return PrimitiveOutcome()


class DblclickHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: Dblclick, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.dblclick(op.selector, timeout=timeout_ms)
        return PrimitiveOutcome()


class HoverHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: Hover, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.hover(op.selector, timeout=timeout_ms)
        return PrimitiveOutcome()


class TapHandler(BasePrimitiveHandler):
    """Touch tap; needs a context created with ``has_touch``."""

    async def execute(
        self, page: Page, op: Tap, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.tap(op.selector, timeout=timeout_ms)
        return PrimitiveOutcome()


class FocusHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: Focus, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.focus(op.selector, timeout=timeout_ms)
        return PrimitiveOutcome()


class BlurHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: Blur, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.locator(op.selector).blur(timeout=timeout_ms)
        return PrimitiveOutcome()


class DragAndDropHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: DragAndDrop, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.drag_and_drop(op.source, op.target, timeout=timeout_ms)
        return PrimitiveOutcome()


class ScrollHandler(BasePrimitiveHandler):
    """Scroll an element into view, or wheel the page when no selector is set."""

    async def execute(
        self, page: Page, op: Scroll, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        if op.selector:
            await page.locator(op.selector).first.scroll_into_view_if_needed(
                timeout=timeout_ms
            )
        else:
            await page.mouse.wheel(op.x, op.y)
        return PrimitiveOutcome()


class DispatchEventHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: DispatchEvent, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.dispatch_event(
            op.selector, op.event, event_init=op.event_init, timeout=timeout_ms
        )
        return PrimitiveOutcome()
