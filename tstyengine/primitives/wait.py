"""Wait primitives."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from tstyengine.exceptions import EvaluationError, NavigationError
from tstyengine.primitives import BasePrimitiveHandler, ExecutionContext, PrimitiveOutcome
from tstyengine.primitives.navigation import absolute_url

if TYPE_CHECKING:
    from playwright.async_api import Page

    from tstyengine.models import (
        WaitForEvent,
        WaitForFunction,
        WaitForLoadState,
        WaitForSelector,
        WaitForTimeout,
        WaitForURL,
    )


class WaitForSelectorHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: WaitForSelector, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.wait_for_selector(op.selector, state=op.state, timeout=timeout_ms)
        return PrimitiveOutcome()


class WaitForTimeoutHandler(BasePrimitiveHandler):
    """Fixed delay of ``op.timeout`` milliseconds."""

    timeout_is_duration = True

    async def execute(
        self, page: Page, op: WaitForTimeout, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await asyncio.sleep(op.timeout / 1000)
        return PrimitiveOutcome()


class WaitForLoadStateHandler(BasePrimitiveHandler):
    failure = NavigationError

    async def execute(
        self, page: Page, op: WaitForLoadState, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.wait_for_load_state(op.state, timeout=timeout_ms)
        return PrimitiveOutcome()


class WaitForFunctionHandler(BasePrimitiveHandler):
    failure = EvaluationError

    async def execute(
        self, page: Page, op: WaitForFunction, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        handle = await page.wait_for_function(op.fn, arg=op.arg, timeout=timeout_ms)
        value = await handle.json_value()
        return PrimitiveOutcome(value=value)


class WaitForURLHandler(BasePrimitiveHandler):
    failure = NavigationError

    async def execute(
        self, page: Page, op: WaitForURL, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        url = absolute_url(op.url, context.interpolation.base_url)
        await page.wait_for_url(url, wait_until=op.wait_until or "load", timeout=timeout_ms)
        return PrimitiveOutcome(value=page.url)


class WaitForEventHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: WaitForEvent, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.wait_for_event(op.event, timeout=timeout_ms)
        return PrimitiveOutcome()
