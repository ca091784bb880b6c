"""Locator primitives: resolve an element, then act on it."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tstyengine.primitives import BasePrimitiveHandler, ExecutionContext, PrimitiveOutcome

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page

    from tstyengine.models import LocatorPrimitive


def build_locator(page: Page, op: LocatorPrimitive) -> Locator:
    """Map a locator primitive onto the matching ``page.get_by_*`` query."""
    exact = op.exact or None
    if op.type == "locator":
        return page.locator(op.selector)
    if op.type == "getByRole":
        return page.get_by_role(op.role, name=op.name, exact=exact)
    if op.type == "getByTestId":
        return page.get_by_test_id(op.text)
    queries = {
        "getByText": page.get_by_text,
        "getByLabel": page.get_by_label,
        "getByPlaceholder": page.get_by_placeholder,
        "getByAltText": page.get_by_alt_text,
        "getByTitle": page.get_by_title,
    }
    if op.type not in queries:
        raise ValueError(f"Not a locator primitive: {op.type}")
    return queries[op.type](op.text, exact=exact)


class LocatorHandler(BasePrimitiveHandler):
    """Perform ``op.action`` on the first element the query matches."""

    async def execute(
        self, page: Page, op: LocatorPrimitive, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        locator = build_locator(page, op).first
        if op.action == "fill":
            await locator.fill(op.value or "", timeout=timeout_ms)
        elif op.action == "check":
            await locator.check(timeout=timeout_ms)
        elif op.action == "uncheck":
            await locator.uncheck(timeout=timeout_ms)
        elif op.action == "hover":
            await locator.hover(timeout=timeout_ms)
        elif op.action == "waitFor":
            await locator.wait_for(timeout=timeout_ms)
        else:
            await locator.click(timeout=timeout_ms)
        return PrimitiveOutcome()
