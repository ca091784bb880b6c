"""Page script evaluation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tstyengine.exceptions import EvaluationError
from tstyengine.primitives import BasePrimitiveHandler, ExecutionContext, PrimitiveOutcome

if TYPE_CHECKING:
    from playwright.async_api import Page

    from tstyengine.models import Evaluate


class EvaluateHandler(BasePrimitiveHandler):
    """Run ``fn`` in the page; its JSON-serializable result is kept on the step."""

    failure = EvaluationError

    async def execute(
        self, page: Page, op: Evaluate, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        # page.evaluate takes no timeout; the interpreter bounds it.
        value = await page.evaluate(op.fn, op.arg)
        return PrimitiveOutcome(value=value)
