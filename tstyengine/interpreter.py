"""Primitive interpreter: runs one primitive against a live page."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tstyengine.exceptions import (
    ConfigurationError,
    FatalError,
    SelectorTimeoutError,
    TstyError,
)
from tstyengine.interpolation import interpolate_model
from tstyengine.logger import get_logger
from tstyengine.primitives import ExecutionContext, PrimitiveOutcome
from tstyengine.primitives.registry import get_handler

if TYPE_CHECKING:
    from playwright.async_api import Page

    from tstyengine.models import BasePrimitive

log = get_logger(__name__)

_CLOSED_MARKERS = ("has been closed", "Target closed", "Browser closed")


def first_line(exc: BaseException) -> str:
    text = str(exc).strip()
    return text.splitlines()[0] if text else type(exc).__name__


def page_gone(page: Page, exc: BaseException) -> bool:
    if any(marker in str(exc) for marker in _CLOSED_MARKERS):
        return True
    try:
        return page.is_closed() is True
    except PlaywrightError:
        return True


class Interpreter:
    """Validates, bounds and executes primitives, normalizing their failures."""

    async def execute(
        self,
        op: BasePrimitive,
        page: Page,
        context: ExecutionContext,
        budget_ms: float | None = None,
    ) -> PrimitiveOutcome:
        """Execute ``op``.

        ``budget_ms`` is what is left of the step's time budget; the effective
        timeout is the smaller of it and the primitive's own timeout.
        """
        op = interpolate_model(op, context.interpolation)
        kind = op.type  # type: ignore[attr-defined]
        missing = op.missing_fields()
        if missing:
            raise ConfigurationError(
                f"primitive '{kind}' is missing required field(s): {', '.join(missing)}",
                entity_id=context.step_name or None,
            )
        handler = get_handler(kind)

        if handler.timeout_is_duration:
            limit_ms = budget_ms
            playwright_timeout = op.timeout or 0
        else:
            own = op.timeout if op.timeout is not None else context.default_timeout_ms
            limit_ms = own if budget_ms is None else min(own, budget_ms)
            playwright_timeout = limit_ms
        if limit_ms is not None and limit_ms <= 0:
            raise SelectorTimeoutError(kind, 0, "step time budget exhausted")

        start = time.monotonic()
        try:
            run = handler.execute(page, op, context, playwright_timeout)
            if limit_ms is None:
                outcome = await run
            else:
                outcome = await asyncio.wait_for(run, timeout=limit_ms / 1000)
        except TstyError:
            raise
        except asyncio.TimeoutError as exc:
            raise SelectorTimeoutError(kind, limit_ms or 0) from exc
        except PlaywrightTimeoutError as exc:
            raise SelectorTimeoutError(kind, limit_ms or 0, first_line(exc)) from exc
        except PlaywrightError as exc:
            if page_gone(page, exc):
                raise FatalError(f"Browser page closed during '{kind}': {first_line(exc)}") from exc
            raise handler.failure(kind, first_line(exc)) from exc
        except Exception as exc:
            log.warning("primitive_unexpected_error", primitive=kind, error=str(exc))
            raise handler.failure(kind, first_line(exc)) from exc

        log.debug(
            "primitive_executed",
            primitive=kind,
            duration_ms=round((time.monotonic() - start) * 1000, 1),
        )
        return outcome
