"""Form control primitives."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from tstyengine.primitives import BasePrimitiveHandler, ExecutionContext, PrimitiveOutcome

if TYPE_CHECKING:
    from playwright.async_api import Page

    from tstyengine.models import Check, SelectOption, SetInputFiles, Uncheck


class CheckHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: Check, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.check(op.selector, timeout=timeout_ms)
        return PrimitiveOutcome()


class UncheckHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: Uncheck, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        await page.uncheck(op.selector, timeout=timeout_ms)
        return PrimitiveOutcome()


class SelectOptionHandler(BasePrimitiveHandler):
    async def execute(
        self, page: Page, op: SelectOption, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        selected = await page.select_option(op.selector, op.value, timeout=timeout_ms)
        return PrimitiveOutcome(value=selected)


class SetInputFilesHandler(BasePrimitiveHandler):
    """Attach files; relative paths are taken from the project root."""

    async def execute(
        self, page: Page, op: SetInputFiles, context: ExecutionContext, timeout_ms: float
    ) -> PrimitiveOutcome:
        files = [op.files] if isinstance(op.files, str) else op.files
        paths = [
            p if p.is_absolute() else context.project_root / p
            for p in map(Path, files)
        ]
        await page.set_input_files(op.selector, paths, timeout=timeout_ms)
        return PrimitiveOutcome()
