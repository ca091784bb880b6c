"""Primitive handler interface and per-run execution context."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from tstyengine.exceptions import ExecutionError
from tstyengine.interpolation import InterpolationContext

if TYPE_CHECKING:
    from playwright.async_api import Page

    from tstyengine.models import BasePrimitive


def slugify(text: str) -> str:
    """Lowercase, non-alphanumerics collapsed to ``-``."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "step"


@dataclass
class ExecutionContext:
    """Runtime state shared by the primitives of one run."""

    screenshots_root: Path
    run_dir: Path
    interpolation: InterpolationContext = field(default_factory=InterpolationContext)
    project_root: Path = field(default_factory=Path.cwd)
    default_timeout_ms: float = 30000
    step_number: int = 0
    step_name: str = ""
    _shots: int = 0

    def begin_step(self, number: int, name: str) -> None:
        self.step_number = number
        self.step_name = name
        self._shots = 0

    def screenshot_target(self, name: str | None = None) -> tuple[Path, str]:
        """Absolute file path for a new screenshot, and its path relative to the root."""
        if name:
            # Keep user-named shots inside the run directory.
            filename = Path(name).name
            if not filename.endswith(".png"):
                filename += ".png"
        else:
            self._shots += 1
            filename = f"{self.step_number}-{slugify(self.step_name)}-{self._shots}.png"
        path = self.run_dir / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        return path, path.relative_to(self.screenshots_root).as_posix()


@dataclass
class PrimitiveOutcome:
    """What a successful primitive hands back to the step."""

    ok: bool = True
    artifact: str | None = None
    value: Any = None


class BasePrimitiveHandler(ABC):
    """Executes one primitive type against a page.

    ``failure`` is the error class raised for Playwright failures of this
    handler; ``timeout_is_duration`` marks handlers whose ``timeout`` field is
    what they do rather than a bound on it.
    """

    failure: type[ExecutionError] = ExecutionError
    timeout_is_duration: bool = False

    @abstractmethod
    async def execute(
        self,
        page: Page,
        op: BasePrimitive,
        context: ExecutionContext,
        timeout_ms: float,
    ) -> PrimitiveOutcome:
        """Run ``op`` with ``timeout_ms`` passed on to Playwright."""
