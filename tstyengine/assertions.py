"""Post-step assertion checks."""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError

from tstyengine.exceptions import AssertionFailure, FatalError
from tstyengine.interpreter import first_line, page_gone
from tstyengine.logger import get_logger
from tstyengine.models import Assertion, AssertionResult, AssertionType

if TYPE_CHECKING:
    from playwright.async_api import Page

log = get_logger(__name__)

ASSERTION_TIMEOUT_MS = 5000

_VERBS = {"exact": "equal", "contains": "contain", "regex": "match"}


def matches(actual: Any, expected: Any, mode: str) -> bool:
    """Compare ``actual`` with ``expected`` under an exact/contains/regex rule."""
    if actual is None:
        return False
    actual_text, expected_text = str(actual), str(expected)
    if mode == "contains":
        return expected_text in actual_text
    if mode == "regex":
        return re.search(expected_text, actual_text) is not None
    return actual_text == expected_text


async def _observe(page: Page, assertion: Assertion, timeout_ms: float) -> Any:
    """Wait for (visible/hidden) or read the value an assertion is about."""
    kind = assertion.type
    if kind == AssertionType.VISIBLE:
        await page.wait_for_selector(assertion.selector, state="visible", timeout=timeout_ms)
        return True
    if kind == AssertionType.HIDDEN:
        await page.wait_for_selector(assertion.selector, state="hidden", timeout=timeout_ms)
        return True
    if kind == AssertionType.TEXT:
        return await page.text_content(assertion.selector, timeout=timeout_ms)
    if kind == AssertionType.COUNT:
        return await page.locator(assertion.selector).count()
    if kind == AssertionType.VALUE:
        return await page.input_value(assertion.selector, timeout=timeout_ms)
    if kind == AssertionType.ATTRIBUTE:
        return await page.get_attribute(
            assertion.selector, assertion.attribute, timeout=timeout_ms
        )
    return page.url


def _check(assertion: Assertion, actual: Any) -> None:
    kind = assertion.type
    if kind in (AssertionType.VISIBLE, AssertionType.HIDDEN):
        return
    if kind == AssertionType.COUNT:
        if actual != assertion.expected:
            raise AssertionFailure(
                f"expected {assertion.expected} element(s) matching "
                f"'{assertion.selector}', found {actual}",
                actual,
            )
        return
    mode = assertion.effective_match
    if not matches(actual, assertion.expected, mode):
        target = "URL" if kind == AssertionType.URL else f"{kind.value} of '{assertion.selector}'"
        verb = _VERBS.get(mode, "equal")
        raise AssertionFailure(
            f"expected {target} to {verb} {assertion.expected!r}, got {actual!r}",
            actual,
        )


async def evaluate_assertion(page: Page, assertion: Assertion) -> AssertionResult:
    """Evaluate one assertion; failures are reported, never raised.

    Only a closed page escapes, as ``FatalError``.
    """
    result = AssertionResult(
        type=assertion.type,
        selector=assertion.selector,
        attribute=assertion.attribute,
        expected=assertion.expected,
        passed=False,
    )
    timeout_ms = assertion.timeout if assertion.timeout is not None else ASSERTION_TIMEOUT_MS
    try:
        actual = await asyncio.wait_for(
            _observe(page, assertion, timeout_ms), timeout=timeout_ms / 1000 + 1
        )
        result.actual = actual
        _check(assertion, actual)
        result.passed = True
    except AssertionFailure as exc:
        result.error = exc.detail
    except asyncio.TimeoutError:
        result.error = f"timed out after {timeout_ms:.0f}ms"
    except re.error as exc:
        result.error = f"invalid regex {assertion.expected!r}: {exc}"
    except PlaywrightError as exc:
        if page_gone(page, exc):
            raise FatalError(f"Browser page closed during assertion: {first_line(exc)}") from exc
        result.error = first_line(exc)
    if not result.passed:
        log.info(
            "assertion_failed",
            type=assertion.type.value,
            selector=assertion.selector,
            error=result.error,
        )
    return result


async def run_assertions(page: Page, assertions: list[Assertion]) -> list[AssertionResult]:
    """Evaluate every assertion in order; one failing does not skip the rest."""
    return [await evaluate_assertion(page, a) for a in assertions]
