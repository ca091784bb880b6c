"""Playwright browser manager for Tsty."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from tstyengine.config import PlaywrightConfig, Viewport
from tstyengine.exceptions import BrowserError
from tstyengine.logger import get_logger
from tstyengine.models import ConsoleMessage

log = get_logger(__name__)


class BrowserManager:
    """Owns the shared browser process; hands out one isolated context per run."""

    def __init__(self, options: PlaywrightConfig | None = None) -> None:
        self.options = options or PlaywrightConfig()
        self._playwright = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    @property
    def started(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def start(self) -> None:
        """Launch browser."""
        async with self._lock:
            if self._browser is not None:
                return
            await self._launch()

    async def _launch(self) -> None:
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.options.headless,
                slow_mo=self.options.slow_mo,
            )
            log.info(
                "browser_started",
                headless=self.options.headless,
                slow_mo=self.options.slow_mo,
            )
        except Exception as exc:
            await self.stop()
            raise BrowserError(f"Failed to start browser: {exc}") from exc

    async def stop(self) -> None:
        """Close browser and cleanup."""
        try:
            if self._browser:
                await self._browser.close()
            if self._playwright:
                await self._playwright.stop()
        except Exception as exc:
            log.warning("browser_stop_error", error=str(exc))
        finally:
            self._browser = None
            self._playwright = None
            log.info("browser_stopped")

    async def new_context(self, viewport: Viewport) -> BrowserContext:
        """Create a fresh browser context sized to ``viewport``."""
        if not self._browser:
            raise BrowserError("Browser not started; call start() first")
        try:
            ctx = await self._browser.new_context(
                viewport={"width": viewport.width, "height": viewport.height},
            )
        except Exception as exc:
            raise BrowserError(f"Failed to open browser context: {exc}") from exc
        ctx.set_default_timeout(self.options.timeout)
        return ctx

    @asynccontextmanager
    async def session(self, viewport: Viewport) -> AsyncIterator[Page]:
        """A page in its own context; the context is closed on exit, whatever happens."""
        ctx = await self.new_context(viewport)
        try:
            page = await ctx.new_page()
            yield page
        finally:
            try:
                await ctx.close()
            except Exception as exc:
                log.warning("context_close_error", error=str(exc))


class ConsoleRecorder:
    """Collects a page's console messages while attached."""

    def __init__(self, page: Page) -> None:
        self.page = page
        self.messages: list[ConsoleMessage] = []

    @property
    def error_count(self) -> int:
        return sum(1 for m in self.messages if m.type == "error")

    def _on_console(self, msg) -> None:
        self.messages.append(ConsoleMessage(type=msg.type, text=msg.text))

    def __enter__(self) -> ConsoleRecorder:
        self.messages = []
        self.page.on("console", self._on_console)
        return self

    def __exit__(self, *args) -> None:
        self.page.remove_listener("console", self._on_console)
