"""Browser-control capability used by the automation engine.

The engine only talks to :class:`BrowserSession`; :func:`launch_browser`
provides the Playwright-backed implementation used in production. Tests
substitute their own session objects.
"""

from __future__ import annotations

import contextlib
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from playwright.async_api import async_playwright

from src.automation.errors import SessionError
from src.utils.logging import get_logger

logger = get_logger("browser")

# Flags needed to run Chromium inside containers without a user namespace.
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]


@runtime_checkable
class BrowserSession(Protocol):
    """One live browser tab owned by exactly one job."""

    @property
    def url(self) -> str: ...

    async def navigate(self, url: str, wait_until: str = "networkidle", timeout_ms: int | None = None) -> None: ...

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> None: ...

    async def evaluate(self, expression: str, arg: Any = None) -> Any: ...

    async def type(self, selector: str, text: str, delay_ms: int = 0) -> None: ...

    async def click(self, selector: str) -> None: ...

    async def click_and_wait_for_navigation(
        self, selector: str, wait_until: str = "networkidle", timeout_ms: int | None = None
    ) -> None: ...

    async def close(self) -> None: ...


SessionLauncher = Callable[..., Awaitable[BrowserSession]]


class PlaywrightSession:
    """:class:`BrowserSession` backed by a Playwright page.

    Owns the whole Playwright stack (driver, browser, context, page) so that
    ``close`` releases the browser process.
    """

    def __init__(self, playwright: Any, browser: Any, context: Any, page: Any) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self.page = page
        self._closed = False

    @property
    def url(self) -> str:
        return self.page.url

    async def navigate(self, url: str, wait_until: str = "networkidle", timeout_ms: int | None = None) -> None:
        await self.page.goto(url, wait_until=wait_until, timeout=timeout_ms)

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> None:
        await self.page.wait_for_selector(selector, timeout=timeout_ms, state="attached")

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await self.page.evaluate(expression, arg)

    async def type(self, selector: str, text: str, delay_ms: int = 0) -> None:
        await self.page.type(selector, text, delay=delay_ms)

    async def click(self, selector: str) -> None:
        await self.page.click(selector)

    async def click_and_wait_for_navigation(
        self, selector: str, wait_until: str = "networkidle", timeout_ms: int | None = None
    ) -> None:
        async with self.page.expect_navigation(wait_until=wait_until, timeout=timeout_ms):
            await self.page.click(selector)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._context.close()
            await self._browser.close()
        finally:
            with contextlib.suppress(Exception):
                await self._playwright.stop()


async def launch_browser(
    *,
    headless: bool = True,
    viewport: tuple[int, int] = (1920, 1080),
    timeout_ms: int = 30000,
    slow_mo_ms: int = 0,
) -> PlaywrightSession:
    """Launch Chromium and open one page configured for a job.

    ``timeout_ms`` bounds the launch itself and becomes the page's default
    operation and navigation timeout.

    Raises:
        SessionError: If Playwright or the browser cannot be started.
    """
    try:
        playwright = await async_playwright().start()
    except Exception as e:
        raise SessionError(f"Failed to start Playwright: {e}") from e

    browser = None
    try:
        browser = await playwright.chromium.launch(
            headless=headless,
            slow_mo=slow_mo_ms,
            args=LAUNCH_ARGS,
            timeout=timeout_ms,
        )
        width, height = viewport
        context = await browser.new_context(viewport={"width": width, "height": height})
        page = await context.new_page()
        page.set_default_timeout(timeout_ms)
        page.set_default_navigation_timeout(timeout_ms)
    except Exception as e:
        if browser is not None:
            with contextlib.suppress(Exception):
                await browser.close()
        with contextlib.suppress(Exception):
            await playwright.stop()
        raise SessionError(f"Failed to launch browser: {e}") from e

    logger.debug(f"Launched Chromium (headless={headless}, viewport={width}x{height})")
    return PlaywrightSession(playwright, browser, context, page)
