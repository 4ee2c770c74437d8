"""
Shared browser engine lifecycle using Playwright.

One long-lived browser process is shared by every operation. It is
launched lazily on first use, relaunched if it disconnected, and torn
down explicitly on shutdown. Each operation gets its own isolated
browsing context (cookie jar, viewport, user agent).
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Playwright,
    Route,
)

from market_intel.config.settings import BrowserSettings
from market_intel.core.exceptions import BrowserError
from market_intel.utils.logging import get_logger

logger = get_logger(__name__)

_HIDE_WEBDRIVER_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
"""


class BrowserEngine:
    """
    Manages the shared Playwright browser process.

    Example:
        >>> engine = BrowserEngine(settings.browser)
        >>> async with engine.context() as context:
        ...     page = await context.new_page()
        ...     await page.goto("https://example.com")
        >>> await engine.stop()
    """

    def __init__(self, settings: BrowserSettings) -> None:
        self.settings = settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        """Check if the browser is launched and connected."""
        return self._browser is not None and self._browser.is_connected()

    async def start(self) -> Browser:
        """
        Launch the browser if it is not running.

        Safe to call concurrently; only one launch happens at a time.

        Raises:
            BrowserError: If the browser fails to launch
        """
        async with self._lock:
            if self.is_running:
                return self._browser

            if self._browser is not None:
                logger.warning("Browser disconnected, relaunching")
                await self._cleanup()

            try:
                logger.info(
                    f"Starting {self.settings.browser_type} browser "
                    f"(headless={self.settings.headless})"
                )

                self._playwright = await async_playwright().start()
                browser_type = getattr(
                    self._playwright, self.settings.browser_type)

                args = list(self.settings.launch_args)
                if self.settings.hide_automation and self.settings.browser_type == "chromium":
                    args.append("--disable-blink-features=AutomationControlled")

                self._browser = await browser_type.launch(
                    headless=self.settings.headless,
                    args=args,
                )

                logger.info("Browser started successfully")
                return self._browser

            except Exception as e:
                await self._cleanup()
                raise BrowserError(
                    f"Failed to launch browser: {e}",
                    details={"browser_type": self.settings.browser_type},
                ) from e

    async def stop(self) -> None:
        """Close the browser and stop Playwright. Safe to call repeatedly."""
        async with self._lock:
            await self._cleanup()
        logger.info("Browser stopped")

    async def _cleanup(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping Playwright: {e}")
            self._playwright = None

    async def new_context(self, storage_state: dict | None = None) -> BrowserContext:
        """
        Create a new isolated browser context.

        Args:
            storage_state: Saved cookies/local storage to seed the context with

        Raises:
            BrowserError: If context creation fails
        """
        browser = await self.start()

        try:
            context_options: dict = {
                "viewport": {
                    "width": self.settings.viewport_width,
                    "height": self.settings.viewport_height,
                },
                "user_agent": self.settings.user_agent,
                "ignore_https_errors": self.settings.ignore_https_errors,
            }
            if storage_state is not None:
                context_options["storage_state"] = storage_state

            context = await browser.new_context(**context_options)

            context.set_default_timeout(self.settings.timeout_ms)
            context.set_default_navigation_timeout(
                self.settings.navigation_timeout_ms)

            if self.settings.hide_automation:
                await context.add_init_script(_HIDE_WEBDRIVER_SCRIPT)

            if self.settings.blocked_resource_types:
                await context.route("**/*", self._block_heavy_resources)

            logger.debug("Created new browser context")
            return context

        except Exception as e:
            raise BrowserError(
                f"Failed to create browser context: {e}",
            ) from e

    async def _block_heavy_resources(self, route: Route) -> None:
        if route.request.resource_type in self.settings.blocked_resource_types:
            await route.abort()
        else:
            await route.continue_()

    @asynccontextmanager
    async def context(
        self, storage_state: dict | None = None
    ) -> AsyncIterator[BrowserContext]:
        """Yield a fresh context and always close it afterwards."""
        context = await self.new_context(storage_state=storage_state)
        try:
            yield context
        finally:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"Error closing browser context: {e}")

    async def __aenter__(self) -> "BrowserEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

