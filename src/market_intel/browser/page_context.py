"""
Page context wrapper used by the login flows and extractors.

Provides navigation with consistent error translation, bounded waits
that report success as a boolean, and HTML snapshots for offline field
extraction.
"""

import time

from playwright.async_api import Page, Response

from market_intel.core.exceptions import NavigationError
from market_intel.utils.logging import get_logger

logger = get_logger(__name__)


class PageContext:
    """
    Wrapper around Playwright Page with utility methods.

    Example:
        >>> page = await context.new_page()
        >>> ctx = PageContext(page)
        >>> await ctx.navigate("https://dsrdata.com.au/login")
        >>> found = await ctx.wait_for_selector("input#emailId", timeout_ms=15000)
    """

    def __init__(self, page: Page) -> None:
        self.page = page
        self._last_response: Response | None = None

    @property
    def current_url(self) -> str:
        return self.page.url

    async def navigate(
        self,
        url: str,
        wait_until: str = "domcontentloaded",
        timeout_ms: int | None = None,
    ) -> Response | None:
        """
        Navigate to URL and wait for the given load state.

        Raises:
            NavigationError: If navigation fails, times out or returns >= 400
        """
        start_time = time.perf_counter()

        try:
            logger.debug(f"Navigating to: {url}")

            response = await self.page.goto(
                url,
                wait_until=wait_until,
                timeout=timeout_ms,
            )

            self._last_response = response

            elapsed = (time.perf_counter() - start_time) * 1000
            logger.debug(f"Navigation complete in {elapsed:.0f}ms")

            if response and response.status >= 400:
                raise NavigationError(
                    f"HTTP {response.status} error",
                    url=url,
                    status_code=response.status,
                    retry_after=5.0 if response.status == 429 else None,
                )

            return response

        except NavigationError:
            raise
        except Exception as e:
            error_msg = str(e)

            if "timeout" in error_msg.lower():
                raise NavigationError(
                    f"Navigation timeout: {error_msg}",
                    url=url,
                    retry_after=10.0,
                ) from e

            if any(x in error_msg.lower() for x in ["net::", "dns", "connection"]):
                raise NavigationError(
                    f"Network error: {error_msg}",
                    url=url,
                    retry_after=5.0,
                ) from e

            raise NavigationError(
                f"Navigation failed: {error_msg}",
                url=url,
            ) from e

    async def wait_for_selector(
        self,
        selector: str,
        timeout_ms: int | None = None,
        state: str = "visible",
    ) -> bool:
        """
        Wait for an element to reach a state.

        Returns:
            True if the element reached the state, False on timeout
        """
        try:
            await self.page.wait_for_selector(
                selector,
                timeout=timeout_ms,
                state=state,
            )
            return True
        except Exception:
            return False

    async def wait_for_url(self, pattern: str, timeout_ms: int) -> bool:
        """Wait for the URL to match a glob pattern; False on timeout."""
        try:
            await self.page.wait_for_url(pattern, timeout=timeout_ms)
            return True
        except Exception:
            return False

    async def settle(self, wait_ms: int) -> None:
        """Give client-side rendering time to finish."""
        if wait_ms > 0:
            await self.page.wait_for_timeout(wait_ms)

    async def snapshot(self) -> str:
        """Return the current rendered HTML."""
        return await self.page.content()
