"""
Authenticated navigation of the CoreLogic application.

Opens a browsing context seeded with the cached session, falls back to an
in-context login when the provider no longer honours it, and drives the
address search up to the rendered property detail view.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from playwright.async_api import Error as PlaywrightError

from market_intel.browser.actions import select_first_suggestion
from market_intel.browser.manager import BrowserEngine
from market_intel.browser.page_context import PageContext
from market_intel.config.settings import ExtractionSettings, ProviderSettings
from market_intel.core.exceptions import AuthenticationFailure, ExtractionFailure, NavigationError
from market_intel.extraction.fields import PRIMARY_REGION
from market_intel.session.manager import SessionManager
from market_intel.utils.logging import get_logger

logger = get_logger(__name__)

SEARCH_INPUT = "input#crux-multi-locality-search"
SUGGESTION_LIST = ".MuiAutocomplete-option, .MuiAutocomplete-listbox li"
FIRST_SUGGESTION = ".MuiAutocomplete-option:first-child, .MuiAutocomplete-listbox li:first-child"


class CoreLogicNavigator:
    """Drives one page from the application shell to a property detail view."""

    def __init__(
        self,
        ctx: PageContext,
        provider: ProviderSettings,
        settings: ExtractionSettings,
    ) -> None:
        self.ctx = ctx
        self.provider = provider
        self.settings = settings

    @property
    def app_url(self) -> str:
        return f"{self.provider.base_url}/"

    async def search_ready(self) -> bool:
        return await self.ctx.wait_for_selector(
            SEARCH_INPUT, timeout_ms=self.settings.search_input_timeout_ms)

    async def open_app(self) -> bool:
        """
        Load the application shell.

        Returns:
            True if the address search input rendered, meaning the
            context is authenticated
        """
        try:
            await self.ctx.navigate(self.app_url)
        except NavigationError as e:
            logger.warning(f"Application shell unreachable: {e.message}")
            return False
        await self.ctx.settle(self.settings.post_login_settle_ms)
        return await self.search_ready()

    async def reset(self) -> None:
        """Return to the application shell unless the search input is showing."""
        if await self.ctx.page.is_visible(SEARCH_INPUT):
            return
        logger.debug("Search input hidden, reloading application shell")
        await self.open_app()

    async def _leave_detail_view(self, address: str) -> None:
        """
        Reload the application shell if a property view is still showing.

        Any detail region left over from the previous address would
        otherwise satisfy the wait for this address's view.
        """
        page = self.ctx.page
        if await page.query_selector(PRIMARY_REGION) is None:
            return

        logger.debug("Previous property view still showing, reloading application shell")
        if not await self.open_app() or await page.query_selector(PRIMARY_REGION) is not None:
            raise ExtractionFailure(
                "Could not leave the previous property view",
                address=address,
                selector=PRIMARY_REGION,
                url=self.ctx.current_url,
            )

    async def search_address(self, address: str) -> None:
        """
        Search for an address and wait for its detail view.

        Raises:
            ExtractionFailure: If the previous view cannot be left, the
                search input or the detail region never renders, or the
                browser rejects an interaction
        """
        page = self.ctx.page

        try:
            await self._leave_detail_view(address)

            if not await self.search_ready():
                raise ExtractionFailure(
                    "Address search input not found",
                    address=address,
                    selector=SEARCH_INPUT,
                    url=self.ctx.current_url,
                )

            # The input only accepts typing once the page has focus
            await page.click("body")
            await page.click(SEARCH_INPUT)
            await page.fill(SEARCH_INPUT, address)
            await self.ctx.settle(self.settings.typing_settle_ms)

            if not await self.ctx.wait_for_selector(
                SUGGESTION_LIST, timeout_ms=self.settings.suggestion_timeout_ms
            ):
                logger.debug(f"No suggestion list for '{address}'")
            method = await select_first_suggestion(
                page, FIRST_SUGGESTION, timeout_ms=self.settings.suggestion_timeout_ms)
            logger.debug(f"Suggestion for '{address}' selected by {method}")

            await self.ctx.settle(self.settings.detail_settle_ms)
        except PlaywrightError as e:
            raise ExtractionFailure(
                f"Address search failed: {e}",
                address=address,
                url=self.ctx.current_url,
            ) from e

        if not await self.ctx.wait_for_selector(
            PRIMARY_REGION, timeout_ms=self.settings.detail_region_timeout_ms
        ):
            raise ExtractionFailure(
                "Property details did not render",
                address=address,
                selector=PRIMARY_REGION,
                url=self.ctx.current_url,
            )


@asynccontextmanager
async def authenticated_navigator(
    engine: BrowserEngine,
    sessions: SessionManager,
    provider: ProviderSettings,
    settings: ExtractionSettings,
) -> AsyncIterator[CoreLogicNavigator]:
    """
    Yield a navigator on an authenticated application page.

    The context is seeded with the cached session's storage state. If the
    search input does not render, the session is invalidated and the login
    flow runs inside this context instead.

    Raises:
        AuthenticationFailure: If the application stays unreachable after
            logging in
    """
    session = await sessions.acquire_session()

    async with engine.context(storage_state=session.storage_state) as context:
        page = await context.new_page()
        navigator = CoreLogicNavigator(PageContext(page), provider, settings)

        if not await navigator.open_app():
            logger.info("Stored session not honoured, logging in within this context")
            sessions.invalidate(session)
            await sessions.login_in_context(context, page)

            if not await navigator.search_ready():
                raise AuthenticationFailure(
                    "Address search unavailable after login",
                    provider=sessions.flow.name,
                    details={"url": navigator.ctx.current_url},
                )

        yield navigator
