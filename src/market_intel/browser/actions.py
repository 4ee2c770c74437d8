"""
Common browser actions shared by the login flows and extractors.

Provides safe clicks, autocomplete selection with keyboard fallback,
lazy-content scrolling, popup dismissal and racing of wait conditions.
"""

import asyncio
from typing import Awaitable

from playwright.async_api import Page

from market_intel.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DISMISS_SELECTORS = (
    'button[aria-label="Close"]',
    'button[aria-label="close"]',
    ".modal-close",
    ".close-button",
    'button:has-text("Accept")',
    'button:has-text("OK")',
    'button:has-text("Got it")',
    'button:has-text("Dismiss")',
)


async def safe_click(
    page: Page,
    selector: str,
    timeout_ms: int = 5000,
    force: bool = False,
) -> bool:
    """
    Click an element, reporting failure instead of raising.

    Returns:
        True if click succeeded, False otherwise
    """
    try:
        element = await page.wait_for_selector(
            selector,
            timeout=timeout_ms,
            state="visible" if not force else "attached",
        )

        if element is None:
            logger.debug(f"Element not found: {selector}")
            return False

        await element.click(force=force, timeout=timeout_ms)
        logger.debug(f"Clicked element: {selector}")
        return True

    except Exception as e:
        logger.debug(f"Click failed for {selector}: {e}")
        return False


async def select_first_suggestion(
    page: Page,
    suggestion_selector: str,
    timeout_ms: int = 5000,
    keyboard_delay_ms: int = 500,
) -> str:
    """
    Pick the first entry of an autocomplete list.

    Clicks the first suggestion when the list renders; otherwise falls
    back to ArrowDown + Enter in the focused input.

    Returns:
        "pointer" or "keyboard", naming the method that was used
    """
    if await safe_click(page, suggestion_selector, timeout_ms=timeout_ms):
        return "pointer"

    logger.debug("No suggestion list rendered, using keyboard selection")
    await page.keyboard.press("ArrowDown")
    await page.wait_for_timeout(keyboard_delay_ms)
    await page.keyboard.press("Enter")
    return "keyboard"


async def scroll_to_bottom_and_back(page: Page, wait_ms: int = 2000) -> None:
    """Scroll to the bottom to trigger lazy-loaded sections, then return."""
    await page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")
    await page.wait_for_timeout(wait_ms)
    await page.evaluate("() => window.scrollTo(0, 0)")
    await page.wait_for_timeout(wait_ms // 2)


async def dismiss_popups(
    page: Page,
    selectors: tuple[str, ...] = DEFAULT_DISMISS_SELECTORS,
    wait_ms: int = 500,
) -> int:
    """
    Close modals, banners and cookie prompts if any are showing.

    Returns:
        Number of elements clicked
    """
    clicked = 0
    for selector in selectors:
        try:
            button = await page.query_selector(selector)
            if button:
                await button.click()
                clicked += 1
                await page.wait_for_timeout(wait_ms)
        except Exception as e:
            logger.debug(f"Popup dismissal skipped for {selector}: {e}")
    return clicked


async def first_completed(**waits: Awaitable) -> str:
    """
    Race named wait conditions and return the name of the first to finish.

    Conditions that finish with a falsy result or an exception are not
    treated as winners; if every condition fails the first name to
    finish is returned. Pending conditions are cancelled.
    """
    tasks = {
        asyncio.ensure_future(awaitable): name
        for name, awaitable in waits.items()
    }
    pending = set(tasks)
    fallback: str | None = None

    try:
        while pending:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                name = tasks[task]
                if fallback is None:
                    fallback = name
                if not task.cancelled() and task.exception() is None and task.result():
                    return name
        return fallback or ""
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
