"""
Browser module for the market data pipeline.

Provides Playwright-based browser automation with:
- A shared, lazily launched browser engine
- Page context wrapper with bounded waits and snapshots
- Common navigation and interaction actions
"""

from market_intel.browser.manager import BrowserEngine
from market_intel.browser.page_context import PageContext
from market_intel.browser.actions import (
    safe_click,
    select_first_suggestion,
    scroll_to_bottom_and_back,
    dismiss_popups,
    first_completed,
)

__all__ = [
    "BrowserEngine",
    "PageContext",
    "safe_click",
    "select_first_suggestion",
    "scroll_to_bottom_and_back",
    "dismiss_popups",
    "first_completed",
]
