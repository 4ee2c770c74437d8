"""
Tabbed property detail page.

The detail view has a base state plus valuation and rental tabs whose
content only renders after activation. DetailPage tracks which state is
showing and keeps one HTML snapshot per visited state.
"""

from enum import Enum

from playwright.async_api import ElementHandle

from market_intel.browser.page_context import PageContext
from market_intel.extraction.fields import PageSnapshot
from market_intel.utils.logging import get_logger

logger = get_logger(__name__)


class DetailState(str, Enum):
    BASE = "base"
    VALUATION = "valuation"
    RENTAL = "rental"


TAB_SELECTOR = (
    '[data-testid="crux-tab"] button, '
    '[data-testid="avm-detail"] [role="tab"], '
    ".MuiTabs-root button"
)

TAB_LABELS = {
    DetailState.VALUATION: "valuation",
    DetailState.RENTAL: "rental",
}


def classify_tab(label: str) -> DetailState | None:
    """Map a tab's visible label to the state it activates."""
    lowered = label.lower()
    for state, keyword in TAB_LABELS.items():
        if keyword in lowered:
            return state
    return None


class DetailPage:
    """
    State machine over a rendered property detail page.

    Example:
        >>> detail = DetailPage(ctx, settle_ms=1500)
        >>> base = await detail.capture_base()
        >>> for state, tab in (await detail.available_tabs()).items():
        ...     snapshot = await detail.activate(state, tab)
    """

    def __init__(self, ctx: PageContext, settle_ms: int = 1500) -> None:
        self.ctx = ctx
        self.settle_ms = settle_ms
        self.state = DetailState.BASE
        self.snapshots: dict[DetailState, PageSnapshot] = {}

    async def capture_base(self) -> PageSnapshot:
        snapshot = PageSnapshot(await self.ctx.snapshot())
        self.snapshots[DetailState.BASE] = snapshot
        return snapshot

    async def available_tabs(self) -> dict[DetailState, ElementHandle]:
        """First tab for each known state, in page order."""
        tabs: dict[DetailState, ElementHandle] = {}
        for handle in await self.ctx.page.query_selector_all(TAB_SELECTOR):
            try:
                label = await handle.inner_text()
            except Exception as e:
                logger.debug(f"Unreadable tab label: {e}")
                continue
            state = classify_tab(label)
            if state is not None and state not in tabs:
                tabs[state] = handle
        logger.debug(f"Detail tabs found: {[s.value for s in tabs]}")
        return tabs

    async def activate(self, target: DetailState, tab: ElementHandle) -> PageSnapshot:
        """
        Switch to a tab and snapshot its content.

        Raises:
            ValueError: If target is the base state, which has no tab
        """
        if target is DetailState.BASE:
            raise ValueError("The base state is not reachable through a tab")

        await tab.click()
        await self.ctx.settle(self.settle_ms)
        self.state = target

        snapshot = PageSnapshot(await self.ctx.snapshot())
        self.snapshots[target] = snapshot
        return snapshot
