"""
Comparable sales extraction over a batch of addresses.

One authenticated page is reused for the whole batch and addresses are
processed strictly in order. Each address is fenced: its failure becomes
a success=False record and the batch moves on.
"""

import asyncio
from typing import AsyncIterator, Sequence

from playwright.async_api import Error as PlaywrightError

from market_intel.browser.manager import BrowserEngine
from market_intel.config.settings import Settings
from market_intel.core.exceptions import MarketIntelError
from market_intel.core.models import ComparableRecord
from market_intel.extraction.fields import PageSnapshot, read_comparable
from market_intel.extraction.navigation import CoreLogicNavigator, authenticated_navigator
from market_intel.session.manager import SessionManager
from market_intel.utils.logging import get_logger
from market_intel.utils.metrics import increment_comparables_failed

logger = get_logger(__name__)


def describe_error(error: BaseException) -> str:
    if isinstance(error, MarketIntelError):
        return error.message
    return str(error) or type(error).__name__


class ComparablesExtractor:
    """
    Reads sold data for a list of comparable addresses.

    Example:
        >>> extractor = ComparablesExtractor(engine, corelogic_sessions, settings)
        >>> records = await extractor.extract_comparables(["1 A St", "2 B St"])
        >>> [r.success for r in records]
        [True, True]
    """

    def __init__(
        self,
        engine: BrowserEngine,
        sessions: SessionManager,
        settings: Settings,
    ) -> None:
        self.engine = engine
        self.sessions = sessions
        self.settings = settings

    async def extract_comparables(
        self,
        addresses: Sequence[str],
        results: list[ComparableRecord] | None = None,
    ) -> list[ComparableRecord]:
        """
        Extract one record per address, same length and order as the input.

        Args:
            addresses: Addresses to look up
            results: Optional accumulator; records are appended as they
                complete, so a caller that cancels keeps the finished ones

        Returns:
            The accumulator with one ComparableRecord per address
        """
        if results is None:
            results = []
        async for record in self.iter_comparables(addresses):
            results.append(record)
        return results

    async def iter_comparables(
        self, addresses: Sequence[str]
    ) -> AsyncIterator[ComparableRecord]:
        """Yield records in input order; never raises for per-item or login failures."""
        if not addresses:
            return

        completed = 0
        try:
            async with authenticated_navigator(
                self.engine,
                self.sessions,
                self.settings.corelogic,
                self.settings.extraction,
            ) as navigator:
                logger.info(f"Extracting {len(addresses)} comparables")
                for index, address in enumerate(addresses):
                    if index > 0:
                        await asyncio.sleep(self.settings.extraction.pacing_delay_seconds)
                    record = await self._extract_one(navigator, address)
                    completed += 1
                    yield record
        except (MarketIntelError, PlaywrightError) as e:
            # Login or browser failure: every address not yet done fails with it
            logger.error(f"Comparables batch aborted: {e}")
            for address in addresses[completed:]:
                increment_comparables_failed()
                yield ComparableRecord.failed(address, describe_error(e))

    async def _extract_one(
        self, navigator: CoreLogicNavigator, address: str
    ) -> ComparableRecord:
        try:
            await navigator.reset()
            await navigator.search_address(address)
            snapshot = PageSnapshot(await navigator.ctx.snapshot())
            record = read_comparable(address, snapshot)
        except Exception as e:
            increment_comparables_failed()
            logger.warning(f"Comparable failed for {address}: {describe_error(e)}")
            return ComparableRecord.failed(address, describe_error(e))

        logger.debug(f"Comparable read for {address}: sold {record.sold_price or 'n/a'}")
        return record
