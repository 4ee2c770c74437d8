"""
Single-address property extraction from CoreLogic.
"""

import time

from playwright.async_api import Error as PlaywrightError

from market_intel.browser.actions import scroll_to_bottom_and_back
from market_intel.browser.manager import BrowserEngine
from market_intel.config.settings import Settings
from market_intel.core.exceptions import ExtractionFailure
from market_intel.core.models import PropertyRecord
from market_intel.extraction.detail_page import DetailPage, DetailState
from market_intel.extraction.fields import (
    extract_rental,
    extract_valuation,
    market_status,
    read_property_record,
)
from market_intel.extraction.navigation import CoreLogicNavigator, authenticated_navigator
from market_intel.session.manager import SessionManager
from market_intel.utils.logging import get_logger
from market_intel.utils.metrics import Metrics, increment_properties_extracted

logger = get_logger(__name__)


class PropertyExtractor:
    """
    Extracts a full PropertyRecord for one address.

    Example:
        >>> extractor = PropertyExtractor(engine, corelogic_sessions, settings)
        >>> record = await extractor.extract_property("12 Smith St, Paddington NSW 2021")
        >>> record.market_status
        'OFF Market'
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

    async def extract_property(self, address: str) -> PropertyRecord:
        """
        Search an address and read its attributes, sale, schools,
        valuation and rental estimate.

        Raises:
            ExtractionFailure: If the search or the detail view fails
            AuthenticationFailure: If no authenticated page can be opened
        """
        start_time = time.perf_counter()
        logger.info(f"Extracting property: {address}")

        async with authenticated_navigator(
            self.engine, self.sessions, self.settings.corelogic, self.settings.extraction
        ) as navigator:
            record = await self.read_detail(navigator, address)

        elapsed = (time.perf_counter() - start_time) * 1000
        Metrics.get().observe("property_extract_ms", elapsed)
        increment_properties_extracted()
        logger.info(f"Extracted {address} in {elapsed:.0f}ms ({record.market_status})")
        return record

    async def read_detail(
        self, navigator: CoreLogicNavigator, address: str
    ) -> PropertyRecord:
        await navigator.search_address(address)

        detail = DetailPage(navigator.ctx, self.settings.extraction.tab_settle_ms)
        try:
            await scroll_to_bottom_and_back(
                navigator.ctx.page, self.settings.extraction.lazy_scroll_wait_ms)
            base = await detail.capture_base()
        except PlaywrightError as e:
            raise ExtractionFailure(
                f"Property details could not be read: {e}",
                address=address,
                url=navigator.ctx.current_url,
            ) from e

        record = read_property_record(base)
        await self._read_tabs(detail, record)
        record.market_status = market_status(record)
        return record

    async def _read_tabs(self, detail: DetailPage, record: PropertyRecord) -> None:
        """Visit the valuation and rental tabs; a broken tab leaves its fields empty."""
        tabs = await detail.available_tabs()

        for state, tab in tabs.items():
            try:
                snapshot = await detail.activate(state, tab)
            except Exception as e:
                logger.warning(f"Could not open {state.value} tab: {e}")
                continue

            if state is DetailState.VALUATION:
                record.valuation_estimate = extract_valuation(snapshot)
            elif state is DetailState.RENTAL:
                rental = extract_rental(snapshot)
                record.rental_low = rental.low
                record.rental_mid = rental.mid
                record.rental_high = rental.high
                record.rental_yield = rental.gross_yield
