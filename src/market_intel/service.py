"""
Market data service: the inbound contract of the pipeline.

Wires the shared browser engine, one SessionManager per provider, the
stats client and the extractors, and applies caller deadlines. Provider
credentials are read from the environment the first time a provider is
used.
"""

import asyncio
from typing import Awaitable, Mapping, Sequence, TypeVar

from market_intel.api.client import MarketStatsClient
from market_intel.browser.manager import BrowserEngine
from market_intel.config.loader import load_credentials
from market_intel.config.settings import Settings
from market_intel.core.exceptions import MarketIntelError
from market_intel.core.models import (
    ComparableRecord,
    LocationParams,
    MarketStats,
    PropertyRecord,
    SuburbReport,
)
from market_intel.extraction.batch import ComparablesExtractor, describe_error
from market_intel.extraction.property_extractor import PropertyExtractor
from market_intel.extraction.vacancy import VacancyReader
from market_intel.session.flows import CoreLogicLoginFlow, DsrLoginFlow
from market_intel.session.manager import SessionManager
from market_intel.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEADLINE_EXCEEDED = "Deadline exceeded"


async def with_deadline(awaitable: Awaitable[T], timeout: float | None) -> T:
    """Await with an optional deadline; expiry cancels the work and raises TimeoutError."""
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout)


class MarketDataService:
    """
    Facade over the session, API and extraction components.

    Example:
        >>> async with MarketDataService(load_config()) as service:
        ...     stats = await service.get_market_stats("Paddington", "NSW", "2021")
        ...     report = await service.get_suburb_report("Paddington", "NSW", "2021")
    """

    def __init__(
        self,
        settings: Settings,
        engine: BrowserEngine | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.settings = settings
        self.engine = engine or BrowserEngine(settings.browser)
        self._owns_engine = engine is None
        self._environ = environ

        self._dsr_sessions: SessionManager | None = None
        self._corelogic_sessions: SessionManager | None = None
        self._stats_client: MarketStatsClient | None = None

    @property
    def dsr_sessions(self) -> SessionManager:
        if self._dsr_sessions is None:
            self._dsr_sessions = SessionManager(
                self.engine,
                DsrLoginFlow(self.settings.dsr, self.settings.session),
                load_credentials(self.settings.dsr, self._environ),
                self.settings.session,
            )
        return self._dsr_sessions

    @property
    def corelogic_sessions(self) -> SessionManager:
        if self._corelogic_sessions is None:
            self._corelogic_sessions = SessionManager(
                self.engine,
                CoreLogicLoginFlow(self.settings.corelogic, self.settings.session),
                load_credentials(self.settings.corelogic, self._environ),
                self.settings.session,
            )
        return self._corelogic_sessions

    @property
    def stats_client(self) -> MarketStatsClient:
        if self._stats_client is None:
            self._stats_client = MarketStatsClient(
                self.dsr_sessions, self.settings.dsr, self.settings.api)
        return self._stats_client

    async def get_market_stats(
        self,
        suburb: str,
        state: str,
        postcode: str,
        timeout: float | None = None,
    ) -> MarketStats:
        """
        Raises:
            AuthenticationFailure, TokenCaptureFailure, SessionExpired,
            UpstreamError: Propagated from the session and API layers
            TimeoutError: The deadline expired
        """
        location = LocationParams(suburb=suburb, state=state, postcode=postcode)
        return await with_deadline(self.stats_client.fetch_stats(location), timeout)

    async def get_property(
        self, address: str, timeout: float | None = None
    ) -> PropertyRecord:
        extractor = PropertyExtractor(self.engine, self.corelogic_sessions, self.settings)
        return await with_deadline(extractor.extract_property(address), timeout)

    async def get_comparables(
        self,
        addresses: Sequence[str],
        timeout: float | None = None,
    ) -> list[ComparableRecord]:
        """
        One record per address in input order; never raises as a whole.

        Records finished before the deadline are kept and the remaining
        addresses are reported as failed.
        """
        addresses = list(addresses)
        results: list[ComparableRecord] = []
        if not addresses:
            return results

        try:
            sessions = self.corelogic_sessions
        except MarketIntelError as e:
            return [ComparableRecord.failed(a, describe_error(e)) for a in addresses]

        extractor = ComparablesExtractor(self.engine, sessions, self.settings)
        try:
            await with_deadline(extractor.extract_comparables(addresses, results), timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Comparables deadline hit after {len(results)}/{len(addresses)} addresses")
            results.extend(
                ComparableRecord.failed(address, DEADLINE_EXCEEDED)
                for address in addresses[len(results):]
            )
        return results

    async def get_suburb_report(
        self,
        suburb: str,
        state: str,
        postcode: str,
        include_vacancy: bool = True,
        timeout: float | None = None,
    ) -> SuburbReport:
        """
        Market stats plus the SQM vacancy reading.

        A failing source is recorded in report.errors; the other sources
        still contribute.
        """
        report = SuburbReport(suburb=suburb)

        try:
            report.stats = await self.get_market_stats(suburb, state, postcode, timeout)
        except MarketIntelError as e:
            logger.warning(f"DSR stats failed for {suburb}: {e}")
            report.errors.append({"source": "dsr", "error": e.message})
        except asyncio.TimeoutError:
            report.errors.append({"source": "dsr", "error": DEADLINE_EXCEEDED})

        if include_vacancy:
            reader = VacancyReader(self.engine, self.settings)
            try:
                report.vacancy = await with_deadline(reader.read_vacancy(postcode), timeout)
            except MarketIntelError as e:
                logger.warning(f"SQM vacancy failed for {postcode}: {e}")
                report.errors.append({"source": "sqm", "error": e.message})
            except asyncio.TimeoutError:
                report.errors.append({"source": "sqm", "error": DEADLINE_EXCEEDED})

        if report.errors:
            logger.warning(f"Suburb report for {suburb} has {len(report.errors)} failures")
        return report

    async def aclose(self) -> None:
        if self._stats_client is not None:
            await self._stats_client.aclose()
        if self._owns_engine:
            await self.engine.stop()

    async def __aenter__(self) -> "MarketDataService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
