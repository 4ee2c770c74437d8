"""
Vacancy rate reader for SQM Research.

The public vacancy page renders a Highcharts combo chart with a
"Vacancies" column series and a "Vacancy Rate" line series. The latest
point of each is read from the chart objects in the page.
"""

from datetime import datetime, timezone
from typing import Any

from playwright.async_api import Error as PlaywrightError

from market_intel.browser.manager import BrowserEngine
from market_intel.browser.page_context import PageContext
from market_intel.config.settings import Settings
from market_intel.core.exceptions import ExtractionFailure, NavigationError
from market_intel.core.models import VacancyReading
from market_intel.utils.logging import get_logger

logger = get_logger(__name__)

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# Returns the first chart's series with only their last point
_CHART_SCAN = r"""
() => {
    if (!window.Highcharts || !window.Highcharts.charts) return null;
    const charts = window.Highcharts.charts.filter(c => c);
    if (charts.length === 0) return [];
    return (charts[0].series || []).map(s => {
        const points = s.data || [];
        const last = points.length ? points[points.length - 1] : null;
        return {
            name: s.name || "",
            last: last ? {x: last.x, y: last.y} : null,
        };
    });
}
"""


def format_period(timestamp_ms: Any) -> str:
    """Chart x value (epoch milliseconds) to "Mon YYYY"."""
    if not isinstance(timestamp_ms, (int, float)) or isinstance(timestamp_ms, bool):
        return ""
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return f"{_MONTHS[moment.month - 1]} {moment.year}"


def parse_vacancy_series(
    series: list[dict[str, Any]] | None,
    postcode: str,
) -> VacancyReading:
    """
    Build a VacancyReading from scanned chart series.

    Raises:
        ExtractionFailure: If the chart library, the chart or the vacancy
            rate series is missing
    """
    if series is None:
        raise ExtractionFailure("Highcharts not found on page", details={"postcode": postcode})
    if not series:
        raise ExtractionFailure("No charts found", details={"postcode": postcode})

    rate = None
    vacancies = None
    period = ""

    for entry in series:
        name = str(entry.get("name") or "").lower()
        last = entry.get("last")
        if not last:
            continue
        if name == "vacancy rate":
            rate = last.get("y")
            period = format_period(last.get("x"))
        elif name == "vacancies":
            vacancies = last.get("y")

    if not isinstance(rate, (int, float)) or isinstance(rate, bool):
        raise ExtractionFailure(
            "Could not extract vacancy rate", details={"postcode": postcode})

    return VacancyReading(
        vacancy_rate=f"{rate:.2f}%",
        postcode=postcode,
        vacancies=int(vacancies) if isinstance(vacancies, (int, float)) else None,
        period=period,
    )


class VacancyReader:
    """Reads the latest SQM Research vacancy rate for a postcode."""

    def __init__(self, engine: BrowserEngine, settings: Settings) -> None:
        self.engine = engine
        self.settings = settings

    def vacancy_url(self, postcode: str) -> str:
        return f"{self.settings.sqm.base_url}/property/vacancy-rates?postcode={postcode}"

    async def read_vacancy(self, postcode: str) -> VacancyReading:
        """
        Raises:
            ExtractionFailure: Page unreachable or chart data missing
        """
        url = self.vacancy_url(postcode)
        logger.info(f"Fetching SQM vacancy rate for {postcode}")

        async with self.engine.context() as context:
            ctx = PageContext(await context.new_page())
            try:
                await ctx.navigate(
                    url, timeout_ms=self.settings.browser.navigation_timeout_ms)
            except NavigationError as e:
                raise ExtractionFailure(
                    f"Vacancy page unreachable: {e.message}", url=url) from e

            # Charts render client-side after the DOM is ready
            try:
                await ctx.settle(self.settings.extraction.chart_wait_ms)
                series = await ctx.page.evaluate(_CHART_SCAN)
            except PlaywrightError as e:
                raise ExtractionFailure(
                    f"Vacancy chart could not be read: {e}", url=url) from e

        reading = parse_vacancy_series(series, postcode)
        logger.info(
            f"SQM vacancy for {postcode}: {reading.vacancy_rate} "
            f"({reading.period or 'latest'})"
        )
        return reading
