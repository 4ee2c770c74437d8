"""
Conversion of raw provider stats into typed, display-ready fields.

The provider returns a mix of numbers and strings (".95", "-.56", 2.41,
1926610). normalize() parses them, formats percentages and currency,
and derives ratings. Missing or unparseable values never fail the
record: they render as "" and rate as 0.
"""

import math
import re
from typing import Any, Mapping

from market_intel.core.exceptions import UpstreamError
from market_intel.core.models import MarketStats
from market_intel.normalization.ratings import (
    rate_days_on_market,
    rate_gross_yield,
    rate_stock_on_market,
    rate_vacancy,
)

_NUMBER_NOISE = re.compile(r"[\s$,%]")


def parse_number(value: Any) -> float | None:
    """
    Parse a provider value into a float.

    Accepts ints, floats and strings with optional "$", "%", "," and
    whitespace. Returns None for missing, boolean or non-numeric input.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _NUMBER_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def format_percent(value: Any) -> str:
    """Two-decimal percentage: ".95" -> "0.95%"."""
    number = parse_number(value)
    if number is None:
        return ""
    return f"{number:.2f}%"


def format_plain(value: Any) -> str:
    """Render a value as text; whole floats lose their ".0"."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        return str(int(value)) if value.is_integer() else str(value)
    return str(value).strip()


def format_plain_percent(value: Any) -> str:
    """Append "%" to the plain rendering: 95.1 -> "95.1%"."""
    text = format_plain(value)
    return f"{text}%" if text else ""


def format_currency(value: Any) -> str:
    """Dollar amount with thousands grouping: 1926610 -> "$1,926,610"."""
    number = parse_number(value)
    if number is None:
        return ""
    sign = "-" if number < 0 else ""
    number = abs(number)
    if number.is_integer():
        return f"{sign}${int(number):,}"
    return f"{sign}${number:,.2f}"


def normalize(
    stats: Mapping[str, Any],
    month: Any = None,
    year: Any = None,
) -> MarketStats:
    """
    Normalize the provider's all_mkt_stats mapping.

    Args:
        stats: Raw stats keyed by provider field codes (SOM_PERC, DOM, ...)
        month: Reporting month from the response envelope
        year: Reporting year from the response envelope

    Returns:
        MarketStats with formatted values and ratings
    """
    stock = parse_number(stats.get("SOM_PERC")) or 0.0
    days = parse_number(stats.get("DOM")) or 0.0
    vacancy = parse_number(stats.get("VACANCY")) or 0.0
    gross_yield = parse_number(stats.get("YIELD")) or 0.0

    return MarketStats(
        stock_on_market=format_percent(stats.get("SOM_PERC")),
        stock_rating=rate_stock_on_market(stock),
        days_on_market=format_plain(stats.get("DOM")),
        dom_rating=rate_days_on_market(days),
        vendor_discounting=format_percent(stats.get("DISCOUNT")),
        vacancy_rate=format_percent(stats.get("VACANCY")),
        vacancy_rating=rate_vacancy(vacancy),
        gross_rental_yield=format_percent(stats.get("YIELD")),
        yield_rating=rate_gross_yield(gross_yield),
        dsr_score=format_plain(stats.get("DSR")),
        median_12_months=format_currency(stats.get("MEDIAN_12")),
        typical_value=format_currency(stats.get("TV")),
        renters_percentage=format_plain_percent(stats.get("RENTERS")),
        auction_clearance_rate=format_plain_percent(stats.get("ACR")),
        online_search_interest=format_plain(stats.get("OSI")),
        statistical_reliability=format_plain(stats.get("SR")),
        data_month=format_plain(month),
        data_year=format_plain(year),
    )


def normalize_payload(payload: Any) -> MarketStats:
    """
    Normalize a full endpoint payload.

    Expected shape: {"response": {"month", "year", "all_mkt_stats": {...}}}

    Raises:
        UpstreamError: If the stats object is absent or not a mapping
    """
    response = payload.get("response") if isinstance(payload, Mapping) else None
    stats = response.get("all_mkt_stats") if isinstance(response, Mapping) else None

    if not isinstance(stats, Mapping):
        raise UpstreamError("No stats in provider response")

    return normalize(stats, month=response.get("month"), year=response.get("year"))
