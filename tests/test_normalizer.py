"""
Tests for normalization module.

Tests value parsing and formatting, closed rating thresholds and the
full payload normalization.
"""

import pytest

from market_intel.core.exceptions import UpstreamError
from market_intel.core.models import MarketStats, Rating
from market_intel.normalization import (
    format_currency,
    format_percent,
    format_plain,
    normalize,
    normalize_payload,
    parse_number,
    rate_days_on_market,
    rate_gross_yield,
    rate_stock_on_market,
    rate_vacancy,
)


class TestParseNumber:
    """Tests for parse_number."""

    @pytest.mark.parametrize("raw,expected", [
        (".95", 0.95),
        ("-.56", -0.56),
        (2.41, 2.41),
        (36, 36.0),
        ("$1,926,610", 1926610.0),
        (" 3.5 % ", 3.5),
    ])
    def test_parses(self, raw, expected):
        """Strings with currency, grouping and percent noise should parse."""
        assert parse_number(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [None, "", "n/a", True, [], float("nan"), float("inf")])
    def test_rejects(self, raw):
        """Missing, boolean and non-numeric input should give None."""
        assert parse_number(raw) is None


class TestFormatting:
    """Tests for display formatters."""

    def test_percent(self):
        """Percentages should have two decimals."""
        assert format_percent(".95") == "0.95%"
        assert format_percent("-.56") == "-0.56%"
        assert format_percent(None) == ""

    def test_currency(self):
        """Currency should be grouped in thousands."""
        assert format_currency(1926610) == "$1,926,610"
        assert format_currency("2125300") == "$2,125,300"
        assert format_currency(1234.5) == "$1,234.50"
        assert format_currency(-500) == "-$500"
        assert format_currency("") == ""

    def test_plain(self):
        """Whole floats should drop their decimal part."""
        assert format_plain(36) == "36"
        assert format_plain(36.0) == "36"
        assert format_plain(95.1) == "95.1"
        assert format_plain(None) == ""


class TestRatings:
    """Tests for threshold ratings."""

    @pytest.mark.parametrize("value,expected", [
        (0.0, Rating.LOW),
        (1.50, Rating.LOW),
        (1.51, Rating.AVERAGE),
        (3.0, Rating.AVERAGE),
        (3.01, Rating.HIGH),
    ])
    def test_stock_on_market(self, value, expected):
        assert rate_stock_on_market(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (25, Rating.FAST),
        (26, Rating.AVERAGE),
        (45, Rating.AVERAGE),
        (46, Rating.SLOW),
    ])
    def test_days_on_market(self, value, expected):
        assert rate_days_on_market(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (2.0, Rating.LOW),
        (2.5, Rating.AVERAGE),
        (3.5, Rating.HIGH),
    ])
    def test_vacancy(self, value, expected):
        assert rate_vacancy(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (5.0, Rating.STRONG),
        (4.0, Rating.AVERAGE),
        (3.0, Rating.AVERAGE),
        (2.41, Rating.LOW),
    ])
    def test_gross_yield(self, value, expected):
        assert rate_gross_yield(value) == expected


class TestNormalize:
    """Tests for normalize and normalize_payload."""

    def test_reference_example(self, sample_stats: dict):
        """The reference raw stats should normalize to the documented values."""
        stats = normalize(sample_stats)

        assert stats.stock_on_market == "0.95%"
        assert stats.stock_rating == Rating.LOW
        assert stats.days_on_market == "36"
        assert stats.dom_rating == Rating.AVERAGE
        assert stats.vacancy_rate == "1.32%"
        assert stats.vacancy_rating == Rating.LOW
        assert stats.gross_rental_yield == "2.41%"
        assert stats.yield_rating == Rating.LOW
        assert stats.median_12_months == "$1,926,610"

    def test_secondary_fields(self, sample_stats: dict):
        """Remaining fields should be formatted for display."""
        stats = normalize(sample_stats)

        assert stats.vendor_discounting == "-0.56%"
        assert stats.typical_value == "$2,125,300"
        assert stats.renters_percentage == "20%"
        assert stats.auction_clearance_rate == "95.1%"
        assert stats.dsr_score == "48"
        assert stats.online_search_interest == "45"
        assert stats.statistical_reliability == "68"

    def test_missing_values(self):
        """Missing values render empty and rate as zero."""
        stats = normalize({})

        assert stats.stock_on_market == ""
        assert stats.stock_rating == Rating.LOW
        assert stats.dom_rating == Rating.FAST
        assert stats.yield_rating == Rating.LOW

    def test_idempotent(self, sample_payload: dict):
        """Normalizing the same payload twice should give equal results."""
        first = normalize_payload(sample_payload)
        second = normalize_payload(sample_payload)

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_payload_period(self, sample_payload: dict):
        """Reporting month and year come from the response envelope."""
        stats = normalize_payload(sample_payload)

        assert isinstance(stats, MarketStats)
        assert stats.data_month == "11"
        assert stats.data_year == "2024"

    @pytest.mark.parametrize("payload", [
        {},
        {"response": {}},
        {"response": {"all_mkt_stats": None}},
        {"response": "error"},
        [],
    ])
    def test_missing_stats_fatal(self, payload):
        """Absence of all_mkt_stats should raise UpstreamError."""
        with pytest.raises(UpstreamError, match="No stats"):
            normalize_payload(payload)

    def test_context_rename(self, sample_stats: dict):
        """to_context should expose the median under its report name."""
        context = normalize(sample_stats).to_context()

        assert context["median_house_price"] == "$1,926,610"
        assert "median_12_months" not in context
        assert context["stock_rating"] == "Low"
