"""
Normalization module: raw provider values to typed, rated fields.
"""

from market_intel.normalization.normalizer import (
    normalize,
    normalize_payload,
    parse_number,
    format_percent,
    format_currency,
    format_plain,
)
from market_intel.normalization.ratings import (
    rate_stock_on_market,
    rate_days_on_market,
    rate_vacancy,
    rate_gross_yield,
)

__all__ = [
    "normalize",
    "normalize_payload",
    "parse_number",
    "format_percent",
    "format_currency",
    "format_plain",
    "rate_stock_on_market",
    "rate_days_on_market",
    "rate_vacancy",
    "rate_gross_yield",
]
