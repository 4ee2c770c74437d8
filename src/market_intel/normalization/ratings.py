"""
Threshold ratings for market stats.

Every boundary is closed: a value equal to a threshold takes the
rating of that threshold's band.
"""

from market_intel.core.models import Rating

# (upper bound inclusive, rating); values above the last bound get the fallback
STOCK_ON_MARKET_BANDS = ((1.5, Rating.LOW), (3.0, Rating.AVERAGE))
DAYS_ON_MARKET_BANDS = ((25.0, Rating.FAST), (45.0, Rating.AVERAGE))
VACANCY_BANDS = ((2.0, Rating.LOW), (3.0, Rating.AVERAGE))

# (lower bound inclusive, rating); values below the last bound get the fallback
GROSS_YIELD_BANDS = ((5.0, Rating.STRONG), (3.0, Rating.AVERAGE))


def _rate_ascending(value: float, bands, fallback: Rating) -> Rating:
    for bound, rating in bands:
        if value <= bound:
            return rating
    return fallback


def _rate_descending(value: float, bands, fallback: Rating) -> Rating:
    for bound, rating in bands:
        if value >= bound:
            return rating
    return fallback


def rate_stock_on_market(percent: float) -> Rating:
    return _rate_ascending(percent, STOCK_ON_MARKET_BANDS, Rating.HIGH)


def rate_days_on_market(days: float) -> Rating:
    return _rate_ascending(days, DAYS_ON_MARKET_BANDS, Rating.SLOW)


def rate_vacancy(percent: float) -> Rating:
    return _rate_ascending(percent, VACANCY_BANDS, Rating.HIGH)


def rate_gross_yield(percent: float) -> Rating:
    return _rate_descending(percent, GROSS_YIELD_BANDS, Rating.LOW)
