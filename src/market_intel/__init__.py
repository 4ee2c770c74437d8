"""
Market Intelligence - real-estate market data from authenticated provider sessions.

This package logs into data providers through their web UIs, captures
session tokens, and reads suburb statistics, property details and
comparable sales into typed, rated records.
"""

from market_intel.config import Settings, load_config
from market_intel.utils.logging import setup_logging, get_logger
from market_intel.core.exceptions import MarketIntelError
from market_intel.core.models import MarketStats, PropertyRecord, ComparableRecord
from market_intel.normalization import normalize

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "load_config",
    "setup_logging",
    "get_logger",
    "MarketIntelError",
    "MarketStats",
    "PropertyRecord",
    "ComparableRecord",
    "normalize",
]
