"""
Utilities module for the market data pipeline.

Provides logging setup and in-memory metrics.
"""

from market_intel.utils.logging import (
    setup_logging,
    get_logger,
    get_logger_with_context,
    mask_token,
)
from market_intel.utils.metrics import (
    Metrics,
    TimingStats,
    increment_logins,
    increment_session_cache_hits,
    increment_reauthentications,
    increment_properties_extracted,
    increment_comparables_failed,
    time_stats_request,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "get_logger_with_context",
    "mask_token",
    # Metrics
    "Metrics",
    "TimingStats",
    "increment_logins",
    "increment_session_cache_hits",
    "increment_reauthentications",
    "increment_properties_extracted",
    "increment_comparables_failed",
    "time_stats_request",
]
