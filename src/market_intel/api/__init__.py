"""
API module: authenticated calls to provider JSON endpoints.
"""

from market_intel.api.client import MarketStatsClient, AUTH_DENIED_STATUSES

__all__ = [
    "MarketStatsClient",
    "AUTH_DENIED_STATUSES",
]
