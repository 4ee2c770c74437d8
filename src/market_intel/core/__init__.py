"""
Core module for the market data pipeline.

Contains the domain models and the exception hierarchy used throughout
the application.
"""

from market_intel.core.exceptions import (
    MarketIntelError,
    ConfigurationError,
    BrowserError,
    NavigationError,
    SessionError,
    AuthenticationFailure,
    TokenCaptureFailure,
    SessionExpired,
    UpstreamError,
    ExtractionFailure,
)
from market_intel.core.models import (
    Rating,
    SessionState,
    ProviderCredentials,
    LocationParams,
    Session,
    MarketStats,
    School,
    PropertyRecord,
    ComparableRecord,
    VacancyReading,
    SuburbReport,
)

__all__ = [
    # Exceptions
    "MarketIntelError",
    "ConfigurationError",
    "BrowserError",
    "NavigationError",
    "SessionError",
    "AuthenticationFailure",
    "TokenCaptureFailure",
    "SessionExpired",
    "UpstreamError",
    "ExtractionFailure",
    # Models
    "Rating",
    "SessionState",
    "ProviderCredentials",
    "LocationParams",
    "Session",
    "MarketStats",
    "School",
    "PropertyRecord",
    "ComparableRecord",
    "VacancyReading",
    "SuburbReport",
]
