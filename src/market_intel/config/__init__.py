"""
Configuration module for the market data pipeline.

Provides Pydantic-based settings management with YAML file support,
environment variable overrides and provider credential lookup.
"""

from market_intel.config.settings import (
    Settings,
    BrowserSettings,
    SessionSettings,
    ProviderSettings,
    ApiSettings,
    ExtractionSettings,
    LoggingSettings,
)
from market_intel.config.loader import (
    load_config,
    get_settings,
    reset_settings,
    load_credentials,
)

__all__ = [
    "Settings",
    "BrowserSettings",
    "SessionSettings",
    "ProviderSettings",
    "ApiSettings",
    "ExtractionSettings",
    "LoggingSettings",
    "load_config",
    "get_settings",
    "reset_settings",
    "load_credentials",
]
