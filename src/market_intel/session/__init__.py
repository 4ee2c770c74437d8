"""
Session module for the market data pipeline.

Logs in through provider UIs, captures bearer tokens from observed
traffic and caches sessions with a time-to-live.
"""

from market_intel.session.store import SessionStore
from market_intel.session.observer import RequestObserver, UUID_PATTERN, find_token
from market_intel.session.flows import LoginFlow, DsrLoginFlow, CoreLogicLoginFlow
from market_intel.session.manager import SessionManager

__all__ = [
    "SessionStore",
    "RequestObserver",
    "UUID_PATTERN",
    "find_token",
    "LoginFlow",
    "DsrLoginFlow",
    "CoreLogicLoginFlow",
    "SessionManager",
]
