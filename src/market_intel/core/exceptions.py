"""
Custom exceptions for the market data pipeline.

All exceptions inherit from MarketIntelError so callers can catch the
whole family in one place.

Exception Hierarchy:
    MarketIntelError (base)
    ├── ConfigurationError
    ├── BrowserError
    │   └── NavigationError
    ├── SessionError
    │   ├── AuthenticationFailure
    │   ├── TokenCaptureFailure
    │   └── SessionExpired
    ├── UpstreamError
    └── ExtractionFailure
"""

from typing import Any


class MarketIntelError(Exception):
    """
    Base exception for all market data pipeline errors.

    Attributes:
        message: Human-readable error description
        details: Optional dictionary with additional context
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(
                f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, details={self.details!r})"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(MarketIntelError):
    """
    Error in configuration loading or validation.

    Raised when:
    - Configuration file is missing or malformed
    - Provider credentials are absent from the environment
    """

    pass


# =============================================================================
# Browser Errors
# =============================================================================


class BrowserError(MarketIntelError):
    """
    Base error for browser/Playwright operations.

    Raised when the browser fails to launch or a context cannot be created.
    """

    pass


class NavigationError(BrowserError):
    """
    Error during page navigation.

    Raised when a URL is unreachable, navigation times out or the
    provider answers with an HTTP error page.

    Attributes:
        retry_after: Suggested delay in seconds before retry (optional)
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
    ) -> None:
        details = details or {}
        if url:
            details["url"] = url
        if status_code:
            details["status_code"] = status_code
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code
        self.retry_after = retry_after


# =============================================================================
# Session Errors
# =============================================================================


class SessionError(MarketIntelError):
    """
    Base error for provider session acquisition and use.

    Attributes:
        provider: Name of the provider the session belongs to
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if provider:
            details["provider"] = provider
        super().__init__(message, details)
        self.provider = provider


class AuthenticationFailure(SessionError):
    """
    Login through the provider UI failed.

    Raised when:
    - Credentials are rejected
    - The login form never appears (login UI changed or unreachable)
    - No post-login signal fires and the form is still showing

    Not retried automatically.
    """

    pass


class TokenCaptureFailure(SessionError):
    """
    Login succeeded but the session could not be captured.

    Raised when no bearer token was observed in traffic, page scripts or
    the URL, or the required session cookie is missing from the jar.
    """

    pass


class SessionExpired(SessionError):
    """
    The provider rejected the cached session twice in a row.

    Raised after one automatic re-authentication and retry.
    """

    pass


# =============================================================================
# Upstream Errors
# =============================================================================


class UpstreamError(MarketIntelError):
    """
    Non-auth failure from a provider endpoint.

    Raised when:
    - The endpoint answers with a non-2xx, non-auth status
    - The transport fails
    - The payload is not JSON or lacks the expected stats object
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if status_code:
            details["status_code"] = status_code
        if url:
            details["url"] = url
        super().__init__(message, details)
        self.status_code = status_code
        self.url = url


# =============================================================================
# Extraction Errors
# =============================================================================


class ExtractionFailure(MarketIntelError):
    """
    An expected page region never appeared.

    Fatal for the single record being extracted. Missing non-critical
    fields never raise this; they degrade to empty values.
    """

    def __init__(
        self,
        message: str,
        address: str | None = None,
        selector: str | None = None,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if address:
            details["address"] = address
        if selector:
            details["selector"] = selector
        if url:
            details["url"] = url
        super().__init__(message, details)
        self.address = address
        self.selector = selector
        self.url = url
