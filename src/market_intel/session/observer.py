"""
Outbound request observation for bearer token capture.

A RequestObserver is registered on a page for the duration of a login
sequence and keeps a bounded buffer of token candidates found in the
URLs of outgoing requests.
"""

import re
from collections import deque
from contextlib import contextmanager
from typing import Iterator

from playwright.async_api import Page, Request

from market_intel.utils.logging import get_logger, mask_token

logger = get_logger(__name__)

UUID_PATTERN = r"[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}"


def find_token(text: str, pattern: re.Pattern) -> str | None:
    """Return the first capture group of pattern in text, if any."""
    if not text:
        return None
    match = pattern.search(text)
    return match.group(1) if match else None


class RequestObserver:
    """
    Collects token candidates from request URLs.

    Example:
        >>> observer = RequestObserver(re.compile(r"access_token=(" + UUID_PATTERN + ")"))
        >>> with observer.attached(page):
        ...     await page.goto(login_url)
        >>> observer.latest
    """

    def __init__(self, pattern: re.Pattern, buffer_size: int = 16) -> None:
        self.pattern = pattern
        self._candidates: deque[str] = deque(maxlen=buffer_size)
        self.requests_seen = 0

    @property
    def candidates(self) -> list[str]:
        """Observed tokens, oldest first."""
        return list(self._candidates)

    @property
    def latest(self) -> str | None:
        """Most recently observed token."""
        return self._candidates[-1] if self._candidates else None

    def observe(self, url: str) -> str | None:
        """Inspect one URL and buffer its token if present."""
        self.requests_seen += 1
        token = find_token(url, self.pattern)
        if token is None:
            return None
        if not self._candidates or self._candidates[-1] != token:
            self._candidates.append(token)
            logger.debug(
                f"Token {mask_token(token)} observed in request: {url[:120]}")
        return token

    def _on_request(self, request: Request) -> None:
        self.observe(request.url)

    @contextmanager
    def attached(self, page: Page) -> Iterator["RequestObserver"]:
        """Listen to the page's outgoing requests while the block runs."""
        page.on("request", self._on_request)
        try:
            yield self
        finally:
            page.remove_listener("request", self._on_request)
