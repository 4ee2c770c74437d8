"""
Session acquisition with TTL caching and single-flight refresh.

The SessionManager serves the cached session while it is valid and
otherwise runs the provider's login flow in a fresh browsing context,
capturing the bearer token and session cookies. Concurrent callers that
find no valid session share one in-flight login.
"""

import asyncio

from playwright.async_api import BrowserContext, Error as PlaywrightError, Page

from market_intel.browser.manager import BrowserEngine
from market_intel.browser.page_context import PageContext
from market_intel.config.settings import SessionSettings
from market_intel.core.exceptions import (
    AuthenticationFailure,
    MarketIntelError,
    TokenCaptureFailure,
)
from market_intel.core.models import ProviderCredentials, Session, SessionState
from market_intel.session.flows import LoginFlow
from market_intel.session.observer import RequestObserver
from market_intel.session.store import Clock, SessionStore
from market_intel.utils.logging import get_logger_with_context, mask_token
from market_intel.utils.metrics import increment_logins, increment_session_cache_hits


class SessionManager:
    """
    Owns the cached session for one provider.

    Example:
        >>> manager = SessionManager(engine, DsrLoginFlow(...), credentials, settings.session)
        >>> session = await manager.acquire_session()
        >>> manager.invalidate(session)  # after an authorization-denied response
        >>> fresh = await manager.acquire_session()
    """

    def __init__(
        self,
        engine: BrowserEngine,
        flow: LoginFlow,
        credentials: ProviderCredentials,
        settings: SessionSettings,
        store: SessionStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.engine = engine
        self.flow = flow
        self.credentials = credentials
        self.settings = settings
        if store is None:
            store = SessionStore(clock) if clock else SessionStore()
        self.store = store
        self.logger = get_logger_with_context(__name__, provider=flow.name)
        self._lock = asyncio.Lock()
        self._inflight: asyncio.Future | None = None
        self._waiters = 0

    @property
    def state(self) -> SessionState:
        return self.store.state

    async def acquire_session(self) -> Session:
        """
        Return a valid session, logging in only when necessary.

        Raises:
            AuthenticationFailure: Bad credentials or login UI unusable
            TokenCaptureFailure: Logged in but token or cookie missing
        """
        session = self.store.get_valid()
        if session is not None:
            increment_session_cache_hits()
            return session

        async with self._lock:
            session = self.store.get_valid()
            if session is not None:
                increment_session_cache_hits()
                return session
            if self._inflight is None or self._inflight.done():
                self._inflight = asyncio.ensure_future(self._login())
            task = self._inflight

        return await self._await_login(task)

    def invalidate(self, session: Session | None = None) -> bool:
        """Force the next acquire_session() to log in again."""
        invalidated = self.store.invalidate(session)
        if invalidated:
            self.logger.info("Session invalidated")
        return invalidated

    async def login_in_context(self, context: BrowserContext, page: Page) -> Session:
        """
        Log in inside a caller-owned context and cache the result.

        Used by extractors whose context was seeded from a stored session
        that the provider no longer honours. Runs as the single in-flight
        login: an earlier login is awaited first, and acquire_session()
        callers arriving meanwhile share this one.
        """
        while True:
            async with self._lock:
                current = self._inflight
                if current is None or current.done():
                    task = asyncio.ensure_future(self._authenticate(context, page))
                    self._inflight = task
                    break
            self.logger.debug("Waiting for the in-flight login before logging in")
            await asyncio.wait({current})

        return await self._await_login(task)

    async def _await_login(self, task: asyncio.Future) -> Session:
        self._waiters += 1
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # The last interested caller gave up; abort the login itself
            if self._waiters == 1 and not task.done():
                task.cancel()
            raise
        finally:
            self._waiters -= 1

    async def _login(self) -> Session:
        async with self.engine.context() as context:
            return await self._authenticate(context)

    async def _authenticate(
        self, context: BrowserContext, page: Page | None = None
    ) -> Session:
        self.store.mark(SessionState.AUTHENTICATING)
        increment_logins()
        self.logger.info("Starting login sequence")

        try:
            session = await self._run_flow(context, page)
        except MarketIntelError:
            self.store.mark(SessionState.UNAUTHENTICATED)
            raise
        except asyncio.CancelledError:
            self.store.mark(SessionState.UNAUTHENTICATED)
            raise
        except PlaywrightError as e:
            self.store.mark(SessionState.UNAUTHENTICATED)
            raise AuthenticationFailure(
                f"Login sequence failed: {e}",
                provider=self.flow.name,
            ) from e

        self.store.put(session)
        self.logger.info(
            f"Session active (token {mask_token(session.token)}, "
            f"{len(session.cookies)} cookies, ttl {session.ttl:.0f}s)"
        )
        return session

    async def _run_flow(
        self, context: BrowserContext, page: Page | None = None
    ) -> Session:
        if page is None:
            page = await context.new_page()
        ctx = PageContext(page)
        observer = RequestObserver(
            self.flow.token_pattern, buffer_size=self.settings.token_buffer_size)

        with observer.attached(page):
            await self.flow.login(ctx, self.credentials)
            token = await self._capture_token(ctx, observer)

        cookies = await context.cookies()
        jar = tuple((c["name"], c["value"]) for c in cookies)

        required = self.flow.required_cookie
        if required and not any(name == required for name, _ in jar):
            raise TokenCaptureFailure(
                f"Session cookie {required} missing after login",
                provider=self.flow.name,
            )

        storage_state = await context.storage_state()

        return Session(
            token=token or "",
            cookies=jar,
            acquired_at=self.store.clock(),
            ttl=self.settings.ttl_seconds,
            storage_state=storage_state,
        )

    async def _capture_token(
        self, ctx: PageContext, observer: RequestObserver
    ) -> str | None:
        """
        Find the bearer token: observed traffic, then a triggered in-app
        request, then page scripts, then the current URL.
        """
        if not self.flow.token_required:
            return None

        token = observer.latest
        source = "request"

        if token is None:
            try:
                await self.flow.trigger_token_request(ctx)
            except PlaywrightError as e:
                self.logger.info(f"Token trigger action failed: {e}")
            token = observer.latest
            source = "triggered request"

        if token is None:
            token = await self.flow.token_from_scripts(ctx)
            source = "page scripts"

        if token is None:
            token = self.flow.token_from_url(ctx.current_url)
            source = "page URL"

        if token is None:
            raise TokenCaptureFailure(
                "No bearer token found in requests, page scripts or URL",
                provider=self.flow.name,
                details={
                    "url": ctx.current_url,
                    "requests_seen": observer.requests_seen,
                },
            )

        self.store.mark(SessionState.TOKEN_CAPTURED)
        self.logger.info(f"Token {mask_token(token)} captured from {source}")
        return token
