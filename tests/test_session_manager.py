"""
Tests for session module.

Tests the session store, TTL reuse, invalidation, single-flight login,
the token capture chain and post-login signal handling. No browser is
started: the engine and login flow are in-memory fakes.
"""

import asyncio
import re
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from market_intel.config import ProviderSettings, SessionSettings
from market_intel.core.exceptions import AuthenticationFailure, TokenCaptureFailure
from market_intel.core.models import ProviderCredentials, Session, SessionState
from market_intel.session import LoginFlow, SessionManager, SessionStore, UUID_PATTERN
from market_intel.utils.metrics import Metrics

TOKEN = "0f8fad5b-d9cb-469f-a165-70867728950e"
OTHER_TOKEN = "7c9e6679-7425-40de-944b-e07fc1f90ae7"


class FakeRequest:
    def __init__(self, url: str) -> None:
        self.url = url


class FakePage:
    """Page double that lets a flow emit outgoing requests."""

    def __init__(self) -> None:
        self.url = "https://provider.test/products/home"
        self._listeners = []

    def on(self, event, handler) -> None:
        self._listeners.append(handler)

    def remove_listener(self, event, handler) -> None:
        self._listeners.remove(handler)

    def emit_request(self, url: str) -> None:
        for handler in list(self._listeners):
            handler(FakeRequest(url))


class FakeEngine:
    """Engine double yielding mock contexts with a configurable cookie jar."""

    def __init__(self, cookies=None) -> None:
        self.cookies = cookies if cookies is not None else [
            {"name": "JSESSIONID", "value": "abc123"},
            {"name": "AWSALB", "value": "xyz"},
        ]
        self.contexts_opened = 0

    @asynccontextmanager
    async def context(self, storage_state=None):
        self.contexts_opened += 1
        context = MagicMock()
        context.new_page = AsyncMock(return_value=FakePage())
        context.cookies = AsyncMock(return_value=self.cookies)
        context.storage_state = AsyncMock(return_value={"cookies": self.cookies})
        yield context


class FakeFlow(LoginFlow):
    """Login flow double; emits a token-bearing request unless told otherwise."""

    name = "fake"
    token_pattern = re.compile(rf"access_token=({UUID_PATTERN})")
    token_required = True
    required_cookie = "JSESSIONID"

    def __init__(self, tokens=(TOKEN,), delay=0.0, error=None, emit=True) -> None:
        super().__init__(
            ProviderSettings(base_url="https://provider.test"),
            SessionSettings(),
        )
        self.tokens = list(tokens)
        self.delay = delay
        self.error = error
        self.emit = emit
        self.logins = 0
        self.active = 0
        self.peak_active = 0
        self.cancelled = False
        self.script_token = None

    def _next_token(self) -> str:
        return self.tokens[min(self.logins - 1, len(self.tokens) - 1)]

    async def login(self, ctx, credentials) -> None:
        self.logins += 1
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        finally:
            self.active -= 1
        if self.error is not None:
            raise self.error
        if self.emit:
            ctx.page.emit_request(
                f"https://provider.test/api/stats.json?access_token={self._next_token()}")

    async def token_from_scripts(self, ctx):
        return self.script_token


@pytest.fixture
def credentials() -> ProviderCredentials:
    return ProviderCredentials(identifier="agent@example.com", password="secret")


@pytest.fixture
def session_settings() -> SessionSettings:
    return SessionSettings(ttl_seconds=60)


def make_manager(flow, credentials, settings, clock, engine=None) -> SessionManager:
    return SessionManager(
        engine or FakeEngine(),
        flow,
        credentials,
        settings,
        store=SessionStore(clock),
    )


class TestSessionStore:
    """Tests for SessionStore."""

    def _session(self, acquired_at: float, ttl: float = 60.0) -> Session:
        return Session(token=TOKEN, cookies=(("JSESSIONID", "a"),),
                       acquired_at=acquired_at, ttl=ttl)

    def test_empty_store(self, clock):
        """An empty store should have no valid session."""
        store = SessionStore(clock)

        assert store.get_valid() is None
        assert store.state == SessionState.UNAUTHENTICATED

    def test_valid_within_ttl(self, clock):
        """A session should be served strictly before acquired_at + ttl."""
        store = SessionStore(clock)
        session = self._session(clock())
        store.put(session)

        clock.advance(59.9)
        assert store.get_valid() is session

        clock.advance(0.1)
        assert store.get_valid() is None
        assert store.state == SessionState.EXPIRED

    def test_state_expires_with_clock(self, clock):
        """State should read EXPIRED once the TTL passes, without a lookup."""
        store = SessionStore(clock)
        store.put(self._session(clock()))

        assert store.state == SessionState.ACTIVE
        clock.advance(61)
        assert store.state == SessionState.EXPIRED

    def test_invalidate(self, clock):
        """Invalidation should hide the session regardless of TTL."""
        store = SessionStore(clock)
        session = self._session(clock())
        store.put(session)

        assert store.invalidate(session)
        assert store.get_valid() is None
        assert store.state == SessionState.INVALIDATED

    def test_invalidate_stale_reference(self, clock):
        """Invalidating a replaced session should not touch the new one."""
        store = SessionStore(clock)
        old = self._session(clock())
        store.put(old)
        new = self._session(clock() + 1)
        store.put(new)

        assert not store.invalidate(old)
        assert store.get_valid() is new

    def test_clear(self, clock):
        store = SessionStore(clock)
        store.put(self._session(clock()))
        store.clear()

        assert store.session is None
        assert store.state == SessionState.UNAUTHENTICATED


class TestSessionReuse:
    """Tests for TTL caching in SessionManager."""

    @pytest.mark.asyncio
    async def test_reuse_within_ttl(self, credentials, session_settings, clock):
        """Two acquisitions within the TTL should perform one login."""
        flow = FakeFlow()
        manager = make_manager(flow, credentials, session_settings, clock)

        first = await manager.acquire_session()
        clock.advance(30)
        second = await manager.acquire_session()

        assert first is second
        assert flow.logins == 1
        assert first.token == TOKEN
        assert Metrics.get().get_counter("logins") == 1
        assert Metrics.get().get_counter("session_cache_hits") == 1

    @pytest.mark.asyncio
    async def test_session_contents(self, credentials, session_settings, clock):
        """A captured session should carry cookies, timestamps and TTL."""
        manager = make_manager(FakeFlow(), credentials, session_settings, clock)

        session = await manager.acquire_session()

        assert session.cookie("JSESSIONID") == "abc123"
        assert session.cookie_header == "JSESSIONID=abc123; AWSALB=xyz"
        assert session.acquired_at == clock()
        assert session.ttl == 60
        assert manager.state == SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_relogin_after_expiry(self, credentials, session_settings, clock):
        """An expired session should be replaced by a new login."""
        flow = FakeFlow(tokens=(TOKEN, OTHER_TOKEN))
        manager = make_manager(flow, credentials, session_settings, clock)

        first = await manager.acquire_session()
        clock.advance(60)
        assert manager.state == SessionState.EXPIRED
        second = await manager.acquire_session()

        assert flow.logins == 2
        assert second is not first
        assert second.token == OTHER_TOKEN

    @pytest.mark.asyncio
    async def test_relogin_after_invalidation(self, credentials, session_settings, clock):
        """Invalidation should force a login despite remaining TTL."""
        flow = FakeFlow(tokens=(TOKEN, OTHER_TOKEN))
        manager = make_manager(flow, credentials, session_settings, clock)

        first = await manager.acquire_session()
        assert manager.invalidate(first)
        assert manager.state == SessionState.INVALIDATED

        second = await manager.acquire_session()

        assert flow.logins == 2
        assert second.token == OTHER_TOKEN
        assert not manager.invalidate(first)


class TestSingleFlight:
    """Tests for login coalescing under concurrency."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_login(self, credentials, session_settings, clock):
        """Concurrent callers with no valid session should share one login."""
        flow = FakeFlow(delay=0.05)
        manager = make_manager(flow, credentials, session_settings, clock)

        sessions = await asyncio.gather(*(manager.acquire_session() for _ in range(5)))

        assert flow.logins == 1
        assert all(s is sessions[0] for s in sessions)

    @pytest.mark.asyncio
    async def test_failed_login_shared_and_not_cached(self, credentials, session_settings, clock):
        """All waiters should see the failure; the next call logs in again."""
        flow = FakeFlow(delay=0.02, error=AuthenticationFailure("bad password"))
        manager = make_manager(flow, credentials, session_settings, clock)

        results = await asyncio.gather(
            manager.acquire_session(),
            manager.acquire_session(),
            return_exceptions=True,
        )

        assert flow.logins == 1
        assert all(isinstance(r, AuthenticationFailure) for r in results)
        assert manager.state == SessionState.UNAUTHENTICATED

        flow.error = None
        session = await manager.acquire_session()
        assert flow.logins == 2
        assert session.token == TOKEN

    @pytest.mark.asyncio
    async def test_cancelling_last_waiter_aborts_login(self, credentials, session_settings, clock):
        """A login nobody waits for any more should be cancelled."""
        flow = FakeFlow(delay=10)
        manager = make_manager(flow, credentials, session_settings, clock)

        task = asyncio.ensure_future(manager.acquire_session())
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0)

        assert flow.cancelled
        assert manager.state == SessionState.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_cancelling_one_of_two_waiters_keeps_login(
        self, credentials, session_settings, clock
    ):
        """The login should continue while another caller still waits."""
        flow = FakeFlow(delay=0.05)
        manager = make_manager(flow, credentials, session_settings, clock)

        first = asyncio.ensure_future(manager.acquire_session())
        second = asyncio.ensure_future(manager.acquire_session())
        await asyncio.sleep(0.01)
        first.cancel()

        session = await second

        assert session.token == TOKEN
        assert not flow.cancelled
        assert flow.logins == 1

    @pytest.mark.asyncio
    async def test_in_context_login_waits_for_inflight(
        self, credentials, session_settings, clock
    ):
        """An in-context login should never overlap a login already running."""
        flow = FakeFlow(delay=0.05)
        engine = FakeEngine()
        manager = make_manager(flow, credentials, session_settings, clock, engine=engine)

        async with engine.context() as context:
            page = await context.new_page()
            results = await asyncio.gather(
                manager.acquire_session(),
                manager.login_in_context(context, page),
            )

        assert flow.peak_active == 1
        assert flow.logins == 2
        assert manager.store.get_valid() is results[1]

    @pytest.mark.asyncio
    async def test_callers_share_in_context_login(self, credentials, session_settings, clock):
        """acquire_session() during an in-context login should reuse its result."""
        flow = FakeFlow(delay=0.05)
        engine = FakeEngine()
        manager = make_manager(flow, credentials, session_settings, clock, engine=engine)

        async with engine.context() as context:
            page = await context.new_page()
            in_context = asyncio.ensure_future(manager.login_in_context(context, page))
            await asyncio.sleep(0.01)
            shared = await manager.acquire_session()

        assert shared is await in_context
        assert flow.logins == 1
        assert engine.contexts_opened == 1


class TestTokenCapture:
    """Tests for the token capture chain."""

    @pytest.mark.asyncio
    async def test_token_from_triggered_request(self, credentials, session_settings, clock):
        """The in-app trigger should be used when login traffic had no token."""
        flow = FakeFlow(emit=False)

        async def trigger(ctx):
            ctx.page.emit_request(f"https://provider.test/api?access_token={TOKEN}")

        flow.trigger_token_request = trigger
        manager = make_manager(flow, credentials, session_settings, clock)

        session = await manager.acquire_session()

        assert session.token == TOKEN

    @pytest.mark.asyncio
    async def test_trigger_failure_falls_through(self, credentials, session_settings, clock):
        """A failing trigger action should not stop the script fallback."""
        flow = FakeFlow(emit=False)
        flow.trigger_token_request = AsyncMock(side_effect=PlaywrightError("detached"))
        flow.script_token = OTHER_TOKEN
        manager = make_manager(flow, credentials, session_settings, clock)

        session = await manager.acquire_session()

        assert session.token == OTHER_TOKEN

    @pytest.mark.asyncio
    async def test_token_from_url(self, credentials, session_settings, clock):
        """The page URL is the last token source."""
        flow = FakeFlow(emit=False)
        original_login = flow.login

        async def login_and_redirect(ctx, creds):
            await original_login(ctx, creds)
            ctx.page.url = f"https://provider.test/home?access_token={TOKEN}"

        flow.login = login_and_redirect
        manager = make_manager(flow, credentials, session_settings, clock)

        session = await manager.acquire_session()

        assert session.token == TOKEN

    @pytest.mark.asyncio
    async def test_no_token_anywhere(self, credentials, session_settings, clock):
        """Login without any token should raise TokenCaptureFailure."""
        manager = make_manager(FakeFlow(emit=False), credentials, session_settings, clock)

        with pytest.raises(TokenCaptureFailure):
            await manager.acquire_session()

        assert manager.state == SessionState.UNAUTHENTICATED
        assert manager.store.session is None

    @pytest.mark.asyncio
    async def test_missing_session_cookie(self, credentials, session_settings, clock):
        """A token without the session cookie is not a usable session."""
        engine = FakeEngine(cookies=[{"name": "other", "value": "1"}])
        manager = make_manager(FakeFlow(), credentials, session_settings, clock, engine)

        with pytest.raises(TokenCaptureFailure, match="JSESSIONID"):
            await manager.acquire_session()

    @pytest.mark.asyncio
    async def test_cookie_only_provider(self, credentials, session_settings, clock):
        """Providers without a token should get a cookie-only session."""
        flow = FakeFlow(emit=False)
        flow.token_required = False
        manager = make_manager(flow, credentials, session_settings, clock)

        session = await manager.acquire_session()

        assert session.token == ""
        assert session.storage_state is not None

    @pytest.mark.asyncio
    async def test_browser_error_becomes_auth_failure(self, credentials, session_settings, clock):
        """Raw Playwright errors during login should surface as AuthenticationFailure."""
        flow = FakeFlow(error=PlaywrightError("Target closed"))
        manager = make_manager(flow, credentials, session_settings, clock)

        with pytest.raises(AuthenticationFailure, match="Target closed"):
            await manager.acquire_session()


class TestPostLoginSignals:
    """Tests for LoginFlow.await_post_login."""

    def _ctx(self, url_changed: bool, form_hidden: bool, form_visible: bool):
        ctx = MagicMock()
        ctx.current_url = "https://provider.test/login"
        ctx.wait_for_url = AsyncMock(return_value=url_changed)
        ctx.wait_for_selector = AsyncMock(return_value=form_hidden)
        ctx.page.is_visible = AsyncMock(return_value=form_visible)
        return ctx

    def _flow(self, **session) -> LoginFlow:
        return LoginFlow(
            ProviderSettings(base_url="https://provider.test"),
            SessionSettings(**session),
        )

    @pytest.mark.asyncio
    async def test_url_change_wins(self):
        """A URL change should be accepted as a success signal."""
        flow = self._flow(post_login_max_wait_ms=1000)
        ctx = self._ctx(url_changed=True, form_hidden=False, form_visible=True)

        signal = await flow.await_post_login(ctx, "#email", "**/products/**")

        assert signal == "url_changed"

    @pytest.mark.asyncio
    async def test_timeout_with_visible_form_fails(self):
        """Only the max wait firing with the form still showing is a failed login."""
        flow = self._flow(post_login_max_wait_ms=0)
        ctx = self._ctx(url_changed=False, form_hidden=False, form_visible=True)

        with pytest.raises(AuthenticationFailure, match="still visible"):
            await flow.await_post_login(ctx, "#email", "**/products/**")

    @pytest.mark.asyncio
    async def test_timeout_with_form_gone_passes(self):
        """Max wait with the form gone should be accepted."""
        flow = self._flow(post_login_max_wait_ms=0)
        ctx = self._ctx(url_changed=False, form_hidden=False, form_visible=False)

        assert await flow.await_post_login(ctx, "#email", "**/products/**") == "max_wait"

    @pytest.mark.asyncio
    async def test_optimistic_mode(self):
        """Without required confirmation the max wait alone is enough."""
        flow = self._flow(post_login_max_wait_ms=0, require_login_confirmation=False)
        ctx = self._ctx(url_changed=False, form_hidden=False, form_visible=True)

        assert await flow.await_post_login(ctx, "#email", "**/products/**") == "max_wait"
