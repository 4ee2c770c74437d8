"""
Provider login workflows.

Each LoginFlow knows how to sign in through one provider's UI and,
when the provider uses a bearer token, how to provoke and find it. The
SessionManager drives a flow inside a fresh browsing context.
"""

import asyncio
import re

from market_intel.browser.actions import (
    dismiss_popups,
    first_completed,
    safe_click,
    select_first_suggestion,
)
from market_intel.browser.page_context import PageContext
from market_intel.config.settings import ProviderSettings, SessionSettings
from market_intel.core.exceptions import AuthenticationFailure, NavigationError
from market_intel.core.models import ProviderCredentials
from market_intel.session.observer import UUID_PATTERN, find_token
from market_intel.utils.logging import get_logger

logger = get_logger(__name__)

_NO_TOKEN = re.compile(r"(?!x)x")


async def _elapsed(wait_ms: int) -> bool:
    await asyncio.sleep(wait_ms / 1000)
    return True


class LoginFlow:
    """
    Base class for a provider login workflow.

    Attributes:
        name: Provider name used in logs and errors
        token_pattern: Regex whose first group is the bearer token
        token_required: Whether a session without a token is unusable
        required_cookie: Cookie that must be in the jar after login
    """

    name: str = "provider"
    token_pattern: re.Pattern = _NO_TOKEN
    token_required: bool = False
    required_cookie: str | None = None

    def __init__(self, provider: ProviderSettings, settings: SessionSettings) -> None:
        self.provider = provider
        self.settings = settings

    async def login(self, ctx: PageContext, credentials: ProviderCredentials) -> None:
        """Sign in; raise AuthenticationFailure if the UI cannot be driven."""
        raise NotImplementedError

    async def trigger_token_request(self, ctx: PageContext) -> None:
        """Perform an in-app action that issues a token-bearing request."""

    async def token_from_scripts(self, ctx: PageContext) -> str | None:
        """Look for a token assignment in the rendered page's scripts."""
        return None

    def token_from_url(self, url: str) -> str | None:
        return find_token(url, self.token_pattern)

    async def await_post_login(
        self,
        ctx: PageContext,
        form_selector: str,
        url_pattern: str,
    ) -> str:
        """
        Wait for the first post-login signal.

        URL change, login form disappearance and the fixed maximum wait
        all count. When only the maximum wait fired and confirmation is
        required, a still-visible login form fails the login.

        Returns:
            Name of the signal that fired
        """
        timeout_ms = self.settings.post_login_timeout_ms
        signal = await first_completed(
            url_changed=ctx.wait_for_url(url_pattern, timeout_ms),
            form_hidden=ctx.wait_for_selector(
                form_selector, timeout_ms=timeout_ms, state="hidden"),
            max_wait=_elapsed(self.settings.post_login_max_wait_ms),
        )

        logger.info(
            f"{self.name} post-login signal '{signal}', URL: {ctx.current_url}")

        if signal == "max_wait" and self.settings.require_login_confirmation:
            if await ctx.page.is_visible(form_selector):
                raise AuthenticationFailure(
                    "Login form still visible after submitting credentials",
                    provider=self.name,
                    details={"url": ctx.current_url},
                )

        return signal


class DsrLoginFlow(LoginFlow):
    """DSR Data: AJAX login form, token carried in API request URLs."""

    name = "dsr"
    token_pattern = re.compile(rf"access_token=({UUID_PATTERN})")
    token_required = True
    required_cookie = "JSESSIONID"

    EMAIL_INPUT = "input#emailId"
    PASSWORD_INPUT = "input#password"
    LOGIN_BUTTON = 'input[type="submit"].dsrButton'
    SEARCH_INPUT = "#autocomplete-ajax"
    SUGGESTION = ".ui-menu-item:first-child, .ui-autocomplete li:first-child"
    TRIGGER_QUERY = "Sydney"

    _SCRIPT_SCAN = r"""
    () => {
        const uuid = /^[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}$/;
        if (typeof window.accessToken === 'string' && uuid.test(window.accessToken)) return window.accessToken;
        if (typeof window.access_token === 'string' && uuid.test(window.access_token)) return window.access_token;
        const assignment = /access_token\s*[=:]\s*['"]([a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})['"]/;
        for (const script of document.querySelectorAll('script')) {
            const match = (script.textContent || '').match(assignment);
            if (match) return match[1];
        }
        return null;
    }
    """

    @property
    def login_url(self) -> str:
        return f"{self.provider.base_url}/login"

    @property
    def analyser_url(self) -> str:
        return f"{self.provider.base_url}/products/suburb_analyser_show"

    async def login(self, ctx: PageContext, credentials: ProviderCredentials) -> None:
        try:
            await ctx.navigate(self.login_url)
        except NavigationError as e:
            raise AuthenticationFailure(
                f"Login page unreachable: {e.message}",
                provider=self.name,
                details={"url": self.login_url},
            ) from e

        if not await ctx.wait_for_selector(
            self.EMAIL_INPUT, timeout_ms=self.settings.login_form_timeout_ms
        ):
            raise AuthenticationFailure(
                "Login form did not render",
                provider=self.name,
                details={"selector": self.EMAIL_INPUT},
            )

        await ctx.page.fill(self.EMAIL_INPUT, credentials.identifier)
        await ctx.page.fill(self.PASSWORD_INPUT, credentials.password)
        await ctx.page.click(self.LOGIN_BUTTON)

        await self.await_post_login(ctx, self.EMAIL_INPUT, "**/products/**")

        # The analyser page issues the token-bearing stats calls
        try:
            await ctx.navigate(self.analyser_url)
        except NavigationError as e:
            raise AuthenticationFailure(
                f"Post-login landing page unreachable: {e.message}",
                provider=self.name,
            ) from e
        await ctx.settle(3000)

    async def trigger_token_request(self, ctx: PageContext) -> None:
        page = ctx.page
        if not await ctx.wait_for_selector(self.SEARCH_INPUT, timeout_ms=5000):
            logger.info("Token trigger skipped: suburb search input not found")
            return

        await page.fill(self.SEARCH_INPUT, self.TRIGGER_QUERY)
        await ctx.settle(2000)
        method = await select_first_suggestion(
            page, self.SUGGESTION, timeout_ms=3000)
        logger.debug(f"Token trigger suggestion selected by {method}")
        await ctx.settle(self.settings.token_trigger_wait_ms)

    async def token_from_scripts(self, ctx: PageContext) -> str | None:
        return await ctx.page.evaluate(self._SCRIPT_SCAN)


class CoreLogicLoginFlow(LoginFlow):
    """CoreLogic RP Data: OAuth redirect login, cookie/storage session."""

    name = "corelogic"

    USERNAME_INPUT = (
        'input[type="email"], input[type="text"][name*="user"], '
        'input[name="pf.username"], input#username, input[name="username"]'
    )
    PASSWORD_INPUT = 'input[type="password"]'
    SIGN_ON_BUTTON = 'a#signOnButton, a[data-testid="sign-in-button"]'

    async def login(self, ctx: PageContext, credentials: ProviderCredentials) -> None:
        app_url = f"{self.provider.base_url}/"
        try:
            await ctx.navigate(app_url)
        except NavigationError as e:
            raise AuthenticationFailure(
                f"Application unreachable: {e.message}",
                provider=self.name,
                details={"url": app_url},
            ) from e

        await ctx.wait_for_url("**/auth.corelogic.asia/**", 15000)
        await ctx.settle(2000)
        logger.info(f"CoreLogic login URL: {ctx.current_url}")

        if not await ctx.wait_for_selector(
            self.USERNAME_INPUT, timeout_ms=self.settings.login_form_timeout_ms
        ):
            raise AuthenticationFailure(
                "OAuth login form did not render",
                provider=self.name,
                details={"url": ctx.current_url},
            )
        await ctx.page.fill(self.USERNAME_INPUT, credentials.identifier)

        if not await ctx.wait_for_selector(self.PASSWORD_INPUT, timeout_ms=5000):
            raise AuthenticationFailure(
                "Password field did not render", provider=self.name)
        await ctx.page.fill(self.PASSWORD_INPUT, credentials.password)

        if not await safe_click(ctx.page, self.SIGN_ON_BUTTON):
            raise AuthenticationFailure(
                "Sign-on button not found", provider=self.name)

        await self.await_post_login(
            ctx, self.USERNAME_INPUT, f"{self.provider.base_url}/**")
        await ctx.settle(self.settings.post_login_max_wait_ms)
        dismissed = await dismiss_popups(ctx.page)
        if dismissed:
            logger.debug(f"Dismissed {dismissed} post-login popups")
