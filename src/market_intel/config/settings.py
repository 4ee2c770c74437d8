"""
Pydantic settings models for the market data pipeline.

All configuration is defined here with defaults matching the provider
workflows (timeouts, session TTL, pacing).
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class BrowserSettings(BaseModel):
    """Playwright browser configuration."""

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode",
    )
    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use",
    )
    timeout_ms: int = Field(
        default=30000,
        ge=1000,
        le=120000,
        description="Default timeout for page operations in milliseconds",
    )
    navigation_timeout_ms: int = Field(
        default=30000,
        ge=5000,
        le=180000,
        description="Timeout for page navigation in milliseconds",
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User agent presented to providers",
    )
    viewport_width: int = Field(
        default=1280,
        ge=320,
        le=3840,
        description="Browser viewport width in pixels",
    )
    viewport_height: int = Field(
        default=800,
        ge=240,
        le=2160,
        description="Browser viewport height in pixels",
    )
    ignore_https_errors: bool = Field(
        default=False,
        description="Whether to ignore HTTPS certificate errors",
    )
    hide_automation: bool = Field(
        default=True,
        description="Disable the AutomationControlled flag and navigator.webdriver",
    )
    launch_args: list[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
            "--disable-gpu",
        ],
        description="Extra command-line arguments for the browser process",
    )
    blocked_resource_types: list[str] = Field(
        default_factory=lambda: ["image", "font", "media"],
        description="Request resource types aborted in every context",
    )


class SessionSettings(BaseModel):
    """Login and session cache configuration."""

    ttl_seconds: float = Field(
        default=25 * 60,
        gt=0,
        le=24 * 3600,
        description="How long a captured session is trusted",
    )
    login_form_timeout_ms: int = Field(
        default=15000,
        ge=1000,
        le=60000,
        description="Maximum wait for the login form to render",
    )
    post_login_timeout_ms: int = Field(
        default=15000,
        ge=1000,
        le=60000,
        description="Maximum wait for the URL change or form disappearance",
    )
    post_login_max_wait_ms: int = Field(
        default=5000,
        ge=0,
        le=60000,
        description="Fixed wait that also counts as a post-login signal",
    )
    require_login_confirmation: bool = Field(
        default=True,
        description=(
            "When only the fixed wait fired, fail the login if the form "
            "is still visible"
        ),
    )
    token_buffer_size: int = Field(
        default=16,
        ge=1,
        le=256,
        description="Maximum token candidates kept by the request observer",
    )
    token_trigger_wait_ms: int = Field(
        default=5000,
        ge=0,
        le=30000,
        description="Wait after triggering an in-app search for the token request",
    )


class ProviderSettings(BaseModel):
    """Endpoint and credential lookup for one provider."""

    base_url: str = Field(description="Provider origin, without trailing slash")
    identifier_env: str = Field(
        default="",
        description="Environment variable holding the login identifier",
    )
    password_env: str = Field(
        default="",
        description="Environment variable holding the password",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class ApiSettings(BaseModel):
    """Provider JSON endpoint configuration."""

    stats_path: str = Field(
        default="/DSRWeb/secure/getAllMktStats.json",
        description="Path of the market stats endpoint",
    )
    referer_path: str = Field(
        default="/products/suburb_analyser_show",
        description="Path sent as the fixed Referer",
    )
    property_type_code: str = Field(default="H", description="H = houses")
    request_type: str = Field(default="DSR")
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=120.0,
        description="HTTP timeout for the stats request",
    )


class ExtractionSettings(BaseModel):
    """Timeouts and pacing for navigation-driven extraction."""

    search_input_timeout_ms: int = Field(default=30000, ge=1000, le=120000)
    suggestion_timeout_ms: int = Field(default=5000, ge=500, le=30000)
    typing_settle_ms: int = Field(default=2000, ge=0, le=10000)
    detail_region_timeout_ms: int = Field(default=15000, ge=1000, le=60000)
    detail_settle_ms: int = Field(default=3000, ge=0, le=15000)
    post_login_settle_ms: int = Field(default=5000, ge=0, le=30000)
    lazy_scroll_wait_ms: int = Field(default=2000, ge=0, le=10000)
    tab_settle_ms: int = Field(default=1500, ge=0, le=10000)
    chart_wait_ms: int = Field(default=5000, ge=0, le=30000)
    pacing_delay_seconds: float = Field(
        default=1.5,
        ge=0.0,
        le=60.0,
        description="Delay inserted after each address of a batch",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum logging level",
    )
    format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        description="Log message format string",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Date format for log timestamps",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path to log file. None means console only.",
    )
    max_file_size_mb: int = Field(default=10, ge=1, le=100)
    backup_count: int = Field(default=3, ge=0, le=10)
    log_to_console: bool = Field(
        default=True,
        description="Whether to output logs to console",
    )

    @field_validator("file_path", mode="before")
    @classmethod
    def convert_file_path(cls, v: str | Path | None) -> Path | None:
        """Convert string paths to Path objects."""
        if v is None:
            return None
        return Path(v) if isinstance(v, str) else v


class Settings(BaseModel):
    """
    Root configuration model containing all subsystem settings.

    Settings are loaded from YAML with environment variable overrides.
    """

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    dsr: ProviderSettings = Field(
        default_factory=lambda: ProviderSettings(
            base_url="https://dsrdata.com.au",
            identifier_env="DSR_EMAIL",
            password_env="DSR_PASSWORD",
        ),
        description="DSR Data (market stats JSON endpoint)",
    )
    corelogic: ProviderSettings = Field(
        default_factory=lambda: ProviderSettings(
            base_url="https://rpp.corelogic.com.au",
            identifier_env="CORELOGIC_EMAIL",
            password_env="CORELOGIC_PASSWORD",
        ),
        description="CoreLogic RP Data (property pages)",
    )
    sqm: ProviderSettings = Field(
        default_factory=lambda: ProviderSettings(
            base_url="https://sqmresearch.com.au",
        ),
        description="SQM Research (public vacancy charts)",
    )
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {
        "extra": "forbid",
        "validate_default": True,
    }
