"""
Shared pytest fixtures for Market Intelligence tests.

Provides reusable fixtures for:
- Configuration and settings
- A controllable clock for session expiry
- Sample provider payloads and rendered page HTML
- Temporary resources
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from market_intel.config import Settings, reset_settings
from market_intel.utils.logging import reset_logging
from market_intel.utils.metrics import Metrics


@pytest.fixture(autouse=True)
def reset_global_state():
    """
    Reset global metrics, logging and settings before and after each test.

    This ensures tests are isolated and don't share global state.
    """
    Metrics.reset()
    reset_settings()
    yield
    Metrics.reset()
    reset_settings()
    reset_logging()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that's cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings() -> Settings:
    """
    Provide settings tuned for fast tests.

    All settle waits and the batch pacing delay are zero.
    """
    return Settings(
        session={"ttl_seconds": 60, "post_login_max_wait_ms": 0},
        extraction={
            "typing_settle_ms": 0,
            "detail_settle_ms": 0,
            "post_login_settle_ms": 0,
            "lazy_scroll_wait_ms": 0,
            "tab_settle_ms": 0,
            "chart_wait_ms": 0,
            "pacing_delay_seconds": 0,
        },
    )


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_stats() -> dict:
    """Raw all_mkt_stats object as returned by the stats endpoint."""
    return {
        "SOM_PERC": "0.95",
        "DOM": 36,
        "DISCOUNT": "-.56",
        "VACANCY": "1.32",
        "YIELD": 2.41,
        "DSR": 48,
        "MEDIAN_12": 1926610,
        "TV": 2125300,
        "RENTERS": 20,
        "ACR": 95.1,
        "OSI": 45,
        "SR": 68,
    }


@pytest.fixture
def sample_payload(sample_stats: dict) -> dict:
    """Full stats endpoint response."""
    return {
        "response": {
            "month": 11,
            "year": 2024,
            "all_mkt_stats": sample_stats,
        }
    }


@pytest.fixture
def property_html() -> str:
    """Rendered base state of a CoreLogic property detail page."""
    return """
    <html>
    <body>
        <div id="property-detail">
            <div class="property-attributes">
                <div class="property-attribute" type="bed">
                    <div class="property-attribute-val"><span class="icon"></span><span>4</span></div>
                </div>
                <div class="property-attribute" type="bath">
                    <div class="property-attribute-val"><span class="icon"></span><span>2</span></div>
                </div>
                <div class="property-attribute" type="car">
                    <div class="property-attribute-val"><span class="icon"></span><span>2</span></div>
                </div>
                <div class="property-attribute" type="land-area">
                    <div class="property-attribute-val"><span class="icon"></span><span>556m²</span></div>
                </div>
                <div class="property-attribute" type="floor-area">
                    <div class="property-attribute-val"><span class="icon"></span><span>210m²</span></div>
                </div>
            </div>
            <div class="attr-container main">
                <div><span>Property Type</span></div>
                <div><span>House</span></div>
                <div><span>Year Built</span></div>
                <div><span>1998</span></div>
            </div>
            <p data-testid="listing-desc">Renovated family home close to parks.</p>
            <div data-testid="last-sale-transaction-information">
                <span>Last Sale</span>
                <span>$1,250,000</span>
                <span>Sold on 12 March 2021</span>
            </div>
            <div class="nearby-school-list-container">
                <ul>
                    <li data-testid="list-template">
                        <span class="school-name">Paddington Public School</span>
                        <span class="school-distance">0.4km</span>
                        <div id="schoolType"><span class="MuiChip-label">Primary</span></div>
                        <div id="schoolSector"><span class="MuiChip-label">Government</span></div>
                    </li>
                    <li data-testid="list-template">
                        <span class="school-name">Sydney Boys High School</span>
                        <span class="school-distance">1.8km</span>
                        <div id="schoolType"><span class="MuiChip-label">Secondary</span></div>
                        <div id="schoolSector"><span class="MuiChip-label">Government</span></div>
                    </li>
                </ul>
            </div>
        </div>
    </body>
    </html>
    """


@pytest.fixture
def valuation_html() -> str:
    """Detail page after activating the valuation tab."""
    return """
    <html><body>
        <div class="valuation-range-footer">
            <div class="text-left"><span class="author">$1.7M</span></div>
            <div class="text-center"><span class="author">$1.93M</span></div>
            <div class="text-right"><span class="author">$2.1M</span></div>
        </div>
    </body></html>
    """


@pytest.fixture
def rental_html() -> str:
    """Detail page after activating the rental tab."""
    return """
    <html><body>
        <div class="property-panel-body">
            <p>Rental estimate based on recent leases.</p>
            <p>Gross rental yield 2.6 %</p>
        </div>
        <div class="valuation-range-footer">
            <div class="text-left"><span class="author">$950/W</span></div>
            <div class="text-center"><span class="author">$1,050/W</span></div>
            <div class="text-right"><span class="author">$1,150/W</span></div>
        </div>
    </body></html>
    """
