"""
Tests for the tabbed detail page state machine.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from market_intel.extraction.detail_page import DetailPage, DetailState, classify_tab
from market_intel.extraction.fields import extract_rental, extract_valuation


def make_tab(label: str, on_click=None) -> MagicMock:
    tab = MagicMock()
    tab.inner_text = AsyncMock(return_value=label)
    tab.click = AsyncMock(side_effect=on_click)
    return tab


class FakeDetail:
    """Page double whose content changes with the clicked tab."""

    def __init__(self, base: str, tab_pages: dict) -> None:
        self.html = base
        self.tabs = [
            make_tab(label, on_click=self._switcher(html))
            for label, html in tab_pages.items()
        ]
        self.ctx = MagicMock()
        self.ctx.snapshot = AsyncMock(side_effect=lambda: self.html)
        self.ctx.settle = AsyncMock()
        self.ctx.page.query_selector_all = AsyncMock(return_value=self.tabs)

    def _switcher(self, html: str):
        def switch(*args, **kwargs):
            self.html = html
        return switch


class TestClassifyTab:
    """Tests for tab label matching."""

    @pytest.mark.parametrize("label,expected", [
        ("Valuation", DetailState.VALUATION),
        ("AVM Valuation Estimate", DetailState.VALUATION),
        ("Rental", DetailState.RENTAL),
        ("rental estimate", DetailState.RENTAL),
        ("Timeline", None),
    ])
    def test_labels(self, label, expected):
        assert classify_tab(label) == expected


class TestDetailPage:
    """Tests for DetailPage."""

    @pytest.mark.asyncio
    async def test_starts_in_base(self):
        fake = FakeDetail("<p>base</p>", {})
        detail = DetailPage(fake.ctx, settle_ms=0)

        snapshot = await detail.capture_base()

        assert detail.state is DetailState.BASE
        assert "base" in snapshot.html
        assert detail.snapshots[DetailState.BASE] is snapshot

    @pytest.mark.asyncio
    async def test_available_tabs_filters_and_dedupes(self):
        """Only the first tab of each known kind should be kept."""
        fake = FakeDetail("", {
            "Overview": "",
            "Valuation": "",
            "Rental": "",
            "Valuation History": "",
        })
        detail = DetailPage(fake.ctx)

        tabs = await detail.available_tabs()

        assert list(tabs) == [DetailState.VALUATION, DetailState.RENTAL]
        assert tabs[DetailState.VALUATION] is fake.tabs[1]

    @pytest.mark.asyncio
    async def test_activate_snapshots_tab_content(self, valuation_html, rental_html):
        """Activating a tab should switch state and capture its content."""
        fake = FakeDetail("<p>base</p>", {"Valuation": valuation_html, "Rental": rental_html})
        detail = DetailPage(fake.ctx, settle_ms=1500)
        tabs = await detail.available_tabs()

        valuation = await detail.activate(DetailState.VALUATION, tabs[DetailState.VALUATION])
        assert detail.state is DetailState.VALUATION
        assert extract_valuation(valuation) == "$1.93M"

        rental = await detail.activate(DetailState.RENTAL, tabs[DetailState.RENTAL])
        assert detail.state is DetailState.RENTAL
        assert extract_rental(rental).mid == "$1,050/W"

        fake.ctx.settle.assert_awaited_with(1500)
        assert set(detail.snapshots) == {DetailState.VALUATION, DetailState.RENTAL}

    @pytest.mark.asyncio
    async def test_base_not_activatable(self):
        """The base state has no tab."""
        fake = FakeDetail("", {})
        detail = DetailPage(fake.ctx)

        with pytest.raises(ValueError):
            await detail.activate(DetailState.BASE, make_tab("Overview"))

    @pytest.mark.asyncio
    async def test_unreadable_label_skipped(self):
        """A tab whose label cannot be read should be ignored."""
        fake = FakeDetail("", {"Rental": ""})
        broken = make_tab("")
        broken.inner_text = AsyncMock(side_effect=RuntimeError("detached"))
        fake.tabs.insert(0, broken)
        detail = DetailPage(fake.ctx)

        tabs = await detail.available_tabs()

        assert list(tabs) == [DetailState.RENTAL]
