"""
Domain models for sessions and extracted market data.

Defines dataclasses for provider sessions, suburb market statistics,
property records and comparables, with dictionary serialization for
the CLI and any routing layer built on top.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class Rating(str, Enum):
    """Qualitative rating derived from a thresholded market field."""

    LOW = "Low"
    AVERAGE = "Average"
    HIGH = "High"
    FAST = "Fast"
    SLOW = "Slow"
    STRONG = "Strong"


class SessionState(str, Enum):
    """Lifecycle of a provider session."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    TOKEN_CAPTURED = "token_captured"
    ACTIVE = "active"
    EXPIRED = "expired"
    INVALIDATED = "invalidated"


@dataclass(frozen=True)
class ProviderCredentials:
    """Login identifier and password for one provider."""

    identifier: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class LocationParams:
    """Suburb lookup key for market stats."""

    suburb: str
    state: str
    postcode: str


@dataclass(frozen=True)
class Session:
    """
    Authenticated provider session.

    Immutable: a refreshed session replaces the old object rather than
    mutating it. Invalidation is tracked by the session store.

    Attributes:
        token: Bearer token ("" for providers that only need cookies)
        cookies: Ordered (name, value) pairs from the context cookie jar
        acquired_at: Clock reading when the session was captured (seconds)
        ttl: Seconds the session is trusted without re-verification
        storage_state: Playwright storage state for seeding new contexts
    """

    token: str
    cookies: tuple[tuple[str, str], ...]
    acquired_at: float
    ttl: float
    storage_state: dict | None = field(default=None, compare=False, hash=False)

    @property
    def expires_at(self) -> float:
        return self.acquired_at + self.ttl

    def is_expired(self, now: float) -> bool:
        """A session is usable strictly before acquired_at + ttl."""
        return now >= self.expires_at

    @property
    def cookie_header(self) -> str:
        """Render the cookie jar as a Cookie request header."""
        return "; ".join(f"{name}={value}" for name, value in self.cookies)

    def cookie(self, name: str) -> str | None:
        for cookie_name, value in self.cookies:
            if cookie_name == name:
                return value
        return None


@dataclass(frozen=True)
class MarketStats:
    """
    Normalized suburb market statistics with derived ratings.

    Values are display-ready strings; ratings are Rating members.
    """

    stock_on_market: str = ""
    stock_rating: Rating = Rating.LOW
    days_on_market: str = ""
    dom_rating: Rating = Rating.FAST
    vendor_discounting: str = ""
    vacancy_rate: str = ""
    vacancy_rating: Rating = Rating.LOW
    gross_rental_yield: str = ""
    yield_rating: Rating = Rating.LOW
    dsr_score: str = ""
    median_12_months: str = ""
    typical_value: str = ""
    renters_percentage: str = ""
    auction_clearance_rate: str = ""
    online_search_interest: str = ""
    statistical_reliability: str = ""
    data_month: str = ""
    data_year: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            key: value.value if isinstance(value, Rating) else value
            for key, value in asdict(self).items()
        }

    def to_context(self) -> dict[str, str]:
        """Stats-shaped context handed to narrative text generators."""
        context = self.to_dict()
        context["median_house_price"] = context.pop("median_12_months")
        return context


@dataclass
class School:
    """Nearby school listed on a property page."""

    name: str
    distance: str = ""
    type: str = ""
    sector: str = ""


@dataclass
class PropertyRecord:
    """Structured attributes of a single address."""

    bedrooms: str = ""
    bathrooms: str = ""
    car_spaces: str = ""
    land_size: str = ""
    floor_area: str = ""
    year_built: str = ""
    property_type: str = ""
    listing_description: str = ""
    sold_price: str = ""
    sold_date: str = ""
    schools: list[School] = field(default_factory=list)
    valuation_estimate: str = ""
    rental_low: str = ""
    rental_mid: str = ""
    rental_high: str = ""
    rental_yield: str = ""
    market_status: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ComparableRecord:
    """
    Reduced property record for one address of a batch.

    A failed item carries only the address and the error message.
    """

    address: str
    success: bool
    bedrooms: str = ""
    bathrooms: str = ""
    car_spaces: str = ""
    land_size: str = ""
    sold_price: str = ""
    sold_date: str = ""
    error: str = ""

    @classmethod
    def failed(cls, address: str, error: str) -> "ComparableRecord":
        return cls(address=address, success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"address": self.address, "success": False, "error": self.error}
        data = asdict(self)
        data.pop("error")
        return data


@dataclass(frozen=True)
class VacancyReading:
    """Latest vacancy rate read from the SQM Research chart."""

    vacancy_rate: str
    postcode: str
    vacancies: int | None = None
    period: str = ""
    source: str = "SQM Research"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SuburbReport:
    """
    Market stats combined with the SQM vacancy reading.

    Per-source failures are kept in errors instead of aborting the report.
    """

    suburb: str
    stats: MarketStats | None = None
    vacancy: VacancyReading | None = None
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.stats is not None

    def to_dict(self) -> dict[str, Any]:
        stats = self.stats.to_dict() if self.stats else {}
        data = {
            "stock_on_market": stats.get("stock_on_market", ""),
            "stock_rating": stats.get("stock_rating", ""),
            "days_on_market": stats.get("days_on_market", ""),
            "dom_rating": stats.get("dom_rating", ""),
            "vendor_discounting": stats.get("vendor_discounting", ""),
            "gross_rental_yield": stats.get("gross_rental_yield", ""),
            "yield_rating": stats.get("yield_rating", ""),
            "median_house_price": stats.get("median_12_months", ""),
            "typical_value": stats.get("typical_value", ""),
            "renters_percentage": stats.get("renters_percentage", ""),
            "dsr_score": stats.get("dsr_score", ""),
            "auction_clearance_rate": stats.get("auction_clearance_rate", ""),
            "online_search_interest": stats.get("online_search_interest", ""),
            "vacancy_rate": (
                self.vacancy.vacancy_rate if self.vacancy
                else stats.get("vacancy_rate", "")
            ),
            "vacancy_source": "SQM Research" if self.vacancy else "DSR Data",
            "vacancy_period": self.vacancy.period if self.vacancy else "",
            "vacancy_rating": stats.get("vacancy_rating", ""),
            "data_month": stats.get("data_month", ""),
            "data_year": stats.get("data_year", ""),
        }
        return {"suburb": self.suburb, "data": data, "errors": list(self.errors)}
