"""
Capability-based field extraction from rendered property pages.

Each field is read by an ordered chain of extractors working on an HTML
snapshot: a structured selector first, then a free-text pattern, and
finally the empty default. A missing field never fails the record.
"""

import re
from dataclasses import dataclass, field
from typing import Callable

from bs4 import BeautifulSoup, Tag

from market_intel.core.models import ComparableRecord, PropertyRecord, School
from market_intel.utils.logging import get_logger

logger = get_logger(__name__)

PRIMARY_REGION = ".property-attributes, #property-detail"
ATTRIBUTES_REGION = ".property-attributes"
MAIN_ATTRIBUTES_REGION = ".attr-container.main"
LISTING_DESCRIPTION = 'p[data-testid="listing-desc"]'
LAST_SALE_REGION = '[data-testid="last-sale-transaction-information"]'
SCHOOL_ITEMS = '.nearby-school-list-container li[data-testid="list-template"]'
VALUATION_FOOTER = ".valuation-range-footer"
VALUATION_CENTRE = ".text-center span.author, .legend span.author"
RENTAL_PANEL_BODY = ".property-panel-body"

SOLD_PRICE_PATTERN = re.compile(r"\$[\d,]+")
SOLD_DATE_PATTERN = re.compile(r"\d{1,2}\s+\w+\s+\d{4}|\d{2}/\d{2}/\d{4}")
YEAR_BUILT_PATTERN = re.compile(r"Year Built[:\s]*(\d{4})", re.IGNORECASE)
PROPERTY_TYPE_PATTERN = re.compile(r"Property Type\s*\n\s*([\w\s:]+)", re.IGNORECASE)
YIELD_PATTERN = re.compile(r"([\d.]+)\s*%")


def attribute_selector(attribute_type: str) -> str:
    return (
        f'.property-attributes div.property-attribute[type="{attribute_type}"] '
        ".property-attribute-val span:last-child"
    )


def element_text(element: Tag | None) -> str:
    """Visible-ish text of an element with one line per text node."""
    if element is None:
        return ""
    return element.get_text("\n", strip=True)


class PageSnapshot:
    """Parsed HTML of one page state."""

    def __init__(self, html: str) -> None:
        self.html = html
        self.soup = BeautifulSoup(html, "html.parser")

    def select_one(self, selector: str) -> Tag | None:
        return self.soup.select_one(selector)

    def select(self, selector: str) -> list[Tag]:
        return self.soup.select(selector)

    def text_of(self, selector: str) -> str:
        return element_text(self.select_one(selector))

    def has(self, selector: str) -> bool:
        return self.select_one(selector) is not None


class FieldExtractor:
    """Reads one value from a snapshot, or None when absent."""

    def try_extract(self, snapshot: PageSnapshot) -> str | None:
        raise NotImplementedError


@dataclass
class SelectorText(FieldExtractor):
    """Text of the first element matching a CSS selector."""

    selector: str

    def try_extract(self, snapshot: PageSnapshot) -> str | None:
        text = snapshot.text_of(self.selector)
        return text or None


@dataclass
class RegionPattern(FieldExtractor):
    """
    Regex over the text of a page region.

    With region=None the whole document text is searched.
    """

    pattern: re.Pattern
    region: str | None = None
    group: int = 0
    clean: Callable[[str], str] | None = None

    def try_extract(self, snapshot: PageSnapshot) -> str | None:
        element = snapshot.select_one(self.region) if self.region else snapshot.soup
        text = element_text(element)
        if not text:
            return None
        match = self.pattern.search(text)
        if not match:
            return None
        value = match.group(self.group)
        if self.clean is not None:
            value = self.clean(value)
        return value or None


@dataclass
class FieldChain:
    """Ordered fallback chain for one named field."""

    name: str
    extractors: list[FieldExtractor] = field(default_factory=list)

    def extract(self, snapshot: PageSnapshot) -> str:
        for extractor in self.extractors:
            try:
                value = extractor.try_extract(snapshot)
            except Exception as e:
                logger.debug(f"Extractor for {self.name} failed: {e}")
                continue
            if value is not None:
                return value
        logger.debug(f"Field {self.name} not found, leaving empty")
        return ""


def _first_line(value: str) -> str:
    return value.strip().split("\n")[0].strip()


def _attribute_chain(name: str, attribute_type: str, label_pattern: str) -> FieldChain:
    return FieldChain(name, [
        SelectorText(attribute_selector(attribute_type)),
        RegionPattern(
            re.compile(label_pattern, re.IGNORECASE),
            region=ATTRIBUTES_REGION,
            group=1,
        ),
    ])


BEDROOMS = _attribute_chain("bedrooms", "bed", r"(\d+)\s*Beds?\b")
BATHROOMS = _attribute_chain("bathrooms", "bath", r"(\d+)\s*Baths?\b")
CAR_SPACES = _attribute_chain("car_spaces", "car", r"(\d+)\s*(?:Cars?|Parking)\b")
LAND_SIZE = _attribute_chain("land_size", "land-area", r"Land[^\d]*([\d,]+\s*m²)")
FLOOR_AREA = _attribute_chain("floor_area", "floor-area", r"Floor[^\d]*([\d,]+\s*m²)")

YEAR_BUILT = FieldChain("year_built", [
    RegionPattern(YEAR_BUILT_PATTERN, region=MAIN_ATTRIBUTES_REGION, group=1),
])
PROPERTY_TYPE = FieldChain("property_type", [
    RegionPattern(
        PROPERTY_TYPE_PATTERN,
        region=MAIN_ATTRIBUTES_REGION,
        group=1,
        clean=_first_line,
    ),
])
LISTING_DESC = FieldChain("listing_description", [SelectorText(LISTING_DESCRIPTION)])
SOLD_PRICE = FieldChain("sold_price", [
    RegionPattern(SOLD_PRICE_PATTERN, region=LAST_SALE_REGION),
])
SOLD_DATE = FieldChain("sold_date", [
    RegionPattern(SOLD_DATE_PATTERN, region=LAST_SALE_REGION),
])


def extract_schools(snapshot: PageSnapshot) -> list[School]:
    """Read the nearby schools list; entries without a name are skipped."""
    schools = []
    for item in snapshot.select(SCHOOL_ITEMS):
        name = element_text(item.select_one(".school-name"))
        if not name:
            continue
        schools.append(School(
            name=name,
            distance=element_text(item.select_one(".school-distance")),
            type=element_text(item.select_one("#schoolType .MuiChip-label")),
            sector=element_text(item.select_one("#schoolSector .MuiChip-label")),
        ))
    return schools


def read_property_record(snapshot: PageSnapshot) -> PropertyRecord:
    """Read every base-state field of a property detail page."""
    return PropertyRecord(
        bedrooms=BEDROOMS.extract(snapshot),
        bathrooms=BATHROOMS.extract(snapshot),
        car_spaces=CAR_SPACES.extract(snapshot),
        land_size=LAND_SIZE.extract(snapshot),
        floor_area=FLOOR_AREA.extract(snapshot),
        year_built=YEAR_BUILT.extract(snapshot),
        property_type=PROPERTY_TYPE.extract(snapshot),
        listing_description=LISTING_DESC.extract(snapshot),
        sold_price=SOLD_PRICE.extract(snapshot),
        sold_date=SOLD_DATE.extract(snapshot),
        schools=extract_schools(snapshot),
    )


def read_comparable(address: str, snapshot: PageSnapshot) -> ComparableRecord:
    """Read the reduced field set used for comparables."""
    return ComparableRecord(
        address=address,
        success=True,
        bedrooms=BEDROOMS.extract(snapshot),
        bathrooms=BATHROOMS.extract(snapshot),
        car_spaces=CAR_SPACES.extract(snapshot),
        land_size=LAND_SIZE.extract(snapshot),
        sold_price=SOLD_PRICE.extract(snapshot),
        sold_date=SOLD_DATE.extract(snapshot),
    )


def extract_valuation(snapshot: PageSnapshot) -> str:
    """
    Centre estimate from the valuation tab footer.

    A weekly figure ("/W") means the rental panel was read by mistake
    and is discarded.
    """
    footer = snapshot.select_one(VALUATION_FOOTER)
    if footer is None:
        return ""
    value = element_text(footer.select_one(VALUATION_CENTRE))
    if "/W" in value or "/w" in value:
        return ""
    return value


@dataclass
class RentalEstimate:
    low: str = ""
    mid: str = ""
    high: str = ""
    gross_yield: str = ""


def extract_rental(snapshot: PageSnapshot) -> RentalEstimate:
    """Low/mid/high rent from the footer and the yield from the panel text."""
    estimate = RentalEstimate()

    footer = snapshot.select_one(VALUATION_FOOTER)
    if footer is not None:
        for span in footer.select("span.author"):
            value = element_text(span)
            parent = span.find_parent("div")
            if parent is None:
                continue
            classes = " ".join(parent.get("class", []))
            if "text-left" in classes:
                estimate.low = value
            elif "text-right" in classes:
                estimate.high = value
            else:
                estimate.mid = value

    body_text = snapshot.text_of(RENTAL_PANEL_BODY)
    match = YIELD_PATTERN.search(body_text)
    if match:
        estimate.gross_yield = f"{match.group(1)}%"

    return estimate


def market_status(record: PropertyRecord) -> str:
    return "OFF Market" if record.sold_price else "ON Market"
