"""
Extraction module: browser-driven reading of provider pages.
"""

from market_intel.extraction.batch import ComparablesExtractor
from market_intel.extraction.detail_page import DetailPage, DetailState
from market_intel.extraction.fields import (
    FieldChain,
    FieldExtractor,
    PageSnapshot,
    RegionPattern,
    SelectorText,
    extract_rental,
    extract_schools,
    extract_valuation,
    read_comparable,
    read_property_record,
)
from market_intel.extraction.navigation import CoreLogicNavigator, authenticated_navigator
from market_intel.extraction.property_extractor import PropertyExtractor
from market_intel.extraction.vacancy import VacancyReader, parse_vacancy_series

__all__ = [
    "ComparablesExtractor",
    "CoreLogicNavigator",
    "DetailPage",
    "DetailState",
    "FieldChain",
    "FieldExtractor",
    "PageSnapshot",
    "PropertyExtractor",
    "RegionPattern",
    "SelectorText",
    "VacancyReader",
    "authenticated_navigator",
    "extract_rental",
    "extract_schools",
    "extract_valuation",
    "parse_vacancy_series",
    "read_comparable",
    "read_property_record",
]
