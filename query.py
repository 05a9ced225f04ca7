"""
Query construction and pagination for the listing endpoints.

Raw request parameters go in; a Mongo filter document, a sort specification
and a skip/limit window come out. `paginate` applies the same filter to both
the count and the fetch, so the reported totals always describe the filtered
set rather than the whole collection.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

from database import serialize
from exceptions import InvalidParameterError

SortSpec = List[Tuple[str, int]]

LISTING_PAGE_SIZE = 9
PROFILE_PAGE_SIZE = 10

PRICE_FIELD = "regularPrice"

# skip and limit are sent to the server as signed 64-bit ints
MAX_INT64 = 2 ** 63 - 1

LISTING_SORTS: Dict[str, SortSpec] = {
    "price-low": [(PRICE_FIELD, ASCENDING)],
    "price-high": [(PRICE_FIELD, DESCENDING)],
    "rating": [("rating", DESCENDING)],
}


# --- Parameter parsing ---

def _blank(raw: Optional[str]) -> bool:
    return raw is None or raw.strip() == ""


def parse_number(name: str, raw: Optional[str]) -> Optional[float]:
    """Finite float, or None when the parameter is absent."""
    if _blank(raw):
        return None
    try:
        value = float(raw)
    except ValueError:
        raise InvalidParameterError(f"'{name}' must be a number, got '{raw}'", parameter=name)
    if not math.isfinite(value):
        raise InvalidParameterError(f"'{name}' must be a finite number", parameter=name)
    return value


def parse_positive_int(
    name: str,
    raw: Optional[str],
    default: int,
    maximum: Optional[int] = None,
) -> int:
    if _blank(raw):
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise InvalidParameterError(f"'{name}' must be a positive integer, got '{raw}'", parameter=name)
    if value < 1:
        raise InvalidParameterError(f"'{name}' must be a positive integer, got '{raw}'", parameter=name)
    if maximum is not None and value > maximum:
        raise InvalidParameterError(f"'{name}' must not exceed {maximum}", parameter=name)
    return value


def parse_age_range(raw: Optional[str]) -> Optional[Tuple[int, int]]:
    """Parse "min-max" into an inclusive (min, max) pair."""
    if _blank(raw):
        return None
    tokens = raw.strip().split("-")
    if len(tokens) != 2:
        raise InvalidParameterError(
            f"'ageRange' must look like 'min-max', got '{raw}'", parameter="ageRange"
        )
    try:
        low, high = (int(token.strip()) for token in tokens)
    except ValueError:
        raise InvalidParameterError(
            f"'ageRange' bounds must be whole numbers, got '{raw}'", parameter="ageRange"
        )
    if low > high:
        raise InvalidParameterError(
            f"'ageRange' minimum {low} is greater than maximum {high}", parameter="ageRange"
        )
    return low, high


# --- Filter construction ---

class FilterBuilder:
    """Fluent builder for a Mongo filter document; absent values add nothing."""

    def __init__(self):
        self._filter: Dict[str, Any] = {}

    def equals(self, field_name: str, value: Any) -> FilterBuilder:
        if value is not None and value != "":
            self._filter[field_name] = value
        return self

    def between(self, field_name: str, low: Optional[float], high: Optional[float]) -> FilterBuilder:
        """Inclusive range; either bound may be None."""
        bounds: Dict[str, Any] = {}
        if low is not None:
            bounds["$gte"] = low
        if high is not None:
            bounds["$lte"] = high
        if bounds:
            self._filter[field_name] = bounds
        return self

    def search(self, term: Optional[str], fields: List[str]) -> FilterBuilder:
        """Case-insensitive substring match against any of `fields`."""
        if not _blank(term) and fields:
            pattern = re.escape(term)
            self._filter["$or"] = [
                {f: {"$regex": pattern, "$options": "i"}} for f in fields
            ]
        return self

    def build(self) -> Dict[str, Any]:
        return dict(self._filter)


# --- Pagination ---

@dataclass(frozen=True)
class PageWindow:
    page: int = 1
    limit: int = LISTING_PAGE_SIZE

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(
        cls,
        page: Optional[str],
        limit: Optional[str],
        default_limit: int = LISTING_PAGE_SIZE,
        max_limit: Optional[int] = None,
    ) -> PageWindow:
        window = cls(
            page=parse_positive_int("page", page, 1),
            limit=parse_positive_int("limit", limit, default_limit, max_limit),
        )
        if window.limit > MAX_INT64:
            raise InvalidParameterError(f"'limit' {window.limit} is out of range", parameter="limit")
        if window.skip > MAX_INT64:
            raise InvalidParameterError(f"'page' {window.page} is out of range", parameter="page")
        return window


@dataclass
class Page:
    data: List[dict] = field(default_factory=list)
    page: int = 1
    total_pages: int = 0
    total_records: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data,
            "page": self.page,
            "totalPages": self.total_pages,
            "totalRecords": self.total_records,
        }


@dataclass(frozen=True)
class ListingQuery:
    filter: Dict[str, Any]
    sort: Optional[SortSpec]


def build_listing_query(
    category: Optional[str] = None,
    min_price: Optional[str] = None,
    max_price: Optional[str] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
) -> ListingQuery:
    query_filter = (
        FilterBuilder()
        .equals("category", category)
        .between(PRICE_FIELD, parse_number("minPrice", min_price), parse_number("maxPrice", max_price))
        .search(search, ["name", "category"])
        .build()
    )
    return ListingQuery(filter=query_filter, sort=LISTING_SORTS.get(sort or ""))


def build_profile_filter(
    age_range: Optional[str] = None,
    gender: Optional[str] = None,
    division: Optional[str] = None,
) -> Dict[str, Any]:
    ages = parse_age_range(age_range)
    builder = FilterBuilder()
    if ages:
        builder.between("age", *ages)
    # Profiles record gender in the "category" field
    return builder.equals("category", gender).equals("permanentDivision", division).build()


def paginate(
    collection: Collection,
    query_filter: Dict[str, Any],
    window: PageWindow,
    sort: Optional[SortSpec] = None,
) -> Page:
    """
    Count the filtered set, then fetch one window of it.

    The two calls are not isolated from concurrent writes, so under load the
    count may describe a slightly different state than the fetched page.
    """
    total = collection.count_documents(query_filter)

    cursor = collection.find(query_filter)
    if sort:
        cursor = cursor.sort(sort)
    cursor = cursor.skip(window.skip).limit(window.limit)

    return Page(
        data=[serialize(doc) for doc in cursor],
        page=window.page,
        total_pages=math.ceil(total / window.limit),
        total_records=total,
    )
