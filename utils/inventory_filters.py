"""
Inventory filter, search and sort helpers for the listing and cycle count views.

Server-side predicates (equality filters, name/SKU search) are turned into
gateway query arguments; the low-stock predicate, sorting and paging run on
the complete fetched candidate set so no low-stock item can fall off a page.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from pydantic import BaseModel

from constants.inventory import (
    CATEGORIES_TABLE,
    ITEMS_TABLE,
    LIST_COLUMNS,
    LOCATIONS_TABLE,
    SORT_KEYS,
    VENDORS_TABLE,
)
from constants.schemas import InventoryItem, LookupOption

logger = logging.getLogger(__name__)

SEARCH_COLUMNS = ["item_name", "sku"]


class ItemFilters(BaseModel):
    """Filter selections from the listing view; None means "All"."""

    category_id: Optional[str] = None
    vendor_id: Optional[str] = None
    location_id: Optional[str] = None
    low_stock_only: bool = False


def build_item_query(
    search: Optional[str] = None,
    filters: Optional[ItemFilters] = None,
    columns: str = LIST_COLUMNS,
) -> Dict[str, Any]:
    """
    Build the gateway arguments for reading the item catalog.

    Args:
        search: Free text matched against name and SKU
        filters: Equality filter selections
        columns: Column projection

    Returns:
        Keyword arguments for ``SupabaseGateway.select_all``
    """
    filters = filters or ItemFilters()
    eq = {
        "category_id": filters.category_id,
        "vendor_id": filters.vendor_id,
        "storage_location_id": filters.location_id,
    }
    query = {
        "columns": columns,
        "eq": {k: v for k, v in eq.items() if v},
        "order": "item_name",
        "ascending": True,
    }
    term = (search or "").strip()
    if term:
        query["search"] = term
        query["search_columns"] = list(SEARCH_COLUMNS)
    return query


def is_low_stock(item: InventoryItem) -> bool:
    """Quantity at or below the minimum par level; items without a par are never low."""
    return item.par_level_min is not None and item.qty_on_hand <= item.par_level_min


def matches_search(item: InventoryItem, term: Optional[str]) -> bool:
    """Case-insensitive substring match against name and SKU."""
    needle = (term or "").strip().lower()
    if not needle:
        return True
    return needle in item.item_name.lower() or needle in (item.sku or "").lower()


def apply_client_filters(
    items: List[InventoryItem],
    filters: Optional[ItemFilters] = None,
    search: Optional[str] = None,
) -> List[InventoryItem]:
    """Apply search, equality and low-stock predicates to an already fetched list."""
    filters = filters or ItemFilters()
    result = []
    for item in items:
        if not matches_search(item, search):
            continue
        if filters.category_id and item.category_id != filters.category_id:
            continue
        if filters.vendor_id and item.vendor_id != filters.vendor_id:
            continue
        if filters.location_id and item.storage_location_id != filters.location_id:
            continue
        if filters.low_stock_only and not is_low_stock(item):
            continue
        result.append(item)
    return result


def sort_items(
    items: List[InventoryItem], sort_key: str = "item_name", ascending: bool = True
) -> List[InventoryItem]:
    """
    Sort items by name, quantity or par level.

    Items without a value for the sort key go last ascending and first
    descending, the same order the backend gives for NULLs.
    """
    if sort_key not in SORT_KEYS:
        raise ValueError(f"Unsupported sort key: {sort_key}")

    def value(item: InventoryItem):
        v = getattr(item, sort_key)
        return v.lower() if isinstance(v, str) else v

    present = [it for it in items if value(it) is not None]
    missing = [it for it in items if value(it) is None]
    present.sort(key=value, reverse=not ascending)
    return present + missing if ascending else missing + present


def paginate(items: List[Any], page: int, page_size: int) -> Tuple[List[Any], bool]:
    """
    Offset-based paging.

    Returns:
        Tuple of (rows for pages 0..page, whether more rows remain)
    """
    end = (page + 1) * page_size
    return items[:end], len(items) > end


def parse_sort_option(option: str) -> Tuple[str, bool]:
    """Split a ``key:asc`` / ``key:desc`` selection."""
    key, _, direction = option.partition(":")
    if key not in SORT_KEYS or direction not in ("asc", "desc"):
        raise ValueError(f"Unsupported sort option: {option}")
    return key, direction == "asc"


def load_items(gateway, search: Optional[str] = None, filters: Optional[ItemFilters] = None,
               columns: str = LIST_COLUMNS) -> List[InventoryItem]:
    """Fetch the full candidate set for the server-side predicates."""
    query = build_item_query(search, filters, columns)
    rows = gateway.select_all(ITEMS_TABLE, **query)
    logger.info(f"Loaded {len(rows)} inventory items")
    return [InventoryItem.from_row(row) for row in rows]


def load_filter_options(gateway) -> Dict[str, List[LookupOption]]:
    """Read the category, vendor and location dropdown options."""
    categories = gateway.select_all(CATEGORIES_TABLE, columns="id,name", order="name")
    vendors = gateway.select_all(VENDORS_TABLE, columns="id,vendor_name", order="vendor_name")
    locations = gateway.select_all(LOCATIONS_TABLE, columns="id,name", order="name")
    return {
        "categories": [LookupOption.from_row(r) for r in categories],
        "vendors": [LookupOption.from_row(r) for r in vendors],
        "locations": [LookupOption.from_row(r) for r in locations],
    }


def items_to_frame(items: List[InventoryItem]) -> pd.DataFrame:
    """Build the display table for a list of items."""
    columns = ["id", "Name", "SKU", "Category", "Qty", "Par", "Location", "Low"]
    if not items:
        return pd.DataFrame(columns=columns)
    df = pd.DataFrame([item.to_display() for item in items])
    df["Low"] = [is_low_stock(item) for item in items]
    df["Par"] = pd.to_numeric(df["Par"], errors="coerce").astype("Int64")
    return df[columns]
