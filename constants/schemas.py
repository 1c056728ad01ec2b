from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from constants.inventory import REASON_LABELS


def _embedded_name(row: Dict[str, Any], relation: str) -> Optional[str]:
    """Pull the ``name`` out of an embedded relation such as ``categories(name)``"""
    embedded = row.get(relation)
    if isinstance(embedded, dict):
        return embedded.get("name")
    return None


def _optional_key(value: Any) -> Optional[str]:
    return None if value is None else str(value)


# --- Data Models Based on the Remote Tables ---


class InventoryItem(BaseModel):
    """Represents an inventory item as read from the inventory_items table"""

    id: str
    item_name: str = ""
    sku: Optional[str] = None
    qty_on_hand: int = 0
    par_level_min: Optional[int] = None
    category_id: Optional[str] = None
    storage_location_id: Optional[str] = None
    vendor_id: Optional[str] = None
    category_name: Optional[str] = None
    location_name: Optional[str] = None
    notes: Optional[str] = None
    is_controlled: Optional[bool] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "InventoryItem":
        """Create from a PostgREST row, flattening embedded relations"""
        return cls(
            id=str(row["id"]),
            item_name=row.get("item_name") or "",
            sku=row.get("sku"),
            qty_on_hand=int(row.get("qty_on_hand") or 0),
            par_level_min=row.get("par_level_min"),
            category_id=_optional_key(row.get("category_id")),
            storage_location_id=_optional_key(row.get("storage_location_id")),
            vendor_id=_optional_key(row.get("vendor_id")),
            category_name=_embedded_name(row, "categories"),
            location_name=_embedded_name(row, "storage_locations"),
            notes=row.get("notes"),
            is_controlled=row.get("is_controlled"),
        )

    def to_display(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "Name": self.item_name,
            "SKU": self.sku or "—",
            "Category": self.category_name or "—",
            "Qty": self.qty_on_hand,
            "Par": self.par_level_min,
            "Location": self.location_name or "—",
        }


class TransactionRecord(BaseModel):
    """An audit record written by the add/deduct procedures. Never built client-side for writing."""

    created_at: datetime
    qty_change: int
    reason: Optional[str] = None
    item_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TransactionRecord":
        return cls(
            created_at=row["created_at"],
            qty_change=int(row.get("qty_change") or 0),
            reason=row.get("reason"),
            item_id=_optional_key(row.get("item_id")),
        )

    @property
    def signed_change(self) -> str:
        return f"+{self.qty_change}" if self.qty_change >= 0 else f"{self.qty_change}"

    @property
    def reason_label(self) -> str:
        if not self.reason:
            return "—"
        return REASON_LABELS.get(self.reason, self.reason)


class LookupOption(BaseModel):
    """A category, vendor or storage location used in the filter dropdowns"""

    id: str
    name: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LookupOption":
        # vendors carry vendor_name instead of name
        name = row.get("name") or row.get("vendor_name") or ""
        return cls(id=str(row["id"]), name=name)


class RowPage(BaseModel):
    """One page of rows returned by a table read"""

    rows: List[Dict[str, Any]] = Field(default_factory=list)
    total_count: Optional[int] = None
