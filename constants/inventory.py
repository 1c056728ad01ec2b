"""
Inventory constants for the clinic inventory application.
Contains reason codes, table and procedure names, and listing defaults.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Reason codes (stored as code, shown as label)
DISPENSE = "dispense"
ADMINISTER = "administer"
WASTE = "waste"
EXPIRED = "expired"
DAMAGED = "damaged"
COUNT_ADJUSTMENT = "count_adjustment"
RECEIVE = "receive"

REASON_LABELS = {
    DISPENSE: "Dispense",
    ADMINISTER: "Administer",
    WASTE: "Waste",
    EXPIRED: "Expired",
    DAMAGED: "Damaged",
    COUNT_ADJUSTMENT: "Count Adjustment",
    RECEIVE: "Receive/Restock",
}

REASON_CODES = list(REASON_LABELS.keys())

# Remote tables
ITEMS_TABLE = "inventory_items"
TRANSACTIONS_TABLE = "inventory_transactions"
CATEGORIES_TABLE = "categories"
VENDORS_TABLE = "vendors"
LOCATIONS_TABLE = "storage_locations"

# Remote procedures
ADD_INVENTORY_RPC = "add_inventory"
DEDUCT_INVENTORY_RPC = "deduct_inventory"

# Column projections
LIST_COLUMNS = (
    "id,item_name,sku,qty_on_hand,par_level_min,storage_location_id,category_id,vendor_id,"
    "categories(name),storage_locations(name)"
)
COUNT_COLUMNS = "id,item_name,sku,qty_on_hand,category_id,storage_location_id"
DETAIL_COLUMNS = "*,categories(name),storage_locations(name)"
HISTORY_COLUMNS = "created_at,qty_change,reason,item_id"

# Sorting
SORT_KEYS = ["item_name", "qty_on_hand", "par_level_min"]
SORT_LABELS = {
    "item_name": "Name",
    "qty_on_hand": "Qty",
    "par_level_min": "Par",
}

# Paging
PAGE_SIZE = int(os.getenv("INVENTORY_PAGE_SIZE", "30"))
TRANSACTIONS_PAGE_SIZE = int(os.getenv("TRANSACTIONS_PAGE_SIZE", "200"))
ITEM_HISTORY_LIMIT = 50

CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "America/Los_Angeles")
