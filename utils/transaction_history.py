import logging
from datetime import datetime
from io import StringIO
from typing import List, Optional, Tuple

import pandas as pd
import pytz

from constants.inventory import (
    CLINIC_TIMEZONE,
    HISTORY_COLUMNS,
    ITEM_HISTORY_LIMIT,
    TRANSACTIONS_PAGE_SIZE,
    TRANSACTIONS_TABLE,
)
from constants.schemas import TransactionRecord

logger = logging.getLogger(__name__)


def load_item_history(gateway, item_id: str, limit: int = ITEM_HISTORY_LIMIT) -> List[TransactionRecord]:
    """Most recent transactions for one item, newest first."""
    page = gateway.select(
        TRANSACTIONS_TABLE,
        columns=HISTORY_COLUMNS,
        eq={"item_id": item_id},
        order="created_at",
        ascending=False,
        offset=0,
        limit=limit,
    )
    return [TransactionRecord.from_row(row) for row in page.rows]


def load_transactions(
    gateway, page: int = 0, page_size: int = TRANSACTIONS_PAGE_SIZE
) -> Tuple[List[TransactionRecord], Optional[int]]:
    """
    One page of the transaction log, newest first.

    Returns:
        Tuple of (records, total number of transactions if the backend reported it)
    """
    result = gateway.select(
        TRANSACTIONS_TABLE,
        columns=HISTORY_COLUMNS,
        order="created_at",
        ascending=False,
        offset=page * page_size,
        limit=page_size,
        count=True,
    )
    logger.info(f"Loaded {len(result.rows)} transactions (page {page})")
    return [TransactionRecord.from_row(row) for row in result.rows], result.total_count


def format_timestamp(value: datetime, tz_name: str = CLINIC_TIMEZONE) -> str:
    """Render a timestamp in the clinic's timezone; naive values are taken as UTC."""
    tz = pytz.timezone(tz_name)
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S")


def transactions_to_frame(records: List[TransactionRecord], tz_name: str = CLINIC_TIMEZONE) -> pd.DataFrame:
    columns = ["When", "Change", "Reason", "Item"]
    if not records:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(
        [
            {
                "When": format_timestamp(r.created_at, tz_name),
                "Change": r.signed_change,
                "Reason": r.reason_label,
                "Item": r.item_id or "",
            }
            for r in records
        ],
        columns=columns,
    )


def running_change_frame(records: List[TransactionRecord], current_qty: int) -> pd.DataFrame:
    """
    Reconstruct the quantity after each transaction, oldest first.

    Works backwards from the current quantity so the last point always matches
    what the backend reports now.
    """
    if not records:
        return pd.DataFrame(columns=["created_at", "qty_change", "quantity"])

    df = pd.DataFrame(
        [{"created_at": r.created_at, "qty_change": r.qty_change} for r in records]
    ).sort_values("created_at", kind="stable").reset_index(drop=True)

    # quantity after row i = current - sum of changes after row i
    later_changes = df["qty_change"][::-1].cumsum()[::-1].shift(-1, fill_value=0)
    df["quantity"] = current_qty - later_changes
    return df


def to_csv_bytes(df: pd.DataFrame, tz_name: str = CLINIC_TIMEZONE) -> bytes:
    """CSV export with a "Data as of" line on top"""
    output = StringIO()

    current_time = datetime.now(pytz.timezone(tz_name))
    output.write(f"Data as of {current_time.strftime('%Y-%m-%d %H:%M:%S')} ({tz_name})\n\n")
    df.to_csv(output, index=False)

    return output.getvalue().encode("utf-8")
