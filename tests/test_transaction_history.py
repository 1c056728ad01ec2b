#!/usr/bin/env python3
"""
Unit tests for transaction history loading and formatting.
"""

import os
import sys
import unittest
from datetime import datetime, timezone

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants.schemas import RowPage, TransactionRecord
from utils.transaction_history import (
    format_timestamp,
    load_item_history,
    load_transactions,
    running_change_frame,
    to_csv_bytes,
    transactions_to_frame,
)


def record(ts, change, reason="dispense"):
    return TransactionRecord(created_at=ts, qty_change=change, reason=reason, item_id="i1")


class StubGateway:

    def __init__(self, rows, total=None):
        self.rows = rows
        self.total = total
        self.calls = []

    def select(self, table, **kwargs):
        self.calls.append((table, kwargs))
        return RowPage(rows=self.rows, total_count=self.total)


class TestTransactionRecord(unittest.TestCase):

    def test_from_row(self):
        rec = TransactionRecord.from_row(
            {"created_at": "2024-01-15T20:00:00+00:00", "qty_change": -2, "reason": "waste", "item_id": 9}
        )
        self.assertEqual(rec.signed_change, "-2")
        self.assertEqual(rec.reason_label, "Waste")
        self.assertEqual(rec.item_id, "9")

    def test_labels(self):
        self.assertEqual(record("2024-01-01T00:00:00Z", 0).signed_change, "+0")
        self.assertEqual(record("2024-01-01T00:00:00Z", 3, reason=None).reason_label, "—")
        # older free-text reasons are shown as written
        self.assertEqual(
            record("2024-01-01T00:00:00Z", 3, reason="Cycle count adjustment").reason_label,
            "Cycle count adjustment",
        )


class TestLoading(unittest.TestCase):

    def test_item_history_query(self):
        gateway = StubGateway([{"created_at": "2024-01-15T20:00:00Z", "qty_change": 1, "reason": "receive"}])

        records = load_item_history(gateway, "abc")

        table, kwargs = gateway.calls[0]
        self.assertEqual(table, "inventory_transactions")
        self.assertEqual(kwargs["eq"], {"item_id": "abc"})
        self.assertEqual(kwargs["order"], "created_at")
        self.assertFalse(kwargs["ascending"])
        self.assertEqual(kwargs["limit"], 50)
        self.assertEqual(len(records), 1)

    def test_transactions_page(self):
        gateway = StubGateway([], total=450)

        records, total = load_transactions(gateway, page=2, page_size=200)

        kwargs = gateway.calls[0][1]
        self.assertEqual(kwargs["offset"], 400)
        self.assertEqual(kwargs["limit"], 200)
        self.assertTrue(kwargs["count"])
        self.assertEqual(records, [])
        self.assertEqual(total, 450)


class TestFormatting(unittest.TestCase):

    def test_format_timestamp_in_clinic_timezone(self):
        ts = datetime(2024, 1, 15, 20, 0, tzinfo=timezone.utc)
        self.assertEqual(format_timestamp(ts, "America/Los_Angeles"), "2024-01-15 12:00:00")

    def test_naive_timestamp_is_utc(self):
        self.assertEqual(format_timestamp(datetime(2024, 7, 1, 12, 0), "America/New_York"), "2024-07-01 08:00:00")

    def test_transactions_frame(self):
        df = transactions_to_frame([record("2024-01-15T20:00:00Z", 4, "receive")], "UTC")
        self.assertEqual(df.iloc[0].to_dict(), {
            "When": "2024-01-15 20:00:00",
            "Change": "+4",
            "Reason": "Receive/Restock",
            "Item": "i1",
        })
        self.assertTrue(transactions_to_frame([]).empty)

    def test_running_change_ends_at_current_quantity(self):
        records = [
            record("2024-01-03T00:00:00Z", -2),
            record("2024-01-01T00:00:00Z", 10),
            record("2024-01-02T00:00:00Z", -3),
        ]

        df = running_change_frame(records, current_qty=5)

        self.assertEqual(df["qty_change"].tolist(), [10, -3, -2])
        self.assertEqual(df["quantity"].tolist(), [10, 7, 5])

    def test_csv_has_date_header(self):
        df = transactions_to_frame([record("2024-01-15T20:00:00Z", 4)], "UTC")
        text = to_csv_bytes(df, "UTC").decode("utf-8")
        lines = text.splitlines()
        self.assertTrue(lines[0].startswith("Data as of "))
        self.assertEqual(lines[1], "")
        self.assertEqual(lines[2], "When,Change,Reason,Item")


if __name__ == '__main__':
    unittest.main()
