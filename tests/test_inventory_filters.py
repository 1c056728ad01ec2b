#!/usr/bin/env python3
"""
Unit tests for the listing filters, sorting and paging helpers.
"""

import os
import sys
import unittest

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants.schemas import InventoryItem, LookupOption
from utils.inventory_filters import (
    ItemFilters,
    apply_client_filters,
    build_item_query,
    is_low_stock,
    items_to_frame,
    load_filter_options,
    load_items,
    matches_search,
    paginate,
    parse_sort_option,
    sort_items,
)


def item(id, name, qty=0, par=None, sku=None, **kwargs):
    return InventoryItem(id=id, item_name=name, qty_on_hand=qty, par_level_min=par, sku=sku, **kwargs)


class RecordingGateway:
    """Returns canned rows per table and remembers the query arguments."""

    def __init__(self, rows_by_table):
        self.rows_by_table = rows_by_table
        self.queries = []

    def select_all(self, table, **kwargs):
        self.queries.append((table, kwargs))
        return self.rows_by_table.get(table, [])


class TestQueryBuilding(unittest.TestCase):

    def test_empty_filters(self):
        query = build_item_query()
        self.assertEqual(query["eq"], {})
        self.assertNotIn("search", query)
        self.assertEqual(query["order"], "item_name")

    def test_filters_and_search(self):
        filters = ItemFilters(category_id="c1", vendor_id="v2", location_id="l3", low_stock_only=True)
        query = build_item_query("  syringe ", filters)

        self.assertEqual(
            query["eq"], {"category_id": "c1", "vendor_id": "v2", "storage_location_id": "l3"}
        )
        self.assertEqual(query["search"], "syringe")
        self.assertEqual(query["search_columns"], ["item_name", "sku"])
        # low stock is never pushed to the paged query
        self.assertNotIn("low_stock_only", query["eq"])


class TestPredicates(unittest.TestCase):

    def test_low_stock(self):
        self.assertTrue(is_low_stock(item("1", "Gauze", qty=5, par=5)))
        self.assertTrue(is_low_stock(item("1", "Gauze", qty=0, par=2)))
        self.assertFalse(is_low_stock(item("1", "Gauze", qty=6, par=5)))
        self.assertFalse(is_low_stock(item("1", "Gauze", qty=0, par=None)))

    def test_search_matches_name_and_sku(self):
        gauze = item("1", "Sterile Gauze", sku="GZ-44")
        self.assertTrue(matches_search(gauze, "gauze"))
        self.assertTrue(matches_search(gauze, "gz-4"))
        self.assertTrue(matches_search(gauze, ""))
        self.assertFalse(matches_search(gauze, "syringe"))
        self.assertFalse(matches_search(item("2", "Tape"), "gz"))

    def test_equality_filters(self):
        items = [
            item("1", "A", category_id="c1", storage_location_id="l1"),
            item("2", "B", category_id="c2", storage_location_id="l1"),
        ]
        result = apply_client_filters(items, ItemFilters(category_id="c1"))
        self.assertEqual([i.id for i in result], ["1"])

    def test_low_stock_item_beyond_first_page_is_found(self):
        items = [item(str(i), f"Item {i:02d}", qty=50, par=10) for i in range(40)]
        items[35].qty_on_hand = 3

        low = apply_client_filters(items, ItemFilters(low_stock_only=True))
        shown, has_more = paginate(low, 0, 30)

        self.assertEqual([i.id for i in shown], ["35"])
        self.assertFalse(has_more)


class TestSortingAndPaging(unittest.TestCase):

    def setUp(self):
        self.items = [
            item("1", "bandage", qty=4, par=2),
            item("2", "Alcohol swab", qty=10, par=None),
            item("3", "Catheter", qty=1, par=5),
        ]

    def test_sort_by_name_is_case_insensitive(self):
        names = [i.item_name for i in sort_items(self.items, "item_name")]
        self.assertEqual(names, ["Alcohol swab", "bandage", "Catheter"])

    def test_sort_by_qty_desc(self):
        ids = [i.id for i in sort_items(self.items, "qty_on_hand", ascending=False)]
        self.assertEqual(ids, ["2", "1", "3"])

    def test_missing_par_sorts_like_nulls(self):
        ids = [i.id for i in sort_items(self.items, "par_level_min", ascending=True)]
        self.assertEqual(ids, ["1", "3", "2"])

        ids = [i.id for i in sort_items(self.items, "par_level_min", ascending=False)]
        self.assertEqual(ids, ["2", "3", "1"])

    def test_bad_sort_key(self):
        with self.assertRaises(ValueError):
            sort_items(self.items, "vendor_id")

    def test_paginate(self):
        rows = list(range(65))
        shown, has_more = paginate(rows, 0, 30)
        self.assertEqual(len(shown), 30)
        self.assertTrue(has_more)
        shown, has_more = paginate(rows, 2, 30)
        self.assertEqual(len(shown), 65)
        self.assertFalse(has_more)

    def test_parse_sort_option(self):
        self.assertEqual(parse_sort_option("qty_on_hand:desc"), ("qty_on_hand", False))
        self.assertEqual(parse_sort_option("item_name:asc"), ("item_name", True))
        with self.assertRaises(ValueError):
            parse_sort_option("item_name:up")


class TestLoading(unittest.TestCase):

    def test_load_items_fetches_full_candidate_set(self):
        gateway = RecordingGateway({
            "inventory_items": [
                {
                    "id": 7,
                    "item_name": "Lidocaine",
                    "sku": None,
                    "qty_on_hand": 2,
                    "par_level_min": 4,
                    "category_id": 3,
                    "categories": {"name": "Medication"},
                    "storage_locations": None,
                }
            ]
        })

        items = load_items(gateway, "lido", ItemFilters(category_id="3"))

        table, query = gateway.queries[0]
        self.assertEqual(table, "inventory_items")
        self.assertEqual(query["eq"], {"category_id": "3"})
        self.assertEqual(query["search"], "lido")
        self.assertEqual(items[0].id, "7")
        self.assertEqual(items[0].category_id, "3")
        self.assertEqual(items[0].category_name, "Medication")
        self.assertIsNone(items[0].location_name)

    def test_filter_options(self):
        gateway = RecordingGateway({
            "categories": [{"id": 1, "name": "Medication"}],
            "vendors": [{"id": 2, "vendor_name": "McKesson"}],
            "storage_locations": [{"id": 3, "name": "Exam Room 1"}],
        })

        options = load_filter_options(gateway)

        self.assertEqual(options["categories"], [LookupOption(id="1", name="Medication")])
        self.assertEqual(options["vendors"], [LookupOption(id="2", name="McKesson")])
        self.assertEqual(options["locations"][0].name, "Exam Room 1")

    def test_items_to_frame(self):
        df = items_to_frame([item("1", "Gauze", qty=1, par=3), item("2", "Tape", qty=9)])
        self.assertEqual(list(df.columns), ["id", "Name", "SKU", "Category", "Qty", "Par", "Location", "Low"])
        self.assertEqual(df["Low"].tolist(), [True, False])
        self.assertEqual(df.loc[0, "Par"], 3)
        self.assertTrue(items_to_frame([]).empty)


if __name__ == '__main__':
    unittest.main()
