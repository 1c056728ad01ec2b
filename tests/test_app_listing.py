#!/usr/bin/env python3
"""
Script-level tests for the inventory listing page, run with Streamlit's AppTest.
"""

import os
import sys
import unittest

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from streamlit.testing.v1 import AppTest

from constants.inventory import ITEMS_TABLE

APP_PATH = os.path.join(os.path.dirname(__file__), '..', 'app.py')


class ListingGateway:
    """Signed-in gateway serving one item whose quantity the test can change."""

    has_session = True
    user_email = "nurse@clinic.com"

    def __init__(self, qty):
        self.qty = qty
        self.item_reads = 0

    def select_all(self, table, **kwargs):
        if table != ITEMS_TABLE:
            return []
        self.item_reads += 1
        return [{"id": "a", "item_name": "Gauze", "qty_on_hand": self.qty, "par_level_min": 3}]


class TestListingReload(unittest.TestCase):

    def setUp(self):
        self.gateway = ListingGateway(qty=5)
        self.at = AppTest.from_file(APP_PATH, default_timeout=30)
        self.at.session_state["gateway"] = self.gateway

    def cached_qty(self):
        return self.at.session_state["inventory_items"][0].qty_on_hand

    def test_returning_to_listing_reads_fresh_quantities(self):
        self.at.run()
        self.assertFalse(self.at.exception)
        self.assertEqual(self.cached_qty(), 5)

        # the quantity changes while the user is on the cycle count page
        self.gateway.qty = 2
        self.at.session_state["active_view"] = "cycle_counts"
        self.at.run()

        self.assertEqual(self.cached_qty(), 2)
        self.assertEqual(self.gateway.item_reads, 2)

    def test_rerun_within_listing_uses_loaded_items(self):
        self.at.run()
        self.gateway.qty = 2
        self.at.run()

        self.assertEqual(self.cached_qty(), 5)
        self.assertEqual(self.gateway.item_reads, 1)


if __name__ == '__main__':
    unittest.main()
