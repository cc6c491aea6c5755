"""Tests for routing scraped table rows into provenance fields."""

import sys
import unittest
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gi_verifier.normalizer import normalize_rows


class TestNormalizeRows(unittest.TestCase):

    def test_special_labels_are_routed_to_dedicated_fields(self):
        rows = [["Authorized GI User", "Jane Doe"], ["Weaver", "John Roe"], ["Region", "Kashmir"]]

        table = normalize_rows(rows)

        self.assertEqual(table.authorized_user, "Jane Doe")
        self.assertEqual(table.artisan, "John Roe")
        self.assertEqual(table.attributes, {"Region": "Kashmir"})
        self.assertIsNone(table.image_url)

    def test_label_match_is_case_insensitive_substring(self):
        rows = [
            ["Name of the AUTHORIZED GI USER:", "Kashmir Looms Co."],
            ["Master Artisan", "A. Rather"],
        ]

        table = normalize_rows(rows)

        self.assertEqual(table.authorized_user, "Kashmir Looms Co.")
        self.assertEqual(table.artisan, "A. Rather")
        self.assertEqual(table.attributes, {})

    def test_rows_with_fewer_than_two_non_empty_cells_are_dropped(self):
        rows = [
            ["Product Details"],
            ["Knots per inch", ""],
            ["", "orphan value"],
            ["  ", "  "],
            ["Material", " Pure Silk "],
        ]

        table = normalize_rows(rows)

        self.assertEqual(table.attributes, {"Material": "Pure Silk"})

    def test_empty_cells_are_skipped_before_picking_label_and_value(self):
        table = normalize_rows([["", "Size", "", "6 x 4 ft", "extra"]])

        self.assertEqual(table.attributes, {"Size": "6 x 4 ft"})

    def test_labels_keep_their_original_text(self):
        table = normalize_rows([["Knots Per Sq. Inch", "324"]])

        self.assertIn("Knots Per Sq. Inch", table.attributes)

    def test_first_non_empty_image_wins(self):
        table = normalize_rows(
            [["Region", "Kashmir"]],
            ["", "https://example.org/carpet-front.jpg", "https://example.org/carpet-back.jpg"],
        )

        self.assertEqual(table.image_url, "https://example.org/carpet-front.jpg")

    def test_zero_rows_produce_empty_table(self):
        table = normalize_rows([])

        self.assertEqual(table.attributes, {})
        self.assertIsNone(table.authorized_user)
        self.assertIsNone(table.artisan)


if __name__ == "__main__":
    unittest.main()
