# Copyright (C) 2026 Alex Stoyanov
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License along with this program.
# If not, see <https://www.gnu.org/licenses/>.

import unittest

from sheetflow.config.loader import ColumnSettings, PageSettings
from sheetflow.render.geometry import (
    compute_page_geometry,
    mm_to_px,
    round_column_width,
    width_matches_canonical,
)


class TestPageGeometry(unittest.TestCase):
    def test_a4_two_columns(self) -> None:
        geometry = compute_page_geometry(PageSettings(), ColumnSettings())
        self.assertAlmostEqual(geometry.width_px, 793.70, places=2)
        self.assertAlmostEqual(geometry.height_px, 1122.52, places=2)
        self.assertAlmostEqual(geometry.canonical_region_height_px, 986.46, places=2)
        self.assertEqual(round_column_width(geometry.column_width_px), 353.06)
        self.assertEqual(geometry.measurement_column_width_px, geometry.column_width_px)

    def test_region_height_never_negative(self) -> None:
        page = PageSettings(height_mm=30.0, margin_top_mm=20.0, margin_bottom_mm=20.0)
        geometry = compute_page_geometry(page, ColumnSettings())
        self.assertLess(geometry.content_height_px, 0)
        self.assertEqual(geometry.canonical_region_height_px, 0.0)

    def test_column_width_missing_when_gutters_consume_page(self) -> None:
        page = PageSettings(width_mm=30.0, margin_left_mm=5.0, margin_right_mm=5.0)
        geometry = compute_page_geometry(page, ColumnSettings(count=4, gutter_px=40.0))
        self.assertIsNone(geometry.column_width_px)
        self.assertAlmostEqual(geometry.measurement_column_width_px, mm_to_px(20.0))

    def test_single_column_has_no_gutter(self) -> None:
        geometry = compute_page_geometry(PageSettings(), ColumnSettings(count=1, gutter_px=50.0))
        self.assertAlmostEqual(geometry.column_width_px, geometry.content_width_px)


class TestWidthMatching(unittest.TestCase):
    def test_epsilon(self) -> None:
        self.assertTrue(width_matches_canonical(353.5, 353.06))
        self.assertFalse(width_matches_canonical(353.6, 353.06))
        self.assertFalse(width_matches_canonical(353.06, None))

    def test_round_column_width(self) -> None:
        self.assertEqual(round_column_width(353.0551), 353.06)
        self.assertEqual(round_column_width(100), 100.0)


if __name__ == "__main__":
    unittest.main()
