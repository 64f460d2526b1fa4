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

import json
import tempfile
import unittest
from pathlib import Path

from sheetflow.core.document import load_sheet_document, parse_sheet_document


class TestSheetDocument(unittest.TestCase):
    def test_parse_items(self) -> None:
        items = parse_sheet_document(
            {
                "items": [
                    {"id": "stats", "html": "<table></table>", "text": "STR 10"},
                    {"id": " traits ", "variant": "compact"},
                ]
            }
        )
        self.assertEqual([item.key for item in items], ["stats:block", "traits:compact"])
        self.assertEqual(items[0].text, "STR 10")
        self.assertEqual(items[1].html, "")

    def test_rejects_bad_documents(self) -> None:
        cases = (
            ([], "top level must be an object"),
            ({}, "items must be a list"),
            ({"items": ["stats"]}, "items[0] must be an object"),
            ({"items": [{"id": ""}]}, "items[0].id must be a non-empty string"),
            ({"items": [{"id": "a"}, {"id": "a"}]}, "items[1].id duplicates 'a'"),
            ({"items": [{"id": "a", "text": 4}]}, "items[0].text must be a string"),
        )
        for data, message in cases:
            with self.subTest(message=message):
                with self.assertRaises(ValueError) as ctx:
                    parse_sheet_document(data, source="sheet.json")
                self.assertIn(message, str(ctx.exception))
                self.assertTrue(str(ctx.exception).startswith("sheet.json"))

    def test_load_from_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "sheet.json"
            path.write_text(json.dumps({"items": [{"id": "stats"}]}), encoding="utf-8")
            items = load_sheet_document(path)
        self.assertEqual([item.item_id for item in items], ["stats"])

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError) as ctx:
            load_sheet_document("/nonexistent/sheet.json")
        self.assertIn("sheet file not found", str(ctx.exception))

    def test_invalid_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "sheet.json"
            path.write_text("{items: }", encoding="utf-8")
            with self.assertRaises(ValueError) as ctx:
                load_sheet_document(path)
        self.assertIn("invalid JSON", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
