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
import re
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from typer.testing import CliRunner

from sheetflow.cli import app
from sheetflow.cli.commands.settle import summary_rows
from sheetflow.cli.common import GlobalOptions
from sheetflow.config import DEFAULT_CONFIG_PATH, PAPER_CONFIGS

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")


def _strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


class TestCliTyper(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()

    def test_root_info_commands(self) -> None:
        cases = (
            {
                "args": ["--help"],
                "expected_exit_code": 0,
                "contains": ("settle", "config"),
            },
            {
                "args": ["--version"],
                "expected_exit_code": 0,
                "contains": ("sheetflow",),
            },
        )
        for case in cases:
            with self.subTest(args=case["args"]):
                with mock.patch("sheetflow.cli.app.run_startup", return_value=False):
                    result = self.runner.invoke(app, case["args"])
                self.assertEqual(result.exit_code, case["expected_exit_code"])
                output = result.output.lower() if "--version" in case["args"] else result.output
                for expected in case["contains"]:
                    self.assertIn(expected, output)

    def test_root_no_subcommand_references_help(self) -> None:
        with mock.patch("sheetflow.cli.app.run_startup", return_value=False):
            result = self.runner.invoke(app, [])
        self.assertEqual(result.exit_code, 2)
        self.assertIn("sheetflow --help", result.output)

    def test_startup_exit_stops_before_commands(self) -> None:
        with mock.patch("sheetflow.cli.app.run_startup", return_value=True):
            with mock.patch("sheetflow.cli.commands.settle.run_settle") as run_mock:
                result = self.runner.invoke(app, ["--init-config", "settle", "sheet.json"])
        self.assertEqual(result.exit_code, 0)
        run_mock.assert_not_called()

    def test_settle_help_lists_options(self) -> None:
        with mock.patch("sheetflow.cli.app.run_startup", return_value=False):
            result = self.runner.invoke(app, ["settle", "--help"])
        self.assertEqual(result.exit_code, 0)
        output = _strip_ansi(result.output)
        for option in ("--width", "--measured", "--pdf", "--timeout-ms"):
            self.assertIn(option, output)

    def test_invalid_paper_is_rejected(self) -> None:
        with mock.patch("sheetflow.cli.app.run_startup", return_value=False):
            result = self.runner.invoke(app, ["--paper", "A3", "config"])
        self.assertEqual(result.exit_code, 2)
        self.assertIn("paper must be one of: A4, LETTER", _strip_ansi(result.output))

    def test_config_print_path(self) -> None:
        with mock.patch("sheetflow.cli.app.run_startup", return_value=False):
            result = self.runner.invoke(
                app, ["--config", str(DEFAULT_CONFIG_PATH), "config", "--print-path"]
            )
        self.assertEqual(result.exit_code, 0)
        self.assertIn(str(DEFAULT_CONFIG_PATH), _strip_ansi(result.output).replace("\n", ""))

    def test_config_shows_geometry(self) -> None:
        with mock.patch("sheetflow.cli.app.run_startup", return_value=False):
            result = self.runner.invoke(app, ["--config", str(PAPER_CONFIGS["A4"]), "config"])
        self.assertEqual(result.exit_code, 0)
        output = _strip_ansi(result.output)
        self.assertIn("986.46px", output)
        self.assertIn("canonical", output)

    def test_config_warns_about_broken_user_preset(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            user_dir = Path(tmpdir)
            (user_dir / "a4.toml").write_text("[page\n", encoding="utf-8")
            with mock.patch("sheetflow.cli.app.run_startup", return_value=False):
                with mock.patch(
                    "sheetflow.config.installer.user_config_home", return_value=user_dir
                ):
                    result = self.runner.invoke(
                        app, ["--config", str(PAPER_CONFIGS["A4"]), "config"]
                    )
        self.assertEqual(result.exit_code, 0)
        self.assertIn("Warning:", _strip_ansi(result.output))

    def test_config_and_paper_conflict(self) -> None:
        with mock.patch("sheetflow.cli.app.run_startup", return_value=False):
            result = self.runner.invoke(
                app, ["--config", str(DEFAULT_CONFIG_PATH), "--paper", "A4", "config"]
            )
        self.assertEqual(result.exit_code, 2)
        self.assertIn("use either --config or --paper", _strip_ansi(result.output))

    def test_settle_missing_sheet_is_actionable(self) -> None:
        with mock.patch("sheetflow.cli.app.run_startup", return_value=False):
            with mock.patch("sheetflow.cli.commands.settle.configure_logging"):
                result = self.runner.invoke(
                    app,
                    ["--config", str(DEFAULT_CONFIG_PATH), "settle", "/nonexistent/sheet.json"],
                )
        self.assertEqual(result.exit_code, 2)
        output = _strip_ansi(result.output)
        self.assertIn("Error:", output)
        self.assertIn("sheet file not found", output)

    def test_settle_passes_options_and_exit_code(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            sheet = Path(tmpdir) / "sheet.json"
            sheet.write_text(json.dumps({"items": [{"id": "stats"}]}), encoding="utf-8")
            for returned, expected_exit in ((0, 0), (1, 1)):
                with self.subTest(returned=returned):
                    with mock.patch("sheetflow.cli.app.run_startup", return_value=False):
                        with mock.patch(
                            "sheetflow.cli.commands.settle.run_settle", return_value=returned
                        ) as run_mock:
                            result = self.runner.invoke(
                                app,
                                [
                                    "--paper",
                                    "letter",
                                    "--quiet",
                                    "settle",
                                    str(sheet),
                                    "--width",
                                    "600",
                                    "--measured",
                                ],
                            )
                    self.assertEqual(result.exit_code, expected_exit)
                    kwargs = run_mock.call_args.kwargs
                    sheet_arg, options = run_mock.call_args.args
                    self.assertEqual(sheet_arg, sheet)
                    self.assertEqual(
                        options, GlobalOptions(config=None, paper="LETTER", quiet=True)
                    )
                    self.assertEqual(kwargs["width"], 600)
                    self.assertTrue(kwargs["measured"])
                    self.assertIsNone(kwargs["pdf"])


class TestSummaryRows(unittest.TestCase):
    def test_rows(self) -> None:
        rows = dict(
            summary_rows(
                {
                    "committed_height": 986.456,
                    "state": "idle-armed",
                    "pages": 2,
                    "overflow_warnings": ["a"],
                    "scale": 0.5,
                },
                sheet=Path("sheet.json"),
                paper="A4",
                measured=False,
            )
        )
        self.assertEqual(rows["Region height"], "986.46px")
        self.assertEqual(rows["Mode"], "canonical")
        self.assertEqual(rows["Pages"], "2")
        self.assertEqual(rows["Scale"], "0.50")
        self.assertEqual(rows["Overflow warnings"], "1")

    def test_rows_before_first_commit(self) -> None:
        rows = dict(
            summary_rows({}, sheet=Path("sheet.json"), paper="LETTER", measured=True)
        )
        self.assertEqual(rows["Region height"], "n/a")
        self.assertEqual(rows["Mode"], "measured")


if __name__ == "__main__":
    unittest.main()
