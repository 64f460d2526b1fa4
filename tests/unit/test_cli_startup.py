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

import logging
import os
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from rich.logging import RichHandler

from sheetflow.cli import startup


class TestCliStartup(unittest.TestCase):
    def test_run_startup_flow_matrix(self) -> None:
        cases = (
            {
                "name": "init-config-exits",
                "init_config": True,
                "needs_init": False,
                "quiet": False,
                "expect_result": True,
                "expect_init_calls": 1,
                "expect_needs_calls": 0,
                "expect_print_calls": 1,
            },
            {
                "name": "missing-config-initialized",
                "init_config": False,
                "needs_init": True,
                "quiet": True,
                "expect_result": False,
                "expect_init_calls": 1,
                "expect_needs_calls": 1,
                "expect_print_calls": 0,
            },
            {
                "name": "config-already-present",
                "init_config": False,
                "needs_init": False,
                "quiet": True,
                "expect_result": False,
                "expect_init_calls": 0,
                "expect_needs_calls": 1,
                "expect_print_calls": 0,
            },
        )
        for case in cases:
            with self.subTest(case=case["name"]):
                with mock.patch.object(startup, "configure_ui") as configure_mock:
                    with mock.patch.object(startup, "configure_logging") as logging_mock:
                        with mock.patch.object(
                            startup,
                            "init_user_config",
                            return_value="/tmp/cfg",
                        ) as init_mock:
                            with mock.patch.object(
                                startup,
                                "user_config_needs_init",
                                return_value=case["needs_init"],
                            ) as needs_mock:
                                with mock.patch.object(startup.console, "print") as print_mock:
                                    result = startup.run_startup(
                                        quiet=bool(case["quiet"]),
                                        no_color=True,
                                        debug=False,
                                        init_config=bool(case["init_config"]),
                                    )
                self.assertEqual(result, case["expect_result"])
                configure_mock.assert_called_once_with(no_color=True)
                logging_mock.assert_called_once_with("WARNING", debug=False)
                self.assertEqual(init_mock.call_count, case["expect_init_calls"])
                self.assertEqual(needs_mock.call_count, case["expect_needs_calls"])
                self.assertEqual(print_mock.call_count, case["expect_print_calls"])

    def test_run_startup_debug_and_auto_init_prints_message(self) -> None:
        with mock.patch.object(startup, "configure_ui"):
            with mock.patch.object(startup, "configure_logging") as logging_mock:
                with mock.patch.object(startup, "install_rich_traceback") as traceback_mock:
                    with mock.patch.object(startup, "user_config_needs_init", return_value=True):
                        with mock.patch.object(
                            startup, "init_user_config", return_value="/tmp/cfg"
                        ):
                            with mock.patch.object(startup.console, "print") as print_mock:
                                result = startup.run_startup(
                                    quiet=False,
                                    no_color=True,
                                    debug=True,
                                    init_config=False,
                                )
        self.assertFalse(result)
        logging_mock.assert_called_once_with("DEBUG", debug=True)
        traceback_mock.assert_called_once_with(show_locals=True)
        self.assertEqual(print_mock.call_count, 1)
        self.assertIn("Initialized user config", str(print_mock.call_args[0][0]))


class TestConfigureLogging(unittest.TestCase):
    def tearDown(self) -> None:
        logger = logging.getLogger("sheetflow")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
        logger.propagate = True

    def test_single_rich_handler_and_level(self) -> None:
        startup.configure_logging("INFO")
        logger = startup.configure_logging("debug", debug=True)
        rich_handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
        self.assertEqual(len(rich_handlers), 1)
        self.assertEqual(logger.level, logging.DEBUG)
        self.assertFalse(logger.propagate)

    def test_unknown_level_falls_back_to_warning(self) -> None:
        logger = startup.configure_logging("chatty")
        self.assertEqual(logger.level, logging.WARNING)


class TestPlaywrightBootstrap(unittest.TestCase):
    def test_skip_env_short_circuits(self) -> None:
        with mock.patch.dict(os.environ, {"SHEETFLOW_SKIP_PLAYWRIGHT_INSTALL": "1"}):
            with mock.patch.object(startup, "_playwright_chromium_installed") as installed:
                startup.ensure_playwright_browsers()
        installed.assert_not_called()

    def test_installs_when_chromium_missing(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=False):
            os.environ.pop("SHEETFLOW_SKIP_PLAYWRIGHT_INSTALL", None)
            with mock.patch.object(startup, "_configure_playwright_env"):
                with mock.patch.object(
                    startup, "_playwright_chromium_installed", return_value=False
                ):
                    with mock.patch.object(startup, "_playwright_install") as install_mock:
                        startup.ensure_playwright_browsers(quiet=True)
        install_mock.assert_called_once_with()

    def test_configure_playwright_env_respects_existing_path(self) -> None:
        with mock.patch.dict(
            os.environ, {startup._PLAYWRIGHT_BROWSERS_ENV: "/already"}, clear=False
        ):
            with mock.patch.object(startup, "user_cache_dir") as cache_mock:
                startup._configure_playwright_env()
                self.assertEqual(os.environ[startup._PLAYWRIGHT_BROWSERS_ENV], "/already")
        cache_mock.assert_not_called()

    def test_configure_playwright_env_sets_default_cache_path(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=False):
            os.environ.pop(startup._PLAYWRIGHT_BROWSERS_ENV, None)
            with mock.patch.object(startup, "user_cache_dir", return_value="/cache/ms-playwright"):
                startup._configure_playwright_env()
                self.assertEqual(
                    os.environ[startup._PLAYWRIGHT_BROWSERS_ENV],
                    "/cache/ms-playwright",
                )

    def test_playwright_driver_command_platform_variants_and_override(self) -> None:
        with mock.patch.object(startup.inspect, "getfile", return_value="/opt/pw/__init__.py"):
            with mock.patch.object(startup.sys, "platform", "darwin"):
                with mock.patch.dict(os.environ, {}, clear=False):
                    os.environ.pop("PLAYWRIGHT_NODEJS_PATH", None)
                    node_path, cli_path = startup._playwright_driver_command()
        self.assertEqual(Path(node_path), Path("/opt/pw") / "driver" / "node")
        self.assertEqual(Path(cli_path), Path("/opt/pw") / "driver" / "package" / "cli.js")

        with mock.patch.object(startup.inspect, "getfile", return_value="/opt/pw/__init__.py"):
            with mock.patch.object(startup.sys, "platform", "win32"):
                with mock.patch.dict(
                    os.environ, {"PLAYWRIGHT_NODEJS_PATH": "C:/node.exe"}, clear=False
                ):
                    node_path, _cli_path = startup._playwright_driver_command()
        self.assertEqual(node_path, "C:/node.exe")

    def test_playwright_chromium_installed_success_and_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            executable = Path(tmpdir) / "chromium"
            executable.write_text("bin", encoding="utf-8")
            fake_pw = mock.MagicMock()
            fake_pw.chromium.executable_path = str(executable)
            fake_context = mock.MagicMock()
            fake_context.__enter__.return_value = fake_pw
            fake_context.__exit__.return_value = False
            with mock.patch.object(startup, "sync_playwright", return_value=fake_context):
                self.assertTrue(startup._playwright_chromium_installed())

        with mock.patch.object(startup, "sync_playwright", side_effect=RuntimeError("boom")):
            self.assertFalse(startup._playwright_chromium_installed())

    def test_playwright_install_failure_raises(self) -> None:
        failed = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="no disk")
        with mock.patch.object(startup, "_playwright_driver_command", return_value=("n", "c")):
            with mock.patch.object(startup.importlib.metadata, "version", return_value="1.0"):
                with mock.patch.object(startup.subprocess, "run", return_value=failed):
                    with self.assertRaises(RuntimeError) as ctx:
                        startup._playwright_install()
        self.assertIn("no disk", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
