#!/usr/bin/env python3
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

from __future__ import annotations

import importlib.metadata
import inspect
import logging
import os
import subprocess
import sys
from pathlib import Path

import playwright
from platformdirs import user_cache_dir
from playwright.sync_api import sync_playwright
from rich.logging import RichHandler
from rich.traceback import install as install_rich_traceback

from ..config import init_user_config, user_config_needs_init
from .ui import configure_ui, console, console_err, progress

_PLAYWRIGHT_SKIP_ENV = "SHEETFLOW_SKIP_PLAYWRIGHT_INSTALL"
_PLAYWRIGHT_BROWSERS_ENV = "PLAYWRIGHT_BROWSERS_PATH"
_LOGGER_NAME = "sheetflow"


def run_startup(
    *,
    quiet: bool,
    no_color: bool,
    debug: bool,
    init_config: bool,
) -> bool:
    configure_ui(no_color=no_color)
    configure_logging("DEBUG" if debug else "WARNING", debug=debug)
    if debug:
        install_rich_traceback(show_locals=True)
    if init_config:
        config_dir = init_user_config()
        console.print(f"User config ready at {config_dir}")
        return True
    if user_config_needs_init():
        config_dir = init_user_config()
        if not quiet:
            console.print(f"[dim]Initialized user config at {config_dir}[/dim]")
    return False


def configure_logging(level: str = "WARNING", *, debug: bool = False) -> logging.Logger:
    """Route the ``sheetflow`` logger tree through a single rich handler."""
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(
        console=console_err,
        show_path=debug,
        rich_tracebacks=debug,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    logger.propagate = False
    return logger


def ensure_playwright_browsers(*, quiet: bool = True) -> None:
    if os.environ.get(_PLAYWRIGHT_SKIP_ENV):
        return
    _configure_playwright_env()
    if _playwright_chromium_installed():
        return
    with progress(quiet=quiet) as progress_bar:
        if progress_bar is not None:
            progress_bar.add_task("Initializing Playwright (Chromium browser)...", total=None)
        _playwright_install()


def _configure_playwright_env() -> None:
    if os.environ.get(_PLAYWRIGHT_BROWSERS_ENV):
        return
    cache_dir = user_cache_dir("ms-playwright", appauthor=False)
    os.environ[_PLAYWRIGHT_BROWSERS_ENV] = cache_dir


def _playwright_chromium_installed() -> bool:
    try:
        with sync_playwright() as playwright_instance:
            executable = Path(playwright_instance.chromium.executable_path)
    except (OSError, RuntimeError, playwright.sync_api.Error):
        return False
    return executable.exists()


def _playwright_driver_command() -> tuple[str, str]:
    driver_path = Path(inspect.getfile(playwright)).parent / "driver"
    cli_path = str(driver_path / "package" / "cli.js")
    if sys.platform == "win32":
        node_path = os.getenv("PLAYWRIGHT_NODEJS_PATH", str(driver_path / "node.exe"))
    else:
        node_path = os.getenv("PLAYWRIGHT_NODEJS_PATH", str(driver_path / "node"))
    return node_path, cli_path


def _playwright_install() -> None:
    driver_executable, driver_cli = _playwright_driver_command()
    env = os.environ.copy()
    env["PW_LANG_NAME"] = "python"
    env["PW_LANG_NAME_VERSION"] = f"{sys.version_info.major}.{sys.version_info.minor}"
    env["PW_CLI_DISPLAY_VERSION"] = importlib.metadata.version("playwright")
    result = subprocess.run(
        [driver_executable, driver_cli, "install", "chromium"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        env=env,
        check=False,
    )
    if result.returncode != 0:
        detail = result.stderr.strip() or result.stdout.strip() or "unknown error"
        raise RuntimeError(f"Playwright install failed: {detail}")
