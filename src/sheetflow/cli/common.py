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

"""Options shared by every subcommand, read back from the root context."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.traceback import install as install_rich_traceback

from ..config import PAPER_CONFIGS, AppConfig, load_app_config, resolve_config_path
from ..core.errors import SheetflowError
from .ui import console_err

# Config problems and surface failures are user errors; anything else is a bug.
_USER_ERRORS = (OSError, RuntimeError, ValueError, SheetflowError)


@dataclass(frozen=True)
class GlobalOptions:
    config: str | None = None
    paper: str | None = None
    debug: bool = False
    quiet: bool = False

    @classmethod
    def from_context(cls, ctx: typer.Context) -> GlobalOptions:
        obj = ctx.find_root().obj
        return obj if isinstance(obj, cls) else cls()

    def config_path(self) -> Path:
        return resolve_config_path(self.config, paper_size=self.paper)

    def load_config(self) -> AppConfig:
        return load_app_config(self.config_path(), paper_size=self.paper)


def parse_paper(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().upper()
    if normalized not in PAPER_CONFIGS:
        raise typer.BadParameter(f"paper must be one of: {', '.join(sorted(PAPER_CONFIGS))}")
    return normalized


def run_guarded(func: Callable[[], int | None], *, debug: bool) -> None:
    """Map user errors to exit code 2 and a non-zero return to that exit code."""
    if debug:
        install_rich_traceback(show_locals=True)
    try:
        code = func()
    except _USER_ERRORS as exc:
        if debug:
            raise
        console_err.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=2) from exc
    if code:
        raise typer.Exit(code=code)
