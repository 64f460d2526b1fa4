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

import typer

from ...config import check_user_presets, user_config_home
from ...render.geometry import compute_page_geometry
from ..common import GlobalOptions, run_guarded
from ..ui import build_kv_table, console, console_err, panel

_CONFIG_HELP = (
    "Show the active TOML config and the page geometry it produces.\n\n"
    "Examples:\n"
    "  sheetflow config\n"
    "  sheetflow --paper LETTER config\n"
    "  sheetflow config --print-path\n"
)


def register(app: typer.Typer) -> None:
    app.command(help=_CONFIG_HELP)(config)


def config(
    ctx: typer.Context,
    print_path: bool = typer.Option(
        False,
        "--print-path",
        help="Print the resolved config path and exit.",
        rich_help_panel="Behavior",
    ),
) -> None:
    options = GlobalOptions.from_context(ctx)

    def _run() -> None:
        path = options.config_path()
        if print_path:
            console.print(str(path))
            return
        app_config = options.load_config()
        geometry = compute_page_geometry(app_config.page, app_config.columns)
        column_width = geometry.column_width_px
        rows = [
            ("Config", str(path)),
            ("User config", str(user_config_home())),
            ("Paper", app_config.paper_size),
            ("Page", f"{geometry.width_px:.2f} x {geometry.height_px:.2f}px"),
            ("Region height", f"{geometry.canonical_region_height_px:.2f}px"),
            ("Columns", str(geometry.column_count)),
            ("Column width", "n/a" if column_width is None else f"{column_width:.2f}px"),
            ("Mode", "canonical" if app_config.stabilizer.canonical_mode else "measured"),
            ("Settle delay", f"{app_config.stabilizer.settle_delay_ms:.0f}ms"),
        ]
        console.print(panel("Configuration", build_kv_table(rows)))
        for status in check_user_presets():
            if not status.ok:
                console_err.print(f"[yellow]Warning:[/yellow] {status.error}")

    run_guarded(_run, debug=options.debug)
