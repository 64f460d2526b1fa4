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

from pathlib import Path

import typer

from ...core.clock import SystemClock
from ...core.document import load_sheet_document
from ...render.engine import ColumnFlowEngine
from ...render.geometry import compute_page_geometry
from ...render.session import SheetSession
from ...render.surface import PlaywrightSurface
from ..common import GlobalOptions, run_guarded
from ..startup import configure_logging, ensure_playwright_browsers
from ..ui import build_kv_table, console, console_err, panel

DEFAULT_TIMEOUT_MS = 10_000.0

_SETTLE_HELP = (
    "Lay out a sheet in headless Chromium and run the region-height loop until it settles.\n\n"
    "Examples:\n"
    "  sheetflow settle sheet.json\n"
    "  sheetflow settle sheet.json --width 600\n"
    "  sheetflow --paper LETTER settle sheet.json --measured --pdf out.pdf\n"
)


def register(app: typer.Typer) -> None:
    app.command(help=_SETTLE_HELP)(settle)


def settle(
    ctx: typer.Context,
    sheet: Path = typer.Argument(..., help="Sheet JSON document."),
    width: int | None = typer.Option(
        None,
        "--width",
        min=1,
        help="Viewport width in CSS pixels (defaults to the page width).",
        rich_help_panel="Layout",
    ),
    measured: bool = typer.Option(
        False,
        "--measured",
        help="Commit live column heights instead of the canonical page height.",
        rich_help_panel="Layout",
    ),
    pdf: Path | None = typer.Option(
        None,
        "--pdf",
        help="Write the settled pages to this PDF file.",
        rich_help_panel="Output",
    ),
    timeout_ms: float = typer.Option(
        DEFAULT_TIMEOUT_MS,
        "--timeout-ms",
        min=1.0,
        help="Give up if the loop has not settled after this many milliseconds.",
        rich_help_panel="Behavior",
    ),
) -> None:
    options = GlobalOptions.from_context(ctx)

    def _run() -> int:
        return run_settle(
            sheet,
            options,
            width=width,
            measured=measured,
            pdf=pdf,
            timeout_ms=timeout_ms,
        )

    run_guarded(_run, debug=options.debug)


def run_settle(
    sheet: Path,
    options: GlobalOptions,
    *,
    width: int | None,
    measured: bool,
    pdf: Path | None,
    timeout_ms: float,
) -> int:
    quiet = options.quiet
    debug = options.debug
    config = options.load_config()
    configure_logging("DEBUG" if debug else config.logging.level, debug=debug)
    items = load_sheet_document(sheet)
    ensure_playwright_browsers(quiet=quiet)

    geometry = compute_page_geometry(config.page, config.columns)
    clock = SystemClock()
    engine = ColumnFlowEngine()
    with PlaywrightSurface(
        geometry,
        viewport_width=width,
        page_gap_px=config.scale.page_gap_px,
    ) as surface:
        session = SheetSession(
            config,
            surface,
            engine,
            clock,
            items,
            canonical_mode=False if measured else None,
        )
        try:
            session.start()
            settled = clock.run_until_idle(timeout_ms=timeout_ms)
            if pdf is not None:
                surface.export_pdf(pdf)
            summary = session.summary()
        finally:
            session.close()

    if not quiet:
        rows = summary_rows(summary, sheet=sheet, paper=config.paper_size, measured=measured)
        if pdf is not None:
            rows.append(("PDF", str(pdf)))
        console.print(panel("Settle summary", build_kv_table(rows)))
        events = summary.get("events") or {}
        if events:
            event_rows = [(name, str(count)) for name, count in sorted(events.items())]
            console.print(panel("Diagnostic events", build_kv_table(event_rows)))
    if not settled:
        console_err.print(
            f"[yellow]Warning:[/yellow] layout did not settle within {timeout_ms:.0f}ms"
        )
        return 1
    return 0


def summary_rows(
    summary: dict[str, object],
    *,
    sheet: Path,
    paper: str,
    measured: bool,
) -> list[tuple[str, str]]:
    committed = summary.get("committed_height")
    warnings = summary.get("overflow_warnings") or []
    return [
        ("Sheet", str(sheet)),
        ("Paper", paper),
        ("Mode", "measured" if measured else "canonical"),
        ("Region height", "n/a" if committed is None else f"{committed:.2f}px"),
        ("Stabilizer", str(summary.get("state"))),
        ("Pages", str(summary.get("pages", 0))),
        ("Scale", f"{float(summary.get('scale', 1.0)):.2f}"),
        ("Overflow warnings", str(len(warnings))),
    ]
