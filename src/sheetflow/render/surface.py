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

"""Rendering surfaces.

:class:`RenderSurface` is what the coordinator needs from a renderer: font
and theme hooks for the readiness gate, hidden content mirrors laid out at the
canonical column width, and live column metrics for the visible page.
:class:`PlaywrightSurface` implements it on headless Chromium.
"""

from __future__ import annotations

import atexit
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol, Sequence

from playwright.sync_api import Browser, Error as PlaywrightError, Page, Playwright, sync_playwright

from ..core.errors import FontLoadError, SurfaceUnavailableError, ThemeLoadError
from ..core.models import ContentItem
from .engine import LayoutResult
from .geometry import PageGeometry
from .templating import SHEET_TEMPLATE_PATH, render_template

logger = logging.getLogger(__name__)

_PLAYWRIGHT: Playwright | None = None
_BROWSER: Browser | None = None


@dataclass(frozen=True)
class MirrorReading:
    key: str
    height: float
    settled: bool = True


@dataclass(frozen=True)
class ColumnMetrics:
    column_client_height: float = 0.0
    frame_client_height: float = 0.0
    column_scroll_height: float = 0.0
    frame_scroll_height: float = 0.0
    column_offset_height: float = 0.0
    column_rect_height: float = 0.0
    column_width: float = 0.0


class RenderSurface(Protocol):
    @property
    def has_font_api(self) -> bool: ...

    def load_fonts(self, faces: Sequence[str]) -> None: ...

    def apply_stylesheets(self, stylesheets: Sequence[str]) -> None: ...

    def next_paint(self) -> None: ...

    def mount_mirrors(self, items: Sequence[ContentItem], width_px: float) -> None: ...

    def measure_mirrors(self, keys: Sequence[str]) -> Mapping[str, MirrorReading | None]: ...

    def show_plan(self, result: LayoutResult, region_height_px: float) -> None: ...

    def apply_scale(self, scale: float) -> None: ...

    def column_metrics(self) -> ColumnMetrics | None: ...

    def container_width(self) -> tuple[float, float]: ...


def _shutdown_playwright() -> None:
    global _BROWSER, _PLAYWRIGHT
    browser = _BROWSER
    playwright = _PLAYWRIGHT
    _BROWSER = None
    _PLAYWRIGHT = None
    if browser is not None:
        browser.close()
    if playwright is not None:
        playwright.stop()


def _get_browser() -> Browser:
    global _BROWSER, _PLAYWRIGHT
    if _BROWSER is not None:
        return _BROWSER
    _PLAYWRIGHT = sync_playwright().start()
    _BROWSER = _PLAYWRIGHT.chromium.launch()
    atexit.register(_shutdown_playwright)
    return _BROWSER


_HAS_FONT_API_JS = "() => !!(document.fonts && typeof document.fonts.load === 'function')"

_LOAD_FONTS_JS = """
async (faces) => {
  const results = await Promise.all(faces.map((face) => document.fonts.load(face)));
  await document.fonts.ready;
  const missing = faces.filter((face, index) => results[index].length === 0);
  return { status: document.fonts.status, missing };
}
"""

_NEXT_PAINT_JS = """
() => new Promise((resolve) => {
  requestAnimationFrame(() => requestAnimationFrame(() => resolve(true)));
})
"""

_MOUNT_MIRRORS_JS = """
([items, width]) => {
  const layer = document.getElementById('measurement-layer');
  layer.replaceChildren();
  layer.style.width = `${width}px`;
  for (const item of items) {
    const mirror = document.createElement('div');
    mirror.className = 'mirror';
    mirror.dataset.key = item.key;
    mirror.style.width = `${width}px`;
    if (item.html) {
      mirror.innerHTML = item.html;
    } else {
      mirror.textContent = item.text;
    }
    layer.appendChild(mirror);
  }
  return layer.children.length;
}
"""

_MEASURE_MIRRORS_JS = """
(keys) => {
  const layer = document.getElementById('measurement-layer');
  if (!layer) {
    return null;
  }
  const out = {};
  for (const key of keys) {
    const mirror = layer.querySelector(`.mirror[data-key="${CSS.escape(key)}"]`);
    if (!mirror) {
      out[key] = null;
      continue;
    }
    const images = Array.from(mirror.querySelectorAll('img'));
    const settled = images.every((img) => img.complete);
    out[key] = { height: mirror.getBoundingClientRect().height, settled };
  }
  return out;
}
"""

_SHOW_PLAN_JS = """
([pages, regionHeight]) => {
  const canvas = document.getElementById('canvas');
  const template = document.getElementById('page-template');
  const layer = document.getElementById('measurement-layer');
  canvas.replaceChildren();
  for (const page of pages) {
    const node = template.content.firstElementChild.cloneNode(true);
    const frame = node.querySelector('.sheet-frame');
    frame.style.height = `${regionHeight}px`;
    for (const column of page.columns) {
      const col = document.createElement('div');
      col.className = 'sheet-column';
      for (const key of column) {
        const mirror = layer.querySelector(`.mirror[data-key="${CSS.escape(key)}"]`);
        const block = document.createElement('div');
        block.className = 'sheet-item';
        block.dataset.key = key;
        if (mirror) {
          block.innerHTML = mirror.innerHTML;
        }
        col.appendChild(block);
      }
      frame.appendChild(col);
    }
    canvas.appendChild(node);
  }
  return canvas.children.length;
}
"""

_APPLY_SCALE_JS = """
(scale) => {
  const canvas = document.getElementById('canvas');
  canvas.style.transform = `scale(${scale})`;
}
"""

_COLUMN_METRICS_JS = """
() => {
  const frame = document.querySelector('#canvas .sheet-frame');
  const column = frame ? frame.querySelector('.sheet-column') : null;
  if (!frame || !column) {
    return null;
  }
  const rect = column.getBoundingClientRect();
  return {
    column_client_height: column.clientHeight,
    frame_client_height: frame.clientHeight,
    column_scroll_height: column.scrollHeight,
    frame_scroll_height: frame.scrollHeight,
    column_offset_height: column.offsetHeight,
    column_rect_height: rect.height,
    column_width: rect.width,
  };
}
"""

_CONTAINER_WIDTH_JS = """
() => {
  const node = document.getElementById('viewport');
  const style = window.getComputedStyle(node);
  const padding = (parseFloat(style.paddingLeft) || 0) + (parseFloat(style.paddingRight) || 0);
  return [node.getBoundingClientRect().width, padding];
}
"""


class PlaywrightSurface:
    """Sheet page rendered in a headless Chromium tab."""

    def __init__(
        self,
        geometry: PageGeometry,
        *,
        viewport_width: int | None = None,
        template_path: str | Path = SHEET_TEMPLATE_PATH,
        page_gap_px: float = 48.0,
        browser: Browser | None = None,
    ) -> None:
        self._geometry = geometry
        self._page_gap_px = page_gap_px
        self._viewport_width = viewport_width or int(round(geometry.width_px + 32))
        self._template_path = Path(template_path)
        self._browser = browser
        self._page: Page | None = None

    def __enter__(self) -> PlaywrightSurface:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        if self._page is not None:
            return
        browser = self._browser or _get_browser()
        page = browser.new_page(
            viewport={
                "width": self._viewport_width,
                "height": int(round(self._geometry.height_px)),
            }
        )
        page.set_content(self._render_html(), wait_until="load")
        self._page = page

    def close(self) -> None:
        page = self._page
        self._page = None
        if page is not None and not page.is_closed():
            page.close()

    @property
    def has_font_api(self) -> bool:
        return bool(self._evaluate(_HAS_FONT_API_JS))

    def load_fonts(self, faces: Sequence[str]) -> None:
        try:
            result = self._require_page().evaluate(_LOAD_FONTS_JS, list(faces))
        except PlaywrightError as exc:
            raise FontLoadError(str(exc)) from exc
        missing = result.get("missing") or []
        if missing:
            raise FontLoadError(f"font faces did not load: {', '.join(missing)}")

    def apply_stylesheets(self, stylesheets: Sequence[str]) -> None:
        page = self._require_page()
        for sheet in stylesheets:
            try:
                if sheet.startswith(("http://", "https://", "file://")):
                    page.add_style_tag(url=sheet)
                else:
                    path = Path(sheet).expanduser()
                    if not path.is_file():
                        raise ThemeLoadError(f"stylesheet not found: {path}")
                    page.add_style_tag(path=str(path))
            except PlaywrightError as exc:
                raise ThemeLoadError(f"{sheet}: {exc}") from exc

    def next_paint(self) -> None:
        self._evaluate(_NEXT_PAINT_JS)

    def mount_mirrors(self, items: Sequence[ContentItem], width_px: float) -> None:
        payload = [{"key": item.key, "html": item.html, "text": item.text} for item in items]
        self._evaluate(_MOUNT_MIRRORS_JS, [payload, width_px])

    def measure_mirrors(self, keys: Sequence[str]) -> dict[str, MirrorReading | None]:
        raw = self._evaluate(_MEASURE_MIRRORS_JS, list(keys))
        if raw is None:
            raise SurfaceUnavailableError("measurement layer is not mounted")
        readings: dict[str, MirrorReading | None] = {}
        for key in keys:
            entry = raw.get(key)
            if entry is None:
                readings[key] = None
                continue
            readings[key] = MirrorReading(
                key=key,
                height=float(entry["height"]),
                settled=bool(entry["settled"]),
            )
        return readings

    def show_plan(self, result: LayoutResult, region_height_px: float) -> None:
        pages = [
            {"columns": [[item.key for item in column.items] for column in page.columns]}
            for page in result.pages
        ]
        self._evaluate(_SHOW_PLAN_JS, [pages, region_height_px])

    def apply_scale(self, scale: float) -> None:
        self._evaluate(_APPLY_SCALE_JS, scale)

    def column_metrics(self) -> ColumnMetrics | None:
        raw = self._evaluate(_COLUMN_METRICS_JS)
        if raw is None:
            return None
        return ColumnMetrics(**{key: float(value) for key, value in raw.items()})

    def container_width(self) -> tuple[float, float]:
        width, padding = self._evaluate(_CONTAINER_WIDTH_JS)
        return float(width), float(padding)

    def set_viewport_width(self, width: int) -> None:
        self._viewport_width = int(width)
        self._require_page().set_viewport_size(
            {"width": self._viewport_width, "height": int(round(self._geometry.height_px))}
        )

    def export_pdf(self, output_path: str | Path) -> Path:
        output_path = Path(output_path)
        page = self._require_page()
        page.emulate_media(media="print")
        try:
            page.pdf(
                path=str(output_path),
                print_background=True,
                prefer_css_page_size=True,
                margin={"top": "0mm", "right": "0mm", "bottom": "0mm", "left": "0mm"},
            )
        finally:
            page.emulate_media(media="screen")
        return output_path

    def _render_html(self) -> str:
        geometry = self._geometry
        context: dict[str, object] = {
            "page_width_px": geometry.width_px,
            "page_height_px": geometry.height_px,
            "margin_top_px": geometry.top_margin_px,
            "margin_bottom_px": geometry.bottom_margin_px,
            "margin_left_px": geometry.left_margin_px,
            "margin_right_px": geometry.right_margin_px,
            "column_count": geometry.column_count,
            "column_gap_px": geometry.column_gap_px,
            "column_width_px": geometry.measurement_column_width_px,
            "frame_border_px": geometry.frame_border_px,
            "region_height_px": geometry.canonical_region_height_px,
            "page_gap_px": self._page_gap_px,
        }
        return render_template(self._template_path, context)

    def _require_page(self) -> Page:
        page = self._page
        if page is None or page.is_closed():
            raise SurfaceUnavailableError("rendering surface is not open")
        return page

    def _evaluate(self, script: str, arg: object = None):
        page = self._require_page()
        try:
            if arg is None:
                return page.evaluate(script)
            return page.evaluate(script, arg)
        except PlaywrightError as exc:
            if page.is_closed():
                raise SurfaceUnavailableError(str(exc)) from exc
            raise
