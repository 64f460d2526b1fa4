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

"""Plain-text height estimates for items whose mirror cannot be measured."""

from __future__ import annotations

from typing import Sequence

from fpdf import FPDF

PX_PER_MM = 96.0 / 25.4
PT_TO_PX = 96.0 / 72.0
DEFAULT_LINE_MULTIPLIER = 1.2


def wrap_lines_to_width(pdf: FPDF, lines: Sequence[str], max_width: float) -> list[str]:
    wrapped: list[str] = []
    for line in lines:
        if not line:
            wrapped.append("")
            continue
        current = ""
        for word in line.split(" "):
            candidate = word if not current else f"{current} {word}"
            if pdf.get_string_width(candidate) <= max_width:
                current = candidate
                continue
            if current:
                wrapped.append(current)
                current = ""
            if pdf.get_string_width(word) <= max_width:
                current = word
                continue
            parts = _split_long_word(pdf, word, max_width)
            wrapped.extend(parts[:-1])
            current = parts[-1] if parts else ""
        if current:
            wrapped.append(current)
    return wrapped


def _split_long_word(pdf: FPDF, word: str, max_width: float) -> list[str]:
    parts: list[str] = []
    chunk = ""
    for ch in word:
        next_chunk = f"{chunk}{ch}"
        if chunk and pdf.get_string_width(next_chunk) > max_width:
            parts.append(chunk)
            chunk = ch
        else:
            chunk = next_chunk
    if chunk:
        parts.append(chunk)
    return parts


def font_line_height_px(size_pt: float, multiplier: float = DEFAULT_LINE_MULTIPLIER) -> float:
    return float(size_pt) * PT_TO_PX * multiplier


class TextHeightEstimator:
    """Estimate rendered height by wrapping text with core-font metrics."""

    def __init__(
        self,
        *,
        font: str = "helvetica",
        font_size_pt: float = 11.0,
        line_height_px: float | None = None,
    ) -> None:
        self._pdf = FPDF(unit="mm")
        self._pdf.set_font(font, size=font_size_pt)
        self.line_height_px = line_height_px or font_line_height_px(font_size_pt)

    def wrap(self, text: str, width_px: float) -> list[str]:
        width_mm = max(1.0, float(width_px)) / PX_PER_MM
        lines = _normalize_text(text).splitlines()
        return wrap_lines_to_width(self._pdf, lines, width_mm)

    def estimate(self, text: str, width_px: float) -> float:
        if not text or not text.strip():
            return 0.0
        return len(self.wrap(text, width_px)) * self.line_height_px


def _normalize_text(text: str) -> str:
    # Core fonts only cover latin-1.
    return text.replace("\t", "    ").encode("latin-1", "replace").decode("latin-1")
