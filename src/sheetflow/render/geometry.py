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

from dataclasses import dataclass

from ..config.loader import ColumnSettings, PageSettings

MM_TO_PX = 96.0 / 25.4

# Tolerance for comparing a visible column width against the canonical one.
COLUMN_WIDTH_EPSILON = 0.5


def mm_to_px(value_mm: float) -> float:
    return float(value_mm) * MM_TO_PX


def round_column_width(width_px: float) -> float:
    return round(float(width_px) * 100.0) / 100.0


@dataclass(frozen=True)
class PageGeometry:
    width_px: float
    height_px: float
    top_margin_px: float
    bottom_margin_px: float
    left_margin_px: float
    right_margin_px: float
    column_count: int
    column_gap_px: float
    frame_border_px: float = 0.0

    @property
    def content_height_px(self) -> float:
        return self.height_px - self.top_margin_px - self.bottom_margin_px

    @property
    def canonical_region_height_px(self) -> float:
        return max(self.content_height_px, 0.0)

    @property
    def content_width_px(self) -> float:
        return self.width_px - self.left_margin_px - self.right_margin_px

    @property
    def column_width_px(self) -> float | None:
        if self.column_count <= 0:
            return None
        total_gap = self.column_gap_px * max(0, self.column_count - 1)
        usable = max(0.0, self.content_width_px - total_gap)
        if usable <= 0:
            return None
        return usable / self.column_count

    @property
    def measurement_column_width_px(self) -> float:
        width = self.column_width_px
        if width is None:
            return max(1.0, self.content_width_px)
        return width


def compute_page_geometry(page: PageSettings, columns: ColumnSettings) -> PageGeometry:
    return PageGeometry(
        width_px=mm_to_px(page.width_mm),
        height_px=mm_to_px(page.height_mm),
        top_margin_px=mm_to_px(page.margin_top_mm),
        bottom_margin_px=mm_to_px(page.margin_bottom_mm),
        left_margin_px=mm_to_px(page.margin_left_mm),
        right_margin_px=mm_to_px(page.margin_right_mm),
        column_count=columns.count,
        column_gap_px=columns.gutter_px,
        frame_border_px=page.frame_border_px,
    )


def width_matches_canonical(
    visible_width_px: float,
    canonical_width_px: float | None,
    *,
    epsilon: float = COLUMN_WIDTH_EPSILON,
) -> bool:
    if canonical_width_px is None:
        return False
    return abs(round_column_width(visible_width_px) - round_column_width(canonical_width_px)) <= (
        epsilon
    )
