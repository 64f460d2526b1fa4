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

"""Layout engine contract and a small first-fit reference engine.

The coordinator only needs three things from an engine: it takes a region
height plus measured item heights, it returns a plan, and it may report that
a newer plan is still being computed (``has_pending_layout``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol

from .geometry import PageGeometry

COMPONENT_VERTICAL_SPACING_PX = 12.0
DEFAULT_COMPONENT_HEIGHT_PX = 200.0


@dataclass(frozen=True)
class LayoutConfig:
    region_height_px: float
    column_count: int
    geometry: PageGeometry
    measurements: Mapping[str, float]
    order: tuple[str, ...] = ()


@dataclass(frozen=True)
class PlacedItem:
    key: str
    top_px: float
    height_px: float
    estimated: bool = False


@dataclass(frozen=True)
class ColumnPlan:
    index: int
    items: tuple[PlacedItem, ...] = ()

    @property
    def used_height_px(self) -> float:
        if not self.items:
            return 0.0
        last = self.items[-1]
        return last.top_px + last.height_px


@dataclass(frozen=True)
class PagePlan:
    index: int
    columns: tuple[ColumnPlan, ...] = ()


@dataclass(frozen=True)
class LayoutResult:
    pages: tuple[PagePlan, ...] = ()
    overflow_warnings: tuple[str, ...] = ()
    has_pending_layout: bool = False
    region_height_px: float | None = None

    @property
    def page_count(self) -> int:
        return len(self.pages)


class LayoutEngine(Protocol):
    def compute(self, config: LayoutConfig) -> LayoutResult: ...


class ColumnFlowEngine:
    """First-fit column stacking.

    With ``two_phase`` enabled, :meth:`compute` only stages the new plan and
    reports it as pending; the previous plan stays visible until
    :meth:`settle` commits the staged one.
    """

    def __init__(
        self,
        *,
        spacing_px: float = COMPONENT_VERTICAL_SPACING_PX,
        default_height_px: float = DEFAULT_COMPONENT_HEIGHT_PX,
        two_phase: bool = True,
    ) -> None:
        self.spacing_px = spacing_px
        self.default_height_px = default_height_px
        self.two_phase = two_phase
        self._committed = LayoutResult()
        self._staged: LayoutResult | None = None
        self.compute_calls: list[float] = []

    @property
    def busy(self) -> bool:
        return self._staged is not None

    @property
    def result(self) -> LayoutResult:
        return self._committed

    def compute(self, config: LayoutConfig) -> LayoutResult:
        if config.region_height_px <= 0:
            raise ValueError("region height must be positive")
        self.compute_calls.append(config.region_height_px)
        planned = self._plan(config)
        if not self.two_phase:
            self._committed = planned
            return planned
        self._staged = planned
        return LayoutResult(
            pages=self._committed.pages,
            overflow_warnings=self._committed.overflow_warnings,
            has_pending_layout=True,
            region_height_px=self._committed.region_height_px,
        )

    def settle(self) -> LayoutResult:
        if self._staged is not None:
            self._committed = self._staged
            self._staged = None
        return self._committed

    def _plan(self, config: LayoutConfig) -> LayoutResult:
        region = config.region_height_px
        column_count = max(1, config.column_count)
        order = config.order or tuple(config.measurements)
        pages: list[list[list[PlacedItem]]] = [[[] for _ in range(column_count)]]
        warnings: list[str] = []
        column = 0
        cursor = 0.0
        for key in order:
            measured = config.measurements.get(key)
            height = self.default_height_px if measured is None else measured
            top = cursor + self.spacing_px if cursor > 0 else 0.0
            if cursor > 0 and top + height > region:
                column += 1
                if column >= column_count:
                    pages.append([[] for _ in range(column_count)])
                    column = 0
                top = 0.0
            if height > region:
                warnings.append(
                    f"{key} is {height:.1f}px tall, taller than the {region:.1f}px region"
                )
            pages[-1][column].append(
                PlacedItem(key=key, top_px=top, height_px=height, estimated=measured is None)
            )
            cursor = top + height
        return LayoutResult(
            pages=tuple(
                PagePlan(
                    index=page_index,
                    columns=tuple(
                        ColumnPlan(index=column_index, items=tuple(items))
                        for column_index, items in enumerate(columns)
                    ),
                )
                for page_index, columns in enumerate(pages)
            ),
            overflow_warnings=tuple(warnings),
            has_pending_layout=False,
            region_height_px=region,
        )
