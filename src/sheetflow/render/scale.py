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

from typing import Callable

from ..core.diagnostics import DiagnosticsChannel

MIN_SCALE = 0.35
MAX_SCALE = 2.5
SCALE_EPSILON = 0.01
PAGE_GAP_PX = 48.0

ScaleListener = Callable[[float], None]


def clamp(value: float, minimum: float, maximum: float) -> float:
    return min(max(value, minimum), maximum)


class ScaleController:
    """Fit the canonical page into the available viewport width.

    Scaling is purely visual; it never feeds back into region heights.
    """

    def __init__(
        self,
        page_width_px: float,
        *,
        min_scale: float = MIN_SCALE,
        max_scale: float = MAX_SCALE,
        threshold: float = SCALE_EPSILON,
        page_gap_px: float = PAGE_GAP_PX,
        diagnostics: DiagnosticsChannel | None = None,
    ) -> None:
        if page_width_px <= 0:
            raise ValueError("page width must be positive")
        self._page_width_px = float(page_width_px)
        self.min_scale = min_scale
        self.max_scale = max_scale
        self.threshold = threshold
        self.page_gap_px = page_gap_px
        self._diagnostics = diagnostics
        self._scale = 1.0
        self._listeners: list[ScaleListener] = []

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def page_width_px(self) -> float:
        return self._page_width_px

    def subscribe(self, listener: ScaleListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def observe_width(self, width_px: float, *, padding_px: float = 0.0) -> bool:
        """Recompute the scale for a container width; True if it changed."""
        if width_px <= 0:
            return False
        available = width_px - padding_px
        target = clamp(available / self._page_width_px, self.min_scale, self.max_scale)
        if abs(target - self._scale) <= self.threshold:
            return False
        self._scale = target
        if self._diagnostics is not None:
            self._diagnostics.emit("scale", "scale", scale=target, width=width_px)
        for listener in list(self._listeners):
            listener(target)
        return True

    def set_page_width(self, page_width_px: float) -> None:
        if page_width_px <= 0:
            raise ValueError("page width must be positive")
        self._page_width_px = float(page_width_px)

    def total_scaled_height(self, page_count: int, page_height_px: float) -> float:
        if page_count <= 0:
            return 0.0
        unscaled = page_count * page_height_px + (page_count - 1) * self.page_gap_px
        return unscaled * self._scale
