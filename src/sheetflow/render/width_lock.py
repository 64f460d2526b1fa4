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

import logging
from typing import Callable

from ..core.clock import Clock, Timer
from ..core.diagnostics import DiagnosticsChannel
from .geometry import COLUMN_WIDTH_EPSILON, round_column_width, width_matches_canonical

logger = logging.getLogger(__name__)

CANONICAL_WIDTH_FORCED_LOCK_TIMEOUT_MS = 1500.0


class CanonicalWidthLock:
    """Hold region-height updates until the visible column has the canonical width.

    The visible width (unscaled) must match the canonical column width within
    ``epsilon`` pixels. A mismatch that outlasts ``timeout_ms`` forces the lock
    so a stubborn layout cannot stall the stabilizer forever.
    """

    HOLD_REASON = "canonical-width-mismatch"

    def __init__(
        self,
        clock: Clock,
        *,
        hold: Callable[[str], None],
        release: Callable[[str], None],
        canonical_width_px: float | None,
        timeout_ms: float = CANONICAL_WIDTH_FORCED_LOCK_TIMEOUT_MS,
        epsilon: float = COLUMN_WIDTH_EPSILON,
        diagnostics: DiagnosticsChannel | None = None,
    ) -> None:
        self._hold = hold
        self._release = release
        self._canonical = canonical_width_px
        self._timeout_ms = timeout_ms
        self._epsilon = epsilon
        self._diagnostics = diagnostics
        self._locked = False
        self._forced = False
        self._last_width: float | None = None
        self._timer = Timer(clock, self._force)

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def forced(self) -> bool:
        return self._forced

    def observe(self, visible_width_px: float, scale: float) -> bool:
        """Compare the visible column width; returns whether the lock is held."""
        if self._canonical is None or visible_width_px <= 0:
            return self._locked
        unscaled = round_column_width(visible_width_px / (scale if scale > 0 else 1.0))
        canonical = round_column_width(self._canonical)
        self._last_width = unscaled
        if width_matches_canonical(unscaled, canonical, epsilon=self._epsilon):
            self._timer.cancel()
            self._forced = False
            if not self._locked:
                self._locked = True
                self._emit("width-lock", width=unscaled, canonical=canonical)
            self._release(self.HOLD_REASON)
            return True
        if self._forced:
            return True
        if self._locked:
            self._locked = False
            self._emit("width-mismatch", width=unscaled, canonical=canonical)
        self._hold(self.HOLD_REASON)
        if not self._timer.active:
            self._timer.arm(self._timeout_ms)
        return False

    def reset(self, canonical_width_px: float | None) -> None:
        self._canonical = canonical_width_px
        self._timer.cancel()
        self._locked = False
        self._forced = False

    def close(self) -> None:
        self._timer.cancel()

    def _force(self) -> None:
        self._forced = True
        self._locked = True
        logger.warning(
            "Forced canonical width lock after %.0fms (visible %.2fpx, canonical %.2fpx)",
            self._timeout_ms,
            self._last_width or 0.0,
            self._canonical or 0.0,
        )
        self._emit("width-lock-forced", width=self._last_width, canonical=self._canonical)
        self._release(self.HOLD_REASON)

    def _emit(self, name: str, **payload: object) -> None:
        if self._diagnostics is not None:
            self._diagnostics.emit("width-lock", name, **payload)
