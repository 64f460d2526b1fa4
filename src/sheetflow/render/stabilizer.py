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

"""Region-height stabilizer.

Decides when a new region height may be fed back into the layout engine.
The stabilizer moves between three states:

``HELD``
    Fonts are not ready, there is no plan yet, or another hold reason is
    registered. Every observation is discarded. Once fonts and plan are both
    ready, a settle timer is armed; when it expires the stabilizer arms.
``IDLE_ARMED``
    Observations outside the noise band are committed straight away.
``LAYOUT_BUSY``
    The engine is still computing. Observations are buffered; when the engine
    finishes, the lowest decrease seen (or else the latest value) is committed.
"""

from __future__ import annotations

import logging
from typing import Callable

from ..core.clock import Clock, Timer
from ..core.diagnostics import DiagnosticsChannel
from ..core.models import (
    HoldWindow,
    NoiseBand,
    ObservationMode,
    PendingDeferral,
    RegionHeightObservation,
    StabilizerState,
)
from .surface import ColumnMetrics

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY_MS = 400.0
CANONICAL_DIFF_WARN_PX = 10.0
AWAITING_FONTS_OR_PLAN = "awaiting-fonts-or-plan"

CommitCallback = Callable[[float, RegionHeightObservation], None]
StateListener = Callable[[StabilizerState], None]


class RegionHeightStabilizer:
    def __init__(
        self,
        clock: Clock,
        on_commit: CommitCallback,
        *,
        busy_source: Callable[[], bool],
        noise: NoiseBand | None = None,
        settle_delay_ms: float = DEFAULT_SETTLE_DELAY_MS,
        diagnostics: DiagnosticsChannel | None = None,
        initial_height: float | None = None,
    ) -> None:
        self._clock = clock
        self._on_commit = on_commit
        self._busy_source = busy_source
        self.noise = noise or NoiseBand()
        self._settle_delay_ms = settle_delay_ms
        self._diagnostics = diagnostics
        self._committed = initial_height
        self._state = StabilizerState.HELD
        self._hold = HoldWindow(active=True, reason=AWAITING_FONTS_OR_PLAN)
        self._ready = False
        self._plan_available = False
        self._extra_holds: set[str] = set()
        self._pending: PendingDeferral | None = None
        self._settle_timer = Timer(clock, self._on_settle_timeout)
        self._listeners: list[StateListener] = []
        self._emit("held", reason=AWAITING_FONTS_OR_PLAN)

    @property
    def state(self) -> StabilizerState:
        return self._state

    @property
    def committed(self) -> float | None:
        return self._committed

    @property
    def pending(self) -> PendingDeferral | None:
        return self._pending

    @property
    def hold_window(self) -> HoldWindow:
        return self._hold

    @property
    def hold_reasons(self) -> frozenset[str]:
        return frozenset(self._extra_holds)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def update_readiness(
        self,
        *,
        ready: bool | None = None,
        plan_available: bool | None = None,
    ) -> None:
        if ready is not None:
            self._ready = ready
        if plan_available is not None:
            self._plan_available = plan_available
        self._reevaluate_hold()

    def add_hold(self, reason: str) -> None:
        self._extra_holds.add(reason)
        self._reevaluate_hold()

    def release_hold(self, reason: str) -> None:
        self._extra_holds.discard(reason)
        self._reevaluate_hold()

    def observe(self, observation: RegionHeightObservation) -> bool:
        """Feed one observation; returns True when it was committed."""
        if not observation.is_valid:
            self._emit("discard-invalid", value=observation.value)
            return False
        if self._state is StabilizerState.HELD:
            self._emit("discard-held", value=observation.value, reason=self._hold.reason)
            return False
        self.refresh_busy()

        value = float(observation.value)
        previous = self._committed or 0.0
        if self.noise.is_noise(previous, value):
            self._emit("skip-noise", value=value, committed=previous)
            return False
        if self._busy_source():
            if self._pending is None:
                self._pending = PendingDeferral()
            self._pending.record(
                value,
                is_decrease=self.noise.is_decrease(previous, value),
                mode=observation.mode,
            )
            self._set_state(StabilizerState.LAYOUT_BUSY)
            self._emit(
                "defer",
                value=value,
                queued=self._pending.queued_conservative_height,
                latest=self._pending.latest_observed_height,
            )
            return False
        self._commit(value, observation)
        return True

    def refresh_busy(self) -> bool:
        """Resolve the deferral once the engine is idle; True if a value was committed."""
        if self._state is not StabilizerState.LAYOUT_BUSY or self._busy_source():
            return False
        pending = self._pending
        self._pending = None
        self._set_state(StabilizerState.IDLE_ARMED)
        resolution = pending.resolve() if pending is not None else None
        if resolution is None:
            return False
        value, source, mode = resolution
        previous = self._committed or 0.0
        self._emit("resolve", value=value, source=source, committed=previous)
        if self.noise.is_noise(previous, value):
            self._emit("skip-noise", value=value, committed=previous)
            return False
        self._commit(
            value,
            RegionHeightObservation(
                value=value,
                mode=mode,
                measurement_source=source,
            ),
        )
        return True

    def close(self) -> None:
        self._settle_timer.cancel()
        self._pending = None
        self._listeners.clear()

    def _blocking_reason(self) -> str | None:
        if not self._ready or not self._plan_available:
            return AWAITING_FONTS_OR_PLAN
        if self._extra_holds:
            return sorted(self._extra_holds)[0]
        return None

    def _reevaluate_hold(self) -> None:
        reason = self._blocking_reason()
        if reason is not None:
            self._enter_held(reason)
            return
        if self._state is not StabilizerState.HELD or self._settle_timer.active:
            return
        self._settle_timer.arm(self._settle_delay_ms)
        self._hold = HoldWindow(
            active=True,
            reason="settling",
            expires_at=self._settle_timer.expires_at,
        )

    def _enter_held(self, reason: str) -> None:
        self._settle_timer.cancel()
        self._pending = None
        changed = self._state is not StabilizerState.HELD or self._hold.reason != reason
        self._hold = HoldWindow(active=True, reason=reason)
        if changed:
            self._emit("held", reason=reason)
        self._set_state(StabilizerState.HELD)

    def _on_settle_timeout(self) -> None:
        if self._blocking_reason() is not None:
            return
        self._hold = HoldWindow(active=False)
        self._emit("armed", committed=self._committed)
        self._set_state(StabilizerState.IDLE_ARMED)

    def _commit(self, value: float, observation: RegionHeightObservation) -> None:
        previous = self._committed
        self._committed = value
        self._emit(
            "commit",
            value=value,
            previous=previous,
            mode=observation.mode.value,
            source=observation.measurement_source,
        )
        self._on_commit(value, observation)

    def _set_state(self, state: StabilizerState) -> None:
        if state is self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def _emit(self, name: str, **payload: object) -> None:
        if self._diagnostics is not None:
            self._diagnostics.emit("stabilizer", name, **payload)


def measured_column_height(
    metrics: ColumnMetrics | None,
    scale: float,
) -> tuple[float, str] | None:
    """Pick the most trustworthy live column height, in unscaled pixels."""
    if metrics is None:
        return None
    candidates = (
        (metrics.column_client_height, "column-client"),
        (metrics.frame_client_height, "frame-client"),
        (metrics.column_scroll_height, "column-scroll"),
        (metrics.frame_scroll_height, "frame-scroll"),
    )
    full = None
    for value, source in candidates:
        if value > 0:
            full = (value, source)
            break
    if full is None:
        readings = [
            metrics.column_client_height,
            metrics.frame_client_height,
            metrics.column_scroll_height,
            metrics.frame_scroll_height,
            metrics.column_offset_height,
            metrics.column_rect_height,
        ]
        positive = [value for value in readings if value > 0]
        if not positive:
            return None
        full = (max(positive), "max-positive")
    value, source = full
    safe_scale = scale if scale > 0 else 1.0
    return value / safe_scale, source


def select_observation(
    canonical_height_px: float,
    metrics: ColumnMetrics | None,
    *,
    scale: float = 1.0,
    canonical_mode: bool = True,
    width_locked: bool = True,
    hold_active: bool = False,
    diagnostics: DiagnosticsChannel | None = None,
) -> RegionHeightObservation:
    """Build the region-height observation for the current surface state.

    Canonical mode always reports the geometry height; the live reading is
    only compared against it. Measured mode uses the live column height,
    capped at the canonical height, and falls back to the canonical height
    while a hold is active or the column width is not locked.
    """
    ceiling = max(float(canonical_height_px), 0.0)
    measured = measured_column_height(metrics, scale)
    if canonical_mode:
        if measured is not None and abs(measured[0] - ceiling) > CANONICAL_DIFF_WARN_PX:
            logger.debug(
                "Live column height %.2fpx differs from canonical %.2fpx (%s)",
                measured[0],
                ceiling,
                measured[1],
            )
            if diagnostics is not None:
                diagnostics.emit(
                    "stabilizer",
                    "canonical-diff",
                    canonical=ceiling,
                    measured=measured[0],
                    source=measured[1],
                )
        return RegionHeightObservation(
            value=ceiling,
            mode=ObservationMode.CANONICAL,
            measurement_source="canonical",
        )
    if hold_active or not width_locked:
        return RegionHeightObservation(
            value=ceiling,
            mode=ObservationMode.MEASURED,
            measurement_source="canonical-ceiling",
        )
    if measured is None:
        return RegionHeightObservation(
            value=ceiling,
            mode=ObservationMode.MEASURED,
            measurement_source="canonical-fallback",
        )
    value, source = measured
    if ceiling > 0:
        value = min(value, ceiling)
    return RegionHeightObservation(
        value=value,
        mode=ObservationMode.MEASURED,
        measurement_source=source,
    )
