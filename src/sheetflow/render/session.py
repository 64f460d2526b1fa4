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

"""Page-level coordinator wiring the readiness gate, edit locks, measurement
collector, stabilizer, width lock and scale controller around one layout
engine and one rendering surface.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from ..config.loader import AppConfig
from ..core.clock import Clock, Timer
from ..core.diagnostics import DiagnosticsChannel
from ..core.errors import SurfaceUnavailableError
from ..core.models import (
    ContentItem,
    MeasurementSample,
    NoiseBand,
    RegionHeightObservation,
    StabilizerState,
)
from .engine import LayoutConfig, LayoutEngine, LayoutResult
from .geometry import PageGeometry, compute_page_geometry
from .locks import EditLockRegistry
from .measurement import MeasurementCollector
from .readiness import ReadinessGate
from .scale import ScaleController
from .stabilizer import RegionHeightStabilizer, select_observation
from .surface import RenderSurface
from .text import TextHeightEstimator
from .width_lock import CanonicalWidthLock

logger = logging.getLogger(__name__)

_SAME_HEIGHT_PX = 1e-6


class SheetSession:
    def __init__(
        self,
        config: AppConfig,
        surface: RenderSurface,
        engine: LayoutEngine,
        clock: Clock,
        items: Sequence[ContentItem],
        *,
        diagnostics: DiagnosticsChannel | None = None,
        canonical_mode: bool | None = None,
        estimator: TextHeightEstimator | None = None,
    ) -> None:
        self.config = config
        self.surface = surface
        self.engine = engine
        self.clock = clock
        self.geometry: PageGeometry = compute_page_geometry(config.page, config.columns)
        self.canonical_mode = (
            config.stabilizer.canonical_mode if canonical_mode is None else canonical_mode
        )
        self.diagnostics = diagnostics or DiagnosticsChannel(
            now=clock.now,
            verbose=config.logging.region_height_debug,
        )
        self._items: dict[str, ContentItem] = {item.item_id: item for item in items}
        self._measurements: dict[str, float] = {}
        self._result: LayoutResult | None = None
        self._busy = False
        self._last_region: float | None = None
        self._closed = False

        measurement = config.measurement
        stabilizer = config.stabilizer
        self.gate = ReadinessGate(
            surface,
            font_faces=config.fonts.faces,
            stylesheets=config.fonts.stylesheets,
            diagnostics=self.diagnostics,
        )
        self.locks = EditLockRegistry(
            clock,
            self._on_remeasure,
            debounce_ms=measurement.remeasure_delay_ms,
            diagnostics=self.diagnostics,
        )
        self.collector = MeasurementCollector(
            surface,
            self.gate,
            self.locks,
            clock,
            self._on_batch,
            frame_ms=measurement.frame_ms,
            flush_delay_ms=measurement.flush_delay_ms,
            epsilon_px=measurement.epsilon_px,
            estimator=estimator
            or TextHeightEstimator(
                font=measurement.fallback_font,
                font_size_pt=measurement.fallback_font_size_pt,
                line_height_px=measurement.fallback_line_height_px,
            ),
            diagnostics=self.diagnostics,
        )
        self.stabilizer = RegionHeightStabilizer(
            clock,
            self._on_commit,
            busy_source=lambda: self._busy,
            noise=NoiseBand(
                min_absolute_diff_px=stabilizer.min_absolute_diff_px,
                absolute_noise_px=stabilizer.absolute_noise_px,
                relative_noise=stabilizer.relative_noise,
            ),
            settle_delay_ms=stabilizer.settle_delay_ms,
            diagnostics=self.diagnostics,
        )
        self.width_lock = CanonicalWidthLock(
            clock,
            hold=self.stabilizer.add_hold,
            release=self.stabilizer.release_hold,
            canonical_width_px=self.geometry.column_width_px,
            timeout_ms=stabilizer.width_lock_timeout_ms,
            diagnostics=self.diagnostics,
        )
        self.scale = ScaleController(
            self.geometry.width_px,
            min_scale=config.scale.min,
            max_scale=config.scale.max,
            threshold=config.scale.threshold,
            page_gap_px=config.scale.page_gap_px,
            diagnostics=self.diagnostics,
        )
        self._engine_timer = Timer(clock, self._settle_engine)
        self._observe_timer = Timer(clock, self.observe_surface)
        self._unsubscribers: list[Callable[[], None]] = [
            self.gate.subscribe(self._on_ready_changed),
            self.stabilizer.subscribe(self._on_state_changed),
            self.scale.subscribe(self.surface.apply_scale),
        ]

    @property
    def result(self) -> LayoutResult | None:
        return self._result

    @property
    def committed_height(self) -> float | None:
        return self.stabilizer.committed

    @property
    def engine_busy(self) -> bool:
        return self._busy

    @property
    def items(self) -> tuple[ContentItem, ...]:
        return tuple(self._items.values())

    @property
    def measurements(self) -> dict[str, float]:
        return dict(self._measurements)

    def start(self) -> None:
        self.collector.mount(list(self._items.values()), self.geometry.measurement_column_width_px)
        self.gate.start()
        self.observe_viewport()

    def observe_viewport(self) -> bool:
        try:
            width, padding = self.surface.container_width()
        except SurfaceUnavailableError as exc:
            logger.debug("Viewport width unavailable: %s", exc)
            return False
        return self.scale.observe_width(width, padding_px=padding)

    def resize(self, width_px: float, *, padding_px: float = 0.0) -> bool:
        return self.scale.observe_width(width_px, padding_px=padding_px)

    def observe_surface(self) -> bool:
        """Read live column metrics and feed one observation to the stabilizer."""
        if self._closed:
            return False
        self._observe_timer.cancel()
        try:
            metrics = self.surface.column_metrics()
        except SurfaceUnavailableError as exc:
            logger.debug("Column metrics unavailable: %s", exc)
            return False
        if metrics is not None:
            self.width_lock.observe(metrics.column_width, self.scale.scale)
        observation = select_observation(
            self.geometry.canonical_region_height_px,
            metrics,
            scale=self.scale.scale,
            canonical_mode=self.canonical_mode,
            width_locked=self.width_lock.locked,
            hold_active=self.stabilizer.hold_window.active,
            diagnostics=self.diagnostics,
        )
        return self.stabilizer.observe(observation)

    def begin_edit(self, item_id: str) -> None:
        self.locks.lock(item_id)

    def end_edit(self, item_id: str) -> bool:
        return self.locks.unlock(item_id)

    def update_item(self, item: ContentItem) -> None:
        self._items[item.item_id] = item
        self.collector.update_item(item)
        if self.locks.is_locked(item.item_id):
            self.locks.mark_changed(item.item_id)
            return
        self.collector.request_pass([item.item_id])

    def remove_item(self, item_id: str) -> None:
        item = self._items.pop(item_id, None)
        if item is None:
            return
        self.collector.remove_item(item_id)
        self.locks.unlock(item_id)
        if self._measurements.pop(item.key, None) is not None and not self._closed:
            self._compute(self._engine_region_height())

    def refresh_readiness(self, reason: str) -> None:
        """Re-run the readiness sequence, e.g. after a theme change."""
        self.gate.invalidate(reason)
        self.gate.start()

    def deliver_result(self, result: LayoutResult) -> None:
        """Accept a result pushed by an engine that settles on its own."""
        self._apply_result(result)

    def summary(self) -> dict[str, object]:
        result = self._result
        return {
            "committed_height": self.stabilizer.committed,
            "state": self.stabilizer.state.value,
            "pages": result.page_count if result else 0,
            "overflow_warnings": list(result.overflow_warnings) if result else [],
            "scale": self.scale.scale,
            "events": self.diagnostics.counts(),
        }

    def close(self) -> None:
        self._closed = True
        self._engine_timer.cancel()
        self._observe_timer.cancel()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.width_lock.close()
        self.stabilizer.close()
        self.collector.close()
        self.locks.close()

    def _engine_region_height(self) -> float:
        committed = self.stabilizer.committed
        if committed is not None:
            return committed
        return self.geometry.canonical_region_height_px

    def _on_batch(self, samples: list[MeasurementSample]) -> None:
        for sample in samples:
            if sample.deleted:
                self._measurements.pop(sample.key, None)
            else:
                self._measurements[sample.key] = sample.height
        self._compute(self._engine_region_height())

    def _on_commit(self, value: float, observation: RegionHeightObservation) -> None:
        if self._last_region is not None and abs(value - self._last_region) < _SAME_HEIGHT_PX:
            logger.debug("Region height %.2fpx already laid out", value)
            return
        self._compute(value)

    def _compute(self, region_height_px: float) -> None:
        if self._closed:
            return
        self._last_region = region_height_px
        config = LayoutConfig(
            region_height_px=region_height_px,
            column_count=self.geometry.column_count,
            geometry=self.geometry,
            measurements=dict(self._measurements),
            order=tuple(item.key for item in self._items.values()),
        )
        self._apply_result(self.engine.compute(config))

    def _settle_engine(self) -> None:
        settle = getattr(self.engine, "settle", None)
        if settle is None:
            return
        self._apply_result(settle())

    def _apply_result(self, result: LayoutResult) -> None:
        if self._closed:
            return
        self._busy = result.has_pending_layout
        if self._busy:
            if result.pages:
                self._result = result
            if getattr(self.engine, "settle", None) is not None:
                self._engine_timer.arm(self.config.measurement.frame_ms)
        else:
            self._result = result
            region = result.region_height_px or self._engine_region_height()
            self.surface.show_plan(result, region)
            for warning in result.overflow_warnings:
                logger.warning("Overflow: %s", warning)
            self.stabilizer.update_readiness(plan_available=True)
            self._observe_timer.arm(self.config.measurement.frame_ms)
        self.stabilizer.refresh_busy()

    def _on_ready_changed(self, ready: bool) -> None:
        self.stabilizer.update_readiness(ready=ready)
        if ready:
            self.collector.forget()
            self.collector.request_pass()
        else:
            self.collector.discard_pending()

    def _on_state_changed(self, state: StabilizerState) -> None:
        if state is StabilizerState.IDLE_ARMED and not self._closed:
            self._observe_timer.arm(self.config.measurement.frame_ms)

    def _on_remeasure(self, item_id: str) -> None:
        self.collector.request_pass([item_id], force=True)
