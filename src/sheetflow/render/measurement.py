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

"""Batched height measurement of hidden content mirrors."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Sequence

from ..core.clock import Clock, Timer
from ..core.diagnostics import DiagnosticsChannel
from ..core.errors import SurfaceUnavailableError
from ..core.models import ContentItem, MeasurementSample, SampleSource
from .locks import EditLockRegistry
from .readiness import ReadinessGate
from .surface import RenderSurface
from .text import TextHeightEstimator

logger = logging.getLogger(__name__)

DEFAULT_FRAME_MS = 16.0
DEFAULT_FLUSH_DELAY_MS = 150.0
MEASUREMENT_EPSILON = 0.25

BatchCallback = Callable[[list[MeasurementSample]], None]


class MeasurementCollector:
    """Measure mirrors at the canonical column width and publish in batches.

    A pass runs one frame after it is requested. Samples collect in a pending
    batch and are published together once the flush delay elapses. Samples
    for locked items, or measured under an older readiness epoch, never leave
    the collector.
    """

    def __init__(
        self,
        surface: RenderSurface,
        gate: ReadinessGate,
        locks: EditLockRegistry,
        clock: Clock,
        on_batch: BatchCallback,
        *,
        frame_ms: float = DEFAULT_FRAME_MS,
        flush_delay_ms: float = DEFAULT_FLUSH_DELAY_MS,
        epsilon_px: float = MEASUREMENT_EPSILON,
        estimator: TextHeightEstimator | None = None,
        diagnostics: DiagnosticsChannel | None = None,
    ) -> None:
        self._surface = surface
        self._gate = gate
        self._locks = locks
        self._clock = clock
        self._on_batch = on_batch
        self._frame_ms = frame_ms
        self._flush_delay_ms = flush_delay_ms
        self._epsilon = epsilon_px
        self._estimator = estimator
        self._diagnostics = diagnostics
        self._items: dict[str, ContentItem] = {}
        self._width_px = 0.0
        self._requested: set[str] = set()
        self._pending: dict[str, tuple[MeasurementSample, int]] = {}
        self._published: dict[str, float] = {}
        self._forced: set[str] = set()
        self._frame_timer = Timer(clock, self.run_pass)
        self._flush_timer = Timer(clock, self.flush)

    @property
    def width_px(self) -> float:
        return self._width_px

    @property
    def items(self) -> tuple[ContentItem, ...]:
        return tuple(self._items.values())

    @property
    def pending_keys(self) -> frozenset[str]:
        return frozenset(self._pending)

    @property
    def requested(self) -> frozenset[str]:
        return frozenset(self._requested)

    def mount(self, items: Sequence[ContentItem], width_px: float) -> None:
        if width_px <= 0:
            raise ValueError("mirror width must be positive")
        self._items = {item.item_id: item for item in items}
        self._width_px = float(width_px)
        self._pending.clear()
        self._published.clear()
        self._forced.clear()
        self._surface.mount_mirrors(list(self._items.values()), self._width_px)
        self.request_pass()

    def update_item(self, item: ContentItem) -> None:
        self._items[item.item_id] = item
        self._surface.mount_mirrors(list(self._items.values()), self._width_px)

    def remove_item(self, item_id: str) -> None:
        item = self._items.pop(item_id, None)
        if item is None:
            return
        self._pending.pop(item.key, None)
        self._published.pop(item.key, None)
        self._forced.discard(item.key)
        self._requested.discard(item_id)
        self._surface.mount_mirrors(list(self._items.values()), self._width_px)

    def request_pass(self, item_ids: Iterable[str] | None = None, *, force: bool = False) -> None:
        """Schedule a pass; ``force`` republishes even an unchanged height."""
        if item_ids is None:
            targets = list(self._items)
        else:
            targets = [item_id for item_id in item_ids if item_id in self._items]
        self._requested.update(targets)
        if force:
            self._forced.update(self._items[item_id].key for item_id in targets)
        if self._requested and not self._frame_timer.active:
            self._frame_timer.arm(self._frame_ms)

    def run_pass(self) -> int:
        """Measure requested items; returns how many samples were staged."""
        self._frame_timer.cancel()
        if not self._gate.ready:
            return 0
        requested = [item_id for item_id in self._items if item_id in self._requested]
        self._requested.clear()
        eligible: list[str] = []
        for item_id in requested:
            if self._locks.is_locked(item_id):
                # Picked up again by the remeasure that follows the unlock.
                self._locks.mark_changed(item_id)
            else:
                eligible.append(item_id)
        if not eligible:
            return 0
        keys = [self._items[item_id].key for item_id in eligible]
        try:
            readings = self._surface.measure_mirrors(keys)
        except SurfaceUnavailableError as exc:
            logger.debug("Measurement pass skipped: %s", exc)
            self._requested.update(eligible)
            self._emit("pass-skipped", reason=str(exc), items=len(eligible))
            return 0

        staged = 0
        retry: list[str] = []
        for item_id, key in zip(eligible, keys):
            reading = readings.get(key)
            if reading is None:
                if self._stage_fallback(self._items[item_id]):
                    staged += 1
                continue
            if not reading.settled:
                retry.append(item_id)
                continue
            if self._stage(key, reading.height, SampleSource.CONTENT_MIRROR):
                staged += 1
        if retry:
            self.request_pass(retry)
        return staged

    def flush(self) -> list[MeasurementSample]:
        self._flush_timer.cancel()
        pending = self._pending
        self._pending = {}
        batch: list[MeasurementSample] = []
        stale = 0
        locked = 0
        for key, (sample, epoch) in pending.items():
            if not self._gate.ready or epoch != self._gate.epoch:
                stale += 1
                continue
            if self._locks.is_locked(sample.item_id):
                self._locks.mark_changed(sample.item_id)
                locked += 1
                continue
            batch.append(sample)
            if sample.deleted:
                self._published.pop(key, None)
            else:
                self._published[key] = sample.height
        self._emit("batch-flush", size=len(batch), stale=stale, locked=locked)
        if batch:
            self._on_batch(batch)
        return batch

    def discard_pending(self) -> None:
        self._flush_timer.cancel()
        self._pending.clear()

    def forget(self) -> None:
        """Republish every known height on the next pass, changed or not."""
        self._forced.update(self._published)

    def close(self) -> None:
        self._frame_timer.cancel()
        self._flush_timer.cancel()
        self._pending.clear()
        self._requested.clear()
        self._forced.clear()

    def _stage_fallback(self, item: ContentItem) -> bool:
        if self._estimator is None or not item.text.strip():
            logger.debug("No mirror for %s and no text to estimate from", item.key)
            return False
        height = self._estimator.estimate(item.text, self._width_px)
        return self._stage(item.key, height, SampleSource.FALLBACK)

    def _stage(self, key: str, height: float, source: SampleSource) -> bool:
        sample = MeasurementSample(
            key=key,
            height=float(height),
            measured_at=self._clock.now(),
            source=source,
        )
        if self._locks.is_locked(sample.item_id):
            self._locks.mark_changed(sample.item_id)
            return False
        if sample.height <= self._epsilon:
            return self._stage_deletion(key)
        previous = self._pending.get(key)
        if previous is not None:
            if abs(previous[0].height - sample.height) < self._epsilon:
                return False
        elif key not in self._forced and (
            abs(self._published.get(key, -1.0) - sample.height) < self._epsilon
        ):
            return False
        self._queue(sample)
        return True

    def _stage_deletion(self, key: str) -> bool:
        # Collapsed mirror; the item no longer occupies space.
        self._emit("deleted", key=key)
        previous = self._pending.pop(key, None)
        if previous is not None and previous[0].deleted:
            self._pending[key] = previous
            return False
        if key not in self._published:
            return False
        self._queue(
            MeasurementSample(key=key, height=0.0, measured_at=self._clock.now(), deleted=True)
        )
        return True

    def _queue(self, sample: MeasurementSample) -> None:
        self._forced.discard(sample.key)
        self._pending[sample.key] = (sample, self._gate.epoch)
        if not self._flush_timer.active:
            self._flush_timer.arm(self._flush_delay_ms)

    def _emit(self, name: str, **payload: object) -> None:
        if self._diagnostics is not None:
            self._diagnostics.emit("measurement", name, **payload)
