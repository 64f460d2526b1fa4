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

import math
from dataclasses import dataclass
from enum import Enum

DEFAULT_VARIANT = "block"


class SampleSource(str, Enum):
    CONTENT_MIRROR = "content-mirror"
    FALLBACK = "fallback"


class ObservationMode(str, Enum):
    CANONICAL = "canonical"
    MEASURED = "measured"


class StabilizerState(str, Enum):
    HELD = "held"
    IDLE_ARMED = "idle-armed"
    LAYOUT_BUSY = "layout-busy"


def measurement_key(item_id: str, variant: str = DEFAULT_VARIANT) -> str:
    return f"{item_id}:{variant}"


def split_measurement_key(key: str) -> tuple[str, str]:
    item_id, sep, variant = key.rpartition(":")
    if not sep:
        return key, DEFAULT_VARIANT
    return item_id, variant


@dataclass(frozen=True)
class ContentItem:
    item_id: str
    variant: str = DEFAULT_VARIANT
    html: str = ""
    text: str = ""

    @property
    def key(self) -> str:
        return measurement_key(self.item_id, self.variant)


@dataclass(frozen=True)
class MeasurementSample:
    key: str
    height: float
    measured_at: float
    source: SampleSource = SampleSource.CONTENT_MIRROR
    # Set when the mirror collapsed; consumers drop the stored height.
    deleted: bool = False

    @property
    def item_id(self) -> str:
        return split_measurement_key(self.key)[0]


@dataclass(frozen=True)
class RegionHeightObservation:
    value: float
    mode: ObservationMode = ObservationMode.CANONICAL
    measurement_source: str = "canonical"

    @property
    def is_valid(self) -> bool:
        return isinstance(self.value, (int, float)) and math.isfinite(self.value) and self.value > 0


@dataclass
class PendingDeferral:
    """Observations buffered while the layout engine is recomputing."""

    queued_conservative_height: float | None = None
    latest_observed_height: float | None = None
    queued_mode: ObservationMode = ObservationMode.CANONICAL
    latest_mode: ObservationMode = ObservationMode.CANONICAL

    def record(
        self,
        value: float,
        *,
        is_decrease: bool,
        mode: ObservationMode = ObservationMode.CANONICAL,
    ) -> None:
        self.latest_observed_height = value
        self.latest_mode = mode
        if not is_decrease:
            return
        if self.queued_conservative_height is None or value < self.queued_conservative_height:
            self.queued_conservative_height = value
            self.queued_mode = mode

    @property
    def empty(self) -> bool:
        return self.queued_conservative_height is None and self.latest_observed_height is None

    def resolve(self) -> tuple[float, str, ObservationMode] | None:
        if self.queued_conservative_height is not None:
            return self.queued_conservative_height, "queued-min", self.queued_mode
        if self.latest_observed_height is not None:
            return self.latest_observed_height, "latest-pending", self.latest_mode
        return None


@dataclass(frozen=True)
class HoldWindow:
    active: bool
    reason: str | None = None
    expires_at: float | None = None


@dataclass(frozen=True)
class NoiseBand:
    min_absolute_diff_px: float = 1.0
    absolute_noise_px: float = 32.0
    relative_noise: float = 0.05

    def is_noise(self, previous: float, proposed: float) -> bool:
        delta = abs(proposed - previous)
        if delta <= self.min_absolute_diff_px:
            return True
        if previous <= 0:
            return False
        return delta < self.absolute_noise_px and delta / previous < self.relative_noise

    def is_decrease(self, previous: float, proposed: float) -> bool:
        return previous > 0 and proposed < previous - self.min_absolute_diff_px
