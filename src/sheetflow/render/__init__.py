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

"""Region-height coordination for paginated multi-column sheets."""

from .engine import ColumnFlowEngine, LayoutConfig, LayoutEngine, LayoutResult
from .locks import EditLockRegistry
from .measurement import MeasurementCollector
from .readiness import ReadinessGate
from .scale import ScaleController
from .session import SheetSession
from .stabilizer import RegionHeightStabilizer, select_observation

__all__ = [
    "ColumnFlowEngine",
    "EditLockRegistry",
    "LayoutConfig",
    "LayoutEngine",
    "LayoutResult",
    "MeasurementCollector",
    "ReadinessGate",
    "RegionHeightStabilizer",
    "ScaleController",
    "SheetSession",
    "select_observation",
]
