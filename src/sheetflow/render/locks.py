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

logger = logging.getLogger(__name__)

DEFAULT_REMEASURE_DELAY_MS = 300.0


class EditLockRegistry:
    """Items under active edit; the collector never measures them.

    An item that changed while locked is re-measured once, a short debounce
    after its last unlock.
    """

    def __init__(
        self,
        clock: Clock,
        on_remeasure: Callable[[str], None],
        *,
        debounce_ms: float = DEFAULT_REMEASURE_DELAY_MS,
        diagnostics: DiagnosticsChannel | None = None,
    ) -> None:
        self._clock = clock
        self._on_remeasure = on_remeasure
        self._debounce_ms = debounce_ms
        self._diagnostics = diagnostics
        self._locked: set[str] = set()
        self._changed: set[str] = set()
        self._timers: dict[str, Timer] = {}

    @property
    def locked(self) -> frozenset[str]:
        return frozenset(self._locked)

    def is_locked(self, item_id: str) -> bool:
        return item_id in self._locked

    def lock(self, item_id: str) -> None:
        timer = self._timers.pop(item_id, None)
        if timer is not None and timer.active:
            timer.cancel()
            self._changed.add(item_id)
        if item_id in self._locked:
            return
        self._locked.add(item_id)
        self._emit("lock", item_id=item_id)

    def unlock(self, item_id: str) -> bool:
        """Release ``item_id``; returns True when a remeasure was scheduled."""
        if item_id not in self._locked:
            return False
        self._locked.discard(item_id)
        self._emit("unlock", item_id=item_id)
        if item_id not in self._changed:
            return False
        self._changed.discard(item_id)
        timer = self._timers.get(item_id)
        if timer is None:
            timer = Timer(self._clock, lambda: self._fire_remeasure(item_id))
            self._timers[item_id] = timer
        timer.arm(self._debounce_ms)
        return True

    def mark_changed(self, item_id: str) -> bool:
        if item_id not in self._locked:
            return False
        self._changed.add(item_id)
        return True

    def pending_remeasures(self) -> frozenset[str]:
        return frozenset(item_id for item_id, timer in self._timers.items() if timer.active)

    def close(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._changed.clear()

    def _fire_remeasure(self, item_id: str) -> None:
        self._timers.pop(item_id, None)
        if item_id in self._locked:
            return
        logger.debug("Remeasuring %s after edit", item_id)
        self._on_remeasure(item_id)

    def _emit(self, name: str, **payload: object) -> None:
        if self._diagnostics is not None:
            self._diagnostics.emit("edit-locks", name, **payload)
