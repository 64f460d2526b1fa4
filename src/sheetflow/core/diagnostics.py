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

"""Structured diagnostic events.

Components emit short named events (``held``, ``armed``, ``commit``, ...)
with a payload. Each event goes to the ``sheetflow.diagnostics`` logger and
into a bounded ring so callers and tests can inspect what happened.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger("sheetflow.diagnostics")

DEFAULT_CAPACITY = 512


@dataclass(frozen=True)
class DiagnosticEvent:
    name: str
    at: float
    component: str
    payload: dict[str, Any] = field(default_factory=dict)


class DiagnosticsChannel:
    def __init__(
        self,
        *,
        now: Callable[[], float] | None = None,
        capacity: int = DEFAULT_CAPACITY,
        verbose: bool = False,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be a positive integer")
        self._now = now or (lambda: 0.0)
        self._events: deque[DiagnosticEvent] = deque(maxlen=capacity)
        self.verbose = verbose

    def emit(self, component: str, name: str, **payload: Any) -> DiagnosticEvent:
        event = DiagnosticEvent(name=name, at=self._now(), component=component, payload=payload)
        self._events.append(event)
        level = logging.INFO if self.verbose else logging.DEBUG
        if logger.isEnabledFor(level):
            details = " ".join(f"{key}={value!r}" for key, value in payload.items())
            logger.log(level, "[%s] %s %s", component, name, details)
        return event

    def events(self, name: str | None = None) -> list[DiagnosticEvent]:
        if name is None:
            return list(self._events)
        return [event for event in self._events if event.name == name]

    def counts(self) -> dict[str, int]:
        return dict(Counter(event.name for event in self._events))

    def clear(self) -> None:
        self._events.clear()
