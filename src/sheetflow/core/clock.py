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

"""Millisecond clocks and cancellable timers for the cooperative loop.

Everything that waits (settle delay, measurement flush, deferred remeasure)
goes through a :class:`Clock`, so tests can drive a :class:`ManualClock`
instead of sleeping.
"""

from __future__ import annotations

import heapq
import itertools
import time
from typing import Callable, Protocol

TimerCallback = Callable[[], None]


class TimerHandle:
    __slots__ = ("due", "seq", "_callback", "cancelled")

    def __init__(self, due: float, seq: int, callback: TimerCallback) -> None:
        self.due = due
        self.seq = seq
        self._callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._callback()


class Clock(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle: ...


class _TimerQueue:
    def __init__(self) -> None:
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        raise NotImplementedError

    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle:
        handle = TimerHandle(self.now() + max(0.0, float(delay_ms)), next(self._seq), callback)
        heapq.heappush(self._heap, (handle.due, handle.seq, handle))
        return handle

    def pending(self) -> int:
        return sum(1 for _due, _seq, handle in self._heap if not handle.cancelled)

    def next_due(self) -> float | None:
        self._drop_cancelled()
        if not self._heap:
            return None
        return self._heap[0][0]

    def _pop_due(self, deadline: float) -> TimerHandle | None:
        self._drop_cancelled()
        if not self._heap or self._heap[0][0] > deadline:
            return None
        return heapq.heappop(self._heap)[2]

    def _drop_cancelled(self) -> None:
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)


class ManualClock(_TimerQueue):
    """Virtual clock; time only moves when :meth:`advance` is called."""

    def __init__(self, start_ms: float = 0.0) -> None:
        super().__init__()
        self._now = float(start_ms)

    def now(self) -> float:
        return self._now

    def advance(self, ms: float) -> None:
        target = self._now + max(0.0, float(ms))
        while True:
            handle = self._pop_due(target)
            if handle is None:
                break
            self._now = max(self._now, handle.due)
            handle.fire()
        self._now = target

    def run_until_idle(self, *, limit_ms: float = 60_000.0) -> bool:
        deadline = self._now + limit_ms
        while True:
            due = self.next_due()
            if due is None:
                return True
            if due > deadline:
                self._now = deadline
                return False
            self.advance(due - self._now)


class SystemClock(_TimerQueue):
    """Wall-clock loop driver used by the CLI."""

    def now(self) -> float:
        return time.monotonic() * 1000.0

    def run_until_idle(self, *, timeout_ms: float = 10_000.0) -> bool:
        deadline = self.now() + timeout_ms
        while True:
            handle = self._pop_due(self.now())
            if handle is not None:
                handle.fire()
                continue
            due = self.next_due()
            if due is None:
                return True
            now = self.now()
            if now >= deadline:
                return False
            time.sleep(max(0.0, min(due, deadline) - now) / 1000.0)


class Timer:
    """Single-shot timer that can be armed, cancelled and re-armed."""

    def __init__(self, clock: Clock, callback: TimerCallback) -> None:
        self._clock = clock
        self._callback = callback
        self._handle: TimerHandle | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    @property
    def expires_at(self) -> float | None:
        if not self.active:
            return None
        assert self._handle is not None
        return self._handle.due

    def arm(self, delay_ms: float) -> None:
        self.cancel()
        self._handle = self._clock.call_later(delay_ms, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()
