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

import unittest

from sheetflow.core.clock import ManualClock, Timer


class TestManualClock(unittest.TestCase):
    def test_callbacks_fire_in_due_order(self) -> None:
        clock = ManualClock()
        fired: list[tuple[str, float]] = []
        clock.call_later(30, lambda: fired.append(("b", clock.now())))
        clock.call_later(10, lambda: fired.append(("a", clock.now())))
        clock.call_later(30, lambda: fired.append(("c", clock.now())))
        clock.advance(50)
        self.assertEqual(fired, [("a", 10.0), ("b", 30.0), ("c", 30.0)])
        self.assertEqual(clock.now(), 50.0)

    def test_cancelled_handles_never_fire(self) -> None:
        clock = ManualClock()
        fired: list[str] = []
        handle = clock.call_later(5, lambda: fired.append("x"))
        handle.cancel()
        clock.advance(10)
        self.assertEqual(fired, [])
        self.assertEqual(clock.pending(), 0)

    def test_callbacks_scheduled_while_advancing_run_in_window(self) -> None:
        clock = ManualClock()
        fired: list[float] = []

        def first() -> None:
            fired.append(clock.now())
            clock.call_later(5, lambda: fired.append(clock.now()))

        clock.call_later(10, first)
        clock.advance(20)
        self.assertEqual(fired, [10.0, 15.0])

    def test_run_until_idle_stops_at_limit(self) -> None:
        clock = ManualClock()

        def reschedule() -> None:
            clock.call_later(100, reschedule)

        clock.call_later(100, reschedule)
        self.assertFalse(clock.run_until_idle(limit_ms=1000))
        self.assertEqual(clock.now(), 1000.0)

    def test_run_until_idle_drains_queue(self) -> None:
        clock = ManualClock(start_ms=100)
        fired: list[float] = []
        clock.call_later(250, lambda: fired.append(clock.now()))
        self.assertTrue(clock.run_until_idle())
        self.assertEqual(fired, [350.0])
        self.assertIsNone(clock.next_due())


class TestTimer(unittest.TestCase):
    def test_rearming_replaces_previous_deadline(self) -> None:
        clock = ManualClock()
        fired: list[float] = []
        timer = Timer(clock, lambda: fired.append(clock.now()))
        timer.arm(100)
        clock.advance(50)
        timer.arm(100)
        self.assertEqual(timer.expires_at, 150.0)
        clock.advance(100)
        self.assertEqual(fired, [150.0])
        self.assertFalse(timer.active)
        self.assertIsNone(timer.expires_at)

    def test_cancel(self) -> None:
        clock = ManualClock()
        fired: list[float] = []
        timer = Timer(clock, lambda: fired.append(clock.now()))
        timer.arm(10)
        timer.cancel()
        clock.advance(20)
        self.assertEqual(fired, [])
        self.assertFalse(timer.active)


if __name__ == "__main__":
    unittest.main()
