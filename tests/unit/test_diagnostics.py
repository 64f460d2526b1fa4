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

import logging
import unittest

from sheetflow.core.diagnostics import DiagnosticsChannel


class TestDiagnosticsChannel(unittest.TestCase):
    def test_records_events_with_clock_time(self) -> None:
        times = iter([5.0, 9.0])
        channel = DiagnosticsChannel(now=lambda: next(times))
        channel.emit("stabilizer", "held", reason="awaiting-fonts-or-plan")
        channel.emit("collector", "batch-flush", size=2)
        events = channel.events()
        self.assertEqual([event.name for event in events], ["held", "batch-flush"])
        self.assertEqual(events[1].at, 9.0)
        self.assertEqual(events[1].component, "collector")
        self.assertEqual(events[1].payload, {"size": 2})
        self.assertEqual(channel.counts(), {"held": 1, "batch-flush": 1})

    def test_ring_is_bounded(self) -> None:
        channel = DiagnosticsChannel(capacity=3)
        for index in range(5):
            channel.emit("scale", "scale", value=index)
        values = [event.payload["value"] for event in channel.events("scale")]
        self.assertEqual(values, [2, 3, 4])
        channel.clear()
        self.assertEqual(channel.events(), [])

    def test_rejects_empty_capacity(self) -> None:
        with self.assertRaises(ValueError):
            DiagnosticsChannel(capacity=0)

    def test_verbose_logs_at_info(self) -> None:
        channel = DiagnosticsChannel(verbose=True)
        with self.assertLogs("sheetflow.diagnostics", level=logging.INFO) as captured:
            channel.emit("stabilizer", "commit", value=640.0)
        self.assertIn("[stabilizer] commit value=640.0", captured.output[0])


if __name__ == "__main__":
    unittest.main()
