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

import tempfile
import unittest
from pathlib import Path

from playwright.sync_api import sync_playwright

from sheetflow.core.clock import SystemClock
from sheetflow.core.errors import SurfaceUnavailableError
from sheetflow.core.models import ContentItem, StabilizerState
from sheetflow.render.engine import ColumnFlowEngine
from sheetflow.render.session import SheetSession
from sheetflow.render.surface import PlaywrightSurface
from tests.test_support import CANONICAL_HEIGHT, TEST_CONFIG, TEST_GEOMETRY


def _playwright_ready() -> bool:
    try:
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch()
            browser.close()
        return True
    except Exception:
        return False


_PLAYWRIGHT_READY = _playwright_ready()


def _items() -> list[ContentItem]:
    return [
        ContentItem(item_id="stats", html="<p>" + "Strength 10. " * 30 + "</p>"),
        ContentItem(item_id="traits", text="Keen senses. " * 12),
        ContentItem(item_id="actions", html="<ul><li>Bite</li><li>Claw</li></ul>"),
    ]


class TestPlaywrightSurface(unittest.TestCase):
    def setUp(self) -> None:
        if not _PLAYWRIGHT_READY:
            self.skipTest("playwright not available")

    def _settle(self, *, canonical_mode: bool | None = None, pdf: Path | None = None):
        clock = SystemClock()
        with PlaywrightSurface(TEST_GEOMETRY) as surface:
            session = SheetSession(
                TEST_CONFIG,
                surface,
                ColumnFlowEngine(),
                clock,
                _items(),
                canonical_mode=canonical_mode,
            )
            try:
                session.start()
                settled = clock.run_until_idle(timeout_ms=10_000)
                if pdf is not None:
                    surface.export_pdf(pdf)
                return settled, session.summary(), session.measurements
            finally:
                session.close()

    def test_canonical_session_settles(self) -> None:
        settled, summary, measurements = self._settle()
        self.assertTrue(settled)
        self.assertEqual(summary["state"], StabilizerState.IDLE_ARMED.value)
        self.assertAlmostEqual(summary["committed_height"], CANONICAL_HEIGHT)
        self.assertGreaterEqual(summary["pages"], 1)
        self.assertEqual(len(measurements), 3)
        self.assertTrue(all(height > 0 for height in measurements.values()))

    def test_measured_session_stays_within_canonical_height(self) -> None:
        settled, summary, _measurements = self._settle(canonical_mode=False)
        self.assertTrue(settled)
        self.assertLessEqual(summary["committed_height"], CANONICAL_HEIGHT)
        self.assertGreater(summary["committed_height"], 0)

    def test_pdf_export(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "sheet.pdf"
            settled, _summary, _measurements = self._settle(pdf=output)
            self.assertTrue(settled)
            self.assertTrue(output.read_bytes().startswith(b"%PDF"))

    def test_narrow_viewport_scales_down(self) -> None:
        clock = SystemClock()
        with PlaywrightSurface(TEST_GEOMETRY) as surface:
            session = SheetSession(TEST_CONFIG, surface, ColumnFlowEngine(), clock, _items())
            try:
                session.start()
                self.assertTrue(clock.run_until_idle(timeout_ms=10_000))
                self.assertAlmostEqual(session.scale.scale, 1.0)
                surface.set_viewport_width(500)
                self.assertTrue(session.observe_viewport())
                self.assertLess(session.scale.scale, 1.0)
                self.assertGreaterEqual(session.scale.scale, TEST_CONFIG.scale.min)
            finally:
                session.close()

    def test_closed_surface_is_unavailable(self) -> None:
        surface = PlaywrightSurface(TEST_GEOMETRY)
        surface.open()
        surface.close()
        with self.assertRaises(SurfaceUnavailableError):
            surface.measure_mirrors(["stats:block"])


if __name__ == "__main__":
    unittest.main()
