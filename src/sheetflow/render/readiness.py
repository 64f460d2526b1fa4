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

"""Readiness gate for the rendering surface.

Measurements taken before fonts and theme styles settle are wrong, so
nothing downstream measures until :attr:`ReadinessGate.ready` is true.
Font and theme failures never block readiness; they are logged and the
gate opens anyway.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from ..core.diagnostics import DiagnosticsChannel
from ..core.errors import FontLoadError, ThemeLoadError
from .surface import RenderSurface

logger = logging.getLogger(__name__)

ReadyListener = Callable[[bool], None]


class ReadinessGate:
    def __init__(
        self,
        surface: RenderSurface,
        *,
        font_faces: Sequence[str] = (),
        stylesheets: Sequence[str] = (),
        diagnostics: DiagnosticsChannel | None = None,
    ) -> None:
        self._surface = surface
        self._font_faces = tuple(font_faces)
        self._stylesheets = tuple(stylesheets)
        self._diagnostics = diagnostics
        self._ready = False
        self._epoch = 0
        self._listeners: list[ReadyListener] = []

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def epoch(self) -> int:
        """Incremented on every transition to ready."""
        return self._epoch

    def subscribe(self, listener: ReadyListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def start(self) -> bool:
        if self._ready:
            return True
        self._apply_theme()
        self._load_fonts()
        self._surface.next_paint()
        self._ready = True
        self._epoch += 1
        if self._diagnostics is not None:
            self._diagnostics.emit("readiness", "ready", epoch=self._epoch)
        self._notify()
        return True

    def invalidate(self, reason: str) -> None:
        if not self._ready:
            return
        logger.debug("Readiness invalidated: %s", reason)
        self._ready = False
        self._notify()

    def _apply_theme(self) -> None:
        if not self._stylesheets:
            return
        try:
            self._surface.apply_stylesheets(self._stylesheets)
        except ThemeLoadError as exc:
            logger.warning("Theme stylesheets failed to load, continuing: %s", exc)

    def _load_fonts(self) -> None:
        if not self._surface.has_font_api:
            return
        try:
            self._surface.load_fonts(self._font_faces)
        except FontLoadError as exc:
            logger.warning("Font loading failed, continuing with fallback fonts: %s", exc)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._ready)
