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


class SheetflowError(Exception):
    """Base class for errors raised by sheetflow."""


class FontLoadError(SheetflowError):
    """A requested font face failed to load on the rendering surface."""


class ThemeLoadError(SheetflowError):
    """A theme stylesheet could not be applied to the rendering surface."""


class SurfaceUnavailableError(SheetflowError):
    """The rendering surface (or the element being measured) is gone."""


class ConfigError(SheetflowError, ValueError):
    pass
