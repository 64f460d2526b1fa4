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

"""Config loaders and installers."""

from .installer import (
    PresetStatus,
    check_user_presets,
    init_user_config,
    user_config_needs_init,
)
from .loader import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_PAPER_SIZE,
    PAPER_CONFIGS,
    AppConfig,
    ColumnSettings,
    FontSettings,
    LoggingSettings,
    MeasurementSettings,
    PageSettings,
    ScaleSettings,
    StabilizerSettings,
    load_app_config,
    parse_app_config,
    parse_bool_word,
    resolve_config_path,
    user_config_home,
)

__all__ = [
    "AppConfig",
    "ColumnSettings",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_PAPER_SIZE",
    "FontSettings",
    "LoggingSettings",
    "MeasurementSettings",
    "PAPER_CONFIGS",
    "PageSettings",
    "PresetStatus",
    "ScaleSettings",
    "StabilizerSettings",
    "check_user_presets",
    "init_user_config",
    "load_app_config",
    "parse_app_config",
    "parse_bool_word",
    "resolve_config_path",
    "user_config_home",
    "user_config_needs_init",
]
