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

"""Seed and check the user's editable copies of the packaged paper presets."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from ..core.errors import ConfigError
from .loader import PAPER_CONFIGS, load_app_config, user_config_home


@dataclass(frozen=True)
class PresetStatus:
    paper_size: str
    path: Path
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def user_preset_paths(config_dir: Path | None = None) -> dict[str, Path]:
    base = config_dir or user_config_home()
    return {paper: base / preset.name for paper, preset in PAPER_CONFIGS.items()}


def user_config_needs_init(config_dir: Path | None = None) -> bool:
    return any(not path.is_file() for path in user_preset_paths(config_dir).values())


def init_user_config(config_dir: Path | None = None) -> Path:
    """Copy missing presets into the user config dir; edited copies are kept."""
    base = config_dir or user_config_home()
    try:
        base.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OSError(f"unable to create config dir at {base}") from exc
    for paper, target in user_preset_paths(base).items():
        if not target.exists():
            shutil.copyfile(PAPER_CONFIGS[paper], target)
    return base


def check_user_presets(config_dir: Path | None = None) -> list[PresetStatus]:
    """Load every user preset present; a broken one carries its error."""
    statuses: list[PresetStatus] = []
    for paper, path in user_preset_paths(config_dir).items():
        if not path.is_file():
            continue
        try:
            load_app_config(path, paper_size=paper)
        except ConfigError as exc:
            statuses.append(PresetStatus(paper, path, str(exc)))
        else:
            statuses.append(PresetStatus(paper, path))
    return statuses
