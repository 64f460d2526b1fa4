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

import math
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from platformdirs import user_config_path

from ..core.errors import ConfigError

MM_PER_INCH = 25.4
PX_PER_INCH = 96.0

FORCE_CANONICAL_HEIGHT_ENV = "SHEETFLOW_FORCE_CANONICAL_HEIGHT"
REGION_HEIGHT_DEBUG_ENV = "SHEETFLOW_REGION_HEIGHT_DEBUG"

APP_NAME = "sheetflow"
PAPER_SIZE_ENV = "SHEETFLOW_PAPER_SIZE"
XDG_CONFIG_ENV = "XDG_CONFIG_HOME"
DEFAULT_PAPER_SIZE = "A4"

PAPER_DIMENSIONS_MM = {
    "A4": (210.0, 297.0),
    "LETTER": (215.9, 279.4),
}

# One packaged preset per known paper size, next to this module.
PRESETS_DIR = Path(__file__).resolve().parent
PAPER_CONFIGS = {size: PRESETS_DIR / f"{size.lower()}.toml" for size in PAPER_DIMENSIONS_MM}
DEFAULT_CONFIG_PATH = PAPER_CONFIGS[DEFAULT_PAPER_SIZE]

_TRUE_WORDS = frozenset({"1", "true", "yes", "on", "enable", "enabled"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off", "disable", "disabled"})
_UNITS = ("mm", "in", "px")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class PageSettings:
    size: str = DEFAULT_PAPER_SIZE
    width_mm: float = 210.0
    height_mm: float = 297.0
    margin_top_mm: float = 18.0
    margin_bottom_mm: float = 18.0
    margin_left_mm: float = 10.0
    margin_right_mm: float = 10.0
    frame_border_px: float = 0.0


@dataclass(frozen=True)
class ColumnSettings:
    count: int = 2
    gutter_px: float = 12.0


@dataclass(frozen=True)
class StabilizerSettings:
    settle_delay_ms: float = 400.0
    min_absolute_diff_px: float = 1.0
    absolute_noise_px: float = 32.0
    relative_noise: float = 0.05
    canonical_mode: bool = True
    width_lock_timeout_ms: float = 1500.0


@dataclass(frozen=True)
class MeasurementSettings:
    frame_ms: float = 16.0
    flush_delay_ms: float = 150.0
    epsilon_px: float = 0.25
    remeasure_delay_ms: float = 300.0
    fallback_font: str = "helvetica"
    fallback_font_size_pt: float = 11.0
    fallback_line_height_px: float | None = None


@dataclass(frozen=True)
class ScaleSettings:
    min: float = 0.35
    max: float = 2.5
    threshold: float = 0.01
    page_gap_px: float = 48.0


@dataclass(frozen=True)
class FontSettings:
    faces: tuple[str, ...] = ()
    stylesheets: tuple[str, ...] = ()


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "WARNING"
    region_height_debug: bool = False


@dataclass(frozen=True)
class AppConfig:
    paper_size: str = DEFAULT_PAPER_SIZE
    page: PageSettings = field(default_factory=PageSettings)
    columns: ColumnSettings = field(default_factory=ColumnSettings)
    stabilizer: StabilizerSettings = field(default_factory=StabilizerSettings)
    measurement: MeasurementSettings = field(default_factory=MeasurementSettings)
    scale: ScaleSettings = field(default_factory=ScaleSettings)
    fonts: FontSettings = field(default_factory=FontSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source_path: Path | None = None


def user_config_home() -> Path:
    """Directory holding the user's editable presets (``XDG_CONFIG_HOME`` first)."""
    xdg_home = os.environ.get(XDG_CONFIG_ENV)
    if xdg_home:
        return Path(xdg_home) / APP_NAME
    return user_config_path(APP_NAME, appauthor=False)


def resolve_config_path(path: str | Path | None = None, *, paper_size: str | None = None) -> Path:
    """Pick the TOML file to load.

    An explicit path wins. Otherwise the paper size (argument, then
    ``SHEETFLOW_PAPER_SIZE``, then A4) selects a preset, and the user's copy is
    preferred over the packaged one when it exists.
    """
    if path:
        return Path(path)
    requested = paper_size or os.environ.get(PAPER_SIZE_ENV) or DEFAULT_PAPER_SIZE
    packaged = PAPER_CONFIGS.get(requested.strip().upper())
    if packaged is None:
        raise ConfigError(f"unknown paper size: {requested}")
    user_copy = user_config_home() / packaged.name
    return user_copy if user_copy.is_file() else packaged


def load_app_config(path: str | Path | None = None, *, paper_size: str | None = None) -> AppConfig:
    config_path = resolve_config_path(path, paper_size=paper_size)
    data = _load_toml(config_path)
    return parse_app_config(data, paper_size=paper_size, source_path=config_path)


def parse_app_config(
    data: dict[str, object],
    *,
    paper_size: str | None = None,
    source_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    env = os.environ if environ is None else environ
    page = _parse_page(_get_dict(data, "page"), paper_size=paper_size)
    stabilizer = _parse_stabilizer(_get_dict(data, "stabilizer"))
    force_canonical = parse_bool_word(env.get(FORCE_CANONICAL_HEIGHT_ENV))
    if force_canonical is not None:
        stabilizer = replace(stabilizer, canonical_mode=force_canonical)
    logging_settings = _parse_logging(_get_dict(data, "logging"))
    region_debug = parse_bool_word(env.get(REGION_HEIGHT_DEBUG_ENV))
    if region_debug is not None:
        logging_settings = replace(logging_settings, region_height_debug=region_debug)
    return AppConfig(
        paper_size=page.size,
        page=page,
        columns=_parse_columns(_get_dict(data, "columns")),
        stabilizer=stabilizer,
        measurement=_parse_measurement(_get_dict(data, "measurement")),
        scale=_parse_scale(_get_dict(data, "scale")),
        fonts=_parse_fonts(_get_dict(data, "fonts")),
        logging=logging_settings,
        source_path=source_path,
    )


def parse_bool_word(value: str | None) -> bool | None:
    """Interpret an environment switch; unknown words mean "not set"."""
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in _TRUE_WORDS:
        return True
    if normalized in _FALSE_WORDS:
        return False
    return None


def to_millimeters(value: float, unit: str) -> float:
    if unit == "mm":
        return value
    if unit == "in":
        return value * MM_PER_INCH
    return value * MM_PER_INCH / PX_PER_INCH


def to_pixels(value: float, unit: str) -> float:
    if unit == "px":
        return value
    if unit == "in":
        return value * PX_PER_INCH
    return value * PX_PER_INCH / MM_PER_INCH


def _parse_page(cfg: dict[str, object], *, paper_size: str | None) -> PageSettings:
    size_value = paper_size or _parse_optional_str(cfg.get("size"), field="page.size")
    size = (size_value or DEFAULT_PAPER_SIZE).strip().upper()
    unit = _parse_unit(cfg.get("unit"), field="page.unit", default="mm")
    width = _parse_optional_float(cfg.get("width"), field="page.width", positive=True)
    height = _parse_optional_float(cfg.get("height"), field="page.height", positive=True)
    if (width is None) != (height is None):
        raise ConfigError("page.width and page.height must be set together")
    if width is not None and height is not None:
        width_mm = to_millimeters(width, unit)
        height_mm = to_millimeters(height, unit)
    else:
        dimensions = PAPER_DIMENSIONS_MM.get(size)
        if dimensions is None:
            raise ConfigError(f"page.size: unknown paper size: {size}")
        width_mm, height_mm = dimensions
    defaults = PageSettings()
    return PageSettings(
        size=size,
        width_mm=width_mm,
        height_mm=height_mm,
        margin_top_mm=_parse_float(
            cfg.get("margin_top_mm"), field="page.margin_top_mm", default=defaults.margin_top_mm
        ),
        margin_bottom_mm=_parse_float(
            cfg.get("margin_bottom_mm"),
            field="page.margin_bottom_mm",
            default=defaults.margin_bottom_mm,
        ),
        margin_left_mm=_parse_float(
            cfg.get("margin_left_mm"),
            field="page.margin_left_mm",
            default=defaults.margin_left_mm,
        ),
        margin_right_mm=_parse_float(
            cfg.get("margin_right_mm"),
            field="page.margin_right_mm",
            default=defaults.margin_right_mm,
        ),
        frame_border_px=_parse_float(
            cfg.get("frame_border_px"),
            field="page.frame_border_px",
            default=defaults.frame_border_px,
        ),
    )


def _parse_columns(cfg: dict[str, object]) -> ColumnSettings:
    defaults = ColumnSettings()
    count = _parse_int_strict(cfg.get("count", defaults.count), field="columns.count")
    if count <= 0:
        raise ConfigError("columns.count must be a positive integer")
    unit = _parse_unit(cfg.get("unit"), field="columns.unit", default="px")
    gutter = _parse_optional_float(cfg.get("gutter"), field="columns.gutter")
    gutter_px = defaults.gutter_px if gutter is None else to_pixels(gutter, unit)
    return ColumnSettings(count=count, gutter_px=gutter_px)


def _parse_stabilizer(cfg: dict[str, object]) -> StabilizerSettings:
    defaults = StabilizerSettings()
    relative_noise = _parse_float(
        cfg.get("relative_noise"),
        field="stabilizer.relative_noise",
        default=defaults.relative_noise,
    )
    if relative_noise >= 1:
        raise ConfigError("stabilizer.relative_noise must be below 1")
    return StabilizerSettings(
        settle_delay_ms=_parse_float(
            cfg.get("settle_delay_ms"),
            field="stabilizer.settle_delay_ms",
            default=defaults.settle_delay_ms,
        ),
        min_absolute_diff_px=_parse_float(
            cfg.get("min_absolute_diff_px"),
            field="stabilizer.min_absolute_diff_px",
            default=defaults.min_absolute_diff_px,
        ),
        absolute_noise_px=_parse_float(
            cfg.get("absolute_noise_px"),
            field="stabilizer.absolute_noise_px",
            default=defaults.absolute_noise_px,
        ),
        relative_noise=relative_noise,
        canonical_mode=_parse_bool(
            cfg.get("canonical_mode"),
            field="stabilizer.canonical_mode",
            default=defaults.canonical_mode,
        ),
        width_lock_timeout_ms=_parse_float(
            cfg.get("width_lock_timeout_ms"),
            field="stabilizer.width_lock_timeout_ms",
            default=defaults.width_lock_timeout_ms,
        ),
    )


def _parse_measurement(cfg: dict[str, object]) -> MeasurementSettings:
    defaults = MeasurementSettings()
    font = _parse_optional_str(cfg.get("fallback_font"), field="measurement.fallback_font")
    return MeasurementSettings(
        frame_ms=_parse_float(
            cfg.get("frame_ms"), field="measurement.frame_ms", default=defaults.frame_ms
        ),
        flush_delay_ms=_parse_float(
            cfg.get("flush_delay_ms"),
            field="measurement.flush_delay_ms",
            default=defaults.flush_delay_ms,
        ),
        epsilon_px=_parse_float(
            cfg.get("epsilon_px"), field="measurement.epsilon_px", default=defaults.epsilon_px
        ),
        remeasure_delay_ms=_parse_float(
            cfg.get("remeasure_delay_ms"),
            field="measurement.remeasure_delay_ms",
            default=defaults.remeasure_delay_ms,
        ),
        fallback_font=font or defaults.fallback_font,
        fallback_font_size_pt=_parse_float(
            cfg.get("fallback_font_size_pt"),
            field="measurement.fallback_font_size_pt",
            default=defaults.fallback_font_size_pt,
            positive=True,
        ),
        fallback_line_height_px=_parse_optional_float(
            cfg.get("fallback_line_height_px"),
            field="measurement.fallback_line_height_px",
            positive=True,
        ),
    )


def _parse_scale(cfg: dict[str, object]) -> ScaleSettings:
    defaults = ScaleSettings()
    minimum = _parse_float(cfg.get("min"), field="scale.min", default=defaults.min, positive=True)
    maximum = _parse_float(cfg.get("max"), field="scale.max", default=defaults.max, positive=True)
    if minimum > maximum:
        raise ConfigError("scale.min must not exceed scale.max")
    return ScaleSettings(
        min=minimum,
        max=maximum,
        threshold=_parse_float(
            cfg.get("threshold"), field="scale.threshold", default=defaults.threshold
        ),
        page_gap_px=_parse_float(
            cfg.get("page_gap_px"), field="scale.page_gap_px", default=defaults.page_gap_px
        ),
    )


def _parse_fonts(cfg: dict[str, object]) -> FontSettings:
    return FontSettings(
        faces=_parse_str_list(cfg.get("faces"), field="fonts.faces"),
        stylesheets=_parse_str_list(cfg.get("stylesheets"), field="fonts.stylesheets"),
    )


def _parse_logging(cfg: dict[str, object]) -> LoggingSettings:
    level = _parse_optional_str(cfg.get("level"), field="logging.level")
    normalized = (level or "WARNING").strip().upper()
    if normalized not in _LOG_LEVELS:
        raise ConfigError(f"logging.level must be one of {', '.join(_LOG_LEVELS)}")
    return LoggingSettings(
        level=normalized,
        region_height_debug=_parse_bool(
            cfg.get("region_height_debug"),
            field="logging.region_height_debug",
            default=False,
        ),
    )


def _load_toml(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        try:
            return tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{path}: invalid TOML: {exc}") from exc


def _get_dict(data: dict[str, object], key: str) -> dict[str, object]:
    value = data.get(key)
    if isinstance(value, dict):
        return value
    return {}


def _parse_unit(value: object, *, field: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or value.strip().lower() not in _UNITS:
        raise ConfigError(f"{field} must be one of {', '.join(_UNITS)}")
    return value.strip().lower()


def _parse_optional_str(value: object, *, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{field} must be a string")
    normalized = value.strip()
    return normalized or None


def _parse_str_list(value: object, *, field: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"{field} must be a list of strings")
    items: list[str] = []
    for entry in value:
        if not isinstance(entry, str) or not entry.strip():
            raise ConfigError(f"{field} must be a list of strings")
        items.append(entry.strip())
    return tuple(items)


def _parse_bool(value: object, *, field: str, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        raise ConfigError(f"{field} must be a boolean")
    if isinstance(value, str):
        parsed = parse_bool_word(value)
        if parsed is not None:
            return parsed
    raise ConfigError(f"{field} must be a boolean")


def _parse_int_strict(value: object, *, field: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ConfigError(f"{field} must be an integer")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError as exc:
            raise ConfigError(f"{field} must be an integer") from exc
    raise ConfigError(f"{field} must be an integer")


def _parse_optional_float(
    value: object,
    *,
    field: str,
    positive: bool = False,
) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"{field} must be a number")
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError as exc:
            raise ConfigError(f"{field} must be a number") from exc
    else:
        raise ConfigError(f"{field} must be a number")
    if not math.isfinite(parsed):
        raise ConfigError(f"{field} must be a finite number")
    if positive and parsed <= 0:
        raise ConfigError(f"{field} must be positive")
    if parsed < 0:
        raise ConfigError(f"{field} must not be negative")
    return parsed


def _parse_float(value: object, *, field: str, default: float, positive: bool = False) -> float:
    parsed = _parse_optional_float(value, field=field, positive=positive)
    return default if parsed is None else parsed
