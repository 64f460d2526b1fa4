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

import json
from pathlib import Path

from .models import DEFAULT_VARIANT, ContentItem


def load_sheet_document(path: str | Path) -> list[ContentItem]:
    """Read a sheet JSON document: ``{"items": [{"id", "variant", "html", "text"}]}``."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"sheet file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path}: invalid JSON ({exc.msg} at line {exc.lineno})") from exc
    return parse_sheet_document(data, source=str(path))


def parse_sheet_document(data: object, *, source: str = "sheet") -> list[ContentItem]:
    if not isinstance(data, dict):
        raise ValueError(f"{source}: top level must be an object")
    raw_items = data.get("items")
    if not isinstance(raw_items, list):
        raise ValueError(f"{source}: items must be a list")
    items: list[ContentItem] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw_items):
        field = f"{source}: items[{index}]"
        if not isinstance(entry, dict):
            raise ValueError(f"{field} must be an object")
        item_id = entry.get("id")
        if not isinstance(item_id, str) or not item_id.strip():
            raise ValueError(f"{field}.id must be a non-empty string")
        item_id = item_id.strip()
        if item_id in seen:
            raise ValueError(f"{field}.id duplicates {item_id!r}")
        seen.add(item_id)
        variant = entry.get("variant", DEFAULT_VARIANT)
        html = entry.get("html", "")
        text = entry.get("text", "")
        for name, value in (("variant", variant), ("html", html), ("text", text)):
            if not isinstance(value, str):
                raise ValueError(f"{field}.{name} must be a string")
        items.append(
            ContentItem(item_id=item_id, variant=variant or DEFAULT_VARIANT, html=html, text=text)
        )
    return items
