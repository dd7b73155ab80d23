"""Canvas layout defaults for seeded and newly added activities.

Layout is purely visual; nothing here feeds validation.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from fragnet.core.model import Position


@dataclass(frozen=True)
class LayoutConfig:
    columns: int = 3
    origin_x: float = 50
    origin_y: float = 50
    spacing_x: float = 200
    spacing_y: float = 100
    new_activity_x: float = 100
    new_activity_y: float = 100
    new_activity_duration_days: int = 5

    def grid_position(self, index: int) -> Position:
        """Grid slot for the index-th seeded activity, filled row by row."""
        return Position(
            x=self.origin_x + (index % self.columns) * self.spacing_x,
            y=self.origin_y + (index // self.columns) * self.spacing_y,
        )

    def new_activity_position(self) -> Position:
        return Position(x=self.new_activity_x, y=self.new_activity_y)


DEFAULT_LAYOUT = LayoutConfig()

_INT_KEYS = {"columns", "new_activity_duration_days"}


class LayoutConfigError(ValueError):
    pass


def load_layout_file(path: str | Path) -> dict[str, Any]:
    """Load layout overrides from a YAML file.

    Format:
      columns: 4
      spacing_x: 240

    Returns only the keys present in the file, validated.
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise LayoutConfigError(f"layout file is not valid YAML: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise LayoutConfigError("layout file must be a mapping of setting -> number")

    known = {f.name for f in fields(LayoutConfig)}
    out: dict[str, Any] = {}
    for k, v in raw.items():
        if k not in known:
            raise LayoutConfigError(f"unknown layout setting: {k} (choose from: {', '.join(sorted(known))})")
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise LayoutConfigError(f"layout setting '{k}' must be a number")
        if k in _INT_KEYS:
            if not isinstance(v, int):
                raise LayoutConfigError(f"layout setting '{k}' must be an integer")
            if k == "columns" and v < 1:
                raise LayoutConfigError("layout setting 'columns' must be >= 1")
            if k == "new_activity_duration_days" and v < 0:
                raise LayoutConfigError("layout setting 'new_activity_duration_days' must be >= 0")
        out[k] = v
    return out


def merged_layout(overrides: dict[str, Any] | None = None) -> LayoutConfig:
    """Return DEFAULT_LAYOUT with optional overrides applied."""
    if not overrides:
        return DEFAULT_LAYOUT
    values = {f.name: getattr(DEFAULT_LAYOUT, f.name) for f in fields(LayoutConfig)}
    values.update(overrides)
    return LayoutConfig(**values)


def load_and_merge(layout_file: str | None) -> LayoutConfig:
    if not layout_file:
        return merged_layout()
    overrides = load_layout_file(layout_file)
    return merged_layout(overrides)
