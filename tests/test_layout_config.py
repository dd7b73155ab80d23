from pathlib import Path

import pytest

from fragnet.core.layout.layout_config import (
    DEFAULT_LAYOUT,
    LayoutConfigError,
    load_and_merge,
    load_layout_file,
    merged_layout,
)
from fragnet.core.model import Position

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def test_defaults():
    assert load_and_merge(None) == DEFAULT_LAYOUT
    assert DEFAULT_LAYOUT.grid_position(4) == Position(250, 150)
    assert DEFAULT_LAYOUT.new_activity_position() == Position(100, 100)


def test_file_overrides_merge_with_defaults():
    layout = load_and_merge(str(EXAMPLES / "layout-wide.yaml"))
    assert layout.columns == 4
    assert layout.spacing_x == 240
    assert layout.spacing_y == DEFAULT_LAYOUT.spacing_y
    assert layout.grid_position(4) == Position(50, 150)


def test_empty_file_is_defaults(tmp_path):
    p = tmp_path / "layout.yaml"
    p.write_text("", encoding="utf-8")
    assert load_layout_file(str(p)) == {}
    assert merged_layout({}) == DEFAULT_LAYOUT


@pytest.mark.parametrize(
    "content",
    [
        "- 1\n- 2\n",
        "rows: 3\n",
        "columns: wide\n",
        "columns: 0\n",
        "columns: 2.5\n",
        "new_activity_duration_days: -1\n",
    ],
)
def test_invalid_files(tmp_path, content):
    p = tmp_path / "layout.yaml"
    p.write_text(content, encoding="utf-8")
    with pytest.raises(LayoutConfigError):
        load_layout_file(str(p))


def test_malformed_yaml_is_a_config_error(tmp_path):
    p = tmp_path / "layout.yaml"
    p.write_text("columns: [1\n", encoding="utf-8")
    with pytest.raises(LayoutConfigError, match="not valid YAML"):
        load_layout_file(str(p))


def test_missing_file():
    with pytest.raises(FileNotFoundError):
        load_and_merge(str(EXAMPLES / "nope.yaml"))
