import json
from pathlib import Path

import yaml
from typer.testing import CliRunner

from fragnet.cli import app

runner = CliRunner()

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"
FOOTING = str(EXAMPLES / "footing-activities.yaml")


def test_cli_build_end_to_end(tmp_path: Path):
    out_path = tmp_path / "fragnet.yaml"
    r = runner.invoke(
        app,
        ["build", FOOTING, "--out", str(out_path), "--link", "A1:A2:FS:2", "--link", "A2:A3:FS:0"],
    )
    assert r.exit_code == 0, r.output
    assert "OK: wrote fragnet" in r.stdout

    doc = yaml.safe_load(out_path.read_text(encoding="utf-8"))
    assert [(lk["from"], lk["to"], lk["type"], lk["lag_days"]) for lk in doc["links"]] == [
        ("fragnet-A1", "fragnet-A2", "FS", 2),
        ("fragnet-A2", "fragnet-A3", "FS", 0),
    ]
    assert len(doc["activities"]) == 3


def test_cli_build_blocks_save_on_orphans(tmp_path: Path):
    out_path = tmp_path / "fragnet.yaml"
    r = runner.invoke(app, ["build", FOOTING, "--out", str(out_path), "--link", "A1:A2"])
    assert r.exit_code == 2
    assert "1 orphaned activities found" in r.output
    assert not out_path.exists()


def test_cli_build_rejects_duplicate_and_self_links(tmp_path: Path):
    out_path = tmp_path / "fragnet.yaml"
    r = runner.invoke(
        app,
        ["build", FOOTING, "--out", str(out_path), "--link", "A1:A2", "--link", "A1:A2:FS", "--link", "A3:A3"],
    )
    assert r.exit_code == 2
    assert "E_DUPLICATE_LINK" in r.output
    assert "E_SELF_LOOP" in r.output


def test_cli_build_bad_link_option(tmp_path: Path):
    r = runner.invoke(
        app,
        ["build", FOOTING, "--out", str(tmp_path / "f.yaml"), "--link", "A1:A2:XX", "--link", "A1:NOPE"],
    )
    assert r.exit_code == 2
    assert "E_BUILD_INVALID_LINK" in r.output
    assert "E_BUILD_UNKNOWN_ACTIVITY" in r.output


def test_cli_build_json(tmp_path: Path):
    out_path = tmp_path / "fragnet.json"
    r = runner.invoke(
        app,
        [
            "build",
            str(EXAMPLES / "schedule-update.json"),
            "--out",
            str(out_path),
            "--link",
            "M100:T200:SS:-1",
            "--format",
            "json",
        ],
    )
    assert r.exit_code == 0, r.output
    payload = json.loads(r.stdout)
    assert payload["command"] == "build"
    assert payload["ok"] is True
    assert payload["summary"]["link_type_counts"] == {"SS": 1}
    assert payload["summary"]["milestone_count"] == 1
    doc = json.loads(out_path.read_text(encoding="utf-8"))
    assert doc["links"][0]["lag_days"] == -1


def test_cli_build_invalid_activities(tmp_path: Path):
    r = runner.invoke(
        app, ["build", str(EXAMPLES / "invalid-activities.yaml"), "--out", str(tmp_path / "f.yaml")]
    )
    assert r.exit_code == 2
    assert "E_INVALID_ENUM" in r.output


def test_cli_build_missing_file(tmp_path: Path):
    r = runner.invoke(app, ["build", str(EXAMPLES / "nope.yaml"), "--out", str(tmp_path / "f.yaml")])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in r.output


def test_cli_build_layout_file(tmp_path: Path):
    out_path = tmp_path / "fragnet.yaml"
    r = runner.invoke(
        app,
        [
            "build",
            FOOTING,
            "--out",
            str(out_path),
            "--link",
            "A1:A2",
            "--link",
            "A2:A3",
            "--layout-file",
            str(EXAMPLES / "layout-wide.yaml"),
        ],
    )
    assert r.exit_code == 0, r.output
    doc = yaml.safe_load(out_path.read_text(encoding="utf-8"))
    assert doc["activities"][1]["position"] == {"x": 290, "y": 50}


def test_cli_build_invalid_layout_file(tmp_path: Path):
    layout = tmp_path / "layout.yaml"
    layout.write_text("columns: 0\n", encoding="utf-8")
    r = runner.invoke(
        app, ["build", FOOTING, "--out", str(tmp_path / "f.yaml"), "--layout-file", str(layout)]
    )
    assert r.exit_code == 2
    assert "E_LAYOUT_FILE_INVALID" in r.output


def test_cli_build_malformed_layout_file(tmp_path: Path):
    layout = tmp_path / "layout.yaml"
    layout.write_text("columns: [1\n", encoding="utf-8")
    r = runner.invoke(
        app, ["build", FOOTING, "--out", str(tmp_path / "f.yaml"), "--layout-file", str(layout)]
    )
    assert r.exit_code == 2
    assert "E_LAYOUT_FILE_INVALID" in r.output
    assert not (tmp_path / "f.yaml").exists()
