import json
from pathlib import Path

from typer.testing import CliRunner

from fragnet.cli import app

runner = CliRunner()

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def test_cli_validate_json_failure_lists_findings():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "cyclic-fragnet.yaml"), "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["tool"] == "fragnet"
    assert payload["command"] == "validate"
    assert payload["ok"] is False
    assert payload["error_count"] == 1
    assert payload["errors"][0]["source"] == "validate"
    assert payload["summary"]["link_count"] == 3


def test_cli_validate_json_load_error():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "missing.yaml"), "--format", "json"])
    assert r.exit_code == 1
    payload = json.loads(r.stdout)
    assert payload["errors"][0]["code"] == "E_FILE_NOT_FOUND"
    assert payload["errors"][0]["source"] == "load"
    assert payload["summary"] is None
