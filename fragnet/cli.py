from __future__ import annotations

import json
import logging
import os
from typing import Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from fragnet.core.errors import FragnetError, FragnetLoadError
from fragnet.core.io.fragnet_document import dump_fragnet, load_fragnet, snapshot_to_document
from fragnet.core.io.load_activities import load_activities
from fragnet.core.layout.layout_config import LayoutConfigError, load_and_merge
from fragnet.core.model import FragnetSnapshot, LinkType
from fragnet.core.session import FragnetSession
from fragnet.core.validate.validate_fragnet import (
    FragnetSummary,
    format_summary,
    summarize_fragnet,
    validate_fragnet,
)

app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log store and editor activity"),
) -> None:
    """Fragnet CLI."""
    level_name = "DEBUG" if verbose else os.getenv("FRAGNET_LOG_LEVEL", "WARNING")
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("build")
def build(
    path: str = typer.Argument(..., help="Activity list (.yaml/.yml/.json)"),
    out: str = typer.Option(..., "--out", help="Where to write the saved fragnet (.yaml/.yml/.json)"),
    link: list[str] = typer.Option(
        [],
        "--link",
        help="FROM:TO[:TYPE[:LAG]] using activity ids, e.g. A1:A2:FS:2 (repeatable)",
    ),
    layout_file: Optional[str] = typer.Option(None, "--layout-file", help="Optional YAML layout overrides"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Seed a fragnet from activities, link them, validate and save."""
    _check_format(format, "E_BUILD_UNKNOWN_FORMAT")

    try:
        activities, load_errors = load_activities(path)
    except FragnetLoadError as e:
        _fail(format, "build", [e], exit_code=1)
    if load_errors:
        _fail(format, "build", list(load_errors), exit_code=2)

    try:
        layout = load_and_merge(layout_file)
    except FileNotFoundError:
        _fail(
            format,
            "build",
            [
                FragnetLoadError(
                    code="E_LAYOUT_FILE_NOT_FOUND",
                    message=f"layout file not found: {layout_file}",
                    path="layout_file",
                )
            ],
            exit_code=1,
        )
    except LayoutConfigError as e:
        _fail(
            format,
            "build",
            [FragnetError(code="E_LAYOUT_FILE_INVALID", message=str(e), file=layout_file, path="layout_file")],
            exit_code=2,
        )

    session = FragnetSession(activities, layout=layout)
    node_ids = _node_ids_by_activity(session)

    link_errors: list[FragnetError] = []
    for i, raw in enumerate(link):
        parsed = _parse_link_option(raw, i)
        if isinstance(parsed, FragnetError):
            link_errors.append(parsed)
            continue
        src, dst, link_type, lag = parsed
        missing = [a for a in (src, dst) if a not in node_ids]
        if missing:
            link_errors.append(
                FragnetError(
                    code="E_BUILD_UNKNOWN_ACTIVITY",
                    message=f"--link references unknown activity: {', '.join(missing)}",
                    file=path,
                    path=f"link[{i}]",
                )
            )
            continue

        editor = session.editor
        editor.set_link_type(link_type)
        editor.set_lag(lag)
        editor.start_linking(node_ids[src])
        result = editor.click_node(node_ids[dst])
        if result is None:
            link_errors.append(
                FragnetError(
                    code="E_SELF_LOOP",
                    message=f"an activity cannot be linked to itself: {src}",
                    file=path,
                    path=f"link[{i}]",
                )
            )
        elif result.error is not None:
            link_errors.append(
                FragnetError(code=result.error.code, message=result.error.message, file=path, path=f"link[{i}]")
            )
        editor.cancel_linking()

    if link_errors:
        _fail(format, "build", link_errors, exit_code=2)

    saved: list[FragnetSnapshot] = []
    findings = session.save(saved.append)
    if findings:
        _fail(format, "build", _findings_to_errors(findings, path), exit_code=2, summary=session.summary())

    snapshot = saved[0]
    try:
        dump_fragnet(snapshot_to_document(snapshot), out)
    except FragnetError as e:
        _fail(format, "build", [e], exit_code=2)

    summary = summarize_fragnet(snapshot, [])
    if format == "json":
        _emit_json(True, "build", [], exit_code=0, summary=summary, extra={"out": out})
    typer.echo(f"OK: wrote fragnet to {out}")
    typer.echo(format_summary(summary))


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Saved fragnet (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Re-import a saved fragnet and check it for cycles and orphans."""
    _check_format(format, "E_VALIDATE_UNKNOWN_FORMAT")

    try:
        store, load_errors = load_fragnet(path)
    except FragnetLoadError as e:
        _fail(format, "validate", [e], exit_code=1)
    if load_errors or store is None:
        _fail(format, "validate", list(load_errors), exit_code=2)

    snapshot = store.snapshot()
    findings = validate_fragnet(snapshot)
    summary = summarize_fragnet(snapshot, findings)
    if findings:
        _fail(format, "validate", _findings_to_errors(findings, path), exit_code=2, summary=summary)

    if format == "json":
        _emit_json(True, "validate", [], exit_code=0, summary=summary)
    typer.echo("OK: " + format_summary(summary))


@app.command("show")
def show(
    path: str = typer.Argument(..., help="Saved fragnet (.yaml/.yml/.json)"),
) -> None:
    """Print the activities and links of a saved fragnet as tables."""
    try:
        store, load_errors = load_fragnet(path)
    except FragnetLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)
    if load_errors or store is None:
        _print_errors(list(load_errors))
        raise typer.Exit(code=2)

    snapshot = store.snapshot()
    console = Console()

    activities = Table(title="Activities")
    for column in ("Id", "Activity", "Description", "Type", "Days", "Predecessors", "Successors"):
        activities.add_column(column)
    for n in snapshot.nodes:
        activities.add_row(
            n.id,
            n.activity_id,
            n.description,
            n.kind.value,
            str(n.duration_days),
            ", ".join(sorted(n.predecessors)),
            ", ".join(sorted(n.successors)),
        )
    console.print(activities)

    links = Table(title="Links")
    for column in ("Id", "From", "To", "Type", "Lag"):
        links.add_column(column)
    for lk in snapshot.links:
        links.add_row(lk.id, lk.from_id, lk.to_id, lk.type.value, str(lk.lag_days))
    console.print(links)

    findings = validate_fragnet(snapshot)
    for msg in findings:
        console.print(f"[red]{msg}[/red]")
    typer.echo(format_summary(summarize_fragnet(snapshot, findings)))


def _node_ids_by_activity(session: FragnetSession) -> dict[str, str]:
    # First node wins when an activity id repeats; node ids are accepted too.
    out: dict[str, str] = {}
    for node in session.store.snapshot().nodes:
        out.setdefault(node.activity_id, node.id)
        out.setdefault(node.id, node.id)
    return out


def _parse_link_option(raw: str, index: int) -> tuple[str, str, LinkType, int] | FragnetError:
    parts = raw.split(":")
    if len(parts) < 2 or len(parts) > 4 or not parts[0] or not parts[1]:
        return FragnetError(
            code="E_BUILD_INVALID_LINK",
            message=f"--link must look like FROM:TO[:TYPE[:LAG]], got {raw!r}",
            path=f"link[{index}]",
        )

    type_raw = parts[2].upper() if len(parts) >= 3 and parts[2] else LinkType.FS.value
    if type_raw not in {t.value for t in LinkType}:
        return FragnetError(
            code="E_BUILD_INVALID_LINK",
            message=f"unknown link type: {parts[2]} (choose one of: {', '.join(t.value for t in LinkType)})",
            path=f"link[{index}]",
        )

    lag = 0
    if len(parts) == 4 and parts[3]:
        try:
            lag = int(parts[3])
        except ValueError:
            return FragnetError(
                code="E_BUILD_INVALID_LINK",
                message=f"lag must be an integer number of days, got {parts[3]!r}",
                path=f"link[{index}]",
            )

    return parts[0], parts[1], LinkType(type_raw), lag


def _findings_to_errors(findings: list[str], file: Optional[str]) -> list[FragnetError]:
    return [FragnetError(code="E_FRAGNET_INVALID", message=msg, file=file) for msg in findings]


def _check_format(format: str, code: str) -> None:
    if format not in ("text", "json"):
        err = FragnetError(
            code=code,
            message=f"unknown format: {format} (choose one of: text, json)",
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _fail(
    format: str,
    command: str,
    errors: list[FragnetError],
    *,
    exit_code: int,
    summary: Optional[FragnetSummary] = None,
) -> NoReturn:
    if format == "json":
        _emit_json(False, command, errors, exit_code=exit_code, summary=summary)
    _print_errors(errors)
    raise typer.Exit(code=exit_code)


def _to_item(e: FragnetError) -> dict[str, Any]:
    source = "load" if isinstance(e, FragnetLoadError) else "validate" if e.code == "E_FRAGNET_INVALID" else "build"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "source": source,
    }


def _emit_json(
    ok: bool,
    command: str,
    errors: list[FragnetError],
    *,
    exit_code: int,
    summary: Optional[FragnetSummary] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    payload: dict[str, Any] = {
        "tool": "fragnet",
        "command": command,
        "ok": ok,
        "error_count": len(errors),
        "errors": [_to_item(e) for e in errors],
        "summary": _summary_dict(summary) if summary is not None else None,
    }
    if extra:
        payload.update(extra)
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _summary_dict(summary: FragnetSummary) -> dict[str, Any]:
    return {
        "activity_count": summary.activity_count,
        "link_count": summary.link_count,
        "milestone_count": summary.milestone_count,
        "error_count": summary.error_count,
        "link_type_counts": dict(summary.link_type_counts),
    }


def _print_errors(errors: list[FragnetError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="fragnet")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
