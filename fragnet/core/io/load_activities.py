from __future__ import annotations

import datetime as dt
import json
from pathlib import Path
from typing import Any, Optional

import yaml

from fragnet.core.errors import FragnetLoadError
from fragnet.core.model import ActivityInput, ActivityKind


ALLOWED_KINDS: set[str] = {k.value for k in ActivityKind}


def read_document(path: str) -> Any:
    """Read a YAML/JSON file and return the parsed document.

    Does not check shape; callers own that.
    """

    p = Path(path)
    if not p.exists():
        raise FragnetLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    if suffix not in {".yaml", ".yml", ".json"}:
        raise FragnetLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported formats are .yaml/.yml and .json",
            file=str(p),
        )

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:  # pragma: no cover
        raise FragnetLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix == ".json":
            return json.loads(raw_text)
        return yaml.safe_load(raw_text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        code = "E_JSON_PARSE" if suffix == ".json" else "E_YAML_PARSE"
        raise FragnetLoadError(code=code, message=str(e), file=str(p)) from e


def load_activities(path: str) -> tuple[list[ActivityInput], list[FragnetLoadError]]:
    """Load the activity list a fragnet is seeded from.

    Accepts either a top-level list or a mapping with an ``activities`` list.
    Raises FragnetLoadError when the file cannot be read; per-record problems
    are returned so they can be reported together.
    """

    data = read_document(path)
    return parse_activities(data, file=str(Path(path)))


def parse_activities(
    data: Any, file: Optional[str] = None
) -> tuple[list[ActivityInput], list[FragnetLoadError]]:
    if isinstance(data, dict):
        records = data.get("activities")
        list_path = "activities"
    else:
        records = data
        list_path = ""

    if not isinstance(records, list):
        return [], [
            FragnetLoadError(
                code="E_INVALID_TOP_LEVEL",
                message="expected a list of activities or a mapping with an 'activities' list",
                file=file,
                path=list_path or None,
            )
        ]

    activities: list[ActivityInput] = []
    errors: list[FragnetLoadError] = []
    for i, raw in enumerate(records):
        rec_path = f"{list_path}[{i}]"
        if not isinstance(raw, dict):
            errors.append(
                FragnetLoadError(
                    code="E_INVALID_TYPE",
                    message="activity must be an object",
                    file=file,
                    path=rec_path,
                )
            )
            continue

        activity_id = raw.get("activity_id")
        if not isinstance(activity_id, str) or not activity_id.strip():
            errors.append(
                FragnetLoadError(
                    code="E_REQUIRED_FIELD",
                    message="activity_id is required and must be a non-empty string",
                    file=file,
                    path=f"{rec_path}.activity_id",
                )
            )
            continue

        description = raw.get("description", "")
        if not isinstance(description, str):
            errors.append(
                FragnetLoadError(
                    code="E_INVALID_TYPE",
                    message="description must be a string",
                    file=file,
                    path=f"{rec_path}.description",
                )
            )
            continue

        kind = raw.get("type", ActivityKind.TASK.value)
        if not isinstance(kind, str) or kind not in ALLOWED_KINDS:
            errors.append(
                FragnetLoadError(
                    code="E_INVALID_ENUM",
                    message=f"type must be one of {sorted(ALLOWED_KINDS)}",
                    file=file,
                    path=f"{rec_path}.type",
                )
            )
            continue

        dates: dict[str, dt.date] = {}
        for field, fallback in (("start", "current_start"), ("finish", "current_finish")):
            key = field if field in raw else fallback
            value = raw.get(key)
            if value is None:
                errors.append(
                    FragnetLoadError(
                        code="E_REQUIRED_FIELD",
                        message=f"{field} is required (or {fallback})",
                        file=file,
                        path=f"{rec_path}.{field}",
                    )
                )
                break
            parsed = parse_date(value)
            if parsed is None:
                errors.append(
                    FragnetLoadError(
                        code="E_INVALID_DATE",
                        message=f"{key} must be an ISO date (YYYY-MM-DD), got {value!r}",
                        file=file,
                        path=f"{rec_path}.{key}",
                    )
                )
                break
            dates[field] = parsed
        if len(dates) != 2:
            continue

        activities.append(
            ActivityInput(
                activity_id=activity_id,
                description=description,
                kind=ActivityKind(kind),
                start=dates["start"],
                finish=dates["finish"],
            )
        )

    return activities, errors


def parse_date(value: Any) -> Optional[dt.date]:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return dt.date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return dt.datetime.fromisoformat(value).date()
    except ValueError:
        return None


def derive_duration_days(start: dt.date, finish: dt.date) -> int:
    """Whole days from start to finish; a finish before the start yields 0."""
    return max(0, (finish - start).days)
