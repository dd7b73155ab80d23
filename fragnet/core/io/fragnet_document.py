"""Export/import of a saved fragnet.

The document is what the parent schedule receives: every activity with its
predecessor/successor ids and position, and every link with type and lag.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml

from fragnet.core.errors import FragnetError, FragnetLoadError
from fragnet.core.io.load_activities import parse_date, read_document
from fragnet.core.model import (
    ActivityKind,
    ActivityNode,
    FragnetSnapshot,
    LinkType,
    Position,
    PrecedenceLink,
    default_link_description,
)
from fragnet.core.store.graph_store import GraphStore


SCHEMA_VERSION = "0.1.0"


def snapshot_to_document(snapshot: FragnetSnapshot) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "activities": [_node_to_dict(n) for n in snapshot.nodes],
        "links": [_link_to_dict(link) for link in snapshot.links],
    }


def _node_to_dict(node: ActivityNode) -> dict[str, Any]:
    return {
        "id": node.id,
        "activity_id": node.activity_id,
        "description": node.description,
        "type": node.kind.value,
        "duration_days": node.duration_days,
        "start_date": node.start_date.isoformat() if node.start_date else None,
        "finish_date": node.finish_date.isoformat() if node.finish_date else None,
        "predecessors": sorted(node.predecessors),
        "successors": sorted(node.successors),
        "position": {"x": node.position.x, "y": node.position.y},
    }


def _link_to_dict(link: PrecedenceLink) -> dict[str, Any]:
    return {
        "id": link.id,
        "from": link.from_id,
        "to": link.to_id,
        "type": link.type.value,
        "lag_days": link.lag_days,
        "description": link.description,
    }


def dump_fragnet(document: dict[str, Any], path: str) -> None:
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        text = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
    elif suffix == ".json":
        text = json.dumps(document, indent=2) + "\n"
    else:
        raise FragnetError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported output formats are .yaml/.yml and .json",
            file=str(p),
        )
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")


def load_fragnet(path: str) -> tuple[Optional[GraphStore], list[FragnetLoadError]]:
    """Rebuild a store from a saved document.

    Links are replayed through the store, so the predecessor/successor index is
    recomputed; ids listed in the document must agree with it. Returns
    (store, errors); store is None when errors exist.
    """

    file = str(Path(path))
    data = read_document(path)
    if not isinstance(data, dict):
        raise FragnetLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=file,
        )
    return document_to_store(data, file=file)


def document_to_store(
    data: dict[str, Any], file: Optional[str] = None
) -> tuple[Optional[GraphStore], list[FragnetLoadError]]:
    errors: list[FragnetLoadError] = []

    raw_nodes = data.get("activities")
    raw_links = data.get("links", [])
    if not isinstance(raw_nodes, list):
        errors.append(_err("E_REQUIRED_FIELD", "activities is required and must be an array", file, "activities"))
    if not isinstance(raw_links, list):
        errors.append(_err("E_INVALID_TYPE", "links must be an array", file, "links"))
    if errors:
        return None, errors

    store = GraphStore()
    declared: dict[str, tuple[int, dict[str, Any]]] = {}

    for i, raw in enumerate(raw_nodes):
        node_path = f"activities[{i}]"
        node = _parse_node(raw, file, node_path)
        if isinstance(node, FragnetLoadError):
            errors.append(node)
            continue
        if node.id in store:
            errors.append(_err("E_DUPLICATE_ID", f"duplicate activity id: {node.id}", file, f"{node_path}.id"))
            continue
        store.restore_node(node)
        declared[node.id] = (i, raw)

    for i, raw in enumerate(raw_links):
        link_path = f"links[{i}]"
        link = _parse_link(raw, file, link_path)
        if isinstance(link, FragnetLoadError):
            errors.append(link)
            continue
        result = store.restore_link(link)
        if result.error is not None:
            errors.append(_err(result.error.code, result.error.message, file, link_path))

    if not errors:
        for nid, (i, raw) in declared.items():
            restored = store.get_node(nid)
            if restored is None:
                continue
            for key, actual in (("predecessors", restored.predecessors), ("successors", restored.successors)):
                listed = raw.get(key)
                if listed is None:
                    continue
                if not isinstance(listed, list) or any(not isinstance(x, str) for x in listed):
                    errors.append(
                        _err("E_INVALID_TYPE", f"{key} must be an array of strings", file, f"activities[{i}].{key}")
                    )
                elif set(listed) != set(actual):
                    errors.append(
                        _err(
                            "E_INDEX_MISMATCH",
                            f"{key} do not match the links: expected {sorted(actual)}",
                            file,
                            f"activities[{i}].{key}",
                        )
                    )

    if errors:
        return None, errors
    return store, []


def _parse_node(
    raw: Any, file: Optional[str], node_path: str
) -> ActivityNode | FragnetLoadError:
    if not isinstance(raw, dict):
        return _err("E_INVALID_TYPE", "activity must be an object", file, node_path)

    nid = raw.get("id")
    if not isinstance(nid, str) or not nid.strip():
        return _err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", file, f"{node_path}.id")

    activity_id = raw.get("activity_id", "")
    description = raw.get("description", "")
    if not isinstance(activity_id, str) or not isinstance(description, str):
        return _err("E_INVALID_TYPE", "activity_id and description must be strings", file, node_path)

    kind = raw.get("type")
    if not isinstance(kind, str) or kind not in {k.value for k in ActivityKind}:
        return _err(
            "E_INVALID_ENUM", f"type must be one of {sorted(k.value for k in ActivityKind)}", file, f"{node_path}.type"
        )

    duration = raw.get("duration_days")
    if isinstance(duration, bool) or not isinstance(duration, int) or duration < 0:
        return _err(
            "E_INVALID_TYPE", "duration_days must be a non-negative integer", file, f"{node_path}.duration_days"
        )

    dates = {}
    for key in ("start_date", "finish_date"):
        value = raw.get(key)
        if value is None:
            dates[key] = None
            continue
        parsed = parse_date(value)
        if parsed is None:
            return _err("E_INVALID_DATE", f"{key} must be an ISO date, got {value!r}", file, f"{node_path}.{key}")
        dates[key] = parsed

    pos = raw.get("position", {"x": 0, "y": 0})
    if (
        not isinstance(pos, dict)
        or not all(isinstance(pos.get(axis), (int, float)) and not isinstance(pos.get(axis), bool) for axis in ("x", "y"))
    ):
        return _err("E_INVALID_TYPE", "position must be {x: number, y: number}", file, f"{node_path}.position")

    return ActivityNode(
        id=nid,
        activity_id=activity_id,
        description=description,
        kind=ActivityKind(kind),
        duration_days=duration,
        position=Position(x=pos["x"], y=pos["y"]),
        start_date=dates["start_date"],
        finish_date=dates["finish_date"],
    )


def _parse_link(
    raw: Any, file: Optional[str], link_path: str
) -> PrecedenceLink | FragnetLoadError:
    if not isinstance(raw, dict):
        return _err("E_INVALID_TYPE", "link must be an object", file, link_path)

    lid = raw.get("id")
    from_id = raw.get("from")
    to_id = raw.get("to")
    for key, value in (("id", lid), ("from", from_id), ("to", to_id)):
        if not isinstance(value, str) or not value.strip():
            return _err("E_REQUIRED_FIELD", f"{key} is required and must be a non-empty string", file, f"{link_path}.{key}")

    ltype = raw.get("type", LinkType.FS.value)
    if not isinstance(ltype, str) or ltype not in {t.value for t in LinkType}:
        return _err(
            "E_INVALID_ENUM", f"type must be one of {[t.value for t in LinkType]}", file, f"{link_path}.type"
        )

    lag = raw.get("lag_days", 0)
    if isinstance(lag, bool) or not isinstance(lag, int):
        return _err("E_INVALID_TYPE", "lag_days must be an integer", file, f"{link_path}.lag_days")

    link_type = LinkType(ltype)
    description = raw.get("description")
    if not isinstance(description, str) or not description:
        description = default_link_description(link_type, lag)

    return PrecedenceLink(
        id=lid,
        from_id=from_id,
        to_id=to_id,
        type=link_type,
        lag_days=lag,
        description=description,
    )


def _err(code: str, message: str, file: Optional[str], path: Optional[str]) -> FragnetLoadError:
    return FragnetLoadError(code=code, message=message, file=file, path=path)
