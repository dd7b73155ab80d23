from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ActivityKind(str, Enum):
    MILESTONE = "Milestone"
    TASK = "Task"


class LinkType(str, Enum):
    """Precedence-diagramming relationship types."""

    FS = "FS"  # finish-to-start
    SS = "SS"  # start-to-start
    FF = "FF"  # finish-to-finish
    SF = "SF"  # start-to-finish

    @property
    def label(self) -> str:
        return LINK_TYPE_LABELS[self]


LINK_TYPE_LABELS: dict[LinkType, str] = {
    LinkType.FS: "Finish-to-Start",
    LinkType.SS: "Start-to-Start",
    LinkType.FF: "Finish-to-Finish",
    LinkType.SF: "Start-to-Finish",
}


@dataclass(frozen=True)
class Position:
    x: float
    y: float


@dataclass(frozen=True)
class ActivityInput:
    """One activity handed over by the schedule update."""

    activity_id: str
    description: str
    kind: ActivityKind
    start: dt.date
    finish: dt.date


@dataclass(frozen=True)
class ActivityNode:
    id: str
    activity_id: str
    description: str
    kind: ActivityKind
    duration_days: int
    position: Position

    start_date: Optional[dt.date] = None
    finish_date: Optional[dt.date] = None
    predecessors: frozenset[str] = frozenset()
    successors: frozenset[str] = frozenset()

    @property
    def is_orphan(self) -> bool:
        return not self.predecessors and not self.successors


@dataclass(frozen=True)
class PrecedenceLink:
    id: str
    from_id: str
    to_id: str
    type: LinkType
    lag_days: int
    description: str

    @property
    def key(self) -> tuple[str, str, LinkType]:
        return (self.from_id, self.to_id, self.type)


@dataclass(frozen=True)
class FragnetSnapshot:
    nodes: tuple[ActivityNode, ...]
    links: tuple[PrecedenceLink, ...]

    def nodes_by_id(self) -> dict[str, ActivityNode]:
        return {n.id: n for n in self.nodes}


def default_link_description(link_type: LinkType, lag_days: int) -> str:
    return f"{link_type.value} link with {lag_days} day lag"
