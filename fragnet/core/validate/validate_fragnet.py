from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from fragnet.core.errors import FragnetInvariantError
from fragnet.core.model import ActivityKind, ActivityNode, FragnetSnapshot


def validate_fragnet(snapshot: FragnetSnapshot) -> list[str]:
    """Check a fragnet before it may be saved.

    Returns human-readable findings in a fixed order (cycle first, then
    orphans). An empty list means the fragnet is valid. Invalid graphs are a
    normal outcome; only a store whose index disagrees with its links raises
    (FragnetInvariantError).
    """

    check_index_consistency(snapshot)
    nodes_by_id = snapshot.nodes_by_id()
    errors: list[str] = []

    cycle_node = _find_cycle_node(snapshot.nodes, nodes_by_id)
    if cycle_node is not None:
        errors.append(f"Circular dependency detected involving {cycle_node.description}")

    orphan_count = sum(1 for n in snapshot.nodes if n.is_orphan)
    if orphan_count > 0:
        errors.append(f"{orphan_count} orphaned activities found")

    return errors


def check_index_consistency(snapshot: FragnetSnapshot) -> None:
    """Raise FragnetInvariantError unless every node's index matches the link list."""

    nodes_by_id = snapshot.nodes_by_id()
    expected_succ: dict[str, set[str]] = defaultdict(set)
    expected_pred: dict[str, set[str]] = defaultdict(set)
    seen_keys: set[tuple] = set()

    for link in snapshot.links:
        for endpoint in (link.from_id, link.to_id):
            if endpoint not in nodes_by_id:
                raise FragnetInvariantError(
                    code="E_DANGLING_LINK",
                    message=f"link references missing node: {endpoint}",
                    path=link.id,
                )
        if link.from_id == link.to_id:
            raise FragnetInvariantError(
                code="E_SELF_LOOP",
                message=f"self-loop on {link.from_id}",
                path=link.id,
            )
        if link.key in seen_keys:
            raise FragnetInvariantError(
                code="E_DUPLICATE_LINK",
                message=f"duplicate {link.type.value} link {link.from_id} -> {link.to_id}",
                path=link.id,
            )
        seen_keys.add(link.key)
        expected_succ[link.from_id].add(link.to_id)
        expected_pred[link.to_id].add(link.from_id)

    for node in snapshot.nodes:
        if node.successors != expected_succ.get(node.id, set()):
            raise FragnetInvariantError(
                code="E_INDEX_MISMATCH",
                message=f"successors of {node.id} do not match the link list",
                path=node.id,
            )
        if node.predecessors != expected_pred.get(node.id, set()):
            raise FragnetInvariantError(
                code="E_INDEX_MISMATCH",
                message=f"predecessors of {node.id} do not match the link list",
                path=node.id,
            )


def _find_cycle_node(
    nodes: tuple[ActivityNode, ...], nodes_by_id: dict[str, ActivityNode]
) -> Optional[ActivityNode]:
    """Return a node on the first cycle found, or None for a DAG.

    Iterative DFS over the successors index with white/grey/black colouring,
    so long chains do not hit the recursion limit.
    """

    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {n.id: WHITE for n in nodes}

    for start in nodes:
        if state[start.id] != WHITE:
            continue
        state[start.id] = GRAY
        stack = [(start.id, iter(sorted(start.successors)))]
        while stack:
            u, succ = stack[-1]
            advanced = False
            for v in succ:
                if state[v] == GRAY:
                    return nodes_by_id[v]
                if state[v] == WHITE:
                    state[v] = GRAY
                    stack.append((v, iter(sorted(nodes_by_id[v].successors))))
                    advanced = True
                    break
            if not advanced:
                state[u] = BLACK
                stack.pop()

    return None


@dataclass(frozen=True)
class FragnetSummary:
    activity_count: int
    link_count: int
    milestone_count: int
    error_count: int
    link_type_counts: Mapping[str, int]


def summarize_fragnet(snapshot: FragnetSnapshot, errors: list[str]) -> FragnetSummary:
    counts = Counter([link.type.value for link in snapshot.links])
    return FragnetSummary(
        activity_count=len(snapshot.nodes),
        link_count=len(snapshot.links),
        milestone_count=sum(1 for n in snapshot.nodes if n.kind == ActivityKind.MILESTONE),
        error_count=len(errors),
        link_type_counts=MappingProxyType({k: int(v) for k, v in counts.items()}),
    )


def format_summary(summary: FragnetSummary) -> str:
    ordered_types = ["FS", "SS", "FF", "SF"]
    parts = [f"{t}={summary.link_type_counts.get(t, 0)}" for t in ordered_types]
    return (
        f"{summary.activity_count} activities ({summary.milestone_count} milestones), "
        f"{summary.link_count} links ("
        + ", ".join(parts)
        + f"), {summary.error_count} errors"
    )
