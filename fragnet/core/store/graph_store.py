from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, replace
from typing import Container, Iterator, Optional

from fragnet.core.errors import LinkError, LinkErrorCode
from fragnet.core.model import (
    ActivityKind,
    ActivityNode,
    FragnetSnapshot,
    LinkType,
    Position,
    PrecedenceLink,
    default_link_description,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkResult:
    link_id: Optional[str] = None
    error: Optional[LinkError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _suffixes() -> Iterator[str]:
    letters = [chr(c) for c in range(ord("A"), ord("Z") + 1)]
    for a in letters:
        yield a
    for a in letters:
        for b in letters:
            yield a + b


def allocate_unique_id(existing: Container[str], proposed: str) -> str:
    if proposed not in existing:
        return proposed
    for suf in _suffixes():
        candidate = f"{proposed}-{suf}"
        if candidate not in existing:
            return candidate
    raise RuntimeError(f"Unable to allocate unique id for {proposed}")


class GraphStore:
    """Nodes and links of one fragnet, with the predecessor/successor index.

    Every mutation goes through this class so the link list and the index on
    each node never diverge. Nodes and links are frozen; mutations swap in
    replaced copies, so snapshots handed out earlier stay unchanged.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, ActivityNode] = {}
        self._links: dict[str, PrecedenceLink] = {}
        self._link_id_by_key: dict[tuple[str, str, LinkType], str] = {}
        # node id -> ids of links leaving / entering it
        self._out_links: dict[str, set[str]] = {}
        self._in_links: dict[str, set[str]] = {}
        self._node_seq = 0
        self._link_seq = 0

    # -- reads -------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    @property
    def link_count(self) -> int:
        return len(self._links)

    def get_node(self, node_id: str) -> Optional[ActivityNode]:
        return self._nodes.get(node_id)

    def get_link(self, link_id: str) -> Optional[PrecedenceLink]:
        return self._links.get(link_id)

    def has_link(self, link_id: str) -> bool:
        return link_id in self._links

    def snapshot(self) -> FragnetSnapshot:
        return FragnetSnapshot(nodes=tuple(self._nodes.values()), links=tuple(self._links.values()))

    # -- nodes -------------------------------------------------------------

    def add_node(
        self,
        *,
        activity_id: str,
        description: str,
        kind: ActivityKind = ActivityKind.TASK,
        duration_days: int = 0,
        position: Position = Position(0, 0),
        start_date: Optional[dt.date] = None,
        finish_date: Optional[dt.date] = None,
        id_hint: Optional[str] = None,
    ) -> str:
        """Add an unlinked node and return its generated id."""
        if duration_days < 0:
            raise ValueError(f"duration_days must be >= 0, got {duration_days}")

        if id_hint:
            node_id = allocate_unique_id(self._nodes, id_hint)
        else:
            self._node_seq += 1
            node_id = allocate_unique_id(self._nodes, f"new-activity-{self._node_seq}")

        self._put_new_node(
            ActivityNode(
                id=node_id,
                activity_id=activity_id,
                description=description,
                kind=kind,
                duration_days=duration_days,
                position=position,
                start_date=start_date,
                finish_date=finish_date,
            )
        )
        logger.debug("added node %s (%s)", node_id, activity_id)
        return node_id

    def restore_node(self, node: ActivityNode) -> None:
        """Insert a node under its existing id (document import).

        Any predecessor/successor ids on the node are dropped; the index is
        rebuilt from the links restored afterwards.
        """
        if node.id in self._nodes:
            raise ValueError(f"node id already present: {node.id}")
        if node.duration_days < 0:
            raise ValueError(f"duration_days must be >= 0, got {node.duration_days}")
        self._put_new_node(replace(node, predecessors=frozenset(), successors=frozenset()))

    def remove_node(self, node_id: str) -> None:
        """Remove a node and every link touching it. Unknown ids are ignored."""
        if node_id not in self._nodes:
            return

        touching = self._out_links[node_id] | self._in_links[node_id]
        neighbours: set[str] = set()
        for link_id in touching:
            link = self._drop_link(link_id)
            neighbours.add(link.from_id)
            neighbours.add(link.to_id)
        neighbours.discard(node_id)

        del self._nodes[node_id]
        del self._out_links[node_id]
        del self._in_links[node_id]
        for nid in neighbours:
            self._reindex(nid)
        logger.debug("removed node %s and %d link(s)", node_id, len(touching))

    def update_node_position(self, node_id: str, position: Position) -> None:
        node = self._nodes.get(node_id)
        if node is None:
            return
        self._nodes[node_id] = replace(node, position=position)

    def update_node(
        self,
        node_id: str,
        *,
        activity_id: Optional[str] = None,
        description: Optional[str] = None,
        kind: Optional[ActivityKind] = None,
        duration_days: Optional[int] = None,
    ) -> bool:
        """Edit display fields of a node. Returns False for an unknown id.

        Duration is independent of the start/finish dates once the node exists.
        """
        node = self._nodes.get(node_id)
        if node is None:
            return False
        if duration_days is not None and duration_days < 0:
            raise ValueError(f"duration_days must be >= 0, got {duration_days}")

        self._nodes[node_id] = replace(
            node,
            activity_id=node.activity_id if activity_id is None else activity_id,
            description=node.description if description is None else description,
            kind=node.kind if kind is None else kind,
            duration_days=node.duration_days if duration_days is None else duration_days,
        )
        return True

    # -- links -------------------------------------------------------------

    def add_link(
        self,
        from_id: str,
        to_id: str,
        link_type: LinkType = LinkType.FS,
        lag_days: int = 0,
        description: Optional[str] = None,
    ) -> LinkResult:
        """Link from_id -> to_id, or return the reason it was rejected."""
        link_id = allocate_unique_id(self._links, f"link-{self._link_seq + 1}")
        result = self._insert_link(
            PrecedenceLink(
                id=link_id,
                from_id=from_id,
                to_id=to_id,
                type=link_type,
                lag_days=lag_days,
                description=description or default_link_description(link_type, lag_days),
            )
        )
        if result.ok:
            self._link_seq += 1
        return result

    def restore_link(self, link: PrecedenceLink) -> LinkResult:
        """Insert a link under its existing id (document import)."""
        if link.id in self._links:
            return _reject("E_DUPLICATE_LINK", f"link id already present: {link.id}", link.id)
        result = self._insert_link(link)
        if result.error is None:
            # keep generated ids clear of restored ones
            self._link_seq = max(self._link_seq, len(self._links))
        return result

    def remove_link(self, link_id: str) -> None:
        """Remove a link and update both endpoints. Unknown ids are ignored."""
        if link_id not in self._links:
            return
        link = self._drop_link(link_id)
        self._reindex(link.from_id)
        self._reindex(link.to_id)
        logger.debug("removed link %s", link_id)

    def update_link(
        self,
        link_id: str,
        *,
        link_type: Optional[LinkType] = None,
        lag_days: Optional[int] = None,
        description: Optional[str] = None,
    ) -> LinkResult:
        """Change type, lag or description of an existing link.

        Endpoints never change, so only the duplicate-triple rule can reject.
        A description that was generated from type and lag follows them.
        """
        link = self._links.get(link_id)
        if link is None:
            return _reject("E_UNKNOWN_LINK", f"unknown link id: {link_id}", link_id)

        new_type = link.type if link_type is None else link_type
        new_lag = link.lag_days if lag_days is None else lag_days
        new_key = (link.from_id, link.to_id, new_type)
        owner = self._link_id_by_key.get(new_key)
        if owner is not None and owner != link_id:
            return _reject(
                "E_DUPLICATE_LINK",
                f"a {new_type.value} link from {link.from_id} to {link.to_id} already exists",
                link_id,
            )

        if description is None:
            if link.description == default_link_description(link.type, link.lag_days):
                description = default_link_description(new_type, new_lag)
            else:
                description = link.description

        del self._link_id_by_key[link.key]
        updated = replace(link, type=new_type, lag_days=new_lag, description=description)
        self._links[link_id] = updated
        self._link_id_by_key[new_key] = link_id
        return LinkResult(link_id=link_id)

    # -- internals ---------------------------------------------------------

    def _put_new_node(self, node: ActivityNode) -> None:
        self._nodes[node.id] = node
        self._out_links[node.id] = set()
        self._in_links[node.id] = set()

    def _insert_link(self, link: PrecedenceLink) -> LinkResult:
        # All checks run before anything is touched.
        path = f"{link.from_id}->{link.to_id}"
        if link.from_id == link.to_id:
            return _reject("E_SELF_LOOP", f"an activity cannot be linked to itself: {link.from_id}", path)
        for endpoint in (link.from_id, link.to_id):
            if endpoint not in self._nodes:
                return _reject("E_UNKNOWN_NODE", f"unknown node id: {endpoint}", path)
        if link.key in self._link_id_by_key:
            return _reject(
                "E_DUPLICATE_LINK",
                f"a {link.type.value} link from {link.from_id} to {link.to_id} already exists",
                path,
            )

        self._links[link.id] = link
        self._link_id_by_key[link.key] = link.id
        self._out_links[link.from_id].add(link.id)
        self._in_links[link.to_id].add(link.id)
        self._reindex(link.from_id)
        self._reindex(link.to_id)
        logger.debug("added link %s: %s -%s-> %s", link.id, link.from_id, link.type.value, link.to_id)
        return LinkResult(link_id=link.id)

    def _drop_link(self, link_id: str) -> PrecedenceLink:
        link = self._links.pop(link_id)
        del self._link_id_by_key[link.key]
        self._out_links[link.from_id].discard(link_id)
        self._in_links[link.to_id].discard(link_id)
        return link

    def _reindex(self, node_id: str) -> None:
        # Parallel links of different types share endpoints, so the sets are
        # rebuilt from the remaining links rather than patched.
        node = self._nodes[node_id]
        self._nodes[node_id] = replace(
            node,
            successors=frozenset(self._links[lid].to_id for lid in self._out_links[node_id]),
            predecessors=frozenset(self._links[lid].from_id for lid in self._in_links[node_id]),
        )


def _reject(code: LinkErrorCode, message: str, path: Optional[str]) -> LinkResult:
    logger.debug("link rejected: %s: %s", code, message)
    return LinkResult(error=LinkError(code=code, message=message, path=path))
