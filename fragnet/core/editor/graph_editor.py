from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, replace
from typing import Optional, Union

from fragnet.core.layout.layout_config import DEFAULT_LAYOUT, LayoutConfig
from fragnet.core.model import ActivityKind, LinkType, Position
from fragnet.core.store.graph_store import GraphStore, LinkResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Linking:
    source_id: str
    link_type: LinkType = LinkType.FS
    lag_days: int = 0


EditorState = Union[Idle, Linking]


class GraphEditor:
    """Turns canvas gestures into store calls.

    Holds only transient UI state: the linking mode, the remembered link
    type/lag, and the current node or link selection. At most one of
    selected_node_id and selected_link_id is set.
    """

    def __init__(self, store: GraphStore, layout: LayoutConfig = DEFAULT_LAYOUT) -> None:
        self.store = store
        self.layout = layout
        self.state: EditorState = Idle()
        self.selected_node_id: Optional[str] = None
        self.selected_link_id: Optional[str] = None
        self._link_type = LinkType.FS
        self._lag_days = 0
        self._new_seq = 0

    @property
    def is_linking(self) -> bool:
        return isinstance(self.state, Linking)

    def add_activity(
        self,
        *,
        activity_id: Optional[str] = None,
        description: str = "New Activity",
        kind: ActivityKind = ActivityKind.TASK,
        duration_days: Optional[int] = None,
        today: Optional[dt.date] = None,
    ) -> str:
        """Place a fresh activity on the canvas with the default duration."""
        self._new_seq += 1
        duration = self.layout.new_activity_duration_days if duration_days is None else duration_days
        start = today or dt.date.today()
        return self.store.add_node(
            activity_id=activity_id or f"NEW-{self._new_seq}",
            description=description,
            kind=kind,
            duration_days=duration,
            position=self.layout.new_activity_position(),
            start_date=start,
            finish_date=start + dt.timedelta(days=duration),
        )

    def click_node(self, node_id: str) -> Optional[LinkResult]:
        """Select a node, or finish a link when in linking mode.

        Returns the store's result when a link was attempted. On rejection the
        editor stays in linking mode so the user can pick another target.
        """
        state = self.state
        if isinstance(state, Linking):
            if node_id == state.source_id:
                return None
            result = self.store.add_link(state.source_id, node_id, state.link_type, state.lag_days)
            if result.ok:
                self.state = Idle()
            else:
                logger.info("link %s -> %s rejected: %s", state.source_id, node_id, result.error)
            return result

        if node_id in self.store:
            self.selected_node_id = node_id
            self.selected_link_id = None
        return None

    def start_linking(self, node_id: str) -> bool:
        if node_id not in self.store:
            return False
        self.state = Linking(source_id=node_id, link_type=self._link_type, lag_days=self._lag_days)
        return True

    def cancel_linking(self) -> None:
        self.state = Idle()

    def set_link_type(self, link_type: LinkType) -> None:
        self._link_type = link_type
        if isinstance(self.state, Linking):
            self.state = replace(self.state, link_type=link_type)

    def set_lag(self, lag_days: int) -> None:
        self._lag_days = lag_days
        if isinstance(self.state, Linking):
            self.state = replace(self.state, lag_days=lag_days)

    def move_node(self, node_id: str, x: float, y: float) -> None:
        self.store.update_node_position(node_id, Position(x=x, y=y))

    def select_link(self, link_id: str) -> None:
        if self.store.has_link(link_id):
            self.selected_link_id = link_id
            self.selected_node_id = None

    def clear_selection(self) -> None:
        self.selected_node_id = None
        self.selected_link_id = None

    def delete_node(self, node_id: str) -> None:
        self.store.remove_node(node_id)
        if isinstance(self.state, Linking) and self.state.source_id == node_id:
            self.state = Idle()
        if self.selected_node_id == node_id:
            self.selected_node_id = None
        if self.selected_link_id is not None and not self.store.has_link(self.selected_link_id):
            self.selected_link_id = None

    def delete_link(self, link_id: str) -> None:
        self.store.remove_link(link_id)
        if self.selected_link_id == link_id:
            self.selected_link_id = None

    def delete_selected(self) -> None:
        if self.selected_node_id is not None:
            self.delete_node(self.selected_node_id)
        elif self.selected_link_id is not None:
            self.delete_link(self.selected_link_id)

    def edit_link(
        self,
        link_id: str,
        *,
        link_type: Optional[LinkType] = None,
        lag_days: Optional[int] = None,
        description: Optional[str] = None,
    ) -> LinkResult:
        return self.store.update_link(link_id, link_type=link_type, lag_days=lag_days, description=description)

    def edit_node(
        self,
        node_id: str,
        *,
        activity_id: Optional[str] = None,
        description: Optional[str] = None,
        kind: Optional[ActivityKind] = None,
        duration_days: Optional[int] = None,
    ) -> bool:
        return self.store.update_node(
            node_id,
            activity_id=activity_id,
            description=description,
            kind=kind,
            duration_days=duration_days,
        )
