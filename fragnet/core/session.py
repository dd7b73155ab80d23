from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from fragnet.core.editor.graph_editor import GraphEditor
from fragnet.core.io.load_activities import derive_duration_days
from fragnet.core.layout.layout_config import DEFAULT_LAYOUT, LayoutConfig
from fragnet.core.model import ActivityInput, FragnetSnapshot
from fragnet.core.store.graph_store import GraphStore
from fragnet.core.validate.validate_fragnet import FragnetSummary, summarize_fragnet, validate_fragnet

logger = logging.getLogger(__name__)


SaveCallback = Callable[[FragnetSnapshot], None]


def seed_store(
    activities: Sequence[ActivityInput], layout: LayoutConfig = DEFAULT_LAYOUT
) -> GraphStore:
    """One unlinked node per activity, in input order, laid out on a grid."""
    store = GraphStore()
    for index, activity in enumerate(activities):
        store.add_node(
            activity_id=activity.activity_id,
            description=activity.description,
            kind=activity.kind,
            duration_days=derive_duration_days(activity.start, activity.finish),
            position=layout.grid_position(index),
            start_date=activity.start,
            finish_date=activity.finish,
            id_hint=f"fragnet-{activity.activity_id}",
        )
    return store


class FragnetSession:
    """A single fragnet editing session.

    The store lives only as long as the session. save() hands an immutable
    snapshot to the caller and only when validation finds nothing; discard()
    drops everything.
    """

    def __init__(
        self,
        activities: Sequence[ActivityInput],
        layout: LayoutConfig = DEFAULT_LAYOUT,
        store: Optional[GraphStore] = None,
    ) -> None:
        self.activities: tuple[ActivityInput, ...] = tuple(activities)
        self.layout = layout
        self.store = store if store is not None else seed_store(self.activities, layout)
        self.editor = GraphEditor(self.store, layout)
        self.errors: list[str] = []
        self.closed = False

    def reset(self) -> None:
        """Throw away all edits and re-seed from the original activities."""
        self._require_open()
        self.store = seed_store(self.activities, self.layout)
        self.editor = GraphEditor(self.store, self.layout)
        self.errors = []

    def validate(self) -> list[str]:
        self._require_open()
        self.errors = validate_fragnet(self.store.snapshot())
        return list(self.errors)

    @property
    def can_save(self) -> bool:
        """False while the last validation run reported findings."""
        return not self.closed and not self.errors

    def save(self, on_save: SaveCallback) -> list[str]:
        """Validate, then hand the snapshot to on_save if there were no findings.

        Returns the findings; an empty list means on_save was called and the
        session is closed.
        """
        errors = self.validate()
        if errors:
            logger.info("save blocked by %d validation error(s)", len(errors))
            return errors

        snapshot = self.store.snapshot()
        on_save(snapshot)
        logger.info("saved fragnet: %d activities, %d links", len(snapshot.nodes), len(snapshot.links))
        self.closed = True
        return []

    def discard(self) -> None:
        self.store = GraphStore()
        self.editor = GraphEditor(self.store, self.layout)
        self.errors = []
        self.closed = True

    def summary(self) -> FragnetSummary:
        return summarize_fragnet(self.store.snapshot(), self.errors)

    def _require_open(self) -> None:
        if self.closed:
            raise RuntimeError("fragnet session is closed")
