import pytest

from fragnet.core.errors import FragnetInvariantError
from fragnet.core.model import ActivityKind, ActivityNode, FragnetSnapshot, LinkType, Position, PrecedenceLink
from fragnet.core.store.graph_store import GraphStore
from fragnet.core.validate.validate_fragnet import (
    check_index_consistency,
    format_summary,
    summarize_fragnet,
    validate_fragnet,
)


def _chain(*names: str) -> tuple[GraphStore, dict[str, str], list[str]]:
    store = GraphStore()
    ids = {n: store.add_node(activity_id=n, description=f"Activity {n}") for n in names}
    link_ids = []
    for a, b in zip(names, names[1:]):
        link_ids.append(store.add_link(ids[a], ids[b]).link_id)
    return store, ids, link_ids


def test_valid_chain_has_no_findings():
    store, _, _ = _chain("A", "B", "C")
    assert validate_fragnet(store.snapshot()) == []


def test_empty_fragnet_is_valid():
    assert validate_fragnet(GraphStore().snapshot()) == []


def test_cycle_reported_once():
    store, ids, _ = _chain("A", "B", "C")
    closing = store.add_link(ids["C"], ids["A"], LinkType.FS, 0)
    errors = validate_fragnet(store.snapshot())
    cycle_msgs = [e for e in errors if "Circular dependency" in e]
    assert len(cycle_msgs) == 1
    assert errors == cycle_msgs

    store.remove_link(closing.link_id)
    assert not any("Circular dependency" in e for e in validate_fragnet(store.snapshot()))


def test_cycle_message_names_a_node_on_the_cycle():
    store, ids, _ = _chain("X", "A", "B")
    store.add_link(ids["B"], ids["A"])
    errors = validate_fragnet(store.snapshot())
    assert errors == ["Circular dependency detected involving Activity A"]


def test_only_first_cycle_reported():
    store, ids, _ = _chain("A", "B")
    store.add_link(ids["B"], ids["A"])
    c = store.add_node(activity_id="C", description="C")
    d = store.add_node(activity_id="D", description="D")
    store.add_link(c, d)
    store.add_link(d, c)
    errors = validate_fragnet(store.snapshot())
    assert sum("Circular dependency" in e for e in errors) == 1


def test_orphans_counted_in_one_message():
    store, _, _ = _chain("A", "B", "C")
    store.add_node(activity_id="D", description="Loose 1")
    store.add_node(activity_id="E", description="Loose 2")
    errors = validate_fragnet(store.snapshot())
    assert errors == ["2 orphaned activities found"]


def test_cycle_comes_before_orphans():
    store, ids, _ = _chain("A", "B")
    store.add_link(ids["B"], ids["A"])
    store.add_node(activity_id="Z", description="Loose")
    errors = validate_fragnet(store.snapshot())
    assert len(errors) == 2
    assert errors[0].startswith("Circular dependency detected involving")
    assert errors[1] == "1 orphaned activities found"


def test_long_chain_does_not_recurse():
    names = [f"N{i}" for i in range(3000)]
    store, _, _ = _chain(*names)
    assert validate_fragnet(store.snapshot()) == []


def _node(nid: str, preds=(), succs=()) -> ActivityNode:
    return ActivityNode(
        id=nid,
        activity_id=nid,
        description=nid,
        kind=ActivityKind.TASK,
        duration_days=1,
        position=Position(0, 0),
        predecessors=frozenset(preds),
        successors=frozenset(succs),
    )


def _link(lid: str, a: str, b: str) -> PrecedenceLink:
    return PrecedenceLink(id=lid, from_id=a, to_id=b, type=LinkType.FS, lag_days=0, description="")


def test_broken_index_is_a_defect():
    snap = FragnetSnapshot(nodes=(_node("a", succs={"b"}), _node("b")), links=(_link("l1", "a", "b"),))
    with pytest.raises(FragnetInvariantError) as exc:
        validate_fragnet(snap)
    assert exc.value.code == "E_INDEX_MISMATCH"


def test_dangling_link_is_a_defect():
    snap = FragnetSnapshot(nodes=(_node("a", succs={"b"}),), links=(_link("l1", "a", "b"),))
    with pytest.raises(FragnetInvariantError) as exc:
        check_index_consistency(snap)
    assert exc.value.code == "E_DANGLING_LINK"


def test_summary_counts():
    store, ids, _ = _chain("A", "B")
    store.add_link(ids["A"], ids["B"], LinkType.SS, 1)
    store.add_node(activity_id="M", description="Done", kind=ActivityKind.MILESTONE)
    snap = store.snapshot()
    errors = validate_fragnet(snap)
    summary = summarize_fragnet(snap, errors)
    assert summary.activity_count == 3
    assert summary.link_count == 2
    assert summary.milestone_count == 1
    assert summary.error_count == 1
    assert summary.link_type_counts == {"FS": 1, "SS": 1}
    with pytest.raises(TypeError):
        summary.link_type_counts["FF"] = 1  # type: ignore[index]
    assert format_summary(summary) == "3 activities (1 milestones), 2 links (FS=1, SS=1, FF=0, SF=0), 1 errors"
