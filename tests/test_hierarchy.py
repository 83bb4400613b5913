"""Tests for parent/child grouping of open orders."""

from collections import Counter

from fakes import make_order

from order_monitor.hierarchy import build_hierarchy


def test_groups_children_under_parent() -> None:
    orders = [
        make_order(1, status="ACTIVE", child_order_ids=[2, 3]),
        make_order(2, parent_order_id=1, status="PAUSED"),
        make_order(3, parent_order_id=1, status="ACTIVE"),
        make_order(4, status="ACTIVE"),
    ]
    grouping = build_hierarchy(orders)

    assert len(grouping.grouped) == 1
    group = grouping.grouped[0]
    assert group.parent_id == "1"
    assert group.parent is orders[0]
    assert [c.id for c in group.children] == ["2", "3"]
    assert [o.id for o in grouping.standalone] == ["4"]


def test_children_before_parent_still_group() -> None:
    orders = [
        make_order("c1", parent_order_id="p"),
        make_order("p", child_order_ids=["c1"]),
    ]
    group = build_hierarchy(orders).grouped[0]
    assert group.parent is not None
    assert group.parent.id == "p"
    assert [c.id for c in group.children] == ["c1"]


def test_orphan_children_group_without_parent() -> None:
    grouping = build_hierarchy([make_order("c1", parent_order_id="missing")])
    assert grouping.grouped[0].parent is None
    assert grouping.grouped[0].parent_id == "missing"
    assert grouping.standalone == ()


def test_parent_without_children_this_tick_is_held_back() -> None:
    parent = make_order("p", child_order_ids=["c1", "c2"])
    grouping = build_hierarchy([parent, make_order("x")])

    assert grouping.grouped == ()
    assert [o.id for o in grouping.standalone] == ["x"]
    assert grouping.pending_parents == (parent,)


def test_order_with_both_roles_is_a_child() -> None:
    both = make_order("m", parent_order_id="p", child_order_ids=["z"])
    grouping = build_hierarchy([make_order("p", child_order_ids=["m"]), both])

    assert [g.parent_id for g in grouping.grouped] == ["p"]
    assert grouping.grouped[0].children == (both,)


def test_every_order_accounted_for_once() -> None:
    orders = [
        make_order("a"),
        make_order("p1", child_order_ids=["c1"]),
        make_order("c1", parent_order_id="p1"),
        make_order("c2", parent_order_id="p2"),
        make_order("p3", child_order_ids=["gone"]),
        make_order("b"),
    ]
    grouping = build_hierarchy(orders)
    seen = Counter(
        [g.parent.id for g in grouping.grouped if g.parent is not None]
        + [c.id for g in grouping.grouped for c in g.children]
        + [o.id for o in grouping.standalone]
    )

    assert all(count == 1 for count in seen.values())
    assert set(seen) == {"a", "p1", "c1", "c2", "b"}
    assert [o.id for o in grouping.pending_parents] == ["p3"]


def test_empty_input() -> None:
    grouping = build_hierarchy([])
    assert grouping.grouped == ()
    assert grouping.standalone == ()
