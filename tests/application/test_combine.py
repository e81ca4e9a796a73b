from __future__ import annotations

from lib_hierarchical_config.application.combine import combine_all, override_combine, union_combine
from lib_hierarchical_config.domain.node import Node


def test_override_prefers_primary_values_and_attributes() -> None:
    primary = Node("db", attributes={"type": "pg"}, children=(Node("port", 6543),))
    secondary = Node("db", "fallback", attributes={"type": "mysql", "pool": 4}, children=(Node("host", "h"),))
    combined = override_combine(primary, secondary)
    assert combined.value == "fallback"
    assert dict(combined.attributes) == {"type": "pg", "pool": 4}
    assert [child.name for child in combined.children] == ["port", "host"]


def test_override_recurses_into_single_children() -> None:
    primary = Node(children=(Node("db", children=(Node("port", 1),)),))
    secondary = Node(children=(Node("db", children=(Node("port", 2), Node("user", "u"))),))
    db = override_combine(primary, secondary).get_child("db")
    assert [(child.name, child.value) for child in db.children] == [("port", 1), ("user", "u")]


def test_override_keeps_primary_lists_whole() -> None:
    primary = Node(children=(Node("item", 1), Node("item", 2)))
    secondary = Node(children=(Node("item", 3),))
    assert [child.value for child in override_combine(primary, secondary).children] == [1, 2]


def test_union_keeps_both_contents() -> None:
    first = Node(children=(Node("port", 1),))
    second = Node(children=(Node("port", 2),))
    assert [child.value for child in union_combine(first, second).children] == [1, 2]


def test_union_merges_value_less_single_children() -> None:
    first = Node(children=(Node("db", children=(Node("host", "a"),)),))
    second = Node(children=(Node("db", children=(Node("port", 1),)),))
    combined = union_combine(first, second)
    assert combined.child_count("db") == 1
    assert [child.name for child in combined.get_child("db").children] == ["host", "port"]


def test_union_list_nodes_stay_separate() -> None:
    first = Node(children=(Node("table", children=(Node("name", "users"),)),))
    second = Node(children=(Node("table", children=(Node("name", "docs"),)),))
    combined = union_combine(first, second, list_nodes=["table"])
    assert [table.get_child("name").value for table in combined.get_children("table")] == ["users", "docs"]


def test_union_attributes_first_wins() -> None:
    combined = union_combine(Node(attributes={"a": 1}), Node(attributes={"a": 2, "b": 3}))
    assert dict(combined.attributes) == {"a": 1, "b": 3}


def test_combine_all_is_a_left_fold() -> None:
    trees = [Node(children=(Node("a", value),)) for value in ("first", "second", "third")]
    assert combine_all(trees, override_combine).get_child("a").value == "first"
    assert [c.value for c in combine_all(trees, union_combine).children] == ["first", "second", "third"]


def test_combine_all_edge_cases() -> None:
    single = Node("only")
    assert combine_all([], override_combine) == Node()
    assert combine_all([single], override_combine) is single


def test_combiners_do_not_mutate_inputs() -> None:
    primary = Node(children=(Node("db", children=(Node("port", 1),)),))
    secondary = Node(children=(Node("db", children=(Node("host", "h"),)),))
    snapshot = (primary, secondary)
    override_combine(primary, secondary)
    union_combine(primary, secondary)
    assert (primary, secondary) == snapshot
    assert primary.get_child("db").child_count() == 1
