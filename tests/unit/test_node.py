from __future__ import annotations

from types import MappingProxyType

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lib_hierarchical_config.domain.node import Node, NodeBuilder, node_at, remove_at, replace_at


def make_tree() -> Node:
    tables = tuple(Node("table", name) for name in ("users", "docs", "logs"))
    return Node(children=(Node("db", attributes={"type": "pg"}, children=tables), Node("cache", "redis")))


def test_with_value_leaves_original_untouched() -> None:
    """Copies never alias the receiver's state."""

    original = make_tree()
    db = original.get_child("db")
    changed = replace_at(original, (0, 1), db.children[1].with_value("archive"))
    assert original.get_child("db").get_child("table", 1).value == "docs"
    assert changed.get_child("db").get_child("table", 1).value == "archive"


def test_untouched_subtrees_are_shared() -> None:
    original = make_tree()
    changed = replace_at(original, (0, 0), Node("table", "accounts"))
    assert changed.get_child("cache") is original.get_child("cache")
    assert changed.get_child("db").children[2] is original.get_child("db").children[2]
    assert changed.get_child("db") is not original.get_child("db")


def test_attributes_and_children_are_frozen() -> None:
    node = Node("db", attributes={"type": "pg"}, children=[Node("port", 1)])
    assert isinstance(node.children, tuple)
    with pytest.raises(TypeError):
        node.attributes["type"] = "mysql"  # type: ignore[index]


def test_caller_proxy_is_copied() -> None:
    backing = {"type": "pg"}
    node = Node("db", attributes=MappingProxyType(backing))
    backing["type"] = "mysql"
    assert node.attributes["type"] == "pg"


def test_frozen_fields() -> None:
    node = Node("db")
    with pytest.raises(AttributeError):
        node.name = "other"  # type: ignore[misc]


def test_structural_equality() -> None:
    assert make_tree() == make_tree()
    assert Node("a", 1) != Node("a", 2)
    assert Node("a", attributes={"x": 1}) != Node("a")


def test_with_child_appends_in_order() -> None:
    node = Node("list").with_child(Node("item", 1)).with_child(Node("item", 2))
    assert [child.value for child in node.get_children("item")] == [1, 2]


def test_without_child_removes_exactly_one() -> None:
    first, second = Node("item", 1), Node("item", 1)
    parent = Node("list", children=(first, second))
    remaining = parent.without_child(second)
    assert remaining.children == (first,)
    assert remaining.children[0] is first


def test_without_child_falls_back_to_equality() -> None:
    parent = Node("list", children=(Node("item", 1), Node("item", 2)))
    assert [c.value for c in parent.without_child(Node("item", 2)).children] == [1]


def test_without_child_absent_returns_receiver() -> None:
    parent = Node("list", children=(Node("item", 1),))
    assert parent.without_child(Node("other")) is parent


def test_without_children_removes_all_with_name() -> None:
    tree = make_tree().get_child("db")
    assert tree.without_children("table").children == ()
    assert tree.without_children("missing") is tree


def test_replace_child() -> None:
    parent = Node("p", children=(Node("a", 1), Node("b", 2)))
    updated = parent.replace_child(parent.children[1], Node("c", 3))
    assert [child.name for child in updated.children] == ["a", "c"]


def test_attribute_copies() -> None:
    node = Node("db").with_attribute("type", "pg").with_attributes({"version": 16})
    assert dict(node.attributes) == {"type": "pg", "version": 16}
    assert dict(node.without_attribute("type").attributes) == {"version": 16}
    assert node.without_attribute("missing") is node


def test_get_child_out_of_range() -> None:
    db = make_tree().get_child("db")
    assert db.get_child("table", 2).value == "logs"
    assert db.get_child("table", 3) is None
    assert db.get_child("table", -1) is None
    assert db.child_count("table") == 3
    assert db.child_count() == 3


def test_is_defined() -> None:
    assert not Node("empty").is_defined
    assert Node("v", 0).is_defined
    assert Node("a", attributes={"x": 1}).is_defined
    assert Node("c", children=(Node("x"),)).is_defined


def test_walk_is_pre_order() -> None:
    names = [node.name for node in make_tree().walk()]
    assert names == ["", "db", "table", "table", "table", "cache"]


def test_builder_creates_node() -> None:
    node = (
        NodeBuilder("server")
        .value("main")
        .add_attribute("port", 80)
        .add_attributes({"tls": True})
        .add_children([Node("alias", "www"), Node("alias", "web")])
        .create()
    )
    assert node.value == "main"
    assert dict(node.attributes) == {"port": 80, "tls": True}
    assert [child.value for child in node.get_children("alias")] == ["www", "web"]


def test_path_helpers() -> None:
    tree = make_tree()
    assert node_at(tree, (0, 2)).value == "logs"
    removed = remove_at(tree, (0, 0))
    assert [child.value for child in removed.get_child("db").children] == ["docs", "logs"]
    assert replace_at(tree, (), Node("new")) == Node("new")
    with pytest.raises(ValueError):
        remove_at(tree, ())


@given(st.lists(st.integers(), max_size=6), st.integers())
def test_with_value_never_mutates(values: list[int], replacement: int) -> None:
    parent = Node("list", children=tuple(Node("item", value) for value in values))
    snapshot = [child.value for child in parent.children]
    for position in range(len(values)):
        replace_at(parent, (position,), parent.children[position].with_value(replacement))
    assert [child.value for child in parent.children] == snapshot
