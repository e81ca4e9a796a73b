from __future__ import annotations

import threading

import pytest

from lib_hierarchical_config.application.combine import override_combine
from lib_hierarchical_config.application.node_model import NodeModel
from lib_hierarchical_config.domain.errors import InvalidExpression
from lib_hierarchical_config.domain.node import Node


def values(model: NodeModel, key: str) -> list[object]:
    return [result.value for result in model.engine.query(model.root, key)]


def tables_model() -> NodeModel:
    model = NodeModel()
    model.add_property("tables.table", ["users", "docs", "logs"])
    return model


def test_add_property_creates_missing_path() -> None:
    model = NodeModel()
    model.add_property("db.connection.port", [5432])
    assert model.root.get_child("db").get_child("connection").get_child("port").value == 5432


def test_add_property_appends_new_nodes() -> None:
    model = tables_model()
    model.add_property("tables.table", ["audit"])
    assert values(model, "tables.table") == ["users", "docs", "logs", "audit"]
    assert model.root.child_count("tables") == 1


def test_add_property_with_no_values_is_a_no_op() -> None:
    model = tables_model()
    before = model.root
    model.add_property("tables.table", [])
    assert model.root is before


def test_add_attribute_creates_and_appends() -> None:
    model = NodeModel()
    model.add_property("db[@type]", ["pg"])
    assert values(model, "db[@type]") == ["pg"]
    model.add_property("db[@type]", ["mysql"])
    assert values(model, "db[@type]") == [("pg", "mysql")]


def test_add_attribute_below_existing_occurrence() -> None:
    model = tables_model()
    model.add_property("tables.table(1)[@owner]", ["ops"])
    assert model.root.get_child("tables").get_child("table", 1).attributes["owner"] == "ops"


def test_edits_never_touch_previous_snapshots() -> None:
    model = tables_model()
    before = model.root
    model.set_property("tables.table(1)", ["archive"])
    assert model.engine.query(before, "tables.table(1)")[0].value == "docs"
    assert values(model, "tables.table(1)") == ["archive"]


def test_set_property_pairs_then_clears_surplus_matches() -> None:
    model = tables_model()
    model.set_property("tables.table", ["only"])
    assert values(model, "tables.table") == ["only"]


def test_set_property_adds_surplus_values() -> None:
    model = tables_model()
    model.set_property("tables.table", ["a", "b", "c", "d"])
    assert values(model, "tables.table") == ["a", "b", "c", "d"]


def test_set_property_on_missing_key_adds_it() -> None:
    model = NodeModel()
    model.set_property("server.port", [8080])
    assert values(model, "server.port") == [8080]


def test_set_attribute() -> None:
    model = NodeModel()
    model.add_property("db[@type]", ["pg"])
    model.set_property("db[@type]", ["mysql"])
    assert values(model, "db[@type]") == ["mysql"]


def test_clear_property_prunes_empty_ancestors() -> None:
    model = NodeModel(Node("config"))
    model.add_property("a.b.c", [1])
    model.clear_property("a.b.c")
    assert model.root == Node("config")


def test_clear_property_keeps_defined_nodes() -> None:
    model = NodeModel()
    model.add_property("db.port", [5432])
    model.add_property("db.host", ["localhost"])
    model.add_property("db.port[@unit]", ["tcp"])
    model.clear_property("db.port")
    port = model.root.get_child("db").get_child("port")
    assert port is not None and port.value is None
    assert dict(port.attributes) == {"unit": "tcp"}
    model.clear_property("db.port[@unit]")
    assert model.root.get_child("db").get_child("port") is None
    assert values(model, "db.host") == ["localhost"]


def test_clear_property_on_all_matches() -> None:
    model = tables_model()
    model.clear_property("tables.table")
    assert model.root.get_children() == ()


def test_clear_tree_removes_subtrees() -> None:
    model = tables_model()
    removed = model.clear_tree("tables.table(1)")
    assert [result.value for result in removed] == ["docs"]
    assert values(model, "tables.table") == ["users", "logs"]


def test_clear_tree_of_root_keeps_root_name() -> None:
    model = NodeModel(Node("config", children=(Node("a", 1),)))
    model.clear_tree("")
    assert model.root == Node("config")


def test_clear_tree_without_matches_changes_nothing() -> None:
    model = tables_model()
    assert model.clear_tree("views") == []
    assert values(model, "tables.table") == ["users", "docs", "logs"]


def test_add_nodes_to_existing_and_missing_nodes() -> None:
    model = tables_model()
    model.add_nodes("tables.table(0)", [Node("column", "id")])
    model.add_nodes("db.pool", [Node("size", 4)])
    assert values(model, "tables.table(0).column") == ["id"]
    assert values(model, "db.pool.size") == [4]


@pytest.mark.parametrize("key", ["tables.table", "tables[@owner]"])
def test_add_nodes_rejects_ambiguous_targets(key: str) -> None:
    model = tables_model()
    with pytest.raises(InvalidExpression):
        model.add_nodes(key, [Node("x")])


def test_clear_and_set_root() -> None:
    model = NodeModel(Node("config", value="v", children=(Node("a", 1),)))
    model.clear()
    assert model.root == Node("config")
    model.set_root(Node("other"))
    assert model.root.name == "other"
    model.set_root(None)
    assert model.root == Node()


def test_merge_root() -> None:
    model = NodeModel(Node(children=(Node("port", 1),)))
    model.merge_root(Node(children=(Node("port", 2), Node("host", "h"))), override_combine)
    assert values(model, "port") == [1]
    assert values(model, "host") == ["h"]


def test_concurrent_adds_are_not_lost() -> None:
    model = NodeModel()

    def worker(offset: int) -> None:
        for position in range(25):
            model.add_property("items.item", [offset + position])

    threads = [threading.Thread(target=worker, args=(thread * 100,)) for thread in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(values(model, "items.item")) == 200
