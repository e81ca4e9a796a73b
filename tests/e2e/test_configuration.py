from __future__ import annotations

import json
from decimal import Decimal

import pytest

from lib_hierarchical_config import (
    DisabledListDelimiterHandler,
    HierarchicalConfiguration,
    Interpolator,
    MapLookup,
    Node,
    from_mapping,
)
from lib_hierarchical_config.domain.errors import (
    ConversionError,
    InterpolationCycleError,
    InvalidExpression,
    MissingKeyError,
)


@pytest.fixture(autouse=True)
def _all_default_lookups(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LIB_HIERARCHICAL_CONFIG_DEFAULT_LOOKUPS", raising=False)


def database_config() -> HierarchicalConfiguration:
    return from_mapping(
        {
            "env_name": "dev",
            "db": {
                "@type": "pg",
                "host": "${env_name}.db.local",
                "port": 5432,
                "tables": {"table": [{"@name": "users", "rows": 10}, {"@name": "docs", "rows": 3}]},
            },
        }
    )


def test_path_list_scalar_and_list_access() -> None:
    config = HierarchicalConfiguration()
    config.add_property("path", "/a,/b,/c")
    assert config.get_string("path") == "/a"
    assert config.get_list("path") == ["/a", "/b", "/c"]
    assert config.get_property("path") == ["/a", "/b", "/c"]


def test_escaped_delimiter_is_kept() -> None:
    config = HierarchicalConfiguration()
    config.add_property("dsn", r"host=a\,b")
    assert config.get_list("dsn") == ["host=a,b"]


def test_disabled_list_handler_keeps_strings_whole() -> None:
    config = HierarchicalConfiguration(list_delimiter_handler=DisabledListDelimiterHandler())
    config.set_property("tags", "x,y")
    assert config.get_list("tags") == ["x,y"]


def test_values_from_files_are_not_split() -> None:
    assert from_mapping({"csv": "a,b"}).get_list("csv") == ["a,b"]


def test_typed_accessors() -> None:
    config = from_mapping({"port": "5432", "ratio": "0.25", "price": "9.99", "flag": "yes", "alias": "${port}"})
    assert config.get_int("port") == 5432
    assert config.get_int("alias") == 5432
    assert config.get_float("ratio") == 0.25
    assert config.get_decimal("price") == Decimal("9.99")
    assert config.get_bool("flag") is True


def test_typed_accessor_conversion_error() -> None:
    config = from_mapping({"db": {"port": "not-a-number"}})
    with pytest.raises(ConversionError) as excinfo:
        config.get_int("db.port")
    assert excinfo.value.key == "db.port"
    assert excinfo.value.target_type == "int"


def test_huge_integer_as_float_raises_conversion_error() -> None:
    with pytest.raises(ConversionError):
        from_mapping({"n": 10**400}).get_float("n")


def test_typed_accessor_missing_key() -> None:
    config = from_mapping({})
    with pytest.raises(MissingKeyError):
        config.get_int("db.port")
    assert config.get_int("db.port", 1) == 1
    assert config.get_bool("feature", None) is None
    assert config.get_string("db.port") is None


def test_whole_variable_keeps_type() -> None:
    config = from_mapping({"port": 8080, "alias": "${port}", "url": "http://h:${port}"})
    assert config.interpolate("${port}") == 8080
    assert config.get_string("url") == "http://h:8080"
    assert config.get_list("alias") == [8080]


def test_variable_referencing_list_expands_in_get_list() -> None:
    config = from_mapping({"paths": ["/a", "/b"], "all": "${paths}"})
    assert config.get_list("all") == ["/a", "/b"]
    assert config.get_string("all") == "/a"


def test_interpolation_cycle() -> None:
    config = from_mapping({"a": "${b}", "b": "${a}"})
    with pytest.raises(InterpolationCycleError):
        config.get_string("a")


def test_environment_and_attribute_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HIER_CONFIG_DB_PASSWORD", "s3cret")
    config = database_config()
    config.set_property("db.password", "${env:HIER_CONFIG_DB_PASSWORD}")
    config.set_property("label", "${db.tables.table(1)[@name]}@${db[@type]}")
    assert config.get_string("db.password") == "s3cret"
    assert config.get_string("label") == "docs@pg"


def test_registered_lookup() -> None:
    config = from_mapping({"region": "${cloud:region}"})
    config.interpolator.register_lookup("cloud", MapLookup({"region": "eu-west-1"}))
    assert config.get_string("region") == "eu-west-1"


def test_custom_interpolator_and_parent() -> None:
    parent = Interpolator(default_lookups=[MapLookup({"tenant": "acme"})])
    config = from_mapping({"bucket": "${tenant}-data"}, parent_interpolator=parent)
    assert config.get_string("bucket") == "acme-data"


def test_attribute_and_index_queries() -> None:
    config = database_config()
    assert config.get_string("db[@type]") == "pg"
    assert config.get_list("db.tables.table[@name]") == ["users", "docs"]
    assert config.get_int("db.tables.table(1).rows") == 3
    assert config.get_max_index("db.tables.table") == 1
    assert config.get_max_index("db.views") == -1


def test_malformed_key_raises() -> None:
    with pytest.raises(InvalidExpression):
        database_config().get_string("db.tables.table(x)")


def test_keys_in_document_order() -> None:
    config = database_config()
    assert config.keys("db.tables") == [
        "db.tables.table[@name]",
        "db.tables.table.rows",
    ]
    assert config.keys()[:3] == ["env_name", "db[@type]", "db.host"]
    assert "db.port" in config
    assert "db.views" not in config
    assert list(config) == config.keys()


def test_subset_shares_interpolator() -> None:
    subset = database_config().subset("db")
    assert subset.get_string("host") == "dev.db.local"
    assert subset.get_string("[@type]") == "pg"
    assert subset.get_int("port") == 5432


def test_configuration_at_is_detached_snapshot() -> None:
    config = database_config()
    db = config.configuration_at("db")
    config.set_property("db.port", "6543")
    assert db.get_int("port") == 5432
    assert db.get_string("host") == "dev.db.local"
    db.set_property("port", "7000")
    assert config.get_int("db.port") == 6543


def test_configuration_at_requires_single_match() -> None:
    with pytest.raises(InvalidExpression):
        database_config().configuration_at("db.tables.table")


def test_configurations_at() -> None:
    tables = database_config().configurations_at("db.tables.table")
    assert [table.get_string("[@name]") for table in tables] == ["users", "docs"]
    assert [table.get_int("rows") for table in tables] == [10, 3]


def test_child_configurations_at() -> None:
    children = database_config().child_configurations_at("db")
    assert [child.root.name for child in children] == ["host", "port", "tables"]
    assert children[0].get_string("") == "dev.db.local"
    assert database_config().child_configurations_at("db.tables.table") == []


def test_interpolated_configuration_freezes_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HIER_CONFIG_STAGE", "blue")
    config = from_mapping({"stage": "${env:HIER_CONFIG_STAGE}", "raw": "$${kept}"})
    frozen = config.interpolated_configuration()
    monkeypatch.setenv("HIER_CONFIG_STAGE", "green")
    assert config.get_string("stage") == "green"
    assert frozen.get_property("stage") == "blue"
    assert frozen.get_property("raw") == "${kept}"


def test_mutators() -> None:
    config = database_config()
    config.add_property("db.tables.table(1).rows", "4")
    assert config.get_list("db.tables.table(1).rows") == [3, "4"]
    removed = config.clear_tree("db.tables.table(0)")
    assert [result.node.attributes["name"] for result in removed] == ["users"]
    assert config.get_list("db.tables.table[@name]") == ["docs"]
    config.clear_property("db.tables.table.rows")
    assert config.get_list("db.tables.table.rows") == []
    config.add_nodes("db.pool", [Node("size", 4)])
    assert config.get_int("db.pool.size") == 4
    config.clear()
    assert config.is_empty()


def test_empty_configuration() -> None:
    config = HierarchicalConfiguration()
    assert config.is_empty()
    assert config.keys() == []
    assert config.as_dict() == {}
    assert config.get_list("anything", ["fallback"]) == ["fallback"]


def test_export() -> None:
    config = from_mapping({"db": {"@type": "pg", "port": 5432}, "paths": ["/a", "/b"], "name": "Zürich"})
    assert config.as_dict() == {"db": {"@type": "pg", "port": 5432}, "paths": ["/a", "/b"], "name": "Zürich"}
    assert json.loads(config.to_json(indent=2)) == config.as_dict()
    assert "Zürich" in config.to_json()
