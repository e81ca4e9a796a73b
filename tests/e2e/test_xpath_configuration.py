from __future__ import annotations

import pytest

from lib_hierarchical_config import HierarchicalConfiguration, XPathExpressionEngine, from_mapping
from lib_hierarchical_config.domain.errors import InvalidExpression


@pytest.fixture(autouse=True)
def _all_default_lookups(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LIB_HIERARCHICAL_CONFIG_DEFAULT_LOOKUPS", raising=False)


def server_config() -> HierarchicalConfiguration:
    return from_mapping(
        {
            "db": {"@type": "pg", "host": "db.local", "url": "pg://${db/host}"},
            "servers": {
                "server": [
                    {"@role": "web", "name": "alpha"},
                    {"@role": "db", "name": "beta"},
                ]
            },
        },
        expression_engine=XPathExpressionEngine(),
    )


def test_xpath_keys_read_values_attributes_and_variables() -> None:
    config = server_config()
    assert config.get_string("db/@type") == "pg"
    assert config.get_string("/db/host") == "db.local"
    assert config.get_string("db/url") == "pg://db.local"
    assert config.get_list("servers/server/name") == ["alpha", "beta"]
    assert config.get_string("servers/server[@role='db']/name") == "beta"
    assert config.get_max_index("servers/server") == 1


def test_xpath_sub_configurations_keep_the_engine() -> None:
    sub = server_config().configuration_at("servers/server[2]")
    assert isinstance(sub.expression_engine, XPathExpressionEngine)
    assert sub.get_string("name") == "beta"
    assert sub.get_string("@role") == "db"


def test_xpath_mutators_create_and_update_nodes() -> None:
    config = server_config()
    config.add_property("servers/server[1]/port", 80)
    config.add_property("cache/@ttl", 30)
    config.add_property("tags/tag", "a,b")
    config.set_property("db/@type", "mysql")
    config.clear_property("servers/server[@role='web']/name")

    assert config.get_int("servers/server[1]/port") == 80
    assert config.get_int("cache/@ttl") == 30
    assert config.get_list("tags/tag") == ["a", "b"]
    assert config.get_string("db/@type") == "mysql"
    assert config.get_list("servers/server/name") == ["beta"]


def test_xpath_add_with_explicit_parent() -> None:
    config = server_config()
    config.add_property("servers/server[2] alias", "b2")
    assert config.get_string("servers/server[@role='db']/alias") == "b2"


def test_xpath_add_needs_a_single_parent() -> None:
    config = server_config()
    with pytest.raises(InvalidExpression):
        config.add_property("servers/server port", 80)


def test_xpath_keys_listing() -> None:
    config = from_mapping({"db": {"@type": "pg", "host": "h"}}, expression_engine=XPathExpressionEngine())
    assert config.keys() == ["db/@type", "db/host"]
