"""Composition root for ``lib_hierarchical_config``.

Purpose
-------
Wire the node model, the expression engine, the list delimiter handler, and
the interpolator into :class:`HierarchicalConfiguration`, the object
applications actually read from, and provide the factories that build
configurations from Python data or from TOML/JSON/YAML files.

Contents
--------
* :class:`HierarchicalConfiguration` – typed accessors, mutators, and
  navigation (subsets, sub-configurations) over one node tree.
* :class:`ConfigurationLookup` – default lookup resolving ``${key}`` against
  the raw values of a configuration.
* :class:`LayerLoadError` – raised when a file cannot be loaded.
* :func:`from_mapping` / :func:`read_config` – factories.

System Role
-----------
Readers store raw values; interpolation happens lazily in the accessors so
time-varying lookups (environment, process properties, dates) are resolved
again on every read.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping, Sequence
from decimal import Decimal
from functools import partial
from typing import Any, Callable, Final

from .adapters.file_loaders.structured import loader_for
from .adapters.readers.mapping import mapping_to_node, node_to_data
from .application.combine import combine_all, override_combine, union_combine
from .application.interpolator import Interpolator
from .application.node_model import NodeModel
from .application.ports import KeyEngine, ListDelimiterHandler
from .domain.conversion import convert, to_str
from .domain.errors import ConfigError, InvalidExpression, InvalidFormat, MissingKeyError, NotFound
from .domain.expression import QueryResult
from .domain.list_delimiters import DEFAULT_LIST_DELIMITER_HANDLER
from .domain.node import Node, NodeBuilder
from .observability import log_debug, log_info, make_event

_MISSING: Final[object] = object()

COMBINERS: Final[Mapping[str, Callable[[Node, Node], Node]]] = {
    "override": override_combine,
    "union": union_combine,
}


class LayerLoadError(ConfigError):
    """Raised when a configuration file cannot be materialised.

    What
    -----
    Wraps :class:`InvalidFormat` or :class:`NotFound` with the offending path
    so callers can catch a single exception family.
    """


class ConfigurationLookup:
    """Resolve variables without prefix against a configuration's raw values.

    The returned value is not interpolated; the interpolator expands it
    recursively within the same call so cycles are detected.
    """

    def __init__(self, configuration: HierarchicalConfiguration) -> None:
        self._configuration = configuration

    def lookup(self, name: str) -> Any | None:
        try:
            return self._configuration.get_property(name)
        except InvalidExpression:
            return None


class HierarchicalConfiguration:
    """Configuration backed by an immutable node tree.

    Why
    ----
    Applications need dotted-key access (``db.tables.table(1).name``),
    attributes, repeated elements, and ``${...}`` variables without caring
    which file format produced the data.

    Parameters
    ----------
    root:
        Initial tree; an empty root is used when omitted.
    list_delimiter_handler:
        Splits strings passed to :meth:`add_property`/:meth:`set_property`.
        Defaults to :data:`DEFAULT_LIST_DELIMITER_HANDLER` (comma).
    expression_engine:
        Key syntax; defaults to the shared dot/index/attribute engine.
        :class:`~lib_hierarchical_config.domain.xpath.XPathExpressionEngine`
        switches to slash separated XPath keys.
    interpolator:
        Use this interpolator as is. When omitted a new one is created with
        the built-in prefix lookups and a :class:`ConfigurationLookup` for this
        configuration.
    parent_interpolator:
        Fallback consulted when nothing else resolves a variable.

    Examples
    --------
    >>> config = from_mapping({"base": "/x", "first": "${base}/y", "second": "${first}/z"})
    >>> config.get_string("second")
    '/x/y/z'
    >>> config.add_property("path", "/a,/b,/c")
    >>> config.get_string("path"), config.get_list("path")
    ('/a', ['/a', '/b', '/c'])
    >>> config.set_property("db.port", "5432")
    >>> config.get_int("db.port")
    5432
    """

    def __init__(
        self,
        root: Node | None = None,
        *,
        list_delimiter_handler: ListDelimiterHandler | None = None,
        expression_engine: KeyEngine | None = None,
        interpolator: Interpolator | None = None,
        parent_interpolator: Interpolator | None = None,
    ) -> None:
        self._model = NodeModel(root, expression_engine)
        self.list_delimiter_handler: ListDelimiterHandler = list_delimiter_handler or DEFAULT_LIST_DELIMITER_HANDLER
        if interpolator is None:
            interpolator = Interpolator.with_defaults(default_lookups=[ConfigurationLookup(self)])
        if parent_interpolator is not None:
            interpolator.parent = parent_interpolator
        self.interpolator = interpolator

    def __repr__(self) -> str:
        return f"HierarchicalConfiguration(keys={len(self.keys())})"

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.contains_key(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    # -- structure ----------------------------------------------------------

    @property
    def root(self) -> Node:
        """Snapshot of the current root node."""

        return self._model.root

    @property
    def node_model(self) -> NodeModel:
        return self._model

    @property
    def expression_engine(self) -> KeyEngine:
        return self._model.engine

    def query(self, key: str) -> list[QueryResult]:
        """Evaluate *key* against the current root."""

        return self.expression_engine.query(self._model.root, key)

    # -- raw access ---------------------------------------------------------

    def get_property(self, key: str) -> Any:
        """Return the raw value of *key*.

        ``None`` when nothing matches or no match carries a value, the single
        value for one match, a list when several matches carry values.
        """

        values = [result.value for result in self.query(key)]
        values = [value for value in values if value is not None]
        if not values:
            return None
        return values[0] if len(values) == 1 else values

    def contains_key(self, key: str) -> bool:
        return self.get_property(key) is not None

    def interpolate(self, value: Any) -> Any:
        """Expand ``${...}`` variables in *value* with this configuration's interpolator."""

        return self.interpolator.interpolate(value)

    # -- typed accessors ----------------------------------------------------

    def get_string(self, key: str, default: str | None = None) -> str | None:
        """Return the interpolated value of *key* as text; lists contribute their first element.

        Examples
        --------
        >>> config = from_mapping({"paths": ["${root}/a", "/b"], "root": "/srv"})
        >>> config.get_string("paths")
        '/srv/a'
        >>> config.get_string("missing", "fallback")
        'fallback'
        """

        value = self._scalar(key)
        if value is None:
            return default
        return to_str(value, key)

    def get_list(self, key: str, default: Iterable[Any] | None = None) -> list[Any]:
        """Return every value stored under *key*, each interpolated on its own.

        Examples
        --------
        >>> config = from_mapping({"paths": ["${root}/a", "/b"], "root": "/srv"})
        >>> config.get_list("paths")
        ['/srv/a', '/b']
        >>> config.get_list("missing")
        []
        """

        value = self.get_property(key)
        if value is None:
            return list(default) if default is not None else []
        items = value if isinstance(value, (list, tuple)) else [value]
        result: list[Any] = []
        for item in items:
            resolved = self.interpolate(item)
            if isinstance(resolved, (list, tuple)):
                result.extend(resolved)
            else:
                result.append(resolved)
        return result

    def get_int(self, key: str, default: Any = _MISSING) -> int:
        return self._typed(key, int, default)

    def get_float(self, key: str, default: Any = _MISSING) -> float:
        return self._typed(key, float, default)

    def get_bool(self, key: str, default: Any = _MISSING) -> bool:
        """Return *key* as ``bool`` (``true/yes/on/1`` and their opposites)."""

        return self._typed(key, bool, default)

    def get_decimal(self, key: str, default: Any = _MISSING) -> Decimal:
        return self._typed(key, Decimal, default)

    def _scalar(self, key: str) -> Any:
        value = _first(self.get_property(key))
        if value is None:
            return None
        return _first(self.interpolate(value))

    def _typed(self, key: str, target: type, default: Any) -> Any:
        value = self._scalar(key)
        if value is None:
            if default is _MISSING:
                raise MissingKeyError(key)
            return default
        return convert(key, value, target)

    # -- mutators -----------------------------------------------------------

    def set_property(self, key: str, value: Any) -> None:
        """Replace the values of *key*; strings are split with the list delimiter handler."""

        self._model.set_property(key, self.list_delimiter_handler.parse(value))

    def add_property(self, key: str, value: Any) -> None:
        """Add values below *key*, creating missing path nodes.

        Examples
        --------
        >>> config = HierarchicalConfiguration()
        >>> config.add_property("tables.table.name", "users")
        >>> config.add_property("tables.table.name", "docs")
        >>> config.get_list("tables.table.name")
        ['users', 'docs']
        """

        self._model.add_property(key, self.list_delimiter_handler.parse(value))

    def clear_property(self, key: str) -> None:
        self._model.clear_property(key)

    def clear_tree(self, key: str) -> list[QueryResult]:
        """Remove the subtrees (or attributes) selected by *key*; return what was removed."""

        return self._model.clear_tree(key)

    def clear(self) -> None:
        self._model.clear()

    def add_nodes(self, key: str, nodes: Iterable[Node]) -> None:
        self._model.add_nodes(key, nodes)

    # -- navigation ---------------------------------------------------------

    def keys(self, prefix: str | None = None) -> list[str]:
        """Return keys that carry values, in document order, attribute keys included.

        Examples
        --------
        >>> config = from_mapping({"db": {"@type": "pg", "host": "h", "port": 1}})
        >>> config.keys()
        ['db[@type]', 'db.host', 'db.port']
        >>> config.keys("db.port")
        ['db.port']
        """

        collected: dict[str, None] = {}
        if prefix is None:
            self._collect_keys(self._model.root, "", collected)
            return list(collected)
        for result in self.query(prefix):
            if result.attribute_name is not None:
                collected[prefix] = None
            else:
                self._collect_keys(result.node, prefix, collected)
        return list(collected)

    def _collect_keys(self, node: Node, key: str, collected: dict[str, None]) -> None:
        engine = self.expression_engine
        if key and node.value is not None:
            collected[key] = None
        for name in node.attributes:
            collected[engine.attribute_key(key, name)] = None
        for child in node.children:
            self._collect_keys(child, engine.node_key(child, key), collected)

    def is_empty(self) -> bool:
        return not any(node.value is not None or node.attributes for node in self._model.root.walk())

    def get_max_index(self, key: str) -> int:
        """Return the highest index usable with *key*, ``-1`` when nothing matches."""

        return len(self.expression_engine.query_nodes(self._model.root, key)) - 1

    def subset(self, prefix: str) -> HierarchicalConfiguration:
        """Return a configuration whose root combines the content of every match of *prefix*.

        The subset shares this configuration's interpolator, so variables keep
        resolving against the full configuration.

        Examples
        --------
        >>> config = from_mapping({"db": {"host": "${env_name}.local"}, "env_name": "dev"})
        >>> config.subset("db").get_string("host")
        'dev.local'
        """

        results = self.query(prefix)
        builder = NodeBuilder()
        values = []
        for result in results:
            if result.attribute_name is not None:
                builder.add_attribute(result.attribute_name, result.value)
                continue
            if result.node.value is not None:
                values.append(result.node.value)
            builder.add_children(result.node.children)
            builder.add_attributes(result.node.attributes)
        if len(values) == 1:
            builder.value(values[0])
        return self._derive(builder.create(), interpolator=self.interpolator)

    def configuration_at(self, key: str) -> HierarchicalConfiguration:
        """Return a configuration rooted at the single node selected by *key*.

        Variables that the sub-configuration cannot resolve fall back to this
        configuration. Raises :class:`InvalidExpression` unless exactly one
        node matches.
        """

        nodes = self.expression_engine.query_nodes(self._model.root, key)
        if len(nodes) != 1:
            raise InvalidExpression(key, f"configuration_at requires exactly one matching node, got {len(nodes)}")
        return self._derive(nodes[0], parent_interpolator=self.interpolator)

    def configurations_at(self, key: str) -> list[HierarchicalConfiguration]:
        """Return one sub-configuration per node selected by *key*."""

        nodes = self.expression_engine.query_nodes(self._model.root, key)
        return [self._derive(node, parent_interpolator=self.interpolator) for node in nodes]

    def child_configurations_at(self, key: str) -> list[HierarchicalConfiguration]:
        """Return sub-configurations for the children of the single node selected by *key*."""

        nodes = self.expression_engine.query_nodes(self._model.root, key)
        if len(nodes) != 1:
            return []
        return [self._derive(child, parent_interpolator=self.interpolator) for child in nodes[0].children]

    def interpolated_configuration(self) -> HierarchicalConfiguration:
        """Return a copy in which every value and attribute has been interpolated."""

        copy = self._derive(self._interpolate_node(self._model.root))
        copy.interpolator.register_lookups(self.interpolator.lookups())
        copy.interpolator.parent = self.interpolator.parent
        return copy

    def _interpolate_node(self, node: Node) -> Node:
        attributes = {name: self._interpolate_value(value) for name, value in node.attributes.items()}
        children = tuple(self._interpolate_node(child) for child in node.children)
        return Node(node.name, self._interpolate_value(node.value), attributes, children)

    def _interpolate_value(self, value: Any) -> Any:
        if isinstance(value, tuple):
            return tuple(self.interpolate(item) for item in value)
        return self.interpolate(value)

    def _derive(
        self,
        root: Node,
        *,
        interpolator: Interpolator | None = None,
        parent_interpolator: Interpolator | None = None,
    ) -> HierarchicalConfiguration:
        return HierarchicalConfiguration(
            root,
            list_delimiter_handler=self.list_delimiter_handler,
            expression_engine=self.expression_engine,
            interpolator=interpolator,
            parent_interpolator=parent_interpolator,
        )

    # -- export -------------------------------------------------------------

    def as_dict(self) -> dict[str, Any]:
        """Return the raw tree as nested plain data (see :func:`node_to_data`).

        Examples
        --------
        >>> from_mapping({"a": {"b": [1, 2]}}).as_dict()
        {'a': {'b': [1, 2]}}
        """

        data = node_to_data(self._model.root)
        if isinstance(data, dict):
            return data
        return {} if data is None else {"#value": data}

    def to_json(self, *, indent: int | None = None) -> str:
        """Serialise :meth:`as_dict` to JSON.

        Examples
        --------
        >>> from_mapping({"feature": {"enabled": True}}).to_json()
        '{"feature":{"enabled":true}}'
        """

        return json.dumps(self.as_dict(), indent=indent, separators=(",", ":"), ensure_ascii=False, default=str)


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def from_mapping(data: Mapping[str, Any], *, root_name: str = "", **options: Any) -> HierarchicalConfiguration:
    """Build a configuration from nested mappings and lists.

    Mappings become child nodes, lists become repeated children, ``@name``
    keys become attributes. *options* are passed to
    :class:`HierarchicalConfiguration`.

    Examples
    --------
    >>> config = from_mapping({"tables": {"table": [{"@name": "users"}, {"@name": "docs"}]}})
    >>> config.get_string("tables.table(1)[@name]")
    'docs'
    """

    return HierarchicalConfiguration(mapping_to_node(data, root_name), **options)


def read_config(
    *paths: str,
    combiner: str = "override",
    list_nodes: Sequence[str] = (),
    optional: bool = False,
    **options: Any,
) -> HierarchicalConfiguration:
    """Load TOML/JSON/YAML files and combine them into one configuration.

    Parameters
    ----------
    paths:
        Files in increasing precedence order.
    combiner:
        ``"override"`` (later files win) or ``"union"`` (content of all files
        kept, earlier files first).
    list_nodes:
        Names never merged by the union combiner.
    optional:
        Skip missing files instead of raising :class:`LayerLoadError`.
    options:
        Passed to :class:`HierarchicalConfiguration`.

    Examples
    --------
    >>> from pathlib import Path
    >>> from tempfile import TemporaryDirectory
    >>> tmp = TemporaryDirectory()
    >>> base = Path(tmp.name) / "base.toml"
    >>> _ = base.write_text('[db]\\nhost = "localhost"\\nport = 5432', encoding="utf-8")
    >>> local = Path(tmp.name) / "local.json"
    >>> _ = local.write_text('{"db": {"port": 6543}}', encoding="utf-8")
    >>> config = read_config(str(base), str(local))
    >>> config.get_string("db.host"), config.get_int("db.port")
    ('localhost', 6543)
    >>> tmp.cleanup()
    """

    try:
        strategy = COMBINERS[combiner]
    except KeyError as exc:
        raise ValueError(f"Unknown combiner {combiner!r}; expected one of {sorted(COMBINERS)}") from exc
    if combiner == "union" and list_nodes:
        strategy = partial(union_combine, list_nodes=frozenset(list_nodes))

    trees: list[Node] = []
    for path in paths:
        try:
            data = loader_for(path).load(path)
        except NotFound as exc:
            if optional:
                log_debug("config_file_skipped", **make_event("read_config", None, {"path": path}))
                continue
            raise LayerLoadError(f"Failed to load configuration file {path}: {exc}") from exc
        except InvalidFormat as exc:
            raise LayerLoadError(f"Failed to load configuration file {path}: {exc}") from exc
        trees.append(mapping_to_node(data))

    ordered = reversed(trees) if combiner == "override" else trees
    config = HierarchicalConfiguration(combine_all(ordered, strategy), **options)
    log_info("configuration_loaded", **make_event("read_config", None, {"files": len(trees), "combiner": combiner}))
    return config


__all__ = [
    "COMBINERS",
    "ConfigError",
    "ConfigurationLookup",
    "HierarchicalConfiguration",
    "LayerLoadError",
    "from_mapping",
    "read_config",
]
