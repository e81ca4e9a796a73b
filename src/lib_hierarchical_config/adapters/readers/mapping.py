"""Conversion between nested Python data and node trees.

Purpose
-------
Populate :class:`~lib_hierarchical_config.domain.node.Node` trees from the
mappings produced by the structured file loaders (or handed over by host
applications) and render trees back into plain data for ``as_dict``/JSON.

Contents
--------
* :func:`mapping_to_node` – build a tree; mappings become children, lists
  become repeated children, ``@name`` keys become attributes and the
  :data:`VALUE_KEY` entry becomes the node value.
* :func:`node_to_data` – inverse rendering used by ``as_dict``.

System Role
-----------
Readers only build trees; values are stored raw and interpolated on access.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

from ...domain.node import Node, NodeBuilder

ATTRIBUTE_PREFIX: Final[str] = "@"
VALUE_KEY: Final[str] = "#value"


def mapping_to_node(data: Mapping[str, Any], name: str = "") -> Node:
    """Build a node tree from nested mappings and lists.

    Examples
    --------
    >>> root = mapping_to_node({"db": {"@type": "pg", "table": ["users", "docs"]}})
    >>> db = root.get_child("db")
    >>> db.attributes["type"], [t.value for t in db.get_children("table")]
    ('pg', ['users', 'docs'])
    """

    builder = NodeBuilder(name)
    _populate(builder, data)
    return builder.create()


def _populate(builder: NodeBuilder, data: Mapping[str, Any]) -> None:
    for key, value in data.items():
        key = str(key)
        if key == VALUE_KEY:
            builder.value(value)
        elif key.startswith(ATTRIBUTE_PREFIX) and len(key) > len(ATTRIBUTE_PREFIX):
            builder.add_attribute(key[len(ATTRIBUTE_PREFIX) :], _attribute_value(value))
        else:
            builder.add_children(_nodes_for(key, value))


def _nodes_for(name: str, value: Any) -> list[Node]:
    if isinstance(value, Mapping):
        return [mapping_to_node(value, name)]
    if isinstance(value, (list, tuple)):
        nodes: list[Node] = []
        for item in value:
            nodes.extend(_nodes_for(name, item))
        return nodes
    return [Node(name, value)]


def _attribute_value(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(value)
    return value


def node_to_data(node: Node) -> Any:
    """Render *node* as plain data.

    Leaves become their value; nodes with children or attributes become
    dictionaries; repeated child names become lists.

    Examples
    --------
    >>> node_to_data(mapping_to_node({"a": {"b": [1, 2], "@x": "y"}}))
    {'a': {'@x': 'y', 'b': [1, 2]}}
    """

    if not node.children and not node.attributes:
        return node.value
    data: dict[str, Any] = {}
    for name, value in node.attributes.items():
        data[ATTRIBUTE_PREFIX + name] = list(value) if isinstance(value, tuple) else value
    if node.value is not None:
        data[VALUE_KEY] = node.value
    grouped: dict[str, list[Any]] = {}
    for child in node.children:
        grouped.setdefault(child.name, []).append(node_to_data(child))
    for name, values in grouped.items():
        data[name] = values[0] if len(values) == 1 else values
    return data
