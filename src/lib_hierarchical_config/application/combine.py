"""Application-layer node combiners.

Purpose
-------
Combine several node trees (one per configuration source) into one tree while
keeping precedence deterministic. Both combiners are pure functions over
immutable nodes, so they can run on snapshots without locking.

Contents
    - ``override_combine``: values and attributes of the first tree win;
      same-named single children are combined recursively.
    - ``union_combine``: keeps the content of both trees; value-less single
      children with the same name are merged into one.
    - ``combine_all``: left fold over many trees.

System Role
-----------
Used by :func:`lib_hierarchical_config.core.read_config` to join files and by
:meth:`lib_hierarchical_config.application.node_model.NodeModel.merge_root`.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable
from typing import Any

from ..domain.node import Node, NodeBuilder


def override_combine(primary: Node, secondary: Node) -> Node:
    """Combine two trees so that *primary* overrides *secondary*.

    Why
    ----
    Layered sources (defaults, then user overrides) must resolve conflicts in
    favour of the more specific layer without discarding data only present in
    the general one.

    What
    ----
    The value and attributes of *primary* win, missing ones are taken from
    *secondary*. A child name occurring exactly once in both trees is combined
    recursively; other children of *primary* come first, followed by the
    children of *secondary* whose names do not occur in *primary*.

    Examples
    --------
    >>> user = Node(children=(Node("db", children=(Node("port", 6543),)),))
    >>> defaults = Node(children=(Node("db", children=(Node("port", 5432), Node("host", "localhost"))),))
    >>> combined = override_combine(user, defaults)
    >>> [(child.name, child.value) for child in combined.get_child("db").children]
    [('port', 6543), ('host', 'localhost')]
    """

    builder = NodeBuilder(primary.name)
    builder.add_attributes(_merged_attributes(primary, secondary))
    builder.value(primary.value if primary.value is not None else secondary.value)
    for child in primary.children:
        partner = _single_partner(primary, secondary, child)
        builder.add_child(override_combine(child, partner) if partner is not None else child)
    primary_names = {child.name for child in primary.children}
    builder.add_children(child for child in secondary.children if child.name not in primary_names)
    return builder.create()


def union_combine(first: Node, second: Node, list_nodes: Collection[str] = ()) -> Node:
    """Combine two trees keeping the content of both.

    The value of *first* is kept and its attributes win on conflicts. A child
    of *first* without value whose name occurs exactly once in both trees is
    combined with its value-less partner, unless that name is listed in
    *list_nodes*; all other children of *second* are appended.

    Examples
    --------
    >>> a = Node(children=(Node("tables", children=(Node("table", "users"),)),))
    >>> b = Node(children=(Node("tables", children=(Node("table", "docs"),)),))
    >>> [t.value for t in union_combine(a, b).get_child("tables").children]
    ['users', 'docs']
    >>> len(union_combine(a, b, list_nodes={"tables"}).get_children("tables"))
    2
    """

    builder = NodeBuilder(first.name)
    builder.add_attributes(_merged_attributes(first, second))
    builder.value(first.value)
    remaining = list(second.children)
    for child in first.children:
        partner = _union_partner(first, second, child, list_nodes)
        if partner is None:
            builder.add_child(child)
            continue
        builder.add_child(union_combine(child, partner, list_nodes))
        remaining = [candidate for candidate in remaining if candidate is not partner]
    builder.add_children(remaining)
    return builder.create()


def combine_all(nodes: Iterable[Node], combiner: Callable[[Node, Node], Node]) -> Node:
    """Fold *nodes* from left to right with ``combiner(accumulated, next)``.

    With :func:`override_combine` the earliest tree therefore has the highest
    precedence. An empty input yields an empty root.

    Examples
    --------
    >>> trees = [Node(children=(Node("a", i),)) for i in (1, 2, 3)]
    >>> combine_all(trees, override_combine).get_child("a").value
    1
    """

    iterator = iter(nodes)
    result = next(iterator, None)
    if result is None:
        return Node()
    for node in iterator:
        result = combiner(result, node)
    return result


def _merged_attributes(first: Node, second: Node) -> dict[str, Any]:
    merged = dict(first.attributes)
    for name, value in second.attributes.items():
        merged.setdefault(name, value)
    return merged


def _single_partner(primary: Node, secondary: Node, child: Node) -> Node | None:
    if primary.child_count(child.name) != 1:
        return None
    matches = secondary.get_children(child.name)
    return matches[0] if len(matches) == 1 else None


def _union_partner(first: Node, second: Node, child: Node, list_nodes: Collection[str]) -> Node | None:
    if child.value is not None or child.name in list_nodes:
        return None
    if first.child_count(child.name) != 1:
        return None
    matches = second.get_children(child.name)
    if len(matches) != 1 or matches[0].value is not None:
        return None
    return matches[0]
