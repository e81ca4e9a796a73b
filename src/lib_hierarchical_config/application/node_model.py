"""Owner of the current root node and the tree edits built on top of it.

Purpose
-------
Turn path-based edit requests (``set_property("db.port", [5432])``) into new
immutable trees and swap them in atomically. Every edit is computed from the
current snapshot with the expression engine and the position-path helpers of
:mod:`lib_hierarchical_config.domain.node`; only ancestors of changed nodes are
rebuilt.

Contents
--------
* :class:`NodeModel` – root reference plus ``add_property``, ``add_nodes``,
  ``set_property``, ``clear_property``, ``clear_tree``, ``merge_root``.

System Role
-----------
One model per :class:`lib_hierarchical_config.core.HierarchicalConfiguration`.
Readers take :attr:`NodeModel.root` once and keep working on that snapshot;
writers serialise on an ``RLock`` so concurrent edits never lose updates.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from ..domain.errors import InvalidExpression
from ..domain.expression import DEFAULT_ENGINE, QueryResult
from ..domain.node import Node, Path, node_at, remove_at, replace_at
from ..observability import log_debug, make_event
from .ports import KeyEngine, NodeCombiner


class NodeModel:
    """Hold one root node and apply structural edits as whole-tree swaps.

    Examples
    --------
    >>> model = NodeModel()
    >>> model.add_property("db.tables.table", ["users", "docs"])
    >>> [n.value for n in model.engine.query_nodes(model.root, "db.tables.table")]
    ['users', 'docs']
    >>> before = model.root
    >>> model.set_property("db.tables.table(1)", ["logs"])
    >>> model.engine.query(before, "db.tables.table(1)")[0].value
    'docs'
    >>> model.engine.query(model.root, "db.tables.table(1)")[0].value
    'logs'
    """

    def __init__(self, root: Node | None = None, engine: KeyEngine | None = None) -> None:
        self._lock = threading.RLock()
        self._root = root if root is not None else Node()
        self.engine = engine or DEFAULT_ENGINE

    def __repr__(self) -> str:
        return f"NodeModel(root={self._root!r})"

    @property
    def root(self) -> Node:
        """The current root snapshot."""

        return self._root

    def set_root(self, root: Node | None) -> None:
        """Replace the whole tree."""

        self._update("set_root", None, lambda _current: root if root is not None else Node())

    def clear(self) -> None:
        """Drop every value, attribute, and child; the root keeps its name."""

        self._update("clear", None, lambda current: Node(current.name))

    def add_property(self, key: str, values: Iterable[Any]) -> None:
        """Add one new leaf per value below *key*, creating missing path nodes.

        For attribute keys the attribute of the deepest path node receives the
        values; an attribute that already holds values keeps them and the new
        ones are appended (several values are stored as a tuple).
        """

        items = list(values)
        if not items:
            return
        self._update("add_property", key, lambda current: self._add_values(current, key, items))

    def add_nodes(self, key: str, nodes: Iterable[Node]) -> None:
        """Attach *nodes* as children of the single node selected by *key*.

        The path is created when *key* matches nothing. Keys selecting several
        nodes or an attribute raise :class:`InvalidExpression`.
        """

        children = tuple(nodes)
        if not children:
            return
        self._update("add_nodes", key, lambda current: self._add_children(current, key, children))

    def set_property(self, key: str, values: Iterable[Any]) -> None:
        """Assign *values* to the nodes (or attributes) selected by *key*.

        Existing matches are paired with values in document order. Surplus
        values are added as new nodes, surplus matches are cleared as with
        :meth:`clear_property`.
        """

        items = list(values)
        self._update("set_property", key, lambda current: self._set_values(current, key, items))

    def clear_property(self, key: str) -> None:
        """Remove the values of all matches of *key*.

        Nodes left without value, attributes, and children are removed, and so
        are ancestors that become empty as a result. The root always stays.
        """

        self._update(
            "clear_property", key, lambda current: _clear_values(current, self.engine.query(current, key))
        )

    def clear_tree(self, key: str) -> list[QueryResult]:
        """Remove every node (or attribute) selected by *key*; return what was removed."""

        removed: list[QueryResult] = []

        def edit(current: Node) -> Node:
            results = self.engine.query(current, key)
            removed.extend(results)
            return _remove_results(current, results)

        self._update("clear_tree", key, edit)
        return removed

    def merge_root(self, node: Node, combiner: NodeCombiner | Callable[[Node, Node], Node]) -> None:
        """Replace the root with ``combiner(root, node)``."""

        self._update("merge_root", None, lambda current: combiner(current, node))

    # -- edits --------------------------------------------------------------

    def _update(self, operation: str, key: str | None, edit: Callable[[Node], Node]) -> None:
        with self._lock:
            current = self._root
            updated = edit(current)
            self._root = updated
        log_debug("tree_updated", **make_event(operation, key, {"changed": updated is not current}))

    def _add_values(self, root: Node, key: str, values: Sequence[Any]) -> Node:
        plan = self.engine.prepare_add(root, key)
        parent = node_at(root, plan.parent_path)
        if plan.is_attribute:
            if plan.path_names:
                leaf = Node(plan.path_names[-1], attributes={plan.leaf_name: _attribute_value(None, values)})
                branch = _wrap(plan.path_names[:-1], (leaf,))
                return replace_at(root, plan.parent_path, parent.with_children(branch))
            combined = _attribute_value(parent.attributes.get(plan.leaf_name), values)
            return replace_at(root, plan.parent_path, parent.with_attribute(plan.leaf_name, combined))
        leaves = tuple(Node(plan.leaf_name, value) for value in values)
        return replace_at(root, plan.parent_path, parent.with_children(_wrap(plan.path_names, leaves)))

    def _add_children(self, root: Node, key: str, children: tuple[Node, ...]) -> Node:
        results = self.engine.query(root, key)
        if any(result.is_attribute for result in results):
            raise InvalidExpression(key, "cannot add nodes to an attribute")
        if len(results) > 1:
            raise InvalidExpression(key, f"add_nodes requires a key selecting one node, got {len(results)}")
        if results:
            target = results[0]
            return replace_at(root, target.path, target.node.with_children(children))
        plan = self.engine.prepare_add(root, key)
        if plan.is_attribute:
            raise InvalidExpression(key, "cannot add nodes to an attribute")
        parent = node_at(root, plan.parent_path)
        leaf = Node(plan.leaf_name, children=children)
        return replace_at(root, plan.parent_path, parent.with_children(_wrap(plan.path_names, (leaf,))))

    def _set_values(self, root: Node, key: str, values: Sequence[Any]) -> Node:
        results = self.engine.query(root, key)
        updated = root
        for result, value in zip(results, values):
            node = node_at(updated, result.path)
            if result.attribute_name is not None:
                node = node.with_attribute(result.attribute_name, value)
            else:
                node = node.with_value(value)
            updated = replace_at(updated, result.path, node)
        if len(values) > len(results):
            updated = self._add_values(updated, key, values[len(results) :])
        elif len(results) > len(values):
            updated = _clear_values(updated, results[len(values) :])
        return updated


def _wrap(path_names: Sequence[str], leaves: tuple[Node, ...]) -> tuple[Node, ...]:
    """Nest *leaves* inside fresh nodes named by *path_names* (outermost first)."""

    children = leaves
    for name in reversed(path_names):
        children = (Node(name, children=children),)
    return children


def _attribute_value(existing: Any, values: Sequence[Any]) -> Any:
    combined: list[Any] = []
    if isinstance(existing, tuple):
        combined.extend(existing)
    elif existing is not None:
        combined.append(existing)
    combined.extend(values)
    return combined[0] if len(combined) == 1 else tuple(combined)


def _descending(results: Iterable[QueryResult]) -> list[QueryResult]:
    """Order results so that edits at later positions happen first."""

    return sorted(results, key=lambda result: result.path, reverse=True)


def _clear_values(root: Node, results: Iterable[QueryResult]) -> Node:
    updated = root
    for result in _descending(results):
        node = node_at(updated, result.path)
        if result.attribute_name is not None:
            node = node.without_attribute(result.attribute_name)
        else:
            node = node.with_value(None)
        updated = _prune(replace_at(updated, result.path, node), result.path)
    return updated


def _prune(root: Node, path: Path) -> Node:
    """Remove the node at *path* and its ancestors while they are undefined."""

    while path and not node_at(root, path).is_defined:
        root = remove_at(root, path)
        path = path[:-1]
    return root


def _remove_results(root: Node, results: Iterable[QueryResult]) -> Node:
    updated = root
    for result in _descending(results):
        if result.attribute_name is not None:
            node = node_at(updated, result.path).without_attribute(result.attribute_name)
            updated = replace_at(updated, result.path, node)
        elif not result.path:
            updated = Node(updated.name)
        else:
            updated = remove_at(updated, result.path)
    return updated
