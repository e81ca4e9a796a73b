"""Immutable configuration node tree.

Purpose
-------
Anchor the :class:`Node` value object that represents hierarchical
configuration data: a name, an optional scalar value, attributes, and ordered
children where repeated names model list-like structure. The module belongs to
the domain layer and performs no I/O.

Contents
--------
* :class:`Node` – frozen tree element; every ``with_*``/``without_*`` method
  returns a new instance and shares untouched subtrees by reference.
* :class:`NodeBuilder` – mutable accumulator used by readers to assemble nodes.
* :func:`node_at` / :func:`replace_at` / :func:`remove_at` – position-path
  helpers. Nodes carry no parent back-pointers; callers pass the path of child
  positions from the root instead, and edits rebuild exactly the ancestors on
  that path.

System Role
-----------
A configuration owns one root :class:`Node` at a time and swaps it for a new
root on every structural change. Readers that already hold a node observe a
stable snapshot.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Iterator

Path = tuple[int, ...]

_EMPTY_ATTRIBUTES: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True, slots=True)
class Node:
    """Immutable element of a configuration tree.

    Why
    ----
    Structural copy-on-write gives readers race-free snapshots and makes edits
    cheap: only the ancestors of a changed node are rebuilt.

    Parameters
    ----------
    name:
        Node name; the root of a configuration usually has an empty name.
    value:
        Optional scalar payload.
    attributes:
        Mapping of attribute name to value; frozen into a ``mappingproxy``.
    children:
        Ordered child nodes; frozen into a tuple.

    Examples
    --------
    >>> leaf = Node("port", 5432)
    >>> db = Node("db").with_child(leaf).with_attribute("type", "pg")
    >>> db.get_child("port").value
    5432
    >>> db.attributes["type"]
    'pg'
    >>> Node("db") == Node("db")
    True
    """

    name: str = ""
    value: Any = None
    attributes: Mapping[str, Any] = field(default_factory=lambda: _EMPTY_ATTRIBUTES)
    children: tuple[Node, ...] = ()

    def __post_init__(self) -> None:
        # A proxy handed in by the caller may still be backed by a live dict.
        if self.attributes is not _EMPTY_ATTRIBUTES:
            frozen = MappingProxyType(dict(self.attributes)) if self.attributes else _EMPTY_ATTRIBUTES
            object.__setattr__(self, "attributes", frozen)
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Node):
            return NotImplemented
        return (
            self.name == other.name
            and self.value == other.value
            and dict(self.attributes) == dict(other.attributes)
            and self.children == other.children
        )

    def __hash__(self) -> int:
        return hash((self.name, len(self.children)))

    def __repr__(self) -> str:
        parts = [repr(self.name)]
        if self.value is not None:
            parts.append(f"value={self.value!r}")
        if self.attributes:
            parts.append(f"attributes={dict(self.attributes)!r}")
        if self.children:
            parts.append(f"children={list(self.children)!r}")
        return f"Node({', '.join(parts)})"

    # -- copies -----------------------------------------------------------

    def with_name(self, name: str) -> Node:
        """Return a copy carrying *name*."""

        if name == self.name:
            return self
        return Node(name, self.value, self.attributes, self.children)

    def with_value(self, value: Any) -> Node:
        """Return a copy carrying *value*; the receiver keeps its old value.

        Examples
        --------
        >>> original = Node("timeout", 5)
        >>> original.with_value(10).value, original.value
        (10, 5)
        """

        return Node(self.name, value, self.attributes, self.children)

    def with_attribute(self, name: str, value: Any) -> Node:
        """Return a copy where attribute *name* is set to *value*."""

        updated = dict(self.attributes)
        updated[name] = value
        return Node(self.name, self.value, updated, self.children)

    def with_attributes(self, attributes: Mapping[str, Any]) -> Node:
        """Return a copy with all *attributes* added (existing names are replaced)."""

        if not attributes:
            return self
        updated = dict(self.attributes)
        updated.update(attributes)
        return Node(self.name, self.value, updated, self.children)

    def without_attribute(self, name: str) -> Node:
        """Return a copy without attribute *name* (the receiver when absent)."""

        if name not in self.attributes:
            return self
        updated = {key: value for key, value in self.attributes.items() if key != name}
        return Node(self.name, self.value, updated, self.children)

    def with_child(self, child: Node) -> Node:
        """Return a copy with *child* appended after the existing children."""

        return Node(self.name, self.value, self.attributes, (*self.children, child))

    def with_children(self, children: Iterable[Node]) -> Node:
        """Return a copy with all *children* appended in iteration order."""

        extra = tuple(children)
        if not extra:
            return self
        return Node(self.name, self.value, self.attributes, self.children + extra)

    def without_child(self, child: Node) -> Node:
        """Remove exactly one occurrence of *child*.

        The child is located by identity first so that one of several equal
        siblings can be targeted; when no identical child exists the first
        structurally equal one is removed. Returns the receiver when nothing
        matches.

        Examples
        --------
        >>> a, b = Node("item", 1), Node("item", 1)
        >>> parent = Node("list", children=(a, b))
        >>> remaining = parent.without_child(b)
        >>> len(remaining.children), remaining.children[0] is a
        (1, True)
        """

        position = _position_of(self.children, child)
        if position is None:
            return self
        return self._without_position(position)

    def without_children(self, name: str) -> Node:
        """Remove every child named *name*."""

        kept = tuple(child for child in self.children if child.name != name)
        if len(kept) == len(self.children):
            return self
        return Node(self.name, self.value, self.attributes, kept)

    def replace_child(self, old: Node, new: Node) -> Node:
        """Replace one occurrence of *old* with *new* (located like :meth:`without_child`)."""

        position = _position_of(self.children, old)
        if position is None:
            return self
        return self._with_position(position, new)

    def replace_children(self, children: Iterable[Node]) -> Node:
        """Return a copy whose children are exactly *children*."""

        return Node(self.name, self.value, self.attributes, tuple(children))

    # -- queries ----------------------------------------------------------

    def get_children(self, name: str | None = None) -> tuple[Node, ...]:
        """Return all children, or only those named *name*, in document order."""

        if name is None:
            return self.children
        return tuple(child for child in self.children if child.name == name)

    def get_child(self, name: str, index: int = 0) -> Node | None:
        """Return the *index*-th (0-based) child named *name* or ``None``.

        Examples
        --------
        >>> tables = Node("tables", children=(Node("table", "a"), Node("table", "b")))
        >>> tables.get_child("table", 1).value
        'b'
        >>> tables.get_child("table", 5) is None
        True
        """

        if index < 0:
            return None
        matches = self.get_children(name)
        return matches[index] if index < len(matches) else None

    def child_count(self, name: str | None = None) -> int:
        """Return the number of children, optionally restricted to *name*."""

        return len(self.get_children(name))

    @property
    def is_defined(self) -> bool:
        """``True`` when the node carries a value, attributes, or children."""

        return self.value is not None or bool(self.attributes) or bool(self.children)

    def walk(self) -> Iterator[Node]:
        """Yield this node and all descendants in pre-order."""

        stack: list[Node] = [self]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    # -- internal ---------------------------------------------------------

    def _with_position(self, position: int, child: Node) -> Node:
        if self.children[position] is child:
            return self
        updated = self.children[:position] + (child,) + self.children[position + 1 :]
        return Node(self.name, self.value, self.attributes, updated)

    def _without_position(self, position: int) -> Node:
        updated = self.children[:position] + self.children[position + 1 :]
        return Node(self.name, self.value, self.attributes, updated)


class NodeBuilder:
    """Accumulate node data before creating an immutable :class:`Node`.

    Readers use the builder to populate trees without creating an
    intermediate copy for every attribute or child.

    Examples
    --------
    >>> builder = NodeBuilder("server").value("main").add_attribute("port", 80)
    >>> node = builder.add_child(Node("alias", "www")).create()
    >>> node.attributes["port"], node.get_child("alias").value
    (80, 'www')
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._value: Any = None
        self._attributes: dict[str, Any] = {}
        self._children: list[Node] = []

    def name(self, name: str) -> NodeBuilder:
        self._name = name
        return self

    def value(self, value: Any) -> NodeBuilder:
        self._value = value
        return self

    def add_attribute(self, name: str, value: Any) -> NodeBuilder:
        self._attributes[name] = value
        return self

    def add_attributes(self, attributes: Mapping[str, Any]) -> NodeBuilder:
        self._attributes.update(attributes)
        return self

    def add_child(self, child: Node) -> NodeBuilder:
        self._children.append(child)
        return self

    def add_children(self, children: Iterable[Node]) -> NodeBuilder:
        self._children.extend(children)
        return self

    def create(self) -> Node:
        return Node(self._name, self._value, self._attributes, tuple(self._children))


def node_at(root: Node, path: Path) -> Node:
    """Return the node reached from *root* by following child positions in *path*.

    Examples
    --------
    >>> root = Node(children=(Node("a", children=(Node("b", 1),)),))
    >>> node_at(root, (0, 0)).value
    1
    """

    current = root
    for position in path:
        current = current.children[position]
    return current


def replace_at(root: Node, path: Path, node: Node) -> Node:
    """Return a new root where the node at *path* is replaced by *node*.

    Every ancestor on *path* is rebuilt; all other subtrees are shared with
    the original tree.

    Examples
    --------
    >>> root = Node(children=(Node("a", 1), Node("b", 2)))
    >>> updated = replace_at(root, (1,), Node("b", 3))
    >>> updated.children[1].value, root.children[1].value
    (3, 2)
    >>> updated.children[0] is root.children[0]
    True
    """

    if not path:
        return node
    head, rest = path[0], path[1:]
    return root._with_position(head, replace_at(root.children[head], rest, node))


def remove_at(root: Node, path: Path) -> Node:
    """Return a new root where the node at *path* (not the root) is removed."""

    if not path:
        raise ValueError("The root node cannot be removed")
    if len(path) == 1:
        return root._without_position(path[0])
    head, rest = path[0], path[1:]
    return root._with_position(head, remove_at(root.children[head], rest))


def _position_of(children: tuple[Node, ...], child: Node) -> int | None:
    for position, candidate in enumerate(children):
        if candidate is child:
            return position
    for position, candidate in enumerate(children):
        if candidate == child:
            return position
    return None
