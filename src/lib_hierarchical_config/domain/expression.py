"""Path expression engine for the configuration node tree.

Purpose
-------
Parse dotted keys such as ``database.tables.table(1).fields.field[@type]``
into an :class:`Expression` and evaluate it against an immutable
:class:`~lib_hierarchical_config.domain.node.Node` tree.

Contents
--------
* :class:`ExpressionSymbols` – the tokens of the key syntax.
* :class:`KeySegment` / :class:`Expression` – parsed keys.
* :class:`QueryResult` – a matched node (or attribute) plus its position path.
* :class:`AddPlan` – where and what to create when adding a value.
* :class:`ExpressionEngine` – ``parse``, ``query``, ``query_nodes``,
  ``node_key``, ``attribute_key``, ``canonical_key``, ``prepare_add``.
* :data:`DEFAULT_ENGINE` – shared engine using :data:`DEFAULT_SYMBOLS`.

Key syntax
----------
* ``.`` separates segments; ``..`` is a literal dot inside a name.
* ``name(n)`` selects the n-th (0-based) child called ``name``; without an
  index every child with that name matches.
* ``[@attr]`` selects an attribute and must end the key.
* Leading and trailing delimiters are ignored; the empty key is the root.

Malformed keys raise :class:`InvalidExpression` at parse time. Keys that are
well formed but match nothing simply produce an empty result.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Final, Iterator

from .errors import InvalidExpression
from .node import Node, Path


@dataclass(frozen=True, slots=True)
class ExpressionSymbols:
    """Tokens recognised by :class:`ExpressionEngine`."""

    property_delimiter: str = "."
    escaped_delimiter: str | None = ".."
    index_start: str = "("
    index_end: str = ")"
    attribute_start: str = "[@"
    attribute_end: str = "]"


DEFAULT_SYMBOLS: Final[ExpressionSymbols] = ExpressionSymbols()


@dataclass(frozen=True, slots=True)
class KeySegment:
    """One parsed part of a key: a child name, optional index, or an attribute."""

    name: str
    index: int | None = None
    attribute: bool = False


@dataclass(frozen=True, slots=True)
class Expression:
    """A parsed key; stateless and reusable across trees."""

    key: str
    segments: tuple[KeySegment, ...]

    @property
    def is_attribute(self) -> bool:
        return bool(self.segments) and self.segments[-1].attribute

    def __iter__(self) -> Iterator[KeySegment]:
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True, slots=True)
class QueryResult:
    """A query match.

    ``node`` is the matched node, or the owner of the matched attribute when
    ``attribute_name`` is set. ``path`` holds the child positions leading from
    the queried root to ``node``.
    """

    node: Node
    path: Path
    attribute_name: str | None = None

    @property
    def is_attribute(self) -> bool:
        return self.attribute_name is not None

    @property
    def value(self) -> Any:
        if self.attribute_name is not None:
            return self.node.attributes.get(self.attribute_name)
        return self.node.value


@dataclass(frozen=True, slots=True)
class AddPlan:
    """Outcome of :meth:`ExpressionEngine.prepare_add`.

    ``parent_path`` locates the deepest existing node on the key's path,
    ``path_names`` lists intermediate nodes that must be created below it, and
    ``leaf_name`` names the node (or attribute) receiving the new value.
    """

    parent_path: Path
    path_names: tuple[str, ...]
    leaf_name: str
    is_attribute: bool


class ExpressionEngine:
    """Evaluate dotted keys against node trees.

    Examples
    --------
    >>> from lib_hierarchical_config.domain.node import Node
    >>> tables = tuple(Node("table", name) for name in ("users", "docs", "logs"))
    >>> root = Node(children=(Node("db", attributes={"type": "pg"}, children=tables),))
    >>> [n.value for n in DEFAULT_ENGINE.query_nodes(root, "db.table")]
    ['users', 'docs', 'logs']
    >>> DEFAULT_ENGINE.query_nodes(root, "db.table(1)")[0].value
    'docs'
    >>> DEFAULT_ENGINE.query(root, "db[@type]")[0].value
    'pg'
    >>> DEFAULT_ENGINE.query(root, "db.missing")
    []
    """

    def __init__(self, symbols: ExpressionSymbols = DEFAULT_SYMBOLS) -> None:
        self.symbols = symbols

    def __repr__(self) -> str:
        return f"ExpressionEngine({self.symbols!r})"

    def parse(self, key: str) -> Expression:
        """Parse *key* into an :class:`Expression` or raise :class:`InvalidExpression`.

        Examples
        --------
        >>> [(seg.name, seg.index, seg.attribute) for seg in DEFAULT_ENGINE.parse("a.b(2)[@c]")]
        [('a', None, False), ('b', 2, False), ('c', None, True)]
        >>> DEFAULT_ENGINE.parse("version..major").segments[0].name
        'version.major'
        >>> DEFAULT_ENGINE.parse("a(x)")
        Traceback (most recent call last):
        ...
        lib_hierarchical_config.domain.errors.InvalidExpression: Invalid key 'a(x)': index must be a non-negative integer
        """

        if not isinstance(key, str):
            raise InvalidExpression(repr(key), "key must be a string")
        return _parse_cached(self.symbols, key)

    def query(self, root: Node, key: str | Expression) -> list[QueryResult]:
        """Return every node or attribute selected by *key*, in document order."""

        expression = key if isinstance(key, Expression) else self.parse(key)
        results: list[QueryResult] = []
        _collect(root, (), expression.segments, results)
        return results

    def query_nodes(self, root: Node, key: str | Expression) -> list[Node]:
        """Return the nodes selected by *key*, ignoring attribute matches."""

        return [result.node for result in self.query(root, key) if not result.is_attribute]

    def node_key(self, node: Node | str, parent_key: str | None) -> str:
        """Return the key of *node* given the key of its parent.

        The root has no parent (``parent_key is None``) and its key is the
        empty string. Delimiters inside names are escaped.

        Examples
        --------
        >>> DEFAULT_ENGINE.node_key(Node("port"), "db")
        'db.port'
        >>> DEFAULT_ENGINE.node_key(Node("v1.2"), "")
        'v1..2'
        >>> DEFAULT_ENGINE.node_key(Node("root"), None)
        ''
        """

        if parent_key is None:
            return ""
        name = node.name if isinstance(node, Node) else node
        escaped = self._escape(name)
        if not parent_key:
            return escaped
        if not escaped:
            return parent_key
        return f"{parent_key}{self.symbols.property_delimiter}{escaped}"

    def canonical_key(self, node: Node | str, parent_key: str | None, index: int) -> str:
        """Return the key of *node* including its occurrence *index*.

        Examples
        --------
        >>> DEFAULT_ENGINE.canonical_key(Node("table"), "db", 1)
        'db.table(1)'
        """

        base = self.node_key(node, parent_key if parent_key is not None else "")
        return f"{base}{self.symbols.index_start}{index}{self.symbols.index_end}"

    def attribute_key(self, parent_key: str | None, attribute: str) -> str:
        """Return the key selecting *attribute* of the node at *parent_key*.

        Examples
        --------
        >>> DEFAULT_ENGINE.attribute_key("db.table(0)", "name")
        'db.table(0)[@name]'
        """

        return f"{parent_key or ''}{self.symbols.attribute_start}{attribute}{self.symbols.attribute_end}"

    def prepare_add(self, root: Node, key: str) -> AddPlan:
        """Plan the insertion of a new value at *key*.

        Existing nodes are followed as deep as possible (an explicit index
        selects that occurrence, otherwise the last one); the remaining names
        must be created. The final segment always names a new node, or an
        attribute of the deepest node.

        Examples
        --------
        >>> root = Node(children=(Node("db", children=(Node("table"), Node("table"))),))
        >>> DEFAULT_ENGINE.prepare_add(root, "db.table.fields.field")
        AddPlan(parent_path=(0, 1), path_names=('fields',), leaf_name='field', is_attribute=False)
        """

        expression = self.parse(key)
        if not expression.segments:
            raise InvalidExpression(key, "key for add operation must be defined")
        segments = expression.segments
        node = root
        path: Path = ()
        depth = 0
        while depth < len(segments) - 1:
            segment = segments[depth]
            positions = [pos for pos, child in enumerate(node.children) if child.name == segment.name]
            index = segment.index if segment.index is not None else len(positions) - 1
            if index < 0 or index >= len(positions):
                break
            path += (positions[index],)
            node = node.children[positions[index]]
            depth += 1
        leaf = segments[-1]
        return AddPlan(
            parent_path=path,
            path_names=tuple(segment.name for segment in segments[depth:-1]),
            leaf_name=leaf.name,
            is_attribute=leaf.attribute,
        )

    def _escape(self, name: str) -> str:
        escaped = self.symbols.escaped_delimiter
        if escaped is None:
            return name
        return name.replace(self.symbols.property_delimiter, escaped)


def _collect(node: Node, path: Path, segments: tuple[KeySegment, ...], results: list[QueryResult]) -> None:
    if not segments:
        results.append(QueryResult(node, path))
        return
    segment, rest = segments[0], segments[1:]
    if segment.attribute:
        if node.attributes.get(segment.name) is not None:
            results.append(QueryResult(node, path, segment.name))
        return
    positions = [pos for pos, child in enumerate(node.children) if child.name == segment.name]
    if segment.index is not None:
        if segment.index >= len(positions):
            return
        positions = [positions[segment.index]]
    for pos in positions:
        _collect(node.children[pos], path + (pos,), rest, results)


@lru_cache(maxsize=1024)
def _parse_cached(symbols: ExpressionSymbols, key: str) -> Expression:
    text = _trim(symbols, key)
    delimiter = symbols.property_delimiter
    escaped = symbols.escaped_delimiter
    segments: list[KeySegment] = []
    pos = 0
    while pos < len(text):
        if text.startswith(delimiter, pos) and not (escaped and text.startswith(escaped, pos)):
            pos += len(delimiter)
            continue
        if segments and segments[-1].attribute:
            raise InvalidExpression(key, "attribute selector must be the last part of the key")
        if text.startswith(symbols.attribute_start, pos):
            pos = _parse_attribute(symbols, key, text, pos, segments)
            continue
        buffer: list[str] = []
        while pos < len(text):
            if escaped and text.startswith(escaped, pos):
                buffer.append(delimiter)
                pos += len(escaped)
            elif text.startswith(delimiter, pos) or text.startswith(symbols.attribute_start, pos):
                break
            else:
                buffer.append(text[pos])
                pos += 1
        segments.append(_parse_property(symbols, key, "".join(buffer)))
    return Expression(key, tuple(segments))


def _parse_attribute(
    symbols: ExpressionSymbols, key: str, text: str, pos: int, segments: list[KeySegment]
) -> int:
    start = pos + len(symbols.attribute_start)
    end = text.find(symbols.attribute_end, start)
    if end < 0:
        raise InvalidExpression(key, f"unterminated attribute selector {symbols.attribute_start!r}")
    name = text[start:end]
    if not name:
        raise InvalidExpression(key, "attribute name must not be empty")
    segments.append(KeySegment(name, attribute=True))
    return end + len(symbols.attribute_end)


def _parse_property(symbols: ExpressionSymbols, key: str, raw: str) -> KeySegment:
    start = raw.rfind(symbols.index_start)
    if start < 0:
        return KeySegment(raw)
    if not raw.endswith(symbols.index_end):
        raise InvalidExpression(key, f"unterminated index {symbols.index_start!r}")
    name = raw[:start]
    digits = raw[start + len(symbols.index_start) : len(raw) - len(symbols.index_end)]
    if not name:
        raise InvalidExpression(key, "index must follow a node name")
    if not digits.isdigit() or not digits.isascii():
        raise InvalidExpression(key, "index must be a non-negative integer")
    return KeySegment(name, int(digits))


def _trim(symbols: ExpressionSymbols, key: str) -> str:
    delimiter = symbols.property_delimiter
    escaped = symbols.escaped_delimiter
    text = key
    while text.startswith(delimiter) and not (escaped and text.startswith(escaped)):
        text = text[len(delimiter) :]
    while text.endswith(delimiter) and not (escaped and text.endswith(escaped)):
        text = text[: -len(delimiter)]
    return text


DEFAULT_ENGINE: Final[ExpressionEngine] = ExpressionEngine()
"""Shared engine configured with :data:`DEFAULT_SYMBOLS`."""
