"""XPath-flavoured expression engine for the configuration node tree.

Purpose
-------
Offer the slash syntax familiar from XML tooling as an alternative to the
dotted keys of :mod:`lib_hierarchical_config.domain.expression`. Results,
add plans, and the engine surface are the same, so an instance can be passed
wherever an expression engine is accepted.

Supported query syntax
----------------------
* ``/`` separates location steps; one leading ``/`` is allowed and ignored
  because every key is evaluated from the root.
* A step is a node name or ``*`` (any child). ``@name`` selects an attribute
  and must be the last step.
* Predicates follow a step and are applied in order: ``[n]`` keeps the n-th
  (1-based) match, ``[last()]`` the last one, ``[@a]`` keeps nodes carrying
  attribute ``a`` and ``[@a='v']`` (or ``"v"``) those whose attribute ``a``
  equals ``v`` as text. Positional predicates count per parent node.
* The empty key selects the root.

Axes, functions other than ``last()``, ``//``, ``..`` and boolean operators are
not supported and raise :class:`InvalidExpression`. Names are not escaped, so
node names containing ``/``, ``@``, ``[`` or whitespace cannot be addressed.

Add syntax
----------
:meth:`XPathExpressionEngine.prepare_add` takes ``<existing path> <new path>``
separated by whitespace. The existing path must select exactly one node. The
new path lists the nodes to create separated by ``/`` and may end in
``@attr`` (or ``/@attr``) to add an attribute. Without whitespace the longest
existing prefix of the key is used as the parent.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Final

from .errors import InvalidExpression
from .expression import AddPlan, Expression, KeySegment, QueryResult
from .node import Node, Path

PATH_DELIMITER: Final[str] = "/"
ATTRIBUTE_MARKER: Final[str] = "@"
WILDCARD: Final[str] = "*"
LAST: Final[int] = -1

_NAME_STOPS = frozenset("/@[]'\"")


@dataclass(frozen=True, slots=True)
class XPathStep(KeySegment):
    """One location step.

    ``index`` is stored 0-based (``[2]`` becomes ``1``; ``[last()]`` becomes
    :data:`LAST`). ``conditions`` lists ``(attribute, expected)`` pairs where
    ``expected`` is ``None`` for a presence test. Conditions and the index are
    applied in the order they were written, recorded in ``order``.
    """

    conditions: tuple[tuple[str, str | None], ...] = ()
    order: tuple[str, ...] = ()


class XPathExpressionEngine:
    """Evaluate slash separated keys against node trees.

    Examples
    --------
    >>> root = Node(children=(
    ...     Node("tables", children=(
    ...         Node("table", attributes={"type": "system"}, children=(Node("name", "users"),)),
    ...         Node("table", attributes={"type": "app"}, children=(Node("name", "docs"),)),
    ...     )),
    ... ))
    >>> engine = XPathExpressionEngine()
    >>> [n.value for n in engine.query_nodes(root, "tables/table/name")]
    ['users', 'docs']
    >>> engine.query_nodes(root, "tables/table[2]/name")[0].value
    'docs'
    >>> engine.query(root, "tables/table[@type='system']/name")[0].value
    'users'
    >>> engine.query(root, "tables/table[last()]/@type")[0].value
    'app'
    """

    def __repr__(self) -> str:
        return "XPathExpressionEngine()"

    def parse(self, key: str) -> Expression:
        """Parse *key* into an :class:`Expression` of :class:`XPathStep` items.

        Examples
        --------
        >>> step = XPathExpressionEngine().parse("a/b[2]/@c").segments[1]
        >>> step.name, step.index
        ('b', 1)
        >>> XPathExpressionEngine().parse("a//b")
        Traceback (most recent call last):
        ...
        lib_hierarchical_config.domain.errors.InvalidExpression: Invalid key 'a//b': empty location step
        """

        if not isinstance(key, str):
            raise InvalidExpression(repr(key), "key must be a string")
        return _parse_cached(key)

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

        Examples
        --------
        >>> engine = XPathExpressionEngine()
        >>> engine.node_key(Node("port"), "db"), engine.node_key(Node("db"), ""), engine.node_key(Node("x"), None)
        ('db/port', 'db', '')
        """

        if parent_key is None:
            return ""
        name = node.name if isinstance(node, Node) else node
        if not name:
            return parent_key
        if not parent_key:
            return name
        return f"{parent_key}{PATH_DELIMITER}{name}"

    def canonical_key(self, node: Node | str, parent_key: str | None, index: int) -> str:
        """Return the key of *node* with its 0-based *index* written as an XPath position.

        Examples
        --------
        >>> XPathExpressionEngine().canonical_key(Node("table"), "db", 0)
        'db/table[1]'
        """

        return f"{self.node_key(node, parent_key or '')}[{index + 1}]"

    def attribute_key(self, parent_key: str | None, attribute: str) -> str:
        """Return the key selecting *attribute* of the node at *parent_key*.

        Examples
        --------
        >>> XPathExpressionEngine().attribute_key("db", "type"), XPathExpressionEngine().attribute_key(None, "type")
        ('db/@type', '@type')
        """

        if parent_key:
            return f"{parent_key}{PATH_DELIMITER}{ATTRIBUTE_MARKER}{attribute}"
        return f"{ATTRIBUTE_MARKER}{attribute}"

    def prepare_add(self, root: Node, key: str) -> AddPlan:
        """Plan the insertion of a new value at *key*.

        Examples
        --------
        >>> root = Node(children=(Node("db", children=(Node("table"), Node("table"))),))
        >>> engine = XPathExpressionEngine()
        >>> engine.prepare_add(root, "db/table[2] fields/field")
        AddPlan(parent_path=(0, 1), path_names=('fields',), leaf_name='field', is_attribute=False)
        >>> engine.prepare_add(root, "db/pool@size")
        AddPlan(parent_path=(0,), path_names=('pool',), leaf_name='size', is_attribute=True)
        """

        if not isinstance(key, str) or not key.strip():
            raise InvalidExpression(repr(key), "key for add operation must be defined")
        separator = _find_separator(key)
        if separator < 0:
            existing, new_path = self._split_existing(root, key)
        elif separator >= len(key) - 1:
            raise InvalidExpression(key, "new node path must not be empty")
        else:
            existing, new_path = key[:separator].strip(), key[separator + 1 :].strip()
        targets = self.query(root, existing)
        if len(targets) != 1:
            raise InvalidExpression(key, f"add target must select exactly one node, got {len(targets)}")
        if targets[0].is_attribute:
            raise InvalidExpression(key, "cannot add properties to an attribute")
        path_names, leaf_name, is_attribute = _parse_new_path(key, new_path)
        return AddPlan(targets[0].path, path_names, leaf_name, is_attribute)

    def _split_existing(self, root: Node, key: str) -> tuple[str, str]:
        """Split *key* at the last step boundary whose prefix selects something."""

        text = key.strip()
        for position in reversed(_step_boundaries(text)):
            prefix = text[:position]
            if prefix.strip(PATH_DELIMITER) and self.query(root, prefix):
                return prefix, text[position + 1 :]
        return "", text.lstrip(PATH_DELIMITER)


def _collect(node: Node, path: Path, steps: tuple[KeySegment, ...], results: list[QueryResult]) -> None:
    if not steps:
        results.append(QueryResult(node, path))
        return
    step, rest = steps[0], steps[1:]
    if step.attribute:
        if node.attributes.get(step.name) is not None:
            results.append(QueryResult(node, path, step.name))
        return
    positions = [
        pos for pos, child in enumerate(node.children) if step.name == WILDCARD or child.name == step.name
    ]
    if isinstance(step, XPathStep):
        positions = _apply_predicates(node, step, positions)
    for pos in positions:
        _collect(node.children[pos], path + (pos,), rest, results)


def _apply_predicates(node: Node, step: XPathStep, positions: list[int]) -> list[int]:
    conditions = iter(step.conditions)
    for kind in step.order:
        if kind == "index":
            index = len(positions) - 1 if step.index == LAST else step.index
            positions = [positions[index]] if index is not None and 0 <= index < len(positions) else []
        else:
            attribute, expected = next(conditions)
            positions = [pos for pos in positions if _matches(node.children[pos], attribute, expected)]
    return positions


def _matches(node: Node, attribute: str, expected: str | None) -> bool:
    value = node.attributes.get(attribute)
    if value is None:
        return False
    if expected is None:
        return True
    candidates = value if isinstance(value, tuple) else (value,)
    return any(str(candidate) == expected for candidate in candidates)


@lru_cache(maxsize=1024)
def _parse_cached(key: str) -> Expression:
    text = key.strip()
    if text.startswith(PATH_DELIMITER):
        text = text[len(PATH_DELIMITER) :]
    if not text:
        return Expression(key, ())
    steps: list[XPathStep] = []
    start = 0
    for end in (*_step_boundaries(text), len(text)):
        raw = text[start:end].strip()
        start = end + 1
        if not raw:
            raise InvalidExpression(key, "empty location step")
        if steps and steps[-1].attribute:
            raise InvalidExpression(key, "attribute step must be the last part of the key")
        steps.append(_parse_step(key, raw))
    return Expression(key, tuple(steps))


def _parse_step(key: str, raw: str) -> XPathStep:
    if raw.startswith(ATTRIBUTE_MARKER):
        name = raw[len(ATTRIBUTE_MARKER) :]
        if not _is_name(name):
            raise InvalidExpression(key, f"invalid attribute step {raw!r}")
        return XPathStep(name, attribute=True)
    bracket = raw.find("[")
    name = raw if bracket < 0 else raw[:bracket].strip()
    if name != WILDCARD and not _is_name(name):
        raise InvalidExpression(key, f"invalid location step {raw!r}")
    index: int | None = None
    conditions: list[tuple[str, str | None]] = []
    order: list[str] = []
    for predicate in _predicates(key, raw[len(raw) if bracket < 0 else bracket :]):
        if predicate.startswith(ATTRIBUTE_MARKER):
            conditions.append(_parse_condition(key, predicate))
            order.append("condition")
            continue
        if index is not None:
            raise InvalidExpression(key, "only one positional predicate is supported per step")
        index = _parse_position(key, predicate)
        order.append("index")
    return XPathStep(name, index, conditions=tuple(conditions), order=tuple(order))


def _predicates(key: str, text: str) -> list[str]:
    found: list[str] = []
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        if text[pos] != "[":
            raise InvalidExpression(key, f"unexpected {text[pos:]!r} after location step")
        end = _closing_bracket(text, pos)
        if end < 0:
            raise InvalidExpression(key, "unterminated predicate '['")
        found.append(text[pos + 1 : end].strip())
        pos = end + 1
    return found


def _parse_position(key: str, predicate: str) -> int:
    if predicate.replace(" ", "") == "last()":
        return LAST
    if not predicate.isdigit() or not predicate.isascii() or int(predicate) < 1:
        raise InvalidExpression(key, f"unsupported predicate [{predicate}]")
    return int(predicate) - 1


def _parse_condition(key: str, predicate: str) -> tuple[str, str | None]:
    body = predicate[len(ATTRIBUTE_MARKER) :]
    name, equals, literal = body.partition("=")
    name = name.strip()
    if not _is_name(name):
        raise InvalidExpression(key, f"unsupported predicate [{predicate}]")
    if not equals:
        return name, None
    literal = literal.strip()
    if len(literal) < 2 or literal[0] not in "'\"" or literal[-1] != literal[0]:
        raise InvalidExpression(key, f"predicate value must be quoted in [{predicate}]")
    return name, literal[1:-1]


def _parse_new_path(key: str, new_path: str) -> tuple[tuple[str, ...], str, bool]:
    """Split the part of an add key naming nodes to create."""

    head, marker, attribute = new_path.partition(ATTRIBUTE_MARKER)
    if marker and ATTRIBUTE_MARKER in attribute:
        raise InvalidExpression(key, "new node path contains multiple attribute markers")
    if marker and (PATH_DELIMITER in attribute or not _is_name(attribute)):
        raise InvalidExpression(key, "attribute marker at a disallowed position in new node path")
    if marker and head.endswith(PATH_DELIMITER):
        head = head[: -len(PATH_DELIMITER)]
        if not head:
            raise InvalidExpression(key, "new node path must not start with '/'")
    names = head.split(PATH_DELIMITER) if head else []
    if any(not _is_name(name) for name in names):
        raise InvalidExpression(key, "new node path contains an empty or invalid component")
    if marker:
        return tuple(names), attribute, True
    if not names:
        raise InvalidExpression(key, "new node path contains no components")
    return tuple(names[:-1]), names[-1], False


def _step_boundaries(text: str) -> list[int]:
    """Positions of ``/`` outside predicates and quoted literals."""

    boundaries: list[int] = []
    depth = 0
    quote: str | None = None
    for pos, char in enumerate(text):
        if quote:
            if char == quote:
                quote = None
        elif char in "'\"" and depth:
            quote = char
        elif char == "[":
            depth += 1
        elif char == "]":
            depth = max(depth - 1, 0)
        elif char == PATH_DELIMITER and not depth:
            boundaries.append(pos)
    return boundaries


def _closing_bracket(text: str, start: int) -> int:
    quote: str | None = None
    for pos in range(start + 1, len(text)):
        char = text[pos]
        if quote:
            if char == quote:
                quote = None
        elif char in "'\"":
            quote = char
        elif char == "]":
            return pos
    return -1


def _find_separator(key: str) -> int:
    """Index of the last whitespace outside predicates, ``-1`` when there is none."""

    depth = 0
    quote: str | None = None
    found = -1
    for pos, char in enumerate(key):
        if quote:
            if char == quote:
                quote = None
        elif char in "'\"" and depth:
            quote = char
        elif char == "[":
            depth += 1
        elif char == "]":
            depth = max(depth - 1, 0)
        elif char.isspace() and not depth:
            found = pos
    return found


def _is_name(name: str) -> bool:
    return bool(name) and not any(char in _NAME_STOPS or char.isspace() for char in name)


__all__ = ["XPathExpressionEngine", "XPathStep"]
