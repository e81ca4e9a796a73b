"""Application-layer ports describing collaborator responsibilities.

Purpose
-------
Define the structural contracts that adapters and domain strategies must
satisfy so the interpolator, the node model, and the composition root can work
against abstractions instead of concrete classes.

Contents
--------
* :class:`Lookup` – resolves a variable name to a value or ``None``.
* :class:`ListDelimiterHandler` – splits, escapes, and joins delimited strings.
* :class:`FileLoader` – parses structured configuration artifacts.
* :class:`NodeCombiner` – combines two node trees into one.
* :class:`KeyEngine` – parses keys, queries node trees, and plans additions.

System Role
-----------
These protocols enforce Dependency Inversion (DIP). Lookups registered with an
:class:`~lib_hierarchical_config.application.interpolator.Interpolator` only
need a ``lookup`` method; no base class is required.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from ..domain.expression import AddPlan, Expression, QueryResult
from ..domain.node import Node


@runtime_checkable
class Lookup(Protocol):
    """Resolve the name part of a ``${prefix:name}`` variable.

    Why
    ----
    Make variable sources pluggable: environment, process properties,
    constants, host information, or anything the host application registers.

    Methods
    -------
    :meth:`lookup`
        Return the replacement value or ``None`` when *name* is unknown.
        Implementations never raise for unknown names.
    """

    def lookup(self, name: str) -> Any | None:
        """Return the value for *name* or ``None``."""


@runtime_checkable
class ListDelimiterHandler(Protocol):
    """Split raw scalar strings into lists and perform the inverse operations."""

    supports_join: bool

    def split(self, value: str, trim: bool = False) -> list[str]:
        """Tokenise *value* honouring the handler's escape convention."""

    def escape(self, value: Any) -> Any:
        """Escape *value* so that :meth:`split` yields it as one element."""

    def join(self, values: Iterable[Any]) -> str:
        """Join *values* so that :meth:`split` restores them."""

    def parse(self, value: Any, trim: bool = True) -> list[Any]:
        """Flatten *value* (string, iterable, scalar) into single values."""


@runtime_checkable
class FileLoader(Protocol):
    """Parse a structured configuration file into a mapping.

    Why
    ----
    Segregate parsing concerns (TOML/JSON/YAML) from tree construction.
    """

    def load(self, path: str) -> Mapping[str, object]:
        """Read *path* and return a mapping representation or raise ``InvalidFormat``."""


@runtime_checkable
class NodeCombiner(Protocol):
    """Combine two node trees into a new tree.

    Why
    ----
    Make the combination strategy (override, union) replaceable when several
    sources are merged into one configuration.
    """

    def __call__(self, first: Node, second: Node) -> Node:
        """Return the combination of *first* and *second*."""


@runtime_checkable
class KeyEngine(Protocol):
    """Translate configuration keys into positions inside a node tree.

    Why
    ----
    Keep the key syntax replaceable: the dotted engine and the XPath engine
    both satisfy this contract, and the node model only talks to it.
    """

    def parse(self, key: str) -> Expression:
        """Parse *key* or raise ``InvalidExpression``."""

    def query(self, root: Node, key: str | Expression) -> list[QueryResult]:
        """Return the nodes and attributes selected by *key*."""

    def query_nodes(self, root: Node, key: str | Expression) -> list[Node]:
        """Return only the nodes selected by *key*."""

    def node_key(self, node: Node | str, parent_key: str | None) -> str:
        """Return the key of *node* below *parent_key*."""

    def canonical_key(self, node: Node | str, parent_key: str | None, index: int) -> str:
        """Return the key of *node* including its occurrence index."""

    def attribute_key(self, parent_key: str | None, attribute: str) -> str:
        """Return the key of *attribute* of the node at *parent_key*."""

    def prepare_add(self, root: Node, key: str) -> AddPlan:
        """Plan where a new value for *key* is inserted."""
