"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by the interpolation engine, the node
tree, the expression engine, adapters, and consuming applications. The
hierarchy lives in the domain layer so inner layers never depend on outer ones.

Contents
--------
* :class:`ConfigError` – umbrella base class for all configuration-related
  issues.
* :class:`InvalidFormat` – parsing problems while reading files.
* :class:`ValidationError` – reserved for semantic validation failures.
* :class:`NotFound` – raised when an expected configuration resource is missing.
* :class:`InterpolationCycleError` – a variable refers back to itself.
* :class:`InvalidExpression` – a path key cannot be parsed or applied.
* :class:`ConversionError` – a value cannot be converted to a requested type.
* :class:`MissingKeyError` – a typed accessor found no value and had no default.

System Role
-----------
Unresolvable variables and unmatched path segments are *not* errors; they
degrade to "leave the placeholder" and "empty result". Cycles and malformed
input propagate immediately. Callers catch :class:`ConfigError` to handle all
library failures uniformly; the builtin mix-ins (``RuntimeError``,
``ValueError``, ``KeyError``) keep ``except ValueError`` style callers working.
"""

from __future__ import annotations

from typing import Any, Sequence


class ConfigError(Exception):
    """Base type for all exceptions emitted by ``lib_hierarchical_config``.

    Why
    ----
    Provide a single catch-all type for consumers that do not need fine-grained
    handling.
    """


class InvalidFormat(ConfigError):
    """Raised when an input artifact cannot be parsed into structured data.

    Typical Sources
    ---------------
    Structured file loaders (:mod:`tomllib`, :mod:`json`, :mod:`yaml`).
    """


class ValidationError(ConfigError):
    """Signifies that a syntactically valid configuration failed semantic checks.

    Current Usage
    -------------
    Not actively raised; schema validation is out of scope.
    """


class NotFound(ConfigError):
    """Represents missing-but-optional resources (files, directories, etc.)."""


class InterpolationCycleError(ConfigError, RuntimeError):
    """Raised when resolving a variable re-enters a variable already in progress.

    Why
    ----
    ``a=${b}`` together with ``b=${a}`` must fail deterministically instead of
    recursing until the interpreter gives up.

    Attributes
    ----------
    cycle:
        Variable names in resolution order, ending with the re-entered name.

    Examples
    --------
    >>> str(InterpolationCycleError(("a", "b", "a")))
    'Infinite loop in property interpolation: ${a} -> ${b} -> ${a}'
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        chain = " -> ".join(f"${{{name}}}" for name in self.cycle)
        super().__init__(f"Infinite loop in property interpolation: {chain}")


class InvalidExpression(ConfigError, ValueError):
    """Raised when a path key is malformed or cannot be used for an operation."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid key {key!r}: {reason}")


class ConversionError(ConfigError, ValueError):
    """Raised when a raw value cannot be converted into the requested type.

    Attributes
    ----------
    key:
        Configuration key whose value was requested (``None`` for ad-hoc
        conversions).
    target_type:
        Name of the requested type.
    value:
        The offending raw value.

    Examples
    --------
    >>> str(ConversionError("db.port", "int", "abc"))
    "Key 'db.port' cannot be converted to int: 'abc'"
    """

    def __init__(self, key: str | None, target_type: str, value: Any) -> None:
        self.key = key
        self.target_type = target_type
        self.value = value
        subject = f"Key {key!r}" if key is not None else "Value"
        super().__init__(f"{subject} cannot be converted to {target_type}: {value!r}")


class MissingKeyError(ConfigError, KeyError):
    """Raised by typed accessors when *key* has no value and no default was given."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(key)

    def __str__(self) -> str:
        return f"Key {self.key!r} does not map to an existing value"
