"""Variable interpolation with a pluggable lookup registry.

Purpose
-------
Expand ``${prefix:name}`` placeholders embedded in configuration values. Each
prefix maps to a :class:`~lib_hierarchical_config.application.ports.Lookup`;
variables without a known prefix fall through to the default lookups (usually
"read this key from the owning configuration") and finally to a parent
interpolator.

Contents
--------
* :class:`Interpolator` – registry plus scanner/resolver.
* :func:`first_element_to_string` – default string converter; sequences
  contribute their first element.

Rules
-----
* ``$${`` is an escape: it renders as ``${`` and is not a variable.
* Resolved values are interpolated again before substitution, so chains such
  as ``${second}`` -> ``${first}/z`` -> ``/x/y/z`` resolve fully.
* Variable names may themselves contain variables (``${env:${which}}``).
* Unresolvable variables stay in place verbatim.
* A string that consists of exactly one variable returns the resolved object
  itself, so typed values survive interpolation.
* Re-entering a variable that is still being resolved raises
  :class:`~lib_hierarchical_config.domain.errors.InterpolationCycleError`.
  The set of in-progress names lives only for one :meth:`Interpolator.interpolate`
  call; nothing is cached between calls.

System Role
-----------
Owned by :class:`lib_hierarchical_config.core.HierarchicalConfiguration`;
readers never interpolate, values are expanded lazily at access time.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any, Final

from ..domain.errors import InterpolationCycleError
from ..observability import log_debug, log_error, make_event
from .ports import Lookup

VAR_START: Final[str] = "${"
VAR_END: Final[str] = "}"
ESCAPE: Final[str] = "$"
PREFIX_SEPARATOR: Final[str] = ":"

_UNRESOLVED: Final[object] = object()

StringConverter = Callable[[Any], "str | None"]


def first_element_to_string(value: Any) -> str | None:
    """Convert a resolved value to the text substituted into a string.

    Lists and tuples contribute their first element; an empty sequence or
    ``None`` yields ``None`` (the variable counts as unresolved).

    Examples
    --------
    >>> first_element_to_string(["/a", "/b"])
    '/a'
    >>> first_element_to_string(8080)
    '8080'
    >>> first_element_to_string([]) is None
    True
    """

    if isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class Interpolator:
    """Expand ``${...}`` variables using registered lookups.

    Why
    ----
    Configuration values routinely refer to the environment, to process
    properties, or to other keys. Keeping the expansion rules in one place
    guarantees the same escaping and cycle semantics for every accessor.

    Parameters
    ----------
    prefix_lookups:
        Initial mapping of prefix to lookup.
    default_lookups:
        Lookups consulted with the full variable text when no prefix lookup
        produced a value.
    parent:
        Interpolator asked last; it is referenced, not owned.
    string_converter:
        Callable turning resolved objects into substitution text.

    Examples
    --------
    >>> from lib_hierarchical_config.adapters.lookups.default import MapLookup
    >>> interpolator = Interpolator({"app": MapLookup({"name": "demo"})})
    >>> interpolator.interpolate("service-${app:name}")
    'service-demo'
    >>> interpolator.interpolate("${app:missing} stays")
    '${app:missing} stays'
    >>> interpolator.interpolate("$${app:name}")
    '${app:name}'
    """

    def __init__(
        self,
        prefix_lookups: Mapping[str, Lookup] | None = None,
        default_lookups: Iterable[Lookup] | None = None,
        parent: Interpolator | None = None,
        string_converter: StringConverter | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._prefix_lookups: Mapping[str, Lookup] = MappingProxyType({})
        self._default_lookups: tuple[Lookup, ...] = ()
        self.parent = parent
        self.string_converter: StringConverter = string_converter or first_element_to_string
        if prefix_lookups:
            self.register_lookups(prefix_lookups)
        for lookup in default_lookups or ():
            self.add_default_lookup(lookup)

    @classmethod
    def with_defaults(cls, **kwargs: Any) -> Interpolator:
        """Create an interpolator preloaded with the built-in prefix lookups.

        The enabled prefixes follow ``LIB_HIERARCHICAL_CONFIG_DEFAULT_LOOKUPS``
        (see :func:`lib_hierarchical_config.adapters.lookups.default.default_prefix_lookups`).
        Explicit ``prefix_lookups`` are registered on top of the defaults.
        """

        from ..adapters.lookups.default import default_prefix_lookups

        extra = kwargs.pop("prefix_lookups", None) or {}
        lookups = {**default_prefix_lookups(), **extra}
        return cls(prefix_lookups=lookups, **kwargs)

    def __repr__(self) -> str:
        return f"Interpolator(prefixes={sorted(self._prefix_lookups)!r}, defaults={len(self._default_lookups)})"

    # -- registry ---------------------------------------------------------

    def register_lookup(self, prefix: str, lookup: Lookup) -> None:
        """Register *lookup* for *prefix*, replacing any previous registration."""

        if not isinstance(prefix, str):
            raise TypeError(f"Lookup prefix must be a string, got {type(prefix).__name__}")
        if not isinstance(lookup, Lookup):
            raise TypeError(f"Object registered for prefix {prefix!r} has no lookup() method")
        with self._lock:
            updated = dict(self._prefix_lookups)
            updated[prefix] = lookup
            self._prefix_lookups = MappingProxyType(updated)
        log_debug("lookup_registered", **make_event("register_lookup", prefix, {"lookup": type(lookup).__name__}))

    def register_lookups(self, lookups: Mapping[str, Lookup]) -> None:
        """Register every ``prefix -> lookup`` pair of *lookups*."""

        for prefix, lookup in lookups.items():
            self.register_lookup(prefix, lookup)

    def deregister_lookup(self, prefix: str) -> bool:
        """Remove the lookup registered for *prefix*; return whether one existed."""

        with self._lock:
            if prefix not in self._prefix_lookups:
                return False
            updated = {key: value for key, value in self._prefix_lookups.items() if key != prefix}
            self._prefix_lookups = MappingProxyType(updated)
        log_debug("lookup_deregistered", **make_event("deregister_lookup", prefix))
        return True

    def prefixes(self) -> frozenset[str]:
        """Return the registered prefixes."""

        return frozenset(self._prefix_lookups)

    def lookups(self) -> Mapping[str, Lookup]:
        """Return a read-only snapshot of the prefix table."""

        return self._prefix_lookups

    def add_default_lookup(self, lookup: Lookup) -> None:
        """Append *lookup* to the default lookups."""

        if not isinstance(lookup, Lookup):
            raise TypeError("Default lookup has no lookup() method")
        with self._lock:
            self._default_lookups = (*self._default_lookups, lookup)

    def remove_default_lookup(self, lookup: Lookup) -> bool:
        """Remove *lookup* from the default lookups; return whether it was present."""

        with self._lock:
            for position, candidate in enumerate(self._default_lookups):
                if candidate is lookup:
                    self._default_lookups = self._default_lookups[:position] + self._default_lookups[position + 1 :]
                    return True
        return False

    def default_lookups(self) -> tuple[Lookup, ...]:
        """Return the default lookups in consultation order."""

        return self._default_lookups

    # -- resolution -------------------------------------------------------

    def resolve(self, variable: str) -> Any | None:
        """Return the raw value of *variable* (without surrounding ``${}``) or ``None``.

        The text before the first ``:`` selects a prefix lookup. When that
        yields nothing the default lookups receive the complete variable text,
        then the parent interpolator is asked.
        """

        prefix, separator, name = variable.partition(PREFIX_SEPARATOR)
        if separator:
            lookup = self._prefix_lookups.get(prefix)
            if lookup is not None:
                value = _call_lookup(lookup, name, prefix)
                if value is not None:
                    return value
        for lookup in self._default_lookups:
            value = _call_lookup(lookup, variable, None)
            if value is not None:
                return value
        if self.parent is not None:
            return self.parent.resolve(variable)
        return None

    def interpolate(self, value: Any) -> Any:
        """Expand all variables in *value*; non-strings are returned unchanged.

        Examples
        --------
        >>> from lib_hierarchical_config.adapters.lookups.default import MapLookup
        >>> store = MapLookup({"base": "/x", "first": "${base}/y", "port": 8080})
        >>> interpolator = Interpolator(default_lookups=[store])
        >>> interpolator.interpolate("${first}/z")
        '/x/y/z'
        >>> interpolator.interpolate("${port}")
        8080
        >>> interpolator.interpolate("port=${port}")
        'port=8080'
        """

        if not isinstance(value, str):
            return value
        return self._expand(value, ())

    def _expand(self, text: str, chain: tuple[str, ...]) -> Any:
        if VAR_START not in text:
            return text
        pieces: list[str] = []
        pos = 0
        length = len(text)
        while pos < length:
            start = text.find(VAR_START, pos)
            if start < 0:
                pieces.append(text[pos:])
                break
            if start > pos and text[start - 1] == ESCAPE:
                pieces.append(text[pos : start - 1])
                pieces.append(VAR_START)
                pos = start + len(VAR_START)
                continue
            end = _closing_position(text, start + len(VAR_START))
            if end < 0:
                pieces.append(text[pos : start + len(VAR_START)])
                pos = start + len(VAR_START)
                continue
            pieces.append(text[pos:start])
            content = text[start + len(VAR_START) : end]
            if start == 0 and end == length - 1:
                resolved = self._resolve_variable(content, chain, whole=True)
                return text if resolved is _UNRESOLVED else resolved
            resolved = self._resolve_variable(content, chain, whole=False)
            pieces.append(text[start : end + 1] if resolved is _UNRESOLVED else resolved)
            pos = end + 1
        return "".join(pieces)

    def _resolve_variable(self, content: str, chain: tuple[str, ...], *, whole: bool) -> Any:
        name = content
        if VAR_START in content:
            expanded = self._expand(content, chain)
            name = expanded if isinstance(expanded, str) else self.string_converter(expanded) or ""
        if name in chain:
            cycle = (*chain, name)
            log_error("interpolation_cycle", **make_event("interpolate", name, {"cycle": list(cycle)}))
            raise InterpolationCycleError(cycle)
        value = self.resolve(name)
        if value is None:
            log_debug("variable_unresolved", **make_event("interpolate", name))
            return _UNRESOLVED
        inner = (*chain, name)
        if whole and not isinstance(value, str):
            if isinstance(value, (list, tuple)):
                return [self._expand(item, inner) if isinstance(item, str) else item for item in value]
            return value
        text = self.string_converter(value)
        if text is None:
            log_debug("variable_unresolved", **make_event("interpolate", name, {"reason": "empty"}))
            return _UNRESOLVED
        expanded = self._expand(text, inner)
        if whole or isinstance(expanded, str):
            return expanded
        converted = self.string_converter(expanded)
        return _UNRESOLVED if converted is None else converted


def _closing_position(text: str, position: int) -> int:
    """Return the index of the ``}`` closing a variable opened before *position*, or ``-1``."""

    depth = 1
    length = len(text)
    while position < length:
        if text.startswith(VAR_START, position):
            depth += 1
            position += len(VAR_START)
            continue
        if text[position] == VAR_END:
            depth -= 1
            if depth == 0:
                return position
        position += 1
    return -1


def _call_lookup(lookup: Lookup, name: str, prefix: str | None) -> Any | None:
    try:
        return lookup.lookup(name)
    except InterpolationCycleError:
        raise
    except Exception as exc:
        log_debug(
            "lookup_failed",
            **make_event("lookup", name, {"prefix": prefix, "lookup": type(lookup).__name__, "error": str(exc)}),
        )
        return None
