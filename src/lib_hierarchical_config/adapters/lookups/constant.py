"""Lookup resolving ``${const:package.module.Class.FIELD}`` references.

The lookup imports the longest importable module prefix of the name and
walks the remaining parts with ``getattr``. Resolved values are cached per
instance. Because it imports arbitrary modules it can be excluded through
``LIB_HIERARCHICAL_CONFIG_DEFAULT_LOOKUPS``.
"""

from __future__ import annotations

import importlib
import threading
from typing import Any

from ...observability import log_debug, make_event


class ConstantLookup:
    """Resolve module-level or class-level constants by dotted name.

    Examples
    --------
    >>> ConstantLookup().lookup("os.sep") in ("/", "\\\\")
    True
    >>> ConstantLookup().lookup("http.HTTPStatus.NOT_FOUND.value")
    404
    >>> ConstantLookup().lookup("no_such_module.VALUE") is None
    True
    """

    def __init__(self) -> None:
        self._cache: dict[str, Any] = {}
        self._lock = threading.Lock()

    def lookup(self, name: str) -> Any | None:
        with self._lock:
            if name in self._cache:
                return self._cache[name]
        value = _resolve(name)
        if value is not None:
            with self._lock:
                self._cache[name] = value
        return value

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()


def _resolve(name: str) -> Any | None:
    parts = name.split(".")
    if len(parts) < 2 or not all(parts):
        return None
    for split in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:split])
        try:
            target: Any = importlib.import_module(module_name)
        except ImportError:
            continue
        try:
            for attribute in parts[split:]:
                target = getattr(target, attribute)
        except AttributeError as exc:
            log_debug("lookup_failed", **make_event("const", name, {"error": str(exc)}))
            return None
        return target
    log_debug("lookup_failed", **make_event("const", name, {"error": "module not importable"}))
    return None
