"""Built-in lookups for ``${prefix:name}`` variables.

Purpose
-------
Provide the standard variable sources an application expects out of the box
and the factory that assembles them into a prefix table.

Contents
--------
* :class:`SystemPropertiesLookup` (``sys:``) plus :func:`set_system_property`
  / :func:`clear_system_property` / :func:`system_properties`.
* :class:`EnvironmentLookup` (``env:``).
* :class:`LocalHostLookup` (``localhost:``).
* :class:`DateLookup` (``date:``).
* :class:`Base64DecoderLookup` / :class:`Base64EncoderLookup`
  (``base64Decoder:`` / ``base64Encoder:``).
* :class:`UrlDecoderLookup` / :class:`UrlEncoderLookup`
  (``urlDecoder:`` / ``urlEncoder:``).
* :class:`MapLookup` / :class:`FunctionLookup` – wrappers for host-provided data.
* :func:`default_prefix_lookups` – prefix table honouring
  ``LIB_HIERARCHICAL_CONFIG_DEFAULT_LOOKUPS``.

System Role
-----------
Every lookup returns ``None`` for unknown names and never raises; the
interpolator then leaves the placeholder untouched.
"""

from __future__ import annotations

import base64
import binascii
import getpass
import os
import platform
import socket
import threading
from collections.abc import Callable, Mapping
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final
from urllib.parse import quote_plus, unquote_plus

from ...observability import log_debug, make_event
from .constant import ConstantLookup

DEFAULT_LOOKUPS_ENV: Final[str] = "LIB_HIERARCHICAL_CONFIG_DEFAULT_LOOKUPS"

_PROPERTIES_LOCK = threading.RLock()
_PROPERTY_OVERRIDES: Mapping[str, str] = MappingProxyType({})


def set_system_property(name: str, value: str) -> None:
    """Define process property *name*; it shadows the built-in value of the same name.

    Examples
    --------
    >>> set_system_property("app.mode", "test")
    >>> SystemPropertiesLookup().lookup("app.mode")
    'test'
    >>> clear_system_property("app.mode")
    True
    """

    global _PROPERTY_OVERRIDES
    with _PROPERTIES_LOCK:
        _PROPERTY_OVERRIDES = MappingProxyType({**_PROPERTY_OVERRIDES, name: str(value)})


def clear_system_property(name: str) -> bool:
    """Remove a property defined with :func:`set_system_property`; return whether it existed."""

    global _PROPERTY_OVERRIDES
    with _PROPERTIES_LOCK:
        if name not in _PROPERTY_OVERRIDES:
            return False
        _PROPERTY_OVERRIDES = MappingProxyType({k: v for k, v in _PROPERTY_OVERRIDES.items() if k != name})
        return True


def system_properties() -> dict[str, str]:
    """Return the built-in process properties merged with explicit overrides."""

    properties = {
        "os.name": platform.system(),
        "os.arch": platform.machine(),
        "os.version": platform.release(),
        "python.version": platform.python_version(),
        "python.implementation": platform.python_implementation(),
        "user.home": str(Path.home()),
        "user.dir": os.getcwd(),
        "file.separator": os.sep,
        "path.separator": os.pathsep,
        "line.separator": os.linesep,
    }
    try:
        properties["user.name"] = getpass.getuser()
    except (KeyError, OSError):
        pass
    properties.update(_PROPERTY_OVERRIDES)
    return properties


class SystemPropertiesLookup:
    """Resolve process properties such as ``${sys:user.home}``."""

    def lookup(self, name: str) -> str | None:
        override = _PROPERTY_OVERRIDES.get(name)
        if override is not None:
            return override
        return system_properties().get(name)


class EnvironmentLookup:
    """Resolve environment variables such as ``${env:HOME}``.

    Parameters
    ----------
    environ:
        Mapping to read from. Defaults to :data:`os.environ`, read at lookup
        time so later changes are visible.

    Examples
    --------
    >>> EnvironmentLookup({"DB_URL": "postgres://db"}).lookup("DB_URL")
    'postgres://db'
    >>> EnvironmentLookup({}).lookup("MISSING") is None
    True
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    def lookup(self, name: str) -> str | None:
        environ = self._environ if self._environ is not None else os.environ
        return environ.get(name)


class LocalHostLookup:
    """Resolve ``name``, ``canonical-name``, and ``address`` of the local host."""

    def lookup(self, name: str) -> str | None:
        try:
            if name == "name":
                return socket.gethostname()
            if name == "canonical-name":
                return socket.getfqdn()
            if name == "address":
                return socket.gethostbyname(socket.gethostname())
        except OSError as exc:
            log_debug("lookup_failed", **make_event("localhost", name, {"error": str(exc)}))
        return None


class DateLookup:
    """Format the current local time: ``${date:%Y-%m-%d}``; the empty name gives ISO format.

    Examples
    --------
    >>> from datetime import datetime
    >>> DateLookup(clock=lambda: datetime(2024, 5, 17, 8, 30)).lookup("%Y-%m-%d")
    '2024-05-17'
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or datetime.now

    def lookup(self, name: str) -> str | None:
        now = self._clock()
        if not name:
            return now.isoformat()
        try:
            return now.strftime(name)
        except ValueError as exc:
            log_debug("lookup_failed", **make_event("date", name, {"error": str(exc)}))
            return None


class Base64DecoderLookup:
    """Decode base64 text: ``${base64Decoder:SGVsbG8=}`` -> ``Hello``.

    Examples
    --------
    >>> Base64DecoderLookup().lookup("SGVsbG8=")
    'Hello'
    >>> Base64DecoderLookup().lookup("***") is None
    True
    """

    def lookup(self, name: str) -> str | None:
        try:
            return base64.b64decode(name, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            log_debug("lookup_failed", **make_event("base64Decoder", name, {"error": str(exc)}))
            return None


class Base64EncoderLookup:
    """Encode text as base64: ``${base64Encoder:Hello}`` -> ``SGVsbG8=``."""

    def lookup(self, name: str) -> str | None:
        return base64.b64encode(name.encode("utf-8")).decode("ascii")


class UrlDecoderLookup:
    """Decode URL-encoded text: ``${urlDecoder:a%20b+c}`` -> ``a b c``."""

    def lookup(self, name: str) -> str | None:
        return unquote_plus(name)


class UrlEncoderLookup:
    """URL-encode text: ``${urlEncoder:a b&c}`` -> ``a+b%26c``."""

    def lookup(self, name: str) -> str | None:
        return quote_plus(name)


class MapLookup:
    """Resolve names from a mapping supplied by the host application.

    Examples
    --------
    >>> MapLookup({"region": "eu-west-1"}).lookup("region")
    'eu-west-1'
    """

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = values

    def __repr__(self) -> str:
        return f"MapLookup({len(self._values)} entries)"

    def lookup(self, name: str) -> Any | None:
        return self._values.get(name)


class FunctionLookup:
    """Resolve names with a callable (for example ``lambda name: name.upper()``)."""

    def __init__(self, function: Callable[[str], Any]) -> None:
        self._function = function

    def lookup(self, name: str) -> Any | None:
        return self._function(name)


_FACTORIES: Final[Mapping[str, Callable[[], Any]]] = MappingProxyType(
    {
        "sys": SystemPropertiesLookup,
        "env": EnvironmentLookup,
        "const": ConstantLookup,
        "localhost": LocalHostLookup,
        "date": DateLookup,
        "base64Decoder": Base64DecoderLookup,
        "base64Encoder": Base64EncoderLookup,
        "urlDecoder": UrlDecoderLookup,
        "urlEncoder": UrlEncoderLookup,
    }
)

DEFAULT_LOOKUP_NAMES: Final[tuple[str, ...]] = tuple(_FACTORIES)


def default_prefix_lookups(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Return fresh instances of the enabled built-in lookups keyed by prefix.

    ``LIB_HIERARCHICAL_CONFIG_DEFAULT_LOOKUPS`` (comma or whitespace separated)
    restricts the set; an empty value disables all of them and unknown names
    raise :class:`ValueError`. When unset every built-in lookup is enabled,
    including ``const``, which imports modules named in configuration text;
    deployments reading untrusted files should list the lookups they need.

    Examples
    --------
    >>> sorted(default_prefix_lookups({DEFAULT_LOOKUPS_ENV: "env, sys"}))
    ['env', 'sys']
    >>> default_prefix_lookups({DEFAULT_LOOKUPS_ENV: ""})
    {}
    >>> default_prefix_lookups({DEFAULT_LOOKUPS_ENV: "shell"})
    Traceback (most recent call last):
    ...
    ValueError: Unknown default lookup(s) in LIB_HIERARCHICAL_CONFIG_DEFAULT_LOOKUPS: shell
    """

    environ = os.environ if environ is None else environ
    selection = environ.get(DEFAULT_LOOKUPS_ENV)
    if selection is None:
        names = list(DEFAULT_LOOKUP_NAMES)
    else:
        names = [name for name in selection.replace(",", " ").split() if name]
        unknown = [name for name in names if name not in _FACTORIES]
        if unknown:
            raise ValueError(f"Unknown default lookup(s) in {DEFAULT_LOOKUPS_ENV}: {', '.join(unknown)}")
    return {name: _FACTORIES[name]() for name in names}
