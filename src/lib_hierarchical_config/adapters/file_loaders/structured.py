"""Structured configuration file loaders.

Purpose
-------
Convert on-disk artifacts into Python mappings that the mapping reader turns
into node trees. Loaders are small wrappers around
``tomllib``/``json``/``yaml.safe_load`` so error handling and observability
live in one place.

Contents
--------
* :class:`BaseFileLoader` – shared helpers for reading files and validating
  mapping outputs.
* :class:`TOMLFileLoader` / :class:`JSONFileLoader` / :class:`YAMLFileLoader`.
* :data:`FILE_LOADERS` – loaders keyed by file suffix.
* :func:`loader_for` – suffix dispatch raising :class:`InvalidFormat` for
  unsupported files.

System Role
-----------
Invoked by :func:`lib_hierarchical_config.core.read_config`. Loaders never
interpolate; ``${...}`` placeholders are stored verbatim and expanded when the
value is read.
"""

from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Final, Mapping

import yaml

from ...domain.errors import InvalidFormat, NotFound
from ...observability import log_debug, log_error, make_event


class BaseFileLoader:
    """Common utilities shared by the structured file loaders."""

    format_name: str = "file"

    def _read(self, path: str) -> bytes:
        """Read *path* as bytes, raising :class:`NotFound` when the file is missing.

        Examples
        --------
        >>> from tempfile import NamedTemporaryFile
        >>> tmp = NamedTemporaryFile(delete=False)
        >>> _ = tmp.write(b"key = 'value'")
        >>> tmp.close()
        >>> BaseFileLoader()._read(tmp.name)[:3]
        b'key'
        >>> Path(tmp.name).unlink()
        """

        file_path = Path(path)
        if not file_path.is_file():
            raise NotFound(f"Configuration file not found: {path}")
        payload = file_path.read_bytes()
        log_debug("config_file_read", **make_event("read", None, {"path": path, "size": len(payload)}))
        return payload

    def _invalid(self, path: str, exc: Exception) -> InvalidFormat:
        log_error(
            "config_file_invalid",
            **make_event("load", None, {"path": path, "format": self.format_name, "error": str(exc)}),
        )
        return InvalidFormat(f"Invalid {self.format_name.upper()} in {path}: {exc}")

    def _accept(self, data: object, *, path: str) -> Mapping[str, object]:
        result = self._ensure_mapping(data, path=path)
        log_debug(
            "config_file_loaded",
            **make_event("load", None, {"path": path, "format": self.format_name, "keys": len(result)}),
        )
        return result

    @staticmethod
    def _ensure_mapping(data: object, *, path: str) -> Mapping[str, object]:
        """Ensure *data* behaves like a mapping, otherwise raise ``InvalidFormat``.

        Examples
        --------
        >>> BaseFileLoader._ensure_mapping({"key": 1}, path="demo")
        {'key': 1}
        >>> BaseFileLoader._ensure_mapping(42, path="demo")
        Traceback (most recent call last):
        ...
        lib_hierarchical_config.domain.errors.InvalidFormat: File demo did not produce a mapping
        """

        if not isinstance(data, Mapping):
            raise InvalidFormat(f"File {path} did not produce a mapping")
        return data


class TOMLFileLoader(BaseFileLoader):
    """Load TOML documents using the standard library parser.

    Examples
    --------
    >>> from tempfile import NamedTemporaryFile
    >>> tmp = NamedTemporaryFile('w', suffix='.toml', delete=False, encoding='utf-8')
    >>> _ = tmp.write('[db]\\nurl = "${env:DB_URL}"')
    >>> tmp.close()
    >>> TOMLFileLoader().load(tmp.name)["db"]["url"]
    '${env:DB_URL}'
    >>> Path(tmp.name).unlink()
    """

    format_name = "toml"

    def load(self, path: str) -> Mapping[str, object]:
        try:
            data = tomllib.loads(self._read(path).decode("utf-8"))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
            raise self._invalid(path, exc) from exc
        return self._accept(data, path=path)


class JSONFileLoader(BaseFileLoader):
    """Load JSON documents.

    Examples
    --------
    >>> from tempfile import NamedTemporaryFile
    >>> tmp = NamedTemporaryFile('w', suffix='.json', delete=False, encoding='utf-8')
    >>> _ = tmp.write('{"paths": ["/a", "/b"]}')
    >>> tmp.close()
    >>> JSONFileLoader().load(tmp.name)["paths"]
    ['/a', '/b']
    >>> Path(tmp.name).unlink()
    """

    format_name = "json"

    def load(self, path: str) -> Mapping[str, object]:
        try:
            data = json.loads(self._read(path))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise self._invalid(path, exc) from exc
        return self._accept(data, path=path)


class YAMLFileLoader(BaseFileLoader):
    """Load YAML documents with ``yaml.safe_load``; an empty document is an empty mapping."""

    format_name = "yaml"

    def load(self, path: str) -> Mapping[str, object]:
        try:
            data = yaml.safe_load(self._read(path))
        except yaml.YAMLError as exc:
            raise self._invalid(path, exc) from exc
        return self._accept({} if data is None else data, path=path)


FILE_LOADERS: Final[Mapping[str, BaseFileLoader]] = {
    ".toml": TOMLFileLoader(),
    ".json": JSONFileLoader(),
    ".yaml": YAMLFileLoader(),
    ".yml": YAMLFileLoader(),
}


def loader_for(path: str) -> BaseFileLoader:
    """Return the loader responsible for the suffix of *path*.

    Examples
    --------
    >>> type(loader_for("settings.YML")).__name__
    'YAMLFileLoader'
    >>> loader_for("settings.ini")
    Traceback (most recent call last):
    ...
    lib_hierarchical_config.domain.errors.InvalidFormat: Unsupported configuration format: settings.ini
    """

    loader = FILE_LOADERS.get(Path(path).suffix.lower())
    if loader is None:
        raise InvalidFormat(f"Unsupported configuration format: {path}")
    return loader
